"""
Shared utilities for Get Plump booking services

- structured_logger: JSON log lines for step transitions and fan-outs
- health_check: reachability probe for the booking backend
"""
