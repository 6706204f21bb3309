"""
Get Plump booking wizard services.

Subpackages:
- wizard: conversational step-flow booking wizard and its HTTP surface
- shared: structured logging and health check helpers shared across services
"""

__version__ = "1.0.0"
