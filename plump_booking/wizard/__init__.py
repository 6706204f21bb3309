"""
Get Plump Booking Wizard - Conversational step-based appointment booking

This service walks a client through scheduling an appointment: client type,
treatment type, provider or location, service, date/time and contact details,
then submits the completed booking to the scheduling backend.

Key Features:
- 9-step flow graph with conditional routing on accumulated session state
- Router with merge-then-dispatch semantics over an immutable session value
- Multi-location staff roster aggregation with per-location failure tolerance
- Concurrent per-day availability loading for the visible calendar month
- Cross-location availability view for a single injector
- Typed backend client with timeout, offline and error normalization

Architecture:
- FastAPI web framework for REST endpoints
- In-memory session registry (no persistence across restarts)
- BookingWizard for step logic
- AvailabilityAggregator for fan-out requests
- BookingAPIClient (httpx) for the scheduling backend
- Pydantic models for API and backend contracts
"""

__version__ = "1.0.0"
