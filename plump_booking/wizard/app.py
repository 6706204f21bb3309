"""
Get Plump Booking Wizard - FastAPI Application

Provides an HTTP REST API over in-memory booking wizard sessions. Each session
owns one BookingWizard and the transcript of messages it has produced.

Sessions live in process memory only; they are evicted after the configured
TTL of inactivity or when the session cap is reached.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException

from plump_booking.shared.health_check import check_service_health
from plump_booking.shared.structured_logger import StructuredLogger
from plump_booking.wizard.api_client import ENDPOINTS, BookingAPIClient
from plump_booking.wizard.config import WizardConfig
from plump_booking.wizard.errors import FlowError
from plump_booking.wizard.flow import BookingWizard
from plump_booking.wizard.models import (
    ActionRequest, ActionResponse, ContactLinkResponse, HealthResponse,
    MetricsResponse, SessionCreateResponse, SessionStatusResponse
)
from plump_booking.wizard.ui import Transcript

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Global state
config: Optional[WizardConfig] = None
api_client: Optional[BookingAPIClient] = None
structured_logger = StructuredLogger(logging.getLogger("plump_booking.events"))
app_start_time: float = 0.0


@dataclass
class WizardSession:
    wizard: BookingWizard
    transcript: Transcript
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.updated_at = time.time()


def today() -> date:
    return date.today()


sessions: Dict[str, WizardSession] = {}
metrics: Dict[str, int] = {
    "total_sessions_created": 0,
    "completed_bookings_count": 0,
    "failed_bookings_count": 0,
}


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage service lifecycle (startup/shutdown)
    """
    global config, api_client, app_start_time

    logger.info("Starting Get Plump booking wizard service...")
    app_start_time = time.time()

    try:
        config = WizardConfig.from_env()
        logger.info("Configuration loaded")
    except ValueError as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

    api_client = BookingAPIClient(config)
    logger.info(f"Booking API client ready ({config.api_base_url})")

    yield

    logger.info("Shutting down Get Plump booking wizard service...")
    sessions.clear()
    if api_client:
        await api_client.close()
    logger.info("Service stopped")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Get Plump Booking Wizard Service",
    description="Conversational appointment booking over the scheduling backend",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================================================
# Session helpers
# ============================================================================

def _evict_sessions() -> None:
    """Drop expired sessions, then the oldest ones beyond the session cap"""
    now = time.time()
    expired = [sid for sid, entry in sessions.items() if now - entry.updated_at > config.session_ttl]
    for sid in expired:
        del sessions[sid]
    if expired:
        logger.info(f"Evicted {len(expired)} expired sessions")

    while len(sessions) >= config.max_sessions:
        oldest = min(sessions, key=lambda sid: sessions[sid].updated_at)
        del sessions[oldest]
        logger.info(f"Evicted oldest session {oldest} (session cap {config.max_sessions})")


def _get_session(session_id: str) -> WizardSession:
    entry = sessions.get(session_id)
    if entry is None or time.time() - entry.updated_at > config.session_ttl:
        sessions.pop(session_id, None)
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return entry


def _require_config() -> None:
    if not config or not api_client:
        raise HTTPException(status_code=503, detail="Service not configured")


def _record_outcome(entry: WizardSession, outcome_before: Optional[str]) -> None:
    outcome = entry.wizard.outcome
    if outcome == outcome_before:
        return
    if outcome == "completed":
        metrics["completed_bookings_count"] += 1
    elif outcome == "failed":
        metrics["failed_bookings_count"] += 1


def _client_info_args(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    data = data or {}
    return {
        "first_name": str(data.get("firstName", "")),
        "last_name": str(data.get("lastName", "")),
        "email": str(data.get("email", "")),
        "phone_number": str(data.get("phoneNumber", "")),
    }


def _navigate_direction(value: Optional[str]) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid month direction: {value!r}")


ACTIONS: Dict[str, Callable[[BookingWizard, ActionRequest], Awaitable[Any]]] = {
    "client_type": lambda w, r: w.select_client_type(r.value),
    "treatment_type": lambda w, r: w.select_treatment_type(r.value),
    "booking_flow": lambda w, r: w.select_booking_flow(r.value),
    "injector": lambda w, r: w.select_injector(r.value),
    "availability_injector": lambda w, r: w.select_injector_for_availability(r.value),
    "location": lambda w, r: w.select_location(r.value),
    "service": lambda w, r: w.select_service(r.value),
    "navigate_month": lambda w, r: w.navigate_month(_navigate_direction(r.value)),
    "date": lambda w, r: w.select_date(r.value),
    "time": lambda w, r: w.select_time(r.value),
    "toggle_location": lambda w, r: w.toggle_location(r.value),
    "client_info": lambda w, r: w.submit_client_info(**_client_info_args(r.data)),
    "restart": lambda w, r: w.restart(),
    "retry": lambda w, r: w.retry(),
}


async def _run_action(session_id: str, request: ActionRequest) -> ActionResponse:
    _require_config()
    entry = _get_session(session_id)

    handler = ACTIONS.get(request.action)
    if handler is None:
        raise HTTPException(status_code=400, detail=f"Unsupported action: {request.action}")
    if request.action not in ("client_info", "restart", "retry") and request.value is None:
        raise HTTPException(status_code=400, detail=f"Action '{request.action}' requires a value")

    wizard = entry.wizard
    previous_step = wizard.session.current_step.value
    outcome_before = wizard.outcome

    try:
        result = await handler(wizard, request)
    except FlowError as e:
        logger.warning(f"Rejected action {request.action} for session {session_id}: {e.message}")
        raise HTTPException(status_code=409, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    entry.touch()
    _record_outcome(entry, outcome_before)

    return ActionResponse(
        session_id=session_id,
        step=wizard.session.current_step.value,
        previous_step=previous_step,
        messages=entry.transcript.drain(),
        session=wizard.session.to_dict(),
        success=result is not False,
    )


# ============================================================================
# API Endpoints
# ============================================================================

@app.post("/api/v1/session/create", response_model=SessionCreateResponse)
async def create_session():
    """
    Create a new booking wizard session.

    Returns:
        Session ID, current step, and the opening messages
    """
    _require_config()
    _evict_sessions()

    session_id = str(uuid.uuid4())
    transcript = Transcript()
    wizard = BookingWizard(
        config, api_client, transcript, clock=today, structured_logger=structured_logger
    )

    await wizard.start()

    sessions[session_id] = WizardSession(wizard=wizard, transcript=transcript)
    metrics["total_sessions_created"] += 1
    logger.info(f"Session created: {session_id}")

    return SessionCreateResponse(
        session_id=session_id,
        step=wizard.session.current_step.value,
        messages=transcript.drain(),
    )


@app.post("/api/v1/session/{session_id}/action", response_model=ActionResponse)
async def process_action(session_id: str, request: ActionRequest):
    """
    Apply one client action (a selection or the contact form) to a session.

    Returns:
        New step, messages produced by the action, and the session snapshot
    """
    return await _run_action(session_id, request)


@app.post("/api/v1/session/{session_id}/restart", response_model=ActionResponse)
async def restart_session(session_id: str):
    return await _run_action(session_id, ActionRequest(action="restart"))


@app.post("/api/v1/session/{session_id}/retry", response_model=ActionResponse)
async def retry_step(session_id: str):
    return await _run_action(session_id, ActionRequest(action="retry"))


@app.get("/api/v1/session/{session_id}/status", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """
    Get status of an existing session.

    Returns current step, the session snapshot, and timestamps.
    """
    _require_config()
    entry = _get_session(session_id)

    return SessionStatusResponse(
        session_id=session_id,
        step=entry.wizard.session.current_step.value,
        session=entry.wizard.session.to_dict(),
        created_at=datetime.fromtimestamp(entry.created_at).isoformat(),
        updated_at=datetime.fromtimestamp(entry.updated_at).isoformat(),
        expires_at=datetime.fromtimestamp(entry.updated_at + config.session_ttl).isoformat(),
    )


@app.get("/api/v1/session/{session_id}/contact", response_model=ContactLinkResponse)
async def get_contact_link(session_id: str, context: str = "help"):
    """Pre-filled SMS contact link for a context tag"""
    _require_config()
    entry = _get_session(session_id)
    try:
        return ContactLinkResponse(**entry.wizard.contact_link(context))
    except FlowError as e:
        raise HTTPException(status_code=400, detail=e.message)


@app.delete("/api/v1/session/{session_id}")
async def delete_session(session_id: str):
    """Delete an existing session."""
    if sessions.pop(session_id, None) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    logger.info(f"Session deleted: {session_id}")
    return {"message": "Session deleted successfully"}


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Checks configuration and booking backend reachability.
    """
    config_valid = config is not None
    backend_reachable = False

    if config_valid:
        result = await check_service_health(
            "booking-api",
            f"{config.api_base_url}{ENDPOINTS['locations']}",
            timeout=min(config.request_timeout, 5.0),
        )
        backend_reachable = result.is_reachable()
        if not result.is_healthy():
            logger.warning(f"Booking backend check: {result.to_dict()}")

    if not config_valid:
        status = "unhealthy"
    elif not backend_reachable:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        backend_reachable=backend_reachable,
        config_valid=config_valid,
        uptime_seconds=time.time() - app_start_time,
    )


@app.get("/metrics", response_model=MetricsResponse)
async def get_metrics():
    """Session and booking counters since startup"""
    return MetricsResponse(
        total_sessions_created=metrics["total_sessions_created"],
        active_sessions_count=len(sessions),
        completed_bookings_count=metrics["completed_bookings_count"],
        failed_bookings_count=metrics["failed_bookings_count"],
    )


@app.get("/")
async def root():
    """Service information"""
    return {
        "service": "Get Plump Booking Wizard",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "create_session": "POST /api/v1/session/create",
            "action": "POST /api/v1/session/{session_id}/action",
            "restart": "POST /api/v1/session/{session_id}/restart",
            "retry": "POST /api/v1/session/{session_id}/retry",
            "status": "GET /api/v1/session/{session_id}/status",
            "contact": "GET /api/v1/session/{session_id}/contact",
            "delete": "DELETE /api/v1/session/{session_id}",
            "health": "GET /health",
            "metrics": "GET /metrics",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "plump_booking.wizard.app:app",
        host="0.0.0.0",
        port=8006,
        log_level="info"
    )
