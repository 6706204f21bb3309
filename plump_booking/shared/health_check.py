"""
Health check utilities for Get Plump booking services

Every check returns a HealthCheckResult with one of three statuses:
- "healthy": backend answered normally
- "degraded": backend answered with a server error
- "unhealthy": backend could not be reached

Usage:
    from plump_booking.shared.health_check import check_service_health

    result = await check_service_health("booking-api", "http://localhost:3000/api/locations")
    if result.is_healthy():
        print(f"Booking API is up ({result.latency_ms:.0f}ms)")
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """
    Standardized health check result.

    Attributes:
        service_name: Name of the service being checked
        status: "healthy", "unhealthy", or "degraded"
        latency_ms: Response time in milliseconds
        details: Status code or error text
        timestamp: Unix timestamp when check was performed
    """
    service_name: str
    status: str
    latency_ms: float
    details: Dict[str, Any]
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def is_healthy(self) -> bool:
        return self.status == "healthy"

    def is_reachable(self) -> bool:
        return self.status != "unhealthy"


async def check_service_health(
    service_name: str,
    url: str,
    timeout: float = 5.0,
    client: Optional[httpx.AsyncClient] = None,
) -> HealthCheckResult:
    """
    Probe an HTTP endpoint.

    Args:
        service_name: Name of the service (for display)
        url: Endpoint URL
        timeout: Request timeout in seconds (default: 5.0)
        client: Optional existing client to reuse

    Returns:
        HealthCheckResult
    """
    start_time = time.time()

    try:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as temp_client:
                response = await temp_client.get(url)
    except httpx.TimeoutException:
        logger.error(f"{service_name} health check timed out after {timeout}s")
        return HealthCheckResult(
            service_name=service_name,
            status="unhealthy",
            latency_ms=timeout * 1000,
            details={"error": f"Request timed out after {timeout}s"},
            timestamp=time.time(),
        )
    except httpx.HTTPError as e:
        latency_ms = (time.time() - start_time) * 1000
        logger.error(f"{service_name} health check failed: {e}")
        return HealthCheckResult(
            service_name=service_name,
            status="unhealthy",
            latency_ms=latency_ms,
            details={"error": str(e)},
            timestamp=time.time(),
        )

    latency_ms = (time.time() - start_time) * 1000
    status = "degraded" if response.status_code >= 500 else "healthy"

    return HealthCheckResult(
        service_name=service_name,
        status=status,
        latency_ms=latency_ms,
        details={"status_code": response.status_code},
        timestamp=time.time(),
    )
