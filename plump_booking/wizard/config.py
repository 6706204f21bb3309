"""
Configuration for the Get Plump Booking Wizard service

Loads settings from environment variables with validation.
"""

import os
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class WizardConfig:
    """
    Configuration for the booking wizard.

    Attributes:
        api_base_url: Base URL of the booking API relay (default: http://localhost:3000/api)
        request_timeout: Per-request deadline in seconds (default: 10.0)
        session_ttl: Idle session lifetime in seconds before eviction (default: 1800 = 30min)
        max_sessions: Maximum concurrently held wizard sessions (default: 1000)
        max_services_shown: Maximum number of services offered at once (default: 10)
        contact_phone: SMS number used for out-of-band contact links
        log_state_transitions: Log step transitions (default: True)
    """

    api_base_url: str = "http://localhost:3000/api"
    request_timeout: float = 10.0
    session_ttl: int = 1800
    max_sessions: int = 1000
    max_services_shown: int = 10
    contact_phone: str = "+16463468809"
    log_state_transitions: bool = True

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.request_timeout <= 0:
            raise ValueError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )

        if self.session_ttl <= 0:
            raise ValueError(
                f"session_ttl must be positive, got {self.session_ttl}"
            )

        if self.max_sessions < 1:
            raise ValueError(
                f"max_sessions must be at least 1, got {self.max_sessions}"
            )

        if self.max_services_shown < 1:
            raise ValueError(
                f"max_services_shown must be at least 1, got {self.max_services_shown}"
            )

        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"api_base_url must start with http:// or https://, got {self.api_base_url}"
            )

        # Trailing slash would double up with endpoint paths
        self.api_base_url = self.api_base_url.rstrip("/")

        if self.log_state_transitions:
            logger.info(
                f"WizardConfig loaded: api_base_url={self.api_base_url}, "
                f"request_timeout={self.request_timeout}s, session_ttl={self.session_ttl}s, "
                f"max_sessions={self.max_sessions}"
            )

    @staticmethod
    def from_env() -> "WizardConfig":
        """
        Load configuration from environment variables.

        Environment Variables:
            PLUMP_BOOKING_API_BASE_URL: Booking API base URL (default: http://localhost:3000/api)
            PLUMP_BOOKING_REQUEST_TIMEOUT: Request timeout in seconds (default: 10.0)
            PLUMP_BOOKING_SESSION_TTL: Session TTL in seconds (default: 1800)
            PLUMP_BOOKING_MAX_SESSIONS: Max in-memory sessions (default: 1000)
            PLUMP_BOOKING_MAX_SERVICES_SHOWN: Max services offered (default: 10)
            PLUMP_BOOKING_CONTACT_PHONE: SMS contact number (default: +16463468809)
            PLUMP_BOOKING_LOG_STATE_TRANSITIONS: Log step transitions (default: true)

        Returns:
            WizardConfig instance loaded from environment
        """
        api_base_url = os.getenv(
            "PLUMP_BOOKING_API_BASE_URL", "http://localhost:3000/api"
        )

        try:
            request_timeout = float(
                os.getenv("PLUMP_BOOKING_REQUEST_TIMEOUT", "10.0")
            )
        except ValueError:
            logger.warning(
                "Invalid PLUMP_BOOKING_REQUEST_TIMEOUT, using default 10.0"
            )
            request_timeout = 10.0

        try:
            session_ttl = int(os.getenv("PLUMP_BOOKING_SESSION_TTL", "1800"))
        except ValueError:
            logger.warning("Invalid PLUMP_BOOKING_SESSION_TTL, using default 1800")
            session_ttl = 1800

        try:
            max_sessions = int(os.getenv("PLUMP_BOOKING_MAX_SESSIONS", "1000"))
        except ValueError:
            logger.warning("Invalid PLUMP_BOOKING_MAX_SESSIONS, using default 1000")
            max_sessions = 1000

        try:
            max_services_shown = int(
                os.getenv("PLUMP_BOOKING_MAX_SERVICES_SHOWN", "10")
            )
        except ValueError:
            logger.warning(
                "Invalid PLUMP_BOOKING_MAX_SERVICES_SHOWN, using default 10"
            )
            max_services_shown = 10

        contact_phone = os.getenv("PLUMP_BOOKING_CONTACT_PHONE", "+16463468809")

        log_state_transitions = os.getenv(
            "PLUMP_BOOKING_LOG_STATE_TRANSITIONS", "true"
        ).lower() in ("true", "1", "yes")

        return WizardConfig(
            api_base_url=api_base_url,
            request_timeout=request_timeout,
            session_ttl=session_ttl,
            max_sessions=max_sessions,
            max_services_shown=max_services_shown,
            contact_phone=contact_phone,
            log_state_transitions=log_state_transitions,
        )
