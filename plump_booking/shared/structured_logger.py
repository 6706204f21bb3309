import json
import logging
import time
from typing import Any, Dict, Optional


class StructuredLogger:
    """
    Emits one JSON object per log line on top of a standard `logging.Logger`.

    Handlers and formatters configured for the wrapped logger keep working;
    the message body is just machine-parseable.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def _log(
        self,
        level: str,
        event_type: str,
        message: str,
        flow_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "timestamp": time.time(),
            "event_type": event_type,
            "message": message,
        }

        if flow_id is not None:
            entry["flow_id"] = flow_id

        if data:
            entry["data"] = dict(data)

        log_method = getattr(self.logger, level.lower(), self.logger.info)
        try:
            log_method(json.dumps(entry, default=str))
        except (TypeError, ValueError):
            log_method(f"[STRUCTURED_LOG_FALLBACK] {entry}")

    def event(
        self,
        flow_id: Optional[str],
        event_type: str,
        message: str,
        level: str = "INFO",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Generic structured event."""
        self._log(level=level, event_type=event_type, message=message, flow_id=flow_id, data=data)

    def step_transition(
        self,
        flow_id: str,
        old_step: str,
        new_step: str,
        patched_fields: Optional[list] = None,
    ) -> None:
        """Wizard moved from one step to another."""
        self._log(
            level="INFO",
            event_type="step_transition",
            message=f"{old_step} -> {new_step}",
            flow_id=flow_id,
            data={
                "old_step": old_step,
                "new_step": new_step,
                "patched_fields": sorted(patched_fields or []),
            },
        )

    def fanout_completed(
        self,
        operation: str,
        succeeded: int,
        failed: int,
        duration_ms: float,
        flow_id: Optional[str] = None,
    ) -> None:
        """Parallel per-location or per-date fan-out finished."""
        self._log(
            level="WARNING" if failed else "INFO",
            event_type="fanout",
            message=f"{operation}: {succeeded} ok, {failed} failed in {duration_ms:.0f}ms",
            flow_id=flow_id,
            data={
                "operation": operation,
                "succeeded": succeeded,
                "failed": failed,
                "duration_ms": duration_ms,
            },
        )
