"""
Step router for the Get Plump Booking Wizard

A transition is merge-then-dispatch: the patch and the new step are merged
into the session first, then the entry handler of the new step runs against
the merged session. Handlers therefore never observe the pre-transition
state.
"""

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from plump_booking.shared.structured_logger import StructuredLogger
from plump_booking.wizard.errors import UnknownStepError
from plump_booking.wizard.models import Step
from plump_booking.wizard.session import Session, SessionStore

logger = logging.getLogger(__name__)

StepHandler = Callable[[Session], Awaitable[Any]]


class StepRouter:
    """
    Dispatches step transitions to per-step entry handlers.

    Args:
        store: Session holder shared with the wizard
        handlers: Entry handler for every Step member
        structured_logger: Optional JSON logger for transitions
        log_transitions: Log each transition at INFO

    Raises:
        ValueError: if any step has no handler
    """

    def __init__(
        self,
        store: SessionStore,
        handlers: Mapping[Step, StepHandler],
        structured_logger: Optional[StructuredLogger] = None,
        log_transitions: bool = True,
    ):
        missing = [step.value for step in Step if step not in handlers]
        if missing:
            raise ValueError(f"No entry handler registered for steps: {missing}")

        self.store = store
        self.handlers = dict(handlers)
        self.structured_logger = structured_logger
        self.log_transitions = log_transitions

    async def go_to_step(
        self, step: Union[Step, str], patch: Optional[Mapping[str, Any]] = None
    ) -> Session:
        """
        Move to `step`, merging `patch` into the session before the handler runs.

        Returns:
            The session as merged on entry (before the handler's own writes)

        Raises:
            UnknownStepError: `step` does not name a wizard step; the session
                is left untouched
        """
        target = _coerce_step(step)
        previous = self.store.session.current_step

        merged = self.store.apply({**(patch or {}), "current_step": target})

        if self.log_transitions:
            logger.info(f"Step transition: {previous.value} -> {target.value}")
        if self.structured_logger:
            self.structured_logger.step_transition(
                merged.flow_id, previous.value, target.value, list(patch or {})
            )

        await self.handlers[target](merged)
        return merged


def _coerce_step(step: Union[Step, str]) -> Step:
    if isinstance(step, Step):
        return step
    try:
        return Step(step)
    except ValueError:
        logger.error(f"Unknown step requested: {step!r}")
        raise UnknownStepError(f"Unknown step: {step!r}") from None
