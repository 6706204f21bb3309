"""
UI collaborators for the Get Plump Booking Wizard

The wizard only ever talks to a `ChatUI`: it appends messages, shows error
and success notices, and builds option grids. How those are rendered is the
UI's business. `Transcript` is the in-memory implementation used by the HTTP
service and by tests; it records each message as a plain dict.

`ContactFallback` produces the pre-filled SMS link offered whenever the
client should reach a human instead.
"""

import dataclasses
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

from plump_booking.wizard.models import (
    CONTACT_DEFAULT_MESSAGE, CONTACT_MESSAGES, Choice, ContactContext
)
from plump_booking.wizard.session import Session

logger = logging.getLogger(__name__)


class ChatUI(Protocol):
    async def add(self, role: str, content: Any) -> None:
        ...

    async def show_error(self, message: str) -> None:
        ...

    async def show_success(self, message: str) -> None:
        ...

    def create_button_grid(self, options: List[Choice], kind: str = "choices") -> Dict[str, Any]:
        ...


class Transcript:
    """
    Records wizard output as message dicts.

    Messages are appended in the order the wizard awaits them, so a message
    is fully recorded before the next one is queued.
    """

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []
        self._cursor = 0

    async def add(self, role: str, content: Any) -> None:
        if isinstance(content, dict):
            message = {"role": role, **content}
        else:
            message = {"role": role, "kind": "text", "text": str(content)}
        self.messages.append(message)

    async def show_error(self, message: str) -> None:
        self.messages.append({"role": "system", "kind": "error", "text": message})

    async def show_success(self, message: str) -> None:
        self.messages.append({"role": "system", "kind": "success", "text": message})

    def create_button_grid(self, options: List[Choice], kind: str = "choices") -> Dict[str, Any]:
        return {"kind": kind, "choices": [dataclasses.asdict(option) for option in options]}

    def drain(self) -> List[Dict[str, Any]]:
        """Messages recorded since the previous drain"""
        new = self.messages[self._cursor:]
        self._cursor = len(self.messages)
        return new

    def texts(self) -> List[str]:
        return [m["text"] for m in self.messages if "text" in m]


class ContactFallback:
    """Builds out-of-band SMS contact links for a context tag"""

    def __init__(self, phone: str):
        self.phone = phone

    def message_for(self, context: ContactContext, session: Optional[Session] = None) -> str:
        template = CONTACT_MESSAGES.get(context, CONTACT_DEFAULT_MESSAGE)
        location = (session.selected_location if session else None) or "your location"
        service = (session.selected_service if session else None) or "a treatment"
        return f"{template.format(location=location, service=service)}."

    def link_for(self, context: ContactContext, session: Optional[Session] = None) -> str:
        return f"sms:{self.phone}?body={quote(self.message_for(context, session))}"

    def button(
        self, label: str, context: ContactContext, session: Optional[Session] = None
    ) -> Dict[str, Any]:
        """Message content for a contact affordance"""
        return {
            "kind": "contact",
            "label": label,
            "context": context.value,
            "link": self.link_for(context, session),
        }
