# swapdesk/transport/packets.py

from dataclasses import dataclass
from typing import List, Optional


@dataclass
class InboundMessage:
    """Free text typed by the user."""
    session_id: str
    text: str
    message_id: Optional[int] = None


@dataclass
class InboundCallback:
    """A button press. message_ref is the message the button sat on."""
    session_id: str
    callback_id: str
    data: str
    message_ref: Optional[int] = None


@dataclass(frozen=True)
class Button:
    text: str
    data: str


Keyboard = List[List[Button]]


def to_reply_markup(keyboard: Optional[Keyboard]) -> dict:
    return {
        "inline_keyboard": [
            [{"text": b.text, "callback_data": b.data} for b in row]
            for row in (keyboard or [])
        ]
    }
