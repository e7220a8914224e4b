from __future__ import annotations

from typing import Any

from city_relay.errors import ValidationError

MAX_MESSAGE_CHARS = 5000


def message_length(message: str) -> int:
    """Length in UTF-16 code units, the unit browser clients count in."""
    return len(message.encode("utf-16-le", "surrogatepass")) // 2


def validate_message(message: Any, *, max_chars: int = MAX_MESSAGE_CHARS) -> str:
    """Return the message unchanged if it is usable, else raise ValidationError.

    The length cap applies to the raw text, the emptiness check to the stripped text.
    """
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Message is required and must be a non-empty string")
    if message_length(message) > max_chars:
        raise ValidationError(
            f"Message too long. Please keep it under {max_chars:,} characters."
        )
    return message
