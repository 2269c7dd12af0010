"""User-facing messages attached to responses and form fields."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from idxflow.protocol.form import Field


class MessageType(str, Enum):
    ERROR = "ERROR"
    INFO = "INFO"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_class(cls, raw: str | None) -> MessageType:
        try:
            return cls((raw or "").upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Message:
    """A single server message.

    ``localization_key`` is the server's i18n key for the text, when given.
    """

    type: MessageType
    message: str
    localization_key: str | None = None
    field_name: str | None = None


@dataclass
class MessageCollection:
    """Top-level messages plus the messages nested under individual fields."""

    messages: list[Message] = field(default_factory=list)
    nested: list[tuple[Field, Message]] = field(default_factory=list)

    @property
    def all(self) -> list[Message]:
        return self.messages + [message for _, message in self.nested]

    def message_for(self, target: Field | str) -> Message | None:
        """Return the first message nested under a field, by object or name."""
        for owner, message in self.nested:
            if owner is target or owner.name == target:
                return message
        return None

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    def __bool__(self) -> bool:
        return bool(self.messages) or bool(self.nested)
