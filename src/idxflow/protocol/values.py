"""Recursive JSON value model for dynamically shaped IDX payloads.

IDX responses carry form values, authenticator profiles and settings whose
shape is only known at runtime. ``JSONValue`` keeps the JSON kind of each node
so values survive a decode/encode cycle unchanged, and so a JSON string
``"123"`` is never confused with the number ``123``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from idxflow.client.models.errors import (
    InternalMessageError,
    InvalidResponseDataError,
)


class ValueKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    DICTIONARY = "dictionary"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


class JSONValue:
    """A tagged JSON node.

    The ``OBJECT`` kind wraps an arbitrary in-process Python object. It is only
    created by ``wrap()`` and can never be encoded back to JSON.
    """

    __slots__ = ("kind", "value")

    def __init__(self, kind: ValueKind, value: Any = None):
        self.kind = kind
        self.value = value

    # ================================
    # Construction
    # ================================

    @classmethod
    def string(cls, value: str) -> JSONValue:
        return cls(ValueKind.STRING, value)

    @classmethod
    def number(cls, value: float | int) -> JSONValue:
        return cls(ValueKind.NUMBER, value)

    @classmethod
    def boolean(cls, value: bool) -> JSONValue:
        return cls(ValueKind.BOOL, value)

    @classmethod
    def dictionary(cls, value: dict[str, JSONValue]) -> JSONValue:
        return cls(ValueKind.DICTIONARY, dict(value))

    @classmethod
    def array(cls, value: list[JSONValue]) -> JSONValue:
        return cls(ValueKind.ARRAY, list(value))

    @classmethod
    def opaque(cls, value: Any) -> JSONValue:
        return cls(ValueKind.OBJECT, value)

    @classmethod
    def null(cls) -> JSONValue:
        return cls(ValueKind.NULL)

    @classmethod
    def from_json(cls, raw: Any) -> JSONValue:
        """Decode already-parsed JSON data.

        Kinds are tried in the order text, number, boolean, mapping, sequence,
        null, and a node is only accepted for the kind it actually is. ``bool``
        is a subclass of ``int`` in Python, so booleans are excluded from the
        number check explicitly.

        Raises:
            InvalidResponseDataError: If the data contains a non-JSON node
        """
        if isinstance(raw, str):
            return cls.string(raw)
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return cls.number(raw)
        if isinstance(raw, bool):
            return cls.boolean(raw)
        if isinstance(raw, dict):
            return cls.dictionary(
                {str(key): cls.from_json(item) for key, item in raw.items()}
            )
        if isinstance(raw, list):
            return cls.array([cls.from_json(item) for item in raw])
        if raw is None:
            return cls.null()
        raise InvalidResponseDataError(
            f"Invalid JSON value of type {type(raw).__name__}"
        )

    @classmethod
    def wrap(cls, native: Any) -> JSONValue:
        """Build a value from in-process Python data.

        JSON-shaped data maps onto the matching kinds; anything else becomes an
        opaque ``OBJECT`` node.
        """
        if isinstance(native, JSONValue):
            return native
        if isinstance(native, dict):
            return cls.dictionary(
                {str(key): cls.wrap(item) for key, item in native.items()}
            )
        if isinstance(native, (list, tuple)):
            return cls.array([cls.wrap(item) for item in native])
        if native is None or isinstance(native, (str, int, float)):
            return cls.from_json(native)
        return cls.opaque(native)

    @classmethod
    def decode(cls, text: str | bytes) -> JSONValue:
        """Decode a JSON document.

        Raises:
            InvalidResponseDataError: If the text is not valid JSON
        """
        try:
            raw = json.loads(text)
        except ValueError as e:
            raise InvalidResponseDataError(f"Invalid JSON document: {e}") from e
        return cls.from_json(raw)

    # ================================
    # Encoding
    # ================================

    def to_json(self) -> Any:
        """Convert back to plain JSON data.

        Raises:
            InternalMessageError: If the tree contains an opaque object
        """
        if self.kind is ValueKind.DICTIONARY:
            return {key: item.to_json() for key, item in self.value.items()}
        if self.kind is ValueKind.ARRAY:
            return [item.to_json() for item in self.value]
        if self.kind is ValueKind.OBJECT:
            raise InternalMessageError("Unable to encode object as JSON")
        return self.value

    def encode(self) -> str:
        return json.dumps(self.to_json(), sort_keys=True)

    # ================================
    # Accessors
    # ================================

    def string_value(self) -> str | None:
        return self.value if self.kind is ValueKind.STRING else None

    def number_value(self) -> float | int | None:
        return self.value if self.kind is ValueKind.NUMBER else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JSONValue):
            return NotImplemented
        if self.kind is not other.kind:
            return False
        if self.kind is ValueKind.OBJECT:
            try:
                hash(self.value)
                hash(other.value)
            except TypeError:
                return False
            return self.value == other.value
        return self.value == other.value

    def __repr__(self) -> str:
        if self.kind is ValueKind.STRING:
            return json.dumps(self.value)
        if self.kind is ValueKind.NUMBER:
            return repr(self.value)
        if self.kind is ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind is ValueKind.NULL:
            return "null"
        if self.kind is ValueKind.OBJECT:
            if type(self.value).__repr__ is not object.__repr__:
                return repr(self.value)
            return f"Custom object {self.value}"
        try:
            return json.dumps(self.to_json(), indent=2, sort_keys=True)
        except InternalMessageError:
            return f"JSONValue({self.kind.value})"
