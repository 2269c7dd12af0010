"""Recursive form model describing the input a remediation expects.

A ``Form`` is an ordered list of ``Field`` objects. A field holds a direct
value, owns a nested form (a composite value such as ``credentials``), or
offers a set of option fields the caller picks from. Values are written with
``Form.set``/``Form.apply`` and read back as request parameters with
``Form.collect``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from idxflow.client.models.errors import (
    InvalidParameterError,
    InvalidParameterValueError,
    InvalidResponseDataError,
    ParameterImmutableError,
    UnknownRemediationOptionError,
)
from idxflow.protocol.messages import Message
from idxflow.protocol.values import JSONValue

if TYPE_CHECKING:
    from idxflow.protocol.authenticators import Authenticator

# Declared field types mapped to the Python types accepted when writing values.
# Types not listed here accept any value.
_TYPE_CHECKS: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "boolean": (bool,),
    "integer": (int,),
    "number": (int, float),
    "object": (dict,),
}


@dataclass
class Field:
    """One input of a form.

    Unnamed fields only group other fields; their nested form is merged into
    the enclosing parameters when collected. Option fields usually have a
    label and either a scalar ``value`` or a nested ``form``.
    """

    name: str | None = None
    label: str | None = None
    type: str | None = None
    value: JSONValue | None = None
    required: bool = False
    mutable: bool = True
    visible: bool = True
    secret: bool = False
    form: Form | None = None
    options: list[Field] = field(default_factory=list)
    selected_option: Field | None = None
    messages: list[Message] = field(default_factory=list)
    relates_to: Authenticator | None = None
    origin: Field | None = field(default=None, repr=False, compare=False)

    @property
    def has_options(self) -> bool:
        return bool(self.options)

    def set_value(self, raw: Any, path: str | None = None) -> None:
        """Assign a direct value.

        Raises:
            ParameterImmutableError: If the field is not mutable
            InvalidParameterValueError: If the value doesn't match the field type
        """
        name = path or self.name or ""
        if not self.mutable:
            raise ParameterImmutableError(name)

        expected = _TYPE_CHECKS.get(self.type or "")
        if expected is not None and raw is not None:
            is_bool = isinstance(raw, bool)
            if not isinstance(raw, expected) or (is_bool and bool not in expected):
                raise InvalidParameterValueError(name, self.type or "")

        self.value = None if raw is None else JSONValue.wrap(raw)

    def select(self, choice: Any, path: str | None = None) -> Field:
        """Select one of this field's options.

        The choice may be the option field itself, an option label, an
        option's scalar value, the id or type of the authenticator the option
        relates to, or a mapping matching the preset values of an option's form.

        Raises:
            UnknownRemediationOptionError: If no option matches
        """
        for option in self.options:
            if _is_same_option(option, choice) or _option_matches(option, choice):
                self.selected_option = option
                return option
        raise UnknownRemediationOptionError(path or self.name or "")

    def collect(self) -> Any | None:
        """Return this field's request value, or None when it has none."""
        if self.selected_option is not None:
            return self.selected_option.collect()
        if self.form is not None:
            return self.form.collect() or None
        if self.value is None:
            return None
        return self.value.to_json()

    def copy(self) -> Field:
        """Copy this field and everything below it.

        Values, messages and related authenticators are shared; nested forms
        and options are copied so writes to the copy never reach this field.
        """
        options = [option.copy() for option in self.options]
        selected = None
        for option, replica in zip(self.options, options):
            if option is self.selected_option:
                selected = replica
        return replace(
            self,
            form=self.form.copy() if self.form is not None else None,
            options=options,
            selected_option=selected,
            messages=list(self.messages),
            origin=self.origin or self,
        )


def _is_same_option(option: Field, choice: Any) -> bool:
    return choice is option or (choice is not None and choice is option.origin)


def _option_matches(option: Field, choice: Any) -> bool:
    if isinstance(choice, str):
        if option.label == choice:
            return True
        if option.value is not None and option.value.string_value() == choice:
            return True
        related = option.relates_to
        return related is not None and choice in (related.id, related.type)
    if isinstance(choice, dict) and option.form is not None:
        return _mapping_matches(option.form, choice)
    return False


def _mapping_matches(form: Form, choice: dict[str, Any]) -> bool:
    """Match a mapping against the preset or immutable values of a form.

    Keys naming unset mutable fields are values to write once the option is
    selected. At least one key must match a preset value.
    """
    matched = False
    for key, item in choice.items():
        target = form.lookup(key)
        if target is None:
            return False
        if target.mutable and target.collect() is None:
            continue
        if target.collect() != item:
            return False
        matched = True
    return matched


class Form:
    """Ordered collection of fields with dotted-path lookup."""

    def __init__(self, fields: list[Field] | None = None):
        self.fields: list[Field] = list(fields or [])
        names = [f.name for f in self.fields if f.name is not None]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise InvalidResponseDataError(
                f"Duplicate field names in form: {sorted(duplicates)}"
            )

    def lookup(self, path: str) -> Field | None:
        """Resolve a field by name or dotted path.

        ``"credentials.passcode"`` resolves ``passcode`` inside the form owned
        by ``credentials``. Fields nested in unnamed grouping fields are
        found as if they were direct children.

        Returns:
            The field, or None if no field has that name

        Raises:
            InvalidParameterError: If an intermediate field has no nested form
        """
        head, _, rest = path.partition(".")
        target = self._child(head)
        if target is None or not rest:
            return target

        nested = target.form
        if nested is None and target.selected_option is not None:
            nested = target.selected_option.form
        if nested is None:
            raise InvalidParameterError(path)
        return nested.lookup(rest)

    def _child(self, name: str) -> Field | None:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        for candidate in self.fields:
            if candidate.name is None and candidate.form is not None:
                found = candidate.form._child(name)
                if found is not None:
                    return found
        return None

    def set(self, path: str, raw: Any) -> None:
        """Write a caller-supplied value at the given path.

        Mappings written to a field with a nested form are applied key by key;
        values written to a field with options select an option. A mapping that
        selects an option also writes its remaining keys into that option's form.

        Raises:
            InvalidParameterError: If the path doesn't resolve to a field
            InvalidParameterValueError: If a composite field receives a scalar
            ParameterImmutableError: If the field is not mutable
            UnknownRemediationOptionError: If no option matches
        """
        target = self.lookup(path)
        if target is None:
            raise InvalidParameterError(path)

        if target.has_options:
            option = target.select(raw, path)
            if isinstance(raw, dict) and option.form is not None:
                for key, item in raw.items():
                    if option.form[key].collect() != item:
                        self.set(f"{path}.{key}", item)
        elif target.form is not None:
            if not isinstance(raw, dict):
                raise InvalidParameterValueError(path, "object")
            for key, item in raw.items():
                self.set(f"{path}.{key}", item)
        else:
            target.set_value(raw, path)

    def apply(self, values: dict[str, Any]) -> None:
        for path, raw in values.items():
            self.set(path, raw)

    def copy(self) -> Form:
        return Form([child.copy() for child in self.fields])

    def collect(self) -> dict[str, Any]:
        """Collect the request parameters for every field holding a value.

        Unset fields are left out, including required ones; the server reports
        missing values through field messages.
        """
        parameters: dict[str, Any] = {}
        for child in self.fields:
            value = child.collect()
            if value is None:
                continue
            if child.name is None:
                if isinstance(value, dict):
                    for key, item in value.items():
                        parameters.setdefault(key, item)
                continue
            parameters[child.name] = value
        return parameters

    @property
    def visible_fields(self) -> list[Field]:
        return [f for f in self.fields if f.visible]

    def __getitem__(self, path: str) -> Field:
        target = self.lookup(path)
        if target is None:
            raise KeyError(path)
        return target

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.lookup(path) is not None

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)
