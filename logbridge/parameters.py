"""Connector parameter values and the redacting secret type.

A parameter in a config file may be written as a plain scalar, a sequence
or a mapping, with no type annotation.  :func:`classify_parameter` looks at
the shape of the parsed node and picks exactly one of :class:`StringValue`,
:class:`ListValue` or :class:`MapValue`.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Annotated, Any, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, SecretStr

REDACTED = "[REDACTED]"


def render_scalar(value: Any) -> str:
    """Render a scalar config value as canonical text.

    Raises :class:`ValueError` for anything that is not a scalar.
    """
    if value is None:
        return "null"
    # bool before int: True is an int in Python
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (dt.date, dt.datetime, dt.time)):
        return value.isoformat()
    raise ValueError(f"expected a scalar, got {type(value).__name__}")


class StringValue(BaseModel):
    """A parameter written as a single scalar."""

    model_config = ConfigDict(frozen=True)

    text: str

    def __str__(self) -> str:
        return self.text


class ListValue(BaseModel):
    """A parameter written as a sequence of scalars."""

    model_config = ConfigDict(frozen=True)

    items: tuple[str, ...] = ()


class MapValue(BaseModel):
    """A parameter written as a mapping of scalars."""

    model_config = ConfigDict(frozen=True)

    entries: dict[str, str] = Field(default_factory=dict)


def classify_parameter(raw: Any) -> StringValue | ListValue | MapValue:
    """Classify a parsed config node into a parameter variant by its shape."""
    if isinstance(raw, (StringValue, ListValue, MapValue)):
        return raw
    if isinstance(raw, Mapping):
        entries: dict[str, str] = {}
        for key, value in raw.items():
            try:
                entries[render_scalar(key)] = render_scalar(value)
            except ValueError as exc:
                raise ValueError(f"map entry {key!r}: {exc}") from None
        return MapValue(entries=entries)
    if isinstance(raw, (list, tuple)):
        items = []
        for index, value in enumerate(raw):
            try:
                items.append(render_scalar(value))
            except ValueError as exc:
                raise ValueError(f"list item {index}: {exc}") from None
        return ListValue(items=tuple(items))
    return StringValue(text=render_scalar(raw))


ParameterValue = Annotated[
    Union[StringValue, ListValue, MapValue],
    BeforeValidator(classify_parameter),
]


def parameter_args(parameters: Mapping[str, StringValue | ListValue | MapValue]) -> list[str]:
    """Flatten a parameter mapping into ``--name=value`` arguments.

    Lists repeat the flag once per item; maps repeat it once per entry
    as ``key:value``.
    """
    args: list[str] = []
    for name, value in parameters.items():
        if isinstance(value, StringValue):
            args.append(f"--{name}={value.text}")
        elif isinstance(value, ListValue):
            args.extend(f"--{name}={item}" for item in value.items)
        else:
            args.extend(f"--{name}={key}:{item}" for key, item in value.entries.items())
    return args


class SecretString(SecretStr):
    """A string whose ``str()`` and ``repr()`` never reveal the content.

    Use :meth:`get_secret_value` to place the text into a credential field.
    """

    def __str__(self) -> str:
        return REDACTED

    def __repr__(self) -> str:
        return REDACTED
