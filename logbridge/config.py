"""Connector configuration files.

Two formats are supported:

* **Format A** (YAML) for parameter-rich connectors: one connector with
  ``name``, ``type``, ``topic``, ``version``, free-form ``parameters``,
  ``secrets`` and optional ``producer`` / ``consumer`` tuning blocks.
* **Format B** (TOML) for the file-tailing family: a ``source`` list, one
  entry per tailed input.

Everything is validated eagerly by the loaders; any problem surfaces as a
single :class:`~logbridge.errors.ConfigError` carrying the field path and,
for YAML, the line and column of the offending node.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import (
    BaseModel,
    BeforeValidator,
    ByteSize,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import ConfigError
from .parameters import (
    REDACTED,
    ListValue,
    MapValue,
    ParameterValue,
    SecretString,
    StringValue,
    render_scalar,
)
from .units import parse_duration

# ---------------------------------------------------------------------------
# Derived unit types
# ---------------------------------------------------------------------------


def _to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if not isinstance(value, str):
        value = render_scalar(value)
    return parse_duration(value)


Duration = Annotated[timedelta, BeforeValidator(_to_duration)]

_BYTE_SIZE = TypeAdapter(ByteSize)


def _to_byte_size(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = value if isinstance(value, str) else render_scalar(value)
    try:
        return _BYTE_SIZE.validate_python(text)
    except ValidationError:
        raise ValueError(f"couldn't parse {text!r} into a known byte size unit") from None


HumanByteSize = Annotated[ByteSize, BeforeValidator(_to_byte_size)]


class Compression(str, Enum):
    """Compression codecs accepted for produced batches."""

    NONE = "none"
    GZIP = "gzip"
    SNAPPY = "snappy"
    LZ4 = "lz4"


# ---------------------------------------------------------------------------
# Format A
# ---------------------------------------------------------------------------


class ProducerParameters(BaseModel):
    """Producer-side tuning for connectors that write to a topic."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    linger: Duration | None = Field(
        default=None,
        description="How long to wait for a batch to fill, e.g. '1ms'",
    )
    compression: Compression | None = Field(
        default=None,
        description="Compression codec for produced batches",
    )
    batch_size: HumanByteSize | None = Field(
        default=None,
        alias="batch-size",
        description="Maximum batch size, e.g. '44.0 MB'",
    )

    @property
    def linger_ms(self) -> int | None:
        if self.linger is None:
            return None
        return self.linger // timedelta(milliseconds=1)


class ConsumerParameters(BaseModel):
    """Consumer-side tuning for connectors that read from a topic."""

    model_config = ConfigDict(frozen=True)

    partition: int | None = Field(
        default=None,
        description="Consume only this partition of the topic",
    )
    offset: int | None = Field(
        default=None,
        description="Absolute offset to start from when a partition is set",
    )


class ConnectorConfig(BaseModel):
    """Configuration of a single parameter-rich connector (Format A)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(description="Unique connector name")
    type: str = Field(description="Connector type tag, e.g. kafka-sink")
    topic: str = Field(description="Topic to read from or write to; defaults to the type")
    create_topic: bool = Field(
        default=True,
        alias="create-topic",
        description="Create the topic at start-up when it does not exist",
    )
    version: str = Field(description="Connector version")
    parameters: dict[str, ParameterValue] = Field(default_factory=dict)
    secrets: dict[str, SecretString] = Field(default_factory=dict)
    producer: ProducerParameters | None = None
    consumer: ConsumerParameters | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_topic(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("topic") is None and "type" in data:
            data = {**data, "topic": data["type"]}
        return data

    @field_validator("version", mode="before")
    @classmethod
    def _version_text(cls, value: Any) -> Any:
        # ``version: 0.1`` arrives as a float
        if value is None or isinstance(value, str):
            return value
        return render_scalar(value)

    @field_serializer("secrets", when_used="json")
    def _redact_secrets(self, secrets: dict[str, SecretString]) -> dict[str, str]:
        return {name: REDACTED for name in secrets}

    def parameter_value(self, name: str) -> StringValue | ListValue | MapValue:
        """Return a parameter in whatever shape it was written; an empty list when absent."""
        return self.parameters.get(name, ListValue())

    def parameter(self, name: str, default: str | None = None) -> str | None:
        """Return a scalar parameter's text, or *default* when absent."""
        value = self.parameters.get(name)
        if value is None:
            return default
        if not isinstance(value, StringValue):
            raise ConfigError(
                f"expected a single value, got {type(value).__name__}",
                path=f"parameters.{name}",
            )
        return value.text

    def secret(self, name: str) -> SecretString | None:
        return self.secrets.get(name)


# ---------------------------------------------------------------------------
# Format B
# ---------------------------------------------------------------------------


class TailSourceConfig(BaseModel):
    """One input of the file-tailing connector."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    filter_prefix: str | None = Field(
        default=None,
        description="Forward only lines starting with this prefix",
    )
    topic: str = Field(default="syslog", description="Topic lines are written to")
    create_topic: bool = True
    bind_url: str | None = Field(
        default=None,
        description="Network bind address (not supported)",
    )
    input_file: str | None = Field(
        default=None,
        description="File to tail; standard input is read when unset",
    )


class TailerConfig(BaseModel):
    """Configuration of the file-tailing connector (Format B)."""

    model_config = ConfigDict(frozen=True)

    source: list[TailSourceConfig]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

Loc = tuple[str | int, ...]


def _read_text(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {str(path)!r}: {exc.strerror or exc}") from exc


def _index_marks(
    node: yaml.Node,
    loc: Loc = (),
    marks: dict[Loc, yaml.Mark] | None = None,
) -> dict[Loc, yaml.Mark]:
    """Map every field path in a composed YAML document to its start mark."""
    if marks is None:
        marks = {}
    marks[loc] = node.start_mark
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                _index_marks(value_node, (*loc, key_node.value), marks)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            _index_marks(item, (*loc, index), marks)
    return marks


def _parse_yaml(text: str) -> tuple[Any, dict[Loc, yaml.Mark]]:
    loader = yaml.SafeLoader(text)
    try:
        node = loader.get_single_node()
        if node is None:
            return None, {}
        data = loader.construct_document(node)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        raise ConfigError(
            exc.problem or exc.context or "invalid YAML",
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}") from exc
    finally:
        loader.dispose()
    return data, _index_marks(node)


def _parse_toml(text: str) -> Any:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            getattr(exc, "msg", str(exc)),
            line=getattr(exc, "lineno", None),
            column=getattr(exc, "colno", None),
        ) from exc


def _error_message(error: Mapping[str, Any]) -> str:
    if error["type"] == "missing":
        return f"missing field `{error['loc'][-1]}`"
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return error["msg"]


def _validate(
    model: type[BaseModel],
    data: Any,
    marks: Mapping[Loc, yaml.Mark],
    prefix: Loc = (),
) -> Any:
    """Validate *data* against *model*, converting failures into ConfigError."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0]
        loc: Loc = (*prefix, *first["loc"])

        mark = None
        for end in range(len(loc), -1, -1):
            mark = marks.get(loc[:end])
            if mark is not None:
                break

        message = _error_message(first)
        if len(errors) > 1:
            message += f" (and {len(errors) - 1} more error{'s' if len(errors) > 2 else ''})"
        raise ConfigError(
            message,
            path=".".join(str(part) for part in loc) or ".",
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
        ) from None


def load_connector_config(path: str | Path) -> ConnectorConfig:
    """Load a Format A (YAML) connector config."""
    data, marks = _parse_yaml(_read_text(path))
    return _validate(ConnectorConfig, data, marks)


def load_connector_set(path: str | Path) -> dict[str, ConnectorConfig]:
    """Load a YAML mapping of connector name to Format A body.

    The ``name`` field of each body defaults to its key.
    """
    data, marks = _parse_yaml(_read_text(path))
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        mark = marks.get(())
        raise ConfigError(
            "expected a mapping of connector name to config",
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
        )

    configs: dict[str, ConnectorConfig] = {}
    for name, body in data.items():
        name = render_scalar(name)
        if isinstance(body, Mapping):
            body = {"name": name, **body}
        configs[name] = _validate(ConnectorConfig, body, marks, prefix=(name,))
    return configs


def load_tailer_config(path: str | Path) -> TailerConfig:
    """Load a Format B (TOML) file-tailing connector config."""
    data = _parse_toml(_read_text(path))
    return _validate(TailerConfig, data, {})
