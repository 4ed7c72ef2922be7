"""Core types for the temporalschema keyword.

This module defines the foundational types shared by every stage:
- Compile time: ConfigurationError, CompiledValue, CompiledStep
- Validation time: FieldContext, KeywordError, FieldResult, ValidationReport
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from jsonschema.exceptions import ValidationError


class ConfigurationError(ValueError):
    """The keyword configuration in a schema is malformed.

    Raised at compile time, never while validating data.

    Attributes:
        reason: The message without location
        location: JSON pointer to the offending part of the configuration
    """

    def __init__(self, message: str, location: str = ""):
        self.reason = message
        self.location = location
        if location:
            message = f"{message} (at {location})"
        super().__init__(message)


def format_pointer(segments: tuple[str | int, ...] | list[str | int]) -> str:
    """Render path segments as a JSON pointer (``/a/0/b``)."""
    return "".join(
        "/" + str(s).replace("~", "~0").replace("/", "~1") for s in segments
    )


@dataclass(frozen=True)
class FieldContext:
    """Where the field under validation lives.

    Attributes:
        document: The whole instance being validated
        data_path: Segments leading from the document root to the field
    """

    document: Any
    data_path: tuple[str | int, ...] = ()

    @property
    def pointer(self) -> str:
        return format_pointer(self.data_path)


@dataclass(frozen=True)
class CompiledStep:
    """A manipulation step with its arguments already normalised.

    Attributes:
        method: The manipulation name as written in the schema
        kwargs: Normalised keyword arguments for the implementation
        apply: The implementation, called as ``apply(value, **kwargs)``
    """

    method: str
    kwargs: tuple[tuple[str, Any], ...]
    apply: Callable[..., Any]

    def __call__(self, value: Any) -> Any:
        return self.apply(value, **dict(self.kwargs))


@dataclass(frozen=True)
class CompiledValue:
    """A value reference ready for resolution.

    Exactly one of ``now``, ``pointer`` or ``literal`` is the source.
    """

    now: bool = False
    pointer: str | None = None
    literal: str | None = None
    formats: tuple[str, ...] = ()
    steps: tuple[CompiledStep, ...] = ()


@dataclass(frozen=True)
class CompiledRule:
    """A validation rule bound to its predicate implementation."""

    test: str
    predicate: Callable[..., bool]
    values: tuple[CompiledValue, ...]
    options: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class KeywordError:
    """A single recorded validation failure.

    Attributes:
        keyword: Name of the keyword that failed ("temporal", "type", ...)
        data_path: JSON pointer to the failing value inside the document
        schema_path: URI fragment pointer to the failing keyword in the schema
        data: The failing value
        message: Human-readable explanation
    """

    keyword: str
    data_path: str
    schema_path: str
    data: Any
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "dataPath": self.data_path,
            "schemaPath": self.schema_path,
            "data": self.data,
            "message": self.message,
        }

    def to_validation_error(self, config: Any = None) -> ValidationError:
        """Convert to a jsonschema error so it can flow through ``iter_errors``."""
        return ValidationError(
            self.message,
            validator=self.keyword,
            path=_split_pointer(self.data_path),
            schema_path=_split_pointer(self.schema_path.partition("#")[2]),
            instance=self.data,
            validator_value=config,
        )

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> KeywordError:
        """Build from an error reported by a standard jsonschema keyword."""
        return cls(
            keyword=str(error.validator),
            data_path=format_pointer(list(error.absolute_path)),
            schema_path="#" + format_pointer(list(error.absolute_schema_path)),
            data=error.instance,
            message=error.message,
        )


def _split_pointer(pointer: str) -> list[str | int]:
    if not pointer:
        return []
    parts: list[str | int] = []
    for token in pointer.split("/")[1:]:
        token = token.replace("~1", "/").replace("~0", "~")
        parts.append(int(token) if token.isdigit() else token)
    return parts


@dataclass(frozen=True)
class FieldResult:
    """Outcome of running a compiled keyword against one field."""

    valid: bool
    error: KeywordError | None = None


@dataclass
class ValidationReport:
    """Result of validating a document.

    Attributes:
        valid: True if no keyword failed anywhere in the document
        errors: Every failure, standard keywords first
    """

    valid: bool
    errors: list[KeywordError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
