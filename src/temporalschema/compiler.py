"""Keyword compiler.

Turns the value of the temporal keyword at one schema location into a
``CompiledKeyword``: an immutable, callable check that is built once and then
run against any number of documents.

Usage:
    check = compile_keyword({
        "validate": {"test": "isBefore", "value": {"$data": "1/finish"}},
    })
    result = check(document["start"], FieldContext(document, ("start",)))
    if not result.valid:
        print(result.error.message)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from temporalschema.config import DEFAULT_KEYWORD
from temporalschema.evaluator import evaluate_rule, failure_message
from temporalschema.operations import OperationCategory, OperationRegistry
from temporalschema.pipeline import compile_steps
from temporalschema.pointer import is_valid_pointer
from temporalschema.provider import DateProvider
from temporalschema.types import (
    CompiledRule,
    CompiledValue,
    ConfigurationError,
    FieldContext,
    FieldResult,
    KeywordError,
    format_pointer,
)

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"


def _load_keyword_schema() -> dict[str, Any]:
    with (_SCHEMAS_DIR / "keyword.schema.json").open() as fh:
        return json.load(fh)


_SHAPE_VALIDATOR = Draft202012Validator(_load_keyword_schema())


@dataclass(frozen=True)
class CompiledKeyword:
    """The compiled check for one schema location.

    Call it with the field's raw value and its ``FieldContext``. Holds no
    per-call state, so one instance may serve concurrent validations.

    Attributes:
        keyword: Keyword name reported in errors
        schema_path: URI fragment pointer to the keyword, reported in errors
        formats: Accepted formats for the field (empty means ISO-8601)
        rules: Rules in declared order
        enabled: False when the keyword value is ``false``
    """

    keyword: str
    schema_path: str
    formats: tuple[str, ...]
    rules: tuple[CompiledRule, ...]
    provider: DateProvider = field(compare=False, repr=False)
    enabled: bool = True
    config: Any = field(default=None, compare=False, repr=False)

    @property
    def format_message(self) -> str:
        message = "should be a valid date"
        if self.formats:
            message += " with format " + json.dumps(list(self.formats), separators=(",", ":"))
        return message

    def __call__(self, data: Any, context: FieldContext) -> FieldResult:
        """Validate one field value.

        The first failing check in declared order (format first, then each
        rule) is the one recorded; later rules do not run.
        """
        if not self.enabled or not isinstance(data, str):
            return FieldResult(valid=True)

        d = self.provider.parse(data, self.formats)
        if d is None:
            return self._fail(data, context, self.format_message)

        for rule in self.rules:
            outcome = evaluate_rule(rule, d, context, self.provider)
            if not outcome.passed:
                return self._fail(
                    data, context, failure_message(rule.test, outcome.values, self.provider)
                )
        return FieldResult(valid=True)

    def _fail(self, data: Any, context: FieldContext, message: str) -> FieldResult:
        return FieldResult(
            valid=False,
            error=KeywordError(
                keyword=self.keyword,
                data_path=context.pointer,
                schema_path=self.schema_path,
                data=data,
                message=message,
            ),
        )


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, list):
        return tuple(value)
    return (value,)


def _check_shape(config: Any) -> None:
    error = best_match(_SHAPE_VALIDATOR.iter_errors(config))
    if error is not None:
        raise ConfigurationError(
            f"Invalid keyword configuration: {error.message}",
            format_pointer(list(error.absolute_path)),
        )


def compile_value(reference: Any, location: str = "") -> CompiledValue:
    """Compile a value reference (a literal string or a reference object)."""
    if isinstance(reference, str):
        return CompiledValue(literal=reference)

    sources = [
        name
        for name, present in (
            ("now", reference.get("now") is True),
            ("$data", "$data" in reference),
            ("value", "value" in reference),
        )
        if present
    ]
    if len(sources) != 1:
        raise ConfigurationError(
            "Value reference must name exactly one of 'now', '$data' or 'value'",
            location,
        )

    pointer = reference.get("$data")
    if pointer is not None and not is_valid_pointer(pointer):
        raise ConfigurationError(f"Invalid $data pointer {pointer!r}", f"{location}/$data")

    return CompiledValue(
        now=sources[0] == "now",
        pointer=pointer,
        literal=reference.get("value"),
        formats=_as_tuple(reference.get("format")),
        steps=compile_steps(reference.get("manipulate"), f"{location}/manipulate"),
    )


def compile_rule(rule: dict[str, Any], location: str = "") -> CompiledRule:
    """Compile one ``{test, value, ...}`` rule against the operation table."""
    test = rule["test"]
    try:
        op_def = OperationRegistry.get(test, OperationCategory.PREDICATE)
    except ValueError as exc:
        raise ConfigurationError(str(exc), f"{location}/test") from exc

    raw_values = rule["value"]
    if isinstance(raw_values, list):
        values = tuple(
            compile_value(v, f"{location}/value/{i}") for i, v in enumerate(raw_values)
        )
    else:
        values = (compile_value(raw_values, f"{location}/value"),)

    if len(values) != op_def.arity:
        raise ConfigurationError(
            f"'{test}' compares against {op_def.arity} value(s), got {len(values)}",
            f"{location}/value",
        )

    options = {k: rule[k] for k in ("unit", "inclusivity") if k in rule}
    unsupported = sorted(set(options) - set(op_def.options))
    if unsupported:
        raise ConfigurationError(
            f"'{test}' does not accept option(s): {', '.join(unsupported)}",
            f"{location}/{unsupported[0]}",
        )
    try:
        prepared = op_def.prepare_options(options)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid options for '{test}': {exc}", location) from exc

    return CompiledRule(
        test=test,
        predicate=op_def.implementation,
        values=values,
        options=tuple(prepared.items()),
    )


def compile_keyword(
    config: Any,
    *,
    keyword: str = DEFAULT_KEYWORD,
    schema_path: str = "",
    provider: DateProvider | None = None,
) -> CompiledKeyword:
    """Compile the keyword value found at one schema location.

    Args:
        config: ``true``, ``false`` or the options object
        keyword: Keyword name to report in errors
        schema_path: Location of the keyword in the host schema
        provider: Date provider; a UTC provider if omitted

    Raises:
        ConfigurationError: If the configuration is malformed or names an
            unsupported operation. Locations in the error are relative to
            the keyword value.
    """
    _check_shape(config)
    provider = provider or DateProvider()

    if config is False:
        return CompiledKeyword(
            keyword=keyword,
            schema_path=schema_path,
            formats=(),
            rules=(),
            provider=provider,
            enabled=False,
            config=config,
        )

    options = config if isinstance(config, dict) else {}
    raw_rules = options.get("validate", [])
    if isinstance(raw_rules, list):
        rules = tuple(
            compile_rule(rule, f"/validate/{i}") for i, rule in enumerate(raw_rules)
        )
    else:
        rules = (compile_rule(raw_rules, "/validate"),)

    compiled = CompiledKeyword(
        keyword=keyword,
        schema_path=schema_path,
        formats=_as_tuple(options.get("format")),
        rules=rules,
        provider=provider,
        config=config,
    )
    logger.debug(
        "Compiled %s keyword at %s: %d format(s), %d rule(s)",
        keyword,
        schema_path or "#",
        len(compiled.formats),
        len(compiled.rules),
    )
    return compiled
