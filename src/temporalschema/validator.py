"""JSON Schema validation with the temporal keyword.

Standard keywords are validated by ``jsonschema``. Every occurrence of the
temporal keyword is compiled when the validator is built, and at validation
time the schema and instance are walked together so each compiled check
receives the document and the data path of the field it guards.

Usage:
    from temporalschema import TemporalValidator

    validator = TemporalValidator(schema)
    for error in validator.iter_errors(document):
        print(error.json_path, error.message)

    report = validator.report(document)
    report.to_dict()  # {"valid": False, "errors": [{"keyword": ..., ...}]}
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError, best_match
from jsonschema.validators import validator_for
from referencing import Registry
from referencing.jsonschema import DRAFT202012, specification_with

from temporalschema.compiler import CompiledKeyword, compile_keyword
from temporalschema.config import TemporalSettings
from temporalschema.operations import OperationRegistry, register_all_operations
from temporalschema.provider import DateProvider
from temporalschema.types import (
    ConfigurationError,
    FieldContext,
    KeywordError,
    ValidationReport,
    format_pointer,
)

logger = logging.getLogger(__name__)

# Keywords whose value is a map of name -> subschema
_SCHEMA_MAPS = ("properties", "patternProperties", "$defs", "definitions", "dependentSchemas")
# Keywords whose value is a list of subschemas
_SCHEMA_LISTS = ("allOf", "anyOf", "oneOf", "prefixItems")
# Keywords whose value is a single subschema (or, for items, possibly a list)
_SCHEMA_SINGLES = (
    "items",
    "additionalItems",
    "additionalProperties",
    "unevaluatedItems",
    "unevaluatedProperties",
    "not",
    "if",
    "then",
    "else",
    "contains",
    "propertyNames",
)
# Subschemas that only decide applicability; a keyword inside them never runs
_UNSUPPORTED_POSITIONS = (
    "not",
    "if",
    "propertyNames",
    "unevaluatedItems",
    "unevaluatedProperties",
)


class TemporalValidator:
    """Validates documents against a schema that may use the temporal keyword.

    Args:
        schema: The JSON Schema (dict or boolean)
        settings: Keyword name and time zone; read from the environment if omitted
        keyword: Overrides ``settings.keyword``
        registry: ``referencing`` registry for resolving remote ``$ref``s.
            Schemas in the registry are scanned for the keyword too.
        format_checker: Passed through to the jsonschema validator
        provider: Date provider; built from ``settings.timezone`` if omitted

    Raises:
        jsonschema.exceptions.SchemaError: The schema is not valid JSON Schema
        ConfigurationError: A temporal keyword in the schema is malformed
    """

    def __init__(
        self,
        schema: dict[str, Any] | bool,
        *,
        settings: TemporalSettings | None = None,
        keyword: str | None = None,
        registry: Registry | None = None,
        format_checker: Any = None,
        provider: DateProvider | None = None,
    ):
        if not OperationRegistry.list_all():
            register_all_operations()

        self.settings = settings or TemporalSettings.from_env()
        self.keyword = keyword or self.settings.keyword
        self.schema = schema
        self.provider = provider or DateProvider(self.settings.timezone)

        validator_class = validator_for(schema, default=Draft202012Validator)
        validator_class.check_schema(schema)
        kwargs: dict[str, Any] = {"format_checker": format_checker}
        if registry is not None:
            kwargs["registry"] = registry
        self._validator = validator_class(schema, **kwargs)

        dialect = schema.get("$schema", "") if isinstance(schema, dict) else ""
        self._specification = specification_with(dialect, default=DRAFT202012)
        self._registry = registry if registry is not None else Registry()
        self._root_resolver = self._registry.resolver_with_root(
            self._specification.create_resource(schema)
        )

        self._checks: dict[int, CompiledKeyword] = {}
        self._scan(schema, (), "")
        for uri in self._registry:
            self._scan(self._registry[uri].contents, (), uri)
        logger.debug(
            "Compiled %d %s keyword location(s)", len(self._checks), self.keyword
        )

    # -------------------------------------------------------------------------
    # Compile time
    # -------------------------------------------------------------------------

    def _scan(
        self,
        schema: Any,
        path: tuple[str | int, ...],
        base_uri: str,
        unsupported: str | None = None,
    ) -> None:
        """Compile every keyword occurrence reachable through subschema positions.

        ``unsupported`` names the enclosing position (e.g. ``not``) when the
        keyword would never be evaluated there; finding it is an error.
        """
        if not isinstance(schema, dict) or id(schema) in self._checks:
            return

        if self.keyword in schema:
            schema_path = base_uri + "#" + format_pointer(path + (self.keyword,))
            if unsupported is not None:
                raise ConfigurationError(
                    f"'{self.keyword}' is not supported under '{unsupported}'", schema_path
                )
            try:
                self._checks[id(schema)] = compile_keyword(
                    schema[self.keyword],
                    keyword=self.keyword,
                    schema_path=schema_path,
                    provider=self.provider,
                )
            except ConfigurationError as exc:
                raise ConfigurationError(exc.reason, schema_path + exc.location) from exc

        for key in _SCHEMA_MAPS:
            subschemas = schema.get(key)
            if isinstance(subschemas, dict):
                for name, subschema in subschemas.items():
                    self._scan(subschema, path + (key, name), base_uri, unsupported)
        for key in _SCHEMA_LISTS:
            subschemas = schema.get(key)
            if isinstance(subschemas, list):
                for index, subschema in enumerate(subschemas):
                    self._scan(subschema, path + (key, index), base_uri, unsupported)
        for key in _SCHEMA_SINGLES:
            subschema = schema.get(key)
            position = key if key in _UNSUPPORTED_POSITIONS else unsupported
            if isinstance(subschema, list):
                for index, item in enumerate(subschema):
                    self._scan(item, path + (key, index), base_uri, position)
            else:
                self._scan(subschema, path + (key,), base_uri, position)

    # -------------------------------------------------------------------------
    # Validation time
    # -------------------------------------------------------------------------

    def _applies(self, schema: Any, instance: Any) -> bool:
        return self._validator.evolve(schema=schema).is_valid(instance)

    def _visit(
        self,
        schema: Any,
        instance: Any,
        data_path: tuple[str | int, ...],
        resolver: Any,
        document: Any,
        found: list[tuple[KeywordError, CompiledKeyword]],
        seen: set[tuple[int, tuple[str | int, ...]]],
    ) -> None:
        if not isinstance(schema, dict):
            return
        marker = (id(schema), data_path)
        if marker in seen:
            return
        seen.add(marker)

        check = self._checks.get(id(schema))
        if check is not None:
            result = check(instance, FieldContext(document, data_path))
            if result.error is not None:
                found.append((result.error, check))

        resolver = resolver.in_subresource(self._specification.create_resource(schema))

        def visit(subschema: Any, value: Any = instance, path: tuple[str | int, ...] = data_path) -> None:
            self._visit(subschema, value, path, resolver, document, found, seen)

        ref = schema.get("$ref")
        if isinstance(ref, str):
            resolved = resolver.lookup(ref)
            self._visit(
                resolved.contents, instance, data_path, resolved.resolver, document, found, seen
            )

        for subschema in schema.get("allOf", ()):
            visit(subschema)
        for key in ("anyOf", "oneOf"):
            for subschema in schema.get(key, ()):
                if self._applies(subschema, instance):
                    visit(subschema)
        if "if" in schema:
            branch = "then" if self._applies(schema["if"], instance) else "else"
            if branch in schema:
                visit(schema[branch])

        if isinstance(instance, dict):
            self._visit_object(schema, instance, data_path, visit)
        elif isinstance(instance, list):
            self._visit_array(schema, instance, data_path, visit)
            if "contains" in schema:
                self._visit_contains(
                    schema["contains"], instance, data_path, resolver, document, found, seen
                )

    def _visit_object(self, schema, instance, data_path, visit) -> None:
        properties = schema.get("properties", {})
        patterns = schema.get("patternProperties", {})
        additional = schema.get("additionalProperties")
        for name, value in instance.items():
            path = data_path + (name,)
            matched = False
            if name in properties:
                visit(properties[name], value, path)
                matched = True
            for pattern, subschema in patterns.items():
                if re.search(pattern, name):
                    visit(subschema, value, path)
                    matched = True
            if not matched and additional is not None:
                visit(additional, value, path)

        for name, subschema in schema.get("dependentSchemas", {}).items():
            if name in instance:
                visit(subschema)

    def _visit_array(self, schema, instance, data_path, visit) -> None:
        prefix = schema.get("prefixItems") or []
        items = schema.get("items")
        if isinstance(items, list):
            # Pre-2020 tuple form
            prefix, items = items, schema.get("additionalItems")
        for index, item in enumerate(instance):
            subschema = prefix[index] if index < len(prefix) else items
            if subschema is not None:
                visit(subschema, item, data_path + (index,))

    def _visit_contains(self, subschema, instance, data_path, resolver, document, found, seen) -> None:
        """Record errors only when no matching item passes the keyword.

        Items that fail the rest of ``contains`` are not candidates; the
        host validator already reports an array with no candidates at all.
        """
        pending: list[tuple[KeywordError, CompiledKeyword]] = []
        for index, item in enumerate(instance):
            if not self._applies(subschema, item):
                continue
            errors: list[tuple[KeywordError, CompiledKeyword]] = []
            self._visit(subschema, item, data_path + (index,), resolver, document, errors, set(seen))
            if not errors:
                return
            pending.extend(errors)
        found.extend(pending)

    def _keyword_errors(self, instance: Any) -> list[tuple[KeywordError, CompiledKeyword]]:
        found: list[tuple[KeywordError, CompiledKeyword]] = []
        self._visit(self.schema, instance, (), self._root_resolver, instance, found, set())
        return found

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def iter_errors(self, instance: Any) -> Iterator[ValidationError]:
        """Yield standard keyword errors, then one error per failing temporal field."""
        yield from self._validator.iter_errors(instance)
        for error, check in self._keyword_errors(instance):
            yield error.to_validation_error(check.config)

    def is_valid(self, instance: Any) -> bool:
        return next(self.iter_errors(instance), None) is None

    def validate(self, instance: Any) -> None:
        """Raise the most relevant error, like ``jsonschema.validate``.

        Raises:
            jsonschema.exceptions.ValidationError: If the instance is invalid
        """
        error = best_match(self.iter_errors(instance))
        if error is not None:
            raise error

    def report(self, instance: Any) -> ValidationReport:
        """Collect every error in the ``{keyword, dataPath, ...}`` shape."""
        errors = [
            KeywordError.from_validation_error(e)
            for e in self._validator.iter_errors(instance)
        ]
        errors.extend(error for error, _ in self._keyword_errors(instance))
        return ValidationReport(valid=not errors, errors=errors)
