"""Cross-field date/time validation for JSON Schema.

This package adds a ``temporal`` keyword to JSON Schema. A field carrying it
must parse as a date, and may be compared with other fields of the same
document after date arithmetic:

    {
        "type": "object",
        "properties": {
            "start": {"type": "string", "temporal": true},
            "finish": {
                "type": "string",
                "temporal": {
                    "validate": {
                        "test": "isAfter",
                        "value": {"$data": "1/start", "manipulate": [{"add": [30, "minutes"]}]}
                    }
                }
            }
        }
    }

Usage:
    from temporalschema import TemporalValidator

    validator = TemporalValidator(schema)
    validator.is_valid(document)
"""

from temporalschema.compiler import CompiledKeyword, compile_keyword
from temporalschema.config import TemporalSettings
from temporalschema.loader import load_document, load_schema
from temporalschema.operations import (
    OperationCategory,
    OperationDefinition,
    OperationRegistry,
    register_all_operations,
)
from temporalschema.provider import DateProvider
from temporalschema.types import (
    ConfigurationError,
    FieldContext,
    FieldResult,
    KeywordError,
    ValidationReport,
)
from temporalschema.validator import TemporalValidator

__all__ = [
    # Types
    "ConfigurationError",
    "FieldContext",
    "FieldResult",
    "KeywordError",
    "ValidationReport",
    # Operations
    "OperationCategory",
    "OperationDefinition",
    "OperationRegistry",
    "register_all_operations",
    # Compiler
    "CompiledKeyword",
    "compile_keyword",
    # Host integration
    "DateProvider",
    "TemporalSettings",
    "TemporalValidator",
    # Loading
    "load_document",
    "load_schema",
]
