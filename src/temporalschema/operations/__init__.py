"""Operation table for the temporal keyword.

This module provides:
- OperationRegistry: Allow-list of predicate and manipulation names
- register_all_operations: Declares the built-in table
"""

from temporalschema.operations.builtins import normalize_unit, register_all_operations
from temporalschema.operations.functions import (
    OperationCategory,
    OperationDefinition,
    OperationRegistry,
)

__all__ = [
    "OperationCategory",
    "OperationDefinition",
    "OperationRegistry",
    "normalize_unit",
    "register_all_operations",
]
