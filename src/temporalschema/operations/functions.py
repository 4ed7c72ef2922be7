"""Operation registry for the temporal keyword.

Operations are the names a schema may use as a rule ``test`` (predicates)
or as a ``manipulate`` step (manipulations). Each is registered with a typed
implementation and a compile-time argument check, so an unsupported name or
argument is caught when the schema is compiled.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class OperationCategory(Enum):
    """What an operation may be used for in a schema."""

    PREDICATE = "predicate"
    MANIPULATION = "manipulation"


def _no_args(args: list[Any]) -> dict[str, Any]:
    if args:
        raise ValueError("takes no arguments")
    return {}


def _no_options(options: dict[str, Any]) -> dict[str, Any]:
    return dict(options)


@dataclass
class OperationDefinition:
    """Complete definition of a temporal operation.

    Attributes:
        name: Operation name as used in schemas (e.g. "isBefore", "add")
        description: Human-readable description
        category: PREDICATE or MANIPULATION
        implementation: The callable. Predicates are called as
            ``fn(d, *values, **options)``; manipulations as ``fn(value, **kwargs)``
        prepare: Manipulations only. Validates the positional arguments from
            the schema and returns the kwargs for ``implementation``. Raises
            ValueError on bad arguments.
        arity: Predicates only. Number of comparison values required.
        options: Predicates only. Rule options the predicate accepts.
        prepare_options: Predicates only. Validates and normalises the rule
            options; raises ValueError on bad values.
        examples: Example schema snippets
    """

    name: str
    description: str
    category: OperationCategory
    implementation: Callable[..., Any]
    prepare: Callable[[list[Any]], dict[str, Any]] = _no_args
    arity: int = 1
    options: tuple[str, ...] = ()
    prepare_options: Callable[[dict[str, Any]], dict[str, Any]] = _no_options
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "examples": self.examples,
        }
        if self.category == OperationCategory.PREDICATE:
            result["arity"] = self.arity
            result["options"] = list(self.options)
        return result


class OperationRegistry:
    """Registry for temporal operations.

    The registry is the allow-list: a schema may only name operations that
    are registered here, in the right category.

    Example:
        OperationRegistry.register(OperationDefinition(
            name="isBefore",
            category=OperationCategory.PREDICATE,
            ...
        ))

        op = OperationRegistry.get("isBefore", OperationCategory.PREDICATE)
        op.implementation(start, finish)
    """

    _operations: dict[str, OperationDefinition] = {}

    @classmethod
    def register(cls, op_def: OperationDefinition) -> None:
        """Register an operation definition, replacing any of the same name."""
        cls._operations[op_def.name] = op_def

    @classmethod
    def get(
        cls,
        name: str,
        category: OperationCategory | None = None,
    ) -> OperationDefinition:
        """Get an operation by name.

        Args:
            name: Operation name
            category: If given, the operation must belong to this category

        Raises:
            ValueError: If the operation is unknown or in another category
        """
        op_def = cls._operations.get(name)
        if op_def is None or (category is not None and op_def.category != category):
            kind = category.value if category else "operation"
            raise ValueError(
                f"Unsupported {kind} '{name}'. "
                "Available: " + ", ".join(o.name for o in cls.list_all(category))
            )
        return op_def

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._operations

    @classmethod
    def list_all(cls, category: OperationCategory | None = None) -> list[OperationDefinition]:
        """List registered operations, optionally filtered by category."""
        ops = sorted(cls._operations.values(), key=lambda o: o.name)
        if category is None:
            return ops
        return [o for o in ops if o.category == category]

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export the full table grouped by category."""
        by_category: dict[str, list[dict[str, Any]]] = {}
        for op_def in cls.list_all():
            by_category.setdefault(op_def.category.value, []).append(op_def.to_dict())
        return {
            "operations": {o.name: o.to_dict() for o in cls.list_all()},
            "byCategory": by_category,
        }

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._operations.clear()
