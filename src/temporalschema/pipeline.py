"""Manipulation pipeline.

Compiles ``manipulate`` steps against the operation table and applies them,
in declared order, to a resolved value.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pendulum import DateTime

from temporalschema.operations import OperationCategory, OperationRegistry
from temporalschema.types import CompiledStep, ConfigurationError

logger = logging.getLogger(__name__)


def compile_step(step: Any, location: str = "") -> CompiledStep:
    """Validate one ``{method: args}`` step and bind its implementation.

    Raises:
        ConfigurationError: Unknown method, wrong shape, or bad arguments
    """
    if not isinstance(step, dict) or len(step) != 1:
        raise ConfigurationError(
            "Manipulation step must be an object with exactly one method", location
        )
    method, raw_args = next(iter(step.items()))

    try:
        op_def = OperationRegistry.get(method, OperationCategory.MANIPULATION)
    except ValueError as exc:
        raise ConfigurationError(str(exc), f"{location}/{method}") from exc

    args = list(raw_args) if isinstance(raw_args, list) else [raw_args]
    try:
        kwargs = op_def.prepare(args)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid arguments for '{method}': {exc}", f"{location}/{method}") from exc

    return CompiledStep(method=method, kwargs=tuple(kwargs.items()), apply=op_def.implementation)


def compile_steps(steps: Sequence[Any] | None, location: str = "") -> tuple[CompiledStep, ...]:
    if not steps:
        return ()
    return tuple(compile_step(step, f"{location}/{i}") for i, step in enumerate(steps))


def apply_steps(value: DateTime | None, steps: Sequence[CompiledStep]) -> DateTime | None:
    """Run the steps in order; each step's output feeds the next.

    Returns None if the input is None or a step rejects the value at
    evaluation time (e.g. setting date 31 in February, or leaving the
    supported date range).
    """
    for step in steps:
        if value is None:
            return None
        try:
            value = step(value)
        except (ValueError, OverflowError) as exc:
            logger.debug("Manipulation %r failed on %s: %s", step.method, value, exc)
            return None
    return value
