"""Resolve value references to concrete instants."""

import logging

from pendulum import DateTime

from temporalschema.pointer import MISSING, resolve_pointer
from temporalschema.provider import DateProvider
from temporalschema.types import CompiledValue, FieldContext

logger = logging.getLogger(__name__)


def resolve_value(
    reference: CompiledValue,
    context: FieldContext,
    provider: DateProvider,
) -> DateTime | None:
    """Resolve a reference against the document, before manipulation.

    Returns None when the reference cannot be resolved: the pointer has no
    target, or the target does not parse as a date.
    """
    if reference.now:
        return provider.now()

    if reference.pointer is not None:
        raw = resolve_pointer(context.document, context.data_path, reference.pointer)
        if raw is MISSING:
            logger.debug(
                "$data %r has no target from %s",
                reference.pointer,
                context.pointer or "/",
            )
            return None
    else:
        raw = reference.literal

    return provider.parse(raw, reference.formats)
