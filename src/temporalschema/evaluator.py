"""Evaluate compiled validation rules against a parsed field value."""

import logging
from dataclasses import dataclass

from pendulum import DateTime

from temporalschema.pipeline import apply_steps
from temporalschema.provider import DateProvider
from temporalschema.resolver import resolve_value
from temporalschema.types import CompiledRule, FieldContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleOutcome:
    """Pass/fail for one rule plus the comparison values it used."""

    passed: bool
    values: tuple[DateTime | None, ...]


def evaluate_rule(
    rule: CompiledRule,
    d: DateTime,
    context: FieldContext,
    provider: DateProvider,
) -> RuleOutcome:
    """Resolve, manipulate and compare.

    Every comparison value is resolved fresh for this call. A value that
    cannot be resolved fails the rule rather than raising, as does a
    granularity boundary outside the supported date range.
    """
    values = tuple(
        apply_steps(resolve_value(ref, context, provider), ref.steps)
        for ref in rule.values
    )
    if any(v is None for v in values):
        return RuleOutcome(passed=False, values=values)

    try:
        passed = bool(rule.predicate(d, *values, **dict(rule.options)))
    except (ValueError, OverflowError) as exc:
        logger.debug("Predicate %r failed on %s: %s", rule.test, d, exc)
        passed = False
    return RuleOutcome(passed=passed, values=values)


def failure_message(test: str, values: tuple[DateTime | None, ...], provider: DateProvider) -> str:
    rendered = ", ".join(provider.to_iso_string(v) for v in values)
    return f'"{test}" validation failed for value(s): {rendered}'
