"""Built-in operations for the temporal keyword.

This module declares the allow-list of operations a schema may name.
Call ``register_all_operations()`` before compiling schemas.

Categories:
- Predicate: isBefore, isAfter, isSame, isSameOrBefore, isSameOrAfter, isBetween
- Manipulation: add, subtract, set, startOf, endOf, tz, utc
"""

import calendar
import math
from typing import Any

import pendulum
from pendulum import DateTime

from temporalschema.operations.functions import (
    OperationCategory,
    OperationDefinition,
    OperationRegistry,
)


def register_all_operations() -> None:
    """Register all built-in operations with the OperationRegistry."""
    _register_predicates()
    _register_manipulations()


# -----------------------------------------------------------------------------
# Units
# -----------------------------------------------------------------------------

# Short aliases are case-sensitive ("M" is month, "m" is minute)
_UNIT_ALIASES: dict[str, str] = {
    "y": "year", "year": "year", "years": "year",
    "Q": "quarter", "quarter": "quarter", "quarters": "quarter",
    "M": "month", "month": "month", "months": "month",
    "w": "week", "week": "week", "weeks": "week",
    "W": "isoWeek", "isoWeek": "isoWeek", "isoWeeks": "isoWeek",
    "d": "day", "day": "day", "days": "day",
    "h": "hour", "hour": "hour", "hours": "hour",
    "m": "minute", "minute": "minute", "minutes": "minute",
    "s": "second", "second": "second", "seconds": "second",
    "ms": "millisecond", "millisecond": "millisecond", "milliseconds": "millisecond",
    "decade": "decade", "decades": "decade",
    "century": "century", "centuries": "century",
}

_CALENDAR_UNITS = ("year", "quarter", "month", "week", "day")
_MICROSECONDS = {
    "hour": 3_600_000_000,
    "minute": 60_000_000,
    "second": 1_000_000,
    "millisecond": 1_000,
}

# Largest duration per pendulum keyword that can stay within years 1-9999
_MAX_AMOUNTS = {
    "years": 9_999,
    "months": 9_999 * 12,
    "weeks": 521_722,
    "days": 3_652_059,
    "hours": 3_652_059 * 24,
    "minutes": 3_652_059 * 1_440,
    "seconds": 3_652_059 * 86_400,
    "microseconds": 3_652_059 * 86_400 * 1_000_000,
}

# Units that start_of/end_of can snap to; "week" starts on Sunday, "isoWeek" on Monday
_BOUNDARY_UNITS = (
    "second", "minute", "hour", "day", "week", "isoWeek", "month", "quarter", "year", "decade", "century",
)

_SET_FIELDS: dict[str, tuple[str, int, int]] = {
    # canonical unit -> (field, min, max); month is 0-based, day is the weekday (0 = Sunday)
    "year": ("year", 1, 9999),
    "month": ("month", 0, 11),
    "date": ("day", 1, 31),
    "day": ("weekday", 0, 6),
    "hour": ("hour", 0, 23),
    "minute": ("minute", 0, 59),
    "second": ("second", 0, 59),
    "millisecond": ("microsecond", 0, 999),
}

_INCLUSIVITY = ("()", "[]", "[)", "(]")


def normalize_unit(unit: Any) -> str:
    """Return the canonical singular unit name for an alias.

    Raises:
        ValueError: If the unit is not recognised
    """
    if isinstance(unit, str):
        canonical = _UNIT_ALIASES.get(unit)
        if canonical is None and len(unit) > 2:
            canonical = _UNIT_ALIASES.get(unit.lower())
        if canonical is not None:
            return canonical
    raise ValueError(f"unknown unit {unit!r}")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _as_int(value: Any, what: str) -> int:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValueError(f"{what} must be an integer, got {value!r}")


# -----------------------------------------------------------------------------
# Boundaries
# -----------------------------------------------------------------------------


def _sunday_weekday(value: DateTime) -> int:
    """Day of the week counted from Sunday (0) to Saturday (6)."""
    return value.isoweekday() % 7


def _start_of(value: DateTime, unit: str) -> DateTime:
    if unit == "week":
        return value.start_of("day").subtract(days=_sunday_weekday(value))
    if unit == "isoWeek":
        return value.start_of("day").subtract(days=value.isoweekday() - 1)
    if unit == "quarter":
        return value.start_of("month").set(month=(value.month - 1) // 3 * 3 + 1)
    return value.start_of(unit)


def _end_of(value: DateTime, unit: str) -> DateTime:
    if unit in ("week", "isoWeek"):
        return _start_of(value, unit).add(days=6).end_of("day")
    if unit == "quarter":
        return _start_of(value, unit).add(months=2).end_of("month")
    return value.end_of(unit)


# -----------------------------------------------------------------------------
# Predicates
# -----------------------------------------------------------------------------


def _granularity(unit: str | None) -> str | None:
    # Millisecond granularity is the same as an exact comparison
    return None if unit in (None, "millisecond") else unit


def _is_before(d: DateTime, other: DateTime, unit: str | None = None) -> bool:
    unit = _granularity(unit)
    if unit is None:
        return d < other
    return _end_of(d, unit) < other


def _is_after(d: DateTime, other: DateTime, unit: str | None = None) -> bool:
    unit = _granularity(unit)
    if unit is None:
        return d > other
    return other < _start_of(d, unit)


def _is_same(d: DateTime, other: DateTime, unit: str | None = None) -> bool:
    unit = _granularity(unit)
    if unit is None:
        return d == other
    return _start_of(d, unit) <= other <= _end_of(d, unit)


def _is_same_or_before(d: DateTime, other: DateTime, unit: str | None = None) -> bool:
    return _is_same(d, other, unit) or _is_before(d, other, unit)


def _is_same_or_after(d: DateTime, other: DateTime, unit: str | None = None) -> bool:
    return _is_same(d, other, unit) or _is_after(d, other, unit)


def _is_between(
    d: DateTime,
    start: DateTime,
    end: DateTime,
    unit: str | None = None,
    inclusivity: str = "[]",
) -> bool:
    """Test ``start <= d <= end``; each bound may be made exclusive."""
    if inclusivity[0] == "(":
        lower = _is_after(d, start, unit)
    else:
        lower = not _is_before(d, start, unit)
    if inclusivity[1] == ")":
        upper = _is_before(d, end, unit)
    else:
        upper = not _is_after(d, end, unit)
    return lower and upper


def _prepare_comparison_options(options: dict[str, Any]) -> dict[str, Any]:
    prepared: dict[str, Any] = {}
    unit = options.get("unit")
    if unit is not None:
        canonical = normalize_unit(unit)
        if canonical != "millisecond" and canonical not in _BOUNDARY_UNITS:
            raise ValueError(f"unit {unit!r} cannot be used as a comparison granularity")
        prepared["unit"] = canonical
    return prepared


def _prepare_between_options(options: dict[str, Any]) -> dict[str, Any]:
    prepared = _prepare_comparison_options(options)
    inclusivity = options.get("inclusivity", "[]")
    if inclusivity not in _INCLUSIVITY:
        raise ValueError(
            f"inclusivity must be one of {', '.join(_INCLUSIVITY)}, got {inclusivity!r}"
        )
    prepared["inclusivity"] = inclusivity
    return prepared


def _register_predicates() -> None:
    comparisons = [
        ("isBefore", _is_before, "Field is strictly before the value"),
        ("isAfter", _is_after, "Field is strictly after the value"),
        ("isSame", _is_same, "Field is the same instant (or the same unit) as the value"),
        ("isSameOrBefore", _is_same_or_before, "Field is the same as or before the value"),
        ("isSameOrAfter", _is_same_or_after, "Field is the same as or after the value"),
    ]
    for name, implementation, description in comparisons:
        OperationRegistry.register(
            OperationDefinition(
                name=name,
                description=description,
                category=OperationCategory.PREDICATE,
                implementation=implementation,
                arity=1,
                options=("unit",),
                prepare_options=_prepare_comparison_options,
                examples=[f'{{"test": "{name}", "value": {{"$data": "1/finish"}}}}'],
            )
        )

    OperationRegistry.register(
        OperationDefinition(
            name="isBetween",
            description="Field lies between two values (inclusive unless stated)",
            category=OperationCategory.PREDICATE,
            implementation=_is_between,
            arity=2,
            options=("unit", "inclusivity"),
            prepare_options=_prepare_between_options,
            examples=[
                '{"test": "isBetween", "value": [{"$data": "1/start"}, {"$data": "1/finish"}]}',
                '{"test": "isBetween", "inclusivity": "()", "value": [{"now": true}, "2030-01-01"]}',
            ],
        )
    )


# -----------------------------------------------------------------------------
# Manipulations
# -----------------------------------------------------------------------------


def _prepare_duration(args: list[Any]) -> dict[str, Any]:
    """Accept ``[amount, unit]`` or ``[{unit: amount, ...}]``."""
    if len(args) == 1 and isinstance(args[0], dict):
        items = list(args[0].items())
    elif len(args) == 2:
        items = [(args[1], args[0])]
    else:
        raise ValueError("expects [amount, unit] or {unit: amount}")
    if not items:
        raise ValueError("expects at least one unit")

    kwargs: dict[str, int] = {}
    for unit, amount in items:
        if not _is_number(amount):
            raise ValueError(f"amount must be a number, got {amount!r}")
        canonical = normalize_unit(unit)
        if canonical not in _CALENDAR_UNITS and canonical not in _MICROSECONDS:
            raise ValueError(f"unit {unit!r} cannot be used in a duration")
        if canonical in _CALENDAR_UNITS:
            amount = _as_int(amount, f"amount of {canonical}s")
            if canonical == "quarter":
                key, amount = "months", amount * 3
            else:
                key = canonical + "s"
        elif isinstance(amount, int):
            key = canonical + "s" if canonical != "millisecond" else "microseconds"
            amount = amount * 1_000 if canonical == "millisecond" else amount
        else:
            # Fractional clock units are folded into microseconds
            key, amount = "microseconds", round(amount * _MICROSECONDS[canonical])
        kwargs[key] = kwargs.get(key, 0) + amount

    for key, amount in kwargs.items():
        if abs(amount) > _MAX_AMOUNTS[key]:
            raise ValueError(f"{amount} {key} is outside the supported date range")
    return kwargs


def _add(value: DateTime, **kwargs: int) -> DateTime:
    return value.add(**kwargs)


def _subtract(value: DateTime, **kwargs: int) -> DateTime:
    return value.subtract(**kwargs)


def _prepare_set(args: list[Any]) -> dict[str, Any]:
    """Accept ``[{field: value, ...}]`` or ``[field, value]``."""
    if len(args) == 1 and isinstance(args[0], dict):
        items = list(args[0].items())
    elif len(args) == 2:
        items = [(args[0], args[1])]
    else:
        raise ValueError("expects {field: value} or [field, value]")
    if not items:
        raise ValueError("expects at least one field")

    kwargs: dict[str, int] = {}
    for unit, raw in items:
        canonical = "date" if unit in ("date", "dates", "D") else normalize_unit(unit)
        if canonical not in _SET_FIELDS:
            raise ValueError(f"cannot set {unit!r}")
        name, low, high = _SET_FIELDS[canonical]
        number = _as_int(raw, canonical)
        if not low <= number <= high:
            raise ValueError(f"{canonical} must be between {low} and {high}, got {number}")
        if canonical == "month":
            number += 1
        elif canonical == "millisecond":
            number *= 1_000
        kwargs[name] = number
    return kwargs


def _set(value: DateTime, weekday: int | None = None, **kwargs: int) -> DateTime:
    if "day" not in kwargs and ("year" in kwargs or "month" in kwargs):
        # Changing month or year keeps the day of the month, clamped to the new month's length
        year = kwargs.get("year", value.year)
        month = kwargs.get("month", value.month)
        kwargs["day"] = min(value.day, calendar.monthrange(year, month)[1])
    if kwargs:
        value = value.set(**kwargs)
    if weekday is not None:
        # Stays within the current Sunday-based week
        value = value.add(days=weekday - _sunday_weekday(value))
    return value


def _prepare_boundary(args: list[Any]) -> dict[str, Any]:
    if len(args) != 1:
        raise ValueError("expects a single unit")
    canonical = normalize_unit(args[0])
    if canonical not in _BOUNDARY_UNITS:
        raise ValueError(f"unit {args[0]!r} is not supported here")
    return {"unit": canonical}


def _prepare_tz(args: list[Any]) -> dict[str, Any]:
    if len(args) != 1 or not isinstance(args[0], str):
        raise ValueError("expects a time zone name")
    try:
        pendulum.timezone(args[0])
    except (ValueError, KeyError) as exc:
        raise ValueError(f"unknown time zone {args[0]!r}") from exc
    return {"tz": args[0]}


def _in_timezone(value: DateTime, tz: str) -> DateTime:
    return value.in_timezone(tz)


def _prepare_utc(args: list[Any]) -> dict[str, Any]:
    if args not in ([], [True]):
        raise ValueError("takes no arguments")
    return {}


def _utc(value: DateTime) -> DateTime:
    return value.in_timezone("UTC")


def _register_manipulations() -> None:
    OperationRegistry.register(
        OperationDefinition(
            name="add",
            description="Adds a duration",
            category=OperationCategory.MANIPULATION,
            implementation=_add,
            prepare=_prepare_duration,
            examples=['{"add": [1, "days"]}', '{"add": {"hours": 1, "minutes": 30}}'],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="subtract",
            description="Subtracts a duration",
            category=OperationCategory.MANIPULATION,
            implementation=_subtract,
            prepare=_prepare_duration,
            examples=['{"subtract": [15, "seconds"]}'],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="set",
            description="Sets date/time fields (month is 0-based, day is the weekday, date is the day of the month)",
            category=OperationCategory.MANIPULATION,
            implementation=_set,
            prepare=_prepare_set,
            examples=[
                '{"set": {"hour": 17, "minute": 30}}',
                '{"set": {"month": 0, "date": 1}}',
                '{"set": ["day", 1]}',
            ],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="startOf",
            description="Moves to the start of a unit of time",
            category=OperationCategory.MANIPULATION,
            implementation=_start_of,
            prepare=_prepare_boundary,
            examples=['{"startOf": "month"}'],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="endOf",
            description="Moves to the end of a unit of time",
            category=OperationCategory.MANIPULATION,
            implementation=_end_of,
            prepare=_prepare_boundary,
            examples=['{"endOf": ["day"]}'],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="tz",
            description="Converts to another time zone (same instant)",
            category=OperationCategory.MANIPULATION,
            implementation=_in_timezone,
            prepare=_prepare_tz,
            examples=['{"tz": "America/New_York"}'],
        )
    )

    OperationRegistry.register(
        OperationDefinition(
            name="utc",
            description="Converts to UTC (same instant)",
            category=OperationCategory.MANIPULATION,
            implementation=_utc,
            prepare=_prepare_utc,
            examples=['{"utc": []}'],
        )
    )
