"""Tests for value resolution, the manipulation pipeline and rule evaluation."""

import pendulum
import pytest

from temporalschema.compiler import compile_rule, compile_value
from temporalschema.evaluator import evaluate_rule, failure_message
from temporalschema.pipeline import apply_steps, compile_step, compile_steps
from temporalschema.provider import DateProvider
from temporalschema.resolver import resolve_value
from temporalschema.types import ConfigurationError, FieldContext

from conftest import BASE, iso


# =============================================================================
# Manipulation Pipeline
# =============================================================================


class TestCompileStep:
    def test_binds_implementation(self):
        step = compile_step({"add": [1, "days"]})
        assert step.method == "add"
        assert dict(step.kwargs) == {"days": 1}
        assert step(BASE) == BASE.add(days=1)

    def test_single_argument_is_wrapped(self):
        step = compile_step({"startOf": "day"})
        assert dict(step.kwargs) == {"unit": "day"}

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="Unsupported manipulation 'shift'") as exc_info:
            compile_step({"shift": [1, "days"]}, "/manipulate/0")
        assert exc_info.value.location == "/manipulate/0/shift"

    def test_predicate_is_not_a_manipulation(self):
        with pytest.raises(ConfigurationError):
            compile_step({"isBefore": []})

    def test_bad_arguments(self):
        with pytest.raises(ConfigurationError, match="Invalid arguments for 'add'"):
            compile_step({"add": [1, "fortnights"]})

    def test_amount_beyond_date_range(self):
        with pytest.raises(ConfigurationError, match="outside the supported date range") as exc_info:
            compile_step({"subtract": [10**10, "days"]}, "/manipulate/0")
        assert exc_info.value.location == "/manipulate/0/subtract"

    @pytest.mark.parametrize("step", [{}, {"add": [1, "day"], "subtract": [1, "day"]}, ["add"]])
    def test_malformed_step(self, step):
        with pytest.raises(ConfigurationError, match="exactly one method"):
            compile_step(step)

    def test_locations_are_indexed(self):
        with pytest.raises(ConfigurationError) as exc_info:
            compile_steps([{"add": [1, "day"]}, {"nope": 1}], "/manipulate")
        assert exc_info.value.location == "/manipulate/1/nope"


class TestApplySteps:
    def test_order_matters(self):
        late = pendulum.datetime(2024, 3, 10, 23, 30, tz="UTC")
        add_then_snap = compile_steps([{"add": [1, "hour"]}, {"startOf": "day"}])
        snap_then_add = compile_steps([{"startOf": "day"}, {"add": [1, "hour"]}])
        assert apply_steps(late, add_then_snap) == pendulum.datetime(2024, 3, 11, tz="UTC")
        assert apply_steps(late, snap_then_add) == pendulum.datetime(2024, 3, 10, 1, tz="UTC")

    def test_add_then_set(self):
        steps = compile_steps([{"add": [1, "days"]}, {"set": {"hour": 17, "minute": 30}}])
        assert apply_steps(BASE, steps) == pendulum.datetime(2024, 3, 11, 17, 30, tz="UTC")

    def test_input_is_not_mutated(self):
        original = BASE
        apply_steps(original, compile_steps([{"add": [5, "days"]}]))
        assert original == pendulum.datetime(2024, 3, 10, 9, 15, tz="UTC")

    def test_deterministic(self):
        steps = compile_steps([{"subtract": [1, "M"]}, {"endOf": "month"}])
        assert apply_steps(BASE, steps) == apply_steps(BASE, steps)

    def test_no_steps(self):
        assert apply_steps(BASE, ()) is BASE

    def test_none_propagates(self):
        assert apply_steps(None, compile_steps([{"add": [1, "day"]}])) is None

    def test_evaluation_time_failure_yields_none(self):
        feb = pendulum.datetime(2024, 2, 10, tz="UTC")
        assert apply_steps(feb, compile_steps([{"set": {"date": 31}}])) is None

    def test_leaving_date_range_yields_none(self):
        end_of_range = pendulum.datetime(9999, 12, 31, 12, tz="UTC")
        assert apply_steps(end_of_range, compile_steps([{"add": [1, "days"]}])) is None
        start_of_range = pendulum.datetime(1, 1, 1, tz="UTC")
        assert apply_steps(start_of_range, compile_steps([{"subtract": [1, "ms"]}])) is None


# =============================================================================
# Value Resolution
# =============================================================================


class TestResolveValue:
    def test_now_read_at_call_time(self):
        ticks = iter([BASE, BASE.add(hours=1)])
        provider = DateProvider("UTC", clock=lambda: next(ticks))
        ref = compile_value({"now": True})
        ctx = FieldContext({}, ())
        assert resolve_value(ref, ctx, provider) == BASE
        assert resolve_value(ref, ctx, provider) == BASE.add(hours=1)

    def test_data_pointer(self, provider):
        document = {"start": iso(BASE), "finish": "2024-03-11T00:00:00Z"}
        ref = compile_value({"$data": "1/finish"})
        resolved = resolve_value(ref, FieldContext(document, ("start",)), provider)
        assert resolved == pendulum.datetime(2024, 3, 11, tz="UTC")

    def test_data_pointer_with_format(self, provider):
        document = {"start": "x", "finish": "03/11/2024"}
        ref = compile_value({"$data": "1/finish", "format": "MM/DD/YYYY"})
        resolved = resolve_value(ref, FieldContext(document, ("start",)), provider)
        assert resolved == pendulum.datetime(2024, 3, 11, tz="UTC")

    def test_absent_target(self, provider):
        ref = compile_value({"$data": "1/finish"})
        assert resolve_value(ref, FieldContext({"start": "x"}, ("start",)), provider) is None

    def test_unparseable_target(self, provider):
        ref = compile_value({"$data": "1/finish"})
        ctx = FieldContext({"start": "x", "finish": "soon"}, ("start",))
        assert resolve_value(ref, ctx, provider) is None

    def test_literal_string(self, provider):
        ref = compile_value("2024-03-10T09:15:00Z")
        assert resolve_value(ref, FieldContext({}, ()), provider) == BASE

    def test_literal_object(self, provider):
        ref = compile_value({"value": "10/03/2024", "format": ["DD/MM/YYYY"]})
        assert resolve_value(ref, FieldContext({}, ()), provider) == pendulum.datetime(2024, 3, 10, tz="UTC")

    def test_document_changes_between_calls(self, provider):
        ref = compile_value({"$data": "1/finish"})
        first = resolve_value(ref, FieldContext({"finish": "2024-01-01"}, ("start",)), provider)
        second = resolve_value(ref, FieldContext({"finish": "2025-01-01"}, ("start",)), provider)
        assert first.year == 2024
        assert second.year == 2025


class TestCompileValue:
    @pytest.mark.parametrize(
        "reference",
        [
            {},
            {"now": False},
            {"now": True, "$data": "1/finish"},
            {"$data": "1/a", "value": "2024-01-01"},
        ],
    )
    def test_exactly_one_source(self, reference):
        with pytest.raises(ConfigurationError, match="exactly one of"):
            compile_value(reference, "/value")

    def test_bad_pointer(self):
        with pytest.raises(ConfigurationError, match="Invalid \\$data pointer") as exc_info:
            compile_value({"$data": "finish"}, "/value")
        assert exc_info.value.location == "/value/$data"

    def test_now_false_with_pointer_is_fine(self):
        ref = compile_value({"now": False, "$data": "1/a"})
        assert not ref.now
        assert ref.pointer == "1/a"


# =============================================================================
# Rule Evaluation
# =============================================================================


class TestEvaluateRule:
    def test_pass(self, provider):
        rule = compile_rule({"test": "isBefore", "value": {"$data": "1/finish"}})
        document = {"start": iso(BASE), "finish": iso(BASE.add(microseconds=1000))}
        outcome = evaluate_rule(rule, BASE, FieldContext(document, ("start",)), provider)
        assert outcome.passed
        assert outcome.values == (BASE.add(microseconds=1000),)

    def test_fail(self, provider):
        rule = compile_rule({"test": "isBefore", "value": {"now": True}})
        outcome = evaluate_rule(rule, BASE.add(days=1), FieldContext({}, ()), provider)
        assert not outcome.passed

    def test_values_passed_in_declared_order(self, provider):
        rule = compile_rule({
            "test": "isBetween",
            "value": [
                {"now": True, "manipulate": [{"subtract": [1, "hour"]}]},
                {"now": True, "manipulate": [{"add": [1, "hour"]}]},
            ],
        })
        outcome = evaluate_rule(rule, BASE, FieldContext({}, ()), provider)
        assert outcome.passed
        assert outcome.values == (BASE.subtract(hours=1), BASE.add(hours=1))

    def test_unresolved_value_fails_without_raising(self, provider):
        rule = compile_rule({"test": "isBefore", "value": {"$data": "1/missing"}})
        outcome = evaluate_rule(rule, BASE, FieldContext({"start": "x"}, ("start",)), provider)
        assert not outcome.passed
        assert outcome.values == (None,)

    def test_boundary_outside_date_range_fails_without_raising(self, provider):
        rule = compile_rule({"test": "isSame", "unit": "century", "value": "9999-06-01T00:00:00Z"})
        field = pendulum.datetime(9999, 12, 31, tz="UTC")
        outcome = evaluate_rule(rule, field, FieldContext({}, ()), provider)
        assert not outcome.passed

    def test_options_are_forwarded(self, provider):
        rule = compile_rule({"test": "isSame", "unit": "day", "value": "2024-03-10T23:00:00Z"})
        outcome = evaluate_rule(rule, BASE, FieldContext({}, ()), provider)
        assert outcome.passed

    def test_failure_message(self, provider):
        values = (pendulum.datetime(2010, 10, 31, tz="UTC"), None)
        assert failure_message("isBetween", values, provider) == (
            '"isBetween" validation failed for value(s): '
            "2010-10-31T00:00:00.000Z, Invalid date"
        )
