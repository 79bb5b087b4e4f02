"""Condition evaluator tests"""
import pytest

from procflow.domain.models import Condition, ConditionGroup
from procflow.domain.enums import ConditionOperator
from procflow.engine.condition_evaluator import ConditionEvaluator


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


def group(*conditions, logic="AND"):
    return ConditionGroup(
        logic=logic,
        conditions=[Condition(field=f, operator=op, value=v) for f, op, v in conditions]
    )


DATA = {
    "amount": 1500,
    "department": "IT",
    "tags": ["urgent", "hardware"],
    "vendor": {"name": "ACME", "address": {"city": "Oslo"}},
    "note": "",
}


class TestGetValue:

    def test_top_level(self, evaluator):
        assert evaluator.get_value("amount", DATA) == 1500

    def test_dotted_path(self, evaluator):
        assert evaluator.get_value("vendor.address.city", DATA) == "Oslo"

    def test_missing_segment(self, evaluator):
        assert evaluator.get_value("vendor.phone", DATA) is None
        assert evaluator.get_value("amount.currency", DATA) is None


class TestMissingFields:

    @pytest.mark.parametrize("value", [None, "", [], {}])
    def test_empty_values_count_as_missing(self, evaluator, value):
        assert evaluator.is_empty(value)

    @pytest.mark.parametrize("value", [0, False, "x", [0]])
    def test_falsy_but_present_values(self, evaluator, value):
        assert not evaluator.is_empty(value)

    def test_reports_every_missing_key_in_declared_order(self, evaluator):
        missing = evaluator.find_missing_fields(
            ["note", "amount", "vendor.phone", "vendor.name", "cost_center"], DATA
        )

        assert missing == ["note", "vendor.phone", "cost_center"]


class TestEvaluate:

    def test_no_condition_is_true(self, evaluator):
        assert evaluator.evaluate(None, DATA)
        assert evaluator.evaluate(ConditionGroup(), DATA)

    @pytest.mark.parametrize("field,operator,value,expected", [
        ("department", ConditionOperator.EQUALS, "IT", True),
        ("department", ConditionOperator.NOT_EQUALS, "IT", False),
        ("amount", ConditionOperator.GREATER_THAN, 1000, True),
        ("amount", ConditionOperator.LESS_THAN, 1000, False),
        ("tags", ConditionOperator.CONTAINS, "urgent", True),
        ("vendor.name", ConditionOperator.CONTAINS, "CM", True),
        ("department", ConditionOperator.IN, ["IT", "HR"], True),
        ("department", ConditionOperator.NOT_IN, ["IT", "HR"], False),
        ("vendor.address.city", ConditionOperator.EXISTS, None, True),
        ("note", ConditionOperator.EXISTS, None, False),
        ("note", ConditionOperator.NOT_EXISTS, None, True),
    ])
    def test_operators(self, evaluator, field, operator, value, expected):
        assert evaluator.evaluate(group((field, operator, value)), DATA) is expected

    def test_and_group(self, evaluator):
        condition = group(
            ("amount", ConditionOperator.GREATER_THAN, 1000),
            ("department", ConditionOperator.EQUALS, "HR"),
        )

        assert not evaluator.evaluate(condition, DATA)

    def test_or_group(self, evaluator):
        condition = group(
            ("amount", ConditionOperator.GREATER_THAN, 1000),
            ("department", ConditionOperator.EQUALS, "HR"),
            logic="OR",
        )

        assert evaluator.evaluate(condition, DATA)

    def test_numeric_comparison_fails_closed(self, evaluator):
        assert not evaluator.evaluate(group(("department", ConditionOperator.GREATER_THAN, 5)), DATA)
        assert not evaluator.evaluate(group(("missing", ConditionOperator.LESS_THAN, 5)), DATA)
