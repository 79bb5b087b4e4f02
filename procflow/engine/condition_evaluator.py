"""Condition Evaluator - Safe evaluation of action conditions and required fields"""
from typing import Any, Dict, List, Optional

from ..domain.models import ConditionGroup, Condition
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConditionEvaluator:
    """
    Evaluate action conditions safely

    Uses a closed set of declarative operators - no eval() or exec().
    """

    def evaluate(
        self,
        condition_group: Optional[ConditionGroup],
        data: Dict[str, Any]
    ) -> bool:
        """
        Evaluate a condition group

        Args:
            condition_group: Group of conditions with AND/OR logic
            data: Process data map

        Returns:
            True if conditions are met
        """
        if condition_group is None or not condition_group.conditions:
            return True  # No conditions = always true

        results = [self._evaluate_single(c, data) for c in condition_group.conditions]

        if condition_group.logic.upper() == "OR":
            return any(results)
        return all(results)

    def _evaluate_single(self, condition: Condition, data: Dict[str, Any]) -> bool:
        """Evaluate a single condition"""
        try:
            field_value = self.get_value(condition.field, data)
            return self._compare(field_value, condition.operator, condition.value)
        except Exception as e:
            logger.warning(f"Condition evaluation failed for {condition.field}: {e}")
            return False  # Fail closed

    def get_value(self, field_path: str, data: Dict[str, Any]) -> Any:
        """
        Get value from data using dot notation

        Example: "customer.address.city" -> data["customer"]["address"]["city"]
        Returns None when any segment is missing.
        """
        value: Any = data
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part, _MISSING)
                if value is _MISSING:
                    return None
            else:
                return None
        return value

    @staticmethod
    def is_empty(value: Any) -> bool:
        """Missing means None, empty string, empty list or empty dict"""
        return value is None or value == "" or value == [] or value == {}

    def find_missing_fields(self, keys: List[str], data: Dict[str, Any]) -> List[str]:
        """Return every key (dotted path) that is absent or empty, in declared order"""
        return [key for key in keys if self.is_empty(self.get_value(key, data))]

    def _compare(
        self,
        field_value: Any,
        operator: ConditionOperator,
        compare_value: Any
    ) -> bool:
        """Compare values using operator"""

        if operator == ConditionOperator.EQUALS:
            return field_value == compare_value

        elif operator == ConditionOperator.NOT_EQUALS:
            return field_value != compare_value

        elif operator == ConditionOperator.GREATER_THAN:
            return self._compare_numeric(field_value, compare_value, lambda a, b: a > b)

        elif operator == ConditionOperator.LESS_THAN:
            return self._compare_numeric(field_value, compare_value, lambda a, b: a < b)

        elif operator == ConditionOperator.CONTAINS:
            if field_value is None:
                return False
            if isinstance(field_value, (list, tuple, set)):
                return compare_value in field_value
            return str(compare_value) in str(field_value)

        elif operator == ConditionOperator.IN:
            if not isinstance(compare_value, list):
                compare_value = [compare_value]
            return field_value in compare_value

        elif operator == ConditionOperator.NOT_IN:
            if not isinstance(compare_value, list):
                compare_value = [compare_value]
            return field_value not in compare_value

        elif operator == ConditionOperator.EXISTS:
            return not self.is_empty(field_value)

        elif operator == ConditionOperator.NOT_EXISTS:
            return self.is_empty(field_value)

        return False

    def _compare_numeric(self, field_value: Any, compare_value: Any, comparator) -> bool:
        """Compare numeric values; missing or non-numeric values never match"""
        if field_value is None or compare_value is None or isinstance(field_value, bool):
            return False
        try:
            return comparator(float(field_value), float(compare_value))
        except (ValueError, TypeError):
            return False
