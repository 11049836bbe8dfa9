"""Unit tests for alert threshold selection."""

from decimal import Decimal

from mono.alerts.budget import BUDGET_THRESHOLD_TYPE, is_same_alert, pick_threshold
from mono.alerts.large_transaction import is_large


class TestPickThreshold:
    """Highest of 0.8 / 1.0 reached by spent / limit."""

    def test_below_warning(self):
        assert pick_threshold(Decimal("790"), Decimal("1000")) is None

    def test_exactly_warning(self):
        assert pick_threshold(Decimal("800"), Decimal("1000")) == 0.8

    def test_between(self):
        assert pick_threshold(Decimal("999.99"), Decimal("1000")) == 0.8

    def test_exactly_exceeded(self):
        assert pick_threshold(Decimal("1000"), Decimal("1000")) == 1.0

    def test_far_over(self):
        assert pick_threshold(Decimal("5000"), Decimal("1000")) == 1.0

    def test_decimal_precision(self):
        # 0.1 + 0.7 in floats is 0.7999...; Decimal keeps it exact
        assert pick_threshold(Decimal("0.1") + Decimal("0.7"), Decimal("1")) == 0.8

    def test_zero_limit(self):
        assert pick_threshold(Decimal("10"), Decimal("0")) is None

    def test_custom_ratios(self):
        assert pick_threshold(Decimal("50"), Decimal("100"), warning_ratio=0.5) == 0.5


class TestIsSameAlert:
    def test_match(self):
        data = {"type": BUDGET_THRESHOLD_TYPE, "threshold": 0.8, "budgetId": 7}
        assert is_same_alert(data, 0.8, 7) is True

    def test_other_threshold(self):
        data = {"type": BUDGET_THRESHOLD_TYPE, "threshold": 0.8, "budgetId": 7}
        assert is_same_alert(data, 1.0, 7) is False

    def test_other_budget(self):
        data = {"type": BUDGET_THRESHOLD_TYPE, "threshold": 0.8, "budgetId": 7}
        assert is_same_alert(data, 0.8, 8) is False

    def test_other_type(self):
        assert is_same_alert({"type": "level_up", "level": 2}, 0.8, 7) is False

    def test_missing_data(self):
        assert is_same_alert(None, 0.8, 7) is False


class TestIsLarge:
    def test_below(self):
        assert is_large(Decimal("499.99"), 500.0) is False

    def test_at_threshold(self):
        assert is_large(Decimal("500"), 500.0) is True

    def test_float_input(self):
        assert is_large(1200.5, 500.0) is True
