"""
Tests for issue flagging and exception synthesis.
"""

import pytest
from app.schemas.invoice import InvoiceStatus
from app.schemas.output import ExceptionType, Severity
from app.schemas.scenario import Scenario
from app.agents.issue_policy import (
    classify_severity,
    evaluate_issues,
    initial_status,
    should_flag,
)


def test_quantity_threshold():
    """Test quantity variance is flagged strictly above 5%."""
    assert not should_flag(Scenario.QUANTITY_VARIANCE, 4.9)
    assert not should_flag(Scenario.QUANTITY_VARIANCE, 5.0)
    assert should_flag(Scenario.QUANTITY_VARIANCE, 5.1)


def test_price_threshold():
    """Test price variance is flagged strictly above 3%."""
    assert not should_flag(Scenario.PRICE_VARIANCE, 2.0)
    assert not should_flag(Scenario.PRICE_VARIANCE, 3.0)
    assert should_flag(Scenario.PRICE_VARIANCE, 3.2)


def test_bundled_always_flagged():
    assert should_flag(Scenario.BUNDLED_ITEMS, 0.0)


@pytest.mark.parametrize("scenario", [
    Scenario.PERFECT,
    Scenario.DESCRIPTION_MISMATCH,
    Scenario.SPLIT_BILLING,
    Scenario.SUBSTITUTE_ITEMS,
    Scenario.PARTIAL_DELIVERY,
])
def test_other_scenarios_not_flagged(scenario):
    has_issues, exception = evaluate_issues(scenario, 0.0)
    assert has_issues is False
    assert exception is None


def test_thresholds_are_scenario_specific():
    """A 4% variance trips the price threshold but not the quantity one."""
    assert should_flag(Scenario.PRICE_VARIANCE, 4.0)
    assert not should_flag(Scenario.QUANTITY_VARIANCE, 4.0)


def test_severity():
    assert classify_severity(8.0) == Severity.MEDIUM
    assert classify_severity(8.01) == Severity.HIGH
    assert classify_severity(0.0) == Severity.MEDIUM


def test_quantity_exception_record():
    has_issues, exception = evaluate_issues(Scenario.QUANTITY_VARIANCE, 9.5)

    assert has_issues
    assert exception.type == ExceptionType.QUANTITY_MISMATCH
    assert exception.severity == Severity.HIGH
    assert "9.50%" in exception.description
    assert exception.suggested_action
    assert 0.0 <= exception.agent_confidence <= 1.0
    assert exception.invoice_id is None


def test_price_exception_record():
    has_issues, exception = evaluate_issues(Scenario.PRICE_VARIANCE, 4.0)

    assert has_issues
    assert exception.type == ExceptionType.PRICE_VARIANCE
    assert exception.severity == Severity.MEDIUM


def test_bundled_exception_is_billing_discrepancy():
    has_issues, exception = evaluate_issues(Scenario.BUNDLED_ITEMS, 0.0)

    assert has_issues
    assert exception.type == ExceptionType.BILLING_DISCREPANCY
    assert exception.severity == Severity.MEDIUM


def test_duplicate_signal_flags_clean_invoice():
    has_issues, exception = evaluate_issues(Scenario.PERFECT, 0.0, duplicate_suspected=True)

    assert has_issues
    assert exception.type == ExceptionType.DUPLICATE_INVOICE


def test_duplicate_signal_keeps_variance_type():
    """A variance that trips its own threshold keeps its exception type."""
    _, exception = evaluate_issues(Scenario.QUANTITY_VARIANCE, 6.0, duplicate_suspected=True)
    assert exception.type == ExceptionType.QUANTITY_MISMATCH

    _, exception = evaluate_issues(Scenario.QUANTITY_VARIANCE, 1.0, duplicate_suspected=True)
    assert exception.type == ExceptionType.DUPLICATE_INVOICE


def test_decision_is_deterministic():
    first = evaluate_issues(Scenario.PRICE_VARIANCE, 5.5)
    second = evaluate_issues(Scenario.PRICE_VARIANCE, 5.5)

    assert first[0] == second[0]
    assert first[1].type == second[1].type
    assert first[1].severity == second[1].severity
    assert first[1].agent_confidence == second[1].agent_confidence


def test_initial_status():
    assert initial_status(True) == InvoiceStatus.PENDING_REVIEW
    assert initial_status(False) == InvoiceStatus.PENDING_APPROVAL


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
