"""
Tests for the scenario classifier: building invoice lines from PO lines.
"""

import math
import random
import pytest

from app.schemas.po import POLineItem
from app.schemas.invoice import MatchStatus
from app.schemas.scenario import Scenario
from app.agents.scenario_classifier import (
    BUNDLE_DESCRIPTION,
    BUNDLE_ITEM_CODE,
    DESCRIPTION_MISMATCH_SUFFIX,
    SUBSTITUTE_CODE_SUFFIX,
    SUBSTITUTE_DESCRIPTION_SUFFIX,
    classify_line_items,
    draw_factor,
)
from app.config import get_config


config = get_config()


def make_line(line_number, item_code, description, quantity, unit_price):
    return POLineItem(
        line_number=line_number,
        item_code=item_code,
        description=description,
        quantity_ordered=quantity,
        unit_price=unit_price,
        gl_account_code="7100-IT-Hardware",
        department="IT",
        cost_center="CC-100",
    )


@pytest.fixture
def po_lines():
    """Three PO lines with distinct codes."""
    return [
        make_line(1, "WIDGET-A", "Widget A", 100, 8.0),
        make_line(2, "WIDGET-B", "Widget B", 50, 4.0),
        make_line(3, "WIDGET-C", "Widget C", 12, 25.0),
    ]


ONE_TO_ONE_SCENARIOS = [
    Scenario.PERFECT,
    Scenario.QUANTITY_VARIANCE,
    Scenario.PRICE_VARIANCE,
    Scenario.DESCRIPTION_MISMATCH,
    Scenario.SUBSTITUTE_ITEMS,
]


@pytest.mark.parametrize("scenario", ONE_TO_ONE_SCENARIOS)
def test_one_to_one_scenarios_keep_cardinality(po_lines, scenario):
    """Test each PO line maps to exactly one invoice line, in order."""
    lines, _, _ = classify_line_items(po_lines, scenario, rng=random.Random(7))

    assert len(lines) == len(po_lines)
    for line, po_line in zip(lines, po_lines):
        assert line.po_line_item_id == po_line.id
        assert line.gl_account_code == po_line.gl_account_code
        assert line.department == po_line.department
        assert line.cost_center == po_line.cost_center
    assert [line.line_number for line in lines] == [1, 2, 3]


def test_perfect_match(po_lines):
    lines, subtotal, variance_pct = classify_line_items(po_lines, Scenario.PERFECT)

    assert variance_pct == 0.0
    assert subtotal == pytest.approx(sum(p.total_amount for p in po_lines))
    for line, po_line in zip(lines, po_lines):
        assert line.match_status == MatchStatus.MATCHED
        assert line.quantity == po_line.quantity_ordered
        assert line.unit_price == po_line.unit_price
        assert line.item_code == po_line.item_code
        assert line.description == po_line.description
        assert line.variance_amount == 0.0
        assert line.variance_percentage == 0.0


def test_scenario_accepts_string_tag(po_lines):
    lines, _, _ = classify_line_items(po_lines, "Perfect")
    assert all(line.match_status == MatchStatus.MATCHED for line in lines)


def test_tax_uses_configured_rate(po_lines):
    lines, _, _ = classify_line_items(po_lines, Scenario.PERFECT)
    for line in lines:
        assert line.tax_rate == config.TAX_RATE
        assert line.tax_amount == pytest.approx(line.total_amount * config.TAX_RATE)


def test_quantity_variance_within_bounds(po_lines):
    low, high = config.QUANTITY_VARIANCE_RANGE
    lines, _, variance_pct = classify_line_items(po_lines, Scenario.QUANTITY_VARIANCE, rng=random.Random(1))

    for line, po_line in zip(lines, po_lines):
        factor = line.quantity / po_line.quantity_ordered
        assert low <= factor < high
        assert line.unit_price == po_line.unit_price
        assert line.match_status == MatchStatus.PARTIAL
        assert line.variance_percentage == pytest.approx((factor - 1) * 100)

    assert variance_pct == pytest.approx(max(abs(line.variance_percentage) for line in lines))


def test_price_variance_within_bounds(po_lines):
    low, high = config.PRICE_VARIANCE_RANGE
    lines, subtotal, variance_pct = classify_line_items(po_lines, Scenario.PRICE_VARIANCE, rng=random.Random(3))

    for line, po_line in zip(lines, po_lines):
        factor = line.unit_price / po_line.unit_price
        assert low <= factor < high
        assert line.quantity == po_line.quantity_ordered
        assert line.match_status == MatchStatus.PARTIAL

    assert subtotal == pytest.approx(sum(line.total_amount for line in lines))
    assert variance_pct == pytest.approx(max(abs(line.variance_percentage) for line in lines))


def test_variance_draws_are_reproducible(po_lines):
    first, _, _ = classify_line_items(po_lines, Scenario.QUANTITY_VARIANCE, rng=random.Random(99))
    second, _, _ = classify_line_items(po_lines, Scenario.QUANTITY_VARIANCE, rng=random.Random(99))
    assert [line.quantity for line in first] == [line.quantity for line in second]


def test_draw_factor_bounds():
    rng = random.Random(0)
    for _ in range(200):
        factor = draw_factor(rng, (0.95, 1.10))
        assert 0.95 <= factor < 1.10


def test_description_mismatch(po_lines):
    lines, _, variance_pct = classify_line_items(po_lines, Scenario.DESCRIPTION_MISMATCH)

    assert variance_pct == 0.0
    for line, po_line in zip(lines, po_lines):
        assert line.description == po_line.description + DESCRIPTION_MISMATCH_SUFFIX
        assert line.item_code == po_line.item_code
        assert line.total_amount == pytest.approx(po_line.total_amount)
        assert line.match_status == MatchStatus.PARTIAL


def test_substitute_items(po_lines):
    lines, _, _ = classify_line_items(po_lines, Scenario.SUBSTITUTE_ITEMS)

    for line, po_line in zip(lines, po_lines):
        assert line.item_code == po_line.item_code + SUBSTITUTE_CODE_SUFFIX
        assert line.description == po_line.description + SUBSTITUTE_DESCRIPTION_SUFFIX
        assert line.unit_price == po_line.unit_price
        assert line.match_status == MatchStatus.PARTIAL


def test_split_billing():
    """Test quantity 30 splits into three lines of 10 referencing the same PO line."""
    po_lines = [
        make_line(1, "HVAC-MAINT", "HVAC Maintenance", 30, 450.0),
        make_line(2, "CLEAN-MONTHLY", "Monthly Cleaning Service", 2, 1200.0),
    ]
    lines, subtotal, _ = classify_line_items(po_lines, Scenario.SPLIT_BILLING)

    split = lines[:3]
    assert [line.quantity for line in split] == [10, 10, 10]
    assert all(line.po_line_item_id == po_lines[0].id for line in split)
    assert all(line.match_status == MatchStatus.PARTIAL for line in split)
    assert split[0].description == "HVAC Maintenance - Part 1/3"
    assert split[2].description == "HVAC Maintenance - Part 3/3"

    rest = lines[3:]
    assert len(rest) == 1
    assert rest[0].po_line_item_id == po_lines[1].id
    assert rest[0].match_status == MatchStatus.MATCHED
    assert rest[0].line_number == 4

    assert subtotal == pytest.approx(30 * 450.0 + 2 * 1200.0)


def test_split_billing_single_line_po():
    po_lines = [make_line(1, "HVAC-MAINT", "HVAC Maintenance", 9, 100.0)]
    lines, _, _ = classify_line_items(po_lines, Scenario.SPLIT_BILLING)
    assert len(lines) == config.SPLIT_COUNT


def test_bundled_items():
    """Test two PO lines totalling 100 and 50 bill as one line of 150."""
    po_lines = [
        make_line(1, "DESIGN-LOGO", "Logo Design Services", 1, 100.0),
        make_line(2, "CONTENT-BLOG", "Blog Content", 5, 10.0),
        make_line(3, "EVENT-BOOTH", "Trade Show Booth Design", 1, 800.0),
    ]
    lines, subtotal, variance_pct = classify_line_items(po_lines, Scenario.BUNDLED_ITEMS)

    bundle = lines[0]
    assert bundle.quantity == 1
    assert bundle.unit_price == pytest.approx(150.0)
    assert bundle.total_amount == pytest.approx(150.0)
    assert bundle.item_code == BUNDLE_ITEM_CODE
    assert bundle.description == BUNDLE_DESCRIPTION
    assert bundle.po_line_item_id == po_lines[0].id
    assert bundle.match_status == MatchStatus.PARTIAL

    assert len(lines) == 2
    assert lines[1].po_line_item_id == po_lines[2].id
    assert lines[1].match_status == MatchStatus.MATCHED
    assert subtotal == pytest.approx(950.0)
    assert variance_pct == 0.0


@pytest.mark.parametrize("line_count", [1, 2, 3, 4, 5])
def test_partial_delivery_bills_leading_share(line_count):
    po_lines = [make_line(i, f"ITEM-{i}", f"Item {i}", 2, 10.0) for i in range(1, line_count + 1)]
    lines, _, _ = classify_line_items(po_lines, Scenario.PARTIAL_DELIVERY)

    expected = math.ceil(line_count * config.PARTIAL_DELIVERY_RATIO)
    assert len(lines) == expected
    assert [line.po_line_item_id for line in lines] == [p.id for p in po_lines[:expected]]
    assert all(line.match_status == MatchStatus.MATCHED for line in lines)


def test_empty_po_allowed_for_pass_through_scenarios():
    lines, subtotal, variance_pct = classify_line_items([], Scenario.PERFECT)
    assert lines == []
    assert subtotal == 0
    assert variance_pct == 0.0


def test_po_lines_are_not_mutated(po_lines):
    snapshot = [p.model_dump() for p in po_lines]
    for scenario in Scenario:
        classify_line_items(po_lines, scenario, rng=random.Random(5))
    assert [p.model_dump() for p in po_lines] == snapshot


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
