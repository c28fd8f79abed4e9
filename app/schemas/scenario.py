"""
Match scenarios an invoice can be generated under.
"""

from enum import Enum
from typing import Union

from app.exceptions import UnknownScenarioError


class Scenario(str, Enum):
    PERFECT = "perfect"
    QUANTITY_VARIANCE = "quantity_variance"
    PRICE_VARIANCE = "price_variance"
    DESCRIPTION_MISMATCH = "description_mismatch"
    SPLIT_BILLING = "split_billing"
    BUNDLED_ITEMS = "bundled_items"
    SUBSTITUTE_ITEMS = "substitute_items"
    PARTIAL_DELIVERY = "partial_delivery"


# Scenarios that break 1:1 PO line to invoice line cardinality
RESTRUCTURING_SCENARIOS = frozenset({Scenario.SPLIT_BILLING, Scenario.BUNDLED_ITEMS})

COMPLEX_SCENARIOS = (
    Scenario.SPLIT_BILLING,
    Scenario.BUNDLED_ITEMS,
    Scenario.SUBSTITUTE_ITEMS,
    Scenario.PARTIAL_DELIVERY,
)


def parse_scenario(value: Union[str, Scenario]) -> Scenario:
    """Resolve a scenario tag, failing loudly on anything unrecognized."""
    if isinstance(value, Scenario):
        return value
    try:
        return Scenario(str(value).strip().lower())
    except ValueError:
        raise UnknownScenarioError(str(value)) from None
