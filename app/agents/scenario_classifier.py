"""
Scenario Classifier Agent
Builds invoice line items from a purchase order's line items under a match scenario.

SCENARIOS:
- perfect: exact copy of every PO line
- quantity_variance / price_variance: random drift on quantity or unit price
- description_mismatch / substitute_items: same amounts, altered descriptions or item codes
- split_billing: first PO line billed as several equal parts (1:many)
- bundled_items: first PO lines billed as one package line (many:1)
- partial_delivery: only the leading share of PO lines is billed
"""

import math
import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from langchain_core.runnables import RunnableConfig

from app.state import GenerationState
from app.schemas.po import POLineItem
from app.schemas.invoice import InvoiceLineItem, MatchStatus
from app.schemas.scenario import Scenario, parse_scenario
from app.exceptions import DivideByZeroError, EmptyLineItemSetError, UnknownScenarioError
from app.utils.variance import calculate_variance, max_variance_percentage
from app.utils.logging import setup_logging, log_agent_action
from app.config import get_config, Config


logger = setup_logging(__name__)
config = get_config()

DESCRIPTION_MISMATCH_SUFFIX = " - Updated Model"
SUBSTITUTE_DESCRIPTION_SUFFIX = " (Substitute Model)"
SUBSTITUTE_CODE_SUFFIX = "-SUB"
BUNDLE_ITEM_CODE = "BUNDLE-001"
BUNDLE_DESCRIPTION = "Bundled Services Package"

LineBuilder = Callable[[Sequence[POLineItem], random.Random, Config], List[InvoiceLineItem]]


def build_line(
    po_line: POLineItem,
    line_number: int,
    match_status: MatchStatus,
    tax_rate: float,
    quantity: Optional[float] = None,
    unit_price: Optional[float] = None,
    **overrides,
) -> InvoiceLineItem:
    """Build an invoice line from a PO line, copying coding fields unless overridden."""
    quantity = po_line.quantity_ordered if quantity is None else quantity
    unit_price = po_line.unit_price if unit_price is None else unit_price
    total = quantity * unit_price

    fields = {
        "line_number": line_number,
        "item_code": po_line.item_code,
        "description": po_line.description,
        "quantity": quantity,
        "unit_price": unit_price,
        "total_amount": total,
        "tax_rate": tax_rate,
        "tax_amount": total * tax_rate,
        "gl_account_code": po_line.gl_account_code,
        "department": po_line.department,
        "cost_center": po_line.cost_center,
        "po_line_item_id": po_line.id,
        "match_status": match_status,
    }
    fields.update(overrides)
    return InvoiceLineItem(**fields)


def draw_factor(rng: random.Random, bounds: Tuple[float, float]) -> float:
    """Uniform draw in [low, high)."""
    low, high = bounds
    return low + rng.random() * (high - low)


def _pass_through(po_lines: Sequence[POLineItem], settings: Config, start: int = 1) -> List[InvoiceLineItem]:
    return [
        build_line(po_line, start + idx, MatchStatus.MATCHED, settings.TAX_RATE)
        for idx, po_line in enumerate(po_lines)
    ]


def build_perfect(po_lines, rng, settings):
    return _pass_through(po_lines, settings)


def build_quantity_variance(po_lines, rng, settings):
    lines = []
    for idx, po_line in enumerate(po_lines, 1):
        quantity = po_line.quantity_ordered * draw_factor(rng, settings.QUANTITY_VARIANCE_RANGE)
        variance_amount, variance_pct = calculate_variance(
            po_line.quantity_ordered, po_line.unit_price, quantity, po_line.unit_price
        )
        lines.append(build_line(
            po_line, idx, MatchStatus.PARTIAL, settings.TAX_RATE,
            quantity=quantity,
            variance_amount=variance_amount,
            variance_percentage=variance_pct,
        ))
    return lines


def build_price_variance(po_lines, rng, settings):
    lines = []
    for idx, po_line in enumerate(po_lines, 1):
        unit_price = po_line.unit_price * draw_factor(rng, settings.PRICE_VARIANCE_RANGE)
        variance_amount, variance_pct = calculate_variance(
            po_line.quantity_ordered, po_line.unit_price, po_line.quantity_ordered, unit_price
        )
        lines.append(build_line(
            po_line, idx, MatchStatus.PARTIAL, settings.TAX_RATE,
            unit_price=unit_price,
            variance_amount=variance_amount,
            variance_percentage=variance_pct,
        ))
    return lines


def build_description_mismatch(po_lines, rng, settings):
    return [
        build_line(
            po_line, idx, MatchStatus.PARTIAL, settings.TAX_RATE,
            description=po_line.description + DESCRIPTION_MISMATCH_SUFFIX,
        )
        for idx, po_line in enumerate(po_lines, 1)
    ]


def build_split_billing(po_lines, rng, settings):
    first = po_lines[0]
    parts = settings.SPLIT_COUNT
    quantity_per_part = first.quantity_ordered / parts

    lines = [
        build_line(
            first, idx, MatchStatus.PARTIAL, settings.TAX_RATE,
            quantity=quantity_per_part,
            description=f"{first.description} - Part {idx}/{parts}",
        )
        for idx in range(1, parts + 1)
    ]
    lines.extend(_pass_through(po_lines[1:], settings, start=len(lines) + 1))
    return lines


def build_bundled_items(po_lines, rng, settings):
    bundled = po_lines[:settings.BUNDLE_SIZE]
    first = bundled[0]
    bundled_amount = sum(po_line.total_amount for po_line in bundled)

    lines = [build_line(
        first, 1, MatchStatus.PARTIAL, settings.TAX_RATE,
        quantity=1,
        unit_price=bundled_amount,
        item_code=BUNDLE_ITEM_CODE,
        description=BUNDLE_DESCRIPTION,
    )]
    lines.extend(_pass_through(po_lines[settings.BUNDLE_SIZE:], settings, start=2))
    return lines


def build_substitute_items(po_lines, rng, settings):
    return [
        build_line(
            po_line, idx, MatchStatus.PARTIAL, settings.TAX_RATE,
            item_code=po_line.item_code + SUBSTITUTE_CODE_SUFFIX,
            description=po_line.description + SUBSTITUTE_DESCRIPTION_SUFFIX,
        )
        for idx, po_line in enumerate(po_lines, 1)
    ]


def build_partial_delivery(po_lines, rng, settings):
    invoiced = math.ceil(len(po_lines) * settings.PARTIAL_DELIVERY_RATIO)
    return _pass_through(po_lines[:invoiced], settings)


SCENARIO_BUILDERS: Dict[Scenario, LineBuilder] = {
    Scenario.PERFECT: build_perfect,
    Scenario.QUANTITY_VARIANCE: build_quantity_variance,
    Scenario.PRICE_VARIANCE: build_price_variance,
    Scenario.DESCRIPTION_MISMATCH: build_description_mismatch,
    Scenario.SPLIT_BILLING: build_split_billing,
    Scenario.BUNDLED_ITEMS: build_bundled_items,
    Scenario.SUBSTITUTE_ITEMS: build_substitute_items,
    Scenario.PARTIAL_DELIVERY: build_partial_delivery,
}

_unhandled = set(Scenario) - set(SCENARIO_BUILDERS)
if _unhandled:
    raise RuntimeError(f"No line builder for scenarios: {sorted(s.value for s in _unhandled)}")


def required_line_count(scenario: Scenario, settings: Config) -> int:
    """Minimum number of PO lines a scenario needs."""
    if scenario == Scenario.SPLIT_BILLING:
        return 1
    if scenario == Scenario.BUNDLED_ITEMS:
        return settings.BUNDLE_SIZE
    return 0


def classify_line_items(
    po_lines: Sequence[POLineItem],
    scenario,
    rng: Optional[random.Random] = None,
    settings: Optional[Config] = None,
    po_number: Optional[str] = None,
) -> Tuple[List[InvoiceLineItem], float, float]:
    """
    Build invoice lines for a purchase order under a scenario.

    Args:
        po_lines: Line items of the purchase order, in PO order
        scenario: Scenario or scenario tag
        rng: Random source for the variance scenarios
        settings: Tuning parameters (defaults to the active config)
        po_number: Used in error messages only

    Returns:
        (invoice_lines, subtotal, max_variance_percentage)

    Raises:
        UnknownScenarioError: scenario tag not recognized
        EmptyLineItemSetError: too few PO lines for the scenario
        DivideByZeroError: a variance scenario hit a zero ordered total
    """
    try:
        scenario = parse_scenario(scenario)
    except UnknownScenarioError as e:
        raise UnknownScenarioError(e.scenario, po_number) from None
    settings = settings or config
    rng = rng or random.Random()

    required = required_line_count(scenario, settings)
    if len(po_lines) < required:
        raise EmptyLineItemSetError(scenario.value, required, len(po_lines), po_number)

    try:
        lines = SCENARIO_BUILDERS[scenario](po_lines, rng, settings)
    except DivideByZeroError as e:
        raise DivideByZeroError(e.message, po_number) from None
    subtotal = sum(line.total_amount for line in lines)
    variance_pct = max_variance_percentage(line.variance_percentage for line in lines)

    return lines, subtotal, variance_pct


async def scenario_classifier_agent(state: GenerationState, config: RunnableConfig) -> dict:
    """
    Scenario Classifier Agent node.

    Reads the random source from config["configurable"]["rng"].

    Updates state:
    - invoice_lines
    - subtotal
    - variance_percentage

    Adds reasoning log entry.
    """
    rng = (config or {}).get("configurable", {}).get("rng")
    po = state.purchase_order

    logger.info(f"[ScenarioClassifierAgent] Building {state.scenario.value} invoice for {po.po_number}")

    lines, subtotal, variance_pct = classify_line_items(
        po.line_items, state.scenario, rng=rng, po_number=po.po_number
    )

    log_agent_action(
        logger,
        "ScenarioClassifierAgent",
        "invoice_lines_built",
        details={
            "po_number": po.po_number,
            "scenario": state.scenario.value,
            "po_lines": len(po.line_items),
            "invoice_lines": len(lines),
            "variance_percentage": round(variance_pct, 4),
        },
    )

    return {
        "invoice_lines": lines,
        "subtotal": subtotal,
        "variance_percentage": variance_pct,
        "reasoning_log": state.with_reasoning(
            agent_name="ScenarioClassifierAgent",
            message=(
                f"Built {len(lines)} invoice line(s) from {len(po.line_items)} PO line(s) "
                f"under scenario {state.scenario.value}; max variance {variance_pct:.2f}%"
            ),
            action="classify",
        ),
    }
