"""
Main entry point for the invoice matching system.
Drives the generation pipeline over purchase orders and persists the results.
"""

import asyncio
import random
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple, Union

from app.state import GenerationState
from app.graph import get_generation_graph
from app.schemas.po import PurchaseOrder, Vendor
from app.schemas.invoice import Invoice
from app.schemas.output import BatchSummary, GenerationResult, SkippedUnit
from app.schemas.scenario import Scenario, parse_scenario
from app.agents.issue_policy import initial_status
from app.exceptions import MatchingError, UnknownScenarioError
from app.seed import (
    APPROVERS,
    assign_scenarios,
    build_agent_activities,
    build_vendors,
    generate_goods_receipt,
    generate_purchase_orders,
)
from app.store import InvoiceRepository
from app.utils.logging import setup_logging, log_unit_skipped
from app.utils import dict_to_json_string
from app.config import get_config


logger = setup_logging(__name__)
config = get_config()

SPECIAL_BILLING_NOTE = "Special billing arrangement"
SPECIAL_BILLING_SCENARIOS = (Scenario.SUBSTITUTE_ITEMS, Scenario.BUNDLED_ITEMS)


def assemble_invoice(
    state: GenerationState,
    vendor: Vendor,
    invoice_number: str,
    rng: random.Random,
) -> Invoice:
    """Build the invoice record from a finished pipeline state."""
    po = state.purchase_order
    approval_date = po.approval_date or po.created_date
    invoice_date = approval_date + timedelta(days=rng.randint(10, 39))
    tax_total = sum(line.tax_amount for line in state.invoice_lines)

    return Invoice(
        invoice_number=invoice_number,
        vendor_id=vendor.id,
        po_id=po.id,
        invoice_date=invoice_date,
        received_date=invoice_date,
        due_date=invoice_date + timedelta(days=vendor.payment_days),
        payment_terms=vendor.payment_terms,
        amount=state.subtotal + tax_total,
        status=initial_status(state.has_issues),
        has_issues=state.has_issues,
        variance_percentage=state.variance_percentage,
        currency=config.CURRENCY,
        notes=SPECIAL_BILLING_NOTE if state.scenario in SPECIAL_BILLING_SCENARIOS else None,
        scenario=state.scenario.value,
        assigned_to=rng.choice(APPROVERS) if rng.random() > 0.7 else None,
        line_items=state.invoice_lines,
    )


async def generate_invoice_for_po(
    po: PurchaseOrder,
    vendor: Vendor,
    scenario: Union[str, Scenario],
    invoice_number: str,
    rng: Optional[random.Random] = None,
    duplicate_suspected: bool = False,
) -> GenerationResult:
    """
    Run one (purchase order, scenario) unit through the generation pipeline.

    Args:
        po: Purchase order to bill against
        vendor: Vendor of the purchase order
        scenario: Scenario or scenario tag
        invoice_number: Number for the generated invoice
        rng: Random source (a fresh unseeded one if omitted)
        duplicate_suspected: External duplicate-detection signal

    Returns:
        GenerationResult with the invoice (not yet persisted), its exception and matches

    Raises:
        MatchingError: the unit cannot be built; nothing should be persisted for it
    """
    rng = rng or random.Random()
    try:
        scenario = parse_scenario(scenario)
    except UnknownScenarioError as e:
        raise UnknownScenarioError(e.scenario, po.po_number) from None

    state = GenerationState(
        purchase_order=po,
        scenario=scenario,
        duplicate_suspected=duplicate_suspected,
    )

    logger.info(f"Generating {scenario.value} invoice {invoice_number} for {po.po_number}")

    graph = get_generation_graph()
    result = await graph.ainvoke(
        state,
        config={"recursion_limit": config.GRAPH_RECURSION_LIMIT, "configurable": {"rng": rng}},
    )
    final_state = GenerationState(**result) if isinstance(result, dict) else result
    logger.debug(f"Pipeline finished: {final_state.get_summary()}")

    invoice = assemble_invoice(final_state, vendor, invoice_number, rng)

    return GenerationResult(
        invoice=invoice,
        exception=final_state.exception,
        matching_activities=final_state.matching_activities,
        agent_reasoning=final_state.get_agent_reasoning(),
    )


def persist_result(repository: InvoiceRepository, result: GenerationResult) -> Invoice:
    """Save the invoice, then its matching activities and exception keyed by the assigned ids."""
    stored = repository.save_invoice(result.invoice)
    line_ids = {line.line_number: line.id for line in stored.line_items}

    activities = []
    for activity in result.matching_activities:
        activities.append(activity.model_copy(update={"invoice_line_item_id": line_ids[activity.invoice_line_number]}))
    repository.save_matching_activities(activities)

    if result.exception:
        repository.save_exception(result.exception.model_copy(update={"invoice_id": stored.id}))

    return stored


async def run_batch(
    repository: InvoiceRepository,
    assignments: Iterable[Tuple[PurchaseOrder, Union[str, Scenario]]],
    rng: random.Random,
    summary: Optional[BatchSummary] = None,
) -> BatchSummary:
    """
    Generate and persist one invoice per (purchase order, scenario) pair.

    A unit failing with a MatchingError is logged and skipped; the batch continues.
    """
    summary = summary or BatchSummary()
    scenario_counts = Counter(summary.scenario_counts)
    assignments = list(assignments)

    for idx, (po, scenario) in enumerate(assignments):
        tag = scenario.value if isinstance(scenario, Scenario) else str(scenario)
        vendor = repository.get_vendor(po.vendor_id)
        if vendor is None:
            raise KeyError(f"Unknown vendor {po.vendor_id} for {po.po_number}")

        try:
            logger.info(f"Processing purchase order {idx + 1}/{len(assignments)}")
            result = await generate_invoice_for_po(
                po, vendor, scenario, repository.next_invoice_number(), rng=rng
            )
        except MatchingError as e:
            log_unit_skipped(logger, po.po_number, tag, type(e).__name__, str(e))
            summary.skipped.append(SkippedUnit(
                po_number=po.po_number,
                scenario=tag,
                error_type=type(e).__name__,
                error=str(e),
            ))
            continue

        stored = persist_result(repository, result)
        summary.invoices_created += 1
        summary.matching_activities_created += len(result.matching_activities)
        if result.exception:
            summary.exceptions_created += 1
        if stored.has_issues:
            summary.invoices_with_issues += 1
        scenario_counts[tag] += 1

    summary.scenario_counts = dict(scenario_counts)
    logger.info(
        f"Batch complete. Created {summary.invoices_created}/{len(assignments)} invoices, "
        f"skipped {len(summary.skipped)}."
    )
    return summary


async def run_seed_batch(
    repository: InvoiceRepository,
    po_count: Optional[int] = None,
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
) -> BatchSummary:
    """
    Reset the repository and fill it with demo vendors, purchase orders and invoices.

    The first GOODS_RECEIPT_COUNT purchase orders also get a goods receipt, and
    every stored invoice gets its activity feed entries.

    Args:
        repository: Store to fill (cleared first)
        po_count: Number of purchase orders (defaults to SEED_PO_COUNT)
        seed: Random seed (defaults to SEED_RANDOM_SEED; unseeded if both are None)
        now: Reference time for generated dates

    Returns:
        BatchSummary of what was created and skipped
    """
    po_count = config.SEED_PO_COUNT if po_count is None else po_count
    seed = config.SEED_RANDOM_SEED if seed is None else seed
    rng = random.Random(seed)

    repository.clear()

    vendors = [repository.add_vendor(vendor) for vendor in build_vendors()]
    orders = [
        repository.add_purchase_order(po)
        for po in generate_purchase_orders(vendors, po_count, rng, now)
    ]
    logger.info(f"Created {len(vendors)} vendors and {len(orders)} purchase orders")

    receipts = []
    for po in orders[:config.GOODS_RECEIPT_COUNT]:
        receipt = generate_goods_receipt(po, rng)
        if receipt is not None:
            receipts.append(repository.add_goods_receipt(receipt))
    logger.info(f"Created {len(receipts)} goods receipts")

    summary = BatchSummary(
        vendors_created=len(vendors),
        purchase_orders_created=len(orders),
        goods_receipts_created=len(receipts),
    )
    scenarios = assign_scenarios(len(orders), rng)
    summary = await run_batch(repository, zip(orders, scenarios), rng, summary)

    for invoice in list(repository.invoices.values()):
        saved = repository.save_agent_activities(build_agent_activities(invoice, rng))
        summary.agent_activities_created += len(saved)
    logger.info(f"Created {summary.agent_activities_created} agent activities")

    return summary


def format_summary_json(summary: BatchSummary) -> str:
    """Format a batch summary as JSON string."""
    return dict_to_json_string(summary.model_dump(mode="json"))


if __name__ == "__main__":
    # Example usage
    import sys

    po_count = int(sys.argv[1]) if len(sys.argv) > 1 else None
    seed = int(sys.argv[2]) if len(sys.argv) > 2 else None

    summary = asyncio.run(run_seed_batch(InvoiceRepository(), po_count=po_count, seed=seed))
    print(format_summary_json(summary))
