"""
Match Recorder Agent
Records one matching activity per invoice line that references a PO line.
"""

from typing import Dict, List, Optional, Sequence
from rapidfuzz import fuzz

from app.state import GenerationState
from app.schemas.po import POLineItem
from app.schemas.invoice import InvoiceLineItem, MatchStatus
from app.schemas.output import MatchingActivity, MatchType
from app.schemas.scenario import Scenario
from app.utils.logging import setup_logging, log_agent_action
from app.config import get_config, Config


logger = setup_logging(__name__)
config = get_config()


def match_type_for(status: MatchStatus) -> MatchType:
    return MatchType.EXACT if status == MatchStatus.MATCHED else MatchType.FUZZY


def confidence_for(match_type: MatchType, settings: Optional[Config] = None) -> float:
    """Fixed confidence per match type; not derived from actual similarity."""
    settings = settings or config
    if match_type == MatchType.EXACT:
        return settings.EXACT_MATCH_CONFIDENCE
    return settings.FUZZY_MATCH_CONFIDENCE


def describe_match(
    scenario: Scenario,
    line: InvoiceLineItem,
    po_line: Optional[POLineItem],
) -> Optional[str]:
    """Free-text note for a partial match, None for plain matches."""
    if line.match_status != MatchStatus.PARTIAL:
        return None

    if scenario == Scenario.DESCRIPTION_MISMATCH:
        note = "SKU matches but description varies"
        if po_line is not None:
            similarity = fuzz.token_set_ratio(line.description.upper(), po_line.description.upper()) / 100.0
            note += f" (description similarity: {similarity:.2f})"
        return note
    if scenario == Scenario.SUBSTITUTE_ITEMS:
        return "Substitute item billed against PO line"
    if scenario == Scenario.SPLIT_BILLING:
        return "PO line billed across multiple invoice lines"
    if scenario == Scenario.BUNDLED_ITEMS:
        return "Several PO lines billed as one bundled line"
    if scenario == Scenario.QUANTITY_VARIANCE:
        return f"Quantity variance {line.variance_percentage:+.2f}%"
    if scenario == Scenario.PRICE_VARIANCE:
        return f"Price variance {line.variance_percentage:+.2f}%"
    return None


def record_matches(
    lines: Sequence[InvoiceLineItem],
    po_lines: Sequence[POLineItem],
    scenario: Scenario,
    settings: Optional[Config] = None,
) -> List[MatchingActivity]:
    """
    Build matching activities for the PO-referencing lines of an invoice.

    Args:
        lines: Invoice lines produced by the scenario classifier
        po_lines: Line items of the source purchase order
        scenario: Scenario the lines were built under
        settings: Confidence settings (defaults to the active config)

    Returns:
        One MatchingActivity per matched or partial line, in line order
    """
    po_lines_by_id: Dict[str, POLineItem] = {po_line.id: po_line for po_line in po_lines}
    activities = []

    for line in lines:
        if not line.is_po_matched():
            continue

        match_type = match_type_for(line.match_status)
        activities.append(MatchingActivity(
            invoice_line_number=line.line_number,
            po_line_item_id=line.po_line_item_id,
            match_type=match_type,
            confidence_score=confidence_for(match_type, settings),
            match_notes=describe_match(scenario, line, po_lines_by_id.get(line.po_line_item_id)),
        ))

    return activities


async def match_recorder_agent(state: GenerationState) -> dict:
    """
    Match Recorder Agent node.

    Updates state:
    - matching_activities

    Adds reasoning log entry.
    """
    activities = record_matches(state.invoice_lines, state.purchase_order.line_items, state.scenario)

    exact = sum(1 for a in activities if a.match_type == MatchType.EXACT)
    fuzzy = len(activities) - exact
    average_confidence = (
        sum(a.confidence_score for a in activities) / len(activities) if activities else None
    )

    log_agent_action(
        logger,
        "MatchRecorderAgent",
        "matches_recorded",
        details={
            "po_number": state.purchase_order.po_number,
            "exact": exact,
            "fuzzy": fuzzy,
        },
        confidence=average_confidence,
    )

    return {
        "matching_activities": activities,
        "reasoning_log": state.with_reasoning(
            agent_name="MatchRecorderAgent",
            message=f"Recorded {len(activities)} line match(es): {exact} exact, {fuzzy} fuzzy",
            confidence=average_confidence,
            action="record_matches",
        ),
    }
