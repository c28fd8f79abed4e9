"""
Issue Flagging Agent
Decides whether a generated invoice needs review and synthesizes its exception.

The decision is a pure function of (scenario, max variance percentage) plus an
optional external duplicate-detection signal.
"""

from typing import Optional, Tuple

from app.state import GenerationState
from app.schemas.invoice import InvoiceStatus
from app.schemas.output import ExceptionRecord, ExceptionType, Severity
from app.schemas.scenario import Scenario
from app.utils.variance import exceeds_threshold
from app.utils.logging import setup_logging, log_agent_action, log_exception_raised
from app.config import get_config, Config


logger = setup_logging(__name__)
config = get_config()


EXCEPTION_TYPE_BY_SCENARIO = {
    Scenario.QUANTITY_VARIANCE: ExceptionType.QUANTITY_MISMATCH,
    Scenario.PRICE_VARIANCE: ExceptionType.PRICE_VARIANCE,
}

SUGGESTED_ACTIONS = {
    ExceptionType.QUANTITY_MISMATCH: "Confirm received quantities with the receiving team",
    ExceptionType.PRICE_VARIANCE: "Verify contracted unit prices with the purchasing team",
    ExceptionType.DUPLICATE_INVOICE: "Compare against previously paid invoices before approval",
    ExceptionType.MISSING_PO_REFERENCE: "Request the correct PO reference from the vendor",
    ExceptionType.BILLING_DISCREPANCY: "Review with purchasing team",
}


def should_flag(
    scenario: Scenario,
    variance_percentage: float,
    duplicate_suspected: bool = False,
    settings: Optional[Config] = None,
) -> bool:
    """Apply the issue thresholds for a scenario."""
    settings = settings or config

    if duplicate_suspected:
        return True
    if scenario == Scenario.BUNDLED_ITEMS:
        return True
    if scenario == Scenario.QUANTITY_VARIANCE:
        return exceeds_threshold(variance_percentage, settings.QUANTITY_ISSUE_THRESHOLD)
    if scenario == Scenario.PRICE_VARIANCE:
        return exceeds_threshold(variance_percentage, settings.PRICE_ISSUE_THRESHOLD)
    return False


def classify_severity(variance_percentage: float, settings: Optional[Config] = None) -> Severity:
    settings = settings or config
    if variance_percentage > settings.HIGH_SEVERITY_THRESHOLD:
        return Severity.HIGH
    return Severity.MEDIUM


def exception_type_for(scenario: Scenario, scenario_flagged: bool = True) -> ExceptionType:
    """
    Map a flagged invoice onto the exception taxonomy.

    scenario_flagged is False when only the duplicate signal fired.
    """
    if not scenario_flagged:
        return ExceptionType.DUPLICATE_INVOICE
    return EXCEPTION_TYPE_BY_SCENARIO.get(scenario, ExceptionType.BILLING_DISCREPANCY)


def describe_exception(exception_type: ExceptionType, scenario: Scenario, variance_percentage: float) -> str:
    if exception_type == ExceptionType.QUANTITY_MISMATCH:
        return f"Invoiced quantity differs from PO by up to {variance_percentage:.2f}%"
    if exception_type == ExceptionType.PRICE_VARIANCE:
        return f"Unit price differs from PO by up to {variance_percentage:.2f}%"
    if exception_type == ExceptionType.DUPLICATE_INVOICE:
        return "Possible duplicate invoice detected"
    if scenario == Scenario.BUNDLED_ITEMS:
        return "Multiple PO lines billed as a single bundled line"
    return f"Invoice does not line up with its PO ({scenario.value})"


def evaluate_issues(
    scenario: Scenario,
    variance_percentage: float,
    duplicate_suspected: bool = False,
    settings: Optional[Config] = None,
) -> Tuple[bool, Optional[ExceptionRecord]]:
    """
    Decide the invoice-level issue flag.

    Args:
        scenario: Scenario the invoice was built under
        variance_percentage: Max absolute per-line variance, in percent
        duplicate_suspected: External duplicate-detection signal
        settings: Thresholds (defaults to the active config)

    Returns:
        (has_issues, exception) - exception is None unless has_issues
    """
    settings = settings or config

    scenario_flagged = should_flag(scenario, variance_percentage, settings=settings)
    if not (scenario_flagged or duplicate_suspected):
        return False, None

    exception_type = exception_type_for(scenario, scenario_flagged)
    exception = ExceptionRecord(
        type=exception_type,
        severity=classify_severity(variance_percentage, settings),
        description=describe_exception(exception_type, scenario, variance_percentage),
        suggested_action=SUGGESTED_ACTIONS[exception_type],
        agent_confidence=settings.EXCEPTION_CONFIDENCE,
    )
    return True, exception


def initial_status(has_issues: bool) -> InvoiceStatus:
    """Status a freshly generated invoice starts in."""
    return InvoiceStatus.PENDING_REVIEW if has_issues else InvoiceStatus.PENDING_APPROVAL


async def issue_policy_agent(state: GenerationState) -> dict:
    """
    Issue Flagging Agent node.

    Updates state:
    - has_issues
    - exception

    Adds reasoning log entry.
    """
    has_issues, exception = evaluate_issues(
        state.scenario,
        state.variance_percentage,
        duplicate_suspected=state.duplicate_suspected,
    )

    if exception:
        log_exception_raised(
            logger,
            state.purchase_order.po_number,
            state.scenario.value,
            exception.type.value,
            exception.severity.value,
            exception.description,
            exception.agent_confidence,
        )
        message = f"Flagged for review: {exception.description} ({exception.severity.value})"
    else:
        message = f"No issues; max variance {state.variance_percentage:.2f}% within tolerance"

    log_agent_action(
        logger,
        "IssuePolicyAgent",
        "issues_evaluated",
        details={
            "po_number": state.purchase_order.po_number,
            "has_issues": has_issues,
            "status": initial_status(has_issues).value,
        },
    )

    return {
        "has_issues": has_issues,
        "exception": exception,
        "reasoning_log": state.with_reasoning(
            agent_name="IssuePolicyAgent",
            message=message,
            confidence=exception.agent_confidence if exception else None,
            action=initial_status(has_issues).value,
        ),
    }
