"""
Query Service
Answers plain-text questions about stored invoices with keyword rules.

Reads persisted invoices, vendors and matching activity only; never re-runs
classification.
"""

import re
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel
from rapidfuzz import fuzz

from app.schemas.invoice import Invoice, InvoiceStatus
from app.schemas.output import MatchType
from app.store import InvoiceRepository
from app.utils import format_currency
from app.utils.logging import setup_logging
from app.config import get_config


logger = setup_logging(__name__)
config = get_config()


class QueryIntent(str, Enum):
    INVOICE_STATUS = "invoice_status"
    INVOICE_SEARCH = "invoice_search"
    GENERAL_INFO = "general_info"
    UNKNOWN = "unknown"


class StatusFilter(str, Enum):
    PENDING = "pending"
    PENDING_APPROVAL = "pending approval"
    APPROVED = "approved"
    WITH_EXCEPTIONS = "with exceptions"
    READY_FOR_PAYMENT = "ready for payment"
    REQUIRES_REVIEW = "requiring review"

    def matches(self, invoice: Invoice) -> bool:
        if self == StatusFilter.WITH_EXCEPTIONS:
            return invoice.has_issues
        return invoice.status in STATUSES_BY_FILTER[self]


STATUSES_BY_FILTER = {
    StatusFilter.PENDING: {status for status in InvoiceStatus if status.awaiting_action},
    StatusFilter.PENDING_APPROVAL: {InvoiceStatus.PENDING_APPROVAL},
    StatusFilter.APPROVED: {InvoiceStatus.APPROVED, InvoiceStatus.APPROVED_READY_FOR_PAYMENT},
    StatusFilter.READY_FOR_PAYMENT: {InvoiceStatus.APPROVED_READY_FOR_PAYMENT},
    StatusFilter.REQUIRES_REVIEW: {InvoiceStatus.REQUIRES_REVIEW, InvoiceStatus.PENDING_REVIEW},
}

STATUS_PHRASES = {
    InvoiceStatus.PENDING: "is pending processing",
    InvoiceStatus.PENDING_APPROVAL: "is awaiting approval",
    InvoiceStatus.PENDING_REVIEW: "is pending review",
    InvoiceStatus.REQUIRES_REVIEW: "requires review",
    InvoiceStatus.PENDING_INTERNAL_REVIEW: "is under internal review",
    InvoiceStatus.APPROVED: "has been approved",
    InvoiceStatus.APPROVED_READY_FOR_PAYMENT: "is approved and ready for payment",
    InvoiceStatus.REJECTED: "has been rejected",
}

_unphrased = set(InvoiceStatus) - set(STATUS_PHRASES)
if _unphrased:
    raise RuntimeError(f"No status phrase for: {sorted(s.value for s in _unphrased)}")

STATUS_KEYWORDS = ["status", "what is", "tell me about", "what's"]
INVOICE_IDENTIFIERS = ["demo-", "inv-"]
SEARCH_KEYWORDS = ["show me", "list", "find", "get", "display"]
SEARCH_STATUS_KEYWORDS = ["pending", "approved", "rejected", "exception", "ready", "approval", "review"]
SEARCH_PHRASES = ["pending invoices", "approved invoices", "in approval", "pending approval"]
GENERAL_KEYWORDS = ["how many", "total", "count", "summary", "dashboard", "metrics"]

INVOICE_ID_PATTERNS = [
    re.compile(r"(DEMO-\d{4}-\d{4})", re.IGNORECASE),
    re.compile(r"(INV-\d{4}-\d{4})", re.IGNORECASE),
    re.compile(r"([A-Z]+-[A-Z0-9\-]*\d[A-Z0-9\-]*)", re.IGNORECASE),
    re.compile(r"([A-Z]+\d+)", re.IGNORECASE),
]

VENDOR_PATTERN = re.compile(r"\bfrom\s+(.+?)(?:\s+(?:that|which|with|over|under)\b|[?.!]|$)", re.IGNORECASE)


class QueryResult(BaseModel):
    """Answer to a plain-text query."""
    type: str
    message: str
    data: Any = None
    invoice_id: Optional[str] = None


def detect_intent(query: str) -> QueryIntent:
    """Pick the intent of a normalized (lowercase) query."""
    if (
        any(k in query for k in STATUS_KEYWORDS)
        and any(i in query for i in INVOICE_IDENTIFIERS)
        and "invoices" not in query
    ):
        return QueryIntent.INVOICE_STATUS

    if (
        any(k in query for k in SEARCH_KEYWORDS)
        and (any(s in query for s in SEARCH_STATUS_KEYWORDS) or "invoices" in query)
    ) or any(p in query for p in SEARCH_PHRASES):
        return QueryIntent.INVOICE_SEARCH

    if any(k in query for k in GENERAL_KEYWORDS):
        return QueryIntent.GENERAL_INFO

    return QueryIntent.UNKNOWN


def parse_status_filter(query: str) -> Optional[StatusFilter]:
    """Status filter named by a normalized query, checked in priority order."""
    if "pending" in query and "approval" not in query:
        return StatusFilter.PENDING
    if "approval" in query:
        return StatusFilter.PENDING_APPROVAL
    if "approved" in query:
        return StatusFilter.APPROVED
    if "exception" in query or "issue" in query:
        return StatusFilter.WITH_EXCEPTIONS
    if "ready" in query:
        return StatusFilter.READY_FOR_PAYMENT
    if "review" in query:
        return StatusFilter.REQUIRES_REVIEW
    return None


def extract_invoice_id(query: str) -> Optional[str]:
    for pattern in INVOICE_ID_PATTERNS:
        match = pattern.search(query)
        if match:
            return match.group(1).upper()
    return None


class QueryService:
    """Keyword-driven question answering over an InvoiceRepository."""

    def __init__(self, repository: InvoiceRepository):
        self.repository = repository

    def process_query(self, query: str) -> QueryResult:
        normalized = query.lower().strip()
        intent = detect_intent(normalized)
        logger.info(f"Processing query {normalized!r} as {intent.value}")

        if intent == QueryIntent.INVOICE_STATUS:
            return self.handle_invoice_status(normalized)
        if intent == QueryIntent.INVOICE_SEARCH:
            return self.handle_invoice_search(normalized)
        if intent == QueryIntent.GENERAL_INFO:
            return self.handle_general_info()
        return QueryResult(
            type="error",
            message=(
                "I didn't understand that request. Try asking about a specific invoice "
                "status or searching for invoices."
            ),
        )

    def handle_invoice_status(self, query: str) -> QueryResult:
        invoice_id = extract_invoice_id(query)
        if not invoice_id:
            return QueryResult(
                type="error",
                message="I couldn't find an invoice number in your request. Please specify the invoice ID.",
            )

        invoice = self.repository.find_invoice_by_number(invoice_id)
        if invoice is None:
            return QueryResult(
                type="error",
                message=f"I couldn't find invoice {invoice_id}. Please check the invoice number and try again.",
            )

        return QueryResult(
            type=QueryIntent.INVOICE_STATUS.value,
            message=self.format_invoice_status(invoice),
            data=invoice.model_dump(mode="json"),
            invoice_id=invoice.id,
        )

    def handle_invoice_search(self, query: str) -> QueryResult:
        status_filter = parse_status_filter(query)
        vendor_ids = self.match_vendor_ids(query)

        invoices = [
            invoice for invoice in self.repository.list_invoices(vendor_ids=vendor_ids)
            if status_filter is None or status_filter.matches(invoice)
        ][:config.QUERY_RESULT_LIMIT]

        if not invoices:
            suffix = f" with status {status_filter.value}" if status_filter else ""
            return QueryResult(
                type=QueryIntent.INVOICE_SEARCH.value,
                data=[],
                message=(
                    f"No invoices found{suffix}. All invoices may be processed or you may "
                    "need to check your search criteria."
                ),
            )

        return QueryResult(
            type=QueryIntent.INVOICE_SEARCH.value,
            data=[invoice.model_dump(mode="json") for invoice in invoices],
            message=self.format_search_results(invoices, status_filter),
        )

    def handle_general_info(self) -> QueryResult:
        invoices = list(self.repository.invoices.values())
        pending = sum(1 for inv in invoices if StatusFilter.PENDING.matches(inv))
        approved = sum(1 for inv in invoices if StatusFilter.APPROVED.matches(inv))
        flagged = [inv for inv in invoices if inv.has_issues]

        activities = list(self.repository.matching_activities.values())
        exact = sum(1 for a in activities if a.match_type == MatchType.EXACT)
        average_flagged_variance = (
            sum(inv.variance_percentage for inv in flagged) / len(flagged) if flagged else 0.0
        )

        data = {
            "total": len(invoices),
            "pending": pending,
            "approved": approved,
            "exceptions": len(flagged),
            "exact_matches": exact,
            "fuzzy_matches": len(activities) - exact,
            "average_flagged_variance": average_flagged_variance,
        }
        message = (
            f"You have {len(invoices)} total invoices. {pending} are pending processing, "
            f"{approved} are approved, and {len(flagged)} require attention due to exceptions."
        )
        return QueryResult(type=QueryIntent.GENERAL_INFO.value, data=data, message=message)

    def match_vendor_ids(self, query: str) -> Optional[List[str]]:
        """Vendor ids whose name fuzzily matches a "from <vendor>" phrase; None when the query names no vendor."""
        match = VENDOR_PATTERN.search(query)
        if not match:
            return None

        wanted = match.group(1).strip().upper()
        ids = [
            vendor.id for vendor in self.repository.vendors.values()
            if fuzz.partial_ratio(wanted, vendor.name.upper()) / 100.0 >= config.VENDOR_MATCH_THRESHOLD
        ]
        return ids

    def vendor_name(self, invoice: Invoice) -> str:
        vendor = self.repository.get_vendor(invoice.vendor_id)
        return vendor.name if vendor else "Unknown Vendor"

    def format_invoice_status(self, invoice: Invoice) -> str:
        amount = format_currency(invoice.amount, invoice.currency)
        message = (
            f"Invoice {invoice.invoice_number} from {self.vendor_name(invoice)} for {amount} "
            f"{STATUS_PHRASES[invoice.status]}."
        )

        if invoice.has_issues:
            message += " This invoice has been flagged for review due to potential issues."
            exceptions = self.repository.exceptions_for(invoice.id)
            if exceptions:
                message += f" {exceptions[0].description}."

        return message

    def format_search_results(self, invoices: List[Invoice], status_filter: Optional[StatusFilter]) -> str:
        count = len(invoices)
        total = format_currency(sum(inv.amount for inv in invoices))

        message = f"I found {count} invoice{'s' if count > 1 else ''}"
        if status_filter:
            message += f" {status_filter.value}"
        message += f" totaling {total}."

        if count <= 3:
            listing = ", ".join(
                f"{inv.invoice_number} from {self.vendor_name(inv)} for {format_currency(inv.amount, inv.currency)}"
                for inv in invoices
            )
            message += f" They are: {listing}."
        else:
            names = ", ".join(self.vendor_name(inv) for inv in invoices[:3])
            message += f" The most recent ones include invoices from {names}."

        return message
