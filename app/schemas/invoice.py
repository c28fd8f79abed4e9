"""
Invoice schema and data models.
Represents invoices built against purchase orders.
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class MatchStatus(str, Enum):
    """How an invoice line corresponds to its PO line."""
    MATCHED = "matched"
    PARTIAL = "partial"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states. The generator only produces the first two."""
    PENDING_REVIEW = "pending_review"
    PENDING_APPROVAL = "pending_approval"
    PENDING = "pending"
    REQUIRES_REVIEW = "requires_review"
    PENDING_INTERNAL_REVIEW = "pending_internal_review"
    APPROVED = "approved"
    APPROVED_READY_FOR_PAYMENT = "approved_ready_for_payment"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def awaiting_action(self) -> bool:
        return not self.is_terminal


TERMINAL_STATUSES = frozenset({
    InvoiceStatus.APPROVED,
    InvoiceStatus.APPROVED_READY_FOR_PAYMENT,
    InvoiceStatus.REJECTED,
})


class InvoiceLineItem(BaseModel):
    """A single billed line on an invoice."""
    id: Optional[str] = None  # assigned by the repository
    line_number: int
    item_code: str
    description: str
    quantity: float
    unit_price: float
    total_amount: float
    tax_rate: float
    tax_amount: float
    gl_account_code: str
    department: str
    cost_center: str
    po_line_item_id: Optional[str] = None
    match_status: Optional[MatchStatus] = None
    variance_amount: float = 0.0
    variance_percentage: float = 0.0

    def is_po_matched(self) -> bool:
        """Check whether this line was matched (fully or partially) to a PO line."""
        return self.po_line_item_id is not None and self.match_status in (
            MatchStatus.MATCHED,
            MatchStatus.PARTIAL,
        )


class Invoice(BaseModel):
    """A vendor invoice with its line items and derived flags."""
    id: Optional[str] = None  # assigned by the repository
    invoice_number: str
    vendor_id: str
    po_id: Optional[str] = None
    invoice_date: datetime
    received_date: datetime
    due_date: datetime
    payment_terms: str
    amount: float
    status: InvoiceStatus
    approval_status: str = "pending"
    has_issues: bool = False
    variance_percentage: float = 0.0
    currency: str = "USD"
    notes: Optional[str] = None
    scenario: Optional[str] = None
    assigned_to: Optional[str] = None
    line_items: List[InvoiceLineItem] = Field(default_factory=list)

    @property
    def subtotal(self) -> float:
        return sum(line.total_amount for line in self.line_items)

    @property
    def tax_total(self) -> float:
        return sum(line.tax_amount for line in self.line_items)
