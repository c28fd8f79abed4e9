"""
Purchase Order schema and data models.
Represents vendors, POs and their line items.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import uuid4

from app.utils import payment_term_days


def new_id() -> str:
    return uuid4().hex


class Vendor(BaseModel):
    """A supplier that bills against purchase orders."""
    id: str = Field(default_factory=new_id)
    name: str
    category: str
    trust_level: str = "high"  # high, medium, low
    average_processing_time: int = 1  # days
    payment_terms: str = "Net 30"
    tax_id: Optional[str] = None
    preferred_payment_method: Optional[str] = None
    typical_variance_pattern: Optional[str] = None

    @property
    def payment_days(self) -> int:
        return payment_term_days(self.payment_terms)


class POLineItem(BaseModel):
    """A single line item in a Purchase Order. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    line_number: int
    item_code: str
    description: str
    quantity_ordered: float
    unit_price: float
    gl_account_code: str
    department: str
    cost_center: str
    budget_category: str = "Operating Expenses"
    expected_delivery_date: Optional[datetime] = None
    quantity_received: Optional[float] = None  # set from goods receipts

    @property
    def total_amount(self) -> float:
        return self.quantity_ordered * self.unit_price


class PurchaseOrder(BaseModel):
    """A Purchase Order record."""
    id: str = Field(default_factory=new_id)
    po_number: str
    vendor_id: str
    status: str = "approved"
    created_date: datetime
    approval_date: Optional[datetime] = None
    requester: Optional[str] = None
    department: Optional[str] = None
    line_items: List[POLineItem] = Field(default_factory=list)

    @property
    def total_amount(self) -> float:
        return sum(line.total_amount for line in self.line_items)


class GoodsReceiptLine(BaseModel):
    """Quantity received against one PO line."""
    id: str = Field(default_factory=new_id)
    po_line_item_id: str
    quantity_received: float
    condition: str = "good"
    notes: Optional[str] = None


class GoodsReceipt(BaseModel):
    """Warehouse confirmation that goods on a PO arrived."""
    id: str = Field(default_factory=new_id)
    po_id: str
    receipt_date: datetime
    received_by: str
    status: str = "completed"
    line_items: List[GoodsReceiptLine] = Field(default_factory=list)
