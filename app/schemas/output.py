"""
Output schemas for the matching results.
Exceptions, matching activity and batch summaries.
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

from app.schemas.invoice import Invoice
from app.schemas.po import new_id


class ExceptionType(str, Enum):
    PRICE_VARIANCE = "price_variance"
    QUANTITY_MISMATCH = "quantity_mismatch"
    MISSING_PO_REFERENCE = "missing_po_reference"
    DUPLICATE_INVOICE = "duplicate_invoice"
    BILLING_DISCREPANCY = "billing_discrepancy"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


class ExceptionRecord(BaseModel):
    """A flagged discrepancy requiring human review."""
    id: str = Field(default_factory=new_id)
    invoice_id: Optional[str] = None  # set once the invoice is persisted
    type: ExceptionType
    severity: Severity
    description: str
    suggested_action: str
    agent_confidence: float = Field(ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MatchingActivity(BaseModel):
    """Link from an invoice line to the PO line it was matched against."""
    id: str = Field(default_factory=new_id)
    invoice_line_number: int
    invoice_line_item_id: Optional[str] = None  # set once the invoice is persisted
    po_line_item_id: str
    match_type: MatchType
    confidence_score: float = Field(ge=0.0, le=1.0)
    matched_by: str = "system"
    match_notes: Optional[str] = None


class ActivityType(str, Enum):
    PROCESSING_STARTED = "processing_started"
    LINE_MATCHING = "line_matching"
    PATTERN_DETECTED = "pattern_detected"


class AgentActivity(BaseModel):
    """Audit entry for work done on an invoice, shown on the activity feed."""
    id: str = Field(default_factory=new_id)
    invoice_id: str
    activity_type: ActivityType
    description: str
    confidence_level: float = Field(ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SkippedUnit(BaseModel):
    """A (purchase order, scenario) unit the batch driver could not build."""
    po_number: str
    scenario: str
    error_type: str
    error: str


class GenerationResult(BaseModel):
    """Everything produced for one purchase order."""
    invoice: Invoice
    exception: Optional[ExceptionRecord] = None
    matching_activities: List[MatchingActivity] = Field(default_factory=list)
    agent_reasoning: str = ""


class BatchSummary(BaseModel):
    """Outcome of a seed batch."""
    vendors_created: int = 0
    purchase_orders_created: int = 0
    goods_receipts_created: int = 0
    invoices_created: int = 0
    exceptions_created: int = 0
    matching_activities_created: int = 0
    agent_activities_created: int = 0
    invoices_with_issues: int = 0
    scenario_counts: dict = Field(default_factory=dict)
    skipped: List[SkippedUnit] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "vendors_created": 5,
            "purchase_orders_created": 30,
            "goods_receipts_created": 20,
            "invoices_created": 30,
            "exceptions_created": 7,
            "matching_activities_created": 74,
            "agent_activities_created": 68,
            "invoices_with_issues": 7,
            "scenario_counts": {"perfect": 12, "quantity_variance": 6},
            "skipped": [],
        }
    })
