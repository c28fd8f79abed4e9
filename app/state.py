"""
Shared state object for the invoice generation pipeline.
All agents read from this state and return their updates to it.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime
from app.schemas.po import PurchaseOrder
from app.schemas.invoice import InvoiceLineItem
from app.schemas.output import ExceptionRecord, MatchingActivity
from app.schemas.scenario import Scenario


class ReasoningLogEntry(BaseModel):
    """A single entry in the agent reasoning log."""
    timestamp: datetime
    agent_name: str
    message: str
    confidence: Optional[float] = None
    action: Optional[str] = None


class GenerationState(BaseModel):
    """
    State for building one invoice from one purchase order.

    Each agent:
    1. Reads relevant state
    2. Performs its task
    3. Returns its updates plus a reasoning log entry
    """

    # Workflow identification
    purchase_order: PurchaseOrder
    scenario: Scenario
    duplicate_suspected: bool = False  # external duplicate-detection signal

    # Classification phase
    invoice_lines: List[InvoiceLineItem] = Field(default_factory=list)
    subtotal: float = 0.0
    variance_percentage: float = 0.0

    # Issue flagging phase
    has_issues: bool = False
    exception: Optional[ExceptionRecord] = None

    # Match recording phase
    matching_activities: List[MatchingActivity] = Field(default_factory=list)

    # Reasoning and audit trail
    reasoning_log: List[ReasoningLogEntry] = Field(default_factory=list)

    def with_reasoning(
        self,
        agent_name: str,
        message: str,
        confidence: Optional[float] = None,
        action: Optional[str] = None
    ) -> List[ReasoningLogEntry]:
        """Return the reasoning log extended by one entry."""
        return self.reasoning_log + [
            ReasoningLogEntry(
                timestamp=datetime.utcnow(),
                agent_name=agent_name,
                message=message,
                confidence=confidence,
                action=action,
            )
        ]

    def get_agent_reasoning(self) -> str:
        """Get a human-readable summary of the agent reasoning."""
        if not self.reasoning_log:
            return "No reasoning available."

        lines = []
        for entry in self.reasoning_log:
            conf_str = f" (confidence: {entry.confidence:.2f})" if entry.confidence else ""
            lines.append(f"[{entry.agent_name}] {entry.message}{conf_str}")

        return "\n".join(lines)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the current state."""
        return {
            "po_number": self.purchase_order.po_number,
            "scenario": self.scenario.value,
            "invoice_lines": len(self.invoice_lines),
            "variance_percentage": self.variance_percentage,
            "has_issues": self.has_issues,
            "matching_activities": len(self.matching_activities),
        }
