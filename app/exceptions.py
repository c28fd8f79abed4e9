"""
Errors raised by the matching engine.

Each error aborts a single (purchase order, scenario) unit of work. The batch
driver catches MatchingError, logs it and moves on to the next purchase order.
"""

from typing import Optional


class MatchingError(Exception):
    """Base class for matching engine failures."""

    def __init__(self, message: str, po_number: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.po_number = po_number

    def __str__(self) -> str:
        if self.po_number:
            return f"{self.message} (PO {self.po_number})"
        return self.message


class DivideByZeroError(MatchingError, ZeroDivisionError):
    """Ordered total of a PO line is zero, so no variance percentage exists."""


class UnknownScenarioError(MatchingError, ValueError):
    """Scenario tag is not one of the supported match scenarios."""

    def __init__(self, scenario: str, po_number: Optional[str] = None):
        super().__init__(f"Unknown match scenario: {scenario!r}", po_number)
        self.scenario = scenario


class EmptyLineItemSetError(MatchingError, ValueError):
    """Purchase order has too few line items for the requested scenario."""

    def __init__(self, scenario: str, required: int, available: int, po_number: Optional[str] = None):
        super().__init__(
            f"Scenario {scenario} requires at least {required} PO line item(s), found {available}",
            po_number,
        )
        self.scenario = scenario
        self.required = required
        self.available = available
