"""
In-memory persistence for vendors, purchase orders, invoices and their
matching activity and exceptions.
"""

from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from app.schemas.po import GoodsReceipt, PurchaseOrder, Vendor
from app.schemas.invoice import Invoice, InvoiceStatus
from app.schemas.output import AgentActivity, ExceptionRecord, MatchingActivity
from app.seed import invoice_number_for
from app.utils.logging import setup_logging


logger = setup_logging(__name__)


class InvoiceRepository:
    """
    Stores generated records and assigns their identifiers.

    Invoices are saved first; matching activities and exceptions are saved
    afterwards, keyed by the identifiers the invoice save assigned.
    """

    def __init__(self):
        self.vendors: Dict[str, Vendor] = {}
        self.purchase_orders: Dict[str, PurchaseOrder] = {}
        self.goods_receipts: Dict[str, GoodsReceipt] = {}
        self.invoices: Dict[str, Invoice] = {}
        self.exceptions: Dict[str, ExceptionRecord] = {}
        self.matching_activities: Dict[str, MatchingActivity] = {}
        self.agent_activities: Dict[str, AgentActivity] = {}

    def clear(self) -> None:
        self.vendors.clear()
        self.purchase_orders.clear()
        self.goods_receipts.clear()
        self.invoices.clear()
        self.exceptions.clear()
        self.matching_activities.clear()
        self.agent_activities.clear()

    # Writes

    def add_vendor(self, vendor: Vendor) -> Vendor:
        self.vendors[vendor.id] = vendor
        return vendor

    def add_purchase_order(self, po: PurchaseOrder) -> PurchaseOrder:
        if po.vendor_id not in self.vendors:
            raise KeyError(f"Unknown vendor {po.vendor_id} for {po.po_number}")
        self.purchase_orders[po.id] = po
        return po

    def add_goods_receipt(self, receipt: GoodsReceipt) -> GoodsReceipt:
        """Store a receipt and copy its received quantities onto the PO lines."""
        po = self.purchase_orders.get(receipt.po_id)
        if po is None:
            raise KeyError(f"Goods receipt {receipt.id} references unknown purchase order {receipt.po_id}")

        received = {line.po_line_item_id: line.quantity_received for line in receipt.line_items}
        unknown = set(received) - {line.id for line in po.line_items}
        if unknown:
            raise KeyError(f"Goods receipt {receipt.id} references lines not on {po.po_number}: {sorted(unknown)}")

        po.line_items = [
            line.model_copy(update={"quantity_received": received[line.id]}) if line.id in received else line
            for line in po.line_items
        ]
        self.goods_receipts[receipt.id] = receipt
        return receipt

    def next_invoice_number(self) -> str:
        """First sequential invoice number not already taken."""
        sequence = len(self.invoices)
        while self.find_invoice_by_number(invoice_number_for(sequence), exact=True):
            sequence += 1
        return invoice_number_for(sequence)

    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Persist an invoice with its lines and return the stored copy with ids assigned."""
        if self.find_invoice_by_number(invoice.invoice_number, exact=True):
            raise ValueError(f"Invoice {invoice.invoice_number} already exists")

        stored = invoice.model_copy(deep=True)
        stored.id = uuid4().hex
        for line in stored.line_items:
            line.id = uuid4().hex

        self.invoices[stored.id] = stored
        logger.debug(f"Saved invoice {stored.invoice_number} ({stored.id}) with {len(stored.line_items)} lines")
        return stored

    def save_matching_activities(self, activities: Iterable[MatchingActivity]) -> List[MatchingActivity]:
        saved = []
        for activity in activities:
            if not activity.invoice_line_item_id:
                raise ValueError(f"Matching activity {activity.id} has no invoice line id")
            self.matching_activities[activity.id] = activity
            saved.append(activity)
        return saved

    def save_exception(self, exception: ExceptionRecord) -> ExceptionRecord:
        if exception.invoice_id not in self.invoices:
            raise KeyError(f"Exception {exception.id} references unknown invoice {exception.invoice_id}")
        self.exceptions[exception.id] = exception
        return exception

    def save_agent_activities(self, activities: Iterable[AgentActivity]) -> List[AgentActivity]:
        saved = []
        for activity in activities:
            if activity.invoice_id not in self.invoices:
                raise KeyError(f"Agent activity {activity.id} references unknown invoice {activity.invoice_id}")
            self.agent_activities[activity.id] = activity
            saved.append(activity)
        return saved

    def update_status(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        invoice = self.invoices[invoice_id]
        invoice.status = status
        if status in (InvoiceStatus.APPROVED, InvoiceStatus.APPROVED_READY_FOR_PAYMENT):
            invoice.approval_status = "approved"
        elif status == InvoiceStatus.REJECTED:
            invoice.approval_status = "rejected"
        return invoice

    # Reads

    def get_vendor(self, vendor_id: str) -> Optional[Vendor]:
        return self.vendors.get(vendor_id)

    def get_purchase_order(self, po_id: str) -> Optional[PurchaseOrder]:
        return self.purchase_orders.get(po_id)

    def find_purchase_order_by_number(self, po_number: str) -> Optional[PurchaseOrder]:
        return next((po for po in self.purchase_orders.values() if po.po_number == po_number), None)

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        return self.invoices.get(invoice_id)

    def find_invoice_by_number(self, invoice_number: str, exact: bool = False) -> Optional[Invoice]:
        """Find by id, exact number, or (unless exact) a number containing the given text."""
        if invoice_number in self.invoices:
            return self.invoices[invoice_number]

        needle = invoice_number.upper()

        for invoice in self.invoices.values():
            if invoice.invoice_number.upper() == needle:
                return invoice
        if exact:
            return None
        for invoice in self.invoices.values():
            if needle in invoice.invoice_number.upper():
                return invoice
        return None

    def list_invoices(
        self,
        status: Optional[InvoiceStatus] = None,
        has_issues: Optional[bool] = None,
        vendor_ids: Optional[Iterable[str]] = None,
    ) -> List[Invoice]:
        """Invoices matching all given filters, most recently received first."""
        vendor_ids = set(vendor_ids) if vendor_ids is not None else None
        results = [
            invoice for invoice in self.invoices.values()
            if (status is None or invoice.status == status)
            and (has_issues is None or invoice.has_issues == has_issues)
            and (vendor_ids is None or invoice.vendor_id in vendor_ids)
        ]
        return sorted(results, key=lambda inv: inv.received_date, reverse=True)

    def exceptions_for(self, invoice_id: str) -> List[ExceptionRecord]:
        return [e for e in self.exceptions.values() if e.invoice_id == invoice_id]

    def receipts_for(self, po_id: str) -> List[GoodsReceipt]:
        return [r for r in self.goods_receipts.values() if r.po_id == po_id]

    def activities_for(self, invoice_id: str) -> List[AgentActivity]:
        return [a for a in self.agent_activities.values() if a.invoice_id == invoice_id]

    def matching_for(self, invoice: Invoice) -> List[MatchingActivity]:
        line_ids = {line.id for line in invoice.line_items}
        return [a for a in self.matching_activities.values() if a.invoice_line_item_id in line_ids]

    def count_awaiting_action(self) -> int:
        """Invoices not yet in a terminal state."""
        return sum(1 for invoice in self.invoices.values() if invoice.status.awaiting_action)
