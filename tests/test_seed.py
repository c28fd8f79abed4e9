"""
Tests for demo seed data: goods receipts and agent activity feeds.
"""

import random
import pytest
from datetime import datetime
from unittest.mock import Mock

from app.main import run_seed_batch
from app.schemas.po import GoodsReceipt, GoodsReceiptLine, PurchaseOrder, POLineItem, Vendor
from app.schemas.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from app.schemas.output import ActivityType, BatchSummary
from app.seed import RECEIVERS, build_agent_activities, generate_goods_receipt
from app.store import InvoiceRepository


NOW = datetime(2024, 6, 1)


@pytest.fixture
def vendor():
    return Vendor(name="Facilities Management Co", category="Facilities")


@pytest.fixture
def sample_po(vendor):
    return PurchaseOrder(
        po_number="PO-2024-1000",
        vendor_id=vendor.id,
        created_date=datetime(2024, 4, 1),
        approval_date=datetime(2024, 4, 2),
        line_items=[
            POLineItem(line_number=1, item_code="HVAC-MAINT", description="HVAC Maintenance", quantity_ordered=20,
                       unit_price=450.0, gl_account_code="8100-Facilities-Maintenance", department="Operations", cost_center="CC-300"),
            POLineItem(line_number=2, item_code="SUPPLIES-CLEAN", description="Cleaning Supplies Bundle", quantity_ordered=8,
                       unit_price=299.99, gl_account_code="8200-Facilities-Supplies", department="Operations", cost_center="CC-300"),
        ],
    )


def make_invoice(vendor, line_count):
    return Invoice(
        id="inv-1",
        invoice_number="INV-2024-1000",
        vendor_id=vendor.id,
        invoice_date=NOW,
        received_date=NOW,
        due_date=NOW,
        payment_terms="Net 30",
        amount=10.0,
        status=InvoiceStatus.PENDING_APPROVAL,
        line_items=[
            InvoiceLineItem(line_number=i, item_code="X", description="X", quantity=1, unit_price=10.0,
                            total_amount=10.0, tax_rate=0.0, tax_amount=0.0, gl_account_code="9100-Office-Supplies",
                            department="Finance", cost_center="CC-400")
            for i in range(1, line_count + 1)
        ],
    )


class TestGoodsReceipts:
    """Test receipt generation and storage."""

    def test_receipt_quantities_within_bounds(self, sample_po):
        receipt = generate_goods_receipt(sample_po, random.Random(4))

        assert receipt.po_id == sample_po.id
        assert receipt.received_by in RECEIVERS
        assert receipt.status == "completed"
        assert 7 <= (receipt.receipt_date - sample_po.approval_date).days <= 20
        assert [line.po_line_item_id for line in receipt.line_items] == [p.id for p in sample_po.line_items]
        for line, po_line in zip(receipt.line_items, sample_po.line_items):
            assert 0.95 * po_line.quantity_ordered <= line.quantity_received < 1.05 * po_line.quantity_ordered
            assert line.condition == "good"

    def test_unapproved_po_gets_no_receipt(self, sample_po):
        unapproved = sample_po.model_copy(update={"approval_date": None})
        assert generate_goods_receipt(unapproved, random.Random(4)) is None

    def test_receipt_updates_po_lines(self, vendor, sample_po):
        repo = InvoiceRepository()
        repo.add_vendor(vendor)
        repo.add_purchase_order(sample_po)

        receipt = repo.add_goods_receipt(generate_goods_receipt(sample_po, random.Random(9)))

        stored_po = repo.get_purchase_order(sample_po.id)
        for line, po_line in zip(receipt.line_items, stored_po.line_items):
            assert po_line.quantity_received == line.quantity_received
        assert repo.receipts_for(sample_po.id) == [receipt]

    def test_receipt_for_unknown_po_rejected(self, sample_po):
        repo = InvoiceRepository()
        with pytest.raises(KeyError):
            repo.add_goods_receipt(generate_goods_receipt(sample_po, random.Random(1)))

    def test_receipt_for_foreign_line_rejected(self, vendor, sample_po):
        repo = InvoiceRepository()
        repo.add_vendor(vendor)
        repo.add_purchase_order(sample_po)

        receipt = GoodsReceipt(
            po_id=sample_po.id,
            receipt_date=NOW,
            received_by="Warehouse Team",
            line_items=[GoodsReceiptLine(po_line_item_id="not-a-line", quantity_received=1)],
        )
        with pytest.raises(KeyError):
            repo.add_goods_receipt(receipt)


class TestAgentActivities:
    """Test the activity feed built for each seeded invoice."""

    def test_processing_and_matching_entries(self, vendor):
        rng = Mock()
        rng.random.return_value = 0.5

        activities = build_agent_activities(make_invoice(vendor, 3), rng)

        assert [a.activity_type for a in activities] == [
            ActivityType.PROCESSING_STARTED,
            ActivityType.LINE_MATCHING,
        ]
        assert activities[0].confidence_level == 1.0
        assert activities[0].description == "Started processing invoice INV-2024-1000"
        assert activities[1].confidence_level == 0.85
        assert activities[1].description == "Matching 3 line items to PO"
        assert all(a.invoice_id == "inv-1" for a in activities)

    def test_pattern_detected_when_draw_is_high(self, vendor):
        rng = Mock()
        rng.random.return_value = 0.95

        activities = build_agent_activities(make_invoice(vendor, 1), rng)

        assert activities[-1].activity_type == ActivityType.PATTERN_DETECTED
        assert activities[-1].confidence_level == 0.92

    def test_no_matching_entry_without_lines(self, vendor):
        rng = Mock()
        rng.random.return_value = 0.1

        activities = build_agent_activities(make_invoice(vendor, 0), rng)
        assert [a.activity_type for a in activities] == [ActivityType.PROCESSING_STARTED]

    def test_activities_for_unknown_invoice_rejected(self, vendor):
        rng = Mock()
        rng.random.return_value = 0.1

        with pytest.raises(KeyError):
            InvoiceRepository().save_agent_activities(build_agent_activities(make_invoice(vendor, 1), rng))


@pytest.mark.asyncio
async def test_seed_batch_creates_receipts_and_activities():
    repo = InvoiceRepository()
    summary = await run_seed_batch(repo, po_count=30, seed=42, now=NOW)

    assert summary.goods_receipts_created == 20
    assert len(repo.goods_receipts) == 20

    orders = list(repo.purchase_orders.values())
    for po in orders[:20]:
        assert len(repo.receipts_for(po.id)) == 1
        assert all(line.quantity_received is not None for line in po.line_items)
    for po in orders[20:]:
        assert repo.receipts_for(po.id) == []
        assert all(line.quantity_received is None for line in po.line_items)

    assert summary.agent_activities_created == len(repo.agent_activities)
    for invoice in repo.invoices.values():
        kinds = [a.activity_type for a in repo.activities_for(invoice.id)]
        assert kinds[:2] == [ActivityType.PROCESSING_STARTED, ActivityType.LINE_MATCHING]


@pytest.mark.asyncio
async def test_reseeding_clears_receipts_and_activities():
    repo = InvoiceRepository()
    await run_seed_batch(repo, po_count=30, seed=42, now=NOW)
    summary = await run_seed_batch(repo, po_count=5, seed=1, now=NOW)

    assert len(repo.goods_receipts) == summary.goods_receipts_created == 5
    assert len(repo.agent_activities) == summary.agent_activities_created


def test_summary_schema_example():
    example = BatchSummary.model_json_schema()["example"]
    assert example["goods_receipts_created"] == 20
    assert BatchSummary(**example).invoices_created == 30


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
