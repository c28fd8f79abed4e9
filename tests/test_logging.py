"""
Tests for structured log records.
"""

import json
import logging
import random
import pytest
from datetime import datetime
from unittest.mock import Mock, patch

from app.main import run_batch
from app.schemas.po import PurchaseOrder, POLineItem, Vendor
from app.schemas.scenario import Scenario
from app.store import InvoiceRepository
from app.utils.logging import StructuredFormatter, log_exception_raised, log_unit_skipped


def test_unit_skipped_record():
    logger = Mock()
    log_unit_skipped(logger, "PO-2024-1007", "bundled_items", "EmptyLineItemSetError", "needs 2 lines")

    message = logger.error.call_args.args[0]
    extra = logger.error.call_args.kwargs["extra"]["extra"]
    assert message == "Skipping PO-2024-1007 (bundled_items): EmptyLineItemSetError: needs 2 lines"
    assert extra["type"] == "unit_skipped"
    assert extra["po_number"] == "PO-2024-1007"
    assert extra["scenario"] == "bundled_items"
    assert extra["error_type"] == "EmptyLineItemSetError"


def test_exception_record_names_purchase_order():
    logger = Mock()
    log_exception_raised(logger, "PO-2024-1012", "price_variance", "price_mismatch", "medium",
                         "Unit price differs from PO", 0.85)

    extra = logger.warning.call_args.kwargs["extra"]["extra"]
    assert "PO-2024-1012" in logger.warning.call_args.args[0]
    assert extra["po_number"] == "PO-2024-1012"
    assert extra["scenario"] == "price_variance"
    assert extra["exception_type"] == "price_mismatch"
    assert extra["confidence"] == 0.85


def test_formatter_merges_extra_fields():
    record = logging.LogRecord("app.main", logging.ERROR, __file__, 1, "Skipping PO-2024-1007", None, None)
    record.extra = {"type": "unit_skipped", "po_number": "PO-2024-1007"}

    payload = json.loads(StructuredFormatter().format(record))
    assert payload["level"] == "ERROR"
    assert payload["message"] == "Skipping PO-2024-1007"
    assert payload["po_number"] == "PO-2024-1007"


@pytest.mark.asyncio
async def test_batch_logs_skipped_unit():
    vendor = Vendor(name="Office Supplies Plus", category="Office Supplies")
    repo = InvoiceRepository()
    repo.add_vendor(vendor)
    po = repo.add_purchase_order(PurchaseOrder(
        po_number="PO-2024-6000",
        vendor_id=vendor.id,
        created_date=datetime(2024, 3, 1),
        approval_date=datetime(2024, 3, 2),
        line_items=[
            POLineItem(line_number=1, item_code="PAPER-A4", description="A4 Paper Case", quantity_ordered=5,
                       unit_price=40.0, gl_account_code="9100-Office-Supplies", department="Finance", cost_center="CC-400"),
        ],
    ))

    with patch("app.main.log_unit_skipped") as mock_log:
        summary = await run_batch(repo, [(po, Scenario.BUNDLED_ITEMS)], random.Random(1))

    assert len(summary.skipped) == 1
    args = mock_log.call_args.args
    assert args[1:4] == ("PO-2024-6000", "bundled_items", "EmptyLineItemSetError")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
