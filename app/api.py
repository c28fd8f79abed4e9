"""
FastAPI REST endpoints for the invoice matching demo.
Can be run with: uvicorn app.api:app --reload
"""

import random
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.main import generate_invoice_for_po, persist_result, run_seed_batch
from app.schemas.invoice import InvoiceStatus
from app.services.query import QueryService
from app.services.queue_status import QueueCountStore
from app.store import InvoiceRepository
from app.exceptions import MatchingError
from app.utils.logging import setup_logging
from app.config import get_config

logger = setup_logging(__name__)
config = get_config()

app = FastAPI(
    title="Invoice Matching API",
    description="Invoice to purchase order matching and variance demo",
    version="1.0.0",
    debug=config.API_DEBUG,
)

repository = InvoiceRepository()
queue_store = QueueCountStore()
query_service = QueryService(repository)


class SeedRequest(BaseModel):
    seed: Optional[int] = None
    po_count: Optional[int] = None


class QueryRequest(BaseModel):
    query: str


class StatusUpdate(BaseModel):
    status: InvoiceStatus


class GenerateRequest(BaseModel):
    po_number: str
    scenario: str
    seed: Optional[int] = None
    duplicate_suspected: bool = False


@app.exception_handler(MatchingError)
async def matching_error_handler(request, exc: MatchingError):
    return JSONResponse(
        content={"error": type(exc).__name__, "message": str(exc)},
        status_code=422,
    )


def _get_invoice_or_404(invoice_number: str):
    invoice = repository.find_invoice_by_number(invoice_number, exact=True)
    if invoice is None:
        raise HTTPException(status_code=404, detail=f"Invoice {invoice_number} not found")
    return invoice


@app.post("/seed")
async def seed_endpoint(request: Optional[SeedRequest] = None):
    """
    Reset the store and generate demo vendors, purchase orders and invoices.

    Returns:
        Batch summary, including any skipped (purchase order, scenario) units
    """
    request = request or SeedRequest()
    summary = await run_seed_batch(repository, po_count=request.po_count, seed=request.seed)
    queue_store.reconcile(repository.count_awaiting_action(), force=True)
    return summary.model_dump(mode="json")


@app.post("/invoices/generate")
async def generate_invoice_endpoint(request: GenerateRequest):
    """
    Generate and store one invoice for an existing purchase order.

    Unknown scenarios and unusable purchase orders return 422.
    """
    po = repository.find_purchase_order_by_number(request.po_number)
    if po is None:
        raise HTTPException(status_code=404, detail=f"Purchase order {request.po_number} not found")

    result = await generate_invoice_for_po(
        po,
        repository.get_vendor(po.vendor_id),
        request.scenario,
        repository.next_invoice_number(),
        rng=random.Random(request.seed),
        duplicate_suspected=request.duplicate_suspected,
    )
    invoice = persist_result(repository, result)
    queue_store.apply_optimistic(1)
    return {
        "invoice": invoice.model_dump(mode="json"),
        "exception": result.exception.model_dump(mode="json") if result.exception else None,
        "agent_reasoning": result.agent_reasoning,
    }


@app.get("/invoices")
async def list_invoices_endpoint(status: Optional[InvoiceStatus] = None, has_issues: Optional[bool] = None):
    invoices = repository.list_invoices(status=status, has_issues=has_issues)
    return [invoice.model_dump(mode="json") for invoice in invoices]


@app.get("/invoices/{invoice_number}")
async def get_invoice_endpoint(invoice_number: str):
    invoice = _get_invoice_or_404(invoice_number)
    return {
        "invoice": invoice.model_dump(mode="json"),
        "exceptions": [e.model_dump(mode="json") for e in repository.exceptions_for(invoice.id)],
        "agent_activities": [a.model_dump(mode="json") for a in repository.activities_for(invoice.id)],
    }


@app.get("/invoices/{invoice_number}/matching")
async def get_invoice_matching_endpoint(invoice_number: str):
    invoice = _get_invoice_or_404(invoice_number)
    return [activity.model_dump(mode="json") for activity in repository.matching_for(invoice)]


@app.post("/invoices/{invoice_number}/status")
async def update_invoice_status_endpoint(invoice_number: str, update: StatusUpdate):
    """Move an invoice along the approval workflow."""
    invoice = _get_invoice_or_404(invoice_number)
    was_waiting = invoice.status.awaiting_action
    invoice = repository.update_status(invoice.id, update.status)

    if was_waiting and not invoice.status.awaiting_action:
        queue_store.apply_optimistic(-1)
    elif not was_waiting and invoice.status.awaiting_action:
        queue_store.apply_optimistic(1)

    logger.info(f"Invoice {invoice.invoice_number} moved to {invoice.status.value}")
    return invoice.model_dump(mode="json")


@app.get("/purchase-orders/{po_number}")
async def get_purchase_order_endpoint(po_number: str):
    """Purchase order with its goods receipts."""
    po = repository.find_purchase_order_by_number(po_number)
    if po is None:
        raise HTTPException(status_code=404, detail=f"Purchase order {po_number} not found")
    return {
        "purchase_order": po.model_dump(mode="json"),
        "goods_receipts": [r.model_dump(mode="json") for r in repository.receipts_for(po.id)],
    }


@app.get("/exceptions")
async def list_exceptions_endpoint():
    return [e.model_dump(mode="json") for e in repository.exceptions.values()]


@app.post("/query")
async def query_endpoint(request: QueryRequest):
    """Answer a plain-text question about stored invoices."""
    return query_service.process_query(request.query).model_dump(mode="json")


@app.get("/queue")
async def queue_endpoint(force: bool = False):
    """Queue count for the status bar, reconciled against the store."""
    count = queue_store.reconcile(repository.count_awaiting_action(), force=force)
    return {
        "queue": count,
        "confirmed": queue_store.confirmed_count,
        "optimistic": queue_store.has_pending_overlay,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/config")
async def get_config_endpoint():
    """Get current matching configuration."""
    return {
        "quantity_variance_range": list(config.QUANTITY_VARIANCE_RANGE),
        "price_variance_range": list(config.PRICE_VARIANCE_RANGE),
        "quantity_issue_threshold": config.QUANTITY_ISSUE_THRESHOLD,
        "price_issue_threshold": config.PRICE_ISSUE_THRESHOLD,
        "high_severity_threshold": config.HIGH_SEVERITY_THRESHOLD,
        "tax_rate": config.TAX_RATE,
        "fuzzy_match_confidence": config.FUZZY_MATCH_CONFIDENCE,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
