"""
Invoice Matching Scenario Engine
"""

__version__ = "1.0.0"
__author__ = "AI Team"
__description__ = "Invoice to purchase order matching and variance classification demo"

from app.main import generate_invoice_for_po, run_batch, run_seed_batch
from app.state import GenerationState
from app.schemas.output import BatchSummary, GenerationResult

__all__ = [
    "generate_invoice_for_po",
    "run_batch",
    "run_seed_batch",
    "GenerationState",
    "BatchSummary",
    "GenerationResult",
]
