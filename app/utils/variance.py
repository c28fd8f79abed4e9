"""
Variance calculation utilities.
Compare what a PO line ordered against what an invoice line bills.
"""

from typing import Iterable, Tuple

from app.exceptions import DivideByZeroError


def ordered_total(ordered_qty: float, ordered_price: float) -> float:
    """Total committed on the PO line."""
    return ordered_qty * ordered_price


def calculate_variance(
    ordered_qty: float,
    ordered_price: float,
    actual_qty: float,
    actual_price: float,
) -> Tuple[float, float]:
    """
    Calculate the variance between an ordered and an invoiced line.

    Args:
        ordered_qty: Quantity on the PO line
        ordered_price: Unit price on the PO line
        actual_qty: Invoiced quantity
        actual_price: Invoiced unit price

    Returns:
        (variance_amount, variance_percentage)
        - variance_amount: actual total minus ordered total
        - variance_percentage: signed, relative to the ordered total

    Raises:
        DivideByZeroError: if the ordered total is zero
    """
    expected = ordered_total(ordered_qty, ordered_price)
    if expected == 0:
        raise DivideByZeroError(
            f"Ordered total is zero (quantity={ordered_qty}, unit price={ordered_price})"
        )

    variance_amount = actual_qty * actual_price - expected
    return variance_amount, variance_amount / expected * 100


def exceeds_threshold(variance_percentage: float, threshold: float) -> bool:
    """Compare the magnitude of a variance against a percentage threshold."""
    return abs(variance_percentage) > threshold


def max_variance_percentage(percentages: Iterable[float]) -> float:
    """Largest absolute variance percentage, 0.0 when there is none."""
    return max((abs(p) for p in percentages), default=0.0)
