"""
Shared utilities and helpers.
"""

import json
from enum import Enum
from typing import Any, Dict
from datetime import datetime


def serialize_for_json(obj: Any) -> Any:
    """Serialize objects that aren't JSON-serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, Enum):
        return obj.value
    elif hasattr(obj, 'model_dump'):  # Pydantic model
        return obj.model_dump(mode="json")
    elif hasattr(obj, '__dict__'):
        return obj.__dict__
    return str(obj)


def dict_to_json_string(data: Dict) -> str:
    """Convert dict to JSON string, handling non-serializable types."""
    return json.dumps(data, default=serialize_for_json, indent=2)


def format_currency(amount: float, currency: str = "USD") -> str:
    """Format an amount the way the dashboard shows it, e.g. $1,234.50."""
    symbol = "$" if currency == "USD" else f"{currency} "
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def payment_term_days(payment_terms: str) -> int:
    """Days until due for terms such as "Net 30"."""
    parts = payment_terms.split()
    if len(parts) != 2 or not parts[1].isdigit():
        raise ValueError(f"Unsupported payment terms: {payment_terms!r}")
    return int(parts[1])
