"""
Demo reference data and generators for purchase orders, goods receipts and activity feeds.
"""

import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from app.schemas.po import GoodsReceipt, GoodsReceiptLine, PurchaseOrder, POLineItem, Vendor
from app.schemas.invoice import Invoice
from app.schemas.output import ActivityType, AgentActivity
from app.schemas.scenario import Scenario, COMPLEX_SCENARIOS
from app.agents.scenario_classifier import draw_factor
from app.config import get_config, Config


config = get_config()


VENDORS = [
    {
        "name": "TechCorp Solutions",
        "category": "IT Hardware",
        "trust_level": "high",
        "average_processing_time": 2,
        "payment_terms": "Net 30",
        "tax_id": "TC-123456",
        "preferred_payment_method": "ACH",
        "typical_variance_pattern": "2-3% over-delivery common",
    },
    {
        "name": "Office Supplies Plus",
        "category": "Office Supplies",
        "trust_level": "high",
        "average_processing_time": 1,
        "payment_terms": "Net 15",
        "tax_id": "OS-789012",
        "preferred_payment_method": "Check",
        "typical_variance_pattern": "Exact matches typical",
    },
    {
        "name": "Global Marketing Agency",
        "category": "Marketing Services",
        "trust_level": "medium",
        "average_processing_time": 5,
        "payment_terms": "Net 45",
        "tax_id": "GM-345678",
        "preferred_payment_method": "Wire",
        "typical_variance_pattern": "Bundled services common",
    },
    {
        "name": "Facilities Management Co",
        "category": "Facilities",
        "trust_level": "high",
        "average_processing_time": 3,
        "payment_terms": "Net 30",
        "tax_id": "FM-901234",
        "preferred_payment_method": "ACH",
        "typical_variance_pattern": "Monthly service variations",
    },
    {
        "name": "Cloud Services Inc",
        "category": "IT Services",
        "trust_level": "high",
        "average_processing_time": 1,
        "payment_terms": "Net 30",
        "tax_id": "CS-567890",
        "preferred_payment_method": "Credit Card",
        "typical_variance_pattern": "Usage-based billing",
    },
]

GL_ACCOUNTS = [
    "6100-Marketing-Advertising",
    "6200-Marketing-Events",
    "7100-IT-Hardware",
    "7200-IT-Software",
    "7300-IT-Services",
    "8100-Facilities-Maintenance",
    "8200-Facilities-Supplies",
    "9100-Office-Supplies",
    "9200-Office-Equipment",
]

DEPARTMENTS = ["Marketing", "IT", "Operations", "Finance", "HR", "Sales"]
COST_CENTERS = ["CC-100", "CC-200", "CC-300", "CC-400", "CC-500"]
REQUESTERS = ["John Smith", "Jane Doe", "Mike Johnson", "Sarah Williams"]
APPROVERS = ["Alice Johnson", "Bob Smith", "Carol Davis"]
RECEIVERS = ["Warehouse Team", "Receiving Dept", "John Receiver"]
RECEIPT_DAMAGE_NOTE = "Minor packaging damage, contents OK"
PATTERN_DETECTED_NOTE = "Detected typical variance pattern for this vendor"

ITEMS_BY_CATEGORY: Dict[str, List[dict]] = {
    "IT Hardware": [
        {"item_code": "LAPTOP-001", "description": "Business Laptop - Intel i7", "unit_price": 1299.99, "gl_account_code": "7100-IT-Hardware"},
        {"item_code": "MONITOR-001", "description": '27" 4K Monitor', "unit_price": 449.99, "gl_account_code": "7100-IT-Hardware"},
        {"item_code": "DOCK-001", "description": "USB-C Docking Station", "unit_price": 199.99, "gl_account_code": "7100-IT-Hardware"},
        {"item_code": "KEYBOARD-001", "description": "Wireless Keyboard & Mouse Set", "unit_price": 79.99, "gl_account_code": "7100-IT-Hardware"},
    ],
    "Office Supplies": [
        {"item_code": "PAPER-A4", "description": "A4 Paper (500 sheets)", "unit_price": 5.99, "gl_account_code": "9100-Office-Supplies"},
        {"item_code": "PEN-BLUE", "description": "Blue Ballpoint Pens (12 pack)", "unit_price": 8.99, "gl_account_code": "9100-Office-Supplies"},
        {"item_code": "FOLDER-HANG", "description": "Hanging Folders (25 pack)", "unit_price": 15.99, "gl_account_code": "9100-Office-Supplies"},
        {"item_code": "STAPLER-HD", "description": "Heavy Duty Stapler", "unit_price": 24.99, "gl_account_code": "9100-Office-Supplies"},
    ],
    "Marketing Services": [
        {"item_code": "DESIGN-LOGO", "description": "Logo Design Services", "unit_price": 2500.00, "gl_account_code": "6100-Marketing-Advertising"},
        {"item_code": "CAMPAIGN-SOCIAL", "description": "Social Media Campaign", "unit_price": 5000.00, "gl_account_code": "6100-Marketing-Advertising"},
        {"item_code": "EVENT-BOOTH", "description": "Trade Show Booth Design", "unit_price": 8000.00, "gl_account_code": "6200-Marketing-Events"},
        {"item_code": "CONTENT-BLOG", "description": "Blog Content Creation (10 posts)", "unit_price": 1500.00, "gl_account_code": "6100-Marketing-Advertising"},
    ],
    "Facilities": [
        {"item_code": "CLEAN-MONTHLY", "description": "Monthly Cleaning Service", "unit_price": 1200.00, "gl_account_code": "8100-Facilities-Maintenance"},
        {"item_code": "HVAC-MAINT", "description": "HVAC Maintenance", "unit_price": 450.00, "gl_account_code": "8100-Facilities-Maintenance"},
        {"item_code": "SUPPLIES-CLEAN", "description": "Cleaning Supplies Bundle", "unit_price": 299.99, "gl_account_code": "8200-Facilities-Supplies"},
        {"item_code": "REPAIR-ELECTRIC", "description": "Electrical Repairs", "unit_price": 850.00, "gl_account_code": "8100-Facilities-Maintenance"},
    ],
    "IT Services": [
        {"item_code": "CLOUD-COMPUTE", "description": "Cloud Computing - Standard", "unit_price": 499.99, "gl_account_code": "7300-IT-Services"},
        {"item_code": "CLOUD-STORAGE", "description": "Cloud Storage - 1TB", "unit_price": 99.99, "gl_account_code": "7300-IT-Services"},
        {"item_code": "LICENSE-OFFICE", "description": "Office 365 License", "unit_price": 29.99, "gl_account_code": "7200-IT-Software"},
        {"item_code": "SUPPORT-PREMIUM", "description": "Premium Support Hours", "unit_price": 150.00, "gl_account_code": "7300-IT-Services"},
    ],
}

# Cumulative share of the batch per scenario; the remainder gets complex scenarios
SCENARIO_MIX = [
    (Scenario.PERFECT, 0.40),
    (Scenario.QUANTITY_VARIANCE, 0.60),
    (Scenario.PRICE_VARIANCE, 0.75),
    (Scenario.DESCRIPTION_MISMATCH, 0.85),
]


def build_vendors() -> List[Vendor]:
    return [Vendor(**data) for data in VENDORS]


def generate_po_line_items(category: str, rng: random.Random, now: Optional[datetime] = None) -> List[POLineItem]:
    """Between one and four catalog lines with quantities of 1-20."""
    now = now or datetime.utcnow()
    items = ITEMS_BY_CATEGORY.get(category, ITEMS_BY_CATEGORY["Office Supplies"])
    line_count = rng.randint(1, 4)

    lines = []
    for line_number in range(1, line_count + 1):
        item = rng.choice(items)
        lines.append(POLineItem(
            line_number=line_number,
            quantity_ordered=rng.randint(1, 20),
            department=rng.choice(DEPARTMENTS),
            cost_center=rng.choice(COST_CENTERS),
            expected_delivery_date=now + timedelta(days=rng.randint(0, 29)),
            **item,
        ))
    return lines


def generate_purchase_orders(
    vendors: List[Vendor],
    count: int,
    rng: random.Random,
    now: Optional[datetime] = None,
) -> List[PurchaseOrder]:
    """Approved POs numbered PO-2024-1000 onwards, created 30-89 days ago."""
    if not vendors:
        raise ValueError("At least one vendor is required to generate purchase orders")
    now = now or datetime.utcnow()

    orders = []
    for i in range(count):
        vendor = rng.choice(vendors)
        created = now - timedelta(days=rng.randint(0, 59) + 30)
        orders.append(PurchaseOrder(
            po_number=f"PO-2024-{i + 1000:04d}",
            vendor_id=vendor.id,
            created_date=created,
            approval_date=created + timedelta(days=1),
            requester=rng.choice(REQUESTERS),
            department=rng.choice(DEPARTMENTS),
            line_items=generate_po_line_items(vendor.category, rng, now),
        ))
    return orders


def assign_scenarios(count: int, rng: random.Random) -> List[Scenario]:
    """Scenario per PO position: fixed leading shares, then random complex scenarios."""
    scenarios = []
    for position in range(count):
        for scenario, cumulative_share in SCENARIO_MIX:
            if position < int(count * cumulative_share):
                scenarios.append(scenario)
                break
        else:
            scenarios.append(rng.choice(COMPLEX_SCENARIOS))
    return scenarios


def invoice_number_for(sequence: int) -> str:
    return f"INV-2024-{sequence + 1000:04d}"


def generate_goods_receipt(
    po: PurchaseOrder,
    rng: random.Random,
    settings: Optional[Config] = None,
) -> Optional[GoodsReceipt]:
    """Receipt 7-20 days after approval with 95-105% of each ordered quantity; None for unapproved POs."""
    settings = settings or config
    if po.approval_date is None:
        return None

    receipt_date = po.approval_date + timedelta(days=rng.randint(7, 20))
    received_by = rng.choice(RECEIVERS)
    lines = [
        GoodsReceiptLine(
            po_line_item_id=po_line.id,
            quantity_received=po_line.quantity_ordered * draw_factor(rng, settings.RECEIVED_QUANTITY_RANGE),
            notes=RECEIPT_DAMAGE_NOTE if rng.random() > 0.9 else None,
        )
        for po_line in po.line_items
    ]
    return GoodsReceipt(po_id=po.id, receipt_date=receipt_date, received_by=received_by, line_items=lines)


def build_agent_activities(
    invoice: Invoice,
    rng: random.Random,
    settings: Optional[Config] = None,
) -> List[AgentActivity]:
    """Activity feed entries for a seeded invoice."""
    settings = settings or config
    activities = [AgentActivity(
        invoice_id=invoice.id,
        activity_type=ActivityType.PROCESSING_STARTED,
        description=f"Started processing invoice {invoice.invoice_number}",
        confidence_level=1.0,
    )]

    if invoice.line_items:
        activities.append(AgentActivity(
            invoice_id=invoice.id,
            activity_type=ActivityType.LINE_MATCHING,
            description=f"Matching {len(invoice.line_items)} line items to PO",
            confidence_level=settings.FUZZY_MATCH_CONFIDENCE,
        ))

    if rng.random() > 0.7:
        activities.append(AgentActivity(
            invoice_id=invoice.id,
            activity_type=ActivityType.PATTERN_DETECTED,
            description=PATTERN_DETECTED_NOTE,
            confidence_level=0.92,
        ))
    return activities
