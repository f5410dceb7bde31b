"""Stock rules that depend only on numbers: movement direction, health and alert priority.

Health is never stored. It is recomputed from quantity and thresholds on every read.
"""

import math

MOVEMENT_TYPES = ("IN", "OUT", "ADJUSTMENT", "TRANSFER")
INBOUND_TYPES = frozenset({"IN", "ADJUSTMENT"})
OUTBOUND_TYPES = frozenset({"OUT", "TRANSFER"})

# Quantities are stored in 32-bit integer columns.
MAX_QUANTITY = 2_147_483_647

OUT_OF_STOCK = "OUT_OF_STOCK"
LOW_STOCK = "LOW_STOCK"
NORMAL = "NORMAL"
OVER_STOCK = "OVER_STOCK"

PRIORITY_CRITICAL = ("Critical", "red")
PRIORITY_WARNING = ("Warning", "orange")
PRIORITY_LOW = ("Low", "yellow")


def signed_delta(movement_type: str, quantity: int) -> int:
    if movement_type in INBOUND_TYPES:
        return quantity
    if movement_type in OUTBOUND_TYPES:
        return -quantity
    raise ValueError(f"Unknown movement type: {movement_type}")


def next_quantity(current: int, movement_type: str, quantity: int) -> int:
    """May return a negative value; callers reject it as insufficient stock."""
    return current + signed_delta(movement_type, quantity)


def classify_stock(quantity: int, min_stock: int, max_stock: int) -> str:
    if quantity == 0:
        return OUT_OF_STOCK
    if quantity <= min_stock:
        return LOW_STOCK
    if quantity >= max_stock:
        return OVER_STOCK
    return NORMAL


def is_low_stock(quantity: int, min_stock: int) -> bool:
    return quantity <= min_stock


def alert_priority(quantity: int, min_stock: int) -> tuple[str, str]:
    """(priority, colour) for an item already at or below its minimum."""
    if quantity == 0:
        return PRIORITY_CRITICAL
    if quantity <= min_stock * 0.5:
        return PRIORITY_CRITICAL
    if quantity <= min_stock * 0.8:
        return PRIORITY_WARNING
    return PRIORITY_LOW


def dashboard_urgency(quantity: int, min_stock: int) -> str:
    if quantity == 0:
        return "critical"
    if quantity <= math.floor(min_stock * 0.5):
        return "high"
    return "medium"


def shortage(quantity: int, min_stock: int) -> int:
    return max(0, min_stock - quantity)


def stock_message(quantity: int) -> str:
    if quantity == 0:
        return "Out of stock"
    return f"Only {quantity} left in stock"
