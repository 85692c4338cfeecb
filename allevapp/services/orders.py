"""Order confirmation status rules and grouping."""
import logging
from typing import Dict, Any, List

from allevapp.errors import InvalidTransitionError, ValidationError

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "confirmed", "delivered", "cancelled")

ALLOWED_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("delivered", "cancelled"),
    "delivered": (),
    "cancelled": (),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, ())


def change_order_status(order, new_status: str) -> None:
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status '{new_status}'")
    if not can_transition(order.status, new_status):
        raise InvalidTransitionError(f"Cannot move order from '{order.status}' to '{new_status}'")
    logger.info(f"Order {order.order_number}: {order.status} -> {new_status}")
    order.status = new_status


def group_by_company(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Group order rows by company, with count and total amount per group"""
    groups: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        group = groups.setdefault(order["company"], {
            "company": order["company"],
            "count": 0,
            "total_amount": 0.0,
            "orders": [],
        })
        group["count"] += 1
        group["total_amount"] += order.get("total_amount") or 0
        group["orders"].append(order)
    return sorted(groups.values(), key=lambda g: g["company"])
