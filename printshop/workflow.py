"""Order workflow and item production state machines.

Claiming sets the workflow status and the assigned worker together, while
releasing only clears the worker. The two fields are stored independently
and neither is ever inferred from the other.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Optional

from .domain import (
    InvalidTransitionError,
    Order,
    OrderItem,
    ProductionStatus,
    WorkflowStatus,
)


def claim_order(order: Order, worker_id: str) -> Order:
    """Assign ``worker_id`` to an unclaimed order and mark it in progress."""

    if not worker_id:
        raise InvalidTransitionError("A worker is required to claim an order")
    if order.assigned_worker_id is not None:
        raise InvalidTransitionError(
            f"Order {order.invoice_number!r} is already claimed by {order.assigned_worker_id!r}"
        )
    order.assigned_worker_id = worker_id
    order.workflow_status = WorkflowStatus.IN_PROGRESS
    return order


def release_order(order: Order, worker_id: Optional[str] = None) -> Order:
    """Clear the assigned worker; the workflow status is left untouched.

    When ``worker_id`` is given only that worker may release the job.
    """

    if order.assigned_worker_id is None:
        raise InvalidTransitionError(f"Order {order.invoice_number!r} has no assigned worker")
    if worker_id is not None and worker_id != order.assigned_worker_id:
        raise InvalidTransitionError(
            f"Order {order.invoice_number!r} is assigned to {order.assigned_worker_id!r}"
        )
    order.assigned_worker_id = None
    return order


def advance_production(item: OrderItem, target: ProductionStatus) -> OrderItem:
    """Move an item forward in production; backward or repeated moves are refused."""

    target = ProductionStatus(target)
    if target.rank <= item.production_status.rank:
        raise InvalidTransitionError(
            f"Cannot move item from {item.production_status.value} to {target.value}"
        )
    item.production_status = target
    return item


def all_items_done(order: Order) -> bool:
    return all(item.production_status == ProductionStatus.DONE for item in order.items)


def items_requiring_processing(orders: Iterable[Order]) -> int:
    return sum(
        1
        for order in orders
        for item in order.items
        if item.production_status != ProductionStatus.DONE
    )


def production_status_counts(orders: Iterable[Order]) -> Dict[ProductionStatus, int]:
    counts: Counter = Counter(
        item.production_status for order in orders for item in order.items
    )
    return {status: counts.get(status, 0) for status in ProductionStatus}


__all__ = [
    "claim_order",
    "release_order",
    "advance_production",
    "all_items_done",
    "items_requiring_processing",
    "production_status_counts",
]
