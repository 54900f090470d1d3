"""Payment ledger and the settlement status derived from it."""

from __future__ import annotations

from .domain import Order, PaymentStatus


def amount_paid(order: Order) -> int:
    return sum(payment.amount for payment in order.payments)


def balance_remaining(order: Order, total: int) -> int:
    """Outstanding amount; overpayment leaves a zero balance, never a negative one."""

    return max(0, total - amount_paid(order))


def settlement_status(paid: int, total: int) -> PaymentStatus:
    if paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.UNPAID


__all__ = ["amount_paid", "balance_remaining", "settlement_status"]
