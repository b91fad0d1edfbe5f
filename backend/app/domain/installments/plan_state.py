"""
Installment plan derived state.

Pure functions: every plan mutation ends with derive_state/apply_state so
total_paid, remaining_amount, next_due_date and status always agree with
the schedule.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, ZERO
from backend.app.models.finance_enums import PlanStatus

SECONDS_PER_DAY = 86400

AGING_BUCKETS = ("current", "0-30", "31-60", "61-90", "90+")


@dataclass
class PlanState:
    total_paid: Decimal
    remaining_amount: Decimal
    next_due_date: Optional[datetime]
    status: PlanStatus


def derive_state(plan, now: Optional[datetime] = None) -> PlanState:
    """
    Recompute a plan's derived fields from its schedule.

    total_paid counts paid installments plus the down payment once paid.
    next_due_date is the earliest unpaid installment due at or after `now`.
    CANCELLED and DEFAULTED are terminal and kept as is; otherwise the plan
    is COMPLETED once every installment and the down payment are paid.
    """
    now = as_naive_utc(now) or datetime.utcnow()
    installments = list(plan.installments)

    total_paid = sum((money(i.paid_amount) for i in installments if i.paid), ZERO)
    if plan.down_payment_paid:
        total_paid += money(plan.down_payment)

    upcoming = [
        as_naive_utc(i.due_date) for i in installments
        if not i.paid and as_naive_utc(i.due_date) >= now
    ]
    next_due_date = min(upcoming) if upcoming else None

    status = plan.status or PlanStatus.ACTIVE
    if status not in (PlanStatus.CANCELLED, PlanStatus.DEFAULTED):
        fully_paid = bool(installments) and all(i.paid for i in installments)
        status = PlanStatus.COMPLETED if fully_paid and plan.down_payment_paid else PlanStatus.ACTIVE

    return PlanState(
        total_paid=total_paid,
        remaining_amount=money(plan.total_amount) - total_paid,
        next_due_date=next_due_date,
        status=status,
    )


def apply_state(plan, now: Optional[datetime] = None) -> PlanState:
    state = derive_state(plan, now)
    plan.total_paid = state.total_paid
    plan.remaining_amount = state.remaining_amount
    plan.next_due_date = state.next_due_date
    plan.status = state.status
    return state


def is_overdue(installment, now: datetime) -> bool:
    return not installment.paid and as_naive_utc(installment.due_date) < as_naive_utc(now)


def days_overdue(due_date: datetime, now: datetime) -> int:
    """Whole days elapsed since the due date (negative when not yet due)."""
    elapsed = as_naive_utc(now) - as_naive_utc(due_date)
    return math.floor(elapsed.total_seconds() / SECONDS_PER_DAY)


def aging_bucket(due_date: datetime, now: datetime) -> str:
    if as_naive_utc(due_date) >= as_naive_utc(now):
        return "current"
    days = days_overdue(due_date, now)
    if days <= 30:
        return "0-30"
    if days <= 60:
        return "31-60"
    if days <= 90:
        return "61-90"
    return "90+"
