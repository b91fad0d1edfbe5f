"""
Installment Plan Tests.

Derived plan state, payments, closing a plan and receivables aging buckets.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import ValidationError, NotFoundError, InvalidStateError, AlreadyPaidError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.installments.installment_service import InstallmentService
from backend.app.domain.installments.plan_state import derive_state, aging_bucket, days_overdue
from backend.app.domain.ledger.ledger_service import LedgerService
from backend.app.models.finance_enums import PlanStatus, InstallmentStatus, LedgerAccount

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _installment(no, due, amount, paid=False, paid_amount="0"):
    return SimpleNamespace(
        installment_no=no, due_date=due, amount=Decimal(amount), paid=paid, paid_amount=Decimal(paid_amount)
    )


def _plan(installments, total="1000", down="200", down_paid=False, status=PlanStatus.ACTIVE):
    return SimpleNamespace(
        installments=installments,
        total_amount=Decimal(total),
        down_payment=Decimal(down),
        down_payment_paid=down_paid,
        status=status,
    )


def _schedule(start, count=2, amount="400000"):
    return [{"due_date": start + timedelta(days=30 * n), "amount": amount} for n in range(count)]


# --- Derived state ---

def test_paid_plus_remaining_equals_total():
    plan = _plan([
        _installment(1, NOW - timedelta(days=10), "400", paid=True, paid_amount="400"),
        _installment(2, NOW + timedelta(days=20), "400"),
    ], down_paid=True)
    state = derive_state(plan, NOW)
    assert state.total_paid == Decimal("600")
    assert state.remaining_amount == Decimal("400")
    assert state.total_paid + state.remaining_amount == plan.total_amount
    assert state.next_due_date == NOW + timedelta(days=20)
    assert state.status == PlanStatus.ACTIVE


def test_next_due_date_skips_past_due_installments():
    plan = _plan([
        _installment(1, NOW - timedelta(days=5), "400"),
        _installment(2, NOW + timedelta(days=25), "400"),
        _installment(3, NOW + timedelta(days=55), "400"),
    ])
    assert derive_state(plan, NOW).next_due_date == NOW + timedelta(days=25)


def test_completed_requires_down_payment():
    installments = [_installment(1, NOW, "800", paid=True, paid_amount="800")]
    assert derive_state(_plan(installments), NOW).status == PlanStatus.ACTIVE
    assert derive_state(_plan(installments, down_paid=True), NOW).status == PlanStatus.COMPLETED


def test_terminal_status_is_kept():
    installments = [_installment(1, NOW, "800", paid=True, paid_amount="800")]
    plan = _plan(installments, down_paid=True, status=PlanStatus.CANCELLED)
    assert derive_state(plan, NOW).status == PlanStatus.CANCELLED


# --- Aging ---

@pytest.mark.parametrize("days_late, bucket", [
    (0.5, "0-30"),
    (30, "0-30"),
    (31, "31-60"),
    (45, "31-60"),
    (61, "61-90"),
    (91, "90+"),
])
def test_aging_bucket_boundaries(days_late, bucket):
    assert aging_bucket(NOW - timedelta(days=days_late), NOW) == bucket


def test_not_yet_due_is_current():
    assert aging_bucket(NOW + timedelta(days=3), NOW) == "current"
    assert aging_bucket(NOW, NOW) == "current"


def test_days_overdue_floors_partial_days():
    assert days_overdue(NOW - timedelta(days=30, hours=23), NOW) == 30


# --- Timezone-aware input ---

PKT = timezone(timedelta(hours=5))


def test_as_naive_utc_converts_offsets():
    assert as_naive_utc(datetime(2024, 6, 1, 17, 0, tzinfo=PKT)) == datetime(2024, 6, 1, 12, 0)
    assert as_naive_utc(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)) == NOW
    assert as_naive_utc(NOW) is NOW
    assert as_naive_utc(None) is None


def test_aware_due_dates_compare_in_utc():
    # 16:00 at +05:00 is 11:00 UTC, an hour before NOW
    late = datetime(2024, 6, 1, 16, 0, tzinfo=PKT)
    upcoming = datetime(2024, 6, 20, 9, 0, tzinfo=timezone.utc)
    plan = _plan([_installment(1, late, "400"), _installment(2, upcoming, "400")])

    assert derive_state(plan, NOW).next_due_date == datetime(2024, 6, 20, 9, 0)
    assert derive_state(plan, NOW.replace(tzinfo=timezone.utc)).next_due_date == datetime(2024, 6, 20, 9, 0)
    assert aging_bucket(late, NOW) == "0-30"
    assert aging_bucket(upcoming, NOW) == "current"
    assert days_overdue(late - timedelta(days=31), NOW) == 31


# --- Service ---

@pytest.mark.asyncio
async def test_create_plan_rejects_empty_schedule(db_session, make_plot, people):
    plot = await make_plot()
    with pytest.raises(ValidationError):
        await InstallmentService.create_plan(
            db_session, people["buyer"].id, plot.id, "1000000", "200000", installments=[]
        )


@pytest.mark.asyncio
async def test_create_plan_rejects_down_payment_over_total(db_session, make_plot, people):
    plot = await make_plot()
    with pytest.raises(ValidationError):
        await InstallmentService.create_plan(
            db_session, people["buyer"].id, plot.id, "1000", "2000", installments=_schedule(NOW)
        )


@pytest.mark.asyncio
async def test_create_plan_unknown_plot(db_session, people):
    with pytest.raises(NotFoundError):
        await InstallmentService.create_plan(
            db_session, people["buyer"].id, 404, "1000", "0", installments=_schedule(NOW)
        )


@pytest.mark.asyncio
async def test_pay_installments_until_completed(db_session, make_plot, people):
    plot = await make_plot()
    start = datetime.utcnow() + timedelta(days=30)
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1000000", "200000", installments=_schedule(start)
    )
    plan_id = plan.id
    assert [i.installment_no for i in plan.installments] == [1, 2]
    assert plan.remaining_amount == Decimal("1000000")
    assert plan.next_due_date == start

    plan = await InstallmentService.pay_installment(db_session, plan_id, 1, "400000", payment_reference="TRX-1")
    assert plan.total_paid == Decimal("400000")
    assert plan.remaining_amount == Decimal("600000")
    assert plan.installments[0].status == InstallmentStatus.PAID

    with pytest.raises(AlreadyPaidError):
        await InstallmentService.pay_installment(db_session, plan_id, 1, "400000")

    plan = await InstallmentService.pay_installment(db_session, plan_id, 2, "400000")
    assert plan.status == PlanStatus.ACTIVE  # down payment still due

    plan = await InstallmentService.pay_down_payment(db_session, plan_id)
    assert plan.status == PlanStatus.COMPLETED
    assert plan.total_paid == Decimal("1000000")
    assert plan.remaining_amount == Decimal("0")
    assert plan.next_due_date is None

    with pytest.raises(InvalidStateError):
        await InstallmentService.pay_down_payment(db_session, plan_id)

    balance = await LedgerService.account_balance(db_session, LedgerAccount.BUYER)
    assert balance == Decimal("1000000")


@pytest.mark.asyncio
async def test_short_payment_marks_installment_partial(db_session, make_plot, people):
    plot = await make_plot()
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1000000", "200000", installments=_schedule(NOW)
    )
    plan = await InstallmentService.pay_installment(db_session, plan.id, 2, "150000")
    installment = plan.installments[1]
    assert installment.paid is True
    assert installment.status == InstallmentStatus.PARTIAL
    assert plan.total_paid == Decimal("150000")


@pytest.mark.asyncio
async def test_unknown_installment_number(db_session, make_plot, people):
    plot = await make_plot()
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1000000", "0", installments=_schedule(NOW)
    )
    with pytest.raises(NotFoundError):
        await InstallmentService.pay_installment(db_session, plan.id, 3, "100")


@pytest.mark.asyncio
async def test_cancelled_plan_rejects_payments(db_session, make_plot, people):
    plot = await make_plot()
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1000000", "0", installments=_schedule(NOW)
    )
    plan_id = plan.id

    cancelled = await InstallmentService.cancel(db_session, plan_id)
    assert cancelled.status == PlanStatus.CANCELLED

    with pytest.raises(InvalidStateError):
        await InstallmentService.pay_installment(db_session, plan_id, 1, "400000")
    with pytest.raises(InvalidStateError):
        await InstallmentService.mark_defaulted(db_session, plan_id)


@pytest.mark.asyncio
async def test_overdue_installments_most_overdue_first(db_session, make_plot, people):
    now = datetime.utcnow()
    plot = await make_plot()
    other = await make_plot(plot_no="PL-203")
    buyer_id = people["buyer"].id

    late = await InstallmentService.create_plan(
        db_session, buyer_id, plot.id, "900", "0",
        installments=[{"due_date": now - timedelta(days=45), "amount": "300"},
                      {"due_date": now + timedelta(days=15), "amount": "600"}]
    )
    later = await InstallmentService.create_plan(
        db_session, buyer_id, other.id, "500", "0",
        installments=[{"due_date": now - timedelta(days=95), "amount": "500"}]
    )
    defaulted = await InstallmentService.create_plan(
        db_session, buyer_id, other.id, "500", "0",
        installments=[{"due_date": now - timedelta(days=200), "amount": "500"}]
    )
    await InstallmentService.mark_defaulted(db_session, defaulted.id)

    overdue = await InstallmentService.overdue_installments(db_session, now)
    assert [(o.plan_id, o.installment_no) for o in overdue] == [(later.id, 1), (late.id, 1)]
    assert [o.days_overdue for o in overdue] == [95, 45]


@pytest.mark.asyncio
async def test_plan_accepts_aware_dates(db_session, make_plot, people):
    plot = await make_plot()
    start = (datetime.utcnow() + timedelta(days=30)).replace(microsecond=0)
    schedule = _schedule(start.replace(tzinfo=timezone.utc))
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1000000", "200000", installments=schedule
    )
    plan_id = plan.id
    assert plan.next_due_date == start

    paid_at = datetime(2024, 6, 1, 17, 0, tzinfo=timezone(timedelta(hours=5)))
    plan = await InstallmentService.pay_installment(db_session, plan_id, 1, "400000", paid_date=paid_at)
    assert plan.installments[0].paid_date == datetime(2024, 6, 1, 12, 0)
    assert plan.next_due_date == start + timedelta(days=30)
