"""
Report Service.

Read-only views over plans and the ledger: receivables aging, profit &
loss and cash flow. Nothing here writes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_

from backend.app.core.exceptions import ValidationError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, ZERO, HUNDRED, TWOPLACES
from backend.app.domain.installments.plan_state import aging_bucket, AGING_BUCKETS
from backend.app.models.installment_plan import InstallmentPlan
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.finance_enums import (
    PlanStatus, LedgerEntryType, LedgerAccount, LedgerCategory
)


@dataclass
class AgingBucket:
    count: int = 0
    amount: Decimal = ZERO


@dataclass
class AgingReport:
    as_of: datetime
    buckets: Dict[str, AgingBucket] = field(default_factory=dict)
    total_outstanding: Decimal = ZERO


@dataclass
class ProfitAndLoss:
    income_plot_sales: Decimal
    income_buyer_payments: Decimal
    total_income: Decimal
    seller_payments: Decimal
    commissions: Decimal
    partner_profits: Decimal
    expenses: Decimal
    total_costs: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    margin: Decimal


def build_aging(plans, now: datetime) -> AgingReport:
    """Place every unpaid installment of the given plans into an aging bucket."""
    report = AgingReport(as_of=now, buckets={name: AgingBucket() for name in AGING_BUCKETS})
    for plan in plans:
        for installment in plan.installments:
            if installment.paid:
                continue
            bucket = report.buckets[aging_bucket(installment.due_date, now)]
            bucket.count += 1
            bucket.amount += money(installment.amount)
            report.total_outstanding += money(installment.amount)
    return report


# Money in: receipts booked on income and from buyers.
# Money out: payouts to sellers, agents and partners, and expenses.
CASH_INFLOW_ACCOUNTS = (LedgerAccount.INCOME, LedgerAccount.BUYER)
CASH_OUTFLOW_ACCOUNTS = (
    LedgerAccount.SELLER, LedgerAccount.AGENT_COMMISSION, LedgerAccount.PARTNER, LedgerAccount.EXPENSE
)
CASH_FLOW_GROUPINGS = ("day", "week", "month")


@dataclass
class CashFlowPeriod:
    period: str
    inflows: Decimal = ZERO
    outflows: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.inflows - self.outflows


@dataclass
class CashFlowReport:
    group_by: str
    start: Optional[datetime]
    end: Optional[datetime]
    periods: List[CashFlowPeriod] = field(default_factory=list)
    total_inflows: Decimal = ZERO
    total_outflows: Decimal = ZERO

    @property
    def net_cash_flow(self) -> Decimal:
        return self.total_inflows - self.total_outflows


def period_key(when: datetime, group_by: str) -> str:
    """Label for the period a timestamp falls in; weeks are ISO weeks."""
    when = as_naive_utc(when)
    if group_by == "month":
        return f"{when.year}-{when.month:02d}"
    if group_by == "week":
        iso_year, iso_week, _ = when.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return when.date().isoformat()


def is_cash_inflow(entry) -> bool:
    return entry.entry_type == LedgerEntryType.CREDIT and entry.account in CASH_INFLOW_ACCOUNTS


def is_cash_outflow(entry) -> bool:
    return entry.entry_type == LedgerEntryType.DEBIT and entry.account in CASH_OUTFLOW_ACCOUNTS


def build_cash_flow(
    entries: Iterable,
    group_by: str = "month",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> CashFlowReport:
    """Bucket cash-moving entries by period; other entries are ignored."""
    if group_by not in CASH_FLOW_GROUPINGS:
        raise ValidationError(
            f"group_by must be one of {', '.join(CASH_FLOW_GROUPINGS)}",
            details={"group_by": group_by}
        )
    report = CashFlowReport(group_by=group_by, start=start, end=end)
    periods: Dict[str, CashFlowPeriod] = {}
    for entry in entries:
        inflow, outflow = is_cash_inflow(entry), is_cash_outflow(entry)
        if not (inflow or outflow):
            continue
        key = period_key(entry.date, group_by)
        period = periods.setdefault(key, CashFlowPeriod(period=key))
        amount = money(entry.amount)
        if inflow:
            period.inflows += amount
            report.total_inflows += amount
        else:
            period.outflows += amount
            report.total_outflows += amount
    report.periods = [periods[key] for key in sorted(periods)]
    return report


def _ledger_scope(project_id: Optional[int], start: Optional[datetime], end: Optional[datetime]) -> list:
    scope = []
    if project_id is not None:
        scope.append(LedgerEntry.project_id == project_id)
    if start is not None:
        scope.append(LedgerEntry.date >= as_naive_utc(start))
    if end is not None:
        scope.append(LedgerEntry.date <= as_naive_utc(end))
    return scope


class ReportService:

    @staticmethod
    async def receivables_aging(
        db: AsyncSession,
        now: Optional[datetime] = None,
        project_id: Optional[int] = None
    ) -> AgingReport:
        now = as_naive_utc(now) or datetime.utcnow()
        query = select(InstallmentPlan).where(InstallmentPlan.status == PlanStatus.ACTIVE)
        if project_id is not None:
            query = query.where(InstallmentPlan.project_id == project_id)
        result = await db.execute(query)
        return build_aging(result.scalars().all(), now)

    @staticmethod
    async def _sum(db: AsyncSession, *conditions) -> Decimal:
        result = await db.execute(select(LedgerEntry.amount).where(and_(*conditions)))
        return sum((money(amount) for amount in result.scalars().all()), ZERO)

    @staticmethod
    async def profit_and_loss(
        db: AsyncSession,
        project_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> ProfitAndLoss:
        scope = _ledger_scope(project_id, start, end)

        credit = LedgerEntry.entry_type == LedgerEntryType.CREDIT
        debit = LedgerEntry.entry_type == LedgerEntryType.DEBIT

        plot_sales = await ReportService._sum(
            db, credit, LedgerEntry.account == LedgerAccount.INCOME,
            LedgerEntry.category == LedgerCategory.PLOT_SALE, *scope
        )
        buyer_payments = await ReportService._sum(
            db, credit, LedgerEntry.account == LedgerAccount.BUYER, *scope
        )
        seller_payments = await ReportService._sum(
            db, debit, LedgerEntry.account == LedgerAccount.SELLER,
            LedgerEntry.category == LedgerCategory.SELLER_PAYMENT, *scope
        )
        commissions_accrued = await ReportService._sum(
            db, debit, LedgerEntry.account == LedgerAccount.AGENT_COMMISSION,
            LedgerEntry.category == LedgerCategory.COMMISSION, *scope
        )
        # Credits that moved no money (cancellations, downward adjustments) undo accrual
        commissions_reversed = await ReportService._sum(
            db, credit, LedgerEntry.account == LedgerAccount.AGENT_COMMISSION,
            LedgerEntry.category == LedgerCategory.COMMISSION,
            LedgerEntry.payment_method.is_(None), *scope
        )
        partner_profits = await ReportService._sum(
            db, debit, LedgerEntry.account == LedgerAccount.PARTNER,
            LedgerEntry.category == LedgerCategory.PARTNER_PROFIT, *scope
        )
        expenses = await ReportService._sum(
            db, debit, LedgerEntry.account == LedgerAccount.EXPENSE, *scope
        )

        commissions = commissions_accrued - commissions_reversed
        total_income = plot_sales + buyer_payments
        gross = total_income - seller_payments
        net = gross - commissions - partner_profits - expenses
        margin = (net / total_income * HUNDRED).quantize(TWOPLACES) if total_income > 0 else ZERO

        return ProfitAndLoss(
            income_plot_sales=plot_sales,
            income_buyer_payments=buyer_payments,
            total_income=total_income,
            seller_payments=seller_payments,
            commissions=commissions,
            partner_profits=partner_profits,
            expenses=expenses,
            total_costs=seller_payments + commissions + partner_profits + expenses,
            gross_profit=gross,
            net_profit=net,
            margin=margin,
        )

    @staticmethod
    async def cash_flow(
        db: AsyncSession,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        group_by: str = "month",
        project_id: Optional[int] = None
    ) -> CashFlowReport:
        """
        Money in and out of the business per day, ISO week or month.

        Inflows are credits on income and buyer; outflows are debits on
        seller, agent-commission, partner and expense.
        """
        query = select(LedgerEntry).where(
            or_(
                and_(
                    LedgerEntry.entry_type == LedgerEntryType.CREDIT,
                    LedgerEntry.account.in_(CASH_INFLOW_ACCOUNTS)
                ),
                and_(
                    LedgerEntry.entry_type == LedgerEntryType.DEBIT,
                    LedgerEntry.account.in_(CASH_OUTFLOW_ACCOUNTS)
                ),
            ),
            *_ledger_scope(project_id, start, end)
        ).order_by(LedgerEntry.date, LedgerEntry.id)
        result = await db.execute(query)
        return build_cash_flow(
            result.scalars().all(), group_by, as_naive_utc(start), as_naive_utc(end)
        )
