"""
Report Tests.

Receivables aging, profit & loss and cash flow over a small, fully known book.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import ValidationError
from backend.app.domain.commissions.commission_service import CommissionService
from backend.app.domain.installments.installment_service import InstallmentService
from backend.app.domain.ledger.ledger_service import LedgerService
from backend.app.domain.reports.report_service import ReportService, build_cash_flow, period_key
from backend.app.domain.sales.sale_workflow import SaleWorkflow
from backend.app.models.finance_enums import LedgerAccount, LedgerCategory, LedgerEntryType, LedgerRefType


@pytest.mark.asyncio
async def test_receivables_aging(db_session, make_plot, people):
    now = datetime.utcnow()
    plot = await make_plot()
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "1400", "0",
        installments=[
            {"due_date": now - timedelta(days=45), "amount": "300"},
            {"due_date": now - timedelta(days=10), "amount": "200"},
            {"due_date": now - timedelta(days=5), "amount": "400"},
            {"due_date": now + timedelta(days=20), "amount": "500"},
        ]
    )
    await InstallmentService.pay_installment(db_session, plan.id, 3, "400")

    report = await ReportService.receivables_aging(db_session, now=now)
    assert list(report.buckets) == ["current", "0-30", "31-60", "61-90", "90+"]
    assert (report.buckets["current"].count, report.buckets["current"].amount) == (1, Decimal("500"))
    assert (report.buckets["0-30"].count, report.buckets["0-30"].amount) == (1, Decimal("200"))
    assert (report.buckets["31-60"].count, report.buckets["31-60"].amount) == (1, Decimal("300"))
    assert report.buckets["90+"].count == 0
    assert report.total_outstanding == Decimal("1000")


@pytest.mark.asyncio
async def test_aging_skips_closed_plans(db_session, make_plot, people):
    now = datetime.utcnow()
    plot = await make_plot()
    plan = await InstallmentService.create_plan(
        db_session, people["buyer"].id, plot.id, "300", "0",
        installments=[{"due_date": now - timedelta(days=100), "amount": "300"}]
    )
    await InstallmentService.cancel(db_session, plan.id)

    report = await ReportService.receivables_aging(db_session, now=now)
    assert report.total_outstanding == Decimal("0")


@pytest.mark.asyncio
async def test_profit_and_loss(db_session, make_plot, people, tiered_rules, project):
    buyer_id = people["buyer"].id
    project_id = project.id
    full = await make_plot(plot_no="PL-1")
    financed = await make_plot(plot_no="PL-2", size_marla="4", price="5000000")

    await SaleWorkflow.process_sale(db_session, full.id, buyer_id, "10000000")
    financed_sale = await SaleWorkflow.process_sale(
        db_session, financed.id, buyer_id, "5000000", payment_mode="installments",
        installment_plan={
            "down_payment": "1000000",
            "installments": [{"due_date": datetime.utcnow() + timedelta(days=30), "amount": "4000000"}],
        }
    )
    await CommissionService.cancel(db_session, financed_sale.commission.id)
    await LedgerService.record_expense(db_session, "50000", "Boundary wall", project_id=project_id)

    pnl = await ReportService.profit_and_loss(db_session, project_id=project_id)
    assert pnl.income_plot_sales == Decimal("10000000")
    assert pnl.income_buyer_payments == Decimal("1000000")
    assert pnl.total_income == Decimal("11000000")
    assert pnl.seller_payments == Decimal("10500000")
    assert pnl.commissions == Decimal("250000")
    assert pnl.expenses == Decimal("50000")
    assert pnl.gross_profit == Decimal("500000")
    assert pnl.net_profit == Decimal("200000")
    assert pnl.margin == Decimal("1.82")


@pytest.mark.asyncio
async def test_profit_and_loss_empty_book(db_session):
    pnl = await ReportService.profit_and_loss(db_session)
    assert pnl.total_income == Decimal("0")
    assert pnl.margin == Decimal("0")


# --- Cash flow ---

def _cash(entry_type, account, amount, date):
    return SimpleNamespace(entry_type=entry_type, account=account, amount=Decimal(amount), date=date)


def test_period_keys():
    when = datetime(2024, 12, 30, 10, 0)
    assert period_key(when, "month") == "2024-12"
    assert period_key(when, "week") == "2025-W01"
    assert period_key(when, "day") == "2024-12-30"
    # 02:00 on 1 March at +05:00 is still February in UTC
    assert period_key(datetime(2024, 3, 1, 2, 0, tzinfo=timezone(timedelta(hours=5))), "month") == "2024-02"


def test_build_cash_flow_groups_and_skips_non_cash_entries():
    jan, feb = datetime(2024, 1, 15), datetime(2024, 2, 3)
    entries = [
        _cash(LedgerEntryType.CREDIT, LedgerAccount.BUYER, "500", feb),
        _cash(LedgerEntryType.CREDIT, LedgerAccount.INCOME, "1000", jan),
        _cash(LedgerEntryType.DEBIT, LedgerAccount.SELLER, "700", jan),
        _cash(LedgerEntryType.DEBIT, LedgerAccount.EXPENSE, "50", feb),
        _cash(LedgerEntryType.CREDIT, LedgerAccount.AGENT_COMMISSION, "20", feb),
        _cash(LedgerEntryType.DEBIT, LedgerAccount.BANK, "999", feb),
    ]
    report = build_cash_flow(entries, "month")
    assert [(p.period, p.inflows, p.outflows, p.net) for p in report.periods] == [
        ("2024-01", Decimal("1000"), Decimal("700"), Decimal("300")),
        ("2024-02", Decimal("500"), Decimal("50"), Decimal("450")),
    ]
    assert report.total_inflows == Decimal("1500")
    assert report.total_outflows == Decimal("750")
    assert report.net_cash_flow == Decimal("750")


def test_build_cash_flow_rejects_unknown_grouping():
    with pytest.raises(ValidationError):
        build_cash_flow([], "quarter")
    assert build_cash_flow([], "day").periods == []


@pytest.mark.asyncio
async def test_cash_flow_by_day_within_range(db_session, project):
    day = datetime(2024, 4, 10, 9, 0)
    income = dict(account=LedgerAccount.INCOME, category=LedgerCategory.OTHER, ref_type=LedgerRefType.TRANSACTION,
                  entry_type=LedgerEntryType.CREDIT, project_id=project.id)
    await LedgerService.post_entry(db_session, amount="1200", date=day - timedelta(days=5),
                                   description="Rent, March", **income)
    await LedgerService.post_entry(db_session, amount="1500", date=day, description="Rent, April", **income)
    await LedgerService.post_entry(
        db_session, entry_type=LedgerEntryType.DEBIT, account=LedgerAccount.EXPENSE,
        category=LedgerCategory.EXPENSE, ref_type=LedgerRefType.TRANSACTION, amount="300",
        date=day + timedelta(days=1), description="Street lights", project_id=project.id
    )

    report = await ReportService.cash_flow(
        db_session, start=day - timedelta(hours=1), end=day + timedelta(days=2), group_by="day"
    )
    assert [(p.period, p.inflows, p.outflows) for p in report.periods] == [
        ("2024-04-10", Decimal("1500"), Decimal("0")),
        ("2024-04-11", Decimal("0"), Decimal("300")),
    ]
    assert report.net_cash_flow == Decimal("1200")

    everything = await ReportService.cash_flow(db_session, project_id=project.id)
    assert everything.total_inflows == Decimal("2700")
