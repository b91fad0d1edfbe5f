"""
HTTP API Tests.

Drives the service through the FastAPI app: status codes, response
shapes and the error envelope.
"""

import logging
import pytest
from datetime import datetime, timedelta

from backend.app.core.observability import CorrelationIdFilter, correlation_id_var
from backend.app.models.notification import NotificationType
from backend.app.services.notification_service import NotificationService


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


@pytest.mark.asyncio
async def test_sale_endpoint(client, make_plot, people, tiered_rules, notifier):
    plot = await make_plot()
    payload = {"plot_id": plot.id, "buyer_id": people["buyer"].id, "sale_price": "10000000"}

    response = await client.post("/v1/sales", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["plot"]["status"] == "sold"
    assert data["commission"]["amount"] == 250000.0
    assert data["commission"]["status"] == "pending"
    assert data["seller_payment"]["amount"] == 7000000.0
    assert data["installment_plan"] is None
    assert data["notified"] is True
    assert len(notifier.calls) == 1
    assert "X-Correlation-ID" in response.headers

    # Selling again is a state conflict
    response = await client.post("/v1/sales", json=payload)
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_STATE_001"

    response = await client.get("/v1/ledger/accounts/seller")
    assert response.status_code == 200
    assert response.json()["closing_balance"] == -7000000.0


@pytest.mark.asyncio
async def test_installment_sale_endpoint(client, make_plot, people):
    plot = await make_plot(with_agent=False)
    due = datetime.utcnow() + timedelta(days=30)
    response = await client.post("/v1/sales", json={
        "plot_id": plot.id,
        "buyer_id": people["buyer"].id,
        "sale_price": "6000000",
        "payment_mode": "installments",
        "installment_plan": {
            "down_payment": "1000000",
            "frequency": "monthly",
            "installments": [
                {"due_date": due.isoformat(), "amount": "2500000"},
                {"due_date": (due + timedelta(days=30)).isoformat(), "amount": "2500000"},
            ],
        },
    })
    assert response.status_code == 201
    plan = response.json()["installment_plan"]
    assert plan["status"] == "active"
    assert plan["total_paid"] == 1000000.0
    assert plan["remaining_amount"] == 5000000.0
    assert len(plan["installments"]) == 2

    response = await client.post(f"/v1/installment-plans/{plan['id']}/pay", json={"installment_no": 1, "amount": "2500000"})
    assert response.status_code == 200
    assert response.json()["total_paid"] == 3500000.0

    response = await client.post(f"/v1/installment-plans/{plan['id']}/pay", json={"installment_no": 1, "amount": "2500000"})
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_IDEMPOTENCY_001"


@pytest.mark.asyncio
async def test_installment_sale_with_utc_suffixed_dates(client, make_plot, people):
    plot = await make_plot(with_agent=False)
    due = (datetime.utcnow() + timedelta(days=30)).replace(microsecond=0)
    response = await client.post("/v1/sales", json={
        "plot_id": plot.id,
        "buyer_id": people["buyer"].id,
        "sale_price": "6000000",
        "payment_mode": "installments",
        "installment_plan": {
            "down_payment": "1000000",
            "start_date": datetime.utcnow().isoformat() + "Z",
            "installments": [
                {"due_date": due.isoformat() + "Z", "amount": "2500000"},
                {"due_date": (due + timedelta(days=30)).isoformat() + "+05:00", "amount": "2500000"},
            ],
        },
    })
    assert response.status_code == 201
    plan = response.json()["installment_plan"]
    assert plan["status"] == "active"
    assert plan["next_due_date"].startswith(due.isoformat())

    overdue = await client.get("/v1/installment-plans/overdue")
    assert overdue.status_code == 200
    assert overdue.json() == []


@pytest.mark.asyncio
async def test_sale_error_envelope(client, make_plot, people):
    plot = await make_plot()
    buyer_id = people["buyer"].id

    response = await client.post("/v1/sales", json={"plot_id": 404, "buyer_id": buyer_id, "sale_price": "100"})
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.post("/v1/sales", json={"plot_id": plot.id, "buyer_id": buyer_id, "sale_price": "-5"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"

    response = await client.post("/v1/sales", json={
        "plot_id": plot.id, "buyer_id": buyer_id, "sale_price": "100", "payment_mode": "installments"
    })
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_001"


@pytest.mark.asyncio
async def test_commission_endpoints(client, make_plot, people, tiered_rules):
    plot = await make_plot()

    response = await client.post("/v1/commissions/preview", json={"plot_id": plot.id, "sale_price": "10000000"})
    assert response.status_code == 200
    assert response.json() == {"amount": 250000.0, "rule_id": tiered_rules[1].id}

    await client.post("/v1/sales", json={"plot_id": plot.id, "buyer_id": people["buyer"].id, "sale_price": "10000000"})
    commissions = (await client.get("/v1/commissions", params={"status": "pending"})).json()
    assert len(commissions) == 1
    commission_id = commissions[0]["id"]

    response = await client.post(f"/v1/commissions/{commission_id}/pay")
    assert response.status_code == 409

    response = await client.post(
        f"/v1/commissions/{commission_id}/approve", json={"approved_by": people["admin"].id}
    )
    assert response.json()["status"] == "approved"

    response = await client.post(f"/v1/commissions/{commission_id}/pay", json={"payment_reference": "CHQ-9"})
    assert response.status_code == 200
    assert response.json()["status"] == "paid"


@pytest.mark.asyncio
async def test_commission_rule_endpoints(client):
    response = await client.post("/v1/commission-rules", json={
        "rule_type": "percent", "value": "1.5", "min_size": "0", "max_size": "20", "priority": 3
    })
    assert response.status_code == 201
    rule_id = response.json()["id"]

    response = await client.post(f"/v1/commission-rules/{rule_id}/deactivate")
    assert response.json()["active"] is False

    response = await client.get("/v1/commission-rules", params={"active": True})
    assert response.json() == []


@pytest.mark.asyncio
async def test_partner_endpoints(client):
    response = await client.post("/v1/partners", json={
        "name": "Ayesha", "email": "ayesha@test.com", "share_percent": "50", "investment_amount": "1000000"
    })
    assert response.status_code == 201
    partner = response.json()
    assert partner["current_capital"] == 1000000.0

    response = await client.post("/v1/partners", json={"name": "Bilal", "email": "bilal@test.com", "share_percent": "60"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_SHARE_001"

    response = await client.post(
        f"/v1/partners/{partner['id']}/capital", json={"amount": "2000000", "transaction_type": "withdrawal"}
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_CAPITAL_001"

    response = await client.post(f"/v1/partners/{partner['id']}/distributions", json={"total_amount": "100000"})
    assert response.status_code == 201
    distribution = response.json()
    assert distribution["amount"] == 50000.0
    assert distribution["status"] == "pending"

    response = await client.post(f"/v1/partners/{partner['id']}/distributions/{distribution['id']}/approve")
    assert response.status_code == 200
    assert response.json()["status"] == "paid"


@pytest.mark.asyncio
async def test_bank_reconciliation_endpoints(client):
    entry = (await client.post("/v1/ledger/entries", json={
        "entry_type": "credit", "account": "bank", "category": "other", "amount": "25000",
        "ref_id": 1, "ref_type": "Transaction", "description": "Rental income"
    })).json()

    account = (await client.post("/v1/bank-accounts", json={
        "name": "Operations", "bank": "HBL", "account_no": "1234-5678"
    })).json()

    response = await client.post(f"/v1/bank-accounts/{account['id']}/statement", json={"rows": [
        {"date": datetime.utcnow().isoformat(), "description": "Rent", "amount": "25000", "balance": "25000"},
        {"date": datetime.utcnow().isoformat(), "description": "Charges", "amount": "-150", "balance": "24850"},
    ]})
    assert response.status_code == 200
    assert response.json()["transactions_added"] == 2
    assert response.json()["account"]["balance"] == 24850.0

    response = await client.post(f"/v1/bank-accounts/{account['id']}/auto-reconcile")
    matches = response.json()
    assert len(matches) == 1
    assert matches[0]["ledger_entry"]["id"] == entry["id"]

    response = await client.get(f"/v1/bank-accounts/{account['id']}/unmatched")
    unmatched = response.json()
    assert [t["transaction_type"] for t in unmatched["transactions"]] == ["debit"]
    assert unmatched["total_amount"] == 150.0

    response = await client.post(f"/v1/ledger/entries/{entry['id']}/reconcile")
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_IDEMPOTENCY_002"


@pytest.mark.asyncio
async def test_ledger_rejects_disallowed_pairing(client):
    response = await client.post("/v1/ledger/entries", json={
        "entry_type": "debit", "account": "income", "category": "commission", "amount": "10",
        "ref_id": 1, "ref_type": "Commission", "description": "Wrong account"
    })
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_001"


@pytest.mark.asyncio
async def test_report_endpoints(client, make_plot, people, tiered_rules):
    plot = await make_plot()
    await client.post("/v1/sales", json={"plot_id": plot.id, "buyer_id": people["buyer"].id, "sale_price": "10000000"})

    pnl = (await client.get("/v1/reports/profit-loss")).json()
    assert pnl["total_income"] == 10000000.0
    assert pnl["net_profit"] == 2750000.0
    assert pnl["margin"] == 27.5

    aging = (await client.get("/v1/reports/receivables-aging")).json()
    assert set(aging["buckets"]) == {"current", "0-30", "31-60", "61-90", "90+"}
    assert aging["total_outstanding"] == 0.0

    month = datetime.utcnow().strftime("%Y-%m")
    flow = (await client.get("/v1/reports/cash-flow")).json()
    assert flow["group_by"] == "month"
    assert [p["period"] for p in flow["periods"]] == [month]
    assert flow["total_inflows"] == 10000000.0
    assert flow["total_outflows"] == 7250000.0
    assert flow["net_cash_flow"] == 2750000.0

    response = await client.get("/v1/reports/cash-flow", params={"group_by": "quarter"})
    assert response.status_code == 422

    response = await client.get("/v1/ledger/accounts/seller/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "ledger-seller-" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0] == "Date,Type,Account,Category,Description,Reference,Amount,Balance,Reconciled"
    assert len(lines) == 2
    assert lines[1].endswith(",7000000.00,-7000000.00,no")


@pytest.mark.asyncio
async def test_seller_payment_endpoints(client, make_plot, people):
    plot = await make_plot(with_agent=False)
    await client.post("/v1/sales", json={"plot_id": plot.id, "buyer_id": people["buyer"].id, "sale_price": "1000000"})

    payments = (await client.get("/v1/seller-payments", params={"seller_id": people["seller"].id})).json()
    assert [p["status"] for p in payments] == ["pending"]

    response = await client.post(f"/v1/seller-payments/{payments[0]['id']}/pay", json={"amount": "200000"})
    assert response.json()["status"] == "partial"

    response = await client.post(f"/v1/seller-payments/{payments[0]['id']}/pay")
    assert response.json()["status"] == "paid"
    assert response.json()["paid_amount"] == 700000.0


@pytest.mark.asyncio
async def test_overdue_endpoint(client, make_plot, people):
    plot = await make_plot()
    past = datetime.utcnow() - timedelta(days=40)
    response = await client.post("/v1/installment-plans", json={
        "buyer_id": people["buyer"].id,
        "plot_id": plot.id,
        "total_amount": "500000",
        "installments": [{"due_date": past.isoformat(), "amount": "500000"}],
    })
    assert response.status_code == 201

    overdue = (await client.get("/v1/installment-plans/overdue")).json()
    assert len(overdue) == 1
    assert overdue[0]["days_overdue"] == 40


@pytest.mark.asyncio
async def test_notification_endpoints(client, db_session, people):
    buyer_id = people["buyer"].id
    agent_id = people["agent"].id
    await NotificationService.create_notification(
        db_session, user_id=buyer_id, title="Booking confirmed",
        message="Plot PL-202 recorded.", type=NotificationType.SALE_UPDATE
    )
    await db_session.commit()

    response = await client.get("/v1/notifications", params={"user_id": buyer_id})
    assert response.status_code == 200
    items = response.json()
    assert len(items) == 1
    assert items[0]["type"] == "SALE_UPDATE"
    assert items[0]["is_read"] is False

    # Someone else's notification is not found
    response = await client.patch(f"/v1/notifications/{items[0]['id']}/read", params={"user_id": agent_id})
    assert response.status_code == 404

    response = await client.patch(f"/v1/notifications/{items[0]['id']}/read", params={"user_id": buyer_id})
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert response.json()["read_at"] is not None

    response = await client.get("/v1/notifications", params={"user_id": buyer_id, "unread_only": True})
    assert response.json() == []


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "sale-batch-7"})
    assert response.headers["X-Correlation-ID"] == "sale-batch-7"

    response = await client.get("/health")
    assert response.headers["X-Correlation-ID"] != "sale-batch-7"


def test_correlation_filter_stamps_records():
    record = logging.LogRecord("plotledger.ledger", logging.INFO, __file__, 1, "posted", None, None)
    token = correlation_id_var.set("abc-123")
    try:
        CorrelationIdFilter().filter(record)
    finally:
        correlation_id_var.reset(token)
    assert record.correlation_id == "abc-123"

    record = logging.LogRecord("plotledger.ledger", logging.INFO, __file__, 1, "posted", None, None)
    CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"
