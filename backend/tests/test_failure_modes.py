"""
Failure Injection Tests.

The post-sale notification is best-effort: a failing, slow or
circuit-broken notifier never undoes or fails a committed sale.
"""

import pytest
import asyncio

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.domain.sales.sale_workflow import SaleWorkflow
from backend.app.models.plot import Plot, PlotStatus
from backend.app.services.notification_service import InAppNotificationDispatcher, NotificationService
from backend.app.models.notification import NotificationType


class FailingNotifier:
    def __init__(self):
        self.attempts = 0

    async def sale_completed(self, **kwargs):
        self.attempts += 1
        raise ConnectionError("notification gateway down")


class SlowNotifier:
    async def sale_completed(self, **kwargs):
        await asyncio.sleep(1)


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_recovers_after_reset_timeout():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=0)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    await asyncio.sleep(0.01)
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_timeout_counts_as_failure():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=60, call_timeout=0.05)

    with pytest.raises(asyncio.TimeoutError):
        await cb.call(asyncio.sleep, 1)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_failing_notifier_does_not_fail_sale(db_session, session_factory, make_plot, people, tiered_rules, mocker):
    plot = await make_plot()
    notifier = mocker.Mock()
    notifier.sale_completed = mocker.AsyncMock(side_effect=ConnectionError("notification gateway down"))

    result = await SaleWorkflow.process_sale(
        db_session, plot.id, people["buyer"].id, "10000000",
        notifier=notifier, breaker=CircuitBreaker(failure_threshold=5)
    )
    assert result.notified is False
    notifier.sale_completed.assert_awaited_once()
    assert notifier.sale_completed.await_args.kwargs["commission_amount"] == "250000.00"

    async with session_factory() as fresh:
        stored = await fresh.get(Plot, plot.id)
        assert stored.status == PlotStatus.SOLD


@pytest.mark.asyncio
async def test_slow_notifier_is_timed_out(db_session, make_plot, people):
    plot = await make_plot(with_agent=False)

    result = await SaleWorkflow.process_sale(
        db_session, plot.id, people["buyer"].id, "10000000",
        notifier=SlowNotifier(), breaker=CircuitBreaker(call_timeout=0.05)
    )
    assert result.notified is False
    assert result.plot.status == PlotStatus.SOLD


@pytest.mark.asyncio
async def test_open_circuit_skips_notifier(db_session, make_plot, people):
    first = await make_plot(plot_no="PL-1", with_agent=False)
    second = await make_plot(plot_no="PL-2", with_agent=False)
    buyer_id = people["buyer"].id
    notifier = FailingNotifier()
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60)

    await SaleWorkflow.process_sale(db_session, first.id, buyer_id, "5000000", notifier=notifier, breaker=breaker)
    result = await SaleWorkflow.process_sale(db_session, second.id, buyer_id, "5000000", notifier=notifier, breaker=breaker)

    assert result.notified is False
    assert result.plot.status == PlotStatus.SOLD
    assert notifier.attempts == 1


@pytest.mark.asyncio
async def test_in_app_dispatcher_writes_notifications(db_session, session_factory, make_plot, people):
    plot = await make_plot()
    plot_id = plot.id
    dispatcher = InAppNotificationDispatcher(session_factory)
    buyer_id, agent_id = people["buyer"].id, people["agent"].id

    await dispatcher.sale_completed(
        buyer_id=buyer_id, plot_id=plot_id, plot_no="PL-202", sale_price="10000000.00",
        agent_id=agent_id, commission_amount="250000.00"
    )

    buyer_inbox = await NotificationService.list_for_user(db_session, buyer_id)
    agent_inbox = await NotificationService.list_for_user(db_session, agent_id, unread_only=True)
    assert [n.type for n in buyer_inbox] == [NotificationType.SALE_UPDATE]
    assert [n.type for n in agent_inbox] == [NotificationType.COMMISSION_UPDATE]
    assert "250000.00" in agent_inbox[0].message
    assert agent_inbox[0].plot_id == plot_id
