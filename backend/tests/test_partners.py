"""
Partner Capital and Profit Tests.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import (
    ValidationError, ShareOverflowError, InsufficientCapitalError, InvalidStateError, NotFoundError
)
from backend.app.domain.partners.partner_service import PartnerService
from backend.app.domain.partners.share_invariant import validate_share_invariant
from backend.app.domain.ledger.ledger_service import LedgerService
from backend.app.models.finance_enums import PartnerStatus, DistributionStatus, LedgerAccount, LedgerCategory


def _partner(partner_id, share, status=PartnerStatus.ACTIVE):
    return SimpleNamespace(id=partner_id, share_percent=Decimal(share), status=status)


def test_share_invariant_rejects_overflow():
    existing = [_partner(1, "50")]
    with pytest.raises(ShareOverflowError):
        validate_share_invariant(existing, "60")
    assert validate_share_invariant(existing, "40") == Decimal("90")
    assert validate_share_invariant(existing, "50") == Decimal("100")


def test_share_invariant_ignores_terminated_partners():
    existing = [_partner(1, "50"), _partner(2, "50", status=PartnerStatus.TERMINATED)]
    assert validate_share_invariant(existing, "50") == Decimal("100")


def test_share_invariant_counts_inactive_partners():
    existing = [_partner(1, "50"), _partner(2, "30", status=PartnerStatus.INACTIVE)]
    with pytest.raises(ShareOverflowError):
        validate_share_invariant(existing, "25")


def test_share_invariant_excludes_partner_being_updated():
    existing = [_partner(1, "50"), _partner(2, "40")]
    assert validate_share_invariant(existing, "50", exclude_partner_id=2) == Decimal("100")
    with pytest.raises(ShareOverflowError):
        validate_share_invariant(existing, "60", exclude_partner_id=2)


@pytest.mark.parametrize("share", ["-1", "100.01"])
def test_share_out_of_range(share):
    with pytest.raises(ValidationError):
        validate_share_invariant([], share)


@pytest.mark.asyncio
async def test_create_partner_respects_share_cap(db_session):
    first = await PartnerService.create_partner(
        db_session, name="Ayesha", email="ayesha@test.com", share_percent="50", investment_amount="1000000"
    )
    assert first.capital_injected == Decimal("1000000")
    assert first.current_capital == Decimal("1000000")
    assert len(first.capital_transactions) == 1

    with pytest.raises(ShareOverflowError):
        await PartnerService.create_partner(db_session, name="Bilal", email="bilal@test.com", share_percent="60")

    second = await PartnerService.create_partner(db_session, name="Bilal", email="bilal@test.com", share_percent="40")
    assert second.share_percent == Decimal("40")

    partners = await PartnerService.list_partners(db_session)
    assert [p.email for p in partners] == ["ayesha@test.com", "bilal@test.com"]


@pytest.mark.asyncio
async def test_duplicate_email_rejected(db_session):
    await PartnerService.create_partner(db_session, name="Ayesha", email="ayesha@test.com", share_percent="10")
    with pytest.raises(ValidationError):
        await PartnerService.create_partner(db_session, name="Other", email="ayesha@test.com", share_percent="10")


@pytest.mark.asyncio
async def test_update_share_checks_other_partners(db_session):
    first = await PartnerService.create_partner(db_session, name="A", email="a@test.com", share_percent="50")
    second = await PartnerService.create_partner(db_session, name="B", email="b@test.com", share_percent="40")
    first_id, second_id = first.id, second.id

    with pytest.raises(ShareOverflowError):
        await PartnerService.update_partner(db_session, first_id, share_percent="70")

    updated = await PartnerService.update_partner(db_session, first_id, share_percent="60")
    assert updated.share_percent == Decimal("60")

    terminated = await PartnerService.update_partner(db_session, second_id, status="terminated")
    assert terminated.status == PartnerStatus.TERMINATED

    # The terminated share no longer counts
    third = await PartnerService.create_partner(db_session, name="C", email="c@test.com", share_percent="40")
    assert third.id is not None


@pytest.mark.asyncio
async def test_withdrawal_cannot_exceed_capital(db_session):
    partner = await PartnerService.create_partner(
        db_session, name="A", email="a@test.com", share_percent="50", investment_amount="1000000"
    )
    partner_id = partner.id

    with pytest.raises(InsufficientCapitalError):
        await PartnerService.add_capital(db_session, partner_id, "1500000", "withdrawal")

    partner = await PartnerService.add_capital(db_session, partner_id, "400000", "withdrawal", reference="WD-1")
    assert partner.withdrawals == Decimal("400000")
    assert partner.current_capital == Decimal("600000")

    entries = await LedgerService.list_entries(db_session, account=LedgerAccount.PARTNER, partner_id=partner_id)
    assert {e.category for e in entries} == {LedgerCategory.CAPITAL_INJECTION, LedgerCategory.CAPITAL_WITHDRAWAL}
    assert await LedgerService.account_balance(db_session, LedgerAccount.PARTNER) == Decimal("600000")


@pytest.mark.asyncio
async def test_capital_for_unknown_partner(db_session):
    with pytest.raises(NotFoundError):
        await PartnerService.add_capital(db_session, 404, "100", "injection")


@pytest.mark.asyncio
async def test_distribute_to_all_requires_full_shares(db_session):
    assert await PartnerService.distribute_profit_to_all(db_session, "100000") == []

    await PartnerService.create_partner(db_session, name="A", email="a@test.com", share_percent="60")
    await PartnerService.create_partner(db_session, name="B", email="b@test.com", share_percent="30")

    with pytest.raises(ValidationError):
        await PartnerService.distribute_profit_to_all(db_session, "200000")

    await PartnerService.create_partner(db_session, name="C", email="c@test.com", share_percent="10")
    lines = await PartnerService.distribute_profit_to_all(db_session, "200000")
    assert [line.amount for line in lines] == [Decimal("120000"), Decimal("60000"), Decimal("20000")]


@pytest.mark.asyncio
async def test_approve_distribution_once(db_session):
    partner = await PartnerService.create_partner(
        db_session, name="A", email="a@test.com", share_percent="25", investment_amount="500000"
    )
    partner_id = partner.id

    distribution = await PartnerService.distribute_profit(db_session, partner_id, "400000")
    distribution_id = distribution.id
    assert distribution.amount == Decimal("100000")
    assert distribution.status == DistributionStatus.PENDING

    partner = await PartnerService.get_partner(db_session, partner_id)
    assert partner.profit_credited == Decimal("100000")
    assert partner.pending_profit == Decimal("100000")

    paid = await PartnerService.approve_distribution(
        db_session, partner_id, distribution_id, payment_reference="PRF-1"
    )
    assert paid.status == DistributionStatus.PAID
    assert paid.distributed_at is not None

    with pytest.raises(InvalidStateError):
        await PartnerService.approve_distribution(db_session, partner_id, distribution_id)

    partner = await PartnerService.get_partner(db_session, partner_id)
    assert partner.withdrawals == Decimal("100000")
    assert partner.current_capital == Decimal("400000")


@pytest.mark.asyncio
async def test_approve_unknown_distribution(db_session):
    partner = await PartnerService.create_partner(db_session, name="A", email="a@test.com", share_percent="25")
    with pytest.raises(NotFoundError):
        await PartnerService.approve_distribution(db_session, partner.id, 999)
