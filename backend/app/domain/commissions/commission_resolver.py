"""
Commission Rule Resolver.

Responsible for determining the applicable commission rule for a plot sale.
Follows priority:
1. Highest `priority` first
2. Project-specific rule before a global one (project_id NULL)
3. Narrowest plot size range
4. Lowest rule id

Only active rules inside their effective window are candidates. The first
rule whose [min_size, max_size] range contains the plot size wins.
No match is a valid "no commission" outcome, not an error.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from backend.app.core.exceptions import NotFoundError
from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money, percent_of, to_decimal, ZERO
from backend.app.models.commission_rule import CommissionRule
from backend.app.models.finance_enums import CommissionRuleType
from backend.app.models.plot import Plot

# Stand-in width for an open-ended range when ordering by narrowness
UNBOUNDED_WIDTH = Decimal("1e12")


@dataclass
class CommissionResolution:
    amount: Decimal
    rule_id: Optional[int] = None


def rule_sort_key(rule: CommissionRule):
    width = UNBOUNDED_WIDTH if rule.max_size is None else rule.max_size - rule.min_size
    return (-rule.priority, rule.project_id is None, width, rule.id or 0)


def rule_covers(rule: CommissionRule, size: Decimal) -> bool:
    if size < rule.min_size:
        return False
    return rule.max_size is None or size <= rule.max_size


def select_rule(rules: Iterable[CommissionRule], size) -> Optional[CommissionRule]:
    """Pick the winning rule for a plot size, or None."""
    size = to_decimal(size, "size")
    for rule in sorted(rules, key=rule_sort_key):
        if rule_covers(rule, size):
            return rule
    return None


def compute_amount(rule: CommissionRule, sale_price) -> Decimal:
    if rule.rule_type == CommissionRuleType.PERCENT:
        return percent_of(sale_price, rule.value)
    return money(rule.value)


def resolve_from_rules(rules: Iterable[CommissionRule], size, sale_price) -> CommissionResolution:
    """Pure resolution over an already loaded rule set."""
    rule = select_rule(rules, size)
    if rule is None:
        return CommissionResolution(amount=ZERO, rule_id=None)
    return CommissionResolution(amount=compute_amount(rule, sale_price), rule_id=rule.id)


class CommissionResolver:

    @staticmethod
    async def candidate_rules(db: AsyncSession, project_id: int, as_of: Optional[datetime] = None):
        """Active rules for the project plus active global rules, in effect at `as_of`."""
        as_of = as_naive_utc(as_of) or datetime.utcnow()
        query = select(CommissionRule).where(
            CommissionRule.active == True,
            CommissionRule.effective_from <= as_of,
            (CommissionRule.effective_to.is_(None) | (CommissionRule.effective_to >= as_of)),
            or_(CommissionRule.project_id == project_id, CommissionRule.project_id.is_(None))
        )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def resolve_for_plot(
        db: AsyncSession,
        plot: Plot,
        sale_price,
        as_of: Optional[datetime] = None
    ) -> CommissionResolution:
        rules = await CommissionResolver.candidate_rules(db, plot.project_id, as_of)
        return resolve_from_rules(rules, plot.size_marla, sale_price)

    @staticmethod
    async def resolve(
        db: AsyncSession,
        plot_id: int,
        sale_price,
        as_of: Optional[datetime] = None
    ) -> CommissionResolution:
        """
        Resolve the commission for selling a plot at a price.

        Raises:
            NotFoundError: If the plot does not exist
        """
        plot = await db.get(Plot, plot_id)
        if not plot:
            raise NotFoundError("Plot", plot_id)
        return await CommissionResolver.resolve_for_plot(db, plot, sale_price, as_of)
