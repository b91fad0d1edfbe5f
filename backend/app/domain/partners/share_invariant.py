"""
Partner share invariant.

Shares of all non-terminated partners must never sum above 100. The check
takes the full current partner set plus the pending change so it can be
tested without a database.
"""

from decimal import Decimal
from typing import Iterable, Optional

from backend.app.core.exceptions import ValidationError, ShareOverflowError
from backend.app.domain.money import to_decimal, ZERO, HUNDRED
from backend.app.models.finance_enums import PartnerStatus


def counted_share_total(partners: Iterable, exclude_partner_id: Optional[int] = None) -> Decimal:
    """Sum of share_percent over active and inactive partners."""
    return sum(
        (
            to_decimal(p.share_percent, "share_percent")
            for p in partners
            if p.status != PartnerStatus.TERMINATED and (exclude_partner_id is None or p.id != exclude_partner_id)
        ),
        ZERO
    )


def validate_share_invariant(
    partners: Iterable,
    candidate_percent,
    exclude_partner_id: Optional[int] = None
) -> Decimal:
    """
    Accept or reject a pending share.

    Returns the resulting total. Exactly 100 is allowed.

    Raises:
        ValidationError: candidate outside [0, 100]
        ShareOverflowError: sum + candidate > 100
    """
    candidate = to_decimal(candidate_percent, "share_percent")
    if candidate < 0 or candidate > HUNDRED:
        raise ValidationError(
            "share_percent must be between 0 and 100",
            details={"share_percent": str(candidate)}
        )
    current = counted_share_total(partners, exclude_partner_id)
    if current + candidate > HUNDRED:
        raise ShareOverflowError(current_total=current, candidate=candidate)
    return current + candidate
