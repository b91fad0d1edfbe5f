"""
Bank Reconciliation Matcher.

Heuristic pairing of an imported bank line with a ledger entry. A
candidate matches when the amounts agree to the cent AND either the dates
are at most seven days apart or one description contains the other
(case-insensitive, both non-empty).
"""

from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Optional, List

from backend.app.domain.clock import as_naive_utc
from backend.app.domain.money import money

MATCH_WINDOW = timedelta(days=7)
AMOUNT_TOLERANCE = Decimal("0.01")


def amounts_agree(left, right) -> bool:
    return abs(money(left) - money(right)) < AMOUNT_TOLERANCE


def within_window(left, right) -> bool:
    return abs(as_naive_utc(left) - as_naive_utc(right)) <= MATCH_WINDOW


def descriptions_overlap(left: Optional[str], right: Optional[str]) -> bool:
    left = (left or "").strip().lower()
    right = (right or "").strip().lower()
    if not left or not right:
        return False
    return left in right or right in left


def is_match(transaction, entry) -> bool:
    if not amounts_agree(transaction.amount, entry.amount):
        return False
    return (
        within_window(transaction.date, entry.date)
        or descriptions_overlap(transaction.description, entry.description)
    )


def match(transaction, candidates: Iterable):
    """First matching candidate in input order, or None."""
    for entry in candidates:
        if is_match(transaction, entry):
            return entry
    return None


def rank_candidates(transaction, candidates: Iterable) -> List:
    """Order candidates by closeness in time, then by ledger id."""
    when = as_naive_utc(transaction.date)
    return sorted(candidates, key=lambda e: (abs(as_naive_utc(e.date) - when), e.id))
