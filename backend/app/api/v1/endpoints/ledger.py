"""
Ledger API Endpoints.

Entry listing, per-account running balances, manual postings and
reconciliation flags.
"""

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.ledger.ledger_service import LedgerService, render_ledger_csv
from backend.app.models.finance_enums import LedgerAccount, LedgerCategory
from backend.app.schemas.common import ActorRequest
from backend.app.schemas.ledger import (
    LedgerEntryCreate, ExpenseCreate, LedgerEntryResponse, AccountLedgerResponse
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/entries", response_model=List[LedgerEntryResponse])
async def list_entries(
    account: Optional[LedgerAccount] = Query(None),
    category: Optional[LedgerCategory] = Query(None),
    user_id: Optional[int] = Query(None),
    partner_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    reconciled: Optional[bool] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db)
):
    """List ledger entries, newest first."""
    return await LedgerService.list_entries(
        db,
        limit=limit,
        account=account,
        category=category,
        user_id=user_id,
        partner_id=partner_id,
        project_id=project_id,
        reconciled=reconciled,
        start=start,
        end=end
    )


@router.get("/accounts/{account}", response_model=AccountLedgerResponse)
async def account_ledger(
    account: LedgerAccount = Path(..., description="Ledger account"),
    user_id: Optional[int] = Query(None),
    partner_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Entries of one account in date order with their running balance."""
    ledger = await LedgerService.account_ledger(
        db,
        account,
        user_id=user_id,
        partner_id=partner_id,
        project_id=project_id,
        start=start,
        end=end
    )
    return AccountLedgerResponse.model_validate(ledger)


@router.get("/accounts/{account}/export")
async def export_account_ledger(
    account: LedgerAccount = Path(..., description="Ledger account"),
    user_id: Optional[int] = Query(None),
    partner_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Download one account's entries and running balance as CSV."""
    ledger = await LedgerService.account_ledger(
        db,
        account,
        user_id=user_id,
        partner_id=partner_id,
        project_id=project_id,
        start=start,
        end=end
    )
    filename = f"ledger-{account.value}-{datetime.utcnow():%Y%m%d}.csv"
    return Response(
        content=render_ledger_csv(ledger),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def post_entry(
    entry: LedgerEntryCreate,
    db: AsyncSession = Depends(get_db)
):
    """Post a manually keyed ledger entry."""
    fields = entry.model_dump(exclude={"created_by"})
    return await LedgerService.post_entry(db, actor_id=entry.created_by, **fields)


@router.post("/entries/{entry_id}/reconcile", response_model=LedgerEntryResponse)
async def reconcile_entry(
    entry_id: int = Path(..., description="Ledger entry ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Mark an entry reconciled. Fails if it already is."""
    return await LedgerService.reconcile(db, entry_id, actor_id=body.actor_id if body else None)


@router.post("/expenses", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_expense(
    expense: ExpenseCreate,
    db: AsyncSession = Depends(get_db)
):
    """Book a general expense."""
    return await LedgerService.record_expense(
        db,
        amount=expense.amount,
        description=expense.description,
        project_id=expense.project_id,
        payment_method=expense.payment_method,
        created_by=expense.created_by
    )
