"""
Bank Account API Endpoints.

Statement import and reconciliation against the ledger.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.domain.reconciliation.reconciliation_service import ReconciliationService
from backend.app.schemas.common import ActorRequest
from backend.app.schemas.bank import (
    BankAccountCreate, BankAccountResponse, StatementImport, StatementImportResponse,
    MatchRequest, MatchResponse, UnmatchedResponse, BankTransactionResponse
)

router = APIRouter(prefix="/bank-accounts", tags=["Bank Accounts"])


@router.post("", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    account: BankAccountCreate,
    db: AsyncSession = Depends(get_db)
):
    return await ReconciliationService.create_account(
        db,
        name=account.name,
        bank=account.bank,
        account_no=account.account_no,
        opening_balance=account.opening_balance,
        currency=account.currency,
        opening_date=account.opening_date,
        actor_id=account.actor_id
    )


@router.get("/{account_id}", response_model=BankAccountResponse)
async def get_account(
    account_id: int = Path(..., description="Bank account ID"),
    db: AsyncSession = Depends(get_db)
):
    return await ReconciliationService.get_account(db, account_id)


@router.post("/{account_id}/statement", response_model=StatementImportResponse)
async def import_statement(
    statement: StatementImport,
    account_id: int = Path(..., description="Bank account ID"),
    db: AsyncSession = Depends(get_db)
):
    """Append parsed statement rows to the account."""
    added = await ReconciliationService.import_statement(
        db,
        account_id,
        rows=[row.model_dump() for row in statement.rows],
        actor_id=statement.actor_id
    )
    account = await ReconciliationService.get_account(db, account_id)
    return StatementImportResponse(
        account=BankAccountResponse.model_validate(account),
        transactions_added=len(added)
    )


@router.post("/{account_id}/auto-reconcile", response_model=List[MatchResponse])
async def auto_reconcile(
    account_id: int = Path(..., description="Bank account ID"),
    body: Optional[ActorRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Match every unmatched statement line the matcher can pair."""
    matches = await ReconciliationService.auto_reconcile(
        db, account_id, actor_id=body.actor_id if body else None
    )
    return [MatchResponse.model_validate(item) for item in matches]


@router.post("/{account_id}/transactions/{transaction_id}/match", response_model=MatchResponse)
async def confirm_match(
    request: MatchRequest,
    account_id: int = Path(..., description="Bank account ID"),
    transaction_id: int = Path(..., description="Bank transaction ID"),
    db: AsyncSession = Depends(get_db)
):
    """Pair a statement line with a ledger entry by hand."""
    result = await ReconciliationService.confirm_match(
        db, account_id, transaction_id, request.ledger_entry_id, actor_id=request.actor_id
    )
    return MatchResponse.model_validate(result)


@router.get("/{account_id}/unmatched", response_model=UnmatchedResponse)
async def unmatched_transactions(
    account_id: int = Path(..., description="Bank account ID"),
    db: AsyncSession = Depends(get_db)
):
    account = await ReconciliationService.get_account(db, account_id)
    transactions = await ReconciliationService.unmatched(db, account_id)
    return UnmatchedResponse(
        account=BankAccountResponse.model_validate(account),
        transactions=[BankTransactionResponse.model_validate(t) for t in transactions],
        total_amount=ReconciliationService.unmatched_total(transactions)
    )
