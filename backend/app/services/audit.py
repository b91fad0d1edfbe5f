"""
Audit logging service for tracking financial actions.

Audit rows are added to the caller's session and flushed, so they commit
or roll back together with the change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Sale Workflow
    SALE_PROCESSED = "SALE_PROCESSED"

    # Ledger
    LEDGER_ENTRY_POSTED = "LEDGER_ENTRY_POSTED"
    LEDGER_ENTRY_RECONCILED = "LEDGER_ENTRY_RECONCILED"
    EXPENSE_RECORDED = "EXPENSE_RECORDED"

    # Commissions
    COMMISSION_RULE_CREATED = "COMMISSION_RULE_CREATED"
    COMMISSION_RULE_DEACTIVATED = "COMMISSION_RULE_DEACTIVATED"
    COMMISSION_CREATED = "COMMISSION_CREATED"
    COMMISSION_APPROVED = "COMMISSION_APPROVED"
    COMMISSION_PAID = "COMMISSION_PAID"
    COMMISSION_CANCELLED = "COMMISSION_CANCELLED"

    # Installments
    INSTALLMENT_PLAN_CREATED = "INSTALLMENT_PLAN_CREATED"
    INSTALLMENT_PAID = "INSTALLMENT_PAID"
    DOWN_PAYMENT_PAID = "DOWN_PAYMENT_PAID"
    INSTALLMENT_PLAN_COMPLETED = "INSTALLMENT_PLAN_COMPLETED"
    INSTALLMENT_PLAN_CANCELLED = "INSTALLMENT_PLAN_CANCELLED"
    INSTALLMENT_PLAN_DEFAULTED = "INSTALLMENT_PLAN_DEFAULTED"

    # Partners
    PARTNER_CREATED = "PARTNER_CREATED"
    PARTNER_UPDATED = "PARTNER_UPDATED"
    CAPITAL_INJECTED = "CAPITAL_INJECTED"
    CAPITAL_WITHDRAWN = "CAPITAL_WITHDRAWN"
    PROFIT_DISTRIBUTED = "PROFIT_DISTRIBUTED"
    PROFIT_DISTRIBUTION_PAID = "PROFIT_DISTRIBUTION_PAID"

    # Bank reconciliation
    BANK_ACCOUNT_CREATED = "BANK_ACCOUNT_CREATED"
    BANK_STATEMENT_IMPORTED = "BANK_STATEMENT_IMPORTED"
    BANK_TRANSACTION_MATCHED = "BANK_TRANSACTION_MATCHED"

    # Seller payments
    SELLER_PAYMENT_CREATED = "SELLER_PAYMENT_CREATED"
    SELLER_PAYMENT_RECORDED = "SELLER_PAYMENT_RECORDED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record a financial event in the audit log.

    Args:
        db: Database session (the caller's unit of work commits)
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action, None for system actions
        entity_type: Kind of record affected (e.g. "Plot", "Commission")
        entity_id: ID of record affected
        metadata: Additional context as JSON (amounts as strings)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
