"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    sales, ledger, commissions, installments,
    partners, bank_accounts, seller_payments, reports, notifications
)

router = APIRouter()

# Sale workflow
router.include_router(sales.router)

# Ledger
router.include_router(ledger.router)

# Commissions
router.include_router(commissions.rules_router)
router.include_router(commissions.router)

# Buyer installments
router.include_router(installments.router)

# Partners
router.include_router(partners.router)

# Bank reconciliation
router.include_router(bank_accounts.router)

# Seller payouts
router.include_router(seller_payments.router)

# Reports
router.include_router(reports.router)

# Notifications
router.include_router(notifications.router)
