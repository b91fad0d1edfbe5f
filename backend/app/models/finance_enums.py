"""
Finance enumerations for the ledger engine.

Values mirror the strings used by the back-office API.
"""

import enum


class LedgerEntryType(str, enum.Enum):
    """Ledger entry direction. Amounts are never negative; direction lives here."""
    DEBIT = "debit"  # Decreases the account
    CREDIT = "credit"  # Increases the account


class LedgerAccount(str, enum.Enum):
    """Closed set of ledger accounts."""
    BUYER = "buyer"
    SELLER = "seller"
    PARTNER = "partner"
    AGENT_COMMISSION = "agent-commission"
    INCOME = "income"
    EXPENSE = "expense"
    BANK = "bank"
    CASH = "cash"


class LedgerCategory(str, enum.Enum):
    """Closed set of ledger categories."""
    PLOT_SALE = "plot-sale"
    INSTALLMENT = "installment"
    COMMISSION = "commission"
    SELLER_PAYMENT = "seller-payment"
    PARTNER_PROFIT = "partner-profit"
    CAPITAL_INJECTION = "capital-injection"
    CAPITAL_WITHDRAWAL = "capital-withdrawal"
    EXPENSE = "expense"
    OTHER = "other"


class LedgerRefType(str, enum.Enum):
    """Kind of source record a ledger entry points at."""
    PLOT = "Plot"
    INSTALLMENT_PLAN = "InstallmentPlan"
    COMMISSION = "Commission"
    SELLER_PAYMENT = "SellerPayment"
    PARTNER = "Partner"
    TRANSACTION = "Transaction"
    BANK_ACCOUNT = "BankAccount"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    CHEQUE = "cheque"
    ONLINE = "online"
    OTHER = "other"


class CommissionRuleType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class CommissionStatus(str, enum.Enum):
    """Forward-only: PENDING -> APPROVED -> PAID, or CANCELLED before payment."""
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class PlanStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEFAULTED = "defaulted"


class PlanFrequency(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_ANNUAL = "bi-annual"
    ANNUAL = "annual"
    CUSTOM = "custom"


class InstallmentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"


class PartnerStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class CapitalTransactionType(str, enum.Enum):
    INJECTION = "injection"
    WITHDRAWAL = "withdrawal"


class DistributionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"  # Allowed by the schema, unused by the approval flow
    PAID = "paid"


class SellerPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMode(str, enum.Enum):
    FULL = "full"
    INSTALLMENTS = "installments"
