"""
User roles enumeration.

Defines the counterparty roles known to the back office.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Back-office staff processing sales and approvals
        AGENT: Books plots for buyers, earns commission
        BUYER: Purchases plots (default role)
        SELLER: Original owner of a plot sold through the office
    """
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    BUYER = "BUYER"
    SELLER = "SELLER"
