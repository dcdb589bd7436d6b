"""
Payment enumerations.
"""

import enum


class PaymentType(str, enum.Enum):
    """Direction and purpose of a payment."""
    CLIENT_PAYMENT = "client_payment"  # Client pays the brokerage
    FLEET_OWNER_PAYMENT = "fleet_owner_payment"  # Brokerage pays a fleet owner
    ADVANCE_PAYMENT = "advance_payment"
    EXPENSE_REIMBURSEMENT = "expense_reimbursement"


class PaymentStatus(str, enum.Enum):
    """Payment lifecycle."""
    PENDING = "pending"  # Recorded, awaiting approval
    COMPLETED = "completed"  # Approved
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    UPI = "upi"
    CARD = "card"
    OTHER = "other"
