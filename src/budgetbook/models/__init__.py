"""SQLModel table exports."""

from .account import Account
from .biller import Biller
from .installment import Installment
from .savings import SavingsGoal
from .schedule import PaymentSchedule
from .transaction import Transaction

__all__ = [
    "Account",
    "Biller",
    "Installment",
    "PaymentSchedule",
    "SavingsGoal",
    "Transaction",
]
