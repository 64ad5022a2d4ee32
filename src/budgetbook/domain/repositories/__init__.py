"""Repository protocol definitions for domain layer."""

from .account import AccountRepository
from .biller import BillerRepository
from .installment import InstallmentRepository
from .savings import SavingsGoalRepository
from .schedule import PaymentScheduleRepository
from .transaction import TransactionRepository

__all__ = [
    "AccountRepository",
    "BillerRepository",
    "InstallmentRepository",
    "PaymentScheduleRepository",
    "SavingsGoalRepository",
    "TransactionRepository",
]
