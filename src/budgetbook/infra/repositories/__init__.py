"""Concrete repository implementations using SQLModel."""

from .account import SQLModelAccountRepository
from .biller import SQLModelBillerRepository
from .installment import SQLModelInstallmentRepository
from .savings import SQLModelSavingsGoalRepository
from .schedule import SQLModelPaymentScheduleRepository
from .transaction import SQLModelTransactionRepository

__all__ = [
    "SQLModelAccountRepository",
    "SQLModelBillerRepository",
    "SQLModelInstallmentRepository",
    "SQLModelPaymentScheduleRepository",
    "SQLModelSavingsGoalRepository",
    "SQLModelTransactionRepository",
]
