from .handle import Transaction
from .interfaces import (
    BeginTransactionError,
    CommitError,
    RollbackError,
    TransactionError,
    TransactionState,
    TransactionTimeoutError,
)
from .runner import TransactionRunner

__all__ = [
    "BeginTransactionError",
    "CommitError",
    "RollbackError",
    "Transaction",
    "TransactionError",
    "TransactionRunner",
    "TransactionState",
    "TransactionTimeoutError",
]
