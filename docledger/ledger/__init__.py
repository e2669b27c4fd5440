"""Ledger state API and backends for the docledger chaincode."""
from docledger.ledger.base import (
    KV,
    ChaincodeStub,
    HistoryQueryIterator,
    KeyModification,
    LedgerBackend,
    LedgerError,
    StateQueryIterator,
    Timestamp,
)
from docledger.ledger.memory import MemoryBackend

__all__ = [
    "KV",
    "ChaincodeStub",
    "HistoryQueryIterator",
    "KeyModification",
    "LedgerBackend",
    "LedgerError",
    "MemoryBackend",
    "StateQueryIterator",
    "Timestamp",
]
