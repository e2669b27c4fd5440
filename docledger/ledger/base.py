"""
Ledger state API exposed to the chaincode.

The contract never talks to storage directly. Each invocation receives a
ChaincodeStub bound to one transaction: reads go to the committed state of a
LedgerBackend, writes are buffered in the stub's write set and only reach the
backend when the host commits the transaction.
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple, Optional

import structlog

from docledger import metrics

logger = structlog.get_logger()


class LedgerError(Exception):
    """Raised by the ledger API when a state operation cannot be served."""


@dataclass(frozen=True)
class Timestamp:
    """Transaction timestamp as seconds and nanos since the Unix epoch."""

    seconds: int
    nanos: int = 0

    @classmethod
    def now(cls) -> "Timestamp":
        ns = time.time_ns()
        return cls(seconds=ns // 1_000_000_000, nanos=ns % 1_000_000_000)


class KV(NamedTuple):
    """A single state entry returned by a range query."""

    key: str
    value: bytes


class KeyModification(NamedTuple):
    """A single entry of a key's change history."""

    tx_id: str
    value: bytes
    timestamp: Timestamp
    is_delete: bool


class _QueryIterator:
    """
    Iterator over backend query results that must be closed after use.

    Supports the context manager protocol so callers can guarantee release
    of the underlying cursor on every exit path.
    """

    def __init__(self, source: Iterable):
        self._source = iter(source)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise LedgerError("query iterator is closed")
        return next(self._source)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class StateQueryIterator(_QueryIterator):
    """Iterator of KV pairs from a range query."""


class HistoryQueryIterator(_QueryIterator):
    """Iterator of KeyModification entries from a history query."""


class LedgerBackend(ABC):
    """Committed ledger state plus the change history of every key."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the committed value for key, or None when absent."""

    @abstractmethod
    def scan(self, start_key: str, end_key: str) -> Iterator[KV]:
        """Yield entries with start_key <= key < end_key in key order.

        An empty end_key leaves the range unbounded above.
        """

    @abstractmethod
    def history(self, key: str) -> Iterator[KeyModification]:
        """Yield the modifications of key, oldest first."""

    @abstractmethod
    def apply(
        self,
        tx_id: str,
        timestamp: Timestamp,
        writes: dict[str, Optional[bytes]],
    ) -> None:
        """Commit a write set. A None value deletes the key."""

    def discard(self) -> None:
        """Drop any pending backend work for an uncommitted transaction."""


class ChaincodeStub:
    """Transaction-scoped view of the ledger handed to the contract."""

    def __init__(
        self,
        backend: LedgerBackend,
        tx_id: str,
        args: list[str],
        timestamp: Optional[Timestamp] = None,
    ):
        self.backend = backend
        self.tx_id = tx_id
        self.args = list(args)
        self.timestamp = timestamp or Timestamp.now()
        self.write_set: dict[str, Optional[bytes]] = {}

    def get_args(self) -> list[str]:
        return list(self.args)

    def get_function_and_parameters(self) -> tuple[str, list[str]]:
        """Split the invocation arguments into function name and parameters."""
        if not self.args:
            return "", []
        return self.args[0], self.args[1:]

    def get_tx_id(self) -> str:
        return self.tx_id

    def get_tx_timestamp(self) -> Timestamp:
        return self.timestamp

    def get_state(self, key: str) -> bytes:
        """Return the committed value for key, or empty bytes when absent."""
        metrics.record_ledger_operation("get_state")
        value = self.backend.get(key)
        return value if value is not None else b""

    def put_state(self, key: str, value: bytes) -> None:
        _validate_key(key)
        metrics.record_ledger_operation("put_state")
        self.write_set[key] = bytes(value)

    def del_state(self, key: str) -> None:
        _validate_key(key)
        metrics.record_ledger_operation("del_state")
        self.write_set[key] = None

    def get_state_by_range(self, start_key: str, end_key: str) -> StateQueryIterator:
        metrics.record_ledger_operation("get_state_by_range")
        if end_key and start_key > end_key:
            raise LedgerError(
                f"invalid range: start key {start_key!r} is after end key {end_key!r}"
            )
        logger.debug("range_query_opened", start_key=start_key, end_key=end_key)
        return StateQueryIterator(self.backend.scan(start_key, end_key))

    def get_history_for_key(self, key: str) -> HistoryQueryIterator:
        _validate_key(key)
        metrics.record_ledger_operation("get_history_for_key")
        logger.debug("history_query_opened", key=key)
        return HistoryQueryIterator(self.backend.history(key))

    def commit(self) -> None:
        """Apply the buffered write set to the backend."""
        self.backend.apply(self.tx_id, self.timestamp, dict(self.write_set))
        logger.debug("write_set_committed", write_count=len(self.write_set))

    def rollback(self) -> None:
        self.write_set.clear()
        self.backend.discard()


def _validate_key(key: str) -> None:
    if not key:
        raise LedgerError("key must not be an empty string")
