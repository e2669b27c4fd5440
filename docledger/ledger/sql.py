"""SQLAlchemy ledger backend.

State and history live in two tables. A backend instance is bound to one
session; the host commits the session after a successful invocation and
rolls it back otherwise.
"""
from typing import Iterator, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docledger.ledger.base import KV, KeyModification, LedgerBackend, LedgerError, Timestamp
from docledger.models import LedgerHistory, LedgerState

logger = structlog.get_logger()


class SqlBackend(LedgerBackend):
    """Ledger backend persisting state through a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[bytes]:
        try:
            row = self.db.get(LedgerState, key)
        except SQLAlchemyError as e:
            raise LedgerError(f"failed to read state for key {key}: {e}") from e
        return bytes(row.value) if row is not None else None

    def scan(self, start_key: str, end_key: str) -> Iterator[KV]:
        query = select(LedgerState).where(LedgerState.key >= start_key)
        if end_key:
            query = query.where(LedgerState.key < end_key)
        query = query.order_by(LedgerState.key)

        try:
            result = self.db.execute(query)
        except SQLAlchemyError as e:
            raise LedgerError(f"range query failed: {e}") from e

        try:
            for row in result.scalars():
                yield KV(row.key, bytes(row.value))
        except SQLAlchemyError as e:
            raise LedgerError(f"range query failed: {e}") from e
        finally:
            result.close()

    def history(self, key: str) -> Iterator[KeyModification]:
        query = (
            select(LedgerHistory)
            .where(LedgerHistory.key == key)
            .order_by(LedgerHistory.id)
        )

        try:
            result = self.db.execute(query)
        except SQLAlchemyError as e:
            raise LedgerError(f"history query failed for key {key}: {e}") from e

        try:
            for row in result.scalars():
                yield KeyModification(
                    tx_id=row.tx_id,
                    value=bytes(row.value) if row.value is not None else b"",
                    timestamp=Timestamp(row.timestamp_seconds, row.timestamp_nanos),
                    is_delete=row.is_delete,
                )
        except SQLAlchemyError as e:
            raise LedgerError(f"history query failed for key {key}: {e}") from e
        finally:
            result.close()

    def apply(
        self,
        tx_id: str,
        timestamp: Timestamp,
        writes: dict[str, Optional[bytes]],
    ) -> None:
        try:
            for key, value in writes.items():
                current = self.db.get(LedgerState, key)
                if value is None:
                    if current is not None:
                        self.db.delete(current)
                elif current is None:
                    self.db.add(LedgerState(key=key, value=value))
                else:
                    current.value = value

                self.db.add(LedgerHistory(
                    key=key,
                    tx_id=tx_id,
                    value=value,
                    is_delete=value is None,
                    timestamp_seconds=timestamp.seconds,
                    timestamp_nanos=timestamp.nanos,
                ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("ledger_commit_failed", tx_id=tx_id, error=str(e))
            raise LedgerError(f"failed to commit transaction {tx_id}: {e}") from e

    def discard(self) -> None:
        self.db.rollback()
