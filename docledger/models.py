"""SQLAlchemy ORM models backing the development ledger."""
from sqlalchemy import Column, Boolean, BigInteger, Integer, LargeBinary, Text

from docledger.database import Base


class LedgerState(Base):
    """Current committed value of a key."""
    __tablename__ = "ledger_state"

    key = Column(Text, primary_key=True)
    value = Column(LargeBinary, nullable=False)


class LedgerHistory(Base):
    """One modification of a key, in commit order."""
    __tablename__ = "ledger_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, nullable=False, index=True)
    tx_id = Column(Text, nullable=False)
    value = Column(LargeBinary)  # NULL for deletes
    is_delete = Column(Boolean, nullable=False, default=False)
    timestamp_seconds = Column(BigInteger, nullable=False)
    timestamp_nanos = Column(Integer, nullable=False, default=0)
