"""
Storage table for governed collections.

Each row holds one serialised record of one collection. A collection is
always rewritten inside a single transaction, so a reader after restart
sees either the previous or the next full state.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class StoredRecord(Base):
    __tablename__ = "mdm_stored_record"

    collection: Mapped[str] = mapped_column(String(32), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredRecord {self.collection}:{self.id}>"
