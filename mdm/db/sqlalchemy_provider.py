"""
SQLAlchemy-backed persistence provider.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mdm.core.logging import get_logger
from mdm.db.init_db import init_db
from mdm.db.provider import PersistenceProvider
from mdm.models import StoredRecord
from mdm.services.common.errors import PersistenceError

logger = get_logger(__name__)


class SqlAlchemyPersistenceProvider(PersistenceProvider):
    """
    Stores each collection as rows of `mdm_stored_record`.

    `save_all` deletes and re-inserts the collection in one transaction;
    `append` inserts rows after the last stored position. On any database
    error the transaction is rolled back and the previous state remains
    visible.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        engine: Optional[Engine] = None,
        create_tables: bool = True,
    ):
        self._session_factory = session_factory
        self._engine = engine
        if engine is not None and create_tables:
            init_db(engine)

    def load_all(self, collection: str) -> List[Dict[str, Any]]:
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(StoredRecord)
                    .where(StoredRecord.collection == collection)
                    .order_by(StoredRecord.position)
                ).scalars().all()
                return [dict(row.payload) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Loading {collection} failed: {e}", exc_info=True)
            raise PersistenceError(
                f"Failed to load {collection}",
                details={"collection": collection, "error_type": type(e).__name__},
            ) from e

    def save_all(self, collection: str, records: List[Dict[str, Any]]) -> None:
        def replace(session: Session) -> None:
            session.execute(delete(StoredRecord).where(StoredRecord.collection == collection))
            self._insert(session, collection, records, start=0)

        self._write(collection, replace)
        logger.debug(f"Saved {len(records)} records to {collection}")

    def append(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """Insert `records` after the current last position, leaving stored rows alone."""
        def extend(session: Session) -> None:
            last = session.execute(
                select(func.max(StoredRecord.position)).where(StoredRecord.collection == collection)
            ).scalar()
            self._insert(session, collection, records, start=0 if last is None else last + 1)

        self._write(collection, extend)
        logger.debug(f"Appended {len(records)} records to {collection}")

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @staticmethod
    def _insert(session: Session, collection: str, records: List[Dict[str, Any]], start: int) -> None:
        session.add_all(
            StoredRecord(
                collection=collection,
                id=str(record["id"]),
                position=start + offset,
                payload=record,
            )
            for offset, record in enumerate(records)
        )

    def _write(self, collection: str, work: Callable[[Session], None]) -> None:
        session = self._session_factory()
        try:
            with session.begin():
                work(session)
        except SQLAlchemyError as e:
            logger.error(f"Saving {collection} failed: {e}", exc_info=True)
            raise PersistenceError(
                f"Failed to save {collection}",
                details={"collection": collection, "error_type": type(e).__name__},
            ) from e
        finally:
            session.close()
