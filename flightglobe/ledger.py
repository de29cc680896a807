"""
Position ledger - the persistent store behind the pipeline.

Wraps the SQLAlchemy engine and exposes only the operations the core
needs: batch insert, latest-row lookup, time-window queries, age-based
delete, and the key/value settings table.

A deployment without DATABASE_URL has no ledger at all (from_config
returns None); callers treat that as a degraded-but-valid mode.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Generator, List, Optional

from sqlalchemy import delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flightglobe.config import config
from flightglobe.models import (
    AppSetting,
    FlightPosition,
    create_ledger_engine,
    create_session_factory,
    init_db,
)

logger = logging.getLogger(__name__)


class LedgerUnavailable(Exception):
    """The ledger could not be reached or queried."""


class LedgerWriteError(Exception):
    """A batch insert was rejected by the ledger."""


class PositionLedger:
    """
    Access layer for flight_positions and app_settings.

    Read failures surface as LedgerUnavailable, insert failures as
    LedgerWriteError; the pipeline components decide how to degrade.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> 'PositionLedger':
        """Create a ledger for a database URL and ensure its schema exists."""
        ledger = cls(create_ledger_engine(url, echo=echo))
        ledger.init_schema()
        return ledger

    @classmethod
    def from_config(cls) -> Optional['PositionLedger']:
        """Create ledger from application configuration, or None if unconfigured."""
        if not config.database.is_configured:
            logger.warning('DATABASE_URL not set; flight history will not be saved')
            return None
        return cls.from_url(config.database.url, echo=config.debug)

    def init_schema(self) -> None:
        init_db(self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for ledger sessions.

        Usage:
            with ledger.session() as session:
                session.execute(...)

        Automatically handles commit/rollback and session cleanup.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Check connectivity."""
        try:
            with self.session() as session:
                session.execute(text('SELECT 1'))
            return True
        except SQLAlchemyError as e:
            logger.error(f'Ledger health check failed: {e}')
            return False

    # -------------------------------------------------------------------------
    # Positions
    # -------------------------------------------------------------------------

    def insert_positions(self, records: List[dict]) -> int:
        """
        Insert position rows as a single batch.

        All-or-nothing: either every record is committed or none is.
        """
        if not records:
            return 0

        try:
            with self.session() as session:
                session.execute(FlightPosition.__table__.insert(), records)
        except SQLAlchemyError as e:
            raise LedgerWriteError(str(e)) from e

        return len(records)

    def latest_position(self, icao24: str) -> Optional[FlightPosition]:
        """Most recently recorded row for an aircraft, any region or source."""
        stmt = (
            select(FlightPosition)
            .where(FlightPosition.icao24 == icao24)
            .order_by(FlightPosition.recorded_at.desc())
            .limit(1)
        )
        try:
            with self.session() as session:
                return session.scalars(stmt).first()
        except SQLAlchemyError as e:
            raise LedgerUnavailable(str(e)) from e

    def query_by_aircraft(
        self,
        icao24: str,
        since: Optional[datetime] = None,
    ) -> List[FlightPosition]:
        """All rows for one aircraft, optionally from a cutoff onwards."""
        return self.query_by_window(since=since, icao24=icao24)

    def query_by_window(
        self,
        since: Optional[datetime] = None,
        region: Optional[str] = None,
        icao24: Optional[str] = None,
    ) -> List[FlightPosition]:
        """
        Rows recorded at or after `since`, optionally filtered.

        No ordering is applied; consumers establish their own.
        """
        stmt = select(FlightPosition)
        if since is not None:
            stmt = stmt.where(FlightPosition.recorded_at >= since)
        if region is not None:
            stmt = stmt.where(FlightPosition.region == region)
        if icao24 is not None:
            stmt = stmt.where(FlightPosition.icao24 == icao24)

        try:
            with self.session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise LedgerUnavailable(str(e)) from e

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete rows recorded strictly before cutoff. Returns rows removed."""
        try:
            with self.session() as session:
                result = session.execute(
                    delete(FlightPosition).where(FlightPosition.recorded_at < cutoff)
                )
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise LedgerUnavailable(str(e)) from e

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_settings(self) -> Dict[str, str]:
        """Raw settings rows as a key -> value mapping."""
        try:
            with self.session() as session:
                rows = session.scalars(select(AppSetting)).all()
                return {row.key: row.value for row in rows}
        except SQLAlchemyError as e:
            raise LedgerUnavailable(str(e)) from e

    def upsert_setting(self, key: str, value: str) -> bool:
        """Insert or replace one setting. Returns False on failure."""
        try:
            with self.session() as session:
                session.merge(AppSetting(
                    key=key,
                    value=value,
                    updated_at=datetime.now(timezone.utc),
                ))
        except SQLAlchemyError as e:
            logger.error(f'Error updating setting {key}: {e}')
            return False
        return True
