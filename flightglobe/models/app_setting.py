"""
AppSetting model - runtime settings as key/value rows.

Values are stored as strings and parsed by the settings store, which
falls back to defaults for anything malformed.
"""

from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from flightglobe.models.base import Base, UTCDateTime


class AppSetting(Base):
    """One runtime setting (refresh_interval, retention_days, client_tracking)."""

    __tablename__ = 'app_settings'

    key: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment='Setting name'
    )

    value: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment='Raw setting value'
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        comment='Last update timestamp'
    )

    def __repr__(self) -> str:
        return f'<AppSetting {self.key}={self.value!r}>'
