"""SQLAlchemy ORM models owned by the extensions.

LogEntry     audit trail written by the loggable listener
Translation  per-field, per-locale content written by the translatable listener

Both live on their own declarative base. Applications pull the tables into
their own ``MetaData`` with :func:`register_extension_mappings` so that
``metadata.create_all`` (or an alembic autogenerate) picks them up.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class ExtensionBase(DeclarativeBase):
    """Declarative base for the extension tables."""

    pass


# ---------------------------------------------------------------------------
# LogEntry
# ---------------------------------------------------------------------------

class LogEntry(ExtensionBase):
    """One versioned change of a loggable entity.

    ``data`` holds the versioned field values after the change; it is
    ``None`` for removals.
    """

    __tablename__ = "ext_log_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(8), nullable=False)
    logged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    object_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    object_class: Mapped[str] = mapped_column(String(191), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    username: Mapped[str | None] = mapped_column(String(191), nullable=True)

    __table_args__ = (
        Index("ix_ext_log_entries_class_lookup", "object_class"),
        Index("ix_ext_log_entries_date_lookup", "logged_at"),
        Index("ix_ext_log_entries_user_lookup", "username"),
        Index("ix_ext_log_entries_version_lookup", "object_id", "object_class", "version"),
    )

    def __repr__(self) -> str:
        return (
            f"<LogEntry(object_class={self.object_class!r}, "
            f"object_id={self.object_id!r}, action={self.action!r}, "
            f"version={self.version!r})>"
        )


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------

class Translation(ExtensionBase):
    """Content of one translatable field in one locale."""

    __tablename__ = "ext_translations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    locale: Mapped[str] = mapped_column(String(8), nullable=False)
    object_class: Mapped[str] = mapped_column(String(191), nullable=False)
    field: Mapped[str] = mapped_column(String(32), nullable=False)
    foreign_key: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "locale", "object_class", "field", "foreign_key",
            name="uq_ext_translations_lookup",
        ),
        Index("ix_ext_translations_lookup", "locale", "object_class", "foreign_key"),
    )

    def __repr__(self) -> str:
        return (
            f"<Translation(object_class={self.object_class!r}, "
            f"foreign_key={self.foreign_key!r}, field={self.field!r}, "
            f"locale={self.locale!r})>"
        )


def register_extension_mappings(metadata: MetaData) -> list[str]:
    """Copy the extension tables into an application ``MetaData``.

    Tables already present in *metadata* are left alone. Returns the names
    of the tables that were added.
    """
    added: list[str] = []
    for table in ExtensionBase.metadata.sorted_tables:
        if table.name in metadata.tables:
            continue
        table.to_metadata(metadata)
        added.append(table.name)
    if added:
        logger.info("Registered extension mappings: %s", ", ".join(added))
    return added
