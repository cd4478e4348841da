"""Loggable listener: audit trail of versioned fields.

Declarations::

    class Article(Base):
        __loggable__ = True

        title = mapped_column(String(200), info={"versioned": True})

Each flush writes one ``ext_log_entries`` row per created, updated or
removed loggable object. Updates that touch no versioned field are not
logged. Versions count up from 1 per object.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from behavioral_extensions.core.clock import IClock, WallClock
from behavioral_extensions.core.enums import LogAction
from behavioral_extensions.mapping.models import LogEntry

from .base import MappedEventSubscriber, has_changed, identifier, object_class_name

logger = logging.getLogger(__name__)

_log_entries = LogEntry.__table__


def _to_json(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _to_json(v) for k, v in value.items()}
    return str(value)


class LoggableListener(MappedEventSubscriber):
    namespace = "loggable"
    events = ("after_flush",)

    def __init__(self, metadata_reader=None, clock: IClock | None = None) -> None:
        super().__init__(metadata_reader)
        self.username: str | None = None
        self.clock: IClock = clock or WallClock()

    def is_managed(self, obj: Any) -> bool:
        return bool(self.get_configuration(type(obj)).class_option)

    def versioned_fields(self, cls: type) -> list[str]:
        columns = self.metadata_reader.read(cls, "versioned").columns
        return [key for key, flag in columns.items() if flag]

    def after_flush(self, session: Session, flush_context: Any) -> None:
        connection = session.connection()

        for obj in self.managed(session.new):
            data = {key: _to_json(getattr(obj, key)) for key in self.versioned_fields(type(obj))}
            self._write(connection, obj, LogAction.CREATE, data)

        for obj in self.managed(session.dirty):
            changed = [key for key in self.versioned_fields(type(obj)) if has_changed(obj, key)]
            if not changed:
                continue
            data = {key: _to_json(getattr(obj, key)) for key in changed}
            self._write(connection, obj, LogAction.UPDATE, data)

        for obj in self.managed(session.deleted):
            self._write(connection, obj, LogAction.REMOVE, None)

    def _write(self, connection: Any, obj: Any, action: LogAction,
               data: dict[str, Any] | None) -> None:
        object_id = identifier(obj)
        object_class = object_class_name(obj)
        current = connection.execute(
            select(func.max(_log_entries.c.version)).where(
                _log_entries.c.object_class == object_class,
                _log_entries.c.object_id == object_id,
            )
        ).scalar()
        version = (current or 0) + 1

        connection.execute(
            _log_entries.insert().values(
                action=action.value,
                logged_at=self.clock.now(),
                object_id=object_id,
                object_class=object_class,
                version=version,
                data=data,
                username=self.username,
            )
        )
        logger.debug(
            "Logged %s of %s#%s (version %d)", action.value, object_class, object_id, version,
        )

    def get_log_entries(self, session: Session, obj: Any) -> list[LogEntry]:
        """Log entries of *obj*, newest first."""
        stmt = (
            select(LogEntry)
            .where(
                LogEntry.object_class == object_class_name(obj),
                LogEntry.object_id == identifier(obj),
            )
            .order_by(LogEntry.version.desc())
        )
        return list(session.execute(stmt).scalars())
