"""Shared base for the behavioral listeners."""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Iterable

from sqlalchemy import inspect, select
from sqlalchemy.orm import ColumnProperty, Session
from sqlalchemy.orm.attributes import get_history

from behavioral_extensions.mapping.reader import (
    CachedMetadataReader,
    ExtensionMetadata,
    MetadataReader,
)

logger = logging.getLogger(__name__)

_default_reader = CachedMetadataReader()


def object_class_name(obj: Any) -> str:
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def primary_key(obj: Any) -> tuple[Any, ...]:
    """Primary key values, usable inside after_flush.

    Persistent and deleted objects answer from their identity key without
    loading expired attributes; rows inserted by the current flush have no
    identity key yet and are read from the instance.
    """
    state = inspect(obj)
    if state.identity is not None:
        return tuple(state.identity)
    return tuple(state.mapper.primary_key_from_instance(obj))


def identifier(obj: Any) -> str | None:
    """Primary key as a string ("1", or "1-2" for composites)."""
    values = primary_key(obj)
    if any(v is None for v in values):
        return None
    return "-".join(str(v) for v in values)


def has_changed(obj: Any, key: str) -> bool:
    return get_history(obj, key).has_changes()


def previous_value(obj: Any, key: str) -> Any:
    """Value loaded from the database before the pending change."""
    history = get_history(obj, key)
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    if history.added:
        # assigned while expired, so the old value was never loaded
        return stored_value(obj, key)
    return None


def stored_value(obj: Any, key: str) -> Any:
    """Column value currently in the database row of a persistent object."""
    state = inspect(obj)
    prop = state.mapper.attrs.get(key)
    if state.identity is None or state.session is None or not isinstance(prop, ColumnProperty):
        return None
    criteria = [col == value for col, value in zip(state.mapper.primary_key, state.identity)]
    with state.session.no_autoflush:
        return state.session.execute(select(prop.columns[0]).where(*criteria)).scalar()


class MappedEventSubscriber:
    """Base class for listeners driven by mapping metadata.

    Subclasses set ``namespace`` and ``events`` and implement one method per
    event name.
    """

    namespace: ClassVar[str] = ""
    events: ClassVar[tuple[str, ...]] = ()

    def __init__(self, metadata_reader: MetadataReader | None = None) -> None:
        self.metadata_reader: MetadataReader = metadata_reader or _default_reader

    def get_subscribed_events(self) -> list[str]:
        return list(self.events)

    def get_configuration(self, cls: type) -> ExtensionMetadata:
        return self.metadata_reader.read(cls, self.namespace)

    def is_managed(self, obj: Any) -> bool:
        return not self.get_configuration(type(obj)).is_empty

    def managed(self, objects: Iterable[Any]) -> list[Any]:
        return [obj for obj in objects if self.is_managed(obj)]

    @staticmethod
    def pending(session: Session) -> tuple[list[Any], list[Any], list[Any]]:
        """(new, dirty, deleted) snapshot of the session."""
        dirty = [obj for obj in session.dirty if session.is_modified(obj)]
        return list(session.new), dirty, list(session.deleted)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(namespace={self.namespace!r})>"
