"""Timestampable listener and the shared field-tracking logic.

Columns declare when they are written::

    created_at = mapped_column(DateTime, info={"timestampable": "create"})
    updated_at = mapped_column(DateTime, info={"timestampable": "update"})
    published_at = mapped_column(
        DateTime,
        info={"timestampable": {"on": "change", "field": "status", "value": "published"}},
    )

``create`` fields are filled on insert when empty; ``update`` fields on
insert when empty and on every update; ``change`` fields when the watched
field changes (to ``value``, or to anything when no value is given).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from behavioral_extensions.core.clock import IClock, WallClock
from behavioral_extensions.core.enums import Trigger
from behavioral_extensions.core.errors import MappingError

from .base import MappedEventSubscriber, has_changed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedField:
    key: str
    on: Trigger
    field: str | None = None
    value: Any = None


def _parse(key: str, option: Any) -> TrackedField:
    if isinstance(option, (str, Trigger)):
        option = {"on": option}
    if not isinstance(option, dict) or "on" not in option:
        raise MappingError(f"Invalid tracking declaration on {key!r}: {option!r}")
    try:
        on = Trigger(option["on"])
    except ValueError as exc:
        raise MappingError(f"Unknown trigger on {key!r}: {option['on']!r}") from exc
    if on is Trigger.CHANGE and not option.get("field"):
        raise MappingError(f"Change trigger on {key!r} requires a 'field'")
    return TrackedField(key=key, on=on, field=option.get("field"), value=option.get("value"))


class AbstractTrackingListener(MappedEventSubscriber):
    """Writes a value into tracked fields on create/update/change."""

    events = ("before_flush",)

    def get_field_value(self, obj: Any, key: str) -> Any:
        raise NotImplementedError

    def tracked_fields(self, cls: type) -> list[TrackedField]:
        config = self.get_configuration(cls)
        return [_parse(key, option) for key, option in config.columns.items()]

    def _matches_change(self, obj: Any, tracked: TrackedField) -> bool:
        history = get_history(obj, tracked.field)
        if not history.has_changes():
            return False
        if tracked.value is None:
            return True
        new = history.added[0] if history.added else None
        if isinstance(tracked.value, (list, tuple, set)):
            return new in tracked.value
        return new == tracked.value

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        new, dirty, _deleted = self.pending(session)

        for obj in self.managed(new):
            for tracked in self.tracked_fields(type(obj)):
                if tracked.on is Trigger.CHANGE:
                    continue
                if getattr(obj, tracked.key) is None:
                    self._write(obj, tracked.key)

        for obj in self.managed(dirty):
            for tracked in self.tracked_fields(type(obj)):
                if tracked.on is Trigger.CREATE:
                    continue
                if tracked.on is Trigger.UPDATE:
                    # A value assigned by hand wins over the tracked one
                    if not has_changed(obj, tracked.key):
                        self._write(obj, tracked.key)
                elif self._matches_change(obj, tracked):
                    self._write(obj, tracked.key)

    def _write(self, obj: Any, key: str) -> None:
        value = self.get_field_value(obj, key)
        if value is None:
            return
        setattr(obj, key, value)


class TimestampableListener(AbstractTrackingListener):
    namespace = "timestampable"

    def __init__(self, metadata_reader=None, clock: IClock | None = None) -> None:
        super().__init__(metadata_reader)
        self.clock: IClock = clock or WallClock()

    def get_field_value(self, obj: Any, key: str) -> Any:
        return self.clock.now()
