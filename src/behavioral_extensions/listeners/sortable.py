"""Sortable listener: keeps a gapless position column per group.

Declarations::

    position = mapped_column(Integer, info={"sortable": "position"})
    category_id = mapped_column(ForeignKey("categories.id"), info={"sortable": "group"})

Positions start at 0. A new row without a position (or with ``-1``) is
appended to its group; a row inserted or moved to an explicit position
shifts its siblings. Removing a row closes the gap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, func, inspect, not_, select, update
from sqlalchemy.orm import Session

from behavioral_extensions.core.errors import MappingError, SortableError

from .base import MappedEventSubscriber, has_changed, previous_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortableConfig:
    position: str
    groups: tuple[str, ...] = ()


class SortableListener(MappedEventSubscriber):
    namespace = "sortable"
    events = ("before_flush",)

    def sortable_config(self, cls: type) -> SortableConfig:
        config = self.get_configuration(cls)
        position = config.first_field_with("position")
        if position is None:
            raise MappingError(f"{cls.__name__} is sortable but declares no position column")
        return SortableConfig(position=position, groups=tuple(config.fields_with("group")))

    @staticmethod
    def _requested(obj: Any, config: SortableConfig) -> int | None:
        value = getattr(obj, config.position)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise SortableError(
                f"{type(obj).__name__}.{config.position} must be an integer, got {value!r}"
            )
        return value

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _group_filter(cls: type, config: SortableConfig, values: tuple[Any, ...]) -> list[Any]:
        clauses = []
        for key, value in zip(config.groups, values):
            column = getattr(cls, key)
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    @staticmethod
    def _not_self(obj: Any) -> Any:
        state = inspect(obj)
        if state.identity is None:
            return None
        return not_(and_(*[
            col == value for col, value in zip(state.mapper.primary_key, state.identity)
        ]))

    def _max_position(self, session: Session, cls: type, config: SortableConfig,
                      group: tuple[Any, ...]) -> int:
        column = getattr(cls, config.position)
        stmt = select(func.max(column)).where(*self._group_filter(cls, config, group))
        with session.no_autoflush:
            result = session.execute(stmt).scalar()
        return -1 if result is None else int(result)

    def _shift(self, session: Session, obj: Any, config: SortableConfig,
               group: tuple[Any, ...], delta: int, start: int, stop: int | None = None) -> None:
        """Add *delta* to positions in [start, stop] of a group, excluding *obj*."""
        cls = type(obj)
        table = inspect(cls).local_table
        column = inspect(cls).columns[config.position]
        clauses = [column >= start, *self._group_filter(cls, config, group)]
        if stop is not None:
            clauses.append(column <= stop)
        not_self = self._not_self(obj)
        if not_self is not None:
            clauses.append(not_self)

        stmt = update(table).where(*clauses).values({column.name: column + delta})
        with session.no_autoflush:
            session.execute(stmt)
        self._expire_siblings(session, obj, config, group)

    def _expire_siblings(self, session: Session, obj: Any, config: SortableConfig,
                         group: tuple[Any, ...]) -> None:
        cls = type(obj)
        for other in list(session.identity_map.values()):
            if other is obj or type(other) is not cls:
                continue
            if other in session.dirty or other in session.deleted:
                continue
            if tuple(getattr(other, k) for k in config.groups) == group:
                session.expire(other, [config.position])

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        new, dirty, deleted = self.pending(session)

        for obj in self.managed(deleted):
            config = self.sortable_config(type(obj))
            position = previous_value(obj, config.position)
            if position is None:
                continue
            group = tuple(previous_value(obj, k) for k in config.groups)
            self._shift(session, obj, config, group, -1, position + 1)

        for obj in self.managed(dirty):
            self._move(session, obj, self.sortable_config(type(obj)))

        # (class, group) -> next free position during this flush
        next_free: dict[tuple[type, tuple[Any, ...]], int] = {}
        # (class, group) -> new rows already placed; not in the database yet
        placed: dict[tuple[type, tuple[Any, ...]], list[Any]] = {}
        for obj in self.managed(new):
            config = self.sortable_config(type(obj))
            group = tuple(getattr(obj, k) for k in config.groups)
            key = (type(obj), group)
            if key not in next_free:
                next_free[key] = self._max_position(session, type(obj), config, group) + 1

            requested = self._requested(obj, config)
            if requested is None or requested < 0 or requested >= next_free[key]:
                setattr(obj, config.position, next_free[key])
            else:
                self._shift(session, obj, config, group, 1, requested)
                for sibling in placed.get(key, []):
                    if getattr(sibling, config.position) >= requested:
                        setattr(sibling, config.position, getattr(sibling, config.position) + 1)
            placed.setdefault(key, []).append(obj)
            next_free[key] += 1

    def _move(self, session: Session, obj: Any, config: SortableConfig) -> None:
        position_changed = has_changed(obj, config.position)
        group_changed = any(has_changed(obj, k) for k in config.groups)
        if not position_changed and not group_changed:
            return

        cls = type(obj)
        old_position = previous_value(obj, config.position)
        old_group = tuple(previous_value(obj, k) for k in config.groups)
        new_group = tuple(getattr(obj, k) for k in config.groups)
        requested = self._requested(obj, config)

        if group_changed:
            if old_position is not None:
                self._shift(session, obj, config, old_group, -1, old_position + 1)
            last = self._max_position(session, cls, config, new_group) + 1
            if requested is None or requested < 0 or requested >= last or not position_changed:
                setattr(obj, config.position, last)
            else:
                self._shift(session, obj, config, new_group, 1, requested)
            logger.debug("Moved %s to group %s", cls.__name__, new_group)
            return

        last = self._max_position(session, cls, config, new_group)
        if requested is None or requested < 0 or requested > last:
            requested = last
            setattr(obj, config.position, requested)
        if old_position is None or requested == old_position:
            return
        if requested > old_position:
            self._shift(session, obj, config, new_group, -1, old_position + 1, requested)
        else:
            self._shift(session, obj, config, new_group, 1, requested, old_position - 1)
