"""Tree listener: materialized path hierarchies.

Declarations::

    class Category(Base):
        __tree__ = {"separator": ","}

        id = mapped_column(Integer, primary_key=True)
        parent_id = mapped_column(ForeignKey("categories.id"))
        path = mapped_column(String(3000), info={"tree": "path"})
        level = mapped_column(Integer, info={"tree": "level"})
        parent = relationship(remote_side=[id], info={"tree": "parent"})

A node's path is its parent's path followed by its own path source (the
primary key unless a column is declared ``{"tree": "path_source"}``) and
the separator, e.g. ``"1,4,9,"``. The level is the number of path
segments, so roots are at level 1. Moving a node rewrites the paths and
levels of all of its descendants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, inspect, literal, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from behavioral_extensions.core.errors import MappingError, TreeError

from .base import (
    MappedEventSubscriber,
    has_changed,
    identifier,
    previous_value,
    primary_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeConfig:
    parent: str
    path: str
    level: str | None = None
    source: str | None = None
    separator: str = ","


class TreeListener(MappedEventSubscriber):
    namespace = "tree"
    events = ("before_flush", "after_flush")

    def tree_config(self, cls: type) -> TreeConfig:
        config = self.get_configuration(cls)
        parent = config.relationship_with("parent")
        path = config.first_field_with("path")
        if parent is None or path is None:
            raise MappingError(
                f"{cls.__name__} is a tree but lacks a 'parent' relationship or 'path' column"
            )
        options = config.class_option if isinstance(config.class_option, dict) else {}
        return TreeConfig(
            parent=parent,
            path=path,
            level=config.first_field_with("level"),
            source=config.first_field_with("path_source"),
            separator=options.get("separator", ","),
        )

    def _parent_changed(self, obj: Any, config: TreeConfig) -> bool:
        return has_changed(obj, config.parent)

    def _source_value(self, obj: Any, config: TreeConfig) -> str:
        if config.source is not None:
            value = getattr(obj, config.source)
        else:
            value = identifier(obj)
        if value is None:
            raise TreeError(f"{type(obj).__name__} has no path source value yet")
        value = str(value)
        if config.separator in value:
            raise TreeError(
                f"Path source {value!r} of {type(obj).__name__} contains the separator "
                f"{config.separator!r}"
            )
        return value

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        _new, dirty, _deleted = self.pending(session)
        for obj in self.managed(_new + dirty):
            config = self.tree_config(type(obj))
            ancestor = getattr(obj, config.parent)
            seen: set[int] = set()
            while ancestor is not None:
                if ancestor is obj:
                    raise TreeError(f"{type(obj).__name__} cannot be its own ancestor")
                if id(ancestor) in seen:
                    break
                seen.add(id(ancestor))
                ancestor = getattr(ancestor, config.parent)

    def after_flush(self, session: Session, flush_context: Any) -> None:
        new = self.managed(session.new)
        moved = [
            obj for obj in self.managed(session.dirty)
            if self._parent_changed(obj, self.tree_config(type(obj)))
            or (
                self.tree_config(type(obj)).source is not None
                and has_changed(obj, self.tree_config(type(obj)).source)
            )
        ]
        # Parents before children so each node sees its parent's fresh path
        for obj in sorted(new + moved, key=lambda o: self._depth(o)):
            self._update_path(session, obj, is_new=obj in new)

    def _depth(self, obj: Any) -> int:
        config = self.tree_config(type(obj))
        depth = 0
        node = getattr(obj, config.parent)
        seen: set[int] = set()
        while node is not None and id(node) not in seen:
            seen.add(id(node))
            depth += 1
            node = getattr(node, config.parent)
        return depth

    def _update_path(self, session: Session, obj: Any, is_new: bool) -> None:
        config = self.tree_config(type(obj))
        parent = getattr(obj, config.parent)
        prefix = getattr(parent, config.path) if parent is not None else ""
        path = f"{prefix or ''}{self._source_value(obj, config)}{config.separator}"
        level = path.count(config.separator)

        old_path = old_level = None
        if not is_new:
            old_path = previous_value(obj, config.path)
            if config.level:
                old_level = previous_value(obj, config.level)

        mapper = inspect(obj).mapper
        table = mapper.local_table
        pk_clause = [col == value for col, value in zip(mapper.primary_key, primary_key(obj))]

        values = {mapper.columns[config.path].name: path}
        if config.level:
            values[mapper.columns[config.level].name] = level
        session.connection().execute(update(table).where(*pk_clause).values(values))
        set_committed_value(obj, config.path, path)
        if config.level:
            set_committed_value(obj, config.level, level)

        if old_path and old_path != path:
            delta = level - (old_level if old_level is not None else old_path.count(config.separator))
            self._rewrite_descendants(session, obj, config, old_path, path, delta)

    def _rewrite_descendants(self, session: Session, obj: Any, config: TreeConfig,
                             old_path: str, new_path: str, delta: int) -> None:
        mapper = inspect(obj).mapper
        table = mapper.local_table
        path_col = mapper.columns[config.path]
        values: dict[str, Any] = {
            path_col.name: literal(new_path) + func.substr(path_col, len(old_path) + 1),
        }
        if config.level:
            level_col = mapper.columns[config.level]
            values[level_col.name] = level_col + delta

        stmt = (
            update(table)
            .where(path_col.like(f"{old_path}%"), path_col != new_path)
            .values(values)
        )
        result = session.connection().execute(stmt)
        logger.debug(
            "Moved subtree %s -> %s (%s descendants)", old_path, new_path, result.rowcount,
        )

        for other in list(session.identity_map.values()):
            if other is obj or type(other) is not type(obj):
                continue
            current = inspect(other).dict.get(config.path)
            if current and current.startswith(old_path):
                set_committed_value(other, config.path, new_path + current[len(old_path):])
                if config.level and config.level in inspect(other).dict:
                    set_committed_value(other, config.level, getattr(other, config.level) + delta)
