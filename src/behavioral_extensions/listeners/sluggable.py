"""Sluggable listener: URL slugs built from other fields.

Declaration on the slug column::

    slug = mapped_column(
        String(200),
        info={"sluggable": {"fields": ["title"], "separator": "-",
                            "unique": True, "updatable": True}},
    )

Only ``fields`` is required. A slug assigned by hand is kept but still
transliterated and urlized. Unique slugs that collide get ``-1``, ``-2``...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, inspect, not_, or_, select
from sqlalchemy.orm import Session

from behavioral_extensions.core.errors import MappingError
from behavioral_extensions.transliterator import (
    Transliterator,
    replace_special_signs,
    resolve_transliterator,
    urlize,
)

from .base import MappedEventSubscriber, has_changed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlugField:
    key: str
    fields: tuple[str, ...]
    separator: str = "-"
    unique: bool = True
    updatable: bool = True


def _parse(key: str, option: Any) -> SlugField:
    if isinstance(option, (list, tuple)):
        option = {"fields": option}
    if not isinstance(option, dict) or not option.get("fields"):
        raise MappingError(f"Sluggable field {key!r} must name its source 'fields'")
    return SlugField(
        key=key,
        fields=tuple(option["fields"]),
        separator=option.get("separator", "-"),
        unique=option.get("unique", True),
        updatable=option.get("updatable", True),
    )


class SluggableListener(MappedEventSubscriber):
    namespace = "sluggable"
    events = ("before_flush",)

    def __init__(self, metadata_reader=None) -> None:
        super().__init__(metadata_reader)
        self._transliterator: Transliterator = replace_special_signs
        self._urlizer: Transliterator = urlize

    @property
    def transliterator(self) -> Transliterator:
        return self._transliterator

    def set_transliterator(self, callable_or_reference: Any) -> None:
        self._transliterator = resolve_transliterator(callable_or_reference)

    def set_urlizer(self, callable_or_reference: Any) -> None:
        self._urlizer = resolve_transliterator(callable_or_reference)

    def slug_fields(self, cls: type) -> list[SlugField]:
        config = self.get_configuration(cls)
        return [_parse(key, option) for key, option in config.columns.items()]

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        new, dirty, _deleted = self.pending(session)
        # (class, slug column) -> slugs handed out during this flush
        reserved: dict[tuple[type, str], set[str]] = {}

        for obj in self.managed(new):
            for slug_field in self.slug_fields(type(obj)):
                manual = bool(getattr(obj, slug_field.key))
                self._generate(session, obj, slug_field, reserved, manual)

        for obj in self.managed(dirty):
            for slug_field in self.slug_fields(type(obj)):
                touched = has_changed(obj, slug_field.key)
                manual = touched and bool(getattr(obj, slug_field.key))
                sources = any(has_changed(obj, f) for f in slug_field.fields)
                if touched or (slug_field.updatable and sources):
                    self._generate(session, obj, slug_field, reserved, manual)

    def build_slug(self, obj: Any, slug_field: SlugField, manual: bool = False) -> str:
        """Slug from the hand-set value when *manual*, else from the source fields."""
        if manual:
            text = str(getattr(obj, slug_field.key))
        else:
            parts = [getattr(obj, f) for f in slug_field.fields]
            text = " ".join(str(p) for p in parts if p not in (None, ""))
        text = self._transliterator(text, slug_field.separator)
        return self._urlizer(text, slug_field.separator)

    def _generate(
        self,
        session: Session,
        obj: Any,
        slug_field: SlugField,
        reserved: dict[tuple[type, str], set[str]],
        manual: bool,
    ) -> None:
        slug = self.build_slug(obj, slug_field, manual)
        if not slug:
            raise MappingError(
                f"Unable to build a slug for {type(obj).__name__}.{slug_field.key}: "
                f"source fields {list(slug_field.fields)} are empty"
            )

        if slug_field.unique:
            taken = reserved.setdefault((type(obj), slug_field.key), set())
            slug = self._make_unique(session, obj, slug_field, slug, taken)
            taken.add(slug)

        if getattr(obj, slug_field.key) != slug:
            setattr(obj, slug_field.key, slug)
            logger.debug("Slug %s.%s = %s", type(obj).__name__, slug_field.key, slug)

    def _make_unique(
        self,
        session: Session,
        obj: Any,
        slug_field: SlugField,
        slug: str,
        taken: set[str],
    ) -> str:
        cls = type(obj)
        column = getattr(cls, slug_field.key)
        sep = slug_field.separator
        stmt = select(column).where(or_(column == slug, column.like(f"{slug}{sep}%")))

        state = inspect(obj)
        if state.identity is not None:
            mapper = state.mapper
            stmt = stmt.where(
                not_(and_(*[
                    col == value
                    for col, value in zip(mapper.primary_key, state.identity)
                ]))
            )

        with session.no_autoflush:
            existing = set(session.execute(stmt).scalars())
        existing |= taken

        if slug not in existing:
            return slug
        i = 1
        while f"{slug}{sep}{i}" in existing:
            i += 1
        return f"{slug}{sep}{i}"
