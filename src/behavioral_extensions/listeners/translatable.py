"""Translatable listener: per-locale field content.

Declarations::

    class Article(Base):
        __translatable__ = {"locale_attribute": "locale"}  # optional per-object override

        title = mapped_column(String(200), info={"translatable": True})
        teaser = mapped_column(Text, info={"translatable": {"fallback": True}})

The entity row holds the content in ``default_locale``. While the listener
works in another locale (``translatable_locale``):

* updates to translatable fields go to ``ext_translations`` and the entity
  row keeps its default-locale content;
* new rows are inserted with the given content and a translation row is
  written for the locale as well;
* loaded and refreshed rows (including the reload after an expiring
  commit) get their fields replaced by the stored translations. A field
  without a translation keeps the default content when fallback is on and
  reads as ``None`` when it is off (per-field ``fallback`` wins).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.attributes import set_committed_value

from behavioral_extensions.mapping.models import Translation

from .base import (
    MappedEventSubscriber,
    has_changed,
    identifier,
    object_class_name,
    previous_value,
)

logger = logging.getLogger(__name__)

_translations = Translation.__table__


class TranslatableListener(MappedEventSubscriber):
    namespace = "translatable"
    events = ("before_flush", "after_flush", "loaded_as_persistent", "refresh")

    def __init__(self, metadata_reader=None) -> None:
        super().__init__(metadata_reader)
        self.default_locale: str = "en"
        self.translatable_locale: str | None = None
        self.translation_fallback: bool = False
        self.persist_default_locale_translation: bool = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_translatable_locale(self, obj: Any = None) -> str:
        if obj is not None:
            options = self.get_configuration(type(obj)).class_option
            if isinstance(options, dict) and options.get("locale_attribute"):
                override = getattr(obj, options["locale_attribute"], None)
                if override:
                    return override
        return self.translatable_locale or self.default_locale

    def translatable_fields(self, cls: type) -> dict[str, bool]:
        """Translatable attribute keys mapped to their effective fallback."""
        fields: dict[str, bool] = {}
        for key, option in self.get_configuration(cls).columns.items():
            if option is False:
                continue
            fallback = self.translation_fallback
            if isinstance(option, dict) and "fallback" in option:
                fallback = bool(option["fallback"])
            fields[key] = fallback
        return fields

    @property
    def _pending_key(self) -> tuple[str, int]:
        return ("translatable.pending", id(self))

    def _writes_translations(self, locale: str) -> bool:
        return locale != self.default_locale or self.persist_default_locale_translation

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        new, dirty, _deleted = self.pending(session)
        # [(obj, {field: content})] awaiting primary keys until after_flush
        pending = flush_context.attributes.setdefault(self._pending_key, [])

        for obj in self.managed(new):
            locale = self.get_translatable_locale(obj)
            if not self._writes_translations(locale):
                continue
            contents = {
                key: getattr(obj, key)
                for key in self.translatable_fields(type(obj))
                if getattr(obj, key) is not None
            }
            if contents:
                pending.append((obj, contents))

        for obj in self.managed(dirty):
            locale = self.get_translatable_locale(obj)
            if not self._writes_translations(locale):
                continue
            contents = {}
            for key in self.translatable_fields(type(obj)):
                if not has_changed(obj, key):
                    continue
                contents[key] = getattr(obj, key)
                if locale != self.default_locale:
                    # Keep the default-locale content in the entity row
                    set_committed_value(obj, key, previous_value(obj, key))
            if contents:
                pending.append((obj, contents))

    def after_flush(self, session: Session, flush_context: Any) -> None:
        connection = session.connection()

        for obj in self.managed(session.deleted):
            foreign_key = identifier(obj)
            if foreign_key is None:
                continue
            connection.execute(
                delete(_translations).where(
                    _translations.c.object_class == object_class_name(obj),
                    _translations.c.foreign_key == foreign_key,
                )
            )

        for obj, contents in flush_context.attributes.get(self._pending_key, []):
            locale = self.get_translatable_locale(obj)
            foreign_key = identifier(obj)
            for field, content in contents.items():
                self._store(connection, obj, locale, foreign_key, field, content)
                set_committed_value(obj, field, content)
            logger.debug(
                "Stored %d %s translation(s) for %s#%s",
                len(contents), locale, type(obj).__name__, foreign_key,
            )

    def _store(self, connection: Any, obj: Any, locale: str, foreign_key: str | None,
               field: str, content: Any) -> None:
        lookup = (
            _translations.c.locale == locale,
            _translations.c.object_class == object_class_name(obj),
            _translations.c.field == field,
            _translations.c.foreign_key == foreign_key,
        )
        existing = connection.execute(select(_translations.c.id).where(*lookup)).scalar()
        value = None if content is None else str(content)
        if existing is None:
            connection.execute(
                _translations.insert().values(
                    locale=locale,
                    object_class=object_class_name(obj),
                    field=field,
                    foreign_key=foreign_key,
                    content=value,
                )
            )
        else:
            connection.execute(
                update(_translations).where(_translations.c.id == existing).values(content=value)
            )

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def loaded_as_persistent(self, session: Session, instance: Any) -> None:
        self._apply_translations(session, instance)

    def refresh(self, instance: Any, context: Any, attrs: Any) -> None:
        session = object_session(instance)
        if session is not None:
            self._apply_translations(session, instance, None if attrs is None else set(attrs))

    def _apply_translations(self, session: Session, instance: Any,
                            keys: set[str] | None = None) -> None:
        """Replace freshly loaded content (all fields, or only *keys*) with translations."""
        if not self.is_managed(instance):
            return
        locale = self.get_translatable_locale(instance)
        if locale == self.default_locale:
            return

        fields = {
            key: fallback
            for key, fallback in self.translatable_fields(type(instance)).items()
            if keys is None or key in keys
        }
        if not fields:
            return
        rows = session.connection().execute(
            select(_translations.c.field, _translations.c.content).where(
                _translations.c.locale == locale,
                _translations.c.object_class == object_class_name(instance),
                _translations.c.foreign_key == identifier(instance),
            )
        )
        translated = {field: content for field, content in rows if field in fields}

        for key, fallback in fields.items():
            if key in translated:
                set_committed_value(instance, key, translated[key])
            elif not fallback:
                set_committed_value(instance, key, None)

    def translations_for(self, session: Session, obj: Any) -> dict[str, dict[str, Any]]:
        """All stored translations of *obj* as ``{locale: {field: content}}``."""
        rows = session.execute(
            select(_translations.c.locale, _translations.c.field, _translations.c.content).where(
                _translations.c.object_class == object_class_name(obj),
                _translations.c.foreign_key == identifier(obj),
            )
        )
        result: dict[str, dict[str, Any]] = {}
        for locale, field, content in rows:
            result.setdefault(locale, {})[field] = content
        return result
