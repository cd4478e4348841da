"""Extension metadata read from SQLAlchemy mappings.

Entities opt into a behavior through the ``info`` dictionary of their
columns and relationships, or through a class attribute named after the
extension::

    class Article(Base):
        __tablename__ = "articles"
        __loggable__ = True

        title: Mapped[str] = mapped_column(
            String(200), info={"versioned": True, "translatable": True},
        )
        slug: Mapped[str] = mapped_column(
            String(200), info={"sluggable": {"fields": ["title"]}},
        )

:meth:`MetadataReader.read` collects every declaration for one namespace
into an :class:`ExtensionMetadata`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtensionMetadata:
    """Declarations of one extension namespace on one mapped class."""

    namespace: str
    class_option: Any = None  # value of ``__<namespace>__`` on the class
    columns: dict[str, Any] = field(default_factory=dict)  # attr key -> info value
    relationships: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.class_option is None and not self.columns and not self.relationships

    def fields_with(self, value: Any) -> list[str]:
        """Attribute keys whose declaration equals *value*."""
        return [key for key, opt in self.columns.items() if opt == value]

    def first_field_with(self, value: Any) -> str | None:
        matches = self.fields_with(value)
        return matches[0] if matches else None

    def relationship_with(self, value: Any) -> str | None:
        for key, opt in self.relationships.items():
            if opt == value:
                return key
        return None


class MetadataReader:
    """Reads extension declarations from mapped classes."""

    def read(self, cls: type, namespace: str) -> ExtensionMetadata:
        try:
            mapper = inspect(cls)
        except NoInspectionAvailable:
            return ExtensionMetadata(namespace=namespace)

        columns: dict[str, Any] = {}
        for prop in mapper.column_attrs:
            for column in prop.columns:
                if namespace in column.info:
                    columns[prop.key] = column.info[namespace]
                    break
            else:
                if namespace in prop.info:
                    columns[prop.key] = prop.info[namespace]

        relationships: dict[str, Any] = {}
        for rel in mapper.relationships:
            if namespace in rel.info:
                relationships[rel.key] = rel.info[namespace]

        class_option = getattr(cls, f"__{namespace}__", None)
        return ExtensionMetadata(
            namespace=namespace,
            class_option=class_option,
            columns=columns,
            relationships=relationships,
        )


class CachedMetadataReader(MetadataReader):
    """MetadataReader that memoizes per (class, namespace)."""

    def __init__(self) -> None:
        self._cache: dict[tuple[type, str], ExtensionMetadata] = {}

    def read(self, cls: type, namespace: str) -> ExtensionMetadata:
        key = (cls, namespace)
        cached = self._cache.get(key)
        if cached is None:
            cached = super().read(cls, namespace)
            self._cache[key] = cached
            logger.debug(
                "Read %s metadata for %s (%d columns)",
                namespace,
                cls.__name__,
                len(cached.columns),
            )
        return cached

    def clear(self) -> None:
        self._cache.clear()
