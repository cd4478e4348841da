"""Shared fixtures for the behavioral extensions test suite."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from behavioral_extensions.core.clock import FixedClock
from behavioral_extensions.core.config import ConfigRepository
from behavioral_extensions.events.manager import EventManager
from behavioral_extensions.mapping.models import register_extension_mappings
from behavioral_extensions.mapping.reader import CachedMetadataReader


# ---------------------------------------------------------------------------
# Test entities
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


class Article(Base):
    __tablename__ = "articles"
    __loggable__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str | None] = mapped_column(
        String(200), info={"versioned": True, "translatable": True},
    )
    body: Mapped[str | None] = mapped_column(
        Text, info={"translatable": {"fallback": True}},
    )
    slug: Mapped[str | None] = mapped_column(
        String(200), info={"sluggable": {"fields": ["title"]}},
    )
    status: Mapped[str] = mapped_column(String(16), default="draft", info={"versioned": True})
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, info={"timestampable": "create"},
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, info={"timestampable": "update"},
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        info={"timestampable": {"on": "change", "field": "status", "value": "published"}},
    )
    created_by: Mapped[str | None] = mapped_column(String(64), info={"blameable": "create"})
    updated_by: Mapped[str | None] = mapped_column(String(64), info={"blameable": "update"})


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64))
    category: Mapped[str] = mapped_column(String(32), info={"sortable": "group"})
    position: Mapped[int | None] = mapped_column(Integer, info={"sortable": "position"})


class Category(Base):
    __tablename__ = "categories"
    __tree__ = {"separator": ","}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(64))
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"))
    path: Mapped[str | None] = mapped_column(String(3000), info={"tree": "path"})
    level: Mapped[int | None] = mapped_column(Integer, info={"tree": "level"})

    parent: Mapped[Category | None] = relationship(
        remote_side=[id], info={"tree": "parent"},
    )


class Note(Base):
    """Plain entity without any extension declarations."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(String(200))


register_extension_mappings(Base.metadata)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=[True, False], ids=["expire-on-commit", "keep-on-commit"])
def session_factory(engine, request):
    """Sessions in both commit modes; the first is SQLAlchemy's default."""
    return sessionmaker(bind=engine, expire_on_commit=request.param)


@pytest.fixture
def evm(session_factory):
    manager = EventManager(session_factory)
    yield manager
    manager.clear()


@pytest.fixture
def reader() -> CachedMetadataReader:
    return CachedMetadataReader()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 12, 0, 0))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

ALL_FEATURES = (
    "sortable",
    "sluggable",
    "tree",
    "timestampable",
    "blameable",
    "translatable",
    "loggable",
)


def make_config(*active: str, **extra) -> ConfigRepository:
    """ConfigRepository with the given features switched on."""
    settings = {name: {"active": name in active} for name in ALL_FEATURES}
    for key, value in extra.items():
        settings.setdefault(key, {}).update(value)
    return ConfigRepository({"settings": settings})


@pytest.fixture
def site_config() -> ConfigRepository:
    return ConfigRepository({"multilingual": {"default_source_locale": "de_DE"}})
