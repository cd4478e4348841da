"""Test timestampable and blameable field tracking."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from behavioral_extensions.core.errors import MappingError
from behavioral_extensions.listeners import BlameableListener, TimestampableListener

from conftest import Article, Note


@pytest.fixture
def timestampable(evm, reader, clock) -> TimestampableListener:
    listener = TimestampableListener(reader, clock=clock)
    evm.add_event_subscriber(listener)
    return listener


@pytest.fixture
def blameable(evm, reader) -> BlameableListener:
    listener = BlameableListener(reader)
    listener.user_value = "alice"
    evm.add_event_subscriber(listener)
    return listener


class TestTimestampable:
    def test_create_sets_created_and_updated(self, timestampable, session_factory, clock):
        with session_factory() as session:
            article = Article(title="Hello")
            session.add(article)
            session.commit()

            assert article.created_at == clock.now()
            assert article.updated_at == clock.now()
            assert article.published_at is None

    def test_update_touches_only_updated(self, timestampable, session_factory, clock):
        created = clock.now()
        with session_factory() as session:
            article = Article(title="Hello")
            session.add(article)
            session.commit()

            clock.advance(60)
            article.title = "Hello again"
            session.commit()

            assert article.created_at == created
            assert article.updated_at == clock.now()

    def test_explicit_values_kept(self, timestampable, session_factory):
        fixed = datetime(2020, 1, 1)
        with session_factory() as session:
            article = Article(title="Hello", created_at=fixed)
            session.add(article)
            session.commit()
            assert article.created_at == fixed

    def test_change_trigger(self, timestampable, session_factory, clock):
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()

            clock.advance(10)
            article.status = "review"
            session.commit()
            assert article.published_at is None

            clock.advance(10)
            article.status = "published"
            session.commit()
            assert article.published_at == clock.now()

    def test_unmanaged_entity_untouched(self, timestampable, session_factory):
        with session_factory() as session:
            note = Note(text="plain")
            session.add(note)
            session.commit()
            assert note.text == "plain"


class TestBlameable:
    def test_create_records_user(self, blameable, session_factory):
        with session_factory() as session:
            article = Article(title="Hello")
            session.add(article)
            session.commit()

            assert article.created_by == "alice"
            assert article.updated_by == "alice"

    def test_update_records_new_user(self, blameable, session_factory):
        with session_factory() as session:
            article = Article(title="Hello")
            session.add(article)
            session.commit()

            blameable.user_value = "bob"
            article.title = "Changed"
            session.commit()

            assert article.created_by == "alice"
            assert article.updated_by == "bob"

    def test_no_user_value_leaves_fields_empty(self, blameable, session_factory):
        blameable.user_value = None
        with session_factory() as session:
            article = Article(title="Hello")
            session.add(article)
            session.commit()
            assert article.created_by is None


class InvalidBase(DeclarativeBase):
    pass


class BadTrigger(InvalidBase):
    __tablename__ = "bad_trigger"

    id: Mapped[int] = mapped_column(primary_key=True)
    stamp: Mapped[str | None] = mapped_column(String(32), info={"timestampable": "sometimes"})


class TestInvalidDeclaration:
    def test_unknown_trigger(self, reader):
        listener = TimestampableListener(reader)
        with pytest.raises(MappingError, match="Unknown trigger"):
            listener.tracked_fields(BadTrigger)
