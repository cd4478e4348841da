"""Test the loggable audit trail."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from behavioral_extensions.listeners import LoggableListener
from behavioral_extensions.mapping.models import LogEntry

from conftest import Article, Note


@pytest.fixture
def loggable(evm, reader, clock) -> LoggableListener:
    listener = LoggableListener(reader, clock=clock)
    listener.username = "alice"
    evm.add_event_subscriber(listener)
    return listener


class TestLogEntries:
    def test_create_logged(self, loggable, session_factory, clock):
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()

            (entry,) = loggable.get_log_entries(session, article)
            assert entry.action == "create"
            assert entry.version == 1
            assert entry.data == {"title": "Hello", "status": "draft"}
            assert entry.username == "alice"
            assert entry.object_id == str(article.id)
            assert entry.object_class == "conftest.Article"
            assert entry.logged_at.replace(tzinfo=None) == clock.now()

    def test_update_logs_changed_versioned_fields(self, loggable, session_factory):
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()

            article.status = "published"
            session.commit()

            latest = loggable.get_log_entries(session, article)[0]
            assert latest.action == "update"
            assert latest.version == 2
            assert latest.data == {"status": "published"}

    def test_unversioned_change_not_logged(self, loggable, session_factory):
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()

            article.body = "not versioned"
            session.commit()

            assert len(loggable.get_log_entries(session, article)) == 1

    def test_remove_logged(self, loggable, session_factory):
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()
            article_id = article.id

            session.delete(article)
            session.commit()

            entries = session.execute(
                select(LogEntry)
                .where(LogEntry.object_id == str(article_id))
                .order_by(LogEntry.version)
            ).scalars().all()
            assert [(e.action, e.version) for e in entries] == [("create", 1), ("remove", 2)]
            assert entries[-1].data is None

    def test_non_loggable_entity_ignored(self, loggable, session_factory):
        with session_factory() as session:
            session.add(Note(text="plain"))
            session.commit()
            assert session.execute(select(LogEntry)).scalars().all() == []

    def test_missing_username(self, loggable, session_factory):
        loggable.username = None
        with session_factory() as session:
            article = Article(title="Hello", status="draft")
            session.add(article)
            session.commit()
            assert loggable.get_log_entries(session, article)[0].username is None
