"""Test slug generation."""

from __future__ import annotations

import pytest

from behavioral_extensions.core.errors import MappingError
from behavioral_extensions.listeners import SluggableListener

from conftest import Article


@pytest.fixture
def sluggable(evm, reader) -> SluggableListener:
    listener = SluggableListener(reader)
    evm.add_event_subscriber(listener)
    return listener


class TestSlugGeneration:
    def test_slug_from_title(self, sluggable, session_factory):
        with session_factory() as session:
            article = Article(title="Grüße aus Köln")
            session.add(article)
            session.commit()
            assert article.slug == "gruesse-aus-koeln"

    def test_manual_slug_is_urlized(self, sluggable, session_factory):
        with session_factory() as session:
            article = Article(title="Ignored", slug="My Own Slug")
            session.add(article)
            session.commit()
            assert article.slug == "my-own-slug"

    def test_updated_with_title(self, sluggable, session_factory):
        with session_factory() as session:
            article = Article(title="First title")
            session.add(article)
            session.commit()

            article.title = "Second title"
            session.commit()
            assert article.slug == "second-title"

    def test_unrelated_change_keeps_slug(self, sluggable, session_factory):
        with session_factory() as session:
            article = Article(title="Stable")
            session.add(article)
            session.commit()

            article.status = "published"
            session.commit()
            assert article.slug == "stable"

    def test_empty_source_raises(self, sluggable, session_factory):
        with session_factory() as session:
            session.add(Article(title=None))
            with pytest.raises(MappingError, match="Unable to build a slug"):
                session.flush()
            session.rollback()


class TestUniqueness:
    def test_suffix_for_existing_slug(self, sluggable, session_factory):
        with session_factory() as session:
            first = Article(title="Same")
            session.add(first)
            session.commit()

            second = Article(title="Same")
            session.add(second)
            session.commit()

            assert first.slug == "same"
            assert second.slug == "same-1"

    def test_suffix_within_one_flush(self, sluggable, session_factory):
        with session_factory() as session:
            articles = [Article(title="Twin") for _ in range(3)]
            session.add_all(articles)
            session.commit()
            assert sorted(a.slug for a in articles) == ["twin", "twin-1", "twin-2"]

    def test_update_does_not_collide_with_itself(self, sluggable, session_factory):
        with session_factory() as session:
            article = Article(title="Same")
            session.add(article)
            session.commit()

            article.title = "same"
            session.commit()
            assert article.slug == "same"


class TestTransliterator:
    def test_custom_transliterator(self, sluggable, session_factory):
        sluggable.set_transliterator(lambda text, separator="-": text.replace("a", "4"))
        with session_factory() as session:
            article = Article(title="banana")
            session.add(article)
            session.commit()
            assert article.slug == "b4n4n4"
