"""Registration of the behavioral listeners.

The :class:`ListenerController` reads the ``settings.<feature>.active``
flags from a :class:`~behavioral_extensions.core.config.ConfigRepository`
and attaches one listener per active feature to an
:class:`~behavioral_extensions.events.manager.EventManager`. Request
context (current user, multilingual sections, request parameters) is
forwarded into the listeners that need it.

Usage::

    controller = ListenerController(
        ConfigRepository.from_model(load_settings("config/extensions.toml")),
        user=current_user,
        site_config=ConfigRepository.from_model(load_site_settings("config/site.toml")),
        sections=section_provider,
        request=request,
    )
    controller.register_behavioral_extensions(EventManager(SessionLocal), metadata=Base.metadata)

Absent or falsy flags skip the feature silently.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import MetaData

from behavioral_extensions.core.clock import IClock
from behavioral_extensions.core.config import ConfigRepository
from behavioral_extensions.core.enums import Feature
from behavioral_extensions.core.interfaces import IRequest, ISectionProvider, IUser
from behavioral_extensions.events.manager import EventManager
from behavioral_extensions.listeners import (
    BlameableListener,
    LoggableListener,
    MappedEventSubscriber,
    SluggableListener,
    SortableListener,
    TimestampableListener,
    TranslatableListener,
    TreeListener,
)
from behavioral_extensions.mapping.models import register_extension_mappings
from behavioral_extensions.mapping.reader import CachedMetadataReader, MetadataReader
from behavioral_extensions.transliterator import replace_special_signs

logger = logging.getLogger(__name__)

BASE_LOCALE = "en_US"


class ListenerController:
    """Wires the optional behavioral listeners from configuration flags."""

    def __init__(
        self,
        config: ConfigRepository,
        *,
        user: IUser | None = None,
        site_config: ConfigRepository | None = None,
        sections: ISectionProvider | None = None,
        request: IRequest | None = None,
        clock: IClock | None = None,
    ) -> None:
        self.config = config
        self.user = user
        self.site_config = site_config or ConfigRepository()
        self.sections = sections
        self.request = request
        self.clock = clock
        self.evm: EventManager | None = None
        self.metadata_reader: MetadataReader | None = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def register_behavioral_extensions(
        self,
        event_manager: EventManager,
        metadata_reader: MetadataReader | None = None,
        metadata: MetaData | None = None,
    ) -> list[MappedEventSubscriber]:
        """Register every active listener. Returns the listeners attached."""
        self.evm = event_manager
        self.metadata_reader = metadata_reader or CachedMetadataReader()

        if metadata is not None:
            register_extension_mappings(metadata)

        registrations = (
            self.register_sortable,
            self.register_sluggable,
            self.register_tree,
            self.register_blameable,
            self.register_timestampable,
            self.register_translatable,
            self.register_loggable,
        )
        registered = [listener for listener in (r() for r in registrations) if listener]
        logger.info(
            "Registered %d behavioral listener(s): %s",
            len(registered),
            ", ".join(listener.namespace for listener in registered) or "none",
        )
        return registered

    def is_active(self, feature: Feature) -> bool:
        return bool(self.config.get(f"settings.{feature.value}.active"))

    def _subscribe(self, listener: MappedEventSubscriber) -> MappedEventSubscriber:
        if self.evm is None:
            raise RuntimeError(
                "No event manager. Call register_behavioral_extensions() first."
            )
        listener.metadata_reader = self.metadata_reader or CachedMetadataReader()
        self.evm.add_event_subscriber(listener)
        return listener

    def _skip(self, feature: Feature) -> None:
        logger.debug("Skipping %s listener (inactive)", feature.value)

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def register_sortable(self) -> SortableListener | None:
        if not self.is_active(Feature.SORTABLE):
            self._skip(Feature.SORTABLE)
            return None
        return self._subscribe(SortableListener())

    def register_sluggable(self) -> SluggableListener | None:
        if not self.is_active(Feature.SLUGGABLE):
            self._skip(Feature.SLUGGABLE)
            return None
        listener = SluggableListener()
        transliterator = self.config.get("settings.sluggable.transliterator")
        listener.set_transliterator(transliterator or replace_special_signs)
        return self._subscribe(listener)

    def register_tree(self) -> TreeListener | None:
        if not self.is_active(Feature.TREE):
            self._skip(Feature.TREE)
            return None
        return self._subscribe(TreeListener())

    def register_timestampable(self) -> TimestampableListener | None:
        if not self.is_active(Feature.TIMESTAMPABLE):
            self._skip(Feature.TIMESTAMPABLE)
            return None
        return self._subscribe(TimestampableListener(clock=self.clock))

    def register_blameable(self) -> BlameableListener | None:
        if not self.is_active(Feature.BLAMEABLE):
            self._skip(Feature.BLAMEABLE)
            return None
        listener = BlameableListener()
        if self.user is not None:
            listener.user_value = self.user.user_id
        return self._subscribe(listener)

    def register_translatable(self) -> TranslatableListener | None:
        if not self.is_active(Feature.TRANSLATABLE):
            self._skip(Feature.TRANSLATABLE)
            return None

        # e.g. "de_DE" -> "de"
        source_locale = self.site_config.get("multilingual.default_source_locale") or ""
        default_locale = str(source_locale)[:2]
        if not default_locale:
            logger.warning(
                "Translatable is active but multilingual.default_source_locale is empty; "
                "listener not registered"
            )
            return None

        listener = TranslatableListener()
        listener.default_locale = default_locale
        listener.translation_fallback = False
        listener.translatable_locale = self.resolve_translatable_locale(default_locale)
        return self._subscribe(listener)

    def resolve_translatable_locale(self, default_locale: str) -> str:
        """Locale content is read and written in for this request.

        The current multilingual section wins. Outside of a section the
        default locale applies when the site has a default section, then the
        request's ``locale`` parameter (API calls), then the base locale.
        """
        current = self.sections.get_current_section() if self.sections else None
        if current is not None:
            return current.language

        default_section = self.sections.get_default_section() if self.sections else None
        request_locale = self.request.get("locale") if self.request is not None else None
        if default_section is not None:
            return default_locale
        if request_locale:
            return str(request_locale)
        return BASE_LOCALE[:2]

    def register_loggable(self) -> LoggableListener | None:
        if not self.is_active(Feature.LOGGABLE):
            self._skip(Feature.LOGGABLE)
            return None
        listener = LoggableListener(clock=self.clock)
        if self.user is not None:
            listener.username = self.user.user_name or ""
        return self._subscribe(listener)

    def describe(self) -> dict[str, dict[str, Any]]:
        """Listener settings of the last registration, keyed by namespace."""
        if self.evm is None:
            return {}
        described: dict[str, dict[str, Any]] = {}
        for listener in self.evm.subscribers:
            if not isinstance(listener, MappedEventSubscriber):
                continue
            info: dict[str, Any] = {"events": listener.get_subscribed_events()}
            if isinstance(listener, SluggableListener):
                fn = listener.transliterator
                name = getattr(fn, "__qualname__", None)
                info["transliterator"] = f"{fn.__module__}.{name}" if name else repr(fn)
            elif isinstance(listener, BlameableListener):
                info["user_value"] = listener.user_value
            elif isinstance(listener, TranslatableListener):
                info["default_locale"] = listener.default_locale
                info["translatable_locale"] = listener.translatable_locale
                info["translation_fallback"] = listener.translation_fallback
            elif isinstance(listener, LoggableListener):
                info["username"] = listener.username
            described[listener.namespace] = info
        return described
