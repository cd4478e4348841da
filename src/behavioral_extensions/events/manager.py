"""Event manager: attaches subscribers to SQLAlchemy ORM events.

A subscriber is any object with ``get_subscribed_events()`` returning
event names and a method of the same name for each.

* Session events (``"before_flush"``, ``"after_flush"``,
  ``"loaded_as_persistent"``, ...) are listened on the manager's target,
  which is anything ``sqlalchemy.event.listen`` accepts for session events:
  a ``Session`` subclass, a ``sessionmaker`` or a single ``Session``.
* Instance events (``"load"``, ``"refresh"``) are listened for every mapper
  and only reach the subscriber for objects whose session belongs to the
  target.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

from sqlalchemy import event
from sqlalchemy.orm import Mapper, Session, object_session, sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSTANCE_EVENTS = frozenset({"load", "refresh"})


@runtime_checkable
class IEventSubscriber(Protocol):
    def get_subscribed_events(self) -> list[str]: ...


class EventManager:
    """Registry of event subscribers bound to one session target."""

    def __init__(self, target: Any) -> None:
        self._target = target
        # event name -> list of (subscriber, listened hook)
        self._listeners: dict[str, list[tuple[IEventSubscriber, Callable[..., Any]]]] = (
            defaultdict(list)
        )
        self._subscribers: list[IEventSubscriber] = []

    @property
    def target(self) -> Any:
        return self._target

    @property
    def subscribers(self) -> list[IEventSubscriber]:
        return list(self._subscribers)

    def owns(self, session: Session | None) -> bool:
        """Whether *session* was created from (or is) the target."""
        if session is None:
            return False
        target = self._target
        if isinstance(target, sessionmaker):
            return isinstance(session, target.class_)
        if isinstance(target, type):
            return isinstance(session, target)
        return session is target

    def _event_target(self, name: str) -> Any:
        return Mapper if name in INSTANCE_EVENTS else self._target

    def _scoped(self, hook: Callable[..., Any]) -> Callable[..., Any]:
        def scoped(instance: Any, *args: Any) -> None:
            if self.owns(object_session(instance)):
                hook(instance, *args)

        return scoped

    def add_event_subscriber(self, subscriber: IEventSubscriber) -> None:
        """Listen every subscribed event. Re-adding a subscriber is a no-op."""
        if any(s is subscriber for s in self._subscribers):
            return

        for name in subscriber.get_subscribed_events():
            hook = getattr(subscriber, name)
            if name in INSTANCE_EVENTS:
                hook = self._scoped(hook)
            event.listen(self._event_target(name), name, hook)
            self._listeners[name].append((subscriber, hook))

        self._subscribers.append(subscriber)
        logger.info(
            "Added event subscriber %s (events=%s)",
            type(subscriber).__name__,
            ",".join(subscriber.get_subscribed_events()),
        )

    def remove_event_subscriber(self, subscriber: IEventSubscriber) -> bool:
        """Detach a subscriber. Returns False if it was not registered."""
        if not any(s is subscriber for s in self._subscribers):
            return False

        for name, entries in self._listeners.items():
            kept = []
            for owner, hook in entries:
                if owner is subscriber:
                    event.remove(self._event_target(name), name, hook)
                else:
                    kept.append((owner, hook))
            self._listeners[name] = kept

        self._subscribers = [s for s in self._subscribers if s is not subscriber]
        logger.info("Removed event subscriber %s", type(subscriber).__name__)
        return True

    def get_listeners(self, event_name: str | None = None) -> list[IEventSubscriber]:
        """Subscribers for one event, or all subscribers."""
        if event_name is None:
            return self.subscribers
        return [owner for owner, _hook in self._listeners.get(event_name, [])]

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    def get_subscriber(self, cls: type[T]) -> T | None:
        for subscriber in self._subscribers:
            if isinstance(subscriber, cls):
                return subscriber
        return None

    def clear(self) -> None:
        for subscriber in list(self._subscribers):
            self.remove_event_subscriber(subscriber)
