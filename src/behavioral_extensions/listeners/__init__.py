"""Behavioral listeners for SQLAlchemy sessions.

SortableListener       gapless positions within a group
SluggableListener      URL slugs built from other fields
TreeListener           materialized path hierarchies
TimestampableListener  creation / update / change timestamps
BlameableListener      creating / updating user
TranslatableListener   per-locale field content
LoggableListener       audit trail of versioned fields

Every listener reads its declarations through a metadata reader and is
attached to a session target by an
:class:`~behavioral_extensions.events.manager.EventManager`.
"""

from .base import MappedEventSubscriber
from .blameable import BlameableListener
from .loggable import LoggableListener
from .sluggable import SluggableListener
from .sortable import SortableListener
from .timestampable import TimestampableListener
from .translatable import TranslatableListener
from .tree import TreeListener

__all__ = [
    "MappedEventSubscriber",
    "BlameableListener",
    "LoggableListener",
    "SluggableListener",
    "SortableListener",
    "TimestampableListener",
    "TranslatableListener",
    "TreeListener",
]
