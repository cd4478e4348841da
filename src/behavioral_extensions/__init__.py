"""ORM behavioral extensions for SQLAlchemy.

Feature-flagged sortable, sluggable, tree, timestampable, blameable,
translatable and loggable behaviors, registered per request by
:class:`~behavioral_extensions.controller.ListenerController`.
"""

from .controller import ListenerController
from .core.config import ConfigRepository, Settings, SiteSettings, load_settings, load_site_settings
from .events.manager import EventManager

__version__ = "0.1.0"

__all__ = [
    "ConfigRepository",
    "EventManager",
    "ListenerController",
    "Settings",
    "SiteSettings",
    "load_settings",
    "load_site_settings",
]
