"""Enumerations used across the behavioral extensions."""

from enum import Enum


class Feature(str, Enum):
    SORTABLE = "sortable"
    SLUGGABLE = "sluggable"
    TREE = "tree"
    TIMESTAMPABLE = "timestampable"
    BLAMEABLE = "blameable"
    TRANSLATABLE = "translatable"
    LOGGABLE = "loggable"


class Trigger(str, Enum):
    """When a timestampable/blameable field is written."""

    CREATE = "create"
    UPDATE = "update"
    CHANGE = "change"  # Only when a watched field changes (to a value)


class LogAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"
