"""Blameable listener: records who created or changed a row.

Uses the same declarations as timestampable under the ``blameable`` key.
Nothing is written while ``user_value`` is unset.
"""

from __future__ import annotations

from typing import Any

from .timestampable import AbstractTrackingListener


class BlameableListener(AbstractTrackingListener):
    namespace = "blameable"

    def __init__(self, metadata_reader=None) -> None:
        super().__init__(metadata_reader)
        self.user_value: Any = None

    def get_field_value(self, obj: Any, key: str) -> Any:
        return self.user_value
