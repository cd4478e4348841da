"""Plain implementations of the request context interfaces.

Used by the CLI, by tests and by applications without their own user or
section objects.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class User:
    user_id: int | str | None = None
    user_name: str | None = None  # None for guests


@dataclass(frozen=True)
class Section:
    language: str
    locale: str = ""


class StaticSectionProvider:
    """Section provider with fixed current/default sections."""

    def __init__(
        self,
        current: Section | None = None,
        default: Section | None = None,
    ) -> None:
        self._current = current
        self._default = default

    def get_current_section(self) -> Section | None:
        return self._current

    def get_default_section(self) -> Section | None:
        return self._default


@dataclass
class Request:
    """Request parameters. Body parameters shadow query parameters."""

    query: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        if name in self.body:
            return self.body[name]
        return self.query.get(name, default)
