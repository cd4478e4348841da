"""Protocol interfaces for the request context the extensions read.

The host application supplies the current user, its multilingual sections
and the request. Implementations can be swapped without changing callers.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IUser(Protocol):
    """The user performing the current request."""

    @property
    def user_id(self) -> int | str | None: ...

    @property
    def user_name(self) -> str | None: ...


@runtime_checkable
class ISection(Protocol):
    """A multilingual section of the site."""

    @property
    def language(self) -> str: ...


@runtime_checkable
class ISectionProvider(Protocol):
    """Lookup of the multilingual section context."""

    def get_current_section(self) -> ISection | None: ...

    def get_default_section(self) -> ISection | None: ...


@runtime_checkable
class IRequest(Protocol):
    """Request parameter access."""

    def get(self, name: str, default: Any = None) -> Any: ...
