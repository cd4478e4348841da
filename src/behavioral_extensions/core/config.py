"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding, and exposes
the result through a dotted-key :class:`ConfigRepository`.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

_MISSING = object()


# ---------------------------------------------------------------------------
# Feature configs
# ---------------------------------------------------------------------------

class FeatureConfig(BaseModel):
    active: bool = False


class SluggableConfig(FeatureConfig):
    # Dotted reference, e.g. "myapp.text:transliterate"
    transliterator: str | None = None


class BehaviorSettings(BaseModel):
    sortable: FeatureConfig = Field(default_factory=FeatureConfig)
    sluggable: SluggableConfig = Field(default_factory=SluggableConfig)
    tree: FeatureConfig = Field(default_factory=FeatureConfig)
    timestampable: FeatureConfig = Field(default_factory=FeatureConfig)
    blameable: FeatureConfig = Field(default_factory=FeatureConfig)
    translatable: FeatureConfig = Field(default_factory=FeatureConfig)
    loggable: FeatureConfig = Field(default_factory=FeatureConfig)


class MultilingualConfig(BaseModel):
    default_source_locale: str = ""  # e.g. "de_DE"


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Package settings.

    Loaded from TOML config files, overridden by environment variables
    (``ORMEXT_SETTINGS__SLUGGABLE__ACTIVE=true``).
    """

    settings: BehaviorSettings = Field(default_factory=BehaviorSettings)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "ORMEXT_", "env_nested_delimiter": "__"}


class SiteSettings(BaseSettings):
    """Site-level settings (locale of the source content)."""

    multilingual: MultilingualConfig = Field(default_factory=MultilingualConfig)

    model_config = {"env_prefix": "ORMEXT_SITE_", "env_nested_delimiter": "__"}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class ConfigRepository:
    """Read-mostly key/value view over nested configuration.

    Keys are dotted paths::

        config = ConfigRepository({"settings": {"tree": {"active": True}}})
        config.get("settings.tree.active")  # True
        config.get("settings.loggable.active")  # None
    """

    def __init__(self, items: Mapping[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = dict(items or {})

    @classmethod
    def from_model(cls, model: BaseModel) -> ConfigRepository:
        return cls(model.model_dump())

    def _lookup(self, key: str) -> Any:
        node: Any = self._items
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key, creating intermediate sections."""
        parts = key.split(".")
        node = self._items
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def all(self) -> dict[str, Any]:
        return self._items


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def _read_toml(config_path: str | Path | None) -> dict[str, Any]:
    if not config_path:
        return {}
    path = Path(config_path)
    if not path.exists():
        return {}

    import tomli

    with open(path, "rb") as f:
        return tomli.load(f)


def _deep_merge(base: dict[str, Any], *layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge nested mappings into *base*; later layers win key by key."""
    merged = dict(base)
    for layer in layers:
        for key, value in (layer or {}).items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, Mapping):
                merged[key] = _deep_merge(current, value)
            else:
                merged[key] = value
    return merged


def _load(
    model: type[BaseSettings],
    config_path: str | Path | None,
    overrides: Mapping[str, Any] | None,
) -> Any:
    # Keyword arguments outrank the environment in pydantic-settings, so the
    # values the environment actually sets are merged over the file first.
    from_env = model().model_dump(exclude_unset=True)
    return model(**_deep_merge(_read_toml(config_path), from_env, overrides))


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load package settings.

    Precedence, lowest first: defaults, TOML file, environment variables,
    *overrides*. Nested sections are merged key by key.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    return _load(Settings, config_path, overrides)


def load_site_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SiteSettings:
    """Load site settings (same precedence as :func:`load_settings`)."""
    return _load(SiteSettings, config_path, overrides)
