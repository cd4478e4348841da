"""Custom exception hierarchy for the behavioral extensions."""


class ExtensionError(Exception):
    """Base exception for all behavioral extension errors."""


# --- Configuration ---
class ConfigError(ExtensionError):
    """Invalid or missing configuration."""


class TransliteratorError(ConfigError):
    """Transliterator reference cannot be resolved to a callable."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Transliterator [{reference}]: {reason}")


# --- Mapping ---
class MappingError(ExtensionError):
    """Entity declares an invalid extension mapping."""


# --- Behaviors ---
class TreeError(ExtensionError):
    """Tree structure violation (e.g., node moved below itself)."""


class SortableError(ExtensionError):
    """Sortable position could not be maintained."""
