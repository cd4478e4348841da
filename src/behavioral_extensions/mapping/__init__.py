from .models import ExtensionBase, LogEntry, Translation, register_extension_mappings
from .reader import CachedMetadataReader, ExtensionMetadata, MetadataReader

__all__ = [
    "CachedMetadataReader",
    "ExtensionBase",
    "ExtensionMetadata",
    "LogEntry",
    "MetadataReader",
    "Translation",
    "register_extension_mappings",
]
