"""Slug transliteration.

``replace_special_signs`` is the default transliterator of the sluggable
listener: German umlauts and eszett become their two-letter spellings,
remaining accents are stripped. ``urlize`` then turns the result into a
URL-safe slug.
"""

from __future__ import annotations

import importlib
import re
import unicodedata
from typing import Callable

from behavioral_extensions.core.errors import TransliteratorError

Transliterator = Callable[..., str]

_SPECIAL_SIGNS = {
    "ä": "ae",
    "ö": "oe",
    "ü": "ue",
    "Ä": "Ae",
    "Ö": "Oe",
    "Ü": "Ue",
    "ß": "ss",
    "ẞ": "SS",
    "æ": "ae",
    "Æ": "Ae",
    "ø": "oe",
    "Ø": "Oe",
    "å": "aa",
    "Å": "Aa",
    "&": " and ",
}
_SPECIAL_PATTERN = re.compile("|".join(map(re.escape, _SPECIAL_SIGNS)))
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def replace_special_signs(text: str, separator: str = "-") -> str:
    """Spell out special characters and strip accents."""
    text = _SPECIAL_PATTERN.sub(lambda m: _SPECIAL_SIGNS[m.group(0)], text)
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii")


def urlize(text: str, separator: str = "-") -> str:
    candidate = _NON_ALNUM.sub(separator, text.lower())
    if separator:
        candidate = re.sub(f"{re.escape(separator)}{{2,}}", separator, candidate)
        candidate = candidate.strip(separator)
    return candidate


def resolve_transliterator(reference: str | Transliterator) -> Transliterator:
    """Turn a callable or ``"pkg.module:func"`` / ``"pkg.module.func"`` into a callable."""
    if callable(reference):
        return reference
    if not isinstance(reference, str) or not reference.strip():
        raise TransliteratorError(repr(reference), "not a callable or dotted reference")

    ref = reference.strip()
    if ":" in ref:
        module_name, _, attr_path = ref.partition(":")
    else:
        module_name, _, attr_path = ref.rpartition(".")
    if not module_name or not attr_path:
        raise TransliteratorError(ref, "expected 'module:function' or 'module.function'")

    try:
        target = importlib.import_module(module_name)
    except ImportError as exc:
        raise TransliteratorError(ref, f"cannot import {module_name!r}") from exc

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as exc:
            raise TransliteratorError(ref, f"{attr!r} not found") from exc

    if not callable(target):
        raise TransliteratorError(ref, "resolved object is not callable")
    return target
