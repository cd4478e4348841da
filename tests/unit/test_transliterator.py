"""Test the default slug transliterator and reference resolution."""

import pytest

from behavioral_extensions.core.errors import ConfigError, TransliteratorError
from behavioral_extensions.transliterator import (
    replace_special_signs,
    resolve_transliterator,
    urlize,
)


class TestReplaceSpecialSigns:
    def test_umlauts_spelled_out(self):
        assert replace_special_signs("Grüße aus Köln") == "Gruesse aus Koeln"

    def test_upper_case_umlauts(self):
        assert replace_special_signs("Äpfel Öl Übung") == "Aepfel Oel Uebung"

    def test_accents_stripped(self):
        assert replace_special_signs("Crème brûlée") == "Creme brulee"

    def test_ampersand(self):
        assert urlize(replace_special_signs("Salt & Pepper")) == "salt-and-pepper"


class TestUrlize:
    def test_collapses_separators(self):
        assert urlize("  Hello,   World!  ") == "hello-world"

    def test_custom_separator(self):
        assert urlize("Hello World", "_") == "hello_world"

    def test_empty(self):
        assert urlize("!!!") == ""


class TestResolveTransliterator:
    def test_callable_passthrough(self):
        assert resolve_transliterator(replace_special_signs) is replace_special_signs

    def test_colon_reference(self):
        fn = resolve_transliterator("behavioral_extensions.transliterator:urlize")
        assert fn is urlize

    def test_dotted_reference(self):
        fn = resolve_transliterator("behavioral_extensions.transliterator.urlize")
        assert fn is urlize

    def test_missing_module(self):
        with pytest.raises(TransliteratorError, match="cannot import"):
            resolve_transliterator("does_not_exist_pkg:fn")

    def test_missing_attribute(self):
        with pytest.raises(TransliteratorError, match="not found"):
            resolve_transliterator("behavioral_extensions.transliterator:nope")

    def test_not_callable(self):
        with pytest.raises(TransliteratorError, match="not callable"):
            resolve_transliterator("behavioral_extensions.transliterator:_SPECIAL_SIGNS")

    def test_is_config_error(self):
        with pytest.raises(ConfigError):
            resolve_transliterator("")
