"""Test the ormext command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from behavioral_extensions.cli import main


@pytest.fixture
def config_files(tmp_path: Path) -> tuple[Path, Path]:
    config = tmp_path / "extensions.toml"
    config.write_text(
        "[settings.sluggable]\nactive = true\n\n"
        "[settings.translatable]\nactive = true\n\n"
        "[settings.loggable]\nactive = true\n"
    )
    site = tmp_path / "site.toml"
    site.write_text('[multilingual]\ndefault_source_locale = "de_DE"\n')
    return config, site


class TestShowConfig:
    def test_lists_flags(self, config_files):
        config, _site = config_files
        result = CliRunner().invoke(main, ["--log-level", "ERROR", "show-config", "--config", str(config)])

        assert result.exit_code == 0, result.output
        lines = dict(line.split() for line in result.output.strip().splitlines())
        assert lines["sluggable"] == "on"
        assert lines["tree"] == "off"


class TestListeners:
    def test_registered_listeners(self, config_files):
        config, site = config_files
        result = CliRunner().invoke(
            main,
            [
                "--log-level", "ERROR",
                "listeners",
                "--config", str(config),
                "--site-config", str(site),
                "--locale", "it",
                "--user-id", "5",
                "--user-name", "carol",
            ],
        )

        assert result.exit_code == 0, result.output
        described = json.loads(result.output[result.output.index("{"):])
        assert set(described) == {"sluggable", "translatable", "loggable"}
        assert described["translatable"]["default_locale"] == "de"
        assert described["translatable"]["translatable_locale"] == "it"
        assert described["loggable"]["username"] == "carol"

    def test_nothing_active(self, tmp_path: Path):
        empty = tmp_path / "empty.toml"
        empty.write_text("")
        result = CliRunner().invoke(
            main, ["--log-level", "ERROR", "listeners", "--config", str(empty), "--site-config", str(empty)],
        )
        assert result.exit_code == 0, result.output
        assert "No listeners registered." in result.output
