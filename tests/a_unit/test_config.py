"""Tests for linkdoc configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from linkdoc import LinkdocConfig, load_config
from linkdoc.config import ConfigError, configure_logging, find_config_file


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path: Path):
        config = load_config(tmp_path, environ={})

        assert config == LinkdocConfig()
        assert config.database == "linkdoc.db"
        assert config.default_limit is None

    def test_from_directory(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text(
            '[linkdoc]\ndatabase = "app.db"\nwal = false\ndefault_limit = 50\n'
        )

        config = load_config(tmp_path, environ={})

        assert config.database == "app.db"
        assert config.wal is False
        assert config.default_limit == 50

    def test_from_file_path(self, tmp_path: Path):
        path = tmp_path / "custom.toml"
        path.write_text('[linkdoc]\nlog_level = "DEBUG"\n')

        assert load_config(path, environ={}).log_level == "DEBUG"

    def test_other_tables_ignored(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text('[tool]\nname = "x"\n')

        assert load_config(tmp_path, environ={}) == LinkdocConfig()

    def test_ignore_flag(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text('[linkdoc]\ndatabase = "app.db"\n')

        config = load_config(tmp_path, ignore_config=True, environ={})

        assert config.database == "linkdoc.db"

    def test_environment_overrides_file(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text('[linkdoc]\ndatabase = "app.db"\n')
        environ = {"LINKDOC_DATABASE": "env.db", "LINKDOC_LOG_LEVEL": "info"}

        config = load_config(tmp_path, environ=environ)

        assert config.database == "env.db"
        assert config.log_level == "info"

    def test_invalid_toml(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text("[linkdoc\n")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(tmp_path, environ={})

    def test_unknown_key(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text("[linkdoc]\ncolour = 1\n")

        with pytest.raises(ConfigError, match="unknown setting 'colour'"):
            load_config(tmp_path, environ={})

    @pytest.mark.parametrize(
        "line", ['wal = "yes"', "default_limit = true", 'default_limit = "10"', "database = 3"]
    )
    def test_wrong_type(self, tmp_path: Path, line):
        (tmp_path / "linkdoc.toml").write_text(f"[linkdoc]\n{line}\n")

        with pytest.raises(ConfigError, match="must be"):
            load_config(tmp_path, environ={})

    def test_invalid_default_limit(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text("[linkdoc]\ndefault_limit = 0\n")

        with pytest.raises(ConfigError, match="default_limit"):
            load_config(tmp_path, environ={})

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError, match="Invalid log_level"):
            load_config(ignore_config=True, environ={"LINKDOC_LOG_LEVEL": "LOUD"})

    def test_section_not_a_table(self, tmp_path: Path):
        (tmp_path / "linkdoc.toml").write_text('linkdoc = "x"\n')

        with pytest.raises(ConfigError, match="must be a table"):
            load_config(tmp_path, environ={})


class TestHelpers:
    """Tests for find_config_file and configure_logging."""

    def test_find_config_file(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None

        (tmp_path / "linkdoc.toml").write_text("")

        assert find_config_file(tmp_path) == tmp_path / "linkdoc.toml"

    def test_configure_logging(self):
        logger = logging.getLogger("linkdoc")
        previous = logger.level
        try:
            configure_logging("debug")
            assert logger.level == logging.DEBUG
        finally:
            logger.setLevel(previous)
