"""Tests for scaffolder.lib.envparse module."""

import pytest

from scaffolder.lib.envparse import load_env, overlay_environ, parse_env


class TestParseEnv:
    """Tests for parse_env()."""

    def test_basic_pairs(self):
        text = 'MAX_RETRIES=5\n# comment\n\nDEFAULT_REGION="europe"\nLOG_LEVEL=\'debug\'\n'
        assert parse_env(text) == {
            "MAX_RETRIES": "5",
            "DEFAULT_REGION": "europe",
            "LOG_LEVEL": "debug",
        }

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="line 2: Invalid syntax"):
            parse_env("A=1\nJUSTAKEY\n", source="scaffolder.env")

    def test_invalid_key(self):
        with pytest.raises(ValueError, match="Invalid key 'lower'"):
            parse_env("lower=1")

    @pytest.mark.parametrize("value", ["`id`", "$(whoami)", "${HOME}"])
    def test_forbidden_patterns(self, value):
        with pytest.raises(ValueError, match="Forbidden pattern"):
            parse_env(f"TEMPLATES_DIR={value}")


class TestLoadEnv:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_env(tmp_path / "scaffolder.env")

    def test_reads_file(self, tmp_path):
        path = tmp_path / "scaffolder.env"
        path.write_text("PARALLEL_BATCH_SIZE=3\n")
        assert load_env(path) == {"PARALLEL_BATCH_SIZE": "3"}


class TestOverlayEnviron:
    """Prefixed environment variables override file values."""

    def test_override_and_add(self):
        merged = overlay_environ(
            {"MAX_RETRIES": "3", "DRY_RUN": "false"},
            "SCAFFOLDER_",
            {"SCAFFOLDER_MAX_RETRIES": "7", "SCAFFOLDER_LOG_LEVEL": "DEBUG", "PATH": "/usr/bin"},
        )
        assert merged == {"MAX_RETRIES": "7", "DRY_RUN": "false", "LOG_LEVEL": "DEBUG"}

    def test_does_not_mutate_input(self):
        values = {"MAX_RETRIES": "3"}
        overlay_environ(values, "SCAFFOLDER_", {"SCAFFOLDER_MAX_RETRIES": "9"})
        assert values == {"MAX_RETRIES": "3"}

    def test_ignores_bare_prefix_and_bad_keys(self):
        merged = overlay_environ({}, "SCAFFOLDER_", {"SCAFFOLDER_": "x", "SCAFFOLDER_lower": "y"})
        assert merged == {}
