"""Tests for the sandbox .env loader."""

from __future__ import annotations

import os

from remotion_sandbox_mcp.dotenv import load_dotenv, parse_dotenv, resolve_env_path


class TestParseDotenv:
    """Unit tests for the .env file parser."""

    def test_basic_key_value(self, tmp_path):
        """GIVEN a simple KEY=VALUE line THEN it is parsed correctly."""
        env = tmp_path / ".env"
        env.write_text("SANDBOX_DEBOUNCE_MS=250\n")
        assert parse_dotenv(env) == {"SANDBOX_DEBOUNCE_MS": "250"}

    def test_quotes_are_stripped(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("A=\"quoted # not a comment\"\nB='single'\n")
        assert parse_dotenv(env) == {"A": "quoted # not a comment", "B": "single"}

    def test_trailing_comment_on_unquoted_value(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("SANDBOX_DEFAULT_FPS=24  # cinema\n")
        assert parse_dotenv(env) == {"SANDBOX_DEFAULT_FPS": "24"}

    def test_comments_blanks_and_malformed_lines_skipped(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("# comment\n\nNO_EQUALS\n=novalue\nKEY=val\n  # indented comment\n")
        assert parse_dotenv(env) == {"KEY": "val"}

    def test_export_prefix_and_embedded_equals(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("export MLFLOW_TRACKING_URI=http://host?a=1\n")
        assert parse_dotenv(env) == {"MLFLOW_TRACKING_URI": "http://host?a=1"}

    def test_missing_file(self, tmp_path):
        assert parse_dotenv(tmp_path / "nonexistent") == {}


class TestLoadDotenv:
    """Unit tests for env injection."""

    def test_injects_into_environ(self, tmp_path, monkeypatch):
        """GIVEN a .env file WHEN load_dotenv THEN sandbox vars appear in os.environ."""
        monkeypatch.delenv("SANDBOX_TEST_VAR", raising=False)
        env = tmp_path / ".env"
        env.write_text("SANDBOX_TEST_VAR=hello\n")

        injected = load_dotenv(env)

        assert os.environ["SANDBOX_TEST_VAR"] == "hello"
        assert injected == {"SANDBOX_TEST_VAR": "hello"}
        monkeypatch.delenv("SANDBOX_TEST_VAR")

    def test_unmanaged_keys_ignored(self, tmp_path, monkeypatch):
        """GIVEN a shared .env with unrelated keys THEN only sandbox settings are injected."""
        monkeypatch.delenv("_TEST_FOREIGN", raising=False)
        monkeypatch.delenv("MLFLOW_TEST_VAR", raising=False)
        env = tmp_path / ".env"
        env.write_text("_TEST_FOREIGN=1\nMLFLOW_TEST_VAR=2\n")

        injected = load_dotenv(env)

        assert injected == {"MLFLOW_TEST_VAR": "2"}
        assert "_TEST_FOREIGN" not in os.environ
        monkeypatch.delenv("MLFLOW_TEST_VAR")

    def test_does_not_override_existing(self, tmp_path, monkeypatch):
        """GIVEN a non-empty env var WHEN load_dotenv THEN the existing value wins."""
        monkeypatch.setenv("SANDBOX_TEST_EXISTING", "original")
        env = tmp_path / ".env"
        env.write_text("SANDBOX_TEST_EXISTING=overridden\n")

        assert load_dotenv(env) == {}
        assert os.environ["SANDBOX_TEST_EXISTING"] == "original"

    def test_overrides_blank_and_placeholder(self, tmp_path, monkeypatch):
        """GIVEN blank or unresolved ${VAR} values THEN load_dotenv overrides them."""
        monkeypatch.setenv("SANDBOX_TEST_PLACEHOLDER", "${SANDBOX_TEST_PLACEHOLDER}")
        monkeypatch.setenv("SANDBOX_TEST_DEFAULTED", "${SANDBOX_TEST_DEFAULTED:-x}")
        monkeypatch.setenv("SANDBOX_TEST_BLANK", "  ")
        env = tmp_path / ".env"
        env.write_text(
            "SANDBOX_TEST_PLACEHOLDER=a\nSANDBOX_TEST_DEFAULTED=b\nSANDBOX_TEST_BLANK=c\n"
        )

        injected = load_dotenv(env)

        assert injected == {
            "SANDBOX_TEST_PLACEHOLDER": "a",
            "SANDBOX_TEST_DEFAULTED": "b",
            "SANDBOX_TEST_BLANK": "c",
        }

    def test_env_file_override(self, tmp_path, monkeypatch):
        env = tmp_path / "custom.env"
        monkeypatch.setenv("SANDBOX_ENV_FILE", str(env))
        assert resolve_env_path() == env


class TestConfigIntegration:
    """Integration: get_config() loads from the .env file."""

    def test_config_loads_from_dotenv(self, tmp_path, monkeypatch):
        """GIVEN a .env file with SANDBOX_MAX_OPERATIONS WHEN get_config() THEN config picks it up."""
        env = tmp_path / ".env"
        env.write_text("SANDBOX_MAX_OPERATIONS=5000\n")
        monkeypatch.delenv("SANDBOX_MAX_OPERATIONS", raising=False)
        monkeypatch.setattr("remotion_sandbox_mcp.dotenv.DEFAULT_ENV_PATH", env)

        from remotion_sandbox_mcp.config import get_config

        assert get_config().max_operations == 5000
        monkeypatch.delenv("SANDBOX_MAX_OPERATIONS", raising=False)

    def test_env_var_takes_precedence(self, tmp_path, monkeypatch):
        """GIVEN both .env file and env var WHEN get_config() THEN env var wins."""
        env = tmp_path / ".env"
        env.write_text("SANDBOX_ENTRY_COMPONENT=FromFile\n")
        monkeypatch.setenv("SANDBOX_ENTRY_COMPONENT", "FromEnv")
        monkeypatch.setattr("remotion_sandbox_mcp.dotenv.DEFAULT_ENV_PATH", env)

        from remotion_sandbox_mcp.config import get_config

        assert get_config().entry_component == "FromEnv"
