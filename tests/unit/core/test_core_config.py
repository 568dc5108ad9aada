"""Tests for configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import allure
import pytest

from core.core_config import load_config, resolve_env_vars
from core.exceptions import ConfigurationError
from core.models.app_config import AppConfig, LogLevel

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every test from an empty directory without CONFIG_PATH."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CONFIG_PATH", raising=False)


@allure.epic("Stage Cache")
@allure.feature("Configuration")
@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self) -> None:
        """No path and no config.yaml gives the built-in defaults."""
        config = load_config()

        assert config == AppConfig()
        assert config.caching.max_cache_bytes == 50 * 1024 * 1024
        assert config.caching.max_entries == 500
        assert config.caching.warm_concurrency == 3
        assert config.caching.preload_ahead == 3
        assert config.caching.preload_behind == 1
        assert config.caching.fetch_retry.max_retries == 0
        assert config.performance.latency_budget_ms == 100.0

    def test_loads_yaml_and_resolves_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values are read from YAML with ${VAR} placeholders resolved."""
        monkeypatch.setenv("STAGE_TOKEN", "secret")
        path = tmp_path / "custom.yaml"
        path.write_text(
            "content_service:\n"
            "  base_url: https://cms.example.com/\n"
            "  auth_token: ${STAGE_TOKEN}\n"
            "caching:\n"
            "  max_entries: 10\n"
            "logging:\n"
            "  levels:\n"
            "    console: debug\n",
            encoding="utf-8",
        )

        config = load_config(str(path))

        assert config.content_service.base_url == "https://cms.example.com"
        assert config.content_service.auth_token == "secret"
        assert config.caching.max_entries == 10
        assert config.logging.levels.console is LogLevel.DEBUG

    def test_unset_token_becomes_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unset ${VAR} token is treated as absent."""
        monkeypatch.delenv("MISSING_TOKEN", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("content_service:\n  auth_token: ${MISSING_TOKEN}\n", encoding="utf-8")

        assert load_config(str(path)).content_service.auth_token is None

    def test_picks_up_config_yaml_in_working_directory(self, tmp_path: Path) -> None:
        """config.yaml in the working directory is used when no path is given."""
        (tmp_path / "config.yaml").write_text("performance:\n  latency_budget_ms: 50\n", encoding="utf-8")

        assert load_config().performance.latency_budget_ms == 50.0

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        """An empty YAML file validates to defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(str(path)) == AppConfig()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """A missing explicit path raises ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(tmp_path / "nope.yaml"))
        assert exc_info.value.config_path == str(tmp_path / "nope.yaml")

    def test_wrong_extension_raises(self, tmp_path: Path) -> None:
        """Only .yaml and .yml files are accepted."""
        path = tmp_path / "config.json"
        path.write_text("{}", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="extension"):
            load_config(str(path))

    def test_invalid_values_raise(self, tmp_path: Path) -> None:
        """Validation errors are reported with their field path."""
        path = tmp_path / "config.yaml"
        path.write_text("caching:\n  warm_concurrency: 0\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="caching.warm_concurrency"):
            load_config(str(path))

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        """A YAML list at the top level is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="not a dictionary"):
            load_config(str(path))


@pytest.mark.unit
class TestResolveEnvVars:
    """Tests for resolve_env_vars."""

    def test_nested_structures(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Placeholders inside lists and dicts are resolved."""
        monkeypatch.setenv("CACHE_ROOT", "/var/cache")
        resolved = resolve_env_vars({"dirs": ["$CACHE_ROOT/blobs", "${CACHE_ROOT}"], "n": 3})

        assert resolved == {"dirs": ["/var/cache/blobs", "/var/cache"], "n": 3}
