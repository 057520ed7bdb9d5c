"""Unit tests for Settings and the layered YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config.loader import _deep_merge, load_config
from src.config.settings import Settings


def _settings(**overrides) -> Settings:
    """Build Settings that ignore any local .env file."""
    return Settings(_env_file=None, **overrides)


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestSettings:
    def test_defaults(self) -> None:
        settings = _settings()
        assert settings.scrape_db_path == "data/scrape.db"
        assert settings.target_slug == "sakamoto-days"
        assert settings.batch_size == 10
        assert settings.delay_ms == 3000
        assert settings.advancement_policy == "advance_attempted"
        assert settings.run_timeout_seconds is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BATCH_SIZE", "25")
        monkeypatch.setenv("RELAY_URL", "")
        settings = _settings()
        assert settings.batch_size == 25
        assert settings.relay_url == ""


class TestLoadConfig:
    """Precedence: field defaults < YAML < explicit settings."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings())

        assert config["batch"]["batch_size"] == 10
        assert config["batch"]["retry_count"] == 2
        assert config["fetch"]["target_base_url"] == "https://hianime.pe"
        assert config["storage"]["scrape_db_path"] == "data/scrape.db"
        assert config["logging"]["level"] == "INFO"

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "batch:\n  batch_size: 50\nlogging:\n  level: DEBUG\n")
        config = load_config(str(path), settings=_settings())

        assert config["batch"]["batch_size"] == 50
        assert config["batch"]["delay_ms"] == 3000
        assert config["logging"]["level"] == "DEBUG"

    def test_explicit_settings_override_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "batch:\n  batch_size: 50\n  retry_count: 4\n")
        config = load_config(str(path), settings=_settings(batch_size=5, log_level="WARNING"))

        assert config["batch"]["batch_size"] == 5
        assert config["batch"]["retry_count"] == 4
        assert config["logging"]["level"] == "WARNING"

    def test_environment_overrides_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SCRAPE_DB_PATH", "/var/lib/scrape.db")
        path = _write_yaml(tmp_path, "storage:\n  scrape_db_path: yaml.db\n")
        config = load_config(str(path), settings=_settings())

        assert config["storage"]["scrape_db_path"] == "/var/lib/scrape.db"

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "")
        assert load_config(str(path), settings=_settings())["batch"]["batch_size"] == 10

    def test_checked_in_config_matches_defaults(self) -> None:
        root = Path(__file__).parent.parent.parent
        config = load_config(str(root / "config" / "config.yaml"), settings=_settings())
        assert config["batch"]["batch_size"] == 10
        assert config["batch"]["advancement_policy"] == "advance_attempted"


class TestDeepMerge:
    def test_nested_merge(self) -> None:
        base = {"batch": {"batch_size": 10, "delay_ms": 3000}, "logging": {"level": "INFO"}}
        _deep_merge(base, {"batch": {"delay_ms": 0}, "extra": 1})
        assert base == {
            "batch": {"batch_size": 10, "delay_ms": 0},
            "logging": {"level": "INFO"},
            "extra": 1,
        }

    def test_scalar_replaces_dict(self) -> None:
        base = {"batch": {"batch_size": 10}}
        _deep_merge(base, {"batch": None})
        assert base == {"batch": None}
