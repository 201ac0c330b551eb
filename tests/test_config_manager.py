"""Tests for configuration persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cleave.config_manager import ENDPOINT_ENV, AppConfig, ConfigManager
from cleave.models import ConversionSettings, OutputFormat


@pytest.fixture(autouse=True)
def _no_endpoint_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENDPOINT_ENV, raising=False)


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = ConfigManager(tmp_path / "missing.json").load()
    assert config == AppConfig()


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    manager = ConfigManager(path)
    config = AppConfig(
        annotation_endpoint="https://tagger.example.test",
        annotation_timeout=12.5,
        quantization_method="octree",
        reconvert_completed=True,
        defaults=ConversionSettings(output_format=OutputFormat.AVIF, quality=0.6),
    )

    ok, error = manager.save(config)

    assert ok and error is None
    assert json.loads(path.read_text())["defaults"]["output_format"] == "avif"
    assert manager.load() == config


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", "\"text\"", "null"])
def test_corrupt_file_falls_back_to_defaults(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content)
    assert ConfigManager(path).load() == AppConfig()


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"defaults": {"color_count": 7}}))
    assert ConfigManager(path).load() == AppConfig()


def test_partial_file_keeps_other_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"log_level": "DEBUG"}))

    config = ConfigManager(path).load()

    assert config.log_level == "DEBUG"
    assert config.defaults == ConversionSettings()


def test_environment_overrides_endpoint(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENDPOINT_ENV, "https://env.example.test")
    assert ConfigManager(tmp_path / "missing.json").load().annotation_endpoint == "https://env.example.test"


def test_save_reports_errors(tmp_path: Path) -> None:
    ok, error = ConfigManager(tmp_path / "no-such-dir" / "config.json").save(AppConfig())
    assert not ok
    assert error
