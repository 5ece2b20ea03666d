"""
エクスポート設定のユニットテスト

設定ファイル・環境変数・明示値の優先順位と、不正値を警告して無視する挙動を検証する。
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tce.config import (
    ExportSettings,
    apply_overrides,
    load_settings_from_env,
    load_settings_from_file,
    resolve_settings,
)

_ENV_KEYS = (
    "TCE_BASE_URL",
    "TCE_SCAN_URL",
    "TCE_A11Y_STANDARD",
    "TCE_VUS",
    "TCE_DURATION",
    "TCE_RAMP_UP",
    "TCE_TIMEOUT_MS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """テスト環境の TCE_* 変数を取り除く。"""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_values(self):
        settings = ExportSettings()
        assert settings.base_url == "http://localhost:3000"
        assert settings.scan_url == "https://example.com"
        assert settings.a11y_standard == "WCAG2AA"
        assert (settings.vus, settings.duration, settings.ramp_up) == (10, "30s", "10s")
        assert settings.timeout_ms == 30000

    @pytest.mark.parametrize("value, seconds", [("30s", 30), ("5m", 300), ("1h", 3600), ("500ms", 1), ("x", 0)])
    def test_duration_seconds(self, value: str, seconds: int):
        assert ExportSettings().duration_seconds(value) == seconds


class TestFile:
    """load_settings_from_file() のテスト。"""

    def test_missing_file_returns_defaults(self, tmp_dir: Path):
        assert load_settings_from_file(tmp_dir / "none.yaml") == ExportSettings()

    def test_values_are_applied(self, tmp_dir: Path):
        path = _write(tmp_dir / "tce.yaml", "base_url: https://staging.test\nvus: 25\na11y_standard: wcag2aaa\n")
        settings = load_settings_from_file(path)

        assert settings.base_url == "https://staging.test"
        assert settings.vus == 25
        assert settings.a11y_standard == "WCAG2AAA"

    def test_invalid_values_are_ignored(self, tmp_dir: Path, caplog: pytest.LogCaptureFixture):
        """不正値と未知キーは警告して無視すること。"""
        path = _write(tmp_dir / "tce.yaml", "vus: -3\nduration: forever\ncolour: blue\n")
        with caplog.at_level(logging.WARNING, logger="tce.config"):
            settings = load_settings_from_file(path)

        assert settings.vus == 10
        assert settings.duration == "30s"
        assert len(caplog.records) == 3

    def test_syntax_error(self, tmp_dir: Path):
        path = _write(tmp_dir / "tce.yaml", "base_url: [unclosed\n")
        with pytest.raises(ValueError, match="YAML"):
            load_settings_from_file(path)

    def test_top_level_must_be_mapping(self, tmp_dir: Path):
        path = _write(tmp_dir / "tce.yaml", "- a\n- b\n")
        with pytest.raises(ValueError, match="マッピング"):
            load_settings_from_file(path)


class TestPrecedence:
    """明示値 > 環境変数 > 設定ファイル > デフォルト。"""

    def test_env_over_file(self, tmp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        path = _write(tmp_dir / "tce.yaml", "base_url: https://file.test\nvus: 5\n")
        monkeypatch.setenv("TCE_BASE_URL", "https://env.test")

        settings = resolve_settings(path)

        assert settings.base_url == "https://env.test"
        assert settings.vus == 5

    def test_override_over_env(self, tmp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TCE_VUS", "50")
        settings = resolve_settings(tmp_dir / "none.yaml", vus=7, duration=None)

        assert settings.vus == 7
        assert settings.duration == "30s"

    def test_default_file_in_cwd(self, tmp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        _write(tmp_dir / "tce.yaml", "timeout_ms: 5000\n")
        monkeypatch.chdir(tmp_dir)
        assert resolve_settings().timeout_ms == 5000

    def test_invalid_env_is_ignored(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TCE_TIMEOUT_MS", "soon")
        monkeypatch.setenv("TCE_RAMP_UP", "2m")
        settings = load_settings_from_env()

        assert settings.timeout_ms == 30000
        assert settings.ramp_up == "2m"

    def test_unknown_override(self):
        with pytest.raises(ValueError, match="未知の設定項目"):
            apply_overrides(ExportSettings(), colour="blue")
