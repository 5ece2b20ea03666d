"""
エクスポート設定 — 設定ファイル・環境変数・CLI 引数からの読み込み

生成物に埋め込む既定値（ベース URL、負荷条件、アクセシビリティ基準など）を管理する。
CLI 引数 > 環境変数 > tce.yaml > デフォルト値 の優先順位で適用される。

環境変数一覧:
  TCE_BASE_URL      : テスト対象のベース URL（デフォルト: http://localhost:3000）
  TCE_SCAN_URL      : アクセシビリティ走査の既定 URL（デフォルト: https://example.com）
  TCE_A11Y_STANDARD : アクセシビリティ基準（WCAG2A/WCAG2AA/WCAG2AAA, デフォルト: WCAG2AA）
  TCE_VUS           : 負荷試験の仮想ユーザー数（デフォルト: 10）
  TCE_DURATION      : 負荷試験の継続時間（デフォルト: 30s）
  TCE_RAMP_UP       : 負荷試験の立ち上げ時間（デフォルト: 10s）
  TCE_TIMEOUT_MS    : 生成スクリプトのタイムアウト（デフォルト: 30000）
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger(__name__)

DEFAULT_SCAN_URL = "https://example.com"
DEFAULT_CONFIG_FILE = "tce.yaml"

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_BASE_URL = "TCE_BASE_URL"
_ENV_SCAN_URL = "TCE_SCAN_URL"
_ENV_A11Y_STANDARD = "TCE_A11Y_STANDARD"
_ENV_VUS = "TCE_VUS"
_ENV_DURATION = "TCE_DURATION"
_ENV_RAMP_UP = "TCE_RAMP_UP"
_ENV_TIMEOUT_MS = "TCE_TIMEOUT_MS"

_A11Y_STANDARDS = ("WCAG2A", "WCAG2AA", "WCAG2AAA")
_DURATION_PATTERN = re.compile(r"^\d+(ms|s|m|h)$")


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class ExportSettings:
    """エクスポート時の設定。

    Attributes:
        base_url: 生成スクリプトのベース URL
        scan_url: URL を持たないケース向けのアクセシビリティ走査 URL
        a11y_standard: アクセシビリティ基準
        vus: 負荷試験の仮想ユーザー数
        duration: 負荷試験の継続時間（k6 形式: 30s, 5m など）
        ramp_up: 負荷試験の立ち上げ時間
        timeout_ms: 生成スクリプトのテストタイムアウト
    """

    base_url: str = "http://localhost:3000"
    scan_url: str = DEFAULT_SCAN_URL
    a11y_standard: Literal["WCAG2A", "WCAG2AA", "WCAG2AAA"] = "WCAG2AA"
    vus: int = 10
    duration: str = "30s"
    ramp_up: str = "10s"
    timeout_ms: int = 30000

    def duration_seconds(self, value: Optional[str] = None) -> int:
        """継続時間文字列を秒に換算する（1秒未満は1秒に切り上げ）。"""
        return _to_seconds(value if value is not None else self.duration)


def _to_seconds(value: str) -> int:
    match = re.match(r"^(\d+)(ms|s|m|h)$", value)
    if not match:
        return 0
    amount, unit = int(match.group(1)), match.group(2)
    if unit == "ms":
        return max(1, amount // 1000) if amount else 0
    return amount * {"s": 1, "m": 60, "h": 3600}[unit]


# ---------------------------------------------------------------------------
# 値の検証
# ---------------------------------------------------------------------------

def _apply_value(settings: ExportSettings, key: str, value: Any, origin: str) -> None:
    """1項目を検証して設定に反映する。不正値は警告して無視する。"""
    if value is None:
        return

    if key in ("vus", "timeout_ms"):
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning("%s の値が不正です (%s): %s", key, origin, value)
            return
        if number <= 0:
            logger.warning("%s は正の整数である必要があります (%s): %s", key, origin, value)
            return
        setattr(settings, key, number)
        return

    if key in ("duration", "ramp_up"):
        text = str(value).strip()
        if not _DURATION_PATTERN.match(text):
            logger.warning("%s の形式が不正です (%s): %s", key, origin, value)
            return
        setattr(settings, key, text)
        return

    if key == "a11y_standard":
        text = str(value).strip().upper()
        if text not in _A11Y_STANDARDS:
            logger.warning("a11y_standard の値が不正です (%s): %s", origin, value)
            return
        settings.a11y_standard = text  # type: ignore[assignment]
        return

    text = str(value).strip()
    if text:
        setattr(settings, key, text)


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------

def load_settings_from_file(path: Path, base: Optional[ExportSettings] = None) -> ExportSettings:
    """YAML 設定ファイルを読み込んで設定に重ねる。

    未知のキーは警告して無視する。ファイルが存在しない場合は base をそのまま返す。

    Raises:
        ValueError: YAML 構文エラーまたはトップレベルがマッピングでない場合
    """
    settings = replace(base) if base is not None else ExportSettings()
    path = Path(path)
    if not path.exists():
        return settings

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f)
    except YAMLError as e:
        raise ValueError(f"設定ファイルの YAML 構文エラー: {path}: {e}") from e

    if data is None:
        return settings
    if not isinstance(data, dict):
        raise ValueError(f"設定ファイルのトップレベルはマッピングである必要があります: {path}")

    known = {f.name for f in fields(ExportSettings)}
    for key, value in data.items():
        if key not in known:
            logger.warning("未知の設定キーを無視します: %s", key)
            continue
        _apply_value(settings, key, value, str(path))

    logger.debug("設定ファイルを読み込みました: %s", path)
    return settings


def load_settings_from_env(base: Optional[ExportSettings] = None) -> ExportSettings:
    """環境変数を読み込んで設定に重ねる。

    設定されていない環境変数は base（省略時はデフォルト値）を使用する。
    """
    settings = replace(base) if base is not None else ExportSettings()

    for env_key, attr in (
        (_ENV_BASE_URL, "base_url"),
        (_ENV_SCAN_URL, "scan_url"),
        (_ENV_A11Y_STANDARD, "a11y_standard"),
        (_ENV_VUS, "vus"),
        (_ENV_DURATION, "duration"),
        (_ENV_RAMP_UP, "ramp_up"),
        (_ENV_TIMEOUT_MS, "timeout_ms"),
    ):
        if env_key in os.environ:
            _apply_value(settings, attr, os.environ[env_key], env_key)

    return settings


def apply_overrides(settings: ExportSettings, **overrides: Any) -> ExportSettings:
    """CLI 引数などの明示値を適用した新しい設定を返す（None の項目は無視）。"""
    result = replace(settings)
    for key, value in overrides.items():
        if not hasattr(result, key):
            raise ValueError(f"未知の設定項目です: {key}")
        _apply_value(result, key, value, "override")
    return result


def resolve_settings(
    config_path: Optional[Path] = None,
    **overrides: Any,
) -> ExportSettings:
    """デフォルト → 設定ファイル → 環境変数 → 明示値 の順に重ねた設定を返す。

    Args:
        config_path: 設定ファイル（None ならカレントディレクトリの tce.yaml）
        **overrides: CLI 引数などの明示値

    Returns:
        最終的な設定
    """
    path = Path(config_path) if config_path is not None else Path(DEFAULT_CONFIG_FILE)
    settings = load_settings_from_file(path)
    settings = load_settings_from_env(settings)
    settings = apply_overrides(settings, **overrides)
    logger.info("設定を読み込みました: %s", settings)
    return settings
