"""
エミッターレジストリ — (platform, format) からエミッター関数への静的対応表

実行時登録は行わない。対応表に無い組み合わせは必ず UnsupportedFormatError になり、
None や黙った既定値を返すことはない。

主な構成:
  - Emitter Protocol: 全エミッター共通の呼び出し形
  - EMITTERS: 不変の対応表
  - resolve_emitter / export: 解決と一括呼び出し
  - list_targets: CLI 向けの一覧
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Protocol, Union

from tce.errors import UnsupportedFormatError
from tce.ir.schema import TestCase

from . import accessibility, api, manual, mobile, performance, web
from .base import EmitContext, EmittedArtifact, ensure_context
from .formats import FORMAT_INFO, EmissionTarget, ExportFormat, Platform

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    """エミッター関数の共通インターフェース。"""

    def __call__(
        self,
        test_cases: list[TestCase],
        suite_name: str,
        context: Optional[EmitContext] = None,
    ) -> EmittedArtifact:
        ...


EMITTERS = MappingProxyType({
    (Platform.WEB, ExportFormat.PLAYWRIGHT): web.emit_playwright,
    (Platform.WEB, ExportFormat.CYPRESS): web.emit_cypress,
    (Platform.WEB, ExportFormat.SELENIUM): web.emit_selenium,
    (Platform.API, ExportFormat.POSTMAN): api.emit_postman,
    (Platform.API, ExportFormat.KARATE): api.emit_karate,
    (Platform.API, ExportFormat.OPENAPI): api.emit_openapi,
    (Platform.API, ExportFormat.INSOMNIA): api.emit_insomnia,
    (Platform.MOBILE, ExportFormat.APPIUM): mobile.emit_appium,
    (Platform.MOBILE, ExportFormat.MAESTRO): mobile.emit_maestro,
    (Platform.MOBILE, ExportFormat.XCUITEST): mobile.emit_xcuitest,
    (Platform.MOBILE, ExportFormat.ESPRESSO): mobile.emit_espresso,
    (Platform.PERFORMANCE, ExportFormat.JMETER): performance.emit_jmeter,
    (Platform.PERFORMANCE, ExportFormat.K6): performance.emit_k6,
    (Platform.PERFORMANCE, ExportFormat.GATLING): performance.emit_gatling,
    (Platform.PERFORMANCE, ExportFormat.LOCUST): performance.emit_locust,
    (Platform.ACCESSIBILITY, ExportFormat.AXE): accessibility.emit_axe,
    (Platform.ACCESSIBILITY, ExportFormat.PA11Y): accessibility.emit_pa11y,
    (Platform.ACCESSIBILITY, ExportFormat.WAVE_CONFIG): accessibility.emit_wave_config,
    (Platform.MANUAL, ExportFormat.GHERKIN): manual.emit_gherkin,
    (Platform.MANUAL, ExportFormat.CUCUMBER): manual.emit_cucumber,
    (Platform.MANUAL, ExportFormat.TESTRAIL): manual.emit_testrail,
    (Platform.MANUAL, ExportFormat.JIRA): manual.emit_jira,
    (Platform.MANUAL, ExportFormat.JSON): manual.emit_json,
    (Platform.MANUAL, ExportFormat.MARKDOWN): manual.emit_markdown,
})


@dataclass(frozen=True)
class TargetInfo:
    """list_targets() の1行分。"""

    platform: str
    format: str
    label: str
    extension: str
    mime_type: str
    script: bool


TargetLike = Union[EmissionTarget, tuple[str, str], str]


def as_target(target: TargetLike) -> EmissionTarget:
    """EmissionTarget・(platform, format) の組・"platform/format" 文字列を受け付ける。

    Raises:
        UnsupportedFormatError: 列挙値に無い platform / format を含む場合
    """
    if isinstance(target, EmissionTarget):
        return target
    if isinstance(target, str):
        platform, sep, fmt = target.partition("/")
        if not sep:
            raise UnsupportedFormatError(f"出力先は platform/format 形式で指定してください: {target!r}")
        return EmissionTarget.parse(platform, fmt)
    platform, fmt = target
    return EmissionTarget.parse(str(platform), str(fmt))


def resolve_emitter(platform: Union[Platform, str], fmt: Union[ExportFormat, str]) -> Emitter:
    """(platform, format) に対応するエミッター関数を返す。

    Raises:
        UnsupportedFormatError: 対応表に無い組み合わせの場合
    """
    target = EmissionTarget.parse(
        platform.value if isinstance(platform, Platform) else platform,
        fmt.value if isinstance(fmt, ExportFormat) else fmt,
    )
    emitter = EMITTERS.get((target.platform, target.format))
    if emitter is None:
        raise UnsupportedFormatError(f"{target} は未対応の組み合わせです")
    logger.debug("エミッター解決: %s → %s", target, emitter.__name__)
    return emitter


def export(
    target: TargetLike,
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """出力先を解決してエミッターを1回呼び出す。"""
    resolved = as_target(target)
    emitter = resolve_emitter(resolved.platform, resolved.format)
    return emitter(test_cases, suite_name, ensure_context(context))


def list_targets(platform: Optional[Union[Platform, str]] = None) -> list[TargetInfo]:
    """対応表の全組み合わせを表の順に返す（platform 指定時はその分だけ）。"""
    wanted = None
    if platform is not None:
        try:
            wanted = Platform(platform.value if isinstance(platform, Platform) else str(platform).lower())
        except ValueError as e:
            raise UnsupportedFormatError(f"未対応のプラットフォームです: {platform!r}") from e

    rows = []
    for (plat, fmt) in EMITTERS:
        if wanted is not None and plat is not wanted:
            continue
        info = FORMAT_INFO[fmt]
        rows.append(TargetInfo(
            platform=plat.value,
            format=fmt.value,
            label=info.label,
            extension=info.extension,
            mime_type=info.mime_type,
            script=info.script,
        ))
    return rows


__all__ = [
    "EMITTERS",
    "FORMAT_INFO",
    "Emitter",
    "TargetInfo",
    "as_target",
    "export",
    "list_targets",
    "resolve_emitter",
]
