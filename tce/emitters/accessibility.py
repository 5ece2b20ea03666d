"""
アクセシビリティエミッター — axe-core / Pa11y CI / WAVE API の設定 JSON を生成

走査対象の URL はステップ本文中の絶対 URL、navigate ステップの遷移先、ケースの base_url
から集める。1件も無い場合は ExportSettings.scan_url を1件だけ使い、警告を記録する。
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional
from urllib.parse import urljoin

from tce.inference.classifier import classify
from tce.inference.targets import resolve_target
from tce.ir.schema import TestCase

from .base import (
    EmitContext,
    EmittedArtifact,
    LintFinding,
    build_artifact,
    ensure_context,
    warning,
)
from .formats import ExportFormat

logger = logging.getLogger(__name__)

_URL_IN_TEXT = re.compile(r"https?://[^\s'\"<>]+")
_TRAILING = ".,;:!?)"
_SCREENSHOT_NAME = re.compile(r"[^a-z0-9]", re.IGNORECASE)

_AXE_TAGS: dict[str, list[str]] = {
    "WCAG2A": ["wcag2a", "wcag21a"],
    "WCAG2AA": ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa"],
    "WCAG2AAA": ["wcag2a", "wcag2aa", "wcag2aaa", "wcag21a", "wcag21aa"],
}

# 期待結果の語から axe のルール ID を引く
_AXE_RULE_HINTS: tuple[tuple[str, str], ...] = (
    ("contrast", "color-contrast"),
    ("alt", "image-alt"),
    ("image", "image-alt"),
    ("aria", "aria-valid-attr"),
    ("heading", "heading-order"),
    ("label", "label"),
    ("link", "link-name"),
    ("language", "html-has-lang"),
    ("keyboard", "tabindex"),
    ("focus", "focus-order-semantics"),
)

# Pa11y の検証カテゴリ
_PA11Y_HINTS: tuple[tuple[str, str], ...] = (
    ("contrast", "color-contrast"),
    ("keyboard", "keyboard-access"),
    ("aria", "aria-valid"),
    ("heading", "heading-structure"),
)


def _case_urls(case: TestCase) -> list[str]:
    """1ケースから走査対象 URL を出現順に集める。"""
    urls: list[str] = []
    for step in case.ordered_steps():
        for text in (step.action, step.expected, step.input_value or ""):
            urls.extend(match.rstrip(_TRAILING) for match in _URL_IN_TEXT.findall(text))
        action = classify(step)
        if action.kind == "navigate" and action.url:
            if action.url.startswith(("http://", "https://")):
                urls.append(action.url)
            elif case.base_url:
                urls.append(urljoin(case.base_url, action.url))
    if case.base_url:
        urls.append(case.base_url)
    return urls


def collect_urls(
    test_cases: list[TestCase], findings: list[LintFinding], fmt: str, scan_url: str,
) -> tuple[list[str], list[Optional[str]]]:
    """スイート全体の URL 一覧と、ケースごとの代表 URL を返す。

    Returns:
        (重複を除いた URL 一覧, ケースと同じ並びの代表 URL)
    """
    ordered: dict[str, None] = {}
    firsts: list[Optional[str]] = []
    for case in test_cases:
        urls = _case_urls(case)
        for url in urls:
            ordered.setdefault(url, None)
        firsts.append(urls[0] if urls else None)

    url_list = list(ordered)
    if not url_list:
        findings.append(warning(
            "default-scan-url",
            f"{fmt}: 走査対象の URL が無いため {scan_url} を使用しました",
        ))
        url_list = [scan_url]
    logger.debug("%s: %d 件の URL を収集", fmt, len(url_list))
    return url_list, firsts


def _assigned_url(index: int, first: Optional[str], url_list: list[str]) -> str:
    return first if first is not None else url_list[index % len(url_list)]


def _hints(case: TestCase, table: tuple[tuple[str, str], ...]) -> list[str]:
    texts = [*case.expected_results, *(step.expected for step in case.steps)]
    found: dict[str, None] = {}
    for text in texts:
        lowered = text.lower()
        for word, name in table:
            if re.search(rf"\b{word}", lowered):
                found.setdefault(name, None)
    return list(found)


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _metadata(suite_name: str, context: EmitContext, count: int) -> dict[str, Any]:
    return {
        "suite": suite_name,
        "generatedBy": "tce",
        "generatedAt": context.clock().isoformat(),
        "testCount": count,
    }


# ---------------------------------------------------------------------------
# axe-core
# ---------------------------------------------------------------------------

def emit_axe(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """axe-core の実行設定（runOnly タグ、対象 URL、ケース別ルール）を生成する。"""
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    url_list, firsts = collect_urls(test_cases, findings, "axe", ctx.settings.scan_url)

    config = {
        "standard": ctx.settings.a11y_standard,
        "runOptions": {
            "runOnly": {"type": "tag", "values": _AXE_TAGS[ctx.settings.a11y_standard] + ["best-practice"]},
            "resultTypes": ["violations", "incomplete"],
        },
        "urls": url_list,
        "tests": [
            {
                "name": case.title,
                "description": case.description,
                "url": _assigned_url(index, firsts[index], url_list),
                "rules": _hints(case, _AXE_RULE_HINTS),
                "tags": case.tags,
            }
            for index, case in enumerate(test_cases)
        ],
        "metadata": _metadata(suite_name, ctx, len(test_cases)),
    }
    return build_artifact(_dump(config), suite_name, ExportFormat.AXE, ctx, findings)


# ---------------------------------------------------------------------------
# Pa11y CI
# ---------------------------------------------------------------------------

def _pa11y_actions(case: TestCase) -> list[str]:
    """CSS で指せるステップだけを Pa11y のアクション文に変換する。"""
    actions: list[str] = []
    for step in case.ordered_steps():
        action = classify(step)
        kind = action.kind
        if kind == "navigate" and action.url and action.url.startswith(("http://", "https://")):
            actions.append(f"navigate to {action.url}")
            continue
        if kind == "wait" and action.wait_for is None and not step.selector:
            continue
        if kind not in ("click", "fill", "type", "check", "uncheck", "select", "wait"):
            continue
        target = resolve_target(action, step.selector, "cypress")
        if target.strategy != "css" or target.is_placeholder:
            continue
        selector = target.value
        if kind == "click":
            actions.append(f"click element {selector}")
        elif kind in ("fill", "type", "select") and action.value is not None:
            actions.append(f"set field {selector} to {action.value}")
        elif kind == "check":
            actions.append(f"check field {selector}")
        elif kind == "uncheck":
            actions.append(f"uncheck field {selector}")
        elif kind == "wait":
            actions.append(f"wait for element {selector} to be visible")
    return actions


def _screen_capture(url: str) -> str:
    return f"./screenshots/{_SCREENSHOT_NAME.sub('_', url)}.png"


def emit_pa11y(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Pa11y CI の設定 JSON を生成する。

    defaults は timeout / wait 1000ms / 基準 / ランナー（axe, htmlcs）を持ち、
    URL ごとにスクリーンショットの保存先を付ける。
    """
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    url_list, firsts = collect_urls(test_cases, findings, "pa11y", ctx.settings.scan_url)

    config = {
        "defaults": {
            "timeout": ctx.settings.timeout_ms,
            "wait": 1000,
            "chromeLaunchConfig": {"args": ["--no-sandbox", "--disable-setuid-sandbox"]},
            "standard": ctx.settings.a11y_standard,
            "runners": ["axe", "htmlcs"],
            "includeNotices": False,
            "includeWarnings": True,
            "ignore": [],
            "actions": [],
        },
        "urls": [
            {
                "url": url,
                "screenCapture": _screen_capture(url),
                "viewport": {"width": 1280, "height": 1024},
            }
            for url in url_list
        ],
        "tests": [
            {
                "name": case.title,
                "description": case.description,
                "url": _assigned_url(index, firsts[index], url_list),
                "actions": _pa11y_actions(case),
                "verifications": _hints(case, _PA11Y_HINTS),
            }
            for index, case in enumerate(test_cases)
        ],
        "metadata": _metadata(suite_name, ctx, len(test_cases)),
    }
    return build_artifact(_dump(config), suite_name, ExportFormat.PA11Y, ctx, findings)


# ---------------------------------------------------------------------------
# WAVE
# ---------------------------------------------------------------------------

_WAVE_ENDPOINT = "https://wave.webaim.org/api/request"


def emit_wave_config(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """WAVE API の走査設定 JSON を生成する。API キーは環境変数参照のまま出力する。"""
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    url_list, firsts = collect_urls(test_cases, findings, "wave-config", ctx.settings.scan_url)

    cases_by_url: dict[str, list[str]] = {url: [] for url in url_list}
    for index, case in enumerate(test_cases):
        cases_by_url[_assigned_url(index, firsts[index], url_list)].append(case.title)

    config = {
        "api": {
            "endpoint": _WAVE_ENDPOINT,
            "key": "${WAVE_API_KEY}",
            "format": "json",
            "reporttype": 4,
            "viewportwidth": 1280,
            "evaldelay": 1000,
        },
        "standard": ctx.settings.a11y_standard,
        "thresholds": {"error": 0, "contrast": 0},
        "scans": [{"url": url, "testCases": titles} for url, titles in cases_by_url.items()],
        "metadata": _metadata(suite_name, ctx, len(test_cases)),
    }
    return build_artifact(_dump(config), suite_name, ExportFormat.WAVE_CONFIG, ctx, findings)
