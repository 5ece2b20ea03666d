"""
Script Linter — 生成スクリプトの静的チェックとメタ情報抽出

スクリプトを実行せず、テキストのパターンだけで品質問題を報告する。

検出ルール:
  - 必須 import の欠落 → error（missing-import）
  - テストの枠組み（test( / def test_ など）の欠落 → error（missing-test-wrapper）
  - Playwright の page フィクスチャ欠落 → error（missing-page-fixture）
  - TODO: / TCE-PLACEHOLDER の残存 → warning（unresolved-placeholder、件数付き）
  - 非同期 API 呼び出しの await 漏れ → warning（missing-await、JS 非同期系のみ）

ルールの有無はフレームワーク別の不変プロファイル表で決まる。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from tce.emitters.base import LintFinding, error, warning
from tce.errors import UnsupportedFormatError
from tce.inference.targets import PLACEHOLDER_MARKER

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# プロファイル
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LintProfile:
    """フレームワーク別のチェック内容。

    Attributes:
        imports: 必須 import のパターンと、欠落時に表示する import 文
        wrapper: テストの枠組みを表すパターン
        page_fixture: page フィクスチャを要求するなら True
        async_calls: await を要求する呼び出しのパターン（None なら検査しない）
    """

    imports: tuple[tuple[re.Pattern, str], ...]
    wrapper: re.Pattern
    page_fixture: bool = False
    async_calls: Optional[re.Pattern] = None


_PW_ASYNC = re.compile(
    r"\bpage\.(?:goto|click|fill|type|press|check|uncheck|selectOption|setInputFiles|hover|"
    r"waitFor\w*|reload|goBack|goForward|screenshot|textContent|innerText|inputValue|isVisible|isHidden)\("
    r"|\.(?:click|fill|press|check|uncheck|selectOption|setInputFiles|hover|waitFor)\("
    r"|\bexpect\(.*\)\.(?:not\.)?(?:toHave\w+|toBeVisible|toBeHidden|toBeEnabled|toBeDisabled|"
    r"toBeChecked|toBeEditable|toBeEmpty|toBeFocused|toBeAttached|toContainText)\("
)

_PY_TEST_WRAPPER = re.compile(r"^\s*(?:async\s+)?def\s+test_\w*\s*\(|^\s*class\s+Test\w*", re.MULTILINE)

PROFILES = MappingProxyType({
    "playwright": LintProfile(
        imports=((re.compile(r"import\s*\{[^}]*\btest\b[^}]*\}\s*from\s*['\"]@playwright/test['\"]"),
                  "import { test, expect } from '@playwright/test';"),),
        wrapper=re.compile(r"\btest(?:\.describe)?\s*\("),
        page_fixture=True,
        async_calls=_PW_ASYNC,
    ),
    "cypress": LintProfile(
        imports=(),
        wrapper=re.compile(r"\b(?:describe|context|it)\s*\("),
    ),
    "selenium": LintProfile(
        imports=((re.compile(r"^\s*from\s+selenium(?:\.webdriver)?\S*\s+import\b", re.MULTILINE),
                  "from selenium import webdriver"),),
        wrapper=_PY_TEST_WRAPPER,
    ),
    "appium": LintProfile(
        imports=((re.compile(r"^\s*from\s+appium(?:\.\w+)*\s+import\b", re.MULTILINE),
                  "from appium import webdriver"),),
        wrapper=_PY_TEST_WRAPPER,
    ),
    "k6": LintProfile(
        imports=((re.compile(r"import\s+http\s+from\s+['\"]k6/http['\"]"), "import http from 'k6/http';"),),
        wrapper=re.compile(r"export\s+default\s+(?:async\s+)?function"),
    ),
    "locust": LintProfile(
        imports=((re.compile(r"^\s*from\s+locust\s+import\b", re.MULTILINE), "from locust import HttpUser, task"),),
        wrapper=re.compile(r"^\s*class\s+\w+\(\s*(?:Http|FastHttp)?User\s*\)", re.MULTILINE),
    ),
})

_PAGE_FIXTURE = re.compile(r"async\s*\(\s*\{[^}]*\bpage\b[^}]*\}")
_COMMENT_LINE = re.compile(r"^\s*(?://|#|\*|/\*)")


# ---------------------------------------------------------------------------
# ScriptLinter 本体
# ---------------------------------------------------------------------------

class ScriptLinter:
    """生成スクリプトの静的解析を行う Linter。"""

    def __init__(self, framework: str = "playwright") -> None:
        """
        Raises:
            UnsupportedFormatError: プロファイル表に無いフレームワークの場合
        """
        key = str(framework).strip().lower()
        if key not in PROFILES:
            raise UnsupportedFormatError(
                f"lint 未対応のフレームワークです: {framework}（対応: {', '.join(PROFILES)}）"
            )
        self.framework = key
        self.profile = PROFILES[key]

    def lint(self, script: str) -> list[LintFinding]:
        """全ルールを適用し、検出結果を行番号順に返す。"""
        if not script.strip():
            return [error("empty-script", "スクリプトが空です")]

        findings: list[LintFinding] = []
        findings.extend(self._check_imports(script))
        findings.extend(self._check_wrapper(script))
        findings.extend(self._check_placeholders(script))
        findings.extend(self._check_await(script))
        logger.debug("lint(%s): %d 件", self.framework, len(findings))
        return findings

    # -----------------------------------------------------------------
    # ルール
    # -----------------------------------------------------------------

    def _check_imports(self, script: str) -> list[LintFinding]:
        return [
            error("missing-import", f"必須の import がありません: {statement}")
            for pattern, statement in self.profile.imports
            if not pattern.search(script)
        ]

    def _check_wrapper(self, script: str) -> list[LintFinding]:
        if not self.profile.wrapper.search(script):
            return [error("missing-test-wrapper", "テストの枠組みが見つかりません")]
        if self.profile.page_fixture and not _PAGE_FIXTURE.search(script):
            return [error("missing-page-fixture", "page フィクスチャ（async ({ page }) => ...）がありません")]
        return []

    def _check_placeholders(self, script: str) -> list[LintFinding]:
        lines = [
            number for number, line in enumerate(script.splitlines(), start=1)
            if "TODO:" in line or PLACEHOLDER_MARKER in line
        ]
        if not lines:
            return []
        return [warning(
            "unresolved-placeholder",
            f"手動確認が必要な箇所が {len(lines)} 件あります（TODO: / {PLACEHOLDER_MARKER}）",
            line=lines[0],
        )]

    def _check_await(self, script: str) -> list[LintFinding]:
        pattern = self.profile.async_calls
        if pattern is None:
            return []
        findings = []
        for number, line in enumerate(script.splitlines(), start=1):
            if _COMMENT_LINE.match(line) or not pattern.search(line):
                continue
            if re.search(r"\bawait\b|\breturn\b", line):
                continue
            findings.append(warning("missing-await", f"非同期呼び出しに await がありません: {line.strip()}", line=number))
        return findings


def lint(script_text: str, framework: str = "playwright") -> list[LintFinding]:
    """ScriptLinter(framework).lint() の簡易版。

    Raises:
        UnsupportedFormatError: 未対応のフレームワークの場合
    """
    return ScriptLinter(framework).lint(script_text)


# ---------------------------------------------------------------------------
# メタ情報
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScriptMetadata:
    """スクリプトから読み取ったメタ情報。

    Attributes:
        test_name: 最初のテスト名（見つからなければ None）
        step_count: "Step N:" マーカーの数
        has_base_url: 遷移先 URL を開く呼び出しがあるか
        timeout: タイムアウト値（ミリ秒、見つからなければ None）
    """

    test_name: Optional[str]
    step_count: int
    has_base_url: bool
    timeout: Optional[int]

    def to_dict(self) -> dict[str, object]:
        return {
            "test_name": self.test_name,
            "step_count": self.step_count,
            "has_base_url": self.has_base_url,
            "timeout": self.timeout,
        }


_TEST_NAMES = (
    re.compile(r"\b(?:test|it)\s*\(\s*(['\"`])((?:\\.|(?!\1).)*)\1"),
    re.compile(r"^\s*(?:async\s+)?def\s+(test_\w+)\s*\(", re.MULTILINE),
    re.compile(r"\bfunc\s+(test\w+)\s*\("),
    re.compile(r"\bfun\s+(test\w+)\s*\("),
    re.compile(r"\b(?:describe|scenario)\s*\(\s*(['\"`])((?:\\.|(?!\1).)*)\1"),
)
_STEP_MARKER = re.compile(r"(?://|#)\s*Step \d+:")
_BASE_URL_CALLS = re.compile(r"\bpage\.goto\(|\bcy\.visit\(|\bdriver\.get\(|\bBASE_URL\b|\bbaseUrl\b|\bopenLink:")
_TIMEOUTS = (
    re.compile(r"\bsetTimeout\(\s*(\d+)\s*\)"),
    re.compile(r"\btimeout\s*[:=]\s*(\d+)\b"),
    re.compile(r"^\s*TIMEOUT\s*=\s*(\d+)\b", re.MULTILINE),
)


def _test_name(script: str) -> Optional[str]:
    for pattern in _TEST_NAMES:
        match = pattern.search(script)
        if match:
            return match.group(match.lastindex or 1)
    return None


def _timeout(script: str) -> Optional[int]:
    for index, pattern in enumerate(_TIMEOUTS):
        match = pattern.search(script)
        if match:
            value = int(match.group(1))
            # Python 系の TIMEOUT は秒単位
            return value * 1000 if index == 2 else value
    return None


def extract_metadata(script_text: str) -> ScriptMetadata:
    """スクリプトからテスト名・ステップ数・URL 有無・タイムアウトを読み取る。

    どんな入力でも例外は送出せず、見つからない項目は None / 0 / False にする。
    """
    script = script_text if isinstance(script_text, str) else ""
    return ScriptMetadata(
        test_name=_test_name(script),
        step_count=len(_STEP_MARKER.findall(script)),
        has_base_url=bool(_BASE_URL_CALLS.search(script)),
        timeout=_timeout(script),
    )
