"""
アクセシビリティエミッターのユニットテスト

走査 URL の収集と既定 URL へのフォールバック、各設定 JSON の構造を検証する。
"""

from __future__ import annotations

import json

from tce.emitters.accessibility import collect_urls, emit_axe, emit_pa11y, emit_wave_config
from tce.emitters.base import EmitContext, LintFinding
from tce.ir.schema import TestCase


def _rules(artifact) -> list[str]:
    return [f.rule for f in artifact.findings]


class TestCollectUrls:
    """collect_urls() のテスト。"""

    def test_absolute_urls_are_deduplicated(self, vague_case: TestCase):
        findings: list[LintFinding] = []
        urls, firsts = collect_urls([vague_case, vague_case], findings, "axe", "https://example.com")

        assert urls == ["https://shop.example.com/"]
        assert firsts == ["https://shop.example.com/", "https://shop.example.com/"]
        assert findings == []

    def test_relative_navigation_joins_base_url(self):
        case = TestCase(title="Rel", base_url="https://app.test/", steps=["Navigate to /settings"])
        urls, _ = collect_urls([case], [], "axe", "https://example.com")
        assert urls == ["https://app.test/settings", "https://app.test/"]

    def test_default_scan_url(self, login_case: TestCase):
        """URL が1件も無ければ scan_url を1件だけ使い、警告を残すこと。"""
        findings: list[LintFinding] = []
        urls, firsts = collect_urls([login_case], findings, "pa11y", "https://example.com")

        assert urls == ["https://example.com"]
        assert firsts == [None]
        assert [f.rule for f in findings] == ["default-scan-url"]


class TestAxe:
    """emit_axe() のテスト。"""

    def test_config(self, vague_case: TestCase, ctx: EmitContext):
        config = json.loads(emit_axe([vague_case], "Smoke", ctx).content)

        assert config["standard"] == "WCAG2AA"
        assert config["runOptions"]["runOnly"]["values"] == [
            "wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice",
        ]
        assert config["urls"] == ["https://shop.example.com/"]
        assert config["tests"][0]["url"] == "https://shop.example.com/"
        assert config["metadata"]["generatedBy"] == "tce"
        assert config["metadata"]["generatedAt"] == "2024-05-01T12:30:00+00:00"

    def test_rule_hints(self, ctx: EmitContext):
        case = TestCase(title="Contrast", expected_results=["Text has sufficient color contrast"])
        config = json.loads(emit_axe([case], "S", ctx).content)
        assert config["tests"][0]["rules"] == ["color-contrast"]

    def test_empty_input_is_valid(self, ctx: EmitContext):
        artifact = emit_axe([], "S", ctx)
        config = json.loads(artifact.content)

        assert config["urls"] == ["https://example.com"]
        assert config["tests"] == []
        assert _rules(artifact) == ["default-scan-url"]


class TestPa11y:
    """emit_pa11y() のテスト。"""

    def test_defaults(self, login_case: TestCase, ctx: EmitContext):
        config = json.loads(emit_pa11y([login_case], "Login Suite", ctx).content)

        defaults = config["defaults"]
        assert defaults["timeout"] == 30000
        assert defaults["wait"] == 1000
        assert defaults["runners"] == ["axe", "htmlcs"]
        assert defaults["standard"] == "WCAG2AA"
        assert [u["url"] for u in config["urls"]] == ["https://example.com"]
        assert config["urls"][0]["screenCapture"] == "./screenshots/https___example_com.png"

    def test_css_actions_only(self, login_case: TestCase, ctx: EmitContext):
        """CSS で指せるステップだけがアクションになること。"""
        config = json.loads(emit_pa11y([login_case], "S", ctx).content)
        actions = config["tests"][0]["actions"]

        assert len(actions) == 1
        assert actions[0].startswith("set field [aria-label=")
        assert actions[0].endswith(" to a@b.com")


class TestWave:
    """emit_wave_config() のテスト。"""

    def test_config(self, login_case: TestCase, vague_case: TestCase, ctx: EmitContext):
        config = json.loads(emit_wave_config([vague_case, login_case], "S", ctx).content)

        assert config["api"]["key"] == "${WAVE_API_KEY}"
        assert config["api"]["endpoint"] == "https://wave.webaim.org/api/request"
        assert config["scans"] == [
            {"url": "https://shop.example.com/", "testCases": ["Page smoke", "User can sign in"]},
        ]
