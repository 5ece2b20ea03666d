"""
モバイルエミッターのユニットテスト

Appium の構文妥当性とロケータ方言、Maestro の YAML 構造、
XCUITest / Espresso のクラス構造、タッチ操作に無い操作の TODO 化を検証する。
"""

from __future__ import annotations

import ast

import pytest
from ruamel.yaml import YAML

from tce.emitters.base import EmitContext
from tce.emitters.mobile import emit_appium, emit_espresso, emit_maestro, emit_xcuitest
from tce.errors import EmptyInputError
from tce.ir.schema import Assertion, Step, TestCase


def _rules(artifact) -> list[str]:
    return [f.rule for f in artifact.findings]


# ---------------------------------------------------------------------------
# Appium
# ---------------------------------------------------------------------------

class TestAppium:
    """emit_appium() のテスト。"""

    def test_output_is_valid_python(self, login_case: TestCase, vague_case: TestCase, ctx: EmitContext):
        content = emit_appium([login_case, vague_case], "Login Suite", ctx).content

        tree = ast.parse(content)
        names = [node.name for node in tree.body if isinstance(node, ast.FunctionDef)]
        assert names == ["driver", "test_001_user_can_sign_in", "test_002_page_smoke"]

    def test_semantic_locators_use_accessibility_id(self, login_case: TestCase, ctx: EmitContext):
        content = emit_appium([login_case], "S", ctx).content

        assert "driver.get('/login')" in content
        assert "field = wait.until(EC.visibility_of_element_located((AppiumBy.ACCESSIBILITY_ID, 'email')))" in content
        assert "field.send_keys('a@b.com')" in content
        assert "wait.until(EC.element_to_be_clickable((AppiumBy.ACCESSIBILITY_ID, 'Sign in'))).click()" in content
        assert "assert '/dashboard' in driver.current_url" in content

    @pytest.mark.parametrize("selector, expected", [
        ("//android.widget.Button", "(AppiumBy.XPATH, '//android.widget.Button')"),
        ("~login", "(AppiumBy.ACCESSIBILITY_ID, 'login')"),
        ("com.app:id/login", "(AppiumBy.ID, 'com.app:id/login')"),
    ])
    def test_explicit_selector_dialects(self, selector: str, expected: str, ctx: EmitContext):
        """明示セレクタの接頭辞でロケータ種別が切り替わること。"""
        case = TestCase(title="Tap", steps=[Step(action_type="click", selector=selector)])
        assert expected in emit_appium([case], "S", ctx).content

    def test_hover_is_unsupported(self, ctx: EmitContext):
        case = TestCase(title="Hover", steps=[Step(action_type="hover", selector="#menu")])
        artifact = emit_appium([case], "S", ctx)

        assert "# TODO: hover is not available in appium" in artifact.content
        assert _rules(artifact) == ["unsupported-on-platform"]
        ast.parse(artifact.content)

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_appium([], "S", ctx)


# ---------------------------------------------------------------------------
# Maestro
# ---------------------------------------------------------------------------

class TestMaestro:
    """emit_maestro() のテスト。"""

    def test_flow_documents(self, login_case: TestCase, ctx: EmitContext):
        """ヘッダー文書とコマンド列の2文書になり、launchApp で始まること。"""
        artifact = emit_maestro([login_case], "Login Suite", ctx)
        docs = list(YAML(typ="safe").load_all(artifact.content))

        assert len(docs) == 2
        assert docs[0] == {"appId": "${APP_ID}", "name": "Login Suite", "tags": ["tce"]}
        assert docs[1] == [
            {"launchApp": {"clearState": True}},
            {"openLink": "/login"},
            {"tapOn": "email"},
            "eraseText",
            {"inputText": "a@b.com"},
            {"tapOn": "Sign in"},
        ]

    def test_url_assertion_is_unsupported(self, login_case: TestCase, ctx: EmitContext):
        artifact = emit_maestro([login_case], "S", ctx)
        assert "# TODO: url assertion is not available in maestro" in artifact.content
        assert _rules(artifact) == ["unsupported-on-platform"]

    def test_exact_text_is_regex_escaped(self, ctx: EmitContext):
        case = TestCase(title="Price", steps=[
            Step(action_type="verify", assertion=Assertion(type="exact-text", target="#price", value="$5.00")),
        ])
        docs = list(YAML(typ="safe").load_all(emit_maestro([case], "S", ctx).content))
        assert {"assertVisible": {"id": "#price", "text": "\\$5\\.00"}} in docs[1]

    def test_each_case_starts_with_launch(self, login_case: TestCase, vague_case: TestCase, ctx: EmitContext):
        docs = list(YAML(typ="safe").load_all(emit_maestro([login_case, vague_case], "S", ctx).content))
        launches = [c for c in docs[1] if isinstance(c, dict) and "launchApp" in c]
        assert len(launches) == 2

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_maestro([], "S", ctx)


# ---------------------------------------------------------------------------
# XCUITest / Espresso
# ---------------------------------------------------------------------------

class TestXcuiTest:
    """emit_xcuitest() のテスト。"""

    def test_class_structure(self, login_case: TestCase, ctx: EmitContext):
        content = emit_xcuitest([login_case], "Login Suite", ctx).content

        assert content.startswith("import XCTest\n")
        assert "final class LoginSuiteUITests: XCTestCase {" in content
        assert "    func test001UserCanSignIn() throws {" in content
        assert "let timeout: TimeInterval = 30" in content
        assert 'app.textFields["email"].typeText("a@b.com")' in content
        assert 'app.buttons["Sign in"].tap()' in content
        assert "// TODO: url assertion is not available in xcuitest" in content
        assert content.count("{") == content.count("}")

    @pytest.mark.parametrize("wait_ms, seconds", [(50, "0.050"), (40, "0.040"), (1500, "1.500"), (3000, "3.000")])
    def test_short_waits_keep_milliseconds(self, wait_ms: int, seconds: str, ctx: EmitContext):
        """50ms / 40ms の待機が 0.1 / 0.0 秒に丸められないこと。"""
        case = TestCase(title="Wait", steps=[Step(action_type="wait", wait_time=wait_ms)])
        content = emit_xcuitest([case], "S", ctx).content

        assert f"Thread.sleep(forTimeInterval: {seconds})" in content

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_xcuitest([], "S", ctx)


class TestEspresso:
    """emit_espresso() のテスト。"""

    def test_class_structure(self, login_case: TestCase, ctx: EmitContext):
        content = emit_espresso([login_case], "Login Suite", ctx).content

        assert content.startswith("package com.example.tce\n")
        assert "@RunWith(AndroidJUnit4::class)" in content
        assert "class LoginSuiteTest {" in content
        assert "    @Test\n    fun test001UserCanSignIn() {" in content
        assert 'onView(withHint("email")).perform(clearText(), typeText("a@b.com"), closeSoftKeyboard())' in content
        assert 'onView(withText("Sign in")).perform(click())' in content
        assert content.count("{") == content.count("}")

    def test_escape_key_is_back(self, ctx: EmitContext):
        case = TestCase(title="Back", steps=["Press the Escape key"])
        assert "pressBack()" in emit_espresso([case], "S", ctx).content

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_espresso([], "S", ctx)
