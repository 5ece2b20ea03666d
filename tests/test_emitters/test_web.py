"""
Web E2E エミッターのユニットテスト

明示的な操作記述の変換結果、推定できないステップの TODO 化、ステップ順序、
0件入力の扱い、生成 Python の構文妥当性を検証する。
"""

from __future__ import annotations

import ast
import re

import pytest
from hypothesis import HealthCheck, given, settings

from tce.emitters.base import EmitContext
from tce.emitters.web import emit_cypress, emit_playwright, emit_selenium, python_test_name
from tce.errors import EmptyInputError
from tce.inference.targets import PLACEHOLDER_SELECTOR
from tce.ir.schema import Assertion, Step, TestCase

from conftest import make_test_case_strategy

_STEP_LINE = re.compile(r"^\s*(?://|#) Step (\d+): ", re.MULTILINE)


def _positions(content: str, *needles: str) -> list[int]:
    positions = [content.index(needle) for needle in needles]
    return positions


# ---------------------------------------------------------------------------
# Playwright
# ---------------------------------------------------------------------------

class TestPlaywright:
    """emit_playwright() のテスト。"""

    def test_explicit_steps(self, login_case: TestCase, ctx: EmitContext):
        """明示的な4ステップが goto → fill → click → toHaveURL の順に出力されること。"""
        artifact = emit_playwright([login_case], "Login Suite", ctx)
        content = artifact.content

        expected = [
            "await page.goto('/login');",
            "await page.getByLabel('email').fill('a@b.com');",
            "await page.getByRole('button', { name: 'Sign in' }).click();",
            "await expect(page).toHaveURL('**/dashboard');",
        ]
        positions = _positions(content, *expected)
        assert positions == sorted(positions)
        assert artifact.findings == []
        assert "TODO" not in content

    def test_structure(self, login_case: TestCase, ctx: EmitContext):
        content = emit_playwright([login_case], "Login Suite", ctx).content
        assert content.startswith("import { test, expect } from '@playwright/test';")
        assert "test.describe('Login Suite', () => {" in content
        assert "  test('User can sign in', async ({ page }) => {" in content
        assert "test.setTimeout(30000);" in content
        assert "// Expected: Dashboard opens" in content
        assert "// Precondition: A registered user exists" in content

    def test_unresolved_verify_becomes_todo(self, vague_case: TestCase, ctx: EmitContext):
        """推定できない検証は TODO コメントになり、警告が記録されること。"""
        artifact = emit_playwright([vague_case], "Smoke", ctx)

        assert "await page.goto('https://shop.example.com/');" in artifact.content
        assert "// TODO: add an assertion for: Verify the page loads" in artifact.content
        assert [f.rule for f in artifact.findings] == ["unresolved-assertion"]

    def test_structured_fields(self, ctx: EmitContext):
        case = TestCase(title="Structured", steps=[
            Step(action_type="fill", selector="#email", input_value="x@y.z"),
            Step(action_type="click", selector="#save",
                 assertion=Assertion(type="visible", target="#toast")),
            Step(action_type="verify", assertion=Assertion(type="count", target=".row", value=">=2")),
            Step(action="Wait 3 seconds"),
            Step(action="Press the Enter key"),
        ])
        content = emit_playwright([case], "S", ctx).content

        assert "await page.locator('#email').fill('x@y.z');" in content
        assert "await expect(page.locator('#toast')).toBeVisible();" in content
        assert "expect(await page.locator('.row').count()).toBeGreaterThanOrEqual(2);" in content
        assert "await page.waitForTimeout(3000);" in content
        assert "await page.keyboard.press('Enter');" in content

    def test_placeholder_selector(self, ctx: EmitContext):
        case = TestCase(title="P", steps=["Click somewhere"])
        artifact = emit_playwright([case], "S", ctx)
        assert PLACEHOLDER_SELECTOR.replace("'", "\\'") in artifact.content
        assert "placeholder-selector" in [f.rule for f in artifact.findings]

    def test_quotes_are_escaped(self, ctx: EmitContext):
        case = TestCase(title="It's quoted", steps=['Click "Don\'t save"'])
        content = emit_playwright([case], "S", ctx).content
        assert "test('It\\'s quoted'" in content

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_playwright([], "S", ctx)

    def test_case_without_steps(self, ctx: EmitContext):
        artifact = emit_playwright([TestCase(title="Nothing")], "S", ctx)
        assert "// TODO: add steps to this test case" in artifact.content
        assert [f.rule for f in artifact.findings] == ["empty-case"]

    def test_deterministic(self, login_case: TestCase, vague_case: TestCase, ctx: EmitContext):
        first = emit_playwright([login_case, vague_case], "S", ctx)
        second = emit_playwright([login_case, vague_case], "S", ctx)
        assert first.content == second.content
        assert first.filename == second.filename

    @given(case=make_test_case_strategy())
    @settings(max_examples=60, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_every_step_emitted_in_order(self, case: TestCase, ctx: EmitContext):
        """全ステップが1回ずつ、ordered_steps() の順に出力されること（Property）。"""
        case = case.model_copy(update={"description": ""})
        content = emit_playwright([case], "S", ctx).content

        numbers = [int(n) for n in _STEP_LINE.findall(content)]
        assert numbers == [s.step_number for s in case.ordered_steps()]


# ---------------------------------------------------------------------------
# Cypress
# ---------------------------------------------------------------------------

class TestCypress:
    """emit_cypress() のテスト。"""

    def test_explicit_steps(self, login_case: TestCase, ctx: EmitContext):
        content = emit_cypress([login_case], "Login Suite", ctx).content

        expected = [
            "cy.visit('/login');",
            "cy.get('[aria-label=\"email\"], [name=\"email\"], [placeholder=\"email\"]').clear().type('a@b.com');",
            "cy.contains('button', 'Sign in').click();",
            "cy.url().should('include', '/dashboard');",
        ]
        positions = _positions(content, *expected)
        assert positions == sorted(positions)
        assert "  it('User can sign in', () => {" in content

    def test_special_key_syntax_is_disabled(self, ctx: EmitContext):
        case = TestCase(title="Braces", steps=[Step(action_type="fill", selector="#q", input_value="{enter}")])
        content = emit_cypress([case], "S", ctx).content
        assert "cy.get('#q').clear().type('{{}enter}');" in content

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_cypress([], "S", ctx)


# ---------------------------------------------------------------------------
# Selenium
# ---------------------------------------------------------------------------

class TestSelenium:
    """emit_selenium() のテスト。"""

    def test_output_is_valid_python(self, login_case: TestCase, vague_case: TestCase, ctx: EmitContext):
        """生成モジュールが Python として構文解析できること。"""
        extra = TestCase(title="Toggles", steps=[
            Step(action_type="check", selector="#terms"),
            Step(action_type="upload", selector="#file", input_value="a.png"),
            Step(action="Press the Tab key"),
            Step(action="Wait 1.5 seconds"),
            Step(action='Select "Japan" from the country dropdown'),
        ])
        content = emit_selenium([login_case, vague_case, extra], "Login Suite", ctx).content

        tree = ast.parse(content)
        names = [node.name for node in tree.body if isinstance(node, ast.FunctionDef)]
        assert names == [
            "driver",
            "test_001_user_can_sign_in",
            "test_002_page_smoke",
            "test_003_toggles",
        ]

    def test_statements(self, login_case: TestCase, ctx: EmitContext):
        content = emit_selenium([login_case], "S", ctx).content
        assert "driver.get(BASE_URL + '/login')" in content
        assert "wait.until(EC.url_contains('/dashboard'))" in content
        assert "BASE_URL = os.environ.get(\"BASE_URL\", 'http://localhost:3000')" in content
        assert "TIMEOUT = 30" in content

    def test_python_test_name(self):
        assert python_test_name(12, "Log in / out!") == "test_012_log_in_out"

    def test_empty_input_raises(self, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emit_selenium([], "S", ctx)


# ---------------------------------------------------------------------------
# 期待値を解釈できない検証（3 エミッター共通）
# ---------------------------------------------------------------------------

WEB_EMITTERS = [emit_playwright, emit_cypress, emit_selenium]


def _verify_case(assertion: Assertion) -> TestCase:
    return TestCase(title="Check", steps=[
        Step(action="Check it", action_type="verify", assertion=assertion),
    ])


class TestUnresolvableAssertions:
    """期待値が空・不正な検証は TODO と unresolved-assertion 警告になること。"""

    @pytest.mark.parametrize("emitter", WEB_EMITTERS)
    @pytest.mark.parametrize("kind", ["url", "title", "text"])
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_value_becomes_todo(self, emitter, kind: str, value, ctx: EmitContext):
        artifact = emitter([_verify_case(Assertion(type=kind, value=value))], "S", ctx)

        assert "TODO: add an assertion for: Check it" in artifact.content
        assert [f.rule for f in artifact.findings] == ["unresolved-assertion"]

    def test_playwright_url_without_value_keeps_the_file_loadable(self, ctx: EmitContext):
        """空の URL 検証で toHaveURL(//) のような不正な JS を出さないこと。"""
        content = emit_playwright([_verify_case(Assertion(type="url"))], "S", ctx).content

        assert "toHaveURL(" not in content
        assert "//)" not in content

    def test_playwright_url_fragment_is_a_regex(self, ctx: EmitContext):
        content = emit_playwright([_verify_case(Assertion(type="url", value="dash/board"))], "S", ctx).content
        assert "await expect(page).toHaveURL(/dash\\/board/);" in content

    def test_selenium_output_stays_valid_python(self, ctx: EmitContext):
        case = TestCase(title="Empty checks", steps=[
            Step(action_type="verify", assertion=Assertion(type="url")),
            Step(action_type="verify", assertion=Assertion(type="title", value="")),
            Step(action_type="verify", assertion=Assertion(type="count", target=".row", value="three")),
        ])
        content = emit_selenium([case], "S", ctx).content

        ast.parse(content)
        assert content.count("# TODO: add an assertion for:") == 3

    @pytest.mark.parametrize("emitter, zero_count", [
        (emit_playwright, "toHaveCount(0)"),
        (emit_cypress, "'have.length', 0"),
        (emit_selenium, "== 0"),
    ])
    @pytest.mark.parametrize("value", ["three", "at least 2", None])
    def test_unparseable_count_is_not_zero(self, emitter, zero_count: str, value, ctx: EmitContext):
        """解釈できない件数を「0 件」として検証しないこと。"""
        case = _verify_case(Assertion(type="count", target=".row", value=value))
        artifact = emitter([case], "S", ctx)

        assert zero_count not in artifact.content
        assert "TODO: add an assertion for: Check it" in artifact.content
        assert [f.rule for f in artifact.findings] == ["unresolved-assertion"]
