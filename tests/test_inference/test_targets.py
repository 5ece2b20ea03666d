"""
Target Mapper のユニットテスト

明示セレクタの優先、系統ごとの 1段目の表現、引用リテラルへのフォールバック、
プレースホルダー、検証対象の解決を検証する。
"""

from __future__ import annotations

import pytest

from tce.errors import UnsupportedFormatError
from tce.inference.classifier import classify_text
from tce.inference.targets import (
    FAMILIES,
    FILE_INPUT_SELECTOR,
    PLACEHOLDER_MARKER,
    PLACEHOLDER_SELECTOR,
    resolve_assertion_target,
    resolve_target,
)
from tce.ir.schema import Assertion

FILL_EMAIL = classify_text('Enter "a@b.com" in the email field')
CLICK_SIGN_IN = classify_text('Click the "Sign in" button')


class TestExplicitSelector:
    """明示セレクタは系統に関わらず最優先で使われること。"""

    @pytest.mark.parametrize("family", sorted(FAMILIES))
    def test_selector_used_verbatim(self, family: str):
        target = resolve_target(CLICK_SIGN_IN, "#login-btn", family)
        assert target.value == "#login-btn"
        assert target.source == "explicit"
        assert not target.is_placeholder

    def test_web_families_use_css(self):
        assert resolve_target(CLICK_SIGN_IN, "#x", "cypress").strategy == "css"

    def test_mobile_families_use_id(self):
        assert resolve_target(CLICK_SIGN_IN, "login", "appium").strategy == "id"


class TestSemanticTarget:
    """1段目（ロール / ラベル）の系統別表現。"""

    def test_playwright_label(self):
        target = resolve_target(FILL_EMAIL, None, "playwright")
        assert (target.strategy, target.value) == ("label", "email")

    def test_playwright_role(self):
        target = resolve_target(CLICK_SIGN_IN, None, "playwright")
        assert (target.strategy, target.role, target.value) == ("role", "button", "Sign in")

    def test_selenium_uses_xpath(self):
        target = resolve_target(FILL_EMAIL, None, "selenium")
        assert target.strategy == "xpath"
        assert "@aria-label='email'" in target.value

    def test_selenium_control_xpath(self):
        target = resolve_target(CLICK_SIGN_IN, None, "selenium")
        assert "self::button" in target.value
        assert "'Sign in'" in target.value

    def test_cypress_field_uses_attribute_css(self):
        target = resolve_target(FILL_EMAIL, None, "cypress")
        assert target.strategy == "css"
        assert '[aria-label="email"]' in target.value

    def test_cypress_control_uses_text(self):
        target = resolve_target(CLICK_SIGN_IN, None, "cypress")
        assert (target.strategy, target.role) == ("text", "button")

    def test_appium_accessibility_id(self):
        assert resolve_target(CLICK_SIGN_IN, None, "appium").strategy == "accessibility_id"


class TestFallbacks:
    """引用リテラル・既定セレクタ・プレースホルダー。"""

    def test_literal_fallback(self):
        """コントロール種別の無いクリックは引用リテラルのテキスト一致になること。"""
        target = resolve_target(classify_text('Click "Next"'), None, "playwright")
        assert (target.strategy, target.value, target.source) == ("text", "Next", "literal")

    def test_value_literal_is_not_a_locator(self):
        """入力値として使われたリテラルは要素の手がかりにしないこと。"""
        target = resolve_target(classify_text('Type "hello"'), None, "playwright")
        assert target.is_placeholder

    def test_upload_defaults_to_file_input(self):
        target = resolve_target(classify_text('Upload "a.png"'), None, "playwright")
        assert target.value == FILE_INPUT_SELECTOR

    def test_placeholder_web(self):
        target = resolve_target(classify_text("Click somewhere"), None, "playwright")
        assert target.is_placeholder
        assert target.value == PLACEHOLDER_SELECTOR

    def test_placeholder_mobile(self):
        target = resolve_target(classify_text("Click somewhere"), None, "maestro")
        assert target.value == PLACEHOLDER_MARKER

    def test_unknown_family_raises(self):
        with pytest.raises(UnsupportedFormatError):
            resolve_target(CLICK_SIGN_IN, None, "puppeteer")


class TestAssertionTarget:
    """resolve_assertion_target() のテスト。"""

    def test_page_assertions_have_no_target(self):
        assert resolve_assertion_target(Assertion(type="url", value="/x"), "#a") is None
        assert resolve_assertion_target(Assertion(type="title", value="T")) is None

    def test_step_selector_is_used(self):
        target = resolve_assertion_target(Assertion(type="enabled"), "#submit")
        assert target.value == "#submit"

    def test_own_target_wins_over_step_selector(self):
        target = resolve_assertion_target(Assertion(type="enabled", target="#own"), "#submit")
        assert target.value == "#own"

    def test_visible_literal(self):
        target = resolve_assertion_target(Assertion(type="visible", value="Welcome"))
        assert (target.strategy, target.value) == ("text", "Welcome")

    def test_body_text_has_no_target(self):
        assert resolve_assertion_target(Assertion(type="text", value="Hi")) is None

    def test_untargeted_state_is_placeholder(self):
        assert resolve_assertion_target(Assertion(type="checked")).is_placeholder
