"""
モバイルエミッター — Appium / Maestro / XCUITest / Espresso の生成

Web と同じく分類器・ターゲット解決を通してステップを変換する。
明示セレクタはリソース ID（Appium では "//" 始まりを XPath、"~" 始まりを
アクセシビリティ ID として扱う）。タッチ操作に対応物の無い操作（hover、URL 検証など）は
TODO コメントと警告に置き換える。
"""

from __future__ import annotations

import io
import logging
import re
from typing import Any, Optional

from ruamel.yaml import YAML

from tce.inference.targets import Target
from tce.ir.schema import Assertion, TestCase

from .base import (
    EmitContext,
    EmittedArtifact,
    LintFinding,
    PlannedStep,
    assertion_target,
    build_artifact,
    count_condition,
    ensure_context,
    header_comments,
    missing_value,
    plan_steps,
    require_cases,
    slugify,
    step_label,
    step_target,
    text_value,
    todo_text,
    unresolved_assertion,
    warning,
)
from .escaping import comment_text, kotlin_string, python_string, swift_string, xpath_literal
from .formats import ExportFormat
from .web import python_test_name

logger = logging.getLogger(__name__)


def _unsupported(planned: PlannedStep, what: str, family: str, prefix: str,
                 findings: list[LintFinding]) -> list[str]:
    findings.append(warning(
        "unsupported-on-platform",
        f"Step {planned.number}: {family} では {what} を表現できません",
    ))
    return [f"{prefix} TODO: {what} is not available in {family}: {comment_text(planned.step.action)}"]


def _expected_comment(planned: PlannedStep, prefix: str) -> list[str]:
    if planned.step.expected:
        return [f"{prefix} Expected: {comment_text(planned.step.expected)}"]
    return []


def _pascal(text: str, fallback: str) -> str:
    """識別子に使える PascalCase を返す（数字始まりなら fallback を前置）。"""
    words = slugify(text, fallback=fallback).split("-")
    name = "".join(word[:1].upper() + word[1:] for word in words)
    return name if name[:1].isalpha() else f"{fallback.capitalize()}{name}"


def _method_name(index: int, title: str) -> str:
    """test001LoginWorks 形式のテストメソッド名を返す。"""
    return f"test{index:03d}{_pascal(title, 'case')}"


# ---------------------------------------------------------------------------
# Appium (Python / pytest)
# ---------------------------------------------------------------------------

_ANDROID_KEYCODES: dict[str, int] = {
    "Enter": 66,
    "Tab": 61,
    "Space": 62,
    "Backspace": 67,
    "Delete": 112,
    "Escape": 111,
}

_APPIUM_HEADER = [
    "import os",
    "import time",
    "",
    "import pytest",
    "from appium import webdriver",
    "from appium.options.common import AppiumOptions",
    "from appium.webdriver.common.appiumby import AppiumBy",
    "from selenium.webdriver.support import expected_conditions as EC",
    "from selenium.webdriver.support.ui import WebDriverWait",
]

_COMPARE = {"==": "==", ">": ">", ">=": ">=", "<": "<", "<=": "<="}


def _text_xpath(value: str) -> str:
    lit = xpath_literal(value)
    return f"//*[@text={lit} or @label={lit} or @name={lit} or @content-desc={lit}]"


def _appium_locator(target: Target) -> str:
    value = target.value
    if target.strategy == "accessibility_id":
        return f"(AppiumBy.ACCESSIBILITY_ID, {python_string(value)})"
    if target.strategy == "text":
        return f"(AppiumBy.XPATH, {python_string(_text_xpath(value))})"
    if target.strategy == "id" and value.startswith("//"):
        return f"(AppiumBy.XPATH, {python_string(value)})"
    if target.strategy == "id" and value.startswith("~"):
        return f"(AppiumBy.ACCESSIBILITY_ID, {python_string(value[1:])})"
    return f"(AppiumBy.ID, {python_string(value)})"


def _appium_assertion(assertion: Assertion, planned: PlannedStep,
                      findings: list[LintFinding]) -> list[str]:
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "#")
    target = assertion_target(assertion, planned, "appium", findings)
    value = python_string(text_value(assertion.value))
    kind = assertion.type

    if kind == "url":
        return [f"assert {value} in driver.current_url"]
    if kind == "title":
        return [f"assert driver.title == {value}"]
    if target is None:
        return [f"assert {value} in driver.page_source"]

    loc = _appium_locator(target)
    element = f"driver.find_element(*{loc})"
    if kind == "visible":
        return [f"assert wait.until(EC.visibility_of_element_located({loc})).is_displayed()"]
    if kind == "hidden":
        return [f"assert wait.until(EC.invisibility_of_element_located({loc}))"]
    if kind == "count":
        condition = count_condition(assertion.value)
        if condition is None:
            return unresolved_assertion(assertion, planned, findings, "#")
        op, n = condition
        return [f"assert len(driver.find_elements(*{loc})) {_COMPARE[op]} {n}"]
    if kind == "attribute":
        return [f"assert {element}.get_attribute({python_string(text_value(assertion.attribute))}) == {value}"]
    return [{
        "text": f"assert {value} in {element}.text",
        "exact-text": f"assert {element}.text == {value}",
        "value": f"assert {element}.get_attribute(\"text\") == {value}",
        "enabled": f"assert {element}.is_enabled()",
        "disabled": f"assert not {element}.is_enabled()",
        "checked": f"assert {element}.get_attribute(\"checked\") == \"true\"",
    }[kind]]


def _appium_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("# TODO: confirm the deep link URL")
        return lines + [f"driver.get({python_string(action.url or '/')})"]
    if kind == "hover":
        return _unsupported(planned, "hover", "appium", "#", findings)
    if kind == "wait":
        if action.wait_ms is not None:
            return [f"time.sleep({action.wait_ms / 1000:g})"]
        target = Target("id", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"wait.until(EC.visibility_of_element_located({_appium_locator(target)}))"]
    if kind == "press":
        keycode = _ANDROID_KEYCODES.get(action.value or "Enter")
        if keycode is None:
            return _unsupported(planned, f"key {action.value}", "appium", "#", findings)
        return [f"driver.press_keycode({keycode})"]

    if kind in ("fill", "type", "select", "upload") and action.value is None:
        lines.append(f"# TODO: provide the value for: {comment_text(planned.step.action)}")
    raw = action.value or ""

    if kind == "upload":
        name = raw.replace("\\", "/").rsplit("/", 1)[-1] or "upload.bin"
        return lines + [
            f"driver.push_file({python_string('/sdcard/Download/' + name)}, source_path={python_string(raw)})"
        ]

    loc = _appium_locator(step_target(planned, "appium", findings))
    if kind in ("click", "check", "uncheck"):
        lines.append(f"wait.until(EC.element_to_be_clickable({loc})).click()")
    elif kind in ("fill", "type"):
        lines.append(f"field = wait.until(EC.visibility_of_element_located({loc}))")
        if kind == "fill":
            lines.append("field.clear()")
        lines.append(f"field.send_keys({python_string(raw)})")
    elif kind == "select":
        lines.append(f"driver.find_element(*{loc}).click()")
        lines.append(f"driver.find_element(AppiumBy.XPATH, {python_string(_text_xpath(raw))}).click()")
    return lines


def _appium_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"# {todo_text(planned)}", *_expected_comment(planned, "#")]
    if action.kind == "verify":
        lines = _appium_assertion(action.assertion, planned, findings)
    else:
        lines = _appium_action(planned, findings)
    lines.extend(_expected_comment(planned, "#"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_appium_assertion(planned.step.assertion, planned, findings))
    return lines


def emit_appium(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Appium（Python / pytest）のテストモジュールを生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "appium")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = [
        f"# Suite: {comment_text(suite_name)}",
        *_APPIUM_HEADER,
        "",
        "APPIUM_SERVER = os.environ.get(\"APPIUM_SERVER\", \"http://127.0.0.1:4723\")",
        f"TIMEOUT = {max(1, ctx.settings.timeout_ms // 1000)}",
        "",
        "",
        "@pytest.fixture",
        "def driver():",
        "    options = AppiumOptions()",
        "    options.set_capability(\"platformName\", os.environ.get(\"PLATFORM_NAME\", \"Android\"))",
        "    options.set_capability(\"appium:automationName\", os.environ.get(\"AUTOMATION_NAME\", \"UiAutomator2\"))",
        "    app = os.environ.get(\"APP_PATH\")",
        "    if app:",
        "        options.set_capability(\"appium:app\", app)",
        "    drv = webdriver.Remote(APPIUM_SERVER, options=options)",
        "    yield drv",
        "    drv.quit()",
    ]
    for index, case in enumerate(test_cases, start=1):
        lines.extend(["", ""])
        lines.append(f"def {python_test_name(index, case.title)}(driver):")
        lines.append(f"    {python_string(case.title)}")
        lines.extend(header_comments(case, "    #"))
        lines.append("    wait = WebDriverWait(driver, TIMEOUT)")
        planned_steps = plan_steps(case, findings)
        if not planned_steps:
            lines.append("    # TODO: add steps to this test case")
        for planned in planned_steps:
            lines.append(f"    # {step_label(planned)}")
            lines.extend(f"    {line}" for line in _appium_step(planned, findings))

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.APPIUM, ctx, findings)


# ---------------------------------------------------------------------------
# Maestro (YAML flow)
# ---------------------------------------------------------------------------

_MAESTRO_KEYS: dict[str, str] = {
    "Enter": "Enter",
    "Backspace": "Backspace",
    "Escape": "Back",
    "Tab": "Tab",
}


def _yaml_lines(data: Any) -> list[str]:
    """ruamel.yaml で直列化した YAML 断片を行リストで返す。"""
    yaml = YAML()
    yaml.default_flow_style = False
    yaml.width = 4096
    buffer = io.StringIO()
    yaml.dump(data, buffer)
    return buffer.getvalue().rstrip("\n").split("\n")


def _maestro_selector(target: Target) -> Any:
    if target.strategy == "text":
        return target.value
    return {"id": target.value}


def _maestro_assertion(assertion: Assertion, planned: PlannedStep,
                       findings: list[LintFinding]) -> list[Any]:
    target = assertion_target(assertion, planned, "maestro", findings)
    value = text_value(assertion.value)
    kind = assertion.type

    if kind in ("url", "title", "count", "attribute"):
        return _unsupported(planned, f"{kind} assertion", "maestro", "#", findings)
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "#")
    if target is None:
        return [{"assertVisible": value}]
    selector = _maestro_selector(target)
    if kind == "visible":
        return [{"assertVisible": selector}]
    if kind == "hidden":
        return [{"assertNotVisible": selector}]
    spec = dict(selector) if isinstance(selector, dict) else {"text": selector}
    if kind in ("text", "exact-text", "value"):
        spec["text"] = re.escape(value) if kind != "text" else f".*{re.escape(value)}.*"
    elif kind == "enabled":
        spec["enabled"] = True
    elif kind == "disabled":
        spec["enabled"] = False
    elif kind == "checked":
        spec["checked"] = True
    return [{"assertVisible": spec}]


def _maestro_action(planned: PlannedStep, findings: list[LintFinding],
                    ctx: EmitContext) -> list[Any]:
    action = planned.action
    kind = action.kind

    if kind == "navigate":
        if action.url is None:
            return ["# TODO: confirm the deep link URL", {"openLink": "/"}]
        return [{"openLink": action.url}]
    if kind in ("hover", "upload"):
        return _unsupported(planned, kind, "maestro", "#", findings)
    if kind == "wait":
        if action.wait_ms is not None:
            return [{"waitForAnimationToEnd": {"timeout": action.wait_ms}}]
        target = Target("id", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [{"extendedWaitUntil": {"visible": _maestro_selector(target), "timeout": ctx.settings.timeout_ms}}]
    if kind == "press":
        key = _MAESTRO_KEYS.get(action.value or "Enter")
        if key is None:
            return _unsupported(planned, f"key {action.value}", "maestro", "#", findings)
        return [{"pressKey": key}]

    commands: list[Any] = []
    if kind in ("fill", "type", "select") and action.value is None:
        commands.append(f"# TODO: provide the value for: {comment_text(planned.step.action)}")
    selector = _maestro_selector(step_target(planned, "maestro", findings))
    commands.append({"tapOn": selector})
    if kind == "fill":
        commands.append("eraseText")
    if kind in ("fill", "type"):
        commands.append({"inputText": action.value or ""})
    elif kind == "select":
        commands.append({"tapOn": action.value or ""})
    return commands


def _maestro_step(planned: PlannedStep, findings: list[LintFinding], ctx: EmitContext) -> list[Any]:
    action = planned.action
    if action.is_placeholder:
        return [f"# {todo_text(planned)}", *_expected_comment(planned, "#")]
    if action.kind == "verify":
        commands = _maestro_assertion(action.assertion, planned, findings)
    else:
        commands = _maestro_action(planned, findings, ctx)
    commands.extend(_expected_comment(planned, "#"))
    if planned.step.assertion is not None and action.kind != "verify":
        commands.extend(_maestro_assertion(planned.step.assertion, planned, findings))
    return commands


def emit_maestro(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Maestro のフロー（YAML）を生成する。

    各ケースは clearState 付きの launchApp で始まる。コマンドは ruamel.yaml で直列化し、
    Step N: や TODO はコメント行として間に挟む。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "maestro")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = _yaml_lines({"appId": "${APP_ID}", "name": suite_name, "tags": ["tce"]})
    lines.append("---")
    for case in test_cases:
        lines.append(f"# Test case: {comment_text(case.title)}")
        lines.extend(header_comments(case, "#"))
        lines.extend(_yaml_lines([{"launchApp": {"clearState": True}}]))
        planned_steps = plan_steps(case, findings)
        if not planned_steps:
            lines.append("# TODO: add steps to this test case")
        for planned in planned_steps:
            lines.append(f"# {step_label(planned)}")
            for command in _maestro_step(planned, findings, ctx):
                if isinstance(command, str) and command.startswith("#"):
                    lines.append(command)
                else:
                    lines.extend(_yaml_lines([command]))

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.MAESTRO, ctx, findings)


# ---------------------------------------------------------------------------
# XCUITest (Swift)
# ---------------------------------------------------------------------------

_XC_QUERIES: dict[str, str] = {
    "button": "buttons",
    "link": "links",
    "checkbox": "switches",
    "radio": "radioButtons",
    "tab": "tabBars.buttons",
    "menuitem": "menuItems",
    "option": "buttons",
    "combobox": "pickers",
}

_XC_KEYS: dict[str, str] = {
    "Enter": "Return",
    "Space": "space",
    "Backspace": "delete",
}


def _xc_element(target: Target) -> str:
    value = swift_string(target.value)
    if target.strategy == "role":
        return f"app.{_XC_QUERIES.get(target.role or '', 'buttons')}[{value}]"
    if target.strategy == "label":
        return f"app.textFields[{value}]"
    if target.strategy == "text":
        return f"app.descendants(matching: .any).matching(NSPredicate(format: \"label == %@\", {value})).firstMatch"
    return f"app.descendants(matching: .any)[{value}]"


def _xc_assertion(assertion: Assertion, planned: PlannedStep,
                  findings: list[LintFinding]) -> list[str]:
    target = assertion_target(assertion, planned, "xcuitest", findings)
    value = swift_string(text_value(assertion.value))
    kind = assertion.type

    if kind in ("url", "title", "attribute"):
        return _unsupported(planned, f"{kind} assertion", "xcuitest", "//", findings)
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "//")
    if target is None:
        return [
            "XCTAssertTrue(app.staticTexts.containing(NSPredicate(format: \"label CONTAINS %@\", "
            f"{value})).firstMatch.waitForExistence(timeout: timeout))"
        ]
    element = _xc_element(target)
    if kind == "count":
        condition = count_condition(assertion.value)
        if condition is None:
            return unresolved_assertion(assertion, planned, findings, "//")
        op, n = condition
        query = f"app.descendants(matching: .any).matching(identifier: {swift_string(target.value)})"
        return [f"XCTAssertTrue({query}.count {_COMPARE[op]} {n})"]
    return [{
        "visible": f"XCTAssertTrue({element}.waitForExistence(timeout: timeout))",
        "hidden": f"XCTAssertFalse({element}.exists)",
        "text": f"XCTAssertTrue({element}.label.contains({value}))",
        "exact-text": f"XCTAssertEqual({element}.label, {value})",
        "value": f"XCTAssertEqual({element}.value as? String, {value})",
        "enabled": f"XCTAssertTrue({element}.isEnabled)",
        "disabled": f"XCTAssertFalse({element}.isEnabled)",
        "checked": f"XCTAssertEqual({element}.value as? String, \"1\")",
    }[kind]]


def _xc_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("// TODO: confirm the deep link URL")
        return lines + [f"app.open(URL(string: {swift_string(action.url or '/')})!)"]
    if kind in ("hover", "upload"):
        return _unsupported(planned, kind, "xcuitest", "//", findings)
    if kind == "wait":
        if action.wait_ms is not None:
            return [f"Thread.sleep(forTimeInterval: {action.wait_ms / 1000:.3f})"]
        target = Target("id", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"XCTAssertTrue({_xc_element(target)}.waitForExistence(timeout: timeout))"]
    if kind == "press":
        key = _XC_KEYS.get(action.value or "Enter")
        if key is None:
            return _unsupported(planned, f"key {action.value}", "xcuitest", "//", findings)
        return [f"app.keyboards.buttons[{swift_string(key)}].tap()"]

    if kind in ("fill", "type", "select") and action.value is None:
        lines.append(f"// TODO: provide the value for: {comment_text(planned.step.action)}")
    raw = swift_string(action.value or "")
    element = _xc_element(step_target(planned, "xcuitest", findings))
    lines.append(f"{element}.tap()")
    if kind in ("fill", "type"):
        lines.append(f"{element}.typeText({raw})")
    elif kind == "select":
        lines.append(f"app.pickerWheels.element.adjust(toPickerWheelValue: {raw})")
    return lines


def _xc_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"// {todo_text(planned)}", *_expected_comment(planned, "//")]
    if action.kind == "verify":
        lines = _xc_assertion(action.assertion, planned, findings)
    else:
        lines = _xc_action(planned, findings)
    lines.extend(_expected_comment(planned, "//"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_xc_assertion(planned.step.assertion, planned, findings))
    return lines


def emit_xcuitest(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """XCUITest（Swift）の UI テストクラスを生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "xcuitest")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = [
        "import XCTest",
        "",
        f"// Suite: {comment_text(suite_name)}",
        f"final class {_pascal(suite_name, 'suite')}UITests: XCTestCase {{",
        "    var app: XCUIApplication!",
        f"    let timeout: TimeInterval = {max(1, ctx.settings.timeout_ms // 1000)}",
        "",
        "    override func setUpWithError() throws {",
        "        continueAfterFailure = false",
        "        app = XCUIApplication()",
        "        app.launch()",
        "    }",
    ]
    for index, case in enumerate(test_cases, start=1):
        lines.append("")
        lines.append(f"    // {comment_text(case.title)}")
        lines.append(f"    func {_method_name(index, case.title)}() throws {{")
        lines.extend(header_comments(case, "        //"))
        planned_steps = plan_steps(case, findings)
        if not planned_steps:
            lines.append("        // TODO: add steps to this test case")
        for planned in planned_steps:
            lines.append(f"        // {step_label(planned)}")
            lines.extend(f"        {line}" for line in _xc_step(planned, findings))
        lines.append("    }")
    lines.append("}")

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.XCUITEST, ctx, findings)


# ---------------------------------------------------------------------------
# Espresso (Kotlin)
# ---------------------------------------------------------------------------

_ESPRESSO_HEADER = [
    "import android.app.Activity",
    "import android.content.Intent",
    "import android.net.Uri",
    "import android.view.KeyEvent",
    "import androidx.test.core.app.ActivityScenario",
    "import androidx.test.espresso.Espresso.onView",
    "import androidx.test.espresso.Espresso.pressBack",
    "import androidx.test.espresso.action.ViewActions.clearText",
    "import androidx.test.espresso.action.ViewActions.click",
    "import androidx.test.espresso.action.ViewActions.closeSoftKeyboard",
    "import androidx.test.espresso.action.ViewActions.pressKey",
    "import androidx.test.espresso.action.ViewActions.typeText",
    "import androidx.test.espresso.assertion.ViewAssertions.matches",
    "import androidx.test.espresso.matcher.ViewMatchers.isChecked",
    "import androidx.test.espresso.matcher.ViewMatchers.isDisplayed",
    "import androidx.test.espresso.matcher.ViewMatchers.isEnabled",
    "import androidx.test.espresso.matcher.ViewMatchers.isRoot",
    "import androidx.test.espresso.matcher.ViewMatchers.withHint",
    "import androidx.test.espresso.matcher.ViewMatchers.withResourceName",
    "import androidx.test.espresso.matcher.ViewMatchers.withText",
    "import androidx.test.ext.junit.runners.AndroidJUnit4",
    "import org.hamcrest.Matchers.containsString",
    "import org.hamcrest.Matchers.not",
    "import org.junit.Test",
    "import org.junit.runner.RunWith",
]

_ESPRESSO_KEYCODES: dict[str, str] = {
    "Enter": "KeyEvent.KEYCODE_ENTER",
    "Tab": "KeyEvent.KEYCODE_TAB",
    "Space": "KeyEvent.KEYCODE_SPACE",
    "Backspace": "KeyEvent.KEYCODE_DEL",
    "Delete": "KeyEvent.KEYCODE_FORWARD_DEL",
}


def _espresso_matcher(target: Target, field: bool = False) -> str:
    value = kotlin_string(target.value)
    if target.strategy == "text":
        return f"withHint({value})" if field and target.source == "semantic" else f"withText({value})"
    return f"withResourceName({value})"


def _espresso_assertion(assertion: Assertion, planned: PlannedStep,
                        findings: list[LintFinding]) -> list[str]:
    target = assertion_target(assertion, planned, "espresso", findings)
    value = kotlin_string(text_value(assertion.value))
    kind = assertion.type

    if kind in ("url", "title", "count", "attribute"):
        return _unsupported(planned, f"{kind} assertion", "espresso", "//", findings)
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "//")
    if target is None:
        return [f"onView(withText(containsString({value}))).check(matches(isDisplayed()))"]
    view = f"onView({_espresso_matcher(target)})"
    matcher = {
        "visible": "isDisplayed()",
        "hidden": "not(isDisplayed())",
        "text": f"withText(containsString({value}))",
        "exact-text": f"withText({value})",
        "value": f"withText({value})",
        "enabled": "isEnabled()",
        "disabled": "not(isEnabled())",
        "checked": "isChecked()",
    }[kind]
    return [f"{view}.check(matches({matcher}))"]


def _espresso_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("// TODO: confirm the deep link URL")
        url = kotlin_string(action.url or "/")
        return lines + [f"ActivityScenario.launch<Activity>(Intent(Intent.ACTION_VIEW, Uri.parse({url})))"]
    if kind in ("hover", "upload"):
        return _unsupported(planned, kind, "espresso", "//", findings)
    if kind == "wait":
        if action.wait_ms is not None:
            return [f"Thread.sleep({action.wait_ms}L)"]
        target = Target("id", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"onView({_espresso_matcher(target)}).check(matches(isDisplayed()))"]
    if kind == "press":
        if (action.value or "Enter") == "Escape":
            return ["pressBack()"]
        keycode = _ESPRESSO_KEYCODES.get(action.value or "Enter")
        if keycode is None:
            return _unsupported(planned, f"key {action.value}", "espresso", "//", findings)
        return [f"onView(isRoot()).perform(pressKey({keycode}))"]

    if kind in ("fill", "type", "select") and action.value is None:
        lines.append(f"// TODO: provide the value for: {comment_text(planned.step.action)}")
    raw = kotlin_string(action.value or "")
    target = step_target(planned, "espresso", findings)
    view = f"onView({_espresso_matcher(target, field=kind in ('fill', 'type'))})"
    if kind == "fill":
        lines.append(f"{view}.perform(clearText(), typeText({raw}), closeSoftKeyboard())")
    elif kind == "type":
        lines.append(f"{view}.perform(typeText({raw}), closeSoftKeyboard())")
    elif kind == "select":
        lines.append(f"{view}.perform(click())")
        lines.append(f"onView(withText({raw})).perform(click())")
    else:
        lines.append(f"{view}.perform(click())")
    return lines


def _espresso_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"// {todo_text(planned)}", *_expected_comment(planned, "//")]
    if action.kind == "verify":
        lines = _espresso_assertion(action.assertion, planned, findings)
    else:
        lines = _espresso_action(planned, findings)
    lines.extend(_expected_comment(planned, "//"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_espresso_assertion(planned.step.assertion, planned, findings))
    return lines


def emit_espresso(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Espresso（Kotlin / JUnit4）の計装テストクラスを生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "espresso")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = [
        "package com.example.tce",
        "",
        *_ESPRESSO_HEADER,
        "",
        f"// Suite: {comment_text(suite_name)}",
        "@RunWith(AndroidJUnit4::class)",
        f"class {_pascal(suite_name, 'suite')}Test {{",
    ]
    for index, case in enumerate(test_cases, start=1):
        lines.append("")
        lines.append(f"    // {comment_text(case.title)}")
        lines.append("    @Test")
        lines.append(f"    fun {_method_name(index, case.title)}() {{")
        lines.extend(header_comments(case, "        //"))
        planned_steps = plan_steps(case, findings)
        if not planned_steps:
            lines.append("        // TODO: add steps to this test case")
        for planned in planned_steps:
            lines.append(f"        // {step_label(planned)}")
            lines.extend(f"        {line}" for line in _espresso_step(planned, findings))
        lines.append("    }")
    lines.append("}")

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.ESPRESSO, ctx, findings)
