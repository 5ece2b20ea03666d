"""
Web E2E エミッター — Playwright / Cypress / Selenium のテストスクリプト生成

各ステップを分類器とターゲット解決に通し、フレームワークの文に変換する。
ステップは ordered_steps() 順に「Step N:」コメント付きで必ず1グループずつ出力し、
推定できないステップも TODO コメントとして残す（省略しない）。
"""

from __future__ import annotations

import logging
from typing import Optional

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
)
from .escaping import comment_text, js_regex_body, js_string, python_string, xpath_literal
from .formats import ExportFormat

logger = logging.getLogger(__name__)


def _expected_comment(planned: PlannedStep, prefix: str) -> list[str]:
    if planned.step.expected:
        return [f"{prefix} Expected: {comment_text(planned.step.expected)}"]
    return []


# ---------------------------------------------------------------------------
# Playwright
# ---------------------------------------------------------------------------

_PW_COUNT_MATCHERS: dict[str, str] = {
    ">": "toBeGreaterThan",
    ">=": "toBeGreaterThanOrEqual",
    "<": "toBeLessThan",
    "<=": "toBeLessThanOrEqual",
}


def _pw_locator(target: Target) -> str:
    if target.strategy == "role":
        return f"page.getByRole({js_string(target.role)}, {{ name: {js_string(target.value)} }})"
    if target.strategy == "label":
        return f"page.getByLabel({js_string(target.value)})"
    if target.strategy == "text":
        return f"page.getByText({js_string(target.value)})"
    if target.strategy == "xpath":
        return f"page.locator({js_string('xpath=' + target.value)})"
    return f"page.locator({js_string(target.value)})"


def _pw_url_matcher(value: str) -> str:
    if value.startswith("/"):
        return js_string(f"**{value}")
    if "://" in value:
        return js_string(value)
    return f"/{js_regex_body(value)}/"


def _pw_assertion(
    assertion: Assertion, planned: PlannedStep, findings: list[LintFinding],
) -> list[str]:
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "//")
    target = assertion_target(assertion, planned, "playwright", findings)
    loc = _pw_locator(target) if target is not None else "page.locator('body')"
    value = text_value(assertion.value)
    kind = assertion.type

    if kind == "url":
        return [f"await expect(page).toHaveURL({_pw_url_matcher(value)});"]
    if kind == "title":
        return [f"await expect(page).toHaveTitle({js_string(value)});"]
    if kind == "count":
        condition = count_condition(assertion.value)
        if condition is None:
            return unresolved_assertion(assertion, planned, findings, "//")
        op, n = condition
        if op == "==":
            return [f"await expect({loc}).toHaveCount({n});"]
        return [f"expect(await {loc}.count()).{_PW_COUNT_MATCHERS[op]}({n});"]
    if kind == "attribute":
        return [
            f"await expect({loc}).toHaveAttribute("
            f"{js_string(text_value(assertion.attribute))}, {js_string(value)});"
        ]
    matcher = {
        "visible": "toBeVisible()",
        "hidden": "toBeHidden()",
        "text": f"toContainText({js_string(value)})",
        "exact-text": f"toHaveText({js_string(value)})",
        "value": f"toHaveValue({js_string(value)})",
        "enabled": "toBeEnabled()",
        "disabled": "toBeDisabled()",
        "checked": "toBeChecked()",
    }[kind]
    return [f"await expect({loc}).{matcher};"]


def _pw_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("// TODO: confirm the destination URL")
        lines.append(f"await page.goto({js_string(action.url or '/')});")
        return lines

    if kind == "wait":
        if action.wait_ms is not None:
            return [f"await page.waitForTimeout({action.wait_ms});"]
        target = Target("css", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"await {_pw_locator(target)}.waitFor();"]

    if kind == "press" and not planned.step.selector:
        if action.value is None:
            lines.append("// TODO: name the key to press")
        return lines + [f"await page.keyboard.press({js_string(action.value or 'Enter')});"]

    loc = _pw_locator(step_target(planned, "playwright", findings))

    if kind in ("fill", "type", "select", "upload", "press") and action.value is None:
        lines.append(f"// TODO: provide the value for: {comment_text(planned.step.action)}")
    value = js_string(action.value or "")

    statement = {
        "click": f"await {loc}.click();",
        "hover": f"await {loc}.hover();",
        "fill": f"await {loc}.fill({value});",
        "type": f"await {loc}.pressSequentially({value});",
        "check": f"await {loc}.check();",
        "uncheck": f"await {loc}.uncheck();",
        "select": f"await {loc}.selectOption({value});",
        "upload": f"await {loc}.setInputFiles({value});",
        "press": f"await {loc}.press({js_string(action.value or 'Enter')});",
    }[kind]
    lines.append(statement)
    return lines


def _pw_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"// {todo_text(planned)}", *_expected_comment(planned, "//")]

    if action.kind == "verify":
        lines = _pw_assertion(action.assertion, planned, findings)
    else:
        lines = _pw_action(planned, findings)
    lines.extend(_expected_comment(planned, "//"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_pw_assertion(planned.step.assertion, planned, findings))
    return lines


def _pw_case(case: TestCase, findings: list[LintFinding]) -> list[str]:
    lines = [f"  test({js_string(case.title)}, async ({{ page }}) => {{"]
    lines.extend(header_comments(case, "    //"))
    planned_steps = plan_steps(case, findings)
    if not planned_steps:
        lines.append("    // TODO: add steps to this test case")
    for planned in planned_steps:
        lines.append(f"    // {step_label(planned)}")
        lines.extend(f"    {line}" for line in _pw_step(planned, findings))
    lines.append("  });")
    return lines


def emit_playwright(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Playwright Test（TypeScript）のスペックファイルを生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "playwright")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = [
        "import { test, expect } from '@playwright/test';",
        "",
        f"test.describe({js_string(suite_name)}, () => {{",
        "  test.beforeEach(async ({ page }) => {",
        f"    test.setTimeout({ctx.settings.timeout_ms});",
        "  });",
    ]
    for case in test_cases:
        lines.append("")
        lines.extend(_pw_case(case, findings))
    lines.append("});")

    logger.debug("playwright: %d 件のケースを出力", len(test_cases))
    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.PLAYWRIGHT, ctx, findings)


# ---------------------------------------------------------------------------
# Cypress
# ---------------------------------------------------------------------------

_CY_ROLE_TAGS: dict[str, str] = {
    "button": "button",
    "link": "a",
    "option": "option",
}

_CY_KEYS: dict[str, str] = {
    "Enter": "{enter}",
    "Tab": "{tab}",
    "Escape": "{esc}",
    "Backspace": "{backspace}",
    "Delete": "{del}",
    "Space": " ",
}

_CY_COUNT_CHAINERS: dict[str, str] = {
    "==": "have.length",
    ">": "have.length.greaterThan",
    ">=": "have.length.at.least",
    "<": "have.length.lessThan",
    "<=": "have.length.at.most",
}


def _cy_typed(value: str) -> str:
    """cy.type() の特殊キー構文 {...} を無効化した文字列リテラルを返す。"""
    return js_string(value.replace("{", "{{}"))


def _cy_subject(target: Target) -> str:
    if target.strategy == "text":
        tag = _CY_ROLE_TAGS.get(target.role or "")
        if tag:
            return f"cy.contains({js_string(tag)}, {js_string(target.value)})"
        return f"cy.contains({js_string(target.value)})"
    return f"cy.get({js_string(target.value)})"


def _cy_assertion(
    assertion: Assertion, planned: PlannedStep, findings: list[LintFinding],
) -> list[str]:
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "//")
    target = assertion_target(assertion, planned, "cypress", findings)
    subject = _cy_subject(target) if target is not None else "cy.get('body')"
    value = js_string(text_value(assertion.value))
    kind = assertion.type

    if kind == "url":
        return [f"cy.url().should('include', {value});"]
    if kind == "title":
        return [f"cy.title().should('eq', {value});"]
    if kind == "count":
        condition = count_condition(assertion.value)
        if condition is None:
            return unresolved_assertion(assertion, planned, findings, "//")
        op, n = condition
        return [f"{subject}.should({js_string(_CY_COUNT_CHAINERS[op])}, {n});"]
    if kind == "attribute":
        return [f"{subject}.should('have.attr', {js_string(text_value(assertion.attribute))}, {value});"]
    chainer = {
        "visible": "'be.visible'",
        "hidden": "'not.be.visible'",
        "text": f"'contain', {value}",
        "exact-text": f"'have.text', {value}",
        "value": f"'have.value', {value}",
        "enabled": "'be.enabled'",
        "disabled": "'be.disabled'",
        "checked": "'be.checked'",
    }[kind]
    return [f"{subject}.should({chainer});"]


def _cy_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("// TODO: confirm the destination URL")
        return lines + [f"cy.visit({js_string(action.url or '/')});"]

    if kind == "wait":
        if action.wait_ms is not None:
            return [f"cy.wait({action.wait_ms});"]
        target = Target("css", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"{_cy_subject(target)}.should('be.visible');"]

    if kind == "press" and not planned.step.selector:
        if action.value is None:
            lines.append("// TODO: name the key to press")
        key = _CY_KEYS.get(action.value or "Enter", f"{{{(action.value or 'enter').lower()}}}")
        return lines + [f"cy.focused().type({js_string(key)});"]

    subject = _cy_subject(step_target(planned, "cypress", findings))

    if kind in ("fill", "type", "select", "upload", "press") and action.value is None:
        lines.append(f"// TODO: provide the value for: {comment_text(planned.step.action)}")
    raw = action.value or ""

    statement = {
        "click": f"{subject}.click();",
        "hover": f"{subject}.trigger('mouseover');",
        "fill": f"{subject}.clear().type({_cy_typed(raw)});",
        "type": f"{subject}.type({_cy_typed(raw)});",
        "check": f"{subject}.check();",
        "uncheck": f"{subject}.uncheck();",
        "select": f"{subject}.select({js_string(raw)});",
        "upload": f"{subject}.selectFile({js_string(raw)});",
        "press": f"{subject}.type({js_string(_CY_KEYS.get(raw or 'Enter', '{enter}'))});",
    }[kind]
    lines.append(statement)
    return lines


def _cy_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"// {todo_text(planned)}", *_expected_comment(planned, "//")]

    if action.kind == "verify":
        lines = _cy_assertion(action.assertion, planned, findings)
    else:
        lines = _cy_action(planned, findings)
    lines.extend(_expected_comment(planned, "//"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_cy_assertion(planned.step.assertion, planned, findings))
    return lines


def emit_cypress(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Cypress のスペックファイル（JavaScript）を生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "cypress")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []

    lines = [
        "/// <reference types=\"cypress\" />",
        "",
        f"describe({js_string(suite_name)}, () => {{",
        "  beforeEach(() => {",
        f"    Cypress.config('defaultCommandTimeout', {ctx.settings.timeout_ms});",
        "  });",
    ]
    for case in test_cases:
        lines.append("")
        lines.append(f"  it({js_string(case.title)}, () => {{")
        lines.extend(header_comments(case, "    //"))
        planned_steps = plan_steps(case, findings)
        if not planned_steps:
            lines.append("    // TODO: add steps to this test case")
        for planned in planned_steps:
            lines.append(f"    // {step_label(planned)}")
            lines.extend(f"    {line}" for line in _cy_step(planned, findings))
        lines.append("  });")
    lines.append("});")

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.CYPRESS, ctx, findings)


# ---------------------------------------------------------------------------
# Selenium (Python / pytest)
# ---------------------------------------------------------------------------

_SE_KEYS: dict[str, str] = {
    "Enter": "Keys.ENTER",
    "Tab": "Keys.TAB",
    "Escape": "Keys.ESCAPE",
    "Space": "Keys.SPACE",
    "Backspace": "Keys.BACK_SPACE",
    "Delete": "Keys.DELETE",
}

_SE_COMPARE: dict[str, str] = {"==": "==", ">": ">", ">=": ">=", "<": "<", "<=": "<="}

_SELENIUM_HEADER = [
    "import os",
    "import time",
    "",
    "import pytest",
    "from selenium import webdriver",
    "from selenium.webdriver.common.action_chains import ActionChains",
    "from selenium.webdriver.common.by import By",
    "from selenium.webdriver.common.keys import Keys",
    "from selenium.webdriver.support import expected_conditions as EC",
    "from selenium.webdriver.support.ui import Select, WebDriverWait",
]


def _se_locator(target: Target) -> str:
    if target.strategy == "xpath":
        return f"(By.XPATH, {python_string(target.value)})"
    if target.strategy == "text":
        xpath = f"//*[contains(normalize-space(text()), {xpath_literal(target.value)})]"
        return f"(By.XPATH, {python_string(xpath)})"
    if target.strategy == "id":
        return f"(By.ID, {python_string(target.value)})"
    return f"(By.CSS_SELECTOR, {python_string(target.value)})"


def _se_assertion(
    assertion: Assertion, planned: PlannedStep, findings: list[LintFinding],
) -> list[str]:
    if missing_value(assertion):
        return unresolved_assertion(assertion, planned, findings, "#")
    target = assertion_target(assertion, planned, "selenium", findings)
    loc = _se_locator(target) if target is not None else "(By.TAG_NAME, \"body\")"
    value = python_string(text_value(assertion.value))
    kind = assertion.type

    if kind == "url":
        return [f"wait.until(EC.url_contains({value}))"]
    if kind == "title":
        return [f"assert driver.title == {value}"]
    if kind == "visible":
        return [f"assert wait.until(EC.visibility_of_element_located({loc})).is_displayed()"]
    if kind == "hidden":
        return [f"assert wait.until(EC.invisibility_of_element_located({loc}))"]
    if kind == "count":
        condition = count_condition(assertion.value)
        if condition is None:
            return unresolved_assertion(assertion, planned, findings, "#")
        op, n = condition
        return [f"assert len(driver.find_elements(*{loc})) {_SE_COMPARE[op]} {n}"]
    element = f"driver.find_element(*{loc})"
    if kind == "attribute":
        attr = python_string(text_value(assertion.attribute))
        return [f"assert {element}.get_attribute({attr}) == {value}"]
    return [{
        "text": f"assert {value} in {element}.text",
        "exact-text": f"assert {element}.text.strip() == {value}",
        "value": f"assert {element}.get_attribute(\"value\") == {value}",
        "enabled": f"assert {element}.is_enabled()",
        "disabled": f"assert not {element}.is_enabled()",
        "checked": f"assert {element}.is_selected()",
    }[kind]]


def _se_action(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    kind = action.kind
    lines: list[str] = []

    if kind == "navigate":
        if action.url is None:
            lines.append("# TODO: confirm the destination URL")
        url = action.url or "/"
        if "://" in url:
            return lines + [f"driver.get({python_string(url)})"]
        return lines + [f"driver.get(BASE_URL + {python_string(url)})"]

    if kind == "wait":
        if action.wait_ms is not None:
            return [f"time.sleep({action.wait_ms / 1000:g})"]
        target = Target("css", planned.step.selector) if planned.step.selector else Target("text", action.wait_for or "")
        return [f"wait.until(EC.visibility_of_element_located({_se_locator(target)}))"]

    if kind in ("fill", "type", "select", "upload", "press") and action.value is None:
        lines.append(f"# TODO: provide the value for: {comment_text(planned.step.action)}")
    raw = action.value or ""
    key = _SE_KEYS.get(raw or "Enter", python_string(raw))

    if kind == "press" and not planned.step.selector:
        return lines + [f"driver.switch_to.active_element.send_keys({key})"]

    loc = _se_locator(step_target(planned, "selenium", findings))

    if kind == "click":
        lines.append(f"wait.until(EC.element_to_be_clickable({loc})).click()")
    elif kind == "hover":
        lines.append(f"ActionChains(driver).move_to_element(driver.find_element(*{loc})).perform()")
    elif kind in ("fill", "type"):
        lines.append(f"field = wait.until(EC.visibility_of_element_located({loc}))")
        if kind == "fill":
            lines.append("field.clear()")
        lines.append(f"field.send_keys({python_string(raw)})")
    elif kind in ("check", "uncheck"):
        negate = "not " if kind == "check" else ""
        lines.append(f"checkbox = driver.find_element(*{loc})")
        lines.append(f"if {negate}checkbox.is_selected():")
        lines.append("    checkbox.click()")
    elif kind == "select":
        lines.append(f"Select(driver.find_element(*{loc})).select_by_visible_text({python_string(raw)})")
    elif kind == "upload":
        lines.append(f"driver.find_element(*{loc}).send_keys(os.path.abspath({python_string(raw)}))")
    elif kind == "press":
        lines.append(f"driver.find_element(*{loc}).send_keys({key})")
    return lines


def _se_step(planned: PlannedStep, findings: list[LintFinding]) -> list[str]:
    action = planned.action
    if action.is_placeholder:
        return [f"# {todo_text(planned)}", *_expected_comment(planned, "#")]

    if action.kind == "verify":
        lines = _se_assertion(action.assertion, planned, findings)
    else:
        lines = _se_action(planned, findings)
    lines.extend(_expected_comment(planned, "#"))
    if planned.step.assertion is not None and action.kind != "verify":
        lines.extend(_se_assertion(planned.step.assertion, planned, findings))
    return lines


def python_test_name(index: int, title: str) -> str:
    """pytest が収集できる test_NNN_<slug> 形式の関数名を返す。"""
    return f"test_{index:03d}_{slugify(title, fallback='case', max_length=50).replace('-', '_')}"


def emit_selenium(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Selenium WebDriver（Python / pytest）のテストモジュールを生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "selenium")
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    timeout = max(1, ctx.settings.timeout_ms // 1000)

    lines = [
        f"# Suite: {comment_text(suite_name)}",
        *_SELENIUM_HEADER,
        "",
        f"BASE_URL = os.environ.get(\"BASE_URL\", {python_string(ctx.settings.base_url)})",
        f"TIMEOUT = {timeout}",
        "",
        "",
        "@pytest.fixture",
        "def driver():",
        "    options = webdriver.ChromeOptions()",
        "    if os.environ.get(\"HEADLESS\", \"true\").lower() == \"true\":",
        "        options.add_argument(\"--headless=new\")",
        "    drv = webdriver.Chrome(options=options)",
        "    drv.implicitly_wait(5)",
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
            lines.extend(f"    {line}" for line in _se_step(planned, findings))

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.SELENIUM, ctx, findings)
