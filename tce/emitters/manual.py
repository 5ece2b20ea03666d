"""
手動テスト向けエミッター — Gherkin / Cucumber / TestRail XML / Jira CSV / JSON / Markdown

ステップの自由記述をそのまま文書化する形式群。分類器は使わず、ケースが0件でも
各形式として妥当な（空の）文書を返す。
"""

from __future__ import annotations

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from collections import Counter
from typing import Any, Optional

from tce.ir.schema import TestCase

from .base import EmitContext, EmittedArtifact, build_artifact, ensure_context, slugify
from .escaping import gherkin_text
from .formats import ExportFormat

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Gherkin / Cucumber
# ---------------------------------------------------------------------------

def _scenario_body(case: TestCase, include_preconditions: bool = True) -> list[str]:
    """Given / When / Then の行を返す。

    事前条件があれば Given にし、無ければ最初のステップを Given にする。
    """
    lines: list[str] = []
    preconditions = case.preconditions if include_preconditions else []
    for index, condition in enumerate(preconditions):
        keyword = "Given" if index == 0 else "And"
        lines.append(f"    {keyword} {gherkin_text(condition)}")

    for index, step in enumerate(case.ordered_steps()):
        keyword = "Given" if index == 0 and not preconditions else "When"
        lines.append(f"    {keyword} {gherkin_text(step.action or 'the step is performed')}")
        if step.expected:
            lines.append(f"    Then {gherkin_text(step.expected)}")

    for index, result in enumerate(case.expected_results):
        keyword = "Then" if index == 0 else "And"
        lines.append(f"    {keyword} {gherkin_text(result)}")
    return lines


def emit_gherkin(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """素朴な Gherkin の Feature ファイルを生成する。"""
    ctx = ensure_context(context)
    lines = [f"Feature: {gherkin_text(suite_name)}"]
    for case in test_cases:
        lines.append("")
        lines.append(f"  Scenario: {gherkin_text(case.title)}")
        lines.extend(_scenario_body(case))
    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.GHERKIN, ctx)


def _tag(text: str) -> str:
    return "@" + slugify(text, fallback="tag")


def _case_tags(case: TestCase) -> list[str]:
    tags = [_tag(f"priority-{case.priority}")]
    if case.test_type:
        tags.append(_tag(case.test_type))
    tags.extend(_tag(label) for label in case.flag_labels)
    tags.extend(_tag(tag) for tag in case.tags)
    return list(dict.fromkeys(tags))


def emit_cucumber(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """タグ付きの Cucumber Feature ファイルを生成する。

    全ケースの事前条件が同一なら Background にまとめる。
    """
    ctx = ensure_context(context)
    name = gherkin_text(suite_name)
    lines = [
        f"Feature: {name}",
        "  As a QA engineer",
        f"  I want to test {name.lower()}",
        "  So that I can ensure quality",
    ]

    shared = {tuple(case.preconditions) for case in test_cases}
    background = next(iter(shared)) if len(shared) == 1 else ()
    if background:
        lines.append("")
        lines.append("  Background:")
        for index, condition in enumerate(background):
            lines.append(f"    {'Given' if index == 0 else 'And'} {gherkin_text(condition)}")

    for case in test_cases:
        lines.append("")
        lines.append("  " + " ".join(_case_tags(case)))
        lines.append(f"  Scenario: {gherkin_text(case.title)}")
        if case.id:
            lines.append(f"    # id: {gherkin_text(case.id)}")
        if case.description:
            lines.append(f"    # {gherkin_text(case.description)}")
        lines.extend(_scenario_body(case, include_preconditions=not background))
    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.CUCUMBER, ctx)


# ---------------------------------------------------------------------------
# TestRail
# ---------------------------------------------------------------------------

def _automation_type(case: TestCase) -> str:
    if case.is_negative_test:
        return "Negative"
    if case.is_security_test:
        return "Security"
    if case.is_boundary_test:
        return "Boundary"
    return "Functional"


def _text(parent: ET.Element, tag: str, value: Any = "") -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = "" if value is None else str(value)
    return element


def emit_testrail(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """TestRail の XML インポート形式を xml.etree で生成する。"""
    ctx = ensure_context(context)
    root = ET.Element("suite")
    _text(root, "name", suite_name)
    sections = ET.SubElement(root, "sections")
    section = ET.SubElement(sections, "section")
    _text(section, "name", suite_name)
    cases = ET.SubElement(section, "cases")

    for case in test_cases:
        node = ET.SubElement(cases, "case")
        _text(node, "id", case.id)
        _text(node, "title", case.title)
        _text(node, "template", "Test Case (Steps)")
        _text(node, "type", case.test_type)
        _text(node, "priority", case.priority)
        _text(node, "estimate")
        _text(node, "references", ", ".join(case.tags))
        custom = ET.SubElement(node, "custom")
        _text(custom, "preconds", "\n".join(case.preconditions))
        steps = ET.SubElement(custom, "steps_separated")
        for step in case.ordered_steps():
            item = ET.SubElement(steps, "step")
            _text(item, "index", step.step_number)
            _text(item, "content", step.action)
            _text(item, "expected", step.expected)
        _text(custom, "expected", "\n".join(case.expected_results))
        _text(custom, "automation_type", _automation_type(case))

    ET.indent(root, space="  ")
    content = '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"
    return build_artifact(content, suite_name, ExportFormat.TESTRAIL, ctx)


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------

_JIRA_COLUMNS = [
    "Test Case Key",
    "Summary",
    "Priority",
    "Component",
    "Labels",
    "Objective",
    "Precondition",
    "Test Step",
    "Test Data",
    "Expected Result",
    "Test Type",
]


def emit_jira(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Jira / Xray の CSV インポート形式を csv モジュールで生成する。

    ステップは "N. action" を " | " で連結して1セルに収める。
    """
    ctx = ensure_context(context)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(_JIRA_COLUMNS)

    for index, case in enumerate(test_cases, start=1):
        steps = case.ordered_steps()
        writer.writerow([
            f"TC-{index:04d}",
            case.title,
            case.priority.upper(),
            case.test_type,
            ", ".join([*case.flag_labels, *case.tags]),
            case.description,
            "\n".join(case.preconditions),
            " | ".join(f"{step.step_number}. {step.action}" for step in steps),
            " | ".join(step.input_value or "" for step in steps if step.input_value),
            " | ".join(f"{step.step_number}. {step.expected}" for step in steps if step.expected),
            case.test_type,
        ])
    return build_artifact(buffer.getvalue(), suite_name, ExportFormat.JIRA, ctx)


# ---------------------------------------------------------------------------
# JSON / Markdown
# ---------------------------------------------------------------------------

def _case_record(case: TestCase) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": case.id,
        "title": case.title,
        "description": case.description,
        "type": case.test_type,
        "priority": case.priority,
        "preconditions": case.preconditions,
        "steps": [step.model_dump(mode="json", exclude_none=True) for step in case.ordered_steps()],
        "expected_results": case.expected_results,
        "flags": {
            "is_edge_case": case.is_edge_case,
            "is_negative_test": case.is_negative_test,
            "is_security_test": case.is_security_test,
            "is_boundary_test": case.is_boundary_test,
        },
        "tags": case.tags,
    }
    if case.api is not None:
        record["api"] = case.api.model_dump(mode="json", by_alias=True, exclude_none=True)
    if case.base_url:
        record["base_url"] = case.base_url
    return record


def emit_json(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """正規化済みのテストケースを JSON で書き出す。"""
    ctx = ensure_context(context)
    document = {
        "suite": suite_name,
        "generated_at": ctx.clock().isoformat(),
        "test_cases": [_case_record(case) for case in test_cases],
    }
    content = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return build_artifact(content, suite_name, ExportFormat.JSON, ctx)


def emit_markdown(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """レビュー用の Markdown 文書を生成する。"""
    ctx = ensure_context(context)
    flags = Counter(label for case in test_cases for label in case.flag_labels)
    lines = [
        f"# {suite_name}",
        "",
        f"Generated: {ctx.clock().isoformat()}",
        f"Total Test Cases: {len(test_cases)}",
        "",
        "## Test Statistics",
        "",
        f"- Negative Tests: {flags['negative-test']}",
        f"- Security Tests: {flags['security-test']}",
        f"- Boundary Tests: {flags['boundary-test']}",
        f"- Edge Cases: {flags['edge-case']}",
        "",
        "---",
    ]

    for index, case in enumerate(test_cases, start=1):
        lines.extend(["", f"## Test Case {index}: {case.title}", ""])
        lines.append(f"**Type:** {case.test_type}  ")
        lines.append(f"**Priority:** {case.priority}  ")
        if case.flag_labels:
            lines.append(f"**Flags:** {', '.join(case.flag_labels)}  ")
        if case.tags:
            lines.append(f"**Tags:** {', '.join(case.tags)}  ")
        if case.description:
            lines.extend(["", "**Description:**  ", case.description])
        if case.preconditions:
            lines.extend(["", "**Preconditions:**", ""])
            lines.extend(f"- {condition}" for condition in case.preconditions)
        lines.extend(["", "**Test Steps:**", ""])
        for step in case.ordered_steps():
            lines.append(f"{step.step_number}. **Action:** {step.action}")
            if step.expected:
                lines.append(f"   **Expected:** {step.expected}")
        if case.expected_results:
            lines.extend(["", "**Expected Result:**", ""])
            lines.extend(f"- {result}" for result in case.expected_results)
        lines.extend(["", "---"])

    logger.debug("markdown: %d 件のケースを出力", len(test_cases))
    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.MARKDOWN, ctx)
