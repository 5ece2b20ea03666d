"""
エミッター共通部品 — 成果物・診断・実行コンテキスト・ファイル名規則

全エミッターは (test_cases, suite_name, context) → EmittedArtifact の純粋関数。
現在時刻は EmitContext.clock からのみ取得し、同じ入力と時刻なら同じ出力になる。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from tce.config import ExportSettings
from tce.emitters.escaping import comment_text
from tce.emitters.formats import FORMAT_INFO, ExportFormat
from tce.errors import EmptyInputError, MalformedStepError, TceError
from tce.inference.classifier import MALFORMED_DETAIL, UNKNOWN, InferredAction, classify
from tce.inference.targets import Target, resolve_assertion_target, resolve_target
from tce.ir.schema import Assertion, Step, TestCase

Clock = Callable[[], datetime]

_MAX_FILENAME = 120
_SLUG_MAX = 60
_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_FILENAME_PATTERN = re.compile(r"[^a-z0-9.\-]+")
_COUNT_PATTERN = re.compile(r"^(>=|<=|==|>|<)?\s*(\d+)$")
_VALUE_REQUIRED = frozenset({"url", "title", "text"})


def system_clock() -> datetime:
    """UTC の現在時刻を返す。"""
    return datetime.now(timezone.utc)


def fixed_clock(instant: datetime) -> Clock:
    """常に同じ時刻を返す時計を作る。"""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return lambda: instant


# ---------------------------------------------------------------------------
# 診断
# ---------------------------------------------------------------------------

class Severity(Enum):
    """診断の重大度。"""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class LintFinding:
    """エミッターや Linter が報告する診断。

    Attributes:
        severity: 重大度（error / warning）
        message: 説明メッセージ
        line: 対象の行番号（分かる場合）
        rule: 機械可読なルール名
    """

    severity: Severity
    message: str
    line: Optional[int] = None
    rule: str = ""

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {
            "severity": self.severity.value,
            "rule": self.rule,
            "message": self.message,
        }
        if self.line is not None:
            out["line"] = self.line
        return out


def warning(rule: str, message: str, line: Optional[int] = None) -> LintFinding:
    return LintFinding(Severity.WARNING, message, line=line, rule=rule)


def error(rule: str, message: str, line: Optional[int] = None) -> LintFinding:
    return LintFinding(Severity.ERROR, message, line=line, rule=rule)


def finding_from_error(exc: TceError, where: str) -> LintFinding:
    """エミッション中に捕捉した非致命的な例外を警告に変換する（rule は kind のハイフン表記）。"""
    return warning(exc.kind.replace("_", "-"), f"{where}: {exc.detail}")


# ---------------------------------------------------------------------------
# 成果物とコンテキスト
# ---------------------------------------------------------------------------

@dataclass
class EmittedArtifact:
    """エミッターの出力1件。

    Attributes:
        content: ファイル内容（zip の場合は bytes）
        filename: 保存時のファイル名
        mime_type: MIME タイプ
        findings: 生成中に検出した診断
    """

    content: Union[str, bytes]
    filename: str
    mime_type: str
    findings: list[LintFinding] = field(default_factory=list)

    @property
    def data(self) -> bytes:
        """書き出し用のバイト列。"""
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


@dataclass
class EmitContext:
    """エミッターへ渡す実行コンテキスト。

    Attributes:
        clock: 現在時刻を返す関数（タイムゾーン付き datetime）
        settings: エクスポート設定
    """

    clock: Clock = system_clock
    settings: ExportSettings = field(default_factory=ExportSettings)

    def frozen(self) -> "EmitContext":
        """時刻を1回だけ読み、以後その時刻を返すコンテキストを返す。"""
        return EmitContext(clock=fixed_clock(self.clock()), settings=self.settings)


def ensure_context(context: Optional[EmitContext]) -> EmitContext:
    return context if context is not None else EmitContext()


# ---------------------------------------------------------------------------
# 命名規則
# ---------------------------------------------------------------------------

def slugify(text: str, fallback: str = "untitled", max_length: int = _SLUG_MAX) -> str:
    """小文字英数字とハイフンのみのスラッグを返す。"""
    slug = _SLUG_PATTERN.sub("-", str(text).lower()).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or fallback


def artifact_filename(suite_name: str, fmt: str, extension: str, now: datetime) -> str:
    """<slug(suite)>-<format>-<YYYY-MM-DD>.<ext> 形式のファイル名を返す。

    使用文字は [a-z0-9.-] のみ、長さは 120 文字以内。
    長すぎる場合はスイート名部分を切り詰め、拡張子と日付は残す。
    """
    fmt_part = _FILENAME_PATTERN.sub("-", fmt.lower()).strip("-") or "export"
    ext_part = _FILENAME_PATTERN.sub("-", extension.lower()).strip("-.") or "txt"
    tail = f"-{fmt_part}-{now:%Y-%m-%d}.{ext_part}"
    room = max(1, _MAX_FILENAME - len(tail))
    suite_part = slugify(suite_name, fallback="suite", max_length=room)
    name = f"{suite_part}{tail}"
    return name[-_MAX_FILENAME:] if len(name) > _MAX_FILENAME else name


def case_filename(index: int, title: str, extension: str) -> str:
    """<NNN>-<slug(title)>.<ext> 形式のケースファイル名を返す（index は 1 始まり）。"""
    return f"{index:03d}-{slugify(title, fallback='test-case')}.{extension}"


# ---------------------------------------------------------------------------
# ステップ走査
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlannedStep:
    """出力順に並んだステップと、その推定結果。"""

    number: int
    step: Step
    action: InferredAction


def plan_steps(case: TestCase, findings: list[LintFinding]) -> list[PlannedStep]:
    """ケースのステップを出力順に並べ、各ステップを分類する。

    空のステップは警告を記録しつつプレースホルダーとして残す。
    """
    planned = []
    for step in case.ordered_steps():
        action = classify(step)
        where = f"{case.title} / Step {step.step_number}"
        if action.malformed:
            findings.append(finding_from_error(MalformedStepError(MALFORMED_DETAIL), where))
        elif action.kind == UNKNOWN:
            findings.append(warning("unclassified-step", f"{where}: 操作を推定できませんでした: {step.action}"))
        elif action.is_placeholder:
            findings.append(warning("unresolved-assertion", f"{where}: 検証内容を推定できませんでした: {step.action}"))
        planned.append(PlannedStep(number=step.step_number or len(planned) + 1, step=step, action=action))
    if not planned:
        findings.append(warning("empty-case", f"{case.title}: ステップがありません"))
    return planned


def step_target(planned: PlannedStep, family: str, findings: list[LintFinding]) -> Target:
    """ステップのロケータを解決し、プレースホルダーなら警告を記録する。"""
    target = resolve_target(planned.action, planned.step.selector, family)
    if target.is_placeholder:
        findings.append(warning(
            "placeholder-selector",
            f"Step {planned.number}: セレクタを特定できないためプレースホルダーを使用しました",
        ))
    return target


def assertion_target(
    assertion: Assertion,
    planned: PlannedStep,
    family: str,
    findings: list[LintFinding],
) -> Optional[Target]:
    """検証対象のロケータを解決し、プレースホルダーなら警告を記録する。"""
    target = resolve_assertion_target(assertion, planned.step.selector, family)
    if target is not None and target.is_placeholder:
        findings.append(warning(
            "placeholder-selector",
            f"Step {planned.number}: 検証対象を特定できないためプレースホルダーを使用しました",
        ))
    return target


def header_comments(case: TestCase, prefix: str) -> list[str]:
    """ケースの説明・事前条件・分類を行コメントにする。"""
    lines = []
    if case.description:
        lines.append(f"{prefix} {comment_text(case.description)}")
    for condition in case.preconditions:
        lines.append(f"{prefix} Precondition: {comment_text(condition)}")
    labels = [f"priority:{case.priority}", *case.flag_labels, *case.tags]
    lines.append(f"{prefix} Tags: {comment_text(', '.join(labels))}")
    return lines


def build_artifact(
    content: str,
    suite_name: str,
    fmt: ExportFormat,
    context: EmitContext,
    findings: Optional[list[LintFinding]] = None,
) -> EmittedArtifact:
    """形式表の拡張子・MIME タイプで成果物を組み立てる。"""
    info = FORMAT_INFO[fmt]
    return EmittedArtifact(
        content=content,
        filename=artifact_filename(suite_name, fmt.value, info.extension, context.clock()),
        mime_type=info.mime_type,
        findings=list(findings or []),
    )


def text_value(value: object) -> str:
    """None を空文字にした文字列表現を返す。"""
    return "" if value is None else str(value)


def require_cases(test_cases: list[TestCase], fmt: str) -> None:
    """スクリプト系エミッターの入力が1件以上あることを確認する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    if not test_cases:
        raise EmptyInputError(f"{fmt} の生成には1件以上のテストケースが必要です")


def step_label(planned: PlannedStep) -> str:
    """Step N: のコメント本文を返す。"""
    text = planned.step.action or planned.action.kind
    return comment_text(f"Step {planned.number}: {text}")


def todo_text(planned: PlannedStep) -> str:
    """プレースホルダーにしたステップの TODO コメント本文を返す。"""
    action = planned.action
    if action.malformed:
        return "TODO: empty step, describe the action"
    if action.kind == "verify":
        return comment_text(f"TODO: add an assertion for: {planned.step.action}")
    return comment_text(f"TODO: implement step: {planned.step.action}")


def count_condition(value: object) -> Optional[tuple[str, int]]:
    """count 検証の値を (演算子, 件数) に分解する。"==3" や ">= 2" 形式を受け付ける。

    値が無い、または解釈できない場合は None を返す。
    """
    if value is None:
        return None
    match = _COUNT_PATTERN.match(str(value).strip())
    if not match:
        return None
    return (match.group(1) or "==", int(match.group(2)))


def missing_value(assertion: Assertion) -> bool:
    """期待値が必須の検証（url / title / text）で値が空なら True。"""
    return assertion.type in _VALUE_REQUIRED and not text_value(assertion.value).strip()


def unresolved_assertion(
    assertion: Assertion,
    planned: PlannedStep,
    findings: list[LintFinding],
    prefix: str,
) -> list[str]:
    """期待値を解釈できない検証を警告として記録し、TODO コメント行を返す。"""
    findings.append(warning(
        "unresolved-assertion",
        f"Step {planned.number}: {assertion.type} 検証の期待値を解釈できません: {text_value(assertion.value)!r}",
    ))
    subject = planned.step.action or f"{assertion.type} assertion"
    return [f"{prefix} " + comment_text(f"TODO: add an assertion for: {subject}")]
