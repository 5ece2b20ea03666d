"""
Action Classifier — ステップの自由記述から構造化された操作を推定する

Step.action_type が指定されていればそれを最優先で採用し、テキスト推定は行わない。
未指定の場合は小文字化した action テキストを ACTION_RULES（順序付きルール表）に
先頭から照合し、最初に一致したルールの種別を採用する（最良一致ではなく先着一致）。

ルールのグループ順:
  navigate < click(press) < fill < check/uncheck < select < upload < wait < verify

主な機能:
  - classify: Step → InferredAction
  - classify_text: action テキストのみからの推定（キャッシュ付き）
  - 種別ごとのパラメータ抽出（URL、入力欄名、入力値、待機時間、検証内容）

分類は純粋かつ決定的で、同じテキストからは常に同じ結果を返す。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Optional

from tce.ir.schema import Assertion, Step

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

# 空テキストのステップ（MalformedStepError 相当）に付与する説明
MALFORMED_DETAIL = "ステップに action_type も分類可能な action テキストもありません"


# ---------------------------------------------------------------------------
# 推定結果
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InferredAction:
    """1ステップの推定結果。

    Attributes:
        kind: 操作種別（navigate / click / fill ... / unknown）
        source: "explicit"（action_type 由来）/ "keyword"（テキスト推定）/ "none"
        text: 元の action テキスト
        keyword: 一致したキーワード（テキスト推定時）
        url: 遷移先（navigate）
        field: 入力欄・選択欄のラベル（fill / select）
        control: 操作対象のロール（button / link / checkbox ...）
        name: 操作対象のアクセシブルネーム
        value: 入力値・選択値・キー名・アップロードファイル
        literal: テキスト中の最初の引用リテラル
        wait_ms: 待機時間（ミリ秒）
        wait_for: 出現を待つ要素の記述
        assertion: 検証内容（verify）
        unresolved: 出力に手動補完が必要な場合 True
        malformed: action_type もテキストも無いステップの場合 True
    """

    kind: str
    source: str = "keyword"
    text: str = ""
    keyword: Optional[str] = None
    url: Optional[str] = None
    field: Optional[str] = None
    control: Optional[str] = None
    name: Optional[str] = None
    value: Optional[str] = None
    literal: Optional[str] = None
    wait_ms: Optional[int] = None
    wait_for: Optional[str] = None
    assertion: Optional[Assertion] = None
    unresolved: bool = False
    malformed: bool = False

    @property
    def is_placeholder(self) -> bool:
        """プレースホルダーとして出力すべき場合 True。"""
        return self.kind == UNKNOWN or (self.kind == "verify" and self.unresolved)

    def to_dict(self) -> dict[str, Any]:
        """None 以外の属性を dict で返す（CLI 表示用）。"""
        out: dict[str, Any] = {"kind": self.kind, "source": self.source}
        for key in ("keyword", "url", "field", "control", "name", "value",
                    "literal", "wait_ms", "wait_for"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.assertion is not None:
            out["assertion"] = self.assertion.model_dump(exclude_none=True)
        if self.unresolved:
            out["unresolved"] = True
        if self.malformed:
            out["malformed"] = True
        return out


@dataclass(frozen=True)
class ActionRule:
    """ルール表の1行: 種別、キーワードパターン、パラメータ抽出関数。"""

    kind: str
    pattern: re.Pattern
    extractor: Callable[[str], dict[str, Any]]


# ---------------------------------------------------------------------------
# 共通パターン
# ---------------------------------------------------------------------------

_QUOTED = re.compile(r"\"([^\"]+)\"|“([^”]+)”|(?<!\w)'([^']+)'(?!\w)")
_ABS_URL = re.compile(r"https?://[^\s'\"<>]+", re.IGNORECASE)
_PATH = re.compile(r"(?<![\w.])(/[\w\-./~%?=&#:]*)")
_TO_TOKEN = re.compile(r"\b(?:to|url)\s+(\S+)", re.IGNORECASE)
_TRAILING_PUNCT = ".,;:!?)"


def _quoted(text: str) -> list[str]:
    """テキスト中の引用リテラルを出現順に返す。"""
    return [next(g for g in m.groups() if g is not None) for m in _QUOTED.finditer(text)]


def _first_quoted(text: str) -> Optional[str]:
    found = _quoted(text)
    return found[0] if found else None


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _looks_like_location(token: str) -> bool:
    return token.startswith("/") or "://" in token or ("." in token and " " not in token)


def _find_url(text: str) -> Optional[str]:
    """遷移先を探す。絶対 URL、引用リテラル、to/url の後のトークン、パスの順。"""
    match = _ABS_URL.search(text)
    if match:
        return match.group(0).rstrip(_TRAILING_PUNCT)
    for literal in _quoted(text):
        if _looks_like_location(literal):
            return literal
    match = _TO_TOKEN.search(text)
    if match:
        token = _strip_quotes(match.group(1)).rstrip(_TRAILING_PUNCT)
        if _looks_like_location(token):
            return token
    match = _PATH.search(text)
    if match and len(match.group(1)) > 1:
        return match.group(1).rstrip(_TRAILING_PUNCT)
    return None


# ---------------------------------------------------------------------------
# 種別ごとの抽出関数
# ---------------------------------------------------------------------------

def _extract_navigate(text: str) -> dict[str, Any]:
    url = _find_url(text)
    return {"url": url, "literal": _first_quoted(text), "unresolved": url is None}


_CONTROL_ROLES: dict[str, str] = {
    "button": "button",
    "link": "link",
    "tab": "tab",
    "checkbox": "checkbox",
    "radio": "radio",
    "menu": "menuitem",
    "icon": "button",
    "option": "option",
}
_CONTROL_WORD = re.compile(r"\b(button|link|tab|checkbox|radio|menu|icon|option)\b", re.IGNORECASE)
_NAMED_CONTROL = re.compile(
    r"\b(?:click|tap|press|hit|hover)\s+(?:on\s+|over\s+)?(?:the\s+)?"
    r"(?P<name>[\w\- ]+?)\s+(?:button|link|tab|icon|menu)\b",
    re.IGNORECASE,
)


def _extract_click(text: str) -> dict[str, Any]:
    literal = _first_quoted(text)
    control_match = _CONTROL_WORD.search(text)
    control = _CONTROL_ROLES[control_match.group(1).lower()] if control_match else None
    name = literal
    if name is None:
        named = _NAMED_CONTROL.search(text)
        if named:
            name = named.group("name").strip()
    return {"control": control, "name": name, "literal": literal}


_PRESS_KEY = re.compile(
    r"\bpress\s+(?:the\s+)?[\"']?(?P<key>[\w+\-]+)[\"']?\s+key\b", re.IGNORECASE,
)
_KEY_NAMES: dict[str, str] = {
    "enter": "Enter",
    "return": "Enter",
    "tab": "Tab",
    "escape": "Escape",
    "esc": "Escape",
    "space": "Space",
    "backspace": "Backspace",
    "delete": "Delete",
}


def _extract_press(text: str) -> dict[str, Any]:
    match = _PRESS_KEY.search(text)
    key = None
    if match:
        raw = match.group("key")
        key = _KEY_NAMES.get(raw.lower(), raw)
    return {"value": key, "literal": _first_quoted(text), "unresolved": key is None}


_FIELD_INTO = re.compile(
    r"\b(?:in|into)\s+(?:the\s+)?"
    r"(?P<field>\"[^\"]+\"|'[^']+'|[\w\- ]+?)"
    r"(?:\s+(?:field|input|box|textbox|textarea|area))?"
    r"(?=\s+(?:with|as)\b|\s*[.,;:]|\s*$)",
    re.IGNORECASE,
)
_FIELD_NAMED = re.compile(
    r"\b(?:the\s+)?(?P<field>[\w\-]+(?:\s[\w\-]+)?)\s+(?:field|input|box|textbox|textarea)\b",
    re.IGNORECASE,
)
_WITH_VALUE = re.compile(r"\b(?:with|as)\s+(?P<value>\"[^\"]*\"|'[^']*'|\S+)", re.IGNORECASE)
_LEADING_VALUE = re.compile(
    r"^\s*(?:enter|type|input|fill(?:\s+in)?|write|provide)\s+(?P<value>\S+)\s+(?:in|into)\b",
    re.IGNORECASE,
)
_FILLER_WORDS = frozenset({"a", "an", "the", "valid", "invalid", "some", "your", "any"})


def _extract_fill(text: str) -> dict[str, Any]:
    literal = _first_quoted(text)

    field = None
    match = _FIELD_INTO.search(text)
    if match:
        field = _strip_quotes(match.group("field"))
    else:
        match = _FIELD_NAMED.search(text)
        if match:
            field = match.group("field").strip()

    value = None
    match = _WITH_VALUE.search(text)
    if match:
        value = _strip_quotes(match.group("value")).rstrip(_TRAILING_PUNCT)
    else:
        others = [q for q in _quoted(text) if q != field]
        if others:
            value = others[0]
        else:
            match = _LEADING_VALUE.search(text)
            if match and match.group("value").lower() not in _FILLER_WORDS:
                value = _strip_quotes(match.group("value"))

    return {"field": field, "value": value, "literal": literal, "unresolved": value is None}


_CHECK_NAMED = re.compile(
    r"\b(?:the\s+)?(?P<name>[\w\- ]+?)\s+(?:checkbox|check\s?box|box|option|toggle)\b",
    re.IGNORECASE,
)
_CHECK_VERB = re.compile(r"^\s*(?:un)?(?:check|select|tick)\s+", re.IGNORECASE)


def _extract_check(text: str) -> dict[str, Any]:
    name = _first_quoted(text)
    if name is None:
        match = _CHECK_NAMED.search(_CHECK_VERB.sub("", text))
        if match:
            name = match.group("name").strip()
    return {"control": "checkbox", "name": name, "literal": _first_quoted(text)}


_SELECT_FROM = re.compile(
    r"\bfrom\s+(?:the\s+)?(?P<field>\"[^\"]+\"|'[^']+'|[\w\- ]+?)"
    r"(?:\s+(?:dropdown|drop-down|list|menu|select|picker))?(?=\s*[.,;:]|\s*$)",
    re.IGNORECASE,
)
_SELECT_VALUE = re.compile(r"\b(?:select|choose|pick)\s+(?P<value>[\w\-]+)\s+from\b", re.IGNORECASE)


def _extract_select(text: str) -> dict[str, Any]:
    literals = _quoted(text)
    field = None
    match = _SELECT_FROM.search(text)
    if match:
        field = _strip_quotes(match.group("field"))
    value = next((q for q in literals if q != field), None)
    if value is None:
        match = _SELECT_VALUE.search(text)
        if match:
            value = match.group("value")
    return {
        "control": "combobox",
        "field": field,
        "value": value,
        "literal": literals[0] if literals else None,
        "unresolved": value is None,
    }


_FILE_NAME = re.compile(r"(?<![\w/])([\w\-./]+\.[A-Za-z0-9]{2,5})\b")


def _extract_upload(text: str) -> dict[str, Any]:
    value = _first_quoted(text)
    if value is None:
        match = _FILE_NAME.search(text)
        if match:
            value = match.group(1)
    return {"value": value, "literal": _first_quoted(text), "unresolved": value is None}


DEFAULT_WAIT_MS = 2000

_DURATION = re.compile(
    r"(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>milliseconds?|ms|seconds?|secs?|s|minutes?|mins?)\b",
    re.IGNORECASE,
)
_WAIT_FOR = re.compile(
    r"\bwait\s+(?:for|until)\s+(?:the\s+)?(?P<target>.+?)"
    r"(?:\s+to\s+(?:appear|load|be\s+visible|show))?(?=\s*[.,;]|\s*$)",
    re.IGNORECASE,
)


def _to_ms(amount: str, unit: str) -> int:
    unit = unit.lower()
    number = float(amount)
    if unit == "ms" or unit.startswith("milli"):
        return int(number)
    if unit.startswith("min"):
        return int(number * 60_000)
    return int(number * 1000)


def _extract_wait(text: str) -> dict[str, Any]:
    match = _DURATION.search(text)
    if match:
        return {"wait_ms": _to_ms(match.group("amount"), match.group("unit"))}
    wait_for = _first_quoted(text)
    if wait_for is None:
        match = _WAIT_FOR.search(text)
        if match:
            wait_for = match.group("target").strip()
    if wait_for:
        return {"wait_for": wait_for, "literal": _first_quoted(text)}
    return {"wait_ms": DEFAULT_WAIT_MS}


_URL_HINT = re.compile(r"\b(?:url|redirect(?:ed|s)?|navigat(?:e|es|ed)|lands?\s+on)\b", re.IGNORECASE)
_TITLE_HINT = re.compile(r"\btitle\b", re.IGNORECASE)
_VISIBLE_HINT = re.compile(r"\b(?:visible|displayed|shown|appears?|present)\b", re.IGNORECASE)
_HIDDEN_HINT = re.compile(r"\b(?:hidden|not\s+(?:be\s+)?(?:visible|displayed|shown)|disappears?)\b", re.IGNORECASE)


def _extract_verify(text: str) -> dict[str, Any]:
    literal = _first_quoted(text)
    assertion = None
    if _URL_HINT.search(text):
        url = _find_url(text)
        if url:
            assertion = Assertion(type="url", value=url)
    if assertion is None and _TITLE_HINT.search(text) and literal:
        assertion = Assertion(type="title", value=literal)
    if assertion is None and literal and _HIDDEN_HINT.search(text):
        assertion = Assertion(type="hidden", value=literal)
    if assertion is None and literal and _VISIBLE_HINT.search(text):
        assertion = Assertion(type="visible", value=literal)
    if assertion is None and literal:
        assertion = Assertion(type="text", value=literal)
    return {"assertion": assertion, "literal": literal, "unresolved": assertion is None}


# ---------------------------------------------------------------------------
# ルール表（先頭から順に照合する）
# ---------------------------------------------------------------------------

def _keywords(*words: str) -> re.Pattern:
    return re.compile("|".join(rf"\b{w}\b" for w in words), re.IGNORECASE)


ACTION_RULES: tuple[ActionRule, ...] = (
    # navigate（"is open" のような述語用法は除外）
    ActionRule(
        "navigate",
        re.compile(
            r"\bnavigate\b|\bgo\s+to\b|\bopen\b(?=\s+\S)|\bvisit\b"
            r"|\bload\b(?=\s+\S)|\bbrowse\s+to\b",
            re.IGNORECASE,
        ),
        _extract_navigate,
    ),
    # click（"press <key> key" はキー入力として先に判定）
    ActionRule("press", _PRESS_KEY, _extract_press),
    ActionRule("click", _keywords("click", "tap", "press", "hit"), _extract_click),
    # fill
    ActionRule("fill", _keywords("enter", "type", "input", "fill", "write", "provide"), _extract_fill),
    # check / uncheck
    ActionRule("uncheck", _keywords("uncheck", "unselect", "untick"), _extract_check),
    ActionRule(
        "check",
        re.compile(
            r"\bcheck\b(?!\s+(?:that|if|whether)\b)|\btick\b|\bselect\b[^.]*\bcheck\s?box\b",
            re.IGNORECASE,
        ),
        _extract_check,
    ),
    # select（"choose file" は upload に回す）
    ActionRule(
        "select",
        re.compile(r"\b(?:select|choose|pick)\b(?!\s+(?:a\s+|the\s+)?file\b)", re.IGNORECASE),
        _extract_select,
    ),
    # upload
    ActionRule(
        "upload",
        re.compile(r"\bupload\b|\battach\b|\bchoose\s+(?:a\s+|the\s+)?file\b", re.IGNORECASE),
        _extract_upload,
    ),
    # wait
    ActionRule("wait", _keywords("wait", "pause", "delay", "sleep"), _extract_wait),
    # verify
    ActionRule(
        "verify",
        re.compile(
            r"\bverify\b|\bcheck\s+(?:that|if|whether)\b|\bensure\b|\bconfirm\b|\bvalidate\b"
            r"|\bshould\b|\bassert\b|\bexpect\b|\bobserve\b",
            re.IGNORECASE,
        ),
        _extract_verify,
    ),
)

# action_type 明示時のパラメータ抽出関数
EXTRACTORS = MappingProxyType({
    "navigate": _extract_navigate,
    "click": _extract_click,
    "hover": _extract_click,
    "press": _extract_press,
    "fill": _extract_fill,
    "type": _extract_fill,
    "check": _extract_check,
    "uncheck": _extract_check,
    "select": _extract_select,
    "upload": _extract_upload,
    "wait": _extract_wait,
    "verify": _extract_verify,
})


# ---------------------------------------------------------------------------
# 公開 API
# ---------------------------------------------------------------------------

@lru_cache(maxsize=2048)
def classify_text(text: str) -> InferredAction:
    """action テキストだけから操作を推定する。

    Args:
        text: ステップの action テキスト

    Returns:
        推定結果。どのルールにも一致しなければ kind="unknown"。
    """
    stripped = text.strip()
    if not stripped:
        return InferredAction(kind=UNKNOWN, source="none", malformed=True)

    for rule in ACTION_RULES:
        match = rule.pattern.search(stripped)
        if match is None:
            continue
        params = rule.extractor(stripped)
        return InferredAction(
            kind=rule.kind,
            source="keyword",
            text=stripped,
            keyword=match.group(0).lower(),
            **params,
        )

    return InferredAction(kind=UNKNOWN, source="none", text=stripped)


def classify(step: Step) -> InferredAction:
    """ステップの操作を推定する。

    action_type が指定されていれば種別はそのまま採用し、パラメータは
    構造化フィールド（input_value / wait_time / assertion）を優先する。
    構造化フィールドに無いパラメータは種別の抽出関数でテキストから補う。

    Args:
        step: 対象ステップ

    Returns:
        推定結果（例外は送出しない）
    """
    if step.action_type is None:
        return classify_text(step.action)

    kind = step.action_type
    params: dict[str, Any] = dict(EXTRACTORS[kind](step.action)) if step.action else {}

    if step.input_value is not None:
        params["url" if kind == "navigate" else "value"] = step.input_value
        if kind != "verify":
            params["unresolved"] = False

    if kind == "wait":
        if step.wait_time is not None:
            params["wait_ms"] = step.wait_time
            params.pop("wait_for", None)
        elif step.selector:
            params.pop("wait_ms", None)
            params.setdefault("wait_for", step.selector)
        elif "wait_ms" not in params and "wait_for" not in params:
            params["wait_ms"] = DEFAULT_WAIT_MS

    if kind == "verify":
        if step.assertion is not None:
            params["assertion"] = step.assertion
            params["unresolved"] = False
        elif "assertion" not in params:
            params["unresolved"] = True

    if kind == "navigate" and params.get("url") is None:
        params["unresolved"] = True

    logger.debug("action_type 指定を採用: step=%s kind=%s", step.step_number, kind)
    return InferredAction(kind=kind, source="explicit", text=step.action, **params)
