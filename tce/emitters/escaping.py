"""
エスケープ — 生成コードへ埋め込むリテラルの言語別クォート規則

生成コードへの文字列埋め込みはすべてここを経由する。
各関数は値を受け取り、引用符込みのリテラル（または安全な断片）を返す。
構造化フォーマット（JSON / YAML / XML / CSV）は各シリアライザに任せ、ここでは扱わない。
"""

from __future__ import annotations

import re

_JS_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\0": "\\x00",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_C_LIKE_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    "\"": "\\\"",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_REGEX_SPECIALS = re.compile(r"([\\^$.*+?()\[\]{}|/-])")
_WHITESPACE_RUN = re.compile(r"\s+")


def _escape_controls(ch: str, fmt: str) -> str:
    """残りの制御文字を言語ごとの Unicode エスケープにする。"""
    if ord(ch) < 0x20 or ord(ch) == 0x7F:
        return fmt.format(ord(ch))
    return ch


# ---------------------------------------------------------------------------
# JavaScript / TypeScript
# ---------------------------------------------------------------------------

def js_string(value: object, quote: str = "'") -> str:
    """JavaScript の文字列リテラル（既定はシングルクォート）を返す。"""
    out = []
    for ch in str(value):
        if ch in _JS_ESCAPES:
            out.append(_JS_ESCAPES[ch])
        elif ch == quote:
            out.append("\\" + ch)
        else:
            out.append(_escape_controls(ch, "\\x{:02x}"))
    return f"{quote}{''.join(out)}{quote}"


def js_template(value: object) -> str:
    """JavaScript のテンプレートリテラル（バッククォート）を返す。"""
    text = str(value).replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")
    return f"`{text}`"


def js_regex_body(value: object) -> str:
    """/.../ 正規表現リテラルの本体として、値を文字どおりに一致させる断片を返す。"""
    text = _REGEX_SPECIALS.sub(r"\\\1", str(value))
    for raw, escaped in (("\n", "\\n"), ("\r", "\\r"), ("\u2028", "\\u2028"), ("\u2029", "\\u2029")):
        text = text.replace(raw, escaped)
    return text


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

def python_string(value: object) -> str:
    """Python の文字列リテラルを返す。"""
    return repr(str(value))


# ---------------------------------------------------------------------------
# JVM 系 / Swift
# ---------------------------------------------------------------------------

def java_string(value: object) -> str:
    """Java のダブルクォート文字列リテラルを返す。"""
    out = [
        _C_LIKE_ESCAPES.get(ch) or _escape_controls(ch, "\\u{:04x}")
        for ch in str(value)
    ]
    return f"\"{''.join(out)}\""


def kotlin_string(value: object) -> str:
    """Kotlin の文字列リテラルを返す（$ テンプレートを無効化する）。"""
    body = java_string(value)[1:-1].replace("$", "\\$")
    return f"\"{body}\""


def scala_string(value: object) -> str:
    """Scala の（補間なし）文字列リテラルを返す。"""
    return java_string(value)


def swift_string(value: object) -> str:
    """Swift の文字列リテラルを返す。"""
    out = [
        _C_LIKE_ESCAPES.get(ch) or _escape_controls(ch, "\\u{{{:x}}}")
        for ch in str(value)
    ]
    return f"\"{''.join(out)}\""


# ---------------------------------------------------------------------------
# Karate / Gherkin / コメント
# ---------------------------------------------------------------------------

def karate_string(value: object) -> str:
    """Karate の式で使う文字列リテラル（JavaScript のシングルクォート）を返す。"""
    return js_string(value, quote="'")


def gherkin_text(value: object) -> str:
    """Gherkin のステップ行に収まる1行テキストを返す。"""
    text = _WHITESPACE_RUN.sub(" ", str(value)).strip()
    return text.replace("|", "\\|")


def comment_text(value: object) -> str:
    """行コメント・ブロックコメントの中に置ける1行テキストを返す。"""
    text = _WHITESPACE_RUN.sub(" ", str(value)).strip()
    return text.replace("*/", "* /")


# ---------------------------------------------------------------------------
# セレクタ
# ---------------------------------------------------------------------------

def css_attr_value(value: object) -> str:
    """CSS 属性セレクタのダブルクォート値を返す。"""
    text = str(value).replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\a ")
    return f"\"{text}\""


def xpath_literal(value: object) -> str:
    """XPath 1.0 の文字列リテラルを返す。両方の引用符を含む場合は concat() を使う。"""
    text = str(value)
    if "'" not in text:
        return f"'{text}'"
    if "\"" not in text:
        return f"\"{text}\""
    parts = text.split("'")
    pieces = []
    for index, part in enumerate(parts):
        if part:
            pieces.append(f"'{part}'")
        if index < len(parts) - 1:
            pieces.append("\"'\"")
    return f"concat({', '.join(pieces)})"
