"""
Target Mapper — 推定された操作から具体的なロケータを決める

明示セレクタがあればそのまま使う。無ければフレームワーク系統（family）ごとに
以下のフォールバックを順に試す:

  1. 操作が入力欄やコントロールを名指ししていれば、ロール / ラベル / アクセシブルネーム
     （その API を持たない系統では XPath・テキスト・属性セレクタに読み替える）
  2. action テキスト中の引用リテラル → テキスト一致
  3. プレースホルダー（TCE-PLACEHOLDER 印付き、Linter が件数を数える）

確信の無いセレクタを推測で作らない。3 に落ちたものだけが is_placeholder になる。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from tce.emitters.escaping import css_attr_value, xpath_literal
from tce.errors import UnsupportedFormatError
from tce.ir.schema import Assertion

from .classifier import InferredAction

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "TCE-PLACEHOLDER"
PLACEHOLDER_SELECTOR = f'[data-testid="{PLACEHOLDER_MARKER}"]'
FILE_INPUT_SELECTOR = 'input[type="file"]'

_PAGE_ASSERTIONS = frozenset({"url", "title"})


# ---------------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Target:
    """解決済みのロケータ。

    Attributes:
        strategy: css / id / role / label / text / xpath / accessibility_id / placeholder
        value: ロケータ本体（role の場合はアクセシブルネーム）
        role: role 戦略時のロール名
        source: どの段で決まったか（explicit / semantic / literal / placeholder）
    """

    strategy: str
    value: str
    role: Optional[str] = None
    source: str = "explicit"

    @property
    def is_placeholder(self) -> bool:
        return self.strategy == "placeholder"


@dataclass(frozen=True)
class FamilyProfile:
    """系統ごとのロケータ能力。

    Attributes:
        explicit: 明示セレクタに付ける戦略名
        semantic: 1段目の表現（role / xpath / text / accessibility_id / css-attr）
        placeholder: プレースホルダーの値
    """

    explicit: str
    semantic: str
    placeholder: str


FAMILIES = MappingProxyType({
    "playwright": FamilyProfile("css", "role", PLACEHOLDER_SELECTOR),
    "cypress": FamilyProfile("css", "css-attr", PLACEHOLDER_SELECTOR),
    "selenium": FamilyProfile("css", "xpath", PLACEHOLDER_SELECTOR),
    "appium": FamilyProfile("id", "accessibility_id", PLACEHOLDER_MARKER),
    "maestro": FamilyProfile("id", "text", PLACEHOLDER_MARKER),
    "xcuitest": FamilyProfile("id", "role", PLACEHOLDER_MARKER),
    "espresso": FamilyProfile("id", "text", PLACEHOLDER_MARKER),
})

# 名指しされた入力欄をラベルで引く操作
_FIELD_KINDS = frozenset({"fill", "type", "select"})
# 名指しされたコントロールをロールで引く操作
_CONTROL_KINDS = frozenset({"click", "hover", "check", "uncheck"})

_ROLE_XPATH: dict[str, str] = {
    "button": "self::button or @role='button' or (self::input and @type='submit')",
    "link": "self::a or @role='link'",
    "tab": "@role='tab'",
    "checkbox": "(self::input and @type='checkbox') or @role='checkbox'",
    "radio": "(self::input and @type='radio') or @role='radio'",
    "menuitem": "@role='menuitem'",
    "option": "self::option or @role='option'",
    "combobox": "self::select or @role='combobox'",
}


# ---------------------------------------------------------------------------
# 1段目: ロール / ラベル
# ---------------------------------------------------------------------------

def _semantic(action: InferredAction) -> Optional[tuple[str, str]]:
    """(role, name) を返す。入力欄の場合の role は "label"。"""
    if action.kind in _FIELD_KINDS and action.field:
        return ("label", action.field)
    if action.kind in _CONTROL_KINDS and action.control and action.name:
        return (action.control, action.name)
    return None


def _field_xpath(label: str) -> str:
    lit = xpath_literal(label)
    return (
        f"//*[@aria-label={lit} or @name={lit} or @placeholder={lit}"
        f" or @id=//label[normalize-space()={lit}]/@for]"
    )


def _control_xpath(role: str, name: str) -> str:
    lit = xpath_literal(name)
    condition = _ROLE_XPATH.get(role, f"@role={xpath_literal(role)}")
    return f"//*[({condition}) and (normalize-space()={lit} or @aria-label={lit} or @value={lit})]"


def _field_css(label: str) -> str:
    quoted = css_attr_value(label)
    return f"[aria-label={quoted}], [name={quoted}], [placeholder={quoted}]"


def _semantic_target(profile: FamilyProfile, role: str, name: str) -> Target:
    if profile.semantic == "role":
        if role == "label":
            return Target("label", name, source="semantic")
        return Target("role", name, role=role, source="semantic")
    if profile.semantic == "xpath":
        value = _field_xpath(name) if role == "label" else _control_xpath(role, name)
        return Target("xpath", value, source="semantic")
    if profile.semantic == "css-attr":
        if role == "label":
            return Target("css", _field_css(name), source="semantic")
        return Target("text", name, role=role, source="semantic")
    if profile.semantic == "accessibility_id":
        return Target("accessibility_id", name, role=role, source="semantic")
    return Target("text", name, role=None if role == "label" else role, source="semantic")


# ---------------------------------------------------------------------------
# 公開 API
# ---------------------------------------------------------------------------

def resolve_target(
    action: InferredAction,
    selector: Optional[str] = None,
    family: str = "playwright",
) -> Target:
    """操作のロケータを解決する。

    Args:
        action: 分類器の推定結果
        selector: ステップの明示セレクタ（あれば最優先でそのまま使う）
        family: ロケータ方言（playwright / cypress / selenium / appium /
            maestro / xcuitest / espresso）

    Returns:
        解決済みの Target

    Raises:
        UnsupportedFormatError: 未知の family の場合
    """
    profile = FAMILIES.get(family)
    if profile is None:
        raise UnsupportedFormatError(f"未対応のロケータ系統です: {family}")

    if selector:
        return Target(profile.explicit, selector, source="explicit")

    if action.kind == "upload" and profile.explicit == "css":
        return Target("css", FILE_INPUT_SELECTOR, source="default")

    semantic = _semantic(action)
    if semantic is not None:
        return _semantic_target(profile, *semantic)

    # 入力値・遷移先として使われたリテラルは要素の手がかりにしない
    literal = action.name or action.literal
    if literal and literal not in (action.value, action.url):
        return Target("text", literal, source="literal")

    logger.debug("セレクタを解決できずプレースホルダーを使用: %r", action.text)
    return Target("placeholder", profile.placeholder, source="placeholder")


def resolve_assertion_target(
    assertion: Assertion,
    step_selector: Optional[str] = None,
    family: str = "playwright",
) -> Optional[Target]:
    """検証対象のロケータを解決する。

    ページ全体を対象とする検証（url / title）と、対象未指定の本文検証
    （text / exact-text）は None を返す。
    """
    profile = FAMILIES.get(family)
    if profile is None:
        raise UnsupportedFormatError(f"未対応のロケータ系統です: {family}")

    selector = assertion.resolved_target(step_selector)
    if assertion.type in _PAGE_ASSERTIONS:
        return None
    if selector:
        return Target(profile.explicit, selector, source="explicit")
    if assertion.type in ("visible", "hidden") and assertion.value not in (None, ""):
        return Target("text", str(assertion.value), source="literal")
    if assertion.type in ("text", "exact-text"):
        return None
    return Target("placeholder", profile.placeholder, source="placeholder")
