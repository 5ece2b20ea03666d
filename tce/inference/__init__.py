# tce.inference — ステップ記述からの操作推定とロケータ解決
# キーワード順序表による分類と、系統別フォールバックのセレクタ解決

from .classifier import ACTION_RULES, ActionRule, InferredAction, classify, classify_text
from .targets import (
    FAMILIES,
    FILE_INPUT_SELECTOR,
    PLACEHOLDER_MARKER,
    PLACEHOLDER_SELECTOR,
    Target,
    resolve_assertion_target,
    resolve_target,
)

__all__ = [
    "ACTION_RULES",
    "ActionRule",
    "FAMILIES",
    "FILE_INPUT_SELECTOR",
    "InferredAction",
    "PLACEHOLDER_MARKER",
    "PLACEHOLDER_SELECTOR",
    "Target",
    "classify",
    "classify_text",
    "resolve_assertion_target",
    "resolve_target",
]
