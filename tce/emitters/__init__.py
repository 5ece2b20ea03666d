"""
エミッターパッケージ

(platform, format) ごとの純粋関数で、テストケース IR を1つの成果物に変換する。

主な構成:
  - registry: (platform, format) → エミッター関数の静的対応表
  - formats: 形式ごとの拡張子・MIME タイプ・表示名
  - base: 成果物・診断・コンテキスト・命名規則
  - escaping: 言語別の文字列リテラル規則
  - web / api / mobile / performance / accessibility / manual: 各エミッター
"""

from __future__ import annotations


def export(target, test_cases, suite_name, context=None):  # type: ignore[no-untyped-def]
    """registry.export() の遅延インポート版。

    inference パッケージとの循環 import を避けるため、registry の import をここで遅延させる。
    """
    from .registry import export as _export
    return _export(target, test_cases, suite_name, context)


__all__ = [
    "export",
]
