"""
エラー定義 — エクスポート処理で利用者に見せる例外の体系

全ての例外は機械可読な kind と人間向けの detail を持つ。
CLI や上位の HTTP 層は to_dict() の結果だけを利用者に返し、
スタックトレースや内部状態は表に出さない。

分類:
  - UnsupportedFormatError: 未登録の (platform, format) — リクエスト単位で致命的
  - EmptyInputError: 1件以上を要求するエミッターへの空入力 — スクリプト系では致命的
  - MalformedStepError: action_type も分類可能なテキストも持たないステップ — 非致命的
  - ArchiveAssemblyError: スキャフォールド時のファイル名重複など — 致命的
  - CaseLoadError: 入力ファイルの読み込み・スキーマ検証失敗
"""

from __future__ import annotations

from typing import Optional


class TceError(Exception):
    """tce が送出する例外の基底クラス。"""

    kind: str = "internal"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, str]:
        """利用者向けのエラー表現を返す。"""
        return {"kind": self.kind, "detail": self.detail}


class UnsupportedFormatError(TceError):
    """(platform, format) の組み合わせがレジストリに存在しない。"""

    kind = "unsupported_format"


class EmptyInputError(TceError):
    """テストケースが0件で、エミッターが1件以上を必要とする。"""

    kind = "empty_input"


class MalformedStepError(TceError):
    """ステップが action_type も分類可能な action テキストも持たない。

    エミッション全体を中断させてはならない。エミッター内で捕捉され、
    プレースホルダーと LintFinding に置き換えられる。
    """

    kind = "malformed_step"


class ArchiveAssemblyError(TceError):
    """アーカイブ組み立てに失敗した（パス重複など）。"""

    kind = "archive_assembly"


class CaseLoadError(TceError):
    """テストケースファイルの読み込みまたはスキーマ検証に失敗した。"""

    kind = "invalid_input"

    def __init__(self, detail: str, line: Optional[int] = None) -> None:
        super().__init__(detail)
        self.line = line
