"""
IR ローダー — テストケースファイルの読み込みと検証

JSON または YAML で書かれたテストケース集合を読み込み、
Pydantic の CaseCollection モデルへ変換する。

受け付ける入力形:
  - テストケースの配列
  - {suite: {name, id}, test_cases: [...]} 形式のオブジェクト
  - 単一テストケースのオブジェクト（steps を持つ dict）

validate() は例外を送出せず、違反箇所をリストで報告する。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from tce.errors import CaseLoadError

from .schema import CaseCollection

logger = logging.getLogger(__name__)

_JSON_SUFFIXES = frozenset({".json"})


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class CaseValidationError:
    """入力ファイルの検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# CaseLoader 本体
# ---------------------------------------------------------------------------

class CaseLoader:
    """テストケースファイルの読み込み・検証を担当するローダー。

    拡張子が .json なら json、それ以外は ruamel.yaml（safe モード）で読む。
    YAML は JSON の上位集合なので、拡張子が不明でも YAML として読める。
    """

    def __init__(self) -> None:
        self._yaml = YAML(typ="safe")

    # ----- load -----

    def load(self, path: Path, suite_name: Optional[str] = None) -> CaseCollection:
        """ファイルを読み込み、CaseCollection に変換する。

        Args:
            path: 読み込むファイルのパス
            suite_name: スイート名の上書き（None ならファイル内の値かファイル名）

        Returns:
            パース済みの CaseCollection

        Raises:
            CaseLoadError: ファイル不在、構文エラー、スキーマ検証エラーの場合
        """
        path = Path(path)
        data = self._read(path)
        collection = self.parse(data, default_suite=path.stem)
        if suite_name:
            collection.suite = collection.suite.model_copy(update={"name": suite_name})
        logger.debug(
            "テストケースを読み込みました: %s (%d 件)", path, len(collection.test_cases),
        )
        return collection

    def parse(self, data: Any, default_suite: str = "suite") -> CaseCollection:
        """読み込み済みのデータを CaseCollection に変換する。

        Raises:
            CaseLoadError: スキーマ検証エラーの場合
        """
        try:
            return CaseCollection.model_validate(self._normalize(data, default_suite))
        except PydanticValidationError as e:
            raise CaseLoadError(f"スキーマ検証エラー: {e}") from e

    # ----- validate -----

    def validate(self, path: Path) -> list[CaseValidationError]:
        """ファイルのスキーマ検証を行い、違反箇所を報告する。

        Args:
            path: 検証するファイルのパス

        Returns:
            検出されたバリデーションエラーのリスト（問題なしなら空）
        """
        path = Path(path)
        errors: list[CaseValidationError] = []

        if not path.exists():
            errors.append(CaseValidationError(
                message=f"ファイルが見つかりません: {path}",
                location="file",
            ))
            return errors

        try:
            data = self._read(path)
        except CaseLoadError as e:
            errors.append(CaseValidationError(
                message=e.detail,
                location="syntax",
                line=e.line,
            ))
            return errors

        try:
            normalized = self._normalize(data, path.stem)
        except CaseLoadError as e:
            errors.append(CaseValidationError(message=e.detail, location="root"))
            return errors

        try:
            CaseCollection.model_validate(normalized)
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                location = " -> ".join(loc_parts) if loc_parts else "unknown"
                errors.append(CaseValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=location,
                ))

        return errors

    # ----- 内部処理 -----

    def _read(self, path: Path) -> Any:
        """ファイルを読み込み、素の dict/list を返す。"""
        if not path.exists():
            raise CaseLoadError(f"ファイルが見つかりません: {path}")

        text = path.read_text(encoding="utf-8")
        if not text.strip():
            raise CaseLoadError(f"ファイルが空です: {path}")

        if path.suffix.lower() in _JSON_SUFFIXES:
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise CaseLoadError(
                    f"JSON 構文エラー (行 {e.lineno}, 列 {e.colno}): {e.msg}",
                    line=e.lineno,
                ) from e

        try:
            return self._yaml.load(text)
        except YAMLError as e:
            line = None
            line_info = ""
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line = mark.line + 1
                line_info = f" (行 {line}, 列 {mark.column + 1})"
            raise CaseLoadError(f"YAML 構文エラー{line_info}: {e}", line=line) from e

    @staticmethod
    def _normalize(data: Any, default_suite: str) -> dict[str, Any]:
        """受け付ける入力形を {suite, test_cases} 形式にそろえる。"""
        if data is None:
            raise CaseLoadError("テストケースが含まれていません")

        if isinstance(data, list):
            return {"suite": {"name": default_suite}, "test_cases": data}

        if not isinstance(data, dict):
            raise CaseLoadError(
                f"トップレベルは配列またはオブジェクトである必要があります: {type(data).__name__}"
            )

        if "test_cases" in data or "testCases" in data:
            suite = data.get("suite") or {}
            if isinstance(suite, str):
                suite = {"name": suite}
            suite = dict(suite)
            suite.setdefault("name", default_suite)
            cases = data.get("test_cases", data.get("testCases")) or []
            return {"suite": suite, "test_cases": cases}

        if "steps" in data or "test_steps" in data:
            return {"suite": {"name": default_suite}, "test_cases": [data]}

        raise CaseLoadError("test_cases 配列または steps を持つテストケースが見つかりません")


def load_cases(path: Path, suite_name: Optional[str] = None) -> CaseCollection:
    """CaseLoader().load() の簡易ラッパー。"""
    return CaseLoader().load(path, suite_name=suite_name)
