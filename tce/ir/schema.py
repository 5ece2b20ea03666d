"""
IR スキーマ定義 — プラットフォーム非依存のテストケースモデル

外部のオーサリング基盤が作成したテストケースを Pydantic v2 モデルとして表現する。
全エミッターはこの IR だけを入力とし、フレームワーク固有の成果物へ変換する。

主なモデル:
  - Assertion: ステップ単位の検証（visible / text / url / value など）
  - Step: 1ステップ（自由記述の action と任意の構造化メタデータ）
  - ApiSpec: API テスト用のリクエスト定義（automation_metadata.api 由来）
  - TestCase: テストケース本体（ステップ順序は step_number で決まる）
  - SuiteMeta: スイート名と ID（ファイル名・アーカイブ名の生成に使用）

入力の揺れ（文字列だけのステップ、expected_result の単数形、
automation_metadata によるステップ補足など）は before バリデータで吸収する。
"""

from __future__ import annotations

import hashlib
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# 列挙値
# ---------------------------------------------------------------------------

ActionType = Literal[
    "navigate",
    "click",
    "fill",
    "type",
    "check",
    "uncheck",
    "select",
    "upload",
    "wait",
    "verify",
    "hover",
    "press",
]

AssertionType = Literal[
    "visible",
    "hidden",
    "text",
    "exact-text",
    "value",
    "url",
    "title",
    "count",
    "enabled",
    "disabled",
    "checked",
    "attribute",
]

Priority = Literal["low", "medium", "high", "critical"]

ApiMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

_ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})
_PRIORITIES = frozenset({"low", "medium", "high", "critical"})


def _blank_to_none(value: Any) -> Any:
    """空白のみの文字列を None に正規化する。"""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _as_text_list(value: Any) -> list[str]:
    """文字列または文字列リストを、空要素を除いたリストに正規化する。"""
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


def _safe_record(value: Any) -> Optional[dict[str, str]]:
    """dict を str → str のマップに正規化する。空キー・None 値は除外する。"""
    if not isinstance(value, dict):
        return None
    out = {str(k): str(v) for k, v in value.items() if k and v is not None}
    return out or None


# ---------------------------------------------------------------------------
# Assertion
# ---------------------------------------------------------------------------

class Assertion(BaseModel):
    """ステップに付随する検証。

    target を省略した場合はステップ自身の selector を対象とする。
    """

    model_config = ConfigDict(extra="ignore")

    type: AssertionType = Field(..., description="検証種別")
    target: Optional[str] = Field(default=None, description="検証対象セレクタ")
    value: Any = Field(default=None, description="期待値")
    attribute: Optional[str] = Field(default=None, description="attribute 検証時の属性名")

    @field_validator("target", mode="before")
    @classmethod
    def _strip_target(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def resolved_target(self, step_selector: Optional[str]) -> Optional[str]:
        """検証対象セレクタを返す（未指定ならステップの selector）。"""
        return self.target or step_selector


# ---------------------------------------------------------------------------
# Step
# ---------------------------------------------------------------------------

class Step(BaseModel):
    """テストケースの1ステップ。

    action_type が指定されている場合はそれが最優先で、テキスト分類は行わない。
    未指定の場合は action テキストから分類器が操作を推定する。
    """

    model_config = ConfigDict(extra="ignore")

    step_number: Optional[int] = Field(default=None, ge=1, description="1始まりのステップ番号")
    action: str = Field(default="", description="操作の自由記述")
    expected: str = Field(default="", description="期待結果の自由記述")
    action_type: Optional[ActionType] = Field(default=None, description="明示的な操作種別")
    selector: Optional[str] = Field(default=None, description="明示的なセレクタ")
    input_value: Optional[str] = Field(default=None, description="入力値・遷移先など")
    wait_time: Optional[int] = Field(default=None, ge=0, description="待機時間（ミリ秒）")
    assertion: Optional[Assertion] = Field(default=None, description="ステップの検証")

    @field_validator("action", "expected", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("action_type", mode="before")
    @classmethod
    def _normalize_action_type(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return v.lower() if isinstance(v, str) else v

    @field_validator("selector", mode="before")
    @classmethod
    def _strip_selector(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("input_value", mode="before")
    @classmethod
    def _stringify_input(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("wait_time", mode="before")
    @classmethod
    def _coerce_wait_time(cls, v: Any) -> Any:
        if isinstance(v, float):
            return int(v)
        return v


# ---------------------------------------------------------------------------
# ApiSpec
# ---------------------------------------------------------------------------

class ApiAuth(BaseModel):
    """API 認証方式。変数名は各ツールの変数構文に埋め込まれる。"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: Literal["none", "bearer", "apiKey", "basic", "oauth2"] = "none"
    token_var: str = Field(default="token", alias="tokenVar")
    header_name: str = Field(default="x-api-key", alias="headerName")
    api_key_var: str = Field(default="apiKey", alias="apiKeyVar")
    username_var: str = Field(default="username", alias="usernameVar")
    password_var: str = Field(default="password", alias="passwordVar")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        lowered = str(v or "none").strip().lower()
        return {"apikey": "apiKey"}.get(lowered, lowered)


class ApiSpec(BaseModel):
    """API テストケースのリクエスト定義。

    method は許可リスト外なら GET、path は先頭 / を補う。
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    method: ApiMethod = "GET"
    path: str = "/"
    headers: Optional[dict[str, str]] = None
    query: Optional[dict[str, str]] = None
    body: Any = None
    auth: Optional[ApiAuth] = None
    expected_status: Optional[int] = Field(default=None, alias="expectedStatus")

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, v: Any) -> str:
        upper = str(v or "").strip().upper()
        return upper if upper in _ALLOWED_METHODS else "GET"

    @field_validator("path", mode="before")
    @classmethod
    def _normalize_path(cls, v: Any) -> str:
        s = str(v or "").strip()
        if not s:
            return "/"
        return s if s.startswith("/") else f"/{s}"

    @field_validator("headers", "query", mode="before")
    @classmethod
    def _normalize_record(cls, v: Any) -> Optional[dict[str, str]]:
        return _safe_record(v)

    @field_validator("expected_status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return int(v)


# ---------------------------------------------------------------------------
# TestCase
# ---------------------------------------------------------------------------

class TestCase(BaseModel):
    """テストケース本体。

    steps の並びは step_number 昇順が正で、同番号は元の配列位置で安定に並ぶ。
    ordered_steps() が全エミッター共通の並び順を返す。
    """

    __test__: ClassVar[bool] = False

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default="", description="テストケース ID")
    title: str = Field(default="Untitled test case", description="タイトル")
    description: str = Field(default="", description="説明")
    preconditions: list[str] = Field(default_factory=list, description="事前条件")
    steps: list[Step] = Field(default_factory=list, description="ステップ配列")
    expected_results: list[str] = Field(default_factory=list, description="期待結果")
    is_edge_case: bool = False
    is_negative_test: bool = False
    is_security_test: bool = False
    is_boundary_test: bool = False
    priority: Priority = "medium"
    test_type: str = "functional"
    tags: list[str] = Field(default_factory=list)
    api: Optional[ApiSpec] = Field(default=None, description="API リクエスト定義")
    base_url: Optional[str] = Field(default=None, description="テスト対象のベース URL")

    @model_validator(mode="before")
    @classmethod
    def _absorb_aliases(cls, data: Any) -> Any:
        """入力形式の揺れを正規のフィールドへ寄せる。

        - test_steps → steps
        - expected_result（単数形）→ expected_results
        - automation_metadata.api → api
        - automation_metadata.steps[i] を steps[i] にマージ
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "steps" not in data and "test_steps" in data:
            data["steps"] = data.pop("test_steps")
        if "expected_results" not in data and "expected_result" in data:
            data["expected_results"] = data.pop("expected_result")

        meta = data.pop("automation_metadata", None)
        if isinstance(meta, dict):
            if data.get("api") is None and isinstance(meta.get("api"), dict):
                data["api"] = meta["api"]
            meta_steps = meta.get("steps")
            if isinstance(meta_steps, list) and isinstance(data.get("steps"), list):
                merged = []
                for idx, raw in enumerate(data["steps"]):
                    step = {"action": raw} if isinstance(raw, str) else dict(raw or {})
                    extra = meta_steps[idx] if idx < len(meta_steps) else None
                    if isinstance(extra, dict):
                        for key, value in extra.items():
                            step.setdefault(key, value)
                    merged.append(step)
                data["steps"] = merged
        return data

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            # {"1": {...}, "2": {...}} 形式
            v = list(v.values())
        if isinstance(v, list):
            return [{"action": item} if isinstance(item, str) else item for item in v]
        return v

    @field_validator("preconditions", "expected_results", "tags", mode="before")
    @classmethod
    def _coerce_text_list(cls, v: Any) -> list[str]:
        return _as_text_list(v)

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, v: Any) -> str:
        text = "" if v is None else str(v).strip()
        return text or "Untitled test case"

    @field_validator("description", "test_type", mode="before")
    @classmethod
    def _coerce_optional_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, v: Any) -> str:
        lowered = str(v or "").strip().lower()
        return lowered if lowered in _PRIORITIES else "medium"

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return "" if v is None else str(v)

    def ordered_steps(self) -> list[Step]:
        """step_number 昇順（同番号は元の配列位置順）に並べたステップを返す。

        step_number 未設定のステップは「配列位置 + 1」を番号として補う。
        返すステップは step_number が必ず埋まったコピーで、元のモデルは変更しない。
        """
        keyed = []
        for position, step in enumerate(self.steps):
            number = step.step_number if step.step_number is not None else position + 1
            keyed.append((number, position, step))
        keyed.sort(key=lambda item: (item[0], item[1]))
        return [
            step if step.step_number == number else step.model_copy(update={"step_number": number})
            for number, _, step in keyed
        ]

    @property
    def flag_labels(self) -> list[str]:
        """分類フラグをラベル文字列のリストで返す。"""
        labels = []
        if self.is_negative_test:
            labels.append("negative-test")
        if self.is_security_test:
            labels.append("security-test")
        if self.is_boundary_test:
            labels.append("boundary-test")
        if self.is_edge_case:
            labels.append("edge-case")
        return labels


# ---------------------------------------------------------------------------
# SuiteMeta
# ---------------------------------------------------------------------------

class SuiteMeta(BaseModel):
    """スイートのメタ情報。"""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="suite", description="スイート名")
    id: Optional[str] = Field(default=None, description="スイート ID")
    description: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, v: Any) -> str:
        text = "" if v is None else str(v).strip()
        return text or "suite"

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        return _blank_to_none(None if v is None else str(v))

    def id_fragment(self) -> str:
        """アーカイブ名に使う8文字の ID 断片を返す。

        ID が無い場合はスイート名の SHA-1 先頭8桁を使い、同じ入力から常に同じ値を得る。
        """
        if self.id:
            return "".join(ch for ch in self.id.lower() if ch.isalnum())[:8] or "00000000"
        return hashlib.sha1(self.name.encode("utf-8")).hexdigest()[:8]


class CaseCollection(BaseModel):
    """入力ファイル1つ分（スイート + テストケース配列）。"""

    suite: SuiteMeta = Field(default_factory=SuiteMeta)
    test_cases: list[TestCase] = Field(default_factory=list)
