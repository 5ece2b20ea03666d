"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
時刻に依存する出力を比較するため、時計は固定値のものを使う。
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from hypothesis import strategies as st

from tce.config import ExportSettings
from tce.emitters.base import EmitContext, fixed_clock
from tce.ir.schema import ApiSpec, Step, SuiteMeta, TestCase

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def ctx() -> EmitContext:
    """固定時計と既定設定のコンテキスト。"""
    return EmitContext(clock=fixed_clock(FIXED_NOW), settings=ExportSettings())


@pytest.fixture
def suite_meta() -> SuiteMeta:
    return SuiteMeta(name="Login Suite", id="SUITE-0001")


@pytest.fixture
def login_case() -> TestCase:
    """明示的な操作記述だけで構成したログインのケース。

    4ステップとも分類器で解決でき、プレースホルダーは出ない。
    """
    return TestCase(
        id="TC-001",
        title="User can sign in",
        description="Happy path login",
        preconditions=["A registered user exists"],
        priority="high",
        steps=[
            Step(step_number=1, action="Navigate to /login"),
            Step(step_number=2, action='Enter "a@b.com" in the email field'),
            Step(step_number=3, action='Click the "Sign in" button', expected="Dashboard opens"),
            Step(step_number=4, action="Verify the URL contains /dashboard"),
        ],
        expected_results=["The dashboard is shown"],
    )


@pytest.fixture
def vague_case() -> TestCase:
    """検証内容を推定できないステップを含むケース。"""
    return TestCase(
        title="Page smoke",
        steps=[
            Step(step_number=1, action="Navigate to https://shop.example.com/"),
            Step(step_number=2, action="Verify the page loads"),
        ],
    )


@pytest.fixture
def api_case() -> TestCase:
    """ApiSpec を持つケース。"""
    return TestCase(
        id="TC-API-1",
        title="Create user",
        description="POST a new user",
        api=ApiSpec(
            method="post",
            path="users",
            headers={"X-Trace": "1"},
            query={"dryRun": "true"},
            body={"name": "Alice"},
            auth={"type": "bearer", "tokenVar": "authToken"},
            expectedStatus=201,
        ),
        expected_results=["User is created"],
    )


@pytest.fixture
def sample_cases_dict() -> dict:
    """ローダーが受け付ける {suite, test_cases} 形式の辞書データ。"""
    return {
        "suite": {"name": "Checkout", "id": "abc-123"},
        "test_cases": [
            {
                "id": "TC-1",
                "title": "Add to cart",
                "priority": "HIGH",
                "test_steps": [
                    "Navigate to /products",
                    {"action": 'Click the "Add to cart" button', "expected": "Badge shows 1"},
                ],
                "expected_result": "Cart has one item",
            },
        ],
    }


@pytest.fixture
def sample_yaml_content() -> str:
    """サンプルのテストケース YAML 文字列。"""
    return """\
suite:
  name: Sample suite
test_cases:
  - id: TC-001
    title: User can sign in
    steps:
      - action: Navigate to /login
      - action: Enter "user@example.com" into the email field
      - action: Click the "Sign in" button
      - action: Verify the URL contains /dashboard
    expected_result: The dashboard is shown
"""


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー（ファクトリ関数）
# ---------------------------------------------------------------------------

_ACTION_PHRASES = [
    "Navigate to /home",
    "Open https://example.com/login",
    'Click the "Save" button',
    'Enter "bob" in the username field',
    "Check the terms checkbox",
    'Select "Japan" from the country dropdown',
    'Upload "avatar.png"',
    "Wait 3 seconds",
    'Verify "Welcome" is visible',
    "Verify the page loads",
    "Something entirely vague",
    "",
]


def make_action_text_strategy():
    """既知の言い回しと任意テキストを混ぜた action テキストを生成する。"""
    return st.one_of(
        st.sampled_from(_ACTION_PHRASES),
        st.text(max_size=80),
    )


def make_step_strategy():
    """Step を生成する Hypothesis ストラテジー。"""
    return st.builds(
        Step,
        step_number=st.one_of(st.none(), st.integers(min_value=1, max_value=20)),
        action=make_action_text_strategy(),
        expected=st.text(max_size=40),
    )


def make_test_case_strategy(max_steps: int = 6):
    """TestCase を生成する Hypothesis ストラテジー。"""
    return st.builds(
        TestCase,
        title=st.text(min_size=1, max_size=40),
        description=st.text(max_size=60),
        steps=st.lists(make_step_strategy(), max_size=max_steps),
        is_negative_test=st.booleans(),
        tags=st.lists(st.text(min_size=1, max_size=10), max_size=3),
    )
