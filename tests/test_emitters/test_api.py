"""
API エミッターのユニットテスト

ApiSpec を持たないケースの除外と警告、各形式の構造、0件時の妥当な空出力を検証する。
"""

from __future__ import annotations

import json

import pytest
from ruamel.yaml import YAML

from tce.emitters.api import emit_insomnia, emit_karate, emit_openapi, emit_postman
from tce.emitters.base import EmitContext
from tce.ir.schema import ApiSpec, TestCase


def _rules(artifact) -> list[str]:
    return [f.rule for f in artifact.findings]


class TestPostman:
    """emit_postman() のテスト。"""

    def test_collection(self, api_case: TestCase, ctx: EmitContext):
        data = json.loads(emit_postman([api_case], "Users API", ctx).content)

        assert data["info"]["schema"].endswith("/v2.1.0/collection.json")
        assert data["variable"] == [{"key": "baseUrl", "value": "http://localhost:3000"}]
        item = data["item"][0]
        assert item["name"] == "Create user"
        request = item["request"]
        assert request["method"] == "POST"
        assert request["url"]["raw"] == "{{baseUrl}}/users"
        assert request["url"]["path"] == ["users"]
        assert request["url"]["query"] == [{"key": "dryRun", "value": "true"}]
        assert request["auth"]["bearer"][0]["value"] == "{{authToken}}"
        assert json.loads(request["body"]["raw"]) == {"name": "Alice"}
        assert "pm.response.to.have.status(201);" in item["event"][0]["script"]["exec"][1]

    def test_missing_api_is_skipped_with_warning(self, api_case: TestCase, login_case: TestCase,
                                                 ctx: EmitContext):
        """API 定義の無いケースは除外され、件数付きの警告が残ること。"""
        artifact = emit_postman([login_case, api_case], "S", ctx)

        assert len(json.loads(artifact.content)["item"]) == 1
        assert _rules(artifact) == ["missing-api-spec"]
        assert "1 件" in artifact.findings[0].message

    def test_empty_input_is_valid(self, ctx: EmitContext):
        artifact = emit_postman([], "S", ctx)
        assert json.loads(artifact.content)["item"] == []
        assert artifact.findings == []


class TestKarate:
    """emit_karate() のテスト。"""

    def test_feature(self, api_case: TestCase, ctx: EmitContext):
        content = emit_karate([api_case], "Users API", ctx).content

        assert content.startswith("Feature: Users API")
        assert "  Scenario: Create user" in content
        assert "    * header Authorization = 'Bearer ' + authToken" in content
        assert "    * header X-Trace = '1'" in content
        assert "    Given path '/users'" in content
        assert "    And param dryRun = 'true'" in content
        assert "    When method post" in content
        assert "    Then status 201" in content
        assert "    # - User is created" in content

    def test_default_status(self, ctx: EmitContext):
        case = TestCase(title="Ping", api=ApiSpec(path="/ping"))
        assert "Then status 200" in emit_karate([case], "S", ctx).content

    @pytest.mark.parametrize("auth, expected", [
        ({"type": "bearer", "tokenVar": "my-token"}, "'Bearer ' + token"),
        ({"type": "apiKey", "apiKeyVar": "api key"}, "x-api-key = apiKey"),
        ({"type": "basic", "usernameVar": "1user", "passwordVar": "pass'word"},
         "karate.toBase64(username + ':' + password)"),
    ])
    def test_invalid_variable_names_fall_back(self, auth: dict, expected: str, ctx: EmitContext):
        """識別子でない変数名は既定名に戻し、警告を記録すること。"""
        case = TestCase(title="Auth", api=ApiSpec(path="/me", auth=auth))
        artifact = emit_karate([case], "S", ctx)

        assert expected in artifact.content
        assert set(_rules(artifact)) == {"invalid-variable-name"}

    def test_valid_variable_names_are_kept(self, ctx: EmitContext):
        case = TestCase(title="Auth", api=ApiSpec(path="/me", auth={"type": "basic", "usernameVar": "_user1"}))
        artifact = emit_karate([case], "S", ctx)

        assert "karate.toBase64(_user1 + ':' + password)" in artifact.content
        assert artifact.findings == []


class TestOpenApi:
    """emit_openapi() のテスト。"""

    def test_document(self, api_case: TestCase, ctx: EmitContext):
        spec = YAML(typ="safe").load(emit_openapi([api_case], "Users API", ctx).content)

        assert spec["openapi"] == "3.0.0"
        operation = spec["paths"]["/users"]["post"]
        assert operation["operationId"] == "TC-API-1"
        assert operation["parameters"][0]["name"] == "dryRun"
        assert operation["requestBody"]["content"]["application/json"]["schema"]["example"] == {"name": "Alice"}
        assert operation["security"] == [{"bearerAuth": []}]
        assert "201" in operation["responses"]
        assert spec["components"]["securitySchemes"]["bearerAuth"]["scheme"] == "bearer"

    def test_duplicate_operation(self, ctx: EmitContext):
        """同じ path・method の2件目は除外され警告が残ること。"""
        cases = [
            TestCase(title="First", api=ApiSpec(method="GET", path="/items")),
            TestCase(title="Second", api=ApiSpec(method="GET", path="/items?page=2")),
        ]
        artifact = emit_openapi(cases, "S", ctx)
        spec = YAML(typ="safe").load(artifact.content)

        assert spec["paths"]["/items"]["get"]["summary"] == "First"
        assert _rules(artifact) == ["duplicate-operation"]

    def test_generated_operation_id(self, ctx: EmitContext):
        case = TestCase(title="List", api=ApiSpec(method="GET", path="/a/b"))
        spec = YAML(typ="safe").load(emit_openapi([case], "S", ctx).content)
        assert spec["paths"]["/a/b"]["get"]["operationId"] == "get_a_b"


class TestInsomnia:
    """emit_insomnia() のテスト。"""

    def test_export(self, api_case: TestCase, ctx: EmitContext):
        data = json.loads(emit_insomnia([api_case], "Users API", ctx).content)

        assert data["__export_format"] == 4
        assert data["__export_date"] == "2024-05-01T12:30:00+00:00"
        kinds = [r["_type"] for r in data["resources"]]
        assert kinds == ["workspace", "environment", "request"]
        request = data["resources"][2]
        assert request["url"] == "{{ _.baseUrl }}/users"
        assert {"name": "Authorization", "value": "Bearer {{ _.token }}"} in request["headers"]

    @pytest.mark.parametrize("emitter", [emit_postman, emit_karate, emit_openapi, emit_insomnia])
    def test_same_clock_same_output(self, emitter, api_case: TestCase, ctx: EmitContext):
        assert emitter([api_case], "S", ctx).content == emitter([api_case], "S", ctx).content
