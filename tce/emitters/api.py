"""
API エミッター — Postman / Karate / OpenAPI / Insomnia の生成

ApiSpec を持つテストケースだけを対象とし、持たないケースは件数を警告に残して除外する。
対象が0件でも各形式として妥当な空の成果物を返す（例外は送出しない）。

主な機能:
  - emit_postman: Postman Collection v2.1（{{baseUrl}} 変数、認証、ステータス検証スクリプト）
  - emit_karate: Karate の Feature ファイル
  - emit_openapi: OpenAPI 3.0.0（ruamel.yaml で YAML 出力）
  - emit_insomnia: Insomnia エクスポート形式 v4
"""

from __future__ import annotations

import io
import json
import logging
import re
from typing import Any, Optional

from ruamel.yaml import YAML

from tce.ir.schema import ApiAuth, ApiSpec, TestCase

from .base import (
    EmitContext,
    EmittedArtifact,
    LintFinding,
    build_artifact,
    ensure_context,
    warning,
)
from .escaping import comment_text, gherkin_text, karate_string
from .formats import ExportFormat

logger = logging.getLogger(__name__)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_IDENTIFIER = re.compile(r"[A-Za-z_]\w*")


def _api_cases(
    test_cases: list[TestCase], findings: list[LintFinding], fmt: str,
) -> list[tuple[TestCase, ApiSpec]]:
    """ApiSpec を持つケースを元の順序のまま取り出す。"""
    valid = [(case, case.api) for case in test_cases if case.api is not None]
    skipped = len(test_cases) - len(valid)
    if skipped:
        findings.append(warning(
            "missing-api-spec",
            f"{fmt}: API 定義の無いテストケース {skipped} 件を除外しました",
        ))
    return valid


def _auth_kind(auth: Optional[ApiAuth]) -> str:
    """oauth2 は bearer として扱う。"""
    if auth is None:
        return "none"
    return "bearer" if auth.type == "oauth2" else auth.type


def _body_json(body: Any) -> str:
    return json.dumps(body, indent=2, ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Postman
# ---------------------------------------------------------------------------

def _postman_auth(auth: Optional[ApiAuth]) -> Optional[dict[str, Any]]:
    kind = _auth_kind(auth)
    if kind == "bearer":
        return {
            "type": "bearer",
            "bearer": [{"key": "token", "value": f"{{{{{auth.token_var}}}}}", "type": "string"}],
        }
    if kind == "apiKey":
        return {
            "type": "apikey",
            "apikey": [
                {"key": "key", "value": auth.header_name, "type": "string"},
                {"key": "value", "value": f"{{{{{auth.api_key_var}}}}}", "type": "string"},
                {"key": "in", "value": "header", "type": "string"},
            ],
        }
    if kind == "basic":
        return {
            "type": "basic",
            "basic": [
                {"key": "username", "value": f"{{{{{auth.username_var}}}}}", "type": "string"},
                {"key": "password", "value": f"{{{{{auth.password_var}}}}}", "type": "string"},
            ],
        }
    return None


def _postman_item(case: TestCase, api: ApiSpec) -> dict[str, Any]:
    request: dict[str, Any] = {
        "method": api.method,
        "header": [{"key": k, "value": v} for k, v in (api.headers or {}).items()],
        "url": {
            "raw": f"{{{{baseUrl}}}}{api.path}",
            "host": ["{{baseUrl}}"],
            "path": [segment for segment in api.path.split("?")[0].split("/") if segment],
            "query": [{"key": k, "value": v} for k, v in (api.query or {}).items()],
        },
        "description": case.description,
    }
    auth = _postman_auth(api.auth)
    if auth is not None:
        request["auth"] = auth
    if api.body is not None:
        request["body"] = {
            "mode": "raw",
            "raw": _body_json(api.body),
            "options": {"raw": {"language": "json"}},
        }

    item: dict[str, Any] = {"name": case.title, "request": request, "response": []}
    if api.expected_status is not None:
        status = api.expected_status
        item["event"] = [{
            "listen": "test",
            "script": {
                "type": "text/javascript",
                "exec": [
                    f"pm.test(\"Status code is {status}\", function () {{",
                    f"    pm.response.to.have.status({status});",
                    "});",
                ],
            },
        }]
    return item


def emit_postman(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Postman Collection v2.1 を生成する。"""
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    valid = _api_cases(test_cases, findings, "postman")

    collection = {
        "info": {
            "name": suite_name,
            "description": "API test collection",
            "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json",
        },
        "variable": [{"key": "baseUrl", "value": ctx.settings.base_url}],
        "item": [_postman_item(case, api) for case, api in valid],
    }
    content = json.dumps(collection, indent=2, ensure_ascii=False) + "\n"
    return build_artifact(content, suite_name, ExportFormat.POSTMAN, ctx, findings)


# ---------------------------------------------------------------------------
# Karate
# ---------------------------------------------------------------------------

def _karate_name(name: str) -> str:
    """header / param 名に使えない空白と = を除く。"""
    return "".join(ch for ch in name if not ch.isspace() and ch != "=")


def _karate_var(case: TestCase, auth: ApiAuth, field: str, findings: list[LintFinding]) -> str:
    """認証変数名を返す。Karate の識別子でなければ既定名に戻して警告する。"""
    name = getattr(auth, field)
    if _IDENTIFIER.fullmatch(name):
        return name
    default = ApiAuth.model_fields[field].default
    findings.append(warning(
        "invalid-variable-name",
        f"{case.title}: 変数名 {name!r} は識別子ではないため {default} を使用しました",
    ))
    return default


def _karate_scenario(case: TestCase, api: ApiSpec, findings: list[LintFinding]) -> list[str]:
    lines = [f"  Scenario: {gherkin_text(case.title)}"]
    if case.description:
        lines.append(f"    # {comment_text(case.description)}")

    kind = _auth_kind(api.auth)
    if kind == "bearer":
        token = _karate_var(case, api.auth, "token_var", findings)
        lines.append(f"    * header Authorization = 'Bearer ' + {token}")
    elif kind == "apiKey":
        key = _karate_var(case, api.auth, "api_key_var", findings)
        lines.append(f"    * header {_karate_name(api.auth.header_name)} = {key}")
    elif kind == "basic":
        username = _karate_var(case, api.auth, "username_var", findings)
        password = _karate_var(case, api.auth, "password_var", findings)
        lines.append(
            "    * header Authorization = 'Basic ' + "
            f"karate.toBase64({username} + ':' + {password})"
        )

    for name, value in (api.headers or {}).items():
        if name.lower() != "authorization":
            lines.append(f"    * header {_karate_name(name)} = {karate_string(value)}")

    lines.append(f"    Given path {karate_string(api.path)}")
    for name, value in (api.query or {}).items():
        lines.append(f"    And param {_karate_name(name)} = {karate_string(value)}")

    if api.body is not None:
        lines.append("    And request")
        lines.append("      \"\"\"")
        lines.extend(f"      {line}" for line in _body_json(api.body).splitlines())
        lines.append("      \"\"\"")

    lines.append(f"    When method {api.method.lower()}")
    lines.append(f"    Then status {api.expected_status or 200}")

    if case.expected_results:
        lines.append("    # Expected results:")
        lines.extend(f"    # - {comment_text(result)}" for result in case.expected_results)
    return lines


def emit_karate(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Karate DSL の Feature ファイルを生成する。"""
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    valid = _api_cases(test_cases, findings, "karate")

    lines = [
        f"Feature: {gherkin_text(suite_name)}",
        "",
        "  Background:",
        "    * url baseUrl",
        "    * configure headers = { 'Content-Type': 'application/json' }",
    ]
    for case, api in valid:
        lines.append("")
        lines.extend(_karate_scenario(case, api, findings))

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.KARATE, ctx, findings)


# ---------------------------------------------------------------------------
# OpenAPI
# ---------------------------------------------------------------------------

_SECURITY_SCHEMES: dict[str, str] = {
    "bearer": "bearerAuth",
    "apiKey": "apiKeyAuth",
    "basic": "basicAuth",
}


def _operation_id(case: TestCase, api: ApiSpec) -> str:
    if case.id:
        return case.id
    return f"{api.method.lower()}{api.path.replace('/', '_')}"


def _openapi_operation(case: TestCase, api: ApiSpec, suite_name: str) -> dict[str, Any]:
    operation: dict[str, Any] = {
        "summary": case.title,
        "description": case.description,
        "operationId": _operation_id(case, api),
        "tags": [suite_name],
    }
    if api.query:
        operation["parameters"] = [
            {"name": name, "in": "query", "schema": {"type": "string", "example": value}}
            for name, value in api.query.items()
        ]
    if api.body is not None and api.method in _BODY_METHODS:
        operation["requestBody"] = {
            "required": True,
            "content": {"application/json": {"schema": {"type": "object", "example": api.body}}},
        }
    scheme = _SECURITY_SCHEMES.get(_auth_kind(api.auth))
    if scheme:
        operation["security"] = [{scheme: []}]
    operation["responses"] = {
        str(api.expected_status or 200): {
            "description": "Expected response",
            "content": {"application/json": {"schema": {"type": "object"}}},
        },
    }
    return operation


def _security_schemes(valid: list[tuple[TestCase, ApiSpec]]) -> dict[str, Any]:
    schemes: dict[str, Any] = {}
    for _, api in valid:
        kind = _auth_kind(api.auth)
        if kind == "bearer":
            schemes["bearerAuth"] = {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        elif kind == "apiKey":
            schemes["apiKeyAuth"] = {"type": "apiKey", "in": "header", "name": api.auth.header_name}
        elif kind == "basic":
            schemes["basicAuth"] = {"type": "http", "scheme": "basic"}
    return schemes


def emit_openapi(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """OpenAPI 3.0.0 の仕様書（YAML）を生成する。

    同じ path・method のケースが複数ある場合は先に現れたものを採用し、警告を残す。
    """
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    valid = _api_cases(test_cases, findings, "openapi")

    paths: dict[str, dict[str, Any]] = {}
    for case, api in valid:
        path = api.path.split("?")[0]
        method = api.method.lower()
        operations = paths.setdefault(path, {})
        if method in operations:
            findings.append(warning(
                "duplicate-operation",
                f"openapi: {api.method} {path} が重複しているため '{case.title}' を除外しました",
            ))
            continue
        operations[method] = _openapi_operation(case, api, suite_name)

    spec: dict[str, Any] = {
        "openapi": "3.0.0",
        "info": {
            "title": suite_name,
            "version": "1.0.0",
            "description": "API specification generated from a test suite",
        },
        "servers": [{
            "url": "{baseUrl}",
            "variables": {
                "baseUrl": {"default": ctx.settings.base_url, "description": "Base URL for the API"},
            },
        }],
        "paths": paths,
        "components": {"securitySchemes": _security_schemes(valid)},
    }

    yaml = YAML()
    yaml.default_flow_style = False
    buffer = io.StringIO()
    yaml.dump(spec, buffer)
    return build_artifact(buffer.getvalue(), suite_name, ExportFormat.OPENAPI, ctx, findings)


# ---------------------------------------------------------------------------
# Insomnia
# ---------------------------------------------------------------------------

def emit_insomnia(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Insomnia エクスポート形式 v4 の JSON を生成する。

    リソース ID は EmitContext の時刻から作るため、同じ時刻なら同じ出力になる。
    """
    ctx = ensure_context(context)
    findings: list[LintFinding] = []
    valid = _api_cases(test_cases, findings, "insomnia")

    now = ctx.clock()
    stamp = int(now.timestamp() * 1000)
    workspace_id = f"wrk_{stamp}"

    resources: list[dict[str, Any]] = [
        {
            "_id": workspace_id,
            "_type": "workspace",
            "name": suite_name,
            "description": "Exported test suite",
        },
        {
            "_id": f"env_{stamp}",
            "_type": "environment",
            "parentId": workspace_id,
            "name": "Base Environment",
            "data": {
                "baseUrl": ctx.settings.base_url,
                "token": "your-token-here",
                "apiKey": "your-api-key-here",
                "username": "your-username",
                "password": "your-password",
            },
        },
    ]

    for index, (case, api) in enumerate(valid):
        headers = [{"name": k, "value": v} for k, v in (api.headers or {}).items()]
        kind = _auth_kind(api.auth)
        if kind == "bearer":
            headers.append({"name": "Authorization", "value": "Bearer {{ _.token }}"})
        elif kind == "apiKey":
            headers.append({"name": api.auth.header_name, "value": "{{ _.apiKey }}"})

        request: dict[str, Any] = {
            "_id": f"req_{stamp}_{index}",
            "_type": "request",
            "parentId": workspace_id,
            "name": case.title,
            "description": case.description,
            "method": api.method,
            "url": f"{{{{ _.baseUrl }}}}{api.path}",
            "headers": headers,
            "parameters": [{"name": k, "value": v} for k, v in (api.query or {}).items()],
            "body": {},
        }
        if api.body is not None:
            request["body"] = {"mimeType": "application/json", "text": _body_json(api.body)}
        if kind == "basic":
            request["authentication"] = {
                "type": "basic",
                "username": "{{ _.username }}",
                "password": "{{ _.password }}",
            }
        resources.append(request)

    export = {
        "_type": "export",
        "__export_format": 4,
        "__export_date": now.isoformat(),
        "__export_source": "tce",
        "resources": resources,
    }
    content = json.dumps(export, indent=2, ensure_ascii=False) + "\n"
    return build_artifact(content, suite_name, ExportFormat.INSOMNIA, ctx, findings)
