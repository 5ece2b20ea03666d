"""
負荷試験エミッターのユニットテスト

リクエストの導出（API 定義 / 遷移ステップ / 既定値）と、
JMeter・k6・Gatling・Locust の出力構造を検証する。
"""

from __future__ import annotations

import ast
import xml.etree.ElementTree as ET

import pytest

from tce.emitters.base import EmitContext, LintFinding
from tce.emitters.performance import (
    LoadRequest,
    collect_requests,
    emit_gatling,
    emit_jmeter,
    emit_k6,
    emit_locust,
)
from tce.errors import EmptyInputError
from tce.ir.schema import Step, TestCase


def _rules(artifact) -> list[str]:
    return [f.rule for f in artifact.findings]


def _string_prop(element: ET.Element, name: str) -> str:
    return element.find(f"stringProp[@name='{name}']").text


class TestCollectRequests:
    """collect_requests() のテスト。"""

    def test_api_and_navigation_in_order(self, api_case: TestCase, login_case: TestCase,
                                         vague_case: TestCase):
        findings: list[LintFinding] = []
        requests = collect_requests([login_case, api_case, vague_case], findings, "k6")

        assert [(r.method, r.path) for r in requests] == [
            ("GET", "/login"),
            ("POST", "/users"),
            ("GET", "https://shop.example.com/"),
        ]
        assert requests[1].body == '{"name": "Alice"}'
        assert requests[1].expected_status == 201
        assert requests[2].is_absolute
        assert findings == []

    def test_default_request(self):
        """リクエストを導出できなければ GET / と警告を返すこと。"""
        findings: list[LintFinding] = []
        requests = collect_requests([TestCase(title="Nothing")], findings, "k6")

        assert requests == [LoadRequest(name="Home", method="GET", path="/")]
        assert [f.rule for f in findings] == ["default-request"]


class TestJMeter:
    """emit_jmeter() のテスト。"""

    def test_plan(self, login_case: TestCase, api_case: TestCase, ctx: EmitContext):
        artifact = emit_jmeter([login_case, api_case], "Login Suite", ctx)
        root = ET.fromstring(artifact.content.encode("utf-8"))

        samplers = root.findall(".//HTTPSamplerProxy")
        assert [s.get("testname") for s in samplers] == ["User can sign in", "Create user"]
        assert _string_prop(samplers[0], "HTTPSampler.path") == "/login"
        assert _string_prop(samplers[0], "HTTPSampler.domain") == "localhost"
        assert _string_prop(samplers[1], "HTTPSampler.method") == "POST"

        group = root.find(".//ThreadGroup")
        assert _string_prop(group, "ThreadGroup.num_threads") == "10"
        assert _string_prop(group, "ThreadGroup.duration") == "30"
        assert _string_prop(group, "ThreadGroup.ramp_time") == "10"
        assert root.find(".//ResponseAssertion") is not None

    def test_zero_cases_is_valid_plan(self, ctx: EmitContext):
        """0件でも既定リクエスト1件の妥当なプランになること。"""
        artifact = emit_jmeter([], "Empty", ctx)
        root = ET.fromstring(artifact.content.encode("utf-8"))

        assert len(root.findall(".//HTTPSamplerProxy")) == 1
        assert _rules(artifact) == ["default-request"]


class TestScripts:
    """k6 / Gatling / Locust のテスト。"""

    def test_k6(self, login_case: TestCase, api_case: TestCase, ctx: EmitContext):
        content = emit_k6([login_case, api_case], "Login Suite", ctx).content

        assert "const BASE_URL = __ENV.BASE_URL || 'http://localhost:3000';" in content
        assert "{ duration: '30s', target: 10 }," in content
        assert "const res = http.request('GET', BASE_URL + '/login', null, {" in content
        assert "withQuery(BASE_URL + '/users', { 'dryRun': 'true' })" in content
        assert "(r) => r.status === 201" in content

    def test_gatling(self, login_case: TestCase, ctx: EmitContext):
        content = emit_gatling([login_case], "Login Suite", ctx).content

        assert "class LoginSuiteSimulation extends Simulation {" in content
        assert '.httpRequest("GET", "/login")' in content
        assert "constantConcurrentUsers(10).during(30.seconds)" in content
        assert content.count("(") == content.count(")")

    def test_locust_is_valid_python(self, login_case: TestCase, api_case: TestCase, ctx: EmitContext):
        content = emit_locust([login_case, api_case], "Login Suite", ctx).content

        tree = ast.parse(content)
        classes = [node for node in tree.body if isinstance(node, ast.ClassDef)]
        assert [c.name for c in classes] == ["LoginSuiteUser"]
        methods = [node.name for node in classes[0].body if isinstance(node, ast.FunctionDef)]
        assert methods == ["task_001_user_can_sign_in", "task_002_create_user"]

    @pytest.mark.parametrize("emitter", [emit_k6, emit_gatling, emit_locust])
    def test_empty_input_raises(self, emitter, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            emitter([], "S", ctx)


class TestInvalidPort:
    """ポートが数値でない URL でも生成を中断しないこと。"""

    @pytest.fixture
    def bad_port_case(self) -> TestCase:
        return TestCase(title="Bad port", steps=[Step(action="Navigate to http://example.com:abc/")])

    def test_collect_requests_warns(self, bad_port_case: TestCase):
        findings: list[LintFinding] = []
        requests = collect_requests([bad_port_case], findings, "k6")

        assert len(requests) == 1
        assert ":abc" in requests[0].path
        assert [f.rule for f in findings] == ["invalid-port"]

    def test_jmeter_leaves_port_empty(self, bad_port_case: TestCase, ctx: EmitContext):
        artifact = emit_jmeter([bad_port_case], "S", ctx)
        sampler = ET.fromstring(artifact.content.encode("utf-8")).find(".//HTTPSamplerProxy")

        assert not _string_prop(sampler, "HTTPSampler.port")
        assert _string_prop(sampler, "HTTPSampler.domain") == "example.com"
        assert _rules(artifact) == ["invalid-port"]

    def test_jmeter_numeric_port_is_kept(self, ctx: EmitContext):
        case = TestCase(title="Port", steps=[Step(action="Navigate to http://example.com:8080/app")])
        sampler = ET.fromstring(emit_jmeter([case], "S", ctx).content.encode("utf-8")).find(".//HTTPSamplerProxy")

        assert _string_prop(sampler, "HTTPSampler.port") == "8080"

    @pytest.mark.parametrize("emitter", [emit_k6, emit_gatling, emit_locust])
    def test_scripts_warn(self, emitter, bad_port_case: TestCase, ctx: EmitContext):
        artifact = emitter([bad_port_case], "S", ctx)
        assert "invalid-port" in _rules(artifact)
