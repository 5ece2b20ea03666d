"""
パフォーマンスエミッター — JMeter / k6 / Gatling / Locust の生成

リクエストは ApiSpec を優先し、無ければ navigate ステップの遷移先を GET として扱う。
1件も得られない場合は既定の GET / を1件置き、警告を記録する。
負荷条件（仮想ユーザー数・継続時間・立ち上げ時間）は ExportSettings から取る。
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import SplitResult, urlsplit

from tce.inference.classifier import classify
from tce.ir.schema import TestCase

from .base import (
    EmitContext,
    EmittedArtifact,
    LintFinding,
    build_artifact,
    ensure_context,
    require_cases,
    slugify,
    warning,
)
from .escaping import comment_text, js_string, python_string, scala_string
from .formats import ExportFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadRequest:
    """負荷試験で送る1リクエスト。

    Attributes:
        name: サンプラー名（ケースのタイトル）
        method: HTTP メソッド
        path: パスまたは絶対 URL
        headers: 追加ヘッダー
        query: クエリパラメータ
        body: JSON 文字列化したボディ（無ければ None）
        expected_status: 期待ステータス（無ければ None）
    """

    name: str
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    expected_status: Optional[int] = None

    @property
    def is_absolute(self) -> bool:
        return self.path.startswith(("http://", "https://"))


def collect_requests(
    test_cases: list[TestCase], findings: list[LintFinding], fmt: str,
) -> list[LoadRequest]:
    """ケース配列から負荷試験のリクエストを元の順序で取り出す。"""
    requests: list[LoadRequest] = []
    for case in test_cases:
        if case.api is not None:
            api = case.api
            requests.append(LoadRequest(
                name=case.title,
                method=api.method,
                path=api.path,
                headers=dict(api.headers or {}),
                query=dict(api.query or {}),
                body=None if api.body is None else json.dumps(api.body, ensure_ascii=False),
                expected_status=api.expected_status,
            ))
            continue
        for step in case.ordered_steps():
            action = classify(step)
            if action.kind == "navigate" and action.url:
                path = action.url if action.url.startswith(("http://", "https://", "/")) else f"/{action.url}"
                requests.append(LoadRequest(name=case.title, method="GET", path=path))

    for request in requests:
        if request.is_absolute and not _port_is_valid(request.path):
            findings.append(warning(
                "invalid-port",
                f"{fmt}: {request.name}: URL のポートが数値ではありません: {request.path}",
            ))

    if not requests:
        findings.append(warning(
            "default-request",
            f"{fmt}: リクエストを導出できないため既定の GET / を使用しました",
        ))
        requests.append(LoadRequest(name="Home", method="GET", path="/"))
    logger.debug("%s: %d 件のリクエストを導出", fmt, len(requests))
    return requests


def _port_is_valid(url: str) -> bool:
    try:
        urlsplit(url).port
    except ValueError:
        return False
    return True


def _port_text(parts: SplitResult) -> str:
    """ポート番号の文字列を返す。数値でないポートは空文字にする（警告は collect_requests が記録する）。"""
    try:
        port = parts.port
    except ValueError:
        return ""
    return "" if port is None else str(port)


def _request_label(index: int, request: LoadRequest) -> str:
    return comment_text(f"Step {index}: {request.method} {request.path} ({request.name})")


# ---------------------------------------------------------------------------
# JMeter
# ---------------------------------------------------------------------------

def _prop(parent: ET.Element, tag: str, name: str, value: Any) -> ET.Element:
    element = ET.SubElement(parent, tag, name=name)
    element.text = str(value).lower() if isinstance(value, bool) else str(value)
    return element


def _jmeter_arguments(parent: ET.Element, name: str, values: dict[str, str], http: bool = False) -> None:
    holder = ET.SubElement(
        parent, "elementProp", name=name, elementType="Arguments",
        guiclass="HTTPArgumentsPanel" if http else "ArgumentsPanel", testclass="Arguments",
    )
    collection = ET.SubElement(holder, "collectionProp", name="Arguments.arguments")
    for key, value in values.items():
        item = ET.SubElement(collection, "elementProp", name=key,
                             elementType="HTTPArgument" if http else "Argument")
        if http:
            _prop(item, "boolProp", "HTTPArgument.always_encode", True)
            _prop(item, "boolProp", "HTTPArgument.use_equals", True)
        _prop(item, "stringProp", "Argument.name", key)
        _prop(item, "stringProp", "Argument.value", value)
        _prop(item, "stringProp", "Argument.metadata", "=")


def _jmeter_sampler(tree: ET.Element, request: LoadRequest, base: Any) -> None:
    target = urlsplit(request.path) if request.is_absolute else base
    path = urlsplit(request.path).path or "/" if request.is_absolute else request.path

    sampler = ET.SubElement(
        tree, "HTTPSamplerProxy", guiclass="HttpTestSampleGui",
        testclass="HTTPSamplerProxy", testname=request.name, enabled="true",
    )
    if request.body is not None:
        _prop(sampler, "boolProp", "HTTPSampler.postBodyRaw", True)
        holder = ET.SubElement(sampler, "elementProp", name="HTTPsampler.Arguments", elementType="Arguments")
        collection = ET.SubElement(holder, "collectionProp", name="Arguments.arguments")
        item = ET.SubElement(collection, "elementProp", name="", elementType="HTTPArgument")
        _prop(item, "boolProp", "HTTPArgument.always_encode", False)
        _prop(item, "stringProp", "Argument.value", request.body)
        _prop(item, "stringProp", "Argument.metadata", "=")
    else:
        _jmeter_arguments(sampler, "HTTPsampler.Arguments", request.query, http=True)
    _prop(sampler, "stringProp", "HTTPSampler.domain", target.hostname or "localhost")
    _prop(sampler, "stringProp", "HTTPSampler.port", _port_text(target))
    _prop(sampler, "stringProp", "HTTPSampler.protocol", target.scheme or "http")
    _prop(sampler, "stringProp", "HTTPSampler.path", path)
    _prop(sampler, "stringProp", "HTTPSampler.method", request.method)
    _prop(sampler, "boolProp", "HTTPSampler.follow_redirects", True)
    _prop(sampler, "boolProp", "HTTPSampler.use_keepalive", True)

    children = ET.SubElement(tree, "hashTree")
    headers = dict(request.headers)
    if request.body is not None:
        headers.setdefault("Content-Type", "application/json")
    if headers:
        manager = ET.SubElement(children, "HeaderManager", guiclass="HeaderPanel",
                                testclass="HeaderManager", testname="HTTP Header Manager", enabled="true")
        collection = ET.SubElement(manager, "collectionProp", name="HeaderManager.headers")
        for key, value in headers.items():
            item = ET.SubElement(collection, "elementProp", name="", elementType="Header")
            _prop(item, "stringProp", "Header.name", key)
            _prop(item, "stringProp", "Header.value", value)
        ET.SubElement(children, "hashTree")
    if request.expected_status is not None:
        assertion = ET.SubElement(children, "ResponseAssertion", guiclass="AssertionGui",
                                  testclass="ResponseAssertion", testname="Status Assertion", enabled="true")
        collection = ET.SubElement(assertion, "collectionProp", name="Asserion.test_strings")
        _prop(collection, "stringProp", str(request.expected_status), request.expected_status)
        _prop(assertion, "stringProp", "Assertion.test_field", "Assertion.response_code")
        _prop(assertion, "intProp", "Assertion.test_type", 8)
        ET.SubElement(children, "hashTree")


def emit_jmeter(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """JMeter のテストプラン（.jmx）を xml.etree で生成する。

    ケースが0件でも既定リクエスト1件を持つ妥当なプランを返す。
    """
    ctx = ensure_context(context)
    settings = ctx.settings
    findings: list[LintFinding] = []
    requests = collect_requests(test_cases, findings, "jmeter")
    base = urlsplit(settings.base_url)
    if not _port_is_valid(settings.base_url):
        findings.append(warning(
            "invalid-port",
            f"jmeter: base_url のポートが数値ではないため無視しました: {settings.base_url}",
        ))

    root = ET.Element("jmeterTestPlan", version="1.2", properties="5.0", jmeter="5.6.3")
    top = ET.SubElement(root, "hashTree")
    plan = ET.SubElement(top, "TestPlan", guiclass="TestPlanGui", testclass="TestPlan",
                         testname=suite_name, enabled="true")
    _prop(plan, "stringProp", "TestPlan.comments", f"{len(test_cases)} test case(s)")
    _prop(plan, "boolProp", "TestPlan.functional_mode", False)
    _prop(plan, "boolProp", "TestPlan.serialize_threadgroups", False)
    _jmeter_arguments(plan, "TestPlan.user_defined_variables", {"BASE_URL": settings.base_url})

    plan_tree = ET.SubElement(top, "hashTree")
    group = ET.SubElement(plan_tree, "ThreadGroup", guiclass="ThreadGroupGui", testclass="ThreadGroup",
                          testname=f"{suite_name} users", enabled="true")
    _prop(group, "stringProp", "ThreadGroup.on_sample_error", "continue")
    controller = ET.SubElement(group, "elementProp", name="ThreadGroup.main_controller",
                               elementType="LoopController", guiclass="LoopControlPanel",
                               testclass="LoopController", testname="Loop Controller", enabled="true")
    _prop(controller, "boolProp", "LoopController.continue_forever", False)
    _prop(controller, "intProp", "LoopController.loops", -1)
    _prop(group, "stringProp", "ThreadGroup.num_threads", settings.vus)
    _prop(group, "stringProp", "ThreadGroup.ramp_time", settings.duration_seconds(settings.ramp_up))
    _prop(group, "boolProp", "ThreadGroup.scheduler", True)
    _prop(group, "stringProp", "ThreadGroup.duration", settings.duration_seconds())
    _prop(group, "stringProp", "ThreadGroup.delay", "")

    group_tree = ET.SubElement(plan_tree, "hashTree")
    for request in requests:
        _jmeter_sampler(group_tree, request, base)

    ET.indent(root, space="  ")
    content = '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"
    return build_artifact(content, suite_name, ExportFormat.JMETER, ctx, findings)


# ---------------------------------------------------------------------------
# k6
# ---------------------------------------------------------------------------

def _k6_request(index: int, request: LoadRequest) -> list[str]:
    if request.is_absolute:
        url = js_string(request.path)
    else:
        url = f"BASE_URL + {js_string(request.path)}"
    if request.query:
        pairs = ", ".join(f"{js_string(k)}: {js_string(v)}" for k, v in request.query.items())
        url = f"withQuery({url}, {{ {pairs} }})"

    headers = dict(request.headers)
    if request.body is not None:
        headers.setdefault("Content-Type", "application/json")
    header_text = ", ".join(f"{js_string(k)}: {js_string(v)}" for k, v in headers.items())
    body = "null" if request.body is None else js_string(request.body)
    status = request.expected_status or 200
    check_name = js_string(f"{request.name}: status is {status}")

    return [
        f"  // {_request_label(index, request)}",
        "  {",
        f"    const res = http.request({js_string(request.method)}, {url}, {body}, {{",
        f"      headers: {{ {header_text} }},",
        f"      tags: {{ name: {js_string(request.name)} }},",
        "    });",
        f"    check(res, {{ {check_name}: (r) => r.status === {status} }});",
        "  }",
        "  sleep(1);",
    ]


def emit_k6(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """k6 の負荷試験スクリプト（JavaScript）を生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "k6")
    ctx = ensure_context(context)
    settings = ctx.settings
    findings: list[LintFinding] = []
    requests = collect_requests(test_cases, findings, "k6")

    lines = [
        "import http from 'k6/http';",
        "import { check, sleep } from 'k6';",
        "",
        f"// Suite: {comment_text(suite_name)}",
        f"const BASE_URL = __ENV.BASE_URL || {js_string(settings.base_url)};",
        "",
        "export const options = {",
        "  stages: [",
        f"    {{ duration: {js_string(settings.ramp_up)}, target: {settings.vus} }},",
        f"    {{ duration: {js_string(settings.duration)}, target: {settings.vus} }},",
        f"    {{ duration: {js_string(settings.ramp_up)}, target: 0 }},",
        "  ],",
        "  thresholds: {",
        "    http_req_duration: ['p(95)<2000'],",
        "    http_req_failed: ['rate<0.01'],",
        "  },",
        "};",
        "",
        "function withQuery(url, params) {",
        "  const query = Object.keys(params)",
        "    .map((k) => `${encodeURIComponent(k)}=${encodeURIComponent(params[k])}`)",
        "    .join('&');",
        "  return query ? `${url}?${query}` : url;",
        "}",
        "",
        "export default function () {",
    ]
    for index, request in enumerate(requests, start=1):
        lines.extend(_k6_request(index, request))
    lines.append("}")

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.K6, ctx, findings)


# ---------------------------------------------------------------------------
# Gatling
# ---------------------------------------------------------------------------

def _class_name(suite_name: str) -> str:
    words = slugify(suite_name, fallback="suite").split("-")
    name = "".join(word[:1].upper() + word[1:] for word in words)
    return name if name[:1].isalpha() else f"Suite{name}"


def _gatling_request(index: int, request: LoadRequest) -> list[str]:
    lines = [
        f"    // {_request_label(index, request)}",
        "    .exec(",
        f"      http({scala_string(request.name)})",
        f"        .httpRequest({scala_string(request.method)}, {scala_string(request.path)})",
    ]
    for key, value in request.query.items():
        lines.append(f"        .queryParam({scala_string(key)}, {scala_string(value)})")
    for key, value in request.headers.items():
        lines.append(f"        .header({scala_string(key)}, {scala_string(value)})")
    if request.body is not None:
        lines.append(f"        .body(StringBody({scala_string(request.body)})).asJson")
    lines.append(f"        .check(status.is({request.expected_status or 200}))")
    lines.append("    )")
    lines.append("    .pause(1)")
    return lines


def emit_gatling(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Gatling のシミュレーション（Scala）を生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "gatling")
    ctx = ensure_context(context)
    settings = ctx.settings
    findings: list[LintFinding] = []
    requests = collect_requests(test_cases, findings, "gatling")

    lines = [
        "import scala.concurrent.duration._",
        "",
        "import io.gatling.core.Predef._",
        "import io.gatling.http.Predef._",
        "",
        f"// Suite: {comment_text(suite_name)}",
        f"class {_class_name(suite_name)}Simulation extends Simulation {{",
        "",
        "  val httpProtocol = http",
        f"    .baseUrl(sys.env.getOrElse(\"BASE_URL\", {scala_string(settings.base_url)}))",
        "    .acceptHeader(\"application/json\")",
        "",
        f"  val scn = scenario({scala_string(suite_name)})",
    ]
    for index, request in enumerate(requests, start=1):
        lines.extend(_gatling_request(index, request))
    lines.extend([
        "",
        "  setUp(",
        "    scn.inject(",
        f"      rampConcurrentUsers(0).to({settings.vus}).during({settings.duration_seconds(settings.ramp_up)}.seconds),",
        f"      constantConcurrentUsers({settings.vus}).during({settings.duration_seconds()}.seconds)",
        "    )",
        "  ).protocols(httpProtocol)",
        "}",
    ])

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.GATLING, ctx, findings)


# ---------------------------------------------------------------------------
# Locust
# ---------------------------------------------------------------------------

def _locust_task(index: int, request: LoadRequest) -> list[str]:
    name = f"task_{index:03d}_{slugify(request.name, fallback='request').replace('-', '_')}"
    args = [python_string(request.method), python_string(request.path), f"name={python_string(request.name)}"]
    if request.headers:
        pairs = ", ".join(f"{python_string(k)}: {python_string(v)}" for k, v in request.headers.items())
        args.append(f"headers={{{pairs}}}")
    if request.query:
        pairs = ", ".join(f"{python_string(k)}: {python_string(v)}" for k, v in request.query.items())
        args.append(f"params={{{pairs}}}")
    if request.body is not None:
        args.append(f"json=json.loads({python_string(request.body)})")
    status = request.expected_status or 200

    return [
        "",
        "    @task",
        f"    def {name}(self):",
        f"        # {_request_label(index, request)}",
        f"        with self.client.request({', '.join(args)}, catch_response=True) as response:",
        f"            if response.status_code != {status}:",
        "                response.failure(f\"unexpected status {response.status_code}\")",
    ]


def emit_locust(
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
) -> EmittedArtifact:
    """Locust の負荷試験スクリプト（Python）を生成する。

    Raises:
        EmptyInputError: テストケースが0件の場合
    """
    require_cases(test_cases, "locust")
    ctx = ensure_context(context)
    settings = ctx.settings
    findings: list[LintFinding] = []
    requests = collect_requests(test_cases, findings, "locust")

    spawn_rate = max(1, settings.vus // max(1, settings.duration_seconds(settings.ramp_up)))
    lines = [
        f"# Suite: {comment_text(suite_name)}",
        f"# Run: locust -f <this file> --headless --users {settings.vus} "
        f"--spawn-rate {spawn_rate} --run-time {settings.duration}",
        "import json",
        "import os",
        "",
        "from locust import HttpUser, between, task",
        "",
        "",
        f"class {_class_name(suite_name)}User(HttpUser):",
        f"    host = os.environ.get(\"BASE_URL\", {python_string(settings.base_url)})",
        "    wait_time = between(1, 3)",
    ]
    for index, request in enumerate(requests, start=1):
        lines.extend(_locust_task(index, request))

    return build_artifact("\n".join(lines) + "\n", suite_name, ExportFormat.LOCUST, ctx, findings)
