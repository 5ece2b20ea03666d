"""
出力形式の定義 — プラットフォーム・形式の閉じた列挙と、拡張子・MIME タイプの表
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from tce.errors import UnsupportedFormatError


class Platform(str, Enum):
    """出力先プラットフォーム。"""

    WEB = "web"
    API = "api"
    MOBILE = "mobile"
    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"
    MANUAL = "manual"


class ExportFormat(str, Enum):
    """出力形式。"""

    PLAYWRIGHT = "playwright"
    CYPRESS = "cypress"
    SELENIUM = "selenium"
    POSTMAN = "postman"
    KARATE = "karate"
    OPENAPI = "openapi"
    INSOMNIA = "insomnia"
    APPIUM = "appium"
    MAESTRO = "maestro"
    XCUITEST = "xcuitest"
    ESPRESSO = "espresso"
    JMETER = "jmeter"
    K6 = "k6"
    GATLING = "gatling"
    LOCUST = "locust"
    AXE = "axe"
    PA11Y = "pa11y"
    WAVE_CONFIG = "wave-config"
    GHERKIN = "gherkin"
    CUCUMBER = "cucumber"
    TESTRAIL = "testrail"
    JIRA = "jira"
    JSON = "json"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class FormatInfo:
    """形式ごとのメタ情報。

    Attributes:
        extension: 拡張子（先頭の . なし）
        mime_type: MIME タイプ
        label: 表示名
        script: 実行可能スクリプトを出力する形式なら True
    """

    extension: str
    mime_type: str
    label: str
    script: bool = False


FORMAT_INFO = MappingProxyType({
    ExportFormat.PLAYWRIGHT: FormatInfo("spec.ts", "text/typescript", "Playwright (TypeScript)", script=True),
    ExportFormat.CYPRESS: FormatInfo("cy.js", "text/javascript", "Cypress (JavaScript)", script=True),
    ExportFormat.SELENIUM: FormatInfo("py", "text/x-python", "Selenium (Python / pytest)", script=True),
    ExportFormat.POSTMAN: FormatInfo("json", "application/json", "Postman Collection v2.1"),
    ExportFormat.KARATE: FormatInfo("feature", "text/plain", "Karate DSL"),
    ExportFormat.OPENAPI: FormatInfo("yaml", "text/yaml", "OpenAPI 3.0"),
    ExportFormat.INSOMNIA: FormatInfo("json", "application/json", "Insomnia Export v4"),
    ExportFormat.APPIUM: FormatInfo("py", "text/x-python", "Appium (Python / pytest)", script=True),
    ExportFormat.MAESTRO: FormatInfo("yaml", "text/yaml", "Maestro Flow", script=True),
    ExportFormat.XCUITEST: FormatInfo("swift", "text/x-swift", "XCUITest (Swift)", script=True),
    ExportFormat.ESPRESSO: FormatInfo("kt", "text/x-kotlin", "Espresso (Kotlin)", script=True),
    ExportFormat.JMETER: FormatInfo("jmx", "application/xml", "Apache JMeter Test Plan"),
    ExportFormat.K6: FormatInfo("js", "text/javascript", "k6 Load Test", script=True),
    ExportFormat.GATLING: FormatInfo("scala", "text/x-scala", "Gatling Simulation", script=True),
    ExportFormat.LOCUST: FormatInfo("py", "text/x-python", "Locust Load Test", script=True),
    ExportFormat.AXE: FormatInfo("json", "application/json", "axe-core Configuration"),
    ExportFormat.PA11Y: FormatInfo("json", "application/json", "Pa11y CI Configuration"),
    ExportFormat.WAVE_CONFIG: FormatInfo("json", "application/json", "WAVE API Configuration"),
    ExportFormat.GHERKIN: FormatInfo("feature", "text/plain", "Gherkin Feature"),
    ExportFormat.CUCUMBER: FormatInfo("feature", "text/plain", "Cucumber Feature (tagged)"),
    ExportFormat.TESTRAIL: FormatInfo("xml", "application/xml", "TestRail XML Import"),
    ExportFormat.JIRA: FormatInfo("csv", "text/csv", "Jira / Xray CSV Import"),
    ExportFormat.JSON: FormatInfo("json", "application/json", "JSON"),
    ExportFormat.MARKDOWN: FormatInfo("md", "text/markdown", "Markdown"),
})


@dataclass(frozen=True)
class EmissionTarget:
    """出力先（platform × format）。"""

    platform: Platform
    format: ExportFormat

    @classmethod
    def parse(cls, platform: str, fmt: str) -> "EmissionTarget":
        """文字列から EmissionTarget を作る。

        組み合わせの妥当性はここでは検証しない（registry.resolve_emitter が判定する）。

        Raises:
            UnsupportedFormatError: platform または format が列挙値に無い場合
        """
        try:
            return cls(Platform(str(platform).strip().lower()), ExportFormat(str(fmt).strip().lower()))
        except ValueError as e:
            raise UnsupportedFormatError(
                f"未対応の出力先です: platform={platform!r}, format={fmt!r}"
            ) from e

    def __str__(self) -> str:
        return f"{self.platform.value}/{self.format.value}"
