"""
プロジェクトスキャフォルダー — 成果物を実行可能なプロジェクト構成の zip にまとめる

Jinja2 テンプレート（tce/templates/）からマニフェスト・設定・補助ファイルを描画し、
ケースごとの成果物と合わせて1つのアーカイブにする。

主な機能:
  - scaffold(): 成果物リストとスイート情報から zip を組み立てる
  - build_project(): 出力先を解決し、ケースごとに生成してから scaffold() する

アーカイブのバイト列は入力と時計の値だけで決まる（エントリ順・日時・権限・圧縮方式を固定）。
"""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from tce.config import ExportSettings
from tce.emitters.base import (
    Clock,
    EmitContext,
    EmittedArtifact,
    LintFinding,
    case_filename,
    ensure_context,
    require_cases,
    slugify,
    system_clock,
)
from tce.emitters.formats import FORMAT_INFO, ExportFormat
from tce.emitters.registry import TargetLike, as_target, resolve_emitter
from tce.errors import ArchiveAssemblyError
from tce.ir.schema import SuiteMeta, TestCase

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o644 << 16
_ROOT_SLUG_MAX = 40


# ---------------------------------------------------------------------------
# テンプレート定義
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectTemplate:
    """フレームワーク別のプロジェクト構成。

    Attributes:
        name: テンプレート名（templates/ 配下のディレクトリ名）
        case_dir: ケースファイルを置くディレクトリ
        files: (テンプレートパス, 出力パス) の組
    """

    name: str
    case_dir: str
    files: tuple[tuple[str, str], ...]


TEMPLATES = MappingProxyType({
    "playwright": ProjectTemplate("playwright", "tests", (
        ("playwright/package.json.j2", "package.json"),
        ("playwright/playwright.config.ts.j2", "playwright.config.ts"),
    )),
    "cypress": ProjectTemplate("cypress", "cypress/e2e", (
        ("cypress/package.json.j2", "package.json"),
        ("cypress/cypress.config.js.j2", "cypress.config.js"),
        ("cypress/e2e.js.j2", "cypress/support/e2e.js"),
    )),
    "selenium": ProjectTemplate("selenium", "tests", (
        ("selenium/requirements.txt.j2", "requirements.txt"),
        ("python/pytest.ini.j2", "pytest.ini"),
    )),
    "appium": ProjectTemplate("appium", "tests", (
        ("appium/requirements.txt.j2", "requirements.txt"),
        ("python/pytest.ini.j2", "pytest.ini"),
    )),
    "k6": ProjectTemplate("k6", "scripts", (
        ("k6/package.json.j2", "package.json"),
    )),
    "locust": ProjectTemplate("locust", "locustfiles", (
        ("locust/requirements.txt.j2", "requirements.txt"),
        ("locust/locust.conf.j2", "locust.conf"),
    )),
})

GENERIC_TEMPLATE = ProjectTemplate("generic", "cases", (
    ("generic/suite.json.j2", "suite.json"),
))

_COMMON_FILES: tuple[tuple[str, str], ...] = (
    ("common/env.example.j2", ".env.example"),
    ("common/gitignore.j2", ".gitignore"),
    ("common/README.md.j2", "README.md"),
)


def template_for(name: Optional[str]) -> ProjectTemplate:
    """形式名に対応するテンプレートを返す（専用が無ければ generic）。"""
    if name is None:
        return GENERIC_TEMPLATE
    return TEMPLATES.get(name, GENERIC_TEMPLATE)


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


# ---------------------------------------------------------------------------
# アーカイブ
# ---------------------------------------------------------------------------

@dataclass
class Archive:
    """組み立て済みのプロジェクト zip。

    Attributes:
        root: アーカイブ内のルートディレクトリ名
        data: zip のバイト列
        entries: 格納順のエントリパス
        findings: ケース生成時に集めた診断
    """

    root: str
    data: bytes
    entries: list[str] = field(default_factory=list)
    findings: list[LintFinding] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{self.root}.zip"

    def to_artifact(self) -> EmittedArtifact:
        return EmittedArtifact(
            content=self.data,
            filename=self.filename,
            mime_type="application/zip",
            findings=list(self.findings),
        )


def archive_root(fmt: str, suite_meta: SuiteMeta) -> str:
    """tce-<format>-<slug(suite)>-<ID 断片> 形式のルート名を返す。"""
    prefix = f"tce-{slugify(fmt, fallback='generic')}"
    suite_part = slugify(suite_meta.name, fallback="suite", max_length=_ROOT_SLUG_MAX)
    return f"{prefix}-{suite_part}-{suite_meta.id_fragment()}"


def _zip_timestamp(now: datetime) -> tuple[int, int, int, int, int, int]:
    stamp = (now.year, now.month, now.day, now.hour, now.minute, now.second)
    # zip の日時は 1980 年以降しか表現できない
    return max(stamp, _ZIP_EPOCH)


def _write_zip(files: list[tuple[str, bytes]], now: datetime) -> bytes:
    buffer = io.BytesIO()
    date_time = _zip_timestamp(now)
    with zipfile.ZipFile(buffer, "w") as archive:
        for path, data in files:
            info = zipfile.ZipInfo(path, date_time=date_time)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = _FILE_MODE
            info.create_system = 3
            archive.writestr(info, data)
    return buffer.getvalue()


def scaffold(
    artifacts: list[EmittedArtifact],
    suite_meta: SuiteMeta,
    template: Optional[str] = None,
    clock: Optional[Clock] = None,
    settings: Optional[ExportSettings] = None,
    case_count: Optional[int] = None,
) -> Archive:
    """成果物をプロジェクト構成の zip にまとめる。

    Args:
        artifacts: 格納する成果物（ケースファイル）。この順に格納する
        suite_meta: スイート名と ID
        template: テンプレート名（形式名）。None または専用が無い場合は generic
        clock: zip エントリの日時に使う時計
        settings: テンプレートへ渡す設定（base_url など）
        case_count: README に記載するケース数（省略時は成果物の件数）

    Returns:
        組み立て済みの Archive

    Raises:
        ArchiveAssemblyError: 同じパスのエントリが2つ以上ある場合
    """
    project = template_for(template)
    fmt_name = template or project.name
    root = archive_root(fmt_name, suite_meta)
    now = (clock or system_clock)()
    settings = settings or ExportSettings()

    case_files = [f"{project.case_dir}/{artifact.filename}" for artifact in artifacts]
    variables: dict[str, Any] = {
        "suite": suite_meta,
        "root": root,
        "format": fmt_name,
        "label": _label(fmt_name),
        "case_count": len(artifacts) if case_count is None else case_count,
        "case_dir": project.case_dir,
        "case_files": case_files,
        "settings": settings,
        "generated_at": now.isoformat(),
    }

    env = _environment()
    files: list[tuple[str, bytes]] = []
    for template_path, output_path in project.files:
        files.append((output_path, env.get_template(template_path).render(**variables).encode("utf-8")))
    for path, artifact in zip(case_files, artifacts):
        files.append((path, artifact.data))
    for template_path, output_path in _COMMON_FILES:
        files.append((output_path, env.get_template(template_path).render(**variables).encode("utf-8")))

    seen: set[str] = set()
    entries: list[tuple[str, bytes]] = []
    for path, data in files:
        full = f"{root}/{path}"
        if full in seen:
            raise ArchiveAssemblyError(f"アーカイブ内のパスが重複しています: {full}")
        seen.add(full)
        entries.append((full, data))

    findings = [finding for artifact in artifacts for finding in artifact.findings]
    logger.info("プロジェクトを組み立てました: %s（%d ファイル）", root, len(entries))
    return Archive(
        root=root,
        data=_write_zip(entries, now),
        entries=[path for path, _ in entries],
        findings=findings,
    )


def _label(fmt_name: str) -> str:
    try:
        return FORMAT_INFO[ExportFormat(fmt_name)].label
    except ValueError:
        return fmt_name


# ---------------------------------------------------------------------------
# 生成 + 組み立て
# ---------------------------------------------------------------------------

def build_project(
    target: TargetLike,
    test_cases: list[TestCase],
    suite_meta: SuiteMeta,
    context: Optional[EmitContext] = None,
) -> Archive:
    """出力先のエミッターで成果物を作り、プロジェクト zip にまとめる。

    スクリプト形式はケースごとに1ファイル（<NNN>-<slug>.<ext>）を生成する。
    データ形式はスイート全体で1ファイルを生成する。時計は最初に1回だけ読む。

    Raises:
        UnsupportedFormatError: 出力先が未対応の場合
        EmptyInputError: スクリプト形式でケースが0件の場合
        ArchiveAssemblyError: パスが重複した場合
    """
    resolved = as_target(target)
    emitter = resolve_emitter(resolved.platform, resolved.format)
    ctx = ensure_context(context).frozen()
    info = FORMAT_INFO[resolved.format]

    artifacts: list[EmittedArtifact] = []
    if info.script:
        require_cases(test_cases, resolved.format.value)
        for index, case in enumerate(test_cases, start=1):
            emitted = emitter([case], suite_meta.name, ctx)
            artifacts.append(EmittedArtifact(
                content=emitted.content,
                filename=case_filename(index, case.title, info.extension),
                mime_type=emitted.mime_type,
                findings=emitted.findings,
            ))
    else:
        artifacts.append(emitter(test_cases, suite_meta.name, ctx))

    archive = scaffold(
        artifacts,
        suite_meta,
        template=resolved.format.value,
        clock=ctx.clock,
        settings=ctx.settings,
        case_count=len(test_cases),
    )
    logger.debug("%s: %d 件のケースからプロジェクトを生成", resolved, len(test_cases))
    return archive
