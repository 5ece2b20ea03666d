"""
プロジェクトスキャフォルダーのユニットテスト

アーカイブのルート名・エントリ構成・README の件数・決定的なバイト列・
パス重複の検出を検証する。
"""

from __future__ import annotations

import io
import json
import zipfile

import pytest

from tce.emitters.base import EmitContext, EmittedArtifact
from tce.errors import ArchiveAssemblyError, EmptyInputError, UnsupportedFormatError
from tce.ir.schema import SuiteMeta, TestCase
from tce.scaffold.project import archive_root, build_project, scaffold, template_for


def _read(archive_bytes: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(archive_bytes))


class TestArchiveRoot:
    """archive_root() のテスト。"""

    def test_root_name(self, suite_meta: SuiteMeta):
        assert archive_root("playwright", suite_meta) == "tce-playwright-login-suite-suite000"

    def test_fragment_without_id_is_stable(self):
        meta = SuiteMeta(name="Nameless")
        assert archive_root("k6", meta) == archive_root("k6", SuiteMeta(name="Nameless"))
        assert len(archive_root("k6", meta).rsplit("-", 1)[1]) == 8


class TestBuildProject:
    """build_project() のテスト。"""

    def test_playwright_layout(self, login_case: TestCase, vague_case: TestCase,
                               suite_meta: SuiteMeta, ctx: EmitContext):
        archive = build_project("web/playwright", [login_case, vague_case], suite_meta, ctx)
        root = "tce-playwright-login-suite-suite000"

        assert archive.filename == f"{root}.zip"
        assert archive.entries == [
            f"{root}/package.json",
            f"{root}/playwright.config.ts",
            f"{root}/tests/001-user-can-sign-in.spec.ts",
            f"{root}/tests/002-page-smoke.spec.ts",
            f"{root}/.env.example",
            f"{root}/.gitignore",
            f"{root}/README.md",
        ]
        with _read(archive.data) as zf:
            assert zf.namelist() == archive.entries
            readme = zf.read(f"{root}/README.md").decode("utf-8")
            spec = zf.read(f"{root}/tests/001-user-can-sign-in.spec.ts").decode("utf-8")
        assert "- Test cases: 2" in readme
        assert "test('User can sign in'" in spec

    def test_findings_are_collected(self, vague_case: TestCase, suite_meta: SuiteMeta, ctx: EmitContext):
        archive = build_project("web/playwright", [vague_case], suite_meta, ctx)
        assert [f.rule for f in archive.findings] == ["unresolved-assertion"]
        assert archive.to_artifact().mime_type == "application/zip"

    def test_bytes_are_deterministic(self, login_case: TestCase, suite_meta: SuiteMeta, ctx: EmitContext):
        """同じ入力と時計なら zip のバイト列が一致すること。"""
        first = build_project("web/cypress", [login_case], suite_meta, ctx)
        second = build_project("web/cypress", [login_case], suite_meta, ctx)
        assert first.data == second.data

    def test_entry_timestamps_follow_clock(self, login_case: TestCase, suite_meta: SuiteMeta,
                                           ctx: EmitContext):
        archive = build_project("performance/k6", [login_case], suite_meta, ctx)
        with _read(archive.data) as zf:
            assert {info.date_time for info in zf.infolist()} == {(2024, 5, 1, 12, 30, 0)}

    def test_python_formats_ship_pytest_ini(self, login_case: TestCase, suite_meta: SuiteMeta,
                                            ctx: EmitContext):
        archive = build_project("web/selenium", [login_case], suite_meta, ctx)
        root = archive.root
        assert f"{root}/pytest.ini" in archive.entries
        assert f"{root}/requirements.txt" in archive.entries
        assert f"{root}/tests/001-user-can-sign-in.py" in archive.entries

    def test_data_format_uses_generic_template(self, login_case: TestCase, suite_meta: SuiteMeta,
                                               ctx: EmitContext):
        """データ形式はスイート全体で1ファイルになり、suite.json が付くこと。"""
        archive = build_project("manual/json", [login_case], suite_meta, ctx)
        root = archive.root

        assert root == "tce-json-login-suite-suite000"
        assert f"{root}/cases/login-suite-json-2024-05-01.json" in archive.entries
        with _read(archive.data) as zf:
            suite = json.loads(zf.read(f"{root}/suite.json"))
        assert suite["testCount"] == 1
        assert suite["id"] == "SUITE-0001"
        assert suite["files"] == ["cases/login-suite-json-2024-05-01.json"]

    def test_script_format_requires_cases(self, suite_meta: SuiteMeta, ctx: EmitContext):
        with pytest.raises(EmptyInputError):
            build_project("web/playwright", [], suite_meta, ctx)

    def test_unsupported_target(self, login_case: TestCase, suite_meta: SuiteMeta, ctx: EmitContext):
        with pytest.raises(UnsupportedFormatError):
            build_project("api/playwright", [login_case], suite_meta, ctx)


class TestScaffold:
    """scaffold() を直接使うテスト。"""

    def test_duplicate_path_raises(self, suite_meta: SuiteMeta, ctx: EmitContext):
        artifacts = [
            EmittedArtifact(content="a", filename="same.txt", mime_type="text/plain"),
            EmittedArtifact(content="b", filename="same.txt", mime_type="text/plain"),
        ]
        with pytest.raises(ArchiveAssemblyError) as excinfo:
            scaffold(artifacts, suite_meta, clock=ctx.clock)
        assert excinfo.value.kind == "archive_assembly"

    def test_unknown_template_falls_back_to_generic(self):
        assert template_for("wave-config").name == "generic"
        assert template_for(None).name == "generic"
