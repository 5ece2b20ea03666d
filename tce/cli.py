"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

tce コマンドとして以下のサブコマンドを提供する:
  - init: 設定ファイルとサンプルケースの雛形生成
  - export: 1つの出力先へエクスポート
  - project: 実行可能なプロジェクト構成の zip を生成
  - batch: 複数の出力先へ並行エクスポート
  - lint: 生成スクリプトの静的解析
  - metadata: 生成スクリプトのメタ情報表示
  - classify: ステップ記述の分類結果表示
  - list-formats: 対応する出力先の一覧
  - validate: テストケースファイルのスキーマ検証
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from tce.errors import TceError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "tce — テストケースを各種自動化ツール向けの成果物に変換するツール\n\n"
        "基本の流れ:\n"
        "  1. tce init                      設定とサンプルケースを生成\n"
        "  2. tce export cases.yaml -p web -f playwright   スクリプトを出力\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="デバッグログを表示する"),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s - %(levelname)s - %(message)s",
    )


def _fail(exc: Exception) -> NoReturn:
    """例外を1行で表示して終了コード 1 で終わる。"""
    if isinstance(exc, TceError):
        typer.echo(f"エラー: {exc.kind}: {exc.detail}", err=True)
    else:
        typer.echo(f"エラー: {exc}", err=True)
    raise typer.Exit(code=1)


def _context(config: Optional[Path], base_url: Optional[str], scan_url: Optional[str]):
    from tce.config import resolve_settings
    from tce.emitters.base import EmitContext

    settings = resolve_settings(config, base_url=base_url, scan_url=scan_url)
    return EmitContext(settings=settings)


def _echo_findings(findings) -> None:
    for finding in findings:
        line_info = f" (行 {finding.line})" if finding.line else ""
        typer.echo(f"[{finding.severity.value}] {finding.rule}{line_info}: {finding.message}", err=True)


def _write(output_dir: Path, filename: str, data: bytes) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    path.write_bytes(data)
    logger.info("ファイルを書き出しました: %s", path)
    return path


_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="設定ファイル（デフォルト: ./tce.yaml）")
_BASE_URL_OPTION = typer.Option(None, "--base-url", help="生成スクリプトのベース URL")
_SCAN_URL_OPTION = typer.Option(None, "--scan-url", help="URL を持たないケース向けの走査 URL")
_SUITE_OPTION = typer.Option(None, "--suite", "-s", help="スイート名の上書き")
_OUTPUT_OPTION = typer.Option(Path("."), "--output", "-o", help="出力先ディレクトリ")


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

_CONFIG_TEMPLATE = (
    "# tce エクスポート設定\n"
    "# 環境変数 TCE_* と CLI 引数がこの値より優先される\n"
    "base_url: http://localhost:3000\n"
    "scan_url: https://example.com\n"
    "a11y_standard: WCAG2AA\n"
    "vus: 10\n"
    "duration: 30s\n"
    "ramp_up: 10s\n"
    "timeout_ms: 30000\n"
)

_SAMPLE_CASES = (
    "suite:\n"
    "  name: Sample suite\n"
    "test_cases:\n"
    "  - id: TC-001\n"
    "    title: User can sign in\n"
    "    priority: high\n"
    "    preconditions:\n"
    "      - A registered user exists\n"
    "    steps:\n"
    "      - action: Navigate to /login\n"
    "      - action: Enter \"user@example.com\" into the email field\n"
    "      - action: Click the \"Sign in\" button\n"
    "      - action: Verify the URL contains /dashboard\n"
    "    expected_result: The dashboard is shown\n"
)


@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="プロジェクトディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """設定ファイル（tce.yaml）とサンプルケース（cases/sample.yaml）を生成する。"""
    try:
        (project_dir / "cases").mkdir(parents=True, exist_ok=True)
        for path, content in (
            (project_dir / "tce.yaml", _CONFIG_TEMPLATE),
            (project_dir / "cases" / "sample.yaml", _SAMPLE_CASES),
        ):
            if not path.exists():
                path.write_text(content, encoding="utf-8")
        typer.echo(f"プロジェクトを初期化しました: {project_dir.resolve()}")
    except Exception as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# export / project / batch コマンド
# ---------------------------------------------------------------------------

@app.command()
def export(
    input_file: Path = typer.Argument(..., help="テストケースファイル（JSON / YAML）"),
    platform: str = typer.Option(..., "--platform", "-p", help="プラットフォーム（web, api, mobile, ...）"),
    fmt: str = typer.Option(..., "--format", "-f", help="出力形式（playwright, postman, ...）"),
    output: Path = _OUTPUT_OPTION,
    suite: Optional[str] = _SUITE_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    base_url: Optional[str] = _BASE_URL_OPTION,
    scan_url: Optional[str] = _SCAN_URL_OPTION,
) -> None:
    """テストケースを1つの出力先へエクスポートする。"""
    from tce.emitters.formats import EmissionTarget
    from tce.emitters.registry import export as run_export
    from tce.ir.loader import load_cases

    try:
        collection = load_cases(input_file, suite_name=suite)
        target = EmissionTarget.parse(platform, fmt)
        artifact = run_export(target, collection.test_cases, collection.suite.name,
                              _context(config, base_url, scan_url))
        path = _write(output, artifact.filename, artifact.data)
        _echo_findings(artifact.findings)
        typer.echo(f"✓ {target}: {path}（{len(collection.test_cases)} ケース）")
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)


@app.command()
def project(
    input_file: Path = typer.Argument(..., help="テストケースファイル（JSON / YAML）"),
    platform: str = typer.Option(..., "--platform", "-p", help="プラットフォーム"),
    fmt: str = typer.Option(..., "--format", "-f", help="出力形式"),
    output: Path = _OUTPUT_OPTION,
    suite: Optional[str] = _SUITE_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    base_url: Optional[str] = _BASE_URL_OPTION,
    scan_url: Optional[str] = _SCAN_URL_OPTION,
) -> None:
    """実行可能なプロジェクト構成を zip で生成する。"""
    from tce.emitters.formats import EmissionTarget
    from tce.ir.loader import load_cases
    from tce.scaffold.project import build_project

    try:
        collection = load_cases(input_file, suite_name=suite)
        target = EmissionTarget.parse(platform, fmt)
        archive = build_project(target, collection.test_cases, collection.suite,
                                _context(config, base_url, scan_url))
        path = _write(output, archive.filename, archive.data)
        _echo_findings(archive.findings)
        typer.echo(f"✓ {target}: {path}（{len(archive.entries)} ファイル）")
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)


@app.command()
def batch(
    input_file: Path = typer.Argument(..., help="テストケースファイル（JSON / YAML）"),
    targets: list[str] = typer.Option(..., "--target", "-t", help="出力先（platform/format、複数指定可）"),
    output: Path = _OUTPUT_OPTION,
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="並列数"),
    suite: Optional[str] = _SUITE_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    base_url: Optional[str] = _BASE_URL_OPTION,
    scan_url: Optional[str] = _SCAN_URL_OPTION,
) -> None:
    """複数の出力先へ並行してエクスポートする。1件でも失敗すれば終了コード 1。"""
    from tce.batch import export_batch
    from tce.ir.loader import load_cases

    try:
        collection = load_cases(input_file, suite_name=suite)
        results = export_batch(targets, collection.test_cases, collection.suite.name,
                               _context(config, base_url, scan_url), max_workers=workers)
        failed = 0
        for item in results:
            if item.artifact is not None:
                path = _write(output, item.artifact.filename, item.artifact.data)
                _echo_findings(item.artifact.findings)
                typer.echo(f"✓ {item.target}: {path}")
            else:
                failed += 1
                detail = item.error_dict()
                typer.echo(f"✗ {item.target}: {detail['kind']}: {detail['detail']}", err=True)
        if failed:
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# lint / metadata コマンド
# ---------------------------------------------------------------------------

@app.command()
def lint(
    script_file: Path = typer.Argument(..., help="静的解析するスクリプト"),
    framework: str = typer.Option("playwright", "--framework", "-f", help="フレームワーク"),
) -> None:
    """生成スクリプトの静的解析（Lint）を実行する。error があれば終了コード 1。"""
    from tce.lint.script_linter import lint as run_lint

    try:
        findings = run_lint(script_file.read_text(encoding="utf-8"), framework)
        if not findings:
            typer.echo(f"✓ {script_file}: lint 問題なし")
            return
        for finding in findings:
            line_info = f"行 {finding.line} " if finding.line else ""
            typer.echo(f"[{finding.severity.value}] {line_info}({finding.rule}): {finding.message}")
        if any(finding.severity.value == "error" for finding in findings):
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(exc)


@app.command()
def metadata(
    script_file: Path = typer.Argument(..., help="対象スクリプト"),
) -> None:
    """スクリプトのテスト名・ステップ数・URL 有無・タイムアウトを JSON で表示する。"""
    from tce.lint.script_linter import extract_metadata

    try:
        meta = extract_metadata(script_file.read_text(encoding="utf-8"))
        typer.echo(json.dumps(meta.to_dict(), ensure_ascii=False, indent=2))
    except Exception as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# classify / list-formats / validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def classify(
    text: str = typer.Argument(..., help="ステップの操作記述"),
) -> None:
    """ステップ記述の分類結果を JSON で表示する。"""
    from tce.inference.classifier import classify_text

    typer.echo(json.dumps(classify_text(text).to_dict(), ensure_ascii=False, indent=2))


@app.command("list-formats")
def list_formats(
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="プラットフォームで絞り込む"),
) -> None:
    """対応している出力先（platform/format）の一覧を表示する。"""
    from tce.emitters.registry import list_targets

    try:
        rows = list_targets(platform)
    except Exception as exc:
        _fail(exc)

    current = None
    for row in rows:
        if row.platform != current:
            current = row.platform
            typer.echo(f"\n[{current}]")
        typer.echo(f"  {row.format:14s} .{row.extension:10s} {row.label}")
    typer.echo(f"\n合計: {len(rows)} 形式")


@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="検証するテストケースファイル"),
) -> None:
    """テストケースファイルのスキーマ検証を行う。"""
    from tce.ir.loader import CaseLoader

    loader = CaseLoader()
    errors = loader.validate(input_file)

    if not errors:
        typer.echo(f"✓ {input_file}: スキーマ検証 OK")
    else:
        for err in errors:
            line_info = f" (行 {err.line})" if err.line else ""
            typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
