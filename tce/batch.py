"""
バッチエクスポート — 複数の出力先を並行して生成する

各エミッターは純粋関数なので、ThreadPoolExecutor で並べて呼び出す。
時計は最初に1回だけ読み、同じバッチの成果物はすべて同じ時刻を共有する。
1つのエミッターが失敗しても他の結果には影響しない（リトライはしない）。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

from tce.emitters.base import EmitContext, EmittedArtifact, ensure_context
from tce.emitters.formats import EmissionTarget
from tce.emitters.registry import TargetLike, as_target, resolve_emitter
from tce.errors import TceError
from tce.ir.schema import TestCase

logger = logging.getLogger(__name__)

_DEFAULT_WORKERS = 4
_INTERNAL_ERROR = {"kind": "internal_error", "detail": "予期しない内部エラーが発生しました（詳細はログを参照）"}


@dataclass
class BatchItem:
    """バッチ内の1出力先の結果。

    Attributes:
        target: 要求された出力先（解決できなかった場合は入力の文字列表現）
        artifact: 生成結果（失敗時は None）
        error: 失敗時の例外（成功時は None）
    """

    target: str
    artifact: Optional[EmittedArtifact] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"target": self.target, "ok": self.ok}
        if self.artifact is not None:
            out["filename"] = self.artifact.filename
            out["findings"] = [f.to_dict() for f in self.artifact.findings]
        if self.error is not None:
            out["error"] = self.error_dict()
        return out

    def error_dict(self) -> dict[str, str]:
        """利用者向けのエラー表現を返す。tce 以外の例外は内容を伏せ、ログにだけ残す。"""
        if isinstance(self.error, TceError):
            return self.error.to_dict()
        return dict(_INTERNAL_ERROR)


def _label(target: TargetLike) -> str:
    if isinstance(target, EmissionTarget):
        return str(target)
    if isinstance(target, tuple):
        return "/".join(str(part) for part in target)
    return str(target)


def _run_one(target: TargetLike, test_cases: list[TestCase], suite_name: str, context: EmitContext) -> BatchItem:
    label = _label(target)
    try:
        resolved = as_target(target)
        emitter = resolve_emitter(resolved.platform, resolved.format)
        artifact = emitter(test_cases, suite_name, context)
    except TceError as exc:
        logger.warning("バッチ出力に失敗しました: %s: %s", label, exc)
        return BatchItem(target=label, error=exc)
    except Exception as exc:
        logger.exception("バッチ出力で予期しないエラーが発生しました: %s", label)
        return BatchItem(target=label, error=exc)
    logger.debug("バッチ出力完了: %s → %s", label, artifact.filename)
    return BatchItem(target=str(resolved), artifact=artifact)


def export_batch(
    targets: Sequence[TargetLike],
    test_cases: list[TestCase],
    suite_name: str,
    context: Optional[EmitContext] = None,
    max_workers: Optional[int] = None,
) -> list[BatchItem]:
    """複数の出力先を並行して生成し、要求順に結果を返す。

    Args:
        targets: 出力先の並び（EmissionTarget / (platform, format) / "platform/format"）
        test_cases: 入力テストケース（読み取りのみ）
        suite_name: スイート名
        context: 実行コンテキスト。時計はここで1回だけ読んで固定する
        max_workers: スレッド数（省略時は 4 と出力先数の小さい方）

    Returns:
        targets と同じ並びの BatchItem リスト
    """
    if not targets:
        return []
    frozen = ensure_context(context).frozen()
    workers = max_workers or min(_DEFAULT_WORKERS, len(targets))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(_run_one, target, test_cases, suite_name, frozen)
            for target in targets
        ]
        results = [future.result() for future in futures]
    failed = sum(1 for item in results if not item.ok)
    logger.info("バッチ出力: %d 件中 %d 件成功", len(results), len(results) - failed)
    return results
