# tce.lint — 生成スクリプトの静的チェックとメタ情報抽出

from .script_linter import PROFILES, ScriptLinter, ScriptMetadata, extract_metadata, lint

__all__ = [
    "PROFILES",
    "ScriptLinter",
    "ScriptMetadata",
    "extract_metadata",
    "lint",
]
