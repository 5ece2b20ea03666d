# tce.scaffold — 成果物からプロジェクト構成の zip を組み立てる

from .project import Archive, ProjectTemplate, build_project, scaffold

__all__ = [
    "Archive",
    "ProjectTemplate",
    "build_project",
    "scaffold",
]
