# tce.ir — テストケース中間表現
# Pydantic v2 モデルと、JSON / YAML からの読み込み

from .loader import CaseLoader, CaseValidationError, load_cases
from .schema import (
    ApiAuth,
    ApiSpec,
    Assertion,
    CaseCollection,
    Step,
    SuiteMeta,
    TestCase,
)

__all__ = [
    "ApiAuth",
    "ApiSpec",
    "Assertion",
    "CaseCollection",
    "CaseLoader",
    "CaseValidationError",
    "Step",
    "SuiteMeta",
    "TestCase",
    "load_cases",
]
