"""bincover Pydantic Models"""

from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict

from .constants import (
    ATOMIC_MODE,
    COUNT_MODE,
    DEFAULT_ARGS_FILE_PREFIX,
    DEFAULT_COVERAGE_FILE_PREFIX,
    SET_MODE,
)


class CoverMode(str, Enum):
    SET = SET_MODE
    COUNT = COUNT_MODE
    ATOMIC = ATOMIC_MODE


class TestMetadata(BaseModel):
    """Record emitted by run_test between the metadata markers."""

    __test__ = False  # keep pytest from collecting this as a test class
    # no coercion: "3", true and 3.0 are not exit codes
    model_config = ConfigDict(strict=True)

    cover_mode: str = ""
    exit_code: int = 0


class RunResult(BaseModel):
    output: str
    exit_code: int


class ParsedOutput(NamedTuple):
    output: str
    cover_mode: str
    exit_code: int


class EntrypointResult(NamedTuple):
    """Explicit result an entrypoint may return to run_test."""

    output: str
    exit_code: int = 0


class ProfileSummary(BaseModel):
    mode: str
    statements: int = 0
    covered: int = 0

    @property
    def percent(self) -> float:
        if not self.statements:
            return 0.0
        return 100.0 * self.covered / self.statements


class CollectorSettings(BaseModel):
    """Collector defaults resolved from bincover.yml."""

    tmp_dir: Optional[str] = None
    args_file_prefix: str = DEFAULT_ARGS_FILE_PREFIX
    coverage_file_prefix: str = DEFAULT_COVERAGE_FILE_PREFIX
    timeout: Optional[float] = None
