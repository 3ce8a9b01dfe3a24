"""Domain exceptions for bincover.

Two tiers: ``BincoverError`` subclasses are expected failures a harness can
handle (I/O, launch, non-zero exit, merge). ``ContractViolation`` means the
instrumented binary or the caller broke the run_test contract and is not part
of the ``BincoverError`` tree on purpose.
"""

from typing import Optional

from .constants import FAILED_RUN_EXIT_CODE


class BincoverError(Exception):
    """Base class for recoverable errors (maps to CLI exit 1)."""


class ConfigError(BincoverError):
    """Configuration or collector setup is invalid."""


class ArgsFileError(BincoverError):
    """The args file could not be rewritten."""


class ProfileMergeError(BincoverError):
    """Coverage profiles could not be read, parsed or written."""


class RunError(BincoverError):
    """An instrumented binary did not run to a successful exit."""

    def __init__(self, message: str, output: str = "", exit_code: int = FAILED_RUN_EXIT_CODE):
        super().__init__(message)
        self.output = output
        self.exit_code = exit_code


class LaunchError(RunError):
    """The binary could not be started at all."""


class BinaryExitError(RunError):
    """The binary exited with a non-zero status."""

    def __init__(self, message: str, output: str, status: Optional[int]):
        super().__init__(message, output=output)
        self.status = status


class BinaryTimeoutError(RunError):
    """The binary did not finish before its deadline."""


class ContractViolation(RuntimeError):
    """A broken run_test protocol invariant; not meant to be handled."""
