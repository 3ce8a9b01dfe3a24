"""Coverage collection across repeated runs of an instrumented binary.

Typical harness usage::

    collector = CoverageCollector("merged_coverage.out", collect_coverage=True)
    collector.setup()
    try:
        result = collector.run_binary("./instr_bin", "TestRunMain", {}, ["hello"])
    finally:
        collector.tear_down()

``tear_down`` must run, otherwise no merged profile is written.
"""

import logging
import os
import tempfile
from typing import List, Optional, Sequence

from .args_file import ArgsFile
from .config import get_collector_config
from .errors import ConfigError, ContractViolation, LaunchError
from .metadata import parse_command_output
from .models import CollectorSettings, CoverMode, RunResult
from .profile import write_merged_profile
from .runner import EnvOverrides, build_binary_args, merge_env, run_process

logger = logging.getLogger(__name__)


class CoverageCollector:
    """Runs an instrumented binary repeatedly and merges its coverage profiles.

    Not thread-safe: runs share one args file and the mode/run counters.
    Use one collector per thread.
    """

    def __init__(
        self,
        merged_coverage_filename: str,
        collect_coverage: bool,
        settings: Optional[CollectorSettings] = None,
    ):
        self.merged_coverage_filename = merged_coverage_filename
        self.collect_coverage = collect_coverage
        self.settings = settings if settings is not None else get_collector_config()
        self.test_num = 0
        self.cover_mode = ""
        self.tmp_coverage_filenames: List[str] = []
        self.args_file: Optional[ArgsFile] = None
        self.setup_finished = False

    def __enter__(self) -> "CoverageCollector":
        self.setup()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.tear_down()
        else:
            self._remove_temp_files()
            self._reset()

    def setup(self) -> None:
        """Allocate the args file; must precede any run_binary call."""
        if self.setup_finished:
            return
        if self.collect_coverage and not self.merged_coverage_filename:
            raise ConfigError("merged coverage profile filename cannot be empty when collect_coverage is true")
        try:
            self.args_file = ArgsFile.create(
                prefix=self.settings.args_file_prefix,
                tmp_dir=self.settings.tmp_dir,
            )
        except OSError as exc:
            raise ConfigError(f"error creating temporary args file: {exc}") from exc
        self.setup_finished = True

    def tear_down(self) -> None:
        """Merge the profiles collected so far, then release temp files.

        Temp files are removed and the run state is reset even when merging
        fails, so repeated calls are no-ops and a later setup starts a fresh
        session.
        """
        try:
            if self.test_num > 0 and self.tmp_coverage_filenames:
                write_merged_profile(
                    self.tmp_coverage_filenames,
                    self.cover_mode,
                    self.merged_coverage_filename,
                )
        finally:
            self._remove_temp_files()
            self._reset()

    def _reset(self) -> None:
        self.setup_finished = False
        self.test_num = 0
        self.cover_mode = ""

    def run_binary(
        self,
        bin_path: str,
        main_test_name: str,
        env: EnvOverrides,
        args: Sequence[str],
        stdin_input: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RunResult:
        """Run the instrumented binary at ``bin_path`` with ``args``.

        Only the test named ``main_test_name`` is selected. Returns the
        entrypoint's output and logical exit code. Raises ``RunError``
        subclasses for launch failures and non-zero exits, ``ArgsFileError``
        when the args cannot be passed, and ``ContractViolation`` when the
        binary breaks the run_test protocol.
        """
        if not self.setup_finished or self.args_file is None:
            raise ContractViolation("run_binary called before setup")

        self.args_file.write(args)

        coverprofile = self._new_coverage_file() if self.collect_coverage else None
        recorded = False
        try:
            cmd = [bin_path, *build_binary_args(main_test_name, self.args_file.path, coverprofile)]
            logger.info("Running %s %s", bin_path, list(args))
            output = run_process(
                cmd,
                merge_env(env),
                stdin_input=stdin_input,
                timeout=timeout if timeout is not None else self.settings.timeout,
            )
            parsed = parse_command_output(output)
            if coverprofile is not None:
                self._check_cover_mode(parsed.cover_mode)
                self.test_num += 1
                self.tmp_coverage_filenames.append(coverprofile)
                recorded = True
        finally:
            if coverprofile is not None and not recorded:
                self._remove_file(coverprofile, "temp coverage file")

        return RunResult(output=parsed.output, exit_code=parsed.exit_code)

    def _new_coverage_file(self) -> str:
        try:
            fd, path = tempfile.mkstemp(
                prefix=self.settings.coverage_file_prefix,
                dir=self.settings.tmp_dir,
            )
        except OSError as exc:
            raise LaunchError(f"error creating temp coverage file: {exc}") from exc
        os.close(fd)
        return path

    def _check_cover_mode(self, cover_mode: str) -> None:
        if not self.cover_mode and not cover_mode:
            raise ContractViolation(
                "coverage mode cannot be empty. "
                "test coverage must be enabled when collect_coverage is set to true"
            )
        if self.cover_mode and self.cover_mode != cover_mode:
            raise ContractViolation("cannot merge profiles with different coverage modes")
        if cover_mode not in {mode.value for mode in CoverMode}:
            raise ContractViolation(
                f'unexpected coverage mode "{cover_mode}" encountered. '
                "Coverage mode must be set, count, or atomic"
            )
        if not self.cover_mode:
            logger.debug("Adopting coverage mode %s", cover_mode)
            self.cover_mode = cover_mode

    def _remove_temp_files(self) -> None:
        """Best-effort removal of every temp file; failures are only logged."""
        for filename in self.tmp_coverage_filenames:
            self._remove_file(filename, "temp coverage file")
        self.tmp_coverage_filenames = []
        if self.args_file is not None:
            try:
                self.args_file.remove()
            except OSError as exc:
                logger.warning("error removing temp arg file %s: %s", self.args_file.path, exc)
            self.args_file = None

    @staticmethod
    def _remove_file(path: str, label: str) -> None:
        try:
            os.remove(path)
        except OSError as exc:
            logger.warning("error removing %s %s: %s", label, path, exc)
