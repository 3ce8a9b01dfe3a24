"""Callee side of the bincover protocol for Python entrypoints.

An instrumented Python program hands its main function to ``run_test``::

    if __name__ == "__main__":
        run_test(main)

``run_test`` strips the harness flags, appends the args from ``-args-file``,
runs ``main`` (under coverage.py when ``-test.coverprofile`` is given) and
prints the metadata block before exiting with status 0. The logical exit code
travels in the metadata, so ``main`` returns it instead of exiting: return an
int, an ``EntrypointResult`` or ``None`` for 0. ``sys.exit`` inside ``main``
is caught and treated the same way.
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

import coverage
from coverage.exceptions import NoSource, NotPython

from .args_file import read_args_file
from .constants import ARGS_FILE_FLAG, COVERPROFILE_FLAG, SET_MODE, TEST_FLAG_PREFIX
from .metadata import emit_metadata
from .models import EntrypointResult, TestMetadata
from .paths import get_instrument_omit_pattern
from .profile import profile_header

# stderr is part of the captured output, keep this module quiet
logger = logging.getLogger(__name__)

Entrypoint = Callable[[], Union[None, int, EntrypointResult]]


class HarnessFlags(NamedTuple):
    args: List[str]
    args_file: Optional[str]
    coverprofile: Optional[str]


def _flag_value(arg: str, flag: str) -> Optional[str]:
    if arg.startswith(flag + "="):
        return arg[len(flag) + 1:]
    return None


def split_harness_flags(argv: Sequence[str]) -> HarnessFlags:
    """Separate harness-owned flags from the program's own argv."""
    kept: List[str] = []
    args_file = None
    coverprofile = None
    pending_args_file = False
    for arg in argv:
        if pending_args_file:
            args_file = arg
            pending_args_file = False
            continue
        if arg == ARGS_FILE_FLAG:
            pending_args_file = True
            continue
        if arg.startswith(ARGS_FILE_FLAG):
            args_file = _flag_value(arg, ARGS_FILE_FLAG) or args_file
            continue
        if arg.startswith(TEST_FLAG_PREFIX):
            coverprofile = _flag_value(arg, COVERPROFILE_FLAG) or coverprofile
            continue
        kept.append(arg)
    return HarnessFlags(kept, args_file, coverprofile)


def reconcile_argv(argv: Sequence[str]) -> HarnessFlags:
    """Effective argv: harness flags removed, args file contents appended."""
    flags = split_harness_flags(argv)
    args = list(flags.args)
    if flags.args_file:
        args.extend(read_args_file(flags.args_file))
    return flags._replace(args=args)


def current_cover_mode() -> str:
    """Coverage mode of the running interpreter, empty when not measured."""
    return SET_MODE if coverage.Coverage.current() is not None else ""


def write_coverprofile(cov: coverage.Coverage, path: str) -> None:
    """Write measured line data as a ``mode: set`` block profile."""
    lines = [profile_header(SET_MODE)]
    data = cov.get_data()
    for filename in sorted(data.measured_files()):
        try:
            _, statements, _, missing, _ = cov.analysis2(filename)
        except (NoSource, NotPython) as exc:
            logger.debug("skipping %s: %s", filename, exc)
            continue
        missed = set(missing)
        for line in statements:
            hit = 0 if line in missed else 1
            lines.append(f"{filename}:{line}.1,{line + 1}.0 1 {hit}")
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")


def _call_entrypoint(f: Entrypoint) -> int:
    try:
        result = f()
    except SystemExit as exc:
        return _exit_status(exc.code)
    except Exception:
        traceback.print_exc()
        return 1
    if isinstance(result, EntrypointResult):
        sys.stdout.write(result.output)
        return result.exit_code
    return _exit_status(result)


def _exit_status(code: object) -> int:
    """Map a return value or SystemExit code onto a process status."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    print(code, file=sys.stderr)
    return 1


def instrument(
    f: Entrypoint,
    argv: Optional[Sequence[str]] = None,
    source: Optional[Sequence[str]] = None,
) -> TestMetadata:
    """Run ``f`` under the protocol and emit its metadata, without exiting.

    ``argv`` defaults to ``sys.argv``; ``source`` restricts coverage
    measurement the way coverage.py's ``source`` option does.
    """
    raw = list(sys.argv if argv is None else argv)
    program, rest = (raw[0], raw[1:]) if raw else ("", [])
    flags = reconcile_argv(rest)

    cov = None
    if flags.coverprofile:
        cov = coverage.Coverage(
            data_file=None,
            source=list(source) if source else None,
            omit=[get_instrument_omit_pattern()],
        )
        # coverage.py warnings go to stderr, which the caller captures as output
        cov.set_option("run:disable_warnings", ["no-data-collected", "module-not-measured", "couldnt-parse"])

    saved_argv = sys.argv
    sys.argv = [program, *flags.args]
    try:
        if cov is not None:
            cov.start()
        try:
            exit_code = _call_entrypoint(f)
            cover_mode = current_cover_mode()
        finally:
            if cov is not None:
                cov.stop()
    finally:
        sys.argv = saved_argv

    if cov is not None:
        write_coverprofile(cov, flags.coverprofile)

    metadata = TestMetadata(cover_mode=cover_mode, exit_code=int(exit_code))
    sys.stdout.flush()
    sys.stderr.flush()
    emit_metadata(metadata)
    return metadata


def run_test(
    f: Entrypoint,
    argv: Optional[Sequence[str]] = None,
    source: Optional[Sequence[str]] = None,
) -> None:
    """Run ``f`` as an instrumented entrypoint and exit the process with 0."""
    instrument(f, argv=argv, source=source)
    sys.exit(0)
