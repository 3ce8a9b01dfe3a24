import os
import stat
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the package directory is on sys.path so tests import `src.*`
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.collector import CoverageCollector
from src.models import CollectorSettings

# Test logs directory
TEST_LOGS_DIR = Path(__file__).resolve().parent / "logs"

# Stand-in for an instrumented binary: honors -test.coverprofile and reports
# COVER_MODE (default "set") with logical exit code 1.
SET_COVERMODE_BIN = """#!/bin/sh
profile=""
for arg in "$@"; do
  case "$arg" in
    -test.coverprofile=*) profile="${arg#-test.coverprofile=}" ;;
  esac
done
mode="${COVER_MODE-set}"
if [ -n "$profile" ]; then
  printf 'mode: %s\\nmain.go:%s.1,2.0 1 1\\n' "$mode" "${BLOCK_LINE:-1}" > "$profile"
fi
echo "Hello world"
echo START_OF_METADATA
printf '{"cover_mode":"%s","exit_code":1}\\n' "$mode"
echo END_OF_METADATA
"""

# Echoes its flags, the args file and stdin, separated by "---" lines.
ECHO_BIN = """#!/bin/sh
args_file=""
for arg in "$@"; do
  echo "$arg"
  case "$arg" in
    -test.coverprofile=*) printf 'mode: set\\n' > "${arg#-test.coverprofile=}" ;;
    -args-file=*) args_file="${arg#-args-file=}" ;;
  esac
done
echo ---
cat "$args_file"
echo
echo ---
cat
echo START_OF_METADATA
echo '{"cover_mode":"set","exit_code":0}'
echo END_OF_METADATA
"""

EXIT_1_BIN = """#!/bin/sh
echo "Hello world"
exit 1
"""

NO_TESTS_BIN = """#!/bin/sh
echo "testing: warning: no tests to run"
"""

SLEEP_BIN = """#!/bin/sh
echo "going to sleep"
exec sleep 30
"""

PYTHON_CALLEE = '''import sys

from src.instrument import run_test


def main():
    args = sys.argv[1:]
    if not args:
        print("Please provide an argument")
        return 1
    if len(args) > 1:
        raise RuntimeError("More than one argument provided! Ahh!")
    print(f'Your argument is "{args[0]}"')
    return 0


if __name__ == "__main__":
    run_test(main)
'''


def write_executable(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_bin(tmp_path):
    """Factory writing an executable script into tmp_path."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, content: str) -> str:
        return str(write_executable(bin_dir / name, content))

    return _make


@pytest.fixture
def python_bin(make_bin, tmp_path):
    """Instrumented Python program plus the env it needs to import bincover."""
    callee = tmp_path / "callee.py"
    callee.write_text(PYTHON_CALLEE)
    wrapper = make_bin("callee", f'#!/bin/sh\nexec "{sys.executable}" "{callee}" "$@"\n')
    pythonpath = os.pathsep.join(filter(None, [str(ROOT_DIR), os.environ.get("PYTHONPATH")]))
    return wrapper, {"PYTHONPATH": pythonpath}


@pytest.fixture
def settings(tmp_path):
    tmp_dir = tmp_path / "tmp"
    tmp_dir.mkdir()
    return CollectorSettings(tmp_dir=str(tmp_dir))


@pytest.fixture
def collector(tmp_path, settings):
    merged = tmp_path / "merged_coverage.out"
    c = CoverageCollector(str(merged), True, settings=settings)
    c.setup()
    yield c
    c.tear_down()


def cleanup_old_test_logs(keep_last: int = 3):
    """Remove old test log directories, keeping only the last N runs."""
    if not TEST_LOGS_DIR.exists():
        return

    log_dirs = sorted(
        [d for d in TEST_LOGS_DIR.iterdir() if d.is_dir()],
        key=lambda x: x.stat().st_mtime,
        reverse=True,
    )

    for old_dir in log_dirs[keep_last:]:
        for file in old_dir.iterdir():
            file.unlink()
        old_dir.rmdir()


def pytest_configure(config):
    """Send this run's log records to tests/logs/<timestamp>/pytest.log."""
    TEST_LOGS_DIR.mkdir(exist_ok=True)
    cleanup_old_test_logs(keep_last=3)

    log_dir = TEST_LOGS_DIR / datetime.now().strftime("%m-%d-%Y_%H-%M-%S")
    log_dir.mkdir(exist_ok=True)

    if not config.option.log_file:
        config.option.log_file = str(log_dir / "pytest.log")
        config.option.log_file_level = "DEBUG"
