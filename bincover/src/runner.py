"""Launching instrumented binaries and classifying how they exited."""

import logging
import os
import subprocess
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .constants import ARGS_FILE_FLAG, COVERPROFILE_FLAG, TEST_RUN_FLAG
from .errors import BinaryExitError, BinaryTimeoutError, LaunchError

logger = logging.getLogger(__name__)

EnvOverrides = Union[Mapping[str, str], Iterable[str], None]


def build_binary_args(
    main_test_name: str,
    args_file_path: str,
    coverprofile: Optional[str] = None,
) -> List[str]:
    """Flags passed to the binary; its logical args travel via the args file."""
    flags = [f"{TEST_RUN_FLAG}={main_test_name}"]
    if coverprofile:
        flags.append(f"{COVERPROFILE_FLAG}={coverprofile}")
    flags.append(f"{ARGS_FILE_FLAG}={args_file_path}")
    return flags


def merge_env(overrides: EnvOverrides = None, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Ambient environment plus ``overrides``; later entries win.

    ``overrides`` is either a mapping or ``KEY=VALUE`` strings; strings
    without ``=`` are skipped.
    """
    env = dict(os.environ if base is None else base)
    if not overrides:
        return env
    if isinstance(overrides, Mapping):
        items = overrides.items()
    else:
        items = [entry.split("=", 1) for entry in overrides if "=" in entry]
    for key, value in items:
        if key:
            env[key] = value
    return env


def run_process(
    cmd: List[str],
    env: Dict[str, str],
    stdin_input: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run ``cmd`` to completion and return its combined stdout/stderr.

    Raises ``LaunchError`` when the process cannot start, ``BinaryTimeoutError``
    when ``timeout`` expires and ``BinaryExitError`` on a non-zero exit.
    """
    bin_path = cmd[0]
    try:
        completed = subprocess.run(
            cmd,
            env=env,
            input=stdin_input.encode() if stdin_input is not None else None,
            stdin=subprocess.DEVNULL if stdin_input is None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        output = _decode(exc.output)
        raise BinaryTimeoutError(
            f'command "{bin_path}" timed out after {timeout}s\nOutput:\n{output}\n',
            output=output,
        ) from exc
    except OSError as exc:
        raise LaunchError(f'unexpected error running command "{bin_path}": {exc}') from exc

    output = _decode(completed.stdout)
    if completed.returncode != 0:
        logger.debug("%s exited with %s", bin_path, completed.returncode)
        raise BinaryExitError(
            f'unsuccessful exit by command "{bin_path}"\n'
            f"Exit code: {completed.returncode}\n"
            f"Output:\n{output}\n",
            output=output,
            status=completed.returncode,
        )
    return output


def _decode(raw: Optional[bytes]) -> str:
    """Decode child output; undecodable bytes survive as surrogate escapes."""
    if not raw:
        return ""
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8", errors="surrogateescape")
