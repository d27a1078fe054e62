"""Subprocess execution shared by the external tool wrappers."""

from __future__ import annotations

import os
import subprocess
import sys

from ..errors import ExternalToolError
from ..shared.logging import get_logger

logger = get_logger(__name__)


def _run_streaming(command: list[str], env: dict[str, str] | None) -> subprocess.CompletedProcess:
    """Run a command, echoing its combined output to stderr as it arrives."""
    lines: list[str] = []
    with subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        env=env,
    ) as process:
        for line in process.stdout:
            sys.stderr.write(line)
            sys.stderr.flush()
            lines.append(line)
    return subprocess.CompletedProcess(command, process.returncode, stdout="".join(lines), stderr="")


def execute(
    command: list[str],
    env: dict[str, str] | None = None,
    tee: bool = False,
) -> str:
    """Run a command and return its stdout.

    Args:
        command: Full argument vector, binary first.
        env: Extra environment variables layered over the current environment.
        tee: Stream output to stderr while the command runs, for long-running
            tools. stderr is folded into the returned output.

    Returns:
        Captured stdout.

    Raises:
        ExternalToolError: If the binary is missing or exits non-zero.
    """
    run_env = None
    if env:
        run_env = {**os.environ, **env}

    logger.debug("running command", command=command[0], args=command[1:])
    try:
        if tee:
            result = _run_streaming(command, run_env)
        else:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=run_env,
            )
    except FileNotFoundError as e:
        raise ExternalToolError(command) from e

    if result.returncode != 0:
        raise ExternalToolError(
            command,
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    return result.stdout or ""
