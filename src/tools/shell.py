"""Subprocess execution for TrendForge.

Runs commands without a shell, with a timeout and captured output. Used by
the implementer (coding agent, build, tests) and by git operations.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional

from src.core.exceptions import ShellTimeoutError, ToolError

logger = logging.getLogger("trendforge.tools.shell")

DEFAULT_TIMEOUT = 120  # seconds
MAX_OUTPUT_BYTES = 1_048_576


@dataclass
class ShellResult:
    """Structured result from a subprocess."""
    command: str
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.return_code == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


async def run_command(
    command: list[str],
    cwd: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    env: Optional[dict[str, str]] = None,
    stdin: Optional[str] = None,
) -> ShellResult:
    """Execute a command and capture its output.

    Args:
        command: Argument vector; never interpreted by a shell.
        cwd: Working directory for the command.
        timeout: Max seconds before the process is killed.
        env: Extra environment variables, merged over the current env.
        stdin: Optional text fed to the process.

    Raises:
        ShellTimeoutError: If the command exceeds the timeout.
        ToolError: If the command can't be started.
    """
    if not command:
        raise ToolError("Empty command")
    cmd_str = " ".join(command)
    logger.debug("Running: %s (cwd=%s, timeout=%ss)", cmd_str, cwd, timeout)

    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            env=run_env,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolError(f"Command not found: {command[0]}") from e
    except OSError as e:
        raise ToolError(f"Failed to run command: {e}") from e

    try:
        out, err = await asyncio.wait_for(
            proc.communicate(stdin.encode() if stdin is not None else None), timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("Command timed out after %ss: %s", timeout, cmd_str)
        raise ShellTimeoutError(f"Command timed out after {timeout}s: {cmd_str}")

    result = ShellResult(
        command=cmd_str,
        return_code=proc.returncode if proc.returncode is not None else -1,
        stdout=_truncate_output(out.decode("utf-8", errors="replace")),
        stderr=_truncate_output(err.decode("utf-8", errors="replace")),
    )
    logger.debug(
        "Command finished: rc=%d stdout=%d chars stderr=%d chars",
        result.return_code, len(result.stdout), len(result.stderr),
    )
    return result


def _truncate_output(text: str) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= MAX_OUTPUT_BYTES:
        return text
    return encoded[:MAX_OUTPUT_BYTES].decode("utf-8", errors="ignore") + "\n... [output truncated]"
