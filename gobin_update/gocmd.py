"""
Execution of go commands.

Captured runs are used for inspection (`go version -m`, `go list`), streamed
runs for installation so that build progress stays visible.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, TextIO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """
    Result of executing an external command.

    Attributes:
        command: The command that was executed
        exit_code: Process exit code (-1 if the process did not complete)
        stdout: Standard output (empty for streamed runs)
        stderr: Standard error output
        duration_seconds: Time taken to execute the command
        error_message: Human-readable error message if failed
    """
    command: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    duration_seconds: float
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "command": list(self.command),
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


def _failure_message(exit_code: int, stderr: str) -> str:
    msg = f"Command failed with exit code {exit_code}"
    if stderr:
        msg += f": {stderr.strip()[:200]}"
    return msg


def run_captured(
    command: Sequence[str],
    timeout: int | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """
    Run a command and capture its output.

    Args:
        command: Command and arguments
        timeout: Command timeout in seconds
        env: Environment for the child process

    Returns:
        CommandResult with execution outcome
    """
    command = tuple(command)
    start_time = time.time()
    logger.debug(f"Executing: {' '.join(command)}")

    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
            env=env,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            command=command,
            exit_code=-1,
            stdout="",
            stderr="",
            duration_seconds=time.time() - start_time,
            error_message=f"Command timed out after {timeout}s",
        )
    except FileNotFoundError:
        return CommandResult(
            command=command,
            exit_code=-1,
            stdout="",
            stderr="",
            duration_seconds=time.time() - start_time,
            error_message=f"Command not found: {command[0]}",
        )
    except Exception as e:
        return CommandResult(
            command=command,
            exit_code=-1,
            stdout="",
            stderr="",
            duration_seconds=time.time() - start_time,
            error_message=f"Unexpected error: {e}",
        )

    error_msg = None
    if result.returncode != 0:
        error_msg = _failure_message(result.returncode, result.stderr)

    return CommandResult(
        command=command,
        exit_code=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
        duration_seconds=time.time() - start_time,
        error_message=error_msg,
    )


def run_streaming(
    command: Sequence[str],
    env: dict[str, str] | None = None,
    console: TextIO | None = None,
) -> CommandResult:
    """
    Run a command with stdout passed through and stderr teed to the console.

    stderr is echoed line by line as it arrives and kept for error reporting.

    Args:
        command: Command and arguments
        env: Environment for the child process
        console: Stream receiving stderr lines (defaults to sys.stderr)

    Returns:
        CommandResult with the captured stderr
    """
    command = tuple(command)
    if console is None:
        console = sys.stderr
    start_time = time.time()
    logger.debug(f"Executing: {' '.join(command)}")

    try:
        proc = subprocess.Popen(
            command,
            stdout=None,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env,
        )
    except FileNotFoundError:
        return CommandResult(
            command=command,
            exit_code=-1,
            stdout="",
            stderr="",
            duration_seconds=time.time() - start_time,
            error_message=f"Command not found: {command[0]}",
        )
    except Exception as e:
        return CommandResult(
            command=command,
            exit_code=-1,
            stdout="",
            stderr="",
            duration_seconds=time.time() - start_time,
            error_message=f"Unexpected error: {e}",
        )

    captured: list[str] = []
    for line in proc.stderr:
        console.write(line)
        captured.append(line)
    exit_code = proc.wait()
    stderr = "".join(captured)

    return CommandResult(
        command=command,
        exit_code=exit_code,
        stdout="",
        stderr=stderr,
        duration_seconds=time.time() - start_time,
        error_message=_failure_message(exit_code, stderr) if exit_code != 0 else None,
    )


class GoCommand:
    """
    Runs subcommands of one go executable.

    When bin_dir is set, it is exported as GOBIN so that `go install`
    writes into the directory that is being inspected.
    """

    def __init__(self, go_cli: str = "go", bin_dir: Path | None = None, timeout: int | None = None):
        self.go_cli = go_cli
        self.bin_dir = bin_dir
        self.timeout = timeout

    def env(self) -> dict[str, str] | None:
        if self.bin_dir is None:
            return None
        return {**os.environ, "GOBIN": str(self.bin_dir)}

    def command(self, *args: str) -> tuple[str, ...]:
        return (self.go_cli, *args)

    def run(self, *args: str) -> CommandResult:
        """Run a go subcommand with captured output."""
        return run_captured(self.command(*args), timeout=self.timeout, env=self.env())

