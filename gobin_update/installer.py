"""
Installation execution.

Runs `go install package@version` with output streamed to the console, and
the `download` step of Go toolchain wrappers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .errors import InstallError
from .gocmd import CommandResult, GoCommand, run_streaming

logger = logging.getLogger(__name__)


def verbosity_flags(log_level: str) -> tuple[str, ...]:
    """
    Map the configured log level to `go install` flags.

    Args:
        log_level: Canonical level name (DEBUG, INFO, WARNING, ...)

    Returns:
        () for WARNING and above, ("-v",) for INFO, ("-v", "-x") for DEBUG
    """
    if log_level == "DEBUG":
        return ("-v", "-x")
    if log_level == "INFO":
        return ("-v",)
    return ()


def build_install_command(
    gocmd: GoCommand,
    package: str,
    version: str,
    flags: Sequence[str] = (),
    log_level: str = "WARNING",
) -> tuple[str, ...]:
    """Build the `go install` command line for package@version."""
    return gocmd.command(
        "install",
        *verbosity_flags(log_level),
        *flags,
        f"{package}@{version}",
    )


def _check(result: CommandResult, what: str) -> None:
    if result.success:
        return
    message = f"{what}: {result.error_message}"
    raise InstallError(
        message,
        command=result.command,
        exit_code=result.exit_code,
        stderr=result.stderr,
    )


class Installer:
    """
    Executes install actions for resolved (package, version) pairs.

    Attributes:
        gocmd: go executable wrapper (exports GOBIN for the child)
        log_level: Canonical level name controlling go verbosity flags
    """

    def __init__(self, gocmd: GoCommand, log_level: str = "WARNING"):
        self.gocmd = gocmd
        self.log_level = log_level

    def install_command(self, package: str, version: str, flags: Sequence[str] = ()) -> tuple[str, ...]:
        return build_install_command(self.gocmd, package, version, flags, self.log_level)

    def install(self, package: str, version: str, flags: Sequence[str] = ()) -> None:
        """
        Install package@version.

        Args:
            package: Package path to install
            version: Version, or "latest"
            flags: Extra build flags such as "-tags=netgo"

        Raises:
            InstallError: If go install exits non-zero
        """
        command = self.install_command(package, version, flags)
        logger.info(f"Installing {package}@{version}")
        result = run_streaming(command, env=self.gocmd.env())
        _check(result, f"go install {package}@{version}")
        logger.debug(f"Installed {package}@{version} in {result.duration_seconds:.1f}s")

    def download_toolchain(self, binary: Path) -> None:
        """
        Run `<binary> download` to fetch the SDK of a toolchain wrapper.

        Raises:
            InstallError: If the download exits non-zero or the binary is missing
        """
        logger.info(f"Downloading toolchain {binary.name}")
        result = run_streaming((str(binary), "download"), env=self.gocmd.env())
        _check(result, f"{binary.name} download")
