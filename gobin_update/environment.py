"""
Go environment detection.

Resolves the directory holding installed binaries and the go CLI used to
inspect and install them. Failures here are fatal for the whole process.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .config import Config
from .errors import SetupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoEnvironment:
    """
    Detected Go environment.

    Attributes:
        bin_dir: Directory where `go install` places binaries
        go_cli: Absolute path of the go executable
    """
    bin_dir: Path
    go_cli: str

    def __str__(self) -> str:
        return f"GOBIN={self.bin_dir} go={self.go_cli}"


def resolve_bin_dir(config: Config, environ: Mapping[str, str]) -> Path:
    """
    Determine the binary directory.

    Order: configured bin_dir (already includes $GOBIN), first $GOPATH entry
    plus /bin, then $HOME/go/bin.

    Raises:
        SetupError: If none of them is available
    """
    if config.bin_dir:
        return Path(os.path.expanduser(config.bin_dir))

    gopath = environ.get("GOPATH", "")
    if gopath:
        first = gopath.split(os.pathsep)[0]
        return Path(first) / "bin"

    home = environ.get("HOME", "")
    if home:
        return Path(home) / "go" / "bin"

    raise SetupError("unable to determine GOBIN: $GOBIN, $GOPATH and $HOME are not set")


def detect_environment(config: Config, environ: Mapping[str, str] | None = None) -> GoEnvironment:
    """
    Detect and validate the Go environment.

    Args:
        config: Loaded configuration
        environ: Environment mapping (defaults to os.environ)

    Returns:
        GoEnvironment with a validated bin directory and go CLI

    Raises:
        SetupError: If the bin directory or the go CLI is unusable
    """
    if environ is None:
        environ = os.environ

    bin_dir = resolve_bin_dir(config, environ)
    if not bin_dir.exists():
        raise SetupError(f"GOBIN ({bin_dir}) does not exist")
    if not bin_dir.is_dir():
        raise SetupError(f"GOBIN ({bin_dir}) is not a directory")

    go_cli = shutil.which(config.go_cli)
    if not go_cli:
        raise SetupError(f"looking up go cli path: {config.go_cli} not found in PATH")

    env = GoEnvironment(bin_dir=bin_dir, go_cli=go_cli)
    logger.debug(f"Environment: {env}")
    return env
