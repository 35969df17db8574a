"""
Discovery of installed Go binaries.

Scans the bin directory, filters out directories, non-executables, ignored
names and aliases, and reads the build metadata of the rest.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import stat
from pathlib import Path
from typing import Iterator, Sequence

from .buildinfo import BuildMetadata, read_build_info
from .errors import BuildInfoError
from .gocmd import GoCommand

logger = logging.getLogger(__name__)


def load_ignore_file(path: str | Path) -> tuple[list[str], list[str]]:
    """
    Read exclude and include patterns from an ignore file.

    Lines starting with '#' are comments; lines starting with '!' are
    include patterns that re-admit names matched by an exclude pattern.

    Args:
        path: Ignore file location

    Returns:
        (exclude, include) pattern lists; both empty if the file is missing

    Raises:
        OSError: If the file exists but cannot be read
    """
    exclude: list[str] = []
    include: list[str] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return exclude, include

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("!"):
            include.append(line[1:])
        else:
            exclude.append(line)

    logger.debug(f"Loaded ignore file {path}: {len(exclude)} exclude, {len(include)} include")
    return exclude, include


def is_ignored(name: str, exclude: Sequence[str], include: Sequence[str]) -> bool:
    """Whether name matches an exclude pattern and no include pattern."""
    if not any(fnmatch.fnmatchcase(name, pattern) for pattern in exclude):
        return False
    return not any(fnmatch.fnmatchcase(name, pattern) for pattern in include)


def is_executable(mode: int) -> bool:
    return bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def discover(
    bin_dir: Path,
    gocmd: GoCommand,
    exclude: Sequence[str] = (),
    include: Sequence[str] = (),
) -> Iterator[BuildMetadata]:
    """
    Yield build metadata for every Go binary in bin_dir.

    Regular files are visited before symlinks, each group in name order. A
    symlink resolving to a binary that was already yielded (such as the `go`
    toolchain alias) is skipped.

    Args:
        bin_dir: Directory to scan
        gocmd: go executable used to read build info
        exclude: Ignore patterns
        include: Patterns overriding exclude

    Raises:
        OSError: If the directory cannot be listed
    """
    entries = sorted(os.scandir(bin_dir), key=lambda e: (e.is_symlink(), e.name))
    seen: set[str] = set()

    for entry in entries:
        if entry.is_dir():
            logger.warning(f"skipping directory: {entry.name}")
            continue

        if is_ignored(entry.name, exclude, include):
            logger.info(f"skipping ignored file: {entry.name}")
            continue

        try:
            mode = entry.stat().st_mode
        except OSError as e:
            logger.warning(f"skipping unreadable file: {entry.name}: {e}")
            continue
        if not is_executable(mode):
            logger.warning(f"skipping non-executable file: {entry.name}")
            continue

        real = os.path.realpath(entry.path)
        if real in seen:
            logger.info(f"skipping alias: {entry.name} -> {real}")
            continue
        seen.add(real)

        try:
            yield read_build_info(Path(entry.path), gocmd)
        except BuildInfoError as e:
            logger.info(f"unable to inspect binary, skipping: {entry.name}: {e.message}")
