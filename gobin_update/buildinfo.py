"""
Build metadata embedded in Go executables.

Metadata is read with `go version -m <file>`, whose output looks like:

    /home/user/go/bin/gopls: go1.21.0
            path    golang.org/x/tools/gopls
            mod     golang.org/x/tools/gopls        v0.14.0 h1:...
            dep     golang.org/x/mod        v0.14.0 h1:...
            build   -tags=netgo
            build   CGO_ENABLED=1
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from packaging import version as pkg_version

from .errors import BuildInfoError, MetadataRejectedError
from .gocmd import GoCommand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildSetting:
    """A single `build` line from the embedded build info."""
    key: str
    value: str

    def as_flag(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class BuildMetadata:
    """
    Build metadata of one installed executable.

    Attributes:
        binary_path: Executable the metadata was read from
        module_path: Path of the main module
        install_path: Path of the main package (module path plus subdirectory)
        installed_version: Version of the main module
        go_version: Toolchain version the binary was built with
        settings: Build settings in the order they were recorded
    """
    binary_path: str
    module_path: str
    install_path: str
    installed_version: str
    go_version: str
    settings: tuple[BuildSetting, ...] = ()

    @property
    def name(self) -> str:
        return Path(self.binary_path).name

    def preserved_flags(self, keys: Sequence[str]) -> tuple[str, ...]:
        """Render the settings whose key is in `keys` as `key=value` flags."""
        return tuple(s.as_flag() for s in self.settings if s.key in keys)


def _unquote(value: str) -> str:
    # Go quotes setting values that contain spaces, quotes or '='
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        try:
            return json.loads(value)
        except ValueError:
            return value[1:-1]
    return value


def parse_version_output(output: str) -> BuildMetadata:
    """
    Parse the output of `go version -m` for a single file.

    Args:
        output: Command output

    Returns:
        Parsed BuildMetadata

    Raises:
        BuildInfoError: If the output carries no main module
    """
    lines = output.splitlines()
    if not lines or ": " not in lines[0]:
        raise BuildInfoError(f"unexpected go version output: {output[:200]!r}")

    binary_path, _, go_version = lines[0].rpartition(": ")
    go_version = go_version.strip()

    install_path = ""
    module_path = ""
    installed_version = ""
    settings: list[BuildSetting] = []

    for line in lines[1:]:
        fields = line.strip().split("\t")
        kind = fields[0]
        if kind == "path" and len(fields) >= 2:
            install_path = fields[1]
        elif kind == "mod" and len(fields) >= 3:
            module_path = fields[1]
            installed_version = fields[2]
        elif kind == "build" and len(fields) >= 2:
            key, sep, value = fields[1].partition("=")
            if sep:
                settings.append(BuildSetting(key=key, value=_unquote(value)))

    if not module_path:
        raise BuildInfoError(f"{binary_path}: no main module in build info")

    return BuildMetadata(
        binary_path=binary_path,
        module_path=module_path,
        install_path=install_path or module_path,
        installed_version=installed_version,
        go_version=go_version,
        settings=tuple(settings),
    )


def read_build_info(path: Path, gocmd: GoCommand) -> BuildMetadata:
    """
    Read the build metadata of an executable.

    Raises:
        BuildInfoError: If the file is not a Go binary or has no module info
    """
    result = gocmd.run("version", "-m", str(path))
    if not result.success:
        raise BuildInfoError(f"unable to read buildinfo of {path}: {result.error_message}")
    metadata = parse_version_output(result.stdout)
    # Report the path we scanned, go may print it differently
    if metadata.binary_path != str(path):
        metadata = BuildMetadata(
            binary_path=str(path),
            module_path=metadata.module_path,
            install_path=metadata.install_path,
            installed_version=metadata.installed_version,
            go_version=metadata.go_version,
            settings=metadata.settings,
        )
    return metadata


def parse_go_version(go_version: str) -> pkg_version.Version:
    """
    Parse a toolchain version like "go1.21.0" or "go1.22rc1".

    Raises:
        ValueError: If the string is not a release toolchain version
    """
    token = go_version.strip().split(" ")[0]
    if not token.startswith("go"):
        raise ValueError(f"not a go toolchain version: {go_version!r}")
    try:
        return pkg_version.Version(token[2:])
    except pkg_version.InvalidVersion as e:
        raise ValueError(f"not a go toolchain version: {go_version!r}") from e


def meets_minimum_go_version(go_version: str, minimum: str) -> bool:
    """Whether go_version is at least minimum; unparsable versions never are."""
    try:
        return parse_go_version(go_version) >= parse_go_version(minimum)
    except ValueError:
        return False


def check_go_version(metadata: BuildMetadata, minimum: str) -> None:
    """
    Reject metadata built with a toolchain older than minimum.

    Raises:
        MetadataRejectedError: If the toolchain is too old or unrecognized
    """
    if not meets_minimum_go_version(metadata.go_version, minimum):
        raise MetadataRejectedError(
            f"{metadata.name}: go version too old to update "
            f"({metadata.go_version or 'unknown'} < {minimum})"
        )
