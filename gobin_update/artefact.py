"""
Installed artefacts and their update actions.

An artefact is either an ordinary module binary, updated with a plain
`go install`, or a Go toolchain wrapper from golang.org/dl, which is
installed, downloaded and then activated through the unversioned `go`
symlink in the bin directory.
"""

from __future__ import annotations

import enum
import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .buildinfo import BuildMetadata
from .collectors import CommandVersionSource, ProxyVersionSource, ToolchainVersionSource
from .errors import ConstructionError, FilesystemStepError, ResolutionError
from .installer import Installer

logger = logging.getLogger(__name__)

# Module providing versioned toolchain wrappers (go1.22.0, ...)
TOOLCHAIN_MODULE = "golang.org/dl"

# Unversioned alias pointing at the active toolchain
TOOLCHAIN_ALIAS = "go"


class ArtefactKind(str, enum.Enum):
    BINARY = "binary"
    TOOLCHAIN = "toolchain"


@dataclass(frozen=True)
class Artefact:
    """
    One installed unit and the version it should be updated to.

    Attributes:
        kind: Which update protocol applies
        binary_path: Executable the artefact was discovered as
        module_path: Module used to look up available versions
        install_path: Package path passed to `go install`
        installed_version: Currently installed version
        target_version: Version that should be installed
        build_flags: Preserved build settings, forwarded to `go install`
        installer: Executes install actions
        bin_dir: Directory holding the toolchain wrappers and alias
    """
    kind: ArtefactKind
    binary_path: str
    module_path: str
    install_path: str
    installed_version: str
    target_version: str
    build_flags: tuple[str, ...] = ()
    installer: Installer | None = field(default=None, repr=False, compare=False)
    bin_dir: Path | None = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> str:
        return Path(self.binary_path).name

    def needs_update(self) -> bool:
        return self.installed_version != self.target_version

    def describe(self) -> str:
        if self.needs_update():
            return f"{self.install_path}: {self.installed_version} -> {self.target_version}"
        return f"{self.install_path}: {self.installed_version}"

    def plan(self) -> list[str]:
        """Human-readable steps that update() would perform."""
        installer = self._require_installer()
        if self.kind is ArtefactKind.BINARY:
            return [" ".join(installer.install_command(self.install_path, self.target_version, self.build_flags))]

        bin_dir = self._require_bin_dir()
        return [
            " ".join(installer.install_command(self.install_path, "latest")),
            f"{bin_dir / self.target_version} download",
            f"rm -f {bin_dir / self.installed_version}",
            f"rm -f {bin_dir / TOOLCHAIN_ALIAS}",
            f"ln -s {bin_dir / self.target_version} {bin_dir / TOOLCHAIN_ALIAS}",
        ]

    def update(self) -> None:
        """
        Install the target version.

        Raises:
            InstallError: If an install or download command fails
            FilesystemStepError: If the toolchain alias cannot be swapped
        """
        if self.kind is ArtefactKind.TOOLCHAIN:
            self._update_toolchain()
        else:
            self._update_binary()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "binary_path": self.binary_path,
            "module_path": self.module_path,
            "install_path": self.install_path,
            "installed_version": self.installed_version,
            "target_version": self.target_version,
            "needs_update": self.needs_update(),
        }

    def _require_installer(self) -> Installer:
        if self.installer is None:
            raise ConstructionError(f"{self.name}: no installer configured")
        return self.installer

    def _require_bin_dir(self) -> Path:
        if self.bin_dir is None:
            raise ConstructionError(f"{self.name}: no bin directory configured")
        return self.bin_dir

    def _update_binary(self) -> None:
        self._require_installer().install(self.install_path, self.target_version, self.build_flags)

    def _update_toolchain(self) -> None:
        # Each step must succeed before the next one runs: the old toolchain
        # is only removed once the new one is fully downloaded, and the alias
        # is switched last.
        installer = self._require_installer()
        bin_dir = self._require_bin_dir()
        new_binary = bin_dir / self.target_version
        alias = bin_dir / TOOLCHAIN_ALIAS

        installer.install(self.install_path, "latest")
        installer.download_toolchain(new_binary)
        remove_if_exists(bin_dir / self.installed_version, step="remove old toolchain")
        remove_if_exists(alias, step="remove toolchain alias")
        try:
            alias.symlink_to(new_binary)
        except OSError as e:
            raise FilesystemStepError(
                f"link {alias} -> {new_binary}: {e}",
                step="create toolchain alias",
                path=str(alias),
            ) from e
        logger.info(f"Activated {self.target_version} as {alias}")


def remove_if_exists(path: Path, step: str) -> None:
    """
    Remove a file or symlink; a missing path counts as success.

    Raises:
        FilesystemStepError: For any other OS error
    """
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug(f"{step}: {path} does not exist")
    except OSError as e:
        raise FilesystemStepError(f"{step}: {e}", step=step, path=str(path)) from e


def new_binary(
    metadata: BuildMetadata,
    version_source: ProxyVersionSource | CommandVersionSource,
    installer: Installer,
    preserve_settings: Sequence[str] = ("-tags",),
) -> Artefact:
    """
    Construct an ordinary module binary artefact.

    Raises:
        ConstructionError: If the latest version cannot be resolved
    """
    try:
        target_version = version_source.resolve(metadata.module_path)
    except ResolutionError as e:
        raise ConstructionError(f"{metadata.name}: resolve {metadata.module_path}: {e.message}") from e

    return Artefact(
        kind=ArtefactKind.BINARY,
        binary_path=metadata.binary_path,
        module_path=metadata.module_path,
        install_path=metadata.install_path,
        installed_version=metadata.installed_version,
        target_version=target_version,
        build_flags=metadata.preserved_flags(preserve_settings),
        installer=installer,
    )


def new_toolchain(
    metadata: BuildMetadata,
    toolchain_source: ToolchainVersionSource,
    installer: Installer,
    bin_dir: Path,
) -> Artefact:
    """
    Construct a toolchain wrapper artefact.

    The installed version is the wrapper name (the last element of the
    install path); the target is the current stable release.

    Raises:
        ConstructionError: If the metadata is not a toolchain wrapper or the
            stable release cannot be resolved
    """
    if metadata.module_path != TOOLCHAIN_MODULE:
        raise ConstructionError(f"{metadata.name}: build info is not a go toolchain ({metadata.module_path})")

    installed_version = posixpath.basename(metadata.install_path)
    try:
        target_version = toolchain_source.resolve()
    except ResolutionError as e:
        raise ConstructionError(f"{metadata.name}: resolve stable go version: {e.message}") from e

    return Artefact(
        kind=ArtefactKind.TOOLCHAIN,
        binary_path=metadata.binary_path,
        module_path=TOOLCHAIN_MODULE,
        install_path=posixpath.join(TOOLCHAIN_MODULE, target_version),
        installed_version=installed_version,
        target_version=target_version,
        installer=installer,
        bin_dir=bin_dir,
    )


def new_artefact(
    metadata: BuildMetadata,
    *,
    version_source: ProxyVersionSource | CommandVersionSource,
    toolchain_source: ToolchainVersionSource,
    installer: Installer,
    bin_dir: Path,
    preserve_settings: Sequence[str] = ("-tags",),
) -> Artefact:
    """Construct the artefact variant matching the metadata's module path."""
    if metadata.module_path == TOOLCHAIN_MODULE:
        return new_toolchain(metadata, toolchain_source, installer, bin_dir)
    return new_binary(metadata, version_source, installer, preserve_settings)
