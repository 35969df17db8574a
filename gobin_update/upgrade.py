"""
Update orchestration.

Turns discovered build metadata into artefacts, then lists or updates them
one at a time. A failing candidate is logged and recorded; it never stops
the remaining candidates from being processed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .artefact import Artefact, new_artefact
from .buildinfo import BuildMetadata, check_go_version
from .collectors import (
    CommandVersionSource,
    HttpGet,
    ProxyVersionSource,
    ToolchainVersionSource,
    build_version_source,
    http_get,
)
from .config import Config
from .environment import GoEnvironment
from .errors import (
    ConstructionError,
    FilesystemStepError,
    InstallError,
    MetadataRejectedError,
)
from .gocmd import GoCommand
from .installer import Installer

logger = logging.getLogger(__name__)

MODE_LIST = "list"
MODE_UPDATE = "update"
MODES = (MODE_LIST, MODE_UPDATE)

# Outcome statuses
REJECTED = "REJECTED"
SKIPPED = "SKIPPED"
UP_TO_DATE = "UP-TO-DATE"
OUTDATED = "OUTDATED"
UPDATED = "UPDATED"
FAILED = "FAILED"


@dataclass(frozen=True)
class ArtefactOutcome:
    """
    What happened to one discovered candidate.

    Attributes:
        binary_path: Executable the candidate was read from
        status: One of REJECTED, SKIPPED, UP-TO-DATE, OUTDATED, UPDATED, FAILED
        artefact: Constructed artefact (None if rejected or skipped)
        error_message: Reason for REJECTED, SKIPPED or FAILED
        duration_seconds: Time spent updating
    """
    binary_path: str
    status: str
    artefact: Artefact | None = None
    error_message: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "binary_path": self.binary_path,
            "status": self.status,
            "artefact": self.artefact.to_dict() if self.artefact else None,
            "error_message": self.error_message,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class RunResult:
    """
    Result of one list or update run.

    Attributes:
        mode: "list" or "update"
        outcomes: Per-candidate outcomes in discovery order
        duration_seconds: Total run time
        dry_run: Whether updates were only planned
    """
    mode: str
    outcomes: tuple[ArtefactOutcome, ...]
    duration_seconds: float
    dry_run: bool = False

    def _with_status(self, *statuses: str) -> tuple[ArtefactOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status in statuses)

    @property
    def artefacts(self) -> tuple[Artefact, ...]:
        return tuple(o.artefact for o in self.outcomes if o.artefact is not None)

    @property
    def updated(self) -> tuple[ArtefactOutcome, ...]:
        return self._with_status(UPDATED)

    @property
    def outdated(self) -> tuple[ArtefactOutcome, ...]:
        return self._with_status(OUTDATED)

    @property
    def failures(self) -> tuple[ArtefactOutcome, ...]:
        return self._with_status(FAILED)

    @property
    def skipped(self) -> tuple[ArtefactOutcome, ...]:
        return self._with_status(REJECTED, SKIPPED)

    def rows(self) -> list[tuple[str, str, str]]:
        """(install path, installed version, target version) per artefact."""
        return [(a.install_path, a.installed_version, a.target_version) for a in self.artefacts]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode,
            "dry_run": self.dry_run,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "duration_seconds": self.duration_seconds,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        up_to_date = len(self._with_status(UP_TO_DATE))
        return f"""
Update Summary{' (dry-run)' if self.dry_run else ''}:
  ✅ Up-to-date: {up_to_date}
  ⬆  Outdated: {len(self.outdated)}
  🔄 Updated: {len(self.updated)}
  ❌ Failed: {len(self.failures)}
  ⏭️  Skipped: {len(self.skipped)}
  ⏱️  Duration: {self.duration_seconds:.1f}s
"""


class UpdateOrchestrator:
    """
    Processes discovered candidates sequentially.

    Attributes:
        config: Immutable run configuration
        installer: Executes install actions
        version_source: Resolves latest module versions
        toolchain_source: Resolves the current stable toolchain
        bin_dir: Directory holding the installed binaries
    """

    def __init__(
        self,
        config: Config,
        installer: Installer,
        version_source: ProxyVersionSource | CommandVersionSource,
        toolchain_source: ToolchainVersionSource,
        bin_dir: Path,
    ):
        self.config = config
        self.installer = installer
        self.version_source = version_source
        self.toolchain_source = toolchain_source
        self.bin_dir = bin_dir

    @classmethod
    def from_environment(
        cls,
        config: Config,
        env: GoEnvironment,
        http_get: HttpGet = http_get,
    ) -> UpdateOrchestrator:
        """Wire the real go command, installer and version sources."""
        gocmd = GoCommand(env.go_cli, bin_dir=env.bin_dir, timeout=config.timeout_seconds)
        return cls(
            config=config,
            installer=Installer(gocmd, log_level=config.log_level),
            version_source=build_version_source(config, gocmd, http_get),
            toolchain_source=ToolchainVersionSource(
                config.toolchain_version_url,
                http_get=http_get,
                timeout=config.timeout_seconds,
            ),
            bin_dir=env.bin_dir,
        )

    def construct(self, metadata: BuildMetadata) -> Artefact:
        """
        Validate metadata and construct its artefact.

        Raises:
            MetadataRejectedError: If the binary was built by a too old toolchain
            ConstructionError: If the artefact cannot be constructed
        """
        check_go_version(metadata, self.config.min_go_version)
        return new_artefact(
            metadata,
            version_source=self.version_source,
            toolchain_source=self.toolchain_source,
            installer=self.installer,
            bin_dir=self.bin_dir,
            preserve_settings=self.config.preserve_settings,
        )

    def process(self, metadata: BuildMetadata, mode: str) -> ArtefactOutcome:
        """Construct one candidate and list or update it."""
        try:
            artefact = self.construct(metadata)
        except MetadataRejectedError as e:
            logger.warning(f"Rejected {metadata.name}: {e.message}")
            return ArtefactOutcome(metadata.binary_path, REJECTED, error_message=e.message)
        except ConstructionError as e:
            logger.warning(f"Skipping {metadata.name}: {e.message}")
            return ArtefactOutcome(metadata.binary_path, SKIPPED, error_message=e.message)

        if not artefact.needs_update():
            logger.debug(f"{artefact.describe()} (up-to-date)")
            return ArtefactOutcome(metadata.binary_path, UP_TO_DATE, artefact=artefact)

        if mode == MODE_LIST:
            return ArtefactOutcome(metadata.binary_path, OUTDATED, artefact=artefact)

        if self.config.dry_run:
            logger.info(f"Dry-run: would update {artefact.describe()}")
            for step in artefact.plan():
                logger.info(f"  {step}")
            return ArtefactOutcome(metadata.binary_path, OUTDATED, artefact=artefact)

        start_time = time.time()
        logger.info(f"Updating {artefact.describe()}")
        try:
            artefact.update()
        except (InstallError, FilesystemStepError) as e:
            logger.error(f"Update of {artefact.install_path} failed: {e.message}")
            return ArtefactOutcome(
                metadata.binary_path,
                FAILED,
                artefact=artefact,
                error_message=e.message,
                duration_seconds=time.time() - start_time,
            )

        return ArtefactOutcome(
            metadata.binary_path,
            UPDATED,
            artefact=artefact,
            duration_seconds=time.time() - start_time,
        )

    def run(self, candidates: Iterable[BuildMetadata], mode: str = MODE_UPDATE) -> RunResult:
        """
        List or update every candidate, in order.

        Args:
            candidates: Build metadata from discovery
            mode: "list" (never installs) or "update"

        Returns:
            RunResult with one outcome per candidate

        Raises:
            ValueError: If mode is unknown
        """
        if mode not in MODES:
            raise ValueError(f"Invalid mode: {mode}. Must be one of: {', '.join(MODES)}")

        start_time = time.time()
        outcomes = [self.process(metadata, mode) for metadata in candidates]
        return RunResult(
            mode=mode,
            outcomes=tuple(outcomes),
            duration_seconds=time.time() - start_time,
            dry_run=self.config.dry_run and mode == MODE_UPDATE,
        )
