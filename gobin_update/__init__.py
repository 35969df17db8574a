"""
gobin-update - Version auditing and updating of binaries installed with `go install`.

Core Modules:
- Discovery: Bin directory scan, ignore patterns, embedded build metadata
- Version Sources: Module proxy lookup, `go list -versions`, stable toolchain
- Artefacts: Module binaries and toolchain wrappers with their update protocol
- Orchestration: Sequential list/update runs with per-candidate failure isolation
"""

__version__ = "1.0.0"

# Foundation
from .errors import (
    GoUpdateError,
    SetupError,
    BuildInfoError,
    MetadataRejectedError,
    ResolutionError,
    NetworkError,
    ParseError,
    NoVersionsError,
    ConstructionError,
    InstallError,
    FilesystemStepError,
)
from .config import Config, load_config, load_config_file, apply_environment
from .environment import GoEnvironment, detect_environment, resolve_bin_dir
from .gocmd import CommandResult, GoCommand

# Discovery
from .buildinfo import (
    BuildMetadata,
    BuildSetting,
    parse_version_output,
    read_build_info,
    meets_minimum_go_version,
    check_go_version,
)
from .discovery import discover, load_ignore_file, is_ignored

# Version resolution
from .collectors import (
    VersionInfo,
    ProxyVersionSource,
    CommandVersionSource,
    ToolchainVersionSource,
    build_version_source,
    escape_module_path,
    unescape_module_path,
    select_stable_version,
)

# Artefacts and installation
from .installer import Installer, verbosity_flags
from .artefact import (
    Artefact,
    ArtefactKind,
    TOOLCHAIN_MODULE,
    new_artefact,
    new_binary,
    new_toolchain,
)

# Orchestration and output
from .upgrade import ArtefactOutcome, RunResult, UpdateOrchestrator
from .render import render_table, print_summary

# Logging configuration
from .logging_config import setup_logging

__all__ = [
    # Version
    "__version__",
    # Errors
    "GoUpdateError",
    "SetupError",
    "BuildInfoError",
    "MetadataRejectedError",
    "ResolutionError",
    "NetworkError",
    "ParseError",
    "NoVersionsError",
    "ConstructionError",
    "InstallError",
    "FilesystemStepError",
    # Foundation
    "Config",
    "load_config",
    "load_config_file",
    "apply_environment",
    "GoEnvironment",
    "detect_environment",
    "resolve_bin_dir",
    "CommandResult",
    "GoCommand",
    # Discovery
    "BuildMetadata",
    "BuildSetting",
    "parse_version_output",
    "read_build_info",
    "meets_minimum_go_version",
    "check_go_version",
    "discover",
    "load_ignore_file",
    "is_ignored",
    # Version resolution
    "VersionInfo",
    "ProxyVersionSource",
    "CommandVersionSource",
    "ToolchainVersionSource",
    "build_version_source",
    "escape_module_path",
    "unescape_module_path",
    "select_stable_version",
    # Artefacts and installation
    "Installer",
    "verbosity_flags",
    "Artefact",
    "ArtefactKind",
    "TOOLCHAIN_MODULE",
    "new_artefact",
    "new_binary",
    "new_toolchain",
    # Orchestration and output
    "ArtefactOutcome",
    "RunResult",
    "UpdateOrchestrator",
    "render_table",
    "print_summary",
    # Logging
    "setup_logging",
]
