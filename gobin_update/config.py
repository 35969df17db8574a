"""
Configuration file parsing and management.

Supports YAML configuration files (JSON for *.json paths). Merges
configurations from multiple sources (defaults → system → user → project →
custom path), then applies the Go environment variables on top.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping

import yaml

from .logging_config import normalize_level

logger = logging.getLogger(__name__)


# Configuration file locations (lowest priority first)
CONFIG_LOCATIONS = [
    "/etc/gobin-update/config.yml",                            # System global
    os.path.expanduser("~/.config/gobin-update/config.yml"),   # User global
    ".gobin-update.yml",                                       # Project root
]

DEFAULT_GOPROXY = "https://proxy.golang.org,direct"
DEFAULT_TOOLCHAIN_VERSION_URL = "https://go.dev/VERSION?m=text"
DEFAULT_IGNORE_FILE = os.path.expanduser("~/.config/gobin-update/ignore")

VERSION_SOURCES = ("proxy", "list")


@dataclass(frozen=True)
class Config:
    """
    Process-wide configuration, passed explicitly to every component.

    Attributes:
        bin_dir: Directory holding installed binaries ("" = derive from GOPATH/HOME)
        go_cli: Path or name of the go executable
        goproxy: Module proxy list in GOPROXY syntax
        version_source: Strategy for resolving latest versions ('proxy' or 'list')
        min_go_version: Oldest toolchain whose binaries are considered
        toolchain_version_url: Endpoint returning the current stable Go release
        preserve_settings: Build setting keys carried over to `go install`
        log_level: Log level name, also drives `go install` verbosity
        ignore_file: Path of the ignore pattern file
        timeout_seconds: Deadline for version lookups (None = no deadline)
        dry_run: Log updates instead of executing them
        source: Paths of the configuration files that were loaded
    """
    bin_dir: str = ""
    go_cli: str = "go"
    goproxy: str = DEFAULT_GOPROXY
    version_source: str = "proxy"
    min_go_version: str = "go1.18"
    toolchain_version_url: str = DEFAULT_TOOLCHAIN_VERSION_URL
    preserve_settings: tuple[str, ...] = ("-tags",)
    log_level: str = "WARNING"
    ignore_file: str = DEFAULT_IGNORE_FILE
    timeout_seconds: int | None = None
    dry_run: bool = False
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version_source not in VERSION_SOURCES:
            raise ValueError(
                f"Invalid version_source: {self.version_source}. "
                f"Must be one of: {', '.join(VERSION_SOURCES)}"
            )

        if not self.min_go_version.startswith("go"):
            raise ValueError(
                f"Invalid min_go_version: {self.min_go_version}. "
                "Must look like 'go1.18'"
            )

        if self.timeout_seconds is not None and not 1 <= self.timeout_seconds <= 600:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 600"
            )

        if not self.goproxy.strip():
            raise ValueError("goproxy must not be empty")

        # Raises ValueError for unknown names
        object.__setattr__(self, "log_level", normalize_level(self.log_level))

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        defaults = Config()

        def text(key: str) -> str:
            # A key without a value (`bin_dir:`) counts as unset
            value = data.get(key)
            if value is None:
                return getattr(defaults, key)
            if not isinstance(value, str):
                raise ValueError(f"Invalid {key}: {value!r}. Must be a string")
            return value

        preserve = data.get("preserve_settings")
        if preserve is None:
            preserve = defaults.preserve_settings
        elif isinstance(preserve, str):
            preserve = [preserve]
        if not isinstance(preserve, (list, tuple)) or not all(isinstance(p, str) for p in preserve):
            raise ValueError(f"Invalid preserve_settings: {preserve!r}. Must be a list of strings")

        timeout = data.get("timeout_seconds")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, int)):
            raise ValueError(f"Invalid timeout_seconds: {timeout!r}. Must be an integer")

        dry_run = data.get("dry_run")
        if dry_run is not None and not isinstance(dry_run, bool):
            raise ValueError(f"Invalid dry_run: {dry_run!r}. Must be true or false")

        return Config(
            bin_dir=text("bin_dir"),
            go_cli=text("go_cli"),
            goproxy=text("goproxy"),
            version_source=text("version_source"),
            min_go_version=text("min_go_version"),
            toolchain_version_url=text("toolchain_version_url"),
            preserve_settings=tuple(preserve),
            log_level=text("log_level"),
            ignore_file=os.path.expanduser(text("ignore_file")),
            timeout_seconds=timeout,
            dry_run=bool(dry_run),
            source=source,
        )

    def with_overrides(self, **changes: Any) -> Config:
        """Return a copy with the given fields replaced (None values are ignored)."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return dataclasses.replace(self, **changes)


def _load_yaml(file_path: str) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid YAML
    """
    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {file_path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _load_json(file_path: str) -> dict[str, Any]:
    """
    Load a JSON configuration file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, dict) else {}


def load_config_file(file_path: str) -> dict[str, Any] | None:
    """
    Load raw configuration data from a single file.

    Args:
        file_path: Path to a .yml/.yaml or .json configuration file

    Returns:
        Parsed dictionary, or None if the file does not exist

    Raises:
        ValueError: If the file exists but cannot be read or parsed
    """
    if not os.path.exists(file_path):
        return None

    logger.debug(f"Loading config from: {file_path}")
    try:
        if file_path.endswith(".json"):
            return _load_json(file_path)
        return _load_yaml(file_path)
    except (OSError, ValueError) as e:
        raise ValueError(f"Could not load config from {file_path}: {e}") from e


def apply_environment(config: Config, environ: Mapping[str, str]) -> Config:
    """
    Apply Go environment variables on top of file configuration.

    Honors GOBIN, GOPROXY, GOMINVERSION, LOG and GOBIN_UPDATE_IGNORE.
    GOPATH and HOME are only consulted later, when no bin_dir is set at all.

    Args:
        config: Configuration loaded from files
        environ: Environment mapping (usually os.environ)

    Returns:
        New Config with environment overrides applied
    """
    return config.with_overrides(
        bin_dir=environ.get("GOBIN") or None,
        goproxy=environ.get("GOPROXY") or None,
        min_go_version=environ.get("GOMINVERSION") or None,
        log_level=environ.get("LOG") or None,
        ignore_file=environ.get("GOBIN_UPDATE_IGNORE") or None,
    )


def load_config(
    custom_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Environment variables (GOBIN, GOPROXY, GOMINVERSION, LOG)
    2. Custom path (if provided)
    3. Project .gobin-update.yml
    4. User ~/.config/gobin-update/config.yml
    5. System /etc/gobin-update/config.yml
    6. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path cannot be loaded or a value is invalid
    """
    if environ is None:
        environ = os.environ

    merged: dict[str, Any] = {}
    sources: list[str] = []

    for location in CONFIG_LOCATIONS:
        try:
            data = load_config_file(location)
        except ValueError as e:
            logger.warning(f"Ignoring config file: {e}")
            continue
        if data is not None:
            merged.update(data)
            sources.append(location)

    if custom_path:
        data = load_config_file(custom_path)
        if data is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        merged.update(data)
        sources.append(custom_path)

    if not sources:
        logger.debug("No config files found, using defaults")

    try:
        config = Config.from_dict(merged, source=", ".join(sources))
    except TypeError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return apply_environment(config, environ)
