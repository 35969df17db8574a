"""
Latest version collection for Go modules.

Two interchangeable strategies resolve the latest version of a module:
the module proxy protocol (`{proxy}/{module}/@latest`) and `go list -m
-versions`. The Go toolchain itself is resolved from the release endpoint
that names the current stable version.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from .config import Config
from .errors import NetworkError, NoVersionsError, ParseError, ResolutionError
from .gocmd import GoCommand

logger = logging.getLogger(__name__)

USER_AGENT = "gobin-update/1.0"

# Upper bound for error bodies included in messages
MAX_ERROR_BODY = 512

# Lets `go install` pick the version itself
LATEST = "latest"

HttpGet = Callable[[str, "int | None"], bytes]

# https://semver.org with the "v" prefix Go requires on tags
_IDENT = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
SEMVER_RE = re.compile(
    r"v(?:0|[1-9]\d*)\.(?:0|[1-9]\d*)\.(?:0|[1-9]\d*)"
    rf"(?:-(?P<prerelease>{_IDENT}(?:\.{_IDENT})*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?"
)


@dataclass(frozen=True)
class VersionInfo:
    """Answer of a module proxy `@latest` query."""
    version: str
    time: datetime | None = None


@dataclass(frozen=True)
class ProxyEntry:
    """
    One element of a GOPROXY list.

    Attributes:
        url: Proxy base URL, or the keywords 'direct' / 'off'
        fallback_on_error: Try the next entry on any error ('|' separator),
            not only on 404/410 (',' separator)
    """
    url: str
    fallback_on_error: bool = False


def escape_module_path(path: str) -> str:
    """Escape a module path for the proxy protocol ("Azure" -> "!azure")."""
    out = []
    for ch in path:
        if ch.isupper():
            out.append("!")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def unescape_module_path(escaped: str) -> str:
    """
    Reverse escape_module_path.

    Raises:
        ValueError: If the string is not a valid escaped module path
    """
    out = []
    bang = False
    for ch in escaped:
        if bang:
            if not ch.islower():
                raise ValueError(f"invalid escaped module path: {escaped!r}")
            out.append(ch.upper())
            bang = False
        elif ch == "!":
            bang = True
        elif ch.isupper():
            raise ValueError(f"invalid escaped module path: {escaped!r}")
        else:
            out.append(ch)
    if bang:
        raise ValueError(f"invalid escaped module path: {escaped!r}")
    return "".join(out)


def http_get(url: str, timeout: int | None = None) -> bytes:
    """Perform HTTP GET request.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds (None waits indefinitely)

    Returns:
        Response body as bytes

    Raises:
        NetworkError: If the request fails or the response is not 2xx
    """
    logger.debug(f"making request: GET {url}")
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read()
    except urllib.error.HTTPError as e:
        body = e.read(MAX_ERROR_BODY).decode("utf-8", "replace")
        raise NetworkError(
            f"GET {url}: got {e.code} {e.reason}: {body.strip()}",
            status=e.code,
            body=body,
        ) from e
    except (urllib.error.URLError, OSError) as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e


def parse_goproxy(value: str) -> list[ProxyEntry]:
    """Parse a GOPROXY value such as "https://a,https://b|direct"."""
    entries: list[ProxyEntry] = []
    parts = re.split(r"([,|])", value)
    for i in range(0, len(parts), 2):
        url = parts[i].strip()
        if not url:
            continue
        separator = parts[i + 1] if i + 1 < len(parts) else ","
        entries.append(ProxyEntry(url=url.rstrip("/"), fallback_on_error=separator == "|"))
    return entries


def _parse_time(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    # Go emits RFC 3339 with up to nanosecond precision
    text = re.sub(r"(\.\d{6})\d+", r"\1", value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"ignoring unparsable version time {value!r}")
        return None


def decode_version_info(body: bytes) -> VersionInfo:
    """
    Decode a proxy `@latest` JSON body.

    Raises:
        ParseError: If the body is not JSON or has no Version string
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ParseError(f"decode latest version: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("decode latest version: expected a JSON object")
    version = data.get("Version")
    if not isinstance(version, str) or not version:
        raise ParseError("decode latest version: missing Version field")
    return VersionInfo(version=version, time=_parse_time(data.get("Time")))


def is_stable_version(v: str) -> bool:
    """Whether v is a valid semantic version tag without a prerelease marker."""
    match = SEMVER_RE.fullmatch(v)
    return match is not None and match.group("prerelease") is None


def select_stable_version(versions: Sequence[str]) -> str | None:
    """
    Pick the newest stable version.

    Args:
        versions: Version tags ordered oldest to newest

    Returns:
        The newest valid, non-prerelease version, or None
    """
    for v in reversed(versions):
        if is_stable_version(v):
            return v
        logger.debug(f"skipping version {v!r}")
    return None


class CommandVersionSource:
    """Resolves latest versions by listing them with `go list -m -versions`."""

    def __init__(self, gocmd: GoCommand):
        self.gocmd = gocmd

    def list_versions(self, module_path: str) -> list[str]:
        result = self.gocmd.run("list", "-m", "-versions", "-json", module_path)
        if not result.success:
            raise NetworkError(f"go list {module_path}: {result.error_message}")
        try:
            data = json.loads(result.stdout)
        except ValueError as e:
            raise ParseError(f"go list {module_path}: {e}") from e
        versions = data.get("Versions") if isinstance(data, dict) else None
        if versions is None:
            return []
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            raise ParseError(f"go list {module_path}: Versions is not a list of strings")
        return versions

    def resolve(self, module_path: str) -> str:
        """
        Resolve the newest stable version of a module.

        Returns "latest" (and logs a warning) when no versions are listed.

        Raises:
            NetworkError: If go list fails
            ParseError: If the output cannot be decoded
            NoVersionsError: If versions exist but none is stable
        """
        versions = self.list_versions(module_path)
        if not versions:
            logger.warning(f"{module_path}: no versions listed, deferring to '{LATEST}'")
            return LATEST

        selected = select_stable_version(versions)
        if selected is None:
            raise NoVersionsError(f"{module_path}: no stable version among {len(versions)} listed")
        return selected


class ProxyVersionSource:
    """Resolves latest versions through the module proxies in GOPROXY."""

    def __init__(
        self,
        goproxy: str,
        direct: CommandVersionSource | None = None,
        http_get: HttpGet = http_get,
        timeout: int | None = None,
    ):
        self.proxies = parse_goproxy(goproxy)
        self.direct = direct
        self.http_get = http_get
        self.timeout = timeout

    def latest_url(self, proxy: str, module_path: str) -> str:
        # See https://go.dev/ref/mod#goproxy-protocol
        return f"{proxy}/{escape_module_path(module_path)}/@latest"

    def lookup(self, module_path: str) -> VersionInfo:
        """
        Query the proxies in order for the latest version of a module.

        Raises:
            ResolutionError: If no proxy can answer (subclass gives the reason)
        """
        last_error: ResolutionError | None = None
        for entry in self.proxies:
            if entry.url == "off":
                raise ResolutionError(f"{module_path}: module lookup disabled by GOPROXY=off")
            if entry.url == "direct":
                if self.direct is None:
                    raise ResolutionError(f"{module_path}: direct lookup not available")
                return VersionInfo(version=self.direct.resolve(module_path))

            try:
                body = self.http_get(self.latest_url(entry.url, module_path), self.timeout)
            except NetworkError as e:
                last_error = e
                if e.not_found or entry.fallback_on_error:
                    logger.debug(f"{entry.url}: {e.message}, trying next proxy")
                    continue
                raise
            return decode_version_info(body)

        if last_error is not None:
            raise last_error
        raise ResolutionError(f"{module_path}: no module proxy configured")

    def resolve(self, module_path: str) -> str:
        return self.lookup(module_path).version


class ToolchainVersionSource:
    """Resolves the current stable Go release from a plain-text endpoint."""

    def __init__(self, url: str, http_get: HttpGet = http_get, timeout: int | None = None):
        self.url = url
        self.http_get = http_get
        self.timeout = timeout

    def resolve(self) -> str:
        """
        Fetch the endpoint and return its first line.

        Raises:
            NetworkError: If the request fails
            ParseError: If the first line is empty
        """
        body = self.http_get(self.url, self.timeout).decode("utf-8", "replace")
        first_line = body.split("\n", 1)[0].strip()
        if not first_line:
            raise ParseError(f"{self.url}: empty toolchain version")
        return first_line


def build_version_source(
    config: Config,
    gocmd: GoCommand,
    http_get: HttpGet = http_get,
) -> ProxyVersionSource | CommandVersionSource:
    """Create the version source selected for this deployment."""
    command_source = CommandVersionSource(gocmd)
    if config.version_source == "list":
        return command_source
    return ProxyVersionSource(
        config.goproxy,
        direct=command_source,
        http_get=http_get,
        timeout=config.timeout_seconds,
    )
