"""
Tests for version collection (gobin_update/collectors.py).
"""

import io
import json
import urllib.error
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import pytest

from gobin_update.collectors import (
    LATEST,
    MAX_ERROR_BODY,
    CommandVersionSource,
    ProxyEntry,
    ProxyVersionSource,
    ToolchainVersionSource,
    build_version_source,
    decode_version_info,
    escape_module_path,
    unescape_module_path,
    http_get,
    is_stable_version,
    parse_goproxy,
    select_stable_version,
)
from gobin_update.config import Config
from gobin_update.errors import NetworkError, NoVersionsError, ParseError, ResolutionError
from gobin_update.gocmd import CommandResult


def fake_http(responses):
    """Build an http_get stand-in from a {url: bytes | Exception} mapping."""
    calls = []

    def get(url, timeout=None):
        calls.append(url)
        response = responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    get.calls = calls
    return get


def go_list_result(stdout, exit_code=0):
    return CommandResult(
        ("go", "list"), exit_code, stdout, "", 0.1,
        error_message=None if exit_code == 0 else "Command failed with exit code 1",
    )


class TestModulePathEscaping:
    """Tests for module path case escaping."""

    def test_escape(self):
        assert escape_module_path("github.com/Azure/azure-sdk") == "github.com/!azure/azure-sdk"
        assert escape_module_path("github.com/BurntSushi/toml") == "github.com/!burnt!sushi/toml"

    def test_lowercase_unchanged(self):
        """Test escaping is the identity on paths without uppercase letters."""
        path = "golang.org/x/tools/gopls"
        assert escape_module_path(path) == path
        assert escape_module_path(escape_module_path(path)) == path

    @pytest.mark.parametrize("path", [
        "github.com/Azure/azure-sdk",
        "github.com/BurntSushi/toml",
        "example.com/ABC/def",
    ])
    def test_unescape_reverses_escape(self, path):
        assert unescape_module_path(escape_module_path(path)) == path

    @pytest.mark.parametrize("escaped", ["github.com/Azure", "trailing!", "bad!/path", "x!1"])
    def test_unescape_invalid(self, escaped):
        with pytest.raises(ValueError):
            unescape_module_path(escaped)


class TestStableVersion:
    """Tests for stable version selection."""

    @pytest.mark.parametrize("version,expected", [
        ("v1.2.3", True),
        ("v0.0.1", True),
        ("v2.0.0+incompatible", True),
        ("v1.3.0-rc1", False),
        ("v1.0.0-beta.2", False),
        ("v1.0.0-1", False),
        ("1.2.3", False),
        ("not-a-version", False),
        ("v1.2.3.4", False),
        ("v01.2.3", False),
        ("v 1.2.3", False),
        ("v1.2.3+a_b", False),
        ("v1.2", False),
        ("v1.2.3+build.7", True),
    ])
    def test_is_stable(self, version, expected):
        assert is_stable_version(version) is expected

    def test_select_skips_prerelease_and_invalid(self):
        versions = ["v1.2.0", "v1.3.0-rc1", "not-a-version", "v1.4.0"]
        assert select_stable_version(versions) == "v1.4.0"

    def test_select_scans_from_newest(self):
        versions = ["v1.0.0", "v1.1.0", "v1.2.0-rc1", "garbage"]
        assert select_stable_version(versions) == "v1.1.0"

    def test_select_none(self):
        assert select_stable_version(["v1.0.0-rc1", "bogus"]) is None
        assert select_stable_version([]) is None


class TestParseGoproxy:
    """Tests for GOPROXY list parsing."""

    def test_comma_separated(self):
        assert parse_goproxy("https://proxy.golang.org,direct") == [
            ProxyEntry("https://proxy.golang.org"),
            ProxyEntry("direct"),
        ]

    def test_pipe_separated(self):
        assert parse_goproxy("https://a.example/|https://b.example,off") == [
            ProxyEntry("https://a.example", fallback_on_error=True),
            ProxyEntry("https://b.example"),
            ProxyEntry("off"),
        ]

    def test_empty_elements_skipped(self):
        assert parse_goproxy(",https://a.example,,") == [ProxyEntry("https://a.example")]


class TestDecodeVersionInfo:
    """Tests for proxy @latest response decoding."""

    def test_decode(self):
        info = decode_version_info(b'{"Version":"v1.2.0","Time":"2023-08-08T21:28:00.123456789Z"}')
        assert info.version == "v1.2.0"
        assert info.time == datetime(2023, 8, 8, 21, 28, 0, 123456, tzinfo=timezone.utc)

    def test_bad_time_ignored(self):
        assert decode_version_info(b'{"Version":"v1.2.0","Time":"yesterday"}').time is None

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"Time":"2023-01-01T00:00:00Z"}', b'{"Version":""}'])
    def test_malformed(self, body):
        with pytest.raises(ParseError):
            decode_version_info(body)


class TestHttpGet:
    """Tests for the HTTP transport."""

    @patch("gobin_update.collectors.urllib.request.urlopen")
    def test_success(self, mock_urlopen):
        response = MagicMock()
        response.read.return_value = b"go1.22.0\n"
        mock_urlopen.return_value.__enter__.return_value = response

        assert http_get("https://go.dev/VERSION?m=text", timeout=10) == b"go1.22.0\n"
        request = mock_urlopen.call_args.args[0]
        assert request.get_header("User-agent").startswith("gobin-update/")
        assert mock_urlopen.call_args.kwargs["timeout"] == 10

    @patch("gobin_update.collectors.urllib.request.urlopen")
    def test_http_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "https://proxy/x/@latest", 404, "Not Found", {}, io.BytesIO(b"not found: unknown module"),
        )
        with pytest.raises(NetworkError) as exc_info:
            http_get("https://proxy/x/@latest")
        assert exc_info.value.status == 404
        assert exc_info.value.not_found
        assert "unknown module" in exc_info.value.body

    @patch("gobin_update.collectors.urllib.request.urlopen")
    def test_http_error_body_truncated(self, mock_urlopen):
        """Test large error pages are cut to MAX_ERROR_BODY bytes."""
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "https://proxy/x/@latest", 500, "Internal Server Error", {}, io.BytesIO(b"x" * 4096),
        )
        with pytest.raises(NetworkError) as exc_info:
            http_get("https://proxy/x/@latest")
        assert len(exc_info.value.body) == MAX_ERROR_BODY
        assert "x" * (MAX_ERROR_BODY + 1) not in exc_info.value.message

    @patch("gobin_update.collectors.urllib.request.urlopen")
    def test_connection_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("connection refused")
        with pytest.raises(NetworkError) as exc_info:
            http_get("https://proxy/x/@latest")
        assert exc_info.value.status is None


class TestCommandVersionSource:
    """Tests for `go list -m -versions` resolution."""

    def test_resolve(self):
        gocmd = MagicMock()
        gocmd.run.return_value = go_list_result(json.dumps({
            "Path": "example.com/tool",
            "Versions": ["v1.0.0", "v1.1.0", "v1.2.0-rc1"],
        }))
        assert CommandVersionSource(gocmd).resolve("example.com/tool") == "v1.1.0"
        gocmd.run.assert_called_once_with("list", "-m", "-versions", "-json", "example.com/tool")

    def test_no_versions_defers_to_latest(self, caplog):
        """Test an untagged module falls back to 'latest' with a warning."""
        gocmd = MagicMock()
        gocmd.run.return_value = go_list_result(json.dumps({"Path": "example.com/untagged"}))
        with caplog.at_level("WARNING", logger="gobin_update.collectors"):
            assert CommandVersionSource(gocmd).resolve("example.com/untagged") == LATEST
        assert "no versions listed" in caplog.text

    def test_only_prereleases(self):
        gocmd = MagicMock()
        gocmd.run.return_value = go_list_result(json.dumps({"Versions": ["v0.1.0-alpha"]}))
        with pytest.raises(NoVersionsError):
            CommandVersionSource(gocmd).resolve("example.com/tool")

    def test_command_failure(self):
        gocmd = MagicMock()
        gocmd.run.return_value = go_list_result("", exit_code=1)
        with pytest.raises(NetworkError):
            CommandVersionSource(gocmd).resolve("example.com/tool")

    def test_malformed_output(self):
        gocmd = MagicMock()
        gocmd.run.return_value = go_list_result("{")
        with pytest.raises(ParseError):
            CommandVersionSource(gocmd).resolve("example.com/tool")


class TestProxyVersionSource:
    """Tests for module proxy resolution."""

    def test_latest_url_escapes_path(self):
        source = ProxyVersionSource("https://proxy.golang.org")
        assert source.latest_url("https://proxy.golang.org", "github.com/BurntSushi/toml") == \
            "https://proxy.golang.org/github.com/!burnt!sushi/toml/@latest"

    def test_resolve(self):
        get = fake_http({
            "https://proxy.golang.org/example.com/tool/@latest": b'{"Version":"v1.2.0"}',
        })
        source = ProxyVersionSource("https://proxy.golang.org,direct", http_get=get)
        assert source.resolve("example.com/tool") == "v1.2.0"

    def test_not_found_falls_through_comma(self):
        get = fake_http({
            "https://a.example/example.com/tool/@latest": NetworkError("gone", status=410),
            "https://b.example/example.com/tool/@latest": b'{"Version":"v1.3.0"}',
        })
        source = ProxyVersionSource("https://a.example,https://b.example", http_get=get)
        assert source.resolve("example.com/tool") == "v1.3.0"
        assert len(get.calls) == 2

    def test_server_error_stops_at_comma(self):
        get = fake_http({
            "https://a.example/example.com/tool/@latest": NetworkError("boom", status=500),
            "https://b.example/example.com/tool/@latest": b'{"Version":"v1.3.0"}',
        })
        source = ProxyVersionSource("https://a.example,https://b.example", http_get=get)
        with pytest.raises(NetworkError, match="boom"):
            source.resolve("example.com/tool")
        assert len(get.calls) == 1

    def test_any_error_falls_through_pipe(self):
        get = fake_http({
            "https://a.example/example.com/tool/@latest": NetworkError("connection refused"),
            "https://b.example/example.com/tool/@latest": b'{"Version":"v1.3.0"}',
        })
        source = ProxyVersionSource("https://a.example|https://b.example", http_get=get)
        assert source.resolve("example.com/tool") == "v1.3.0"

    def test_direct_delegates_to_go_list(self):
        get = fake_http({
            "https://proxy.golang.org/example.com/private/@latest": NetworkError("not found", status=404),
        })
        direct = MagicMock()
        direct.resolve.return_value = "v0.3.0"
        source = ProxyVersionSource("https://proxy.golang.org,direct", direct=direct, http_get=get)

        assert source.resolve("example.com/private") == "v0.3.0"
        direct.resolve.assert_called_once_with("example.com/private")

    def test_off(self):
        source = ProxyVersionSource("off", http_get=fake_http({}))
        with pytest.raises(ResolutionError, match="GOPROXY=off"):
            source.resolve("example.com/tool")

    def test_all_not_found(self):
        get = fake_http({
            "https://a.example/example.com/tool/@latest": NetworkError("not found", status=404),
        })
        source = ProxyVersionSource("https://a.example", http_get=get)
        with pytest.raises(NetworkError) as exc_info:
            source.resolve("example.com/tool")
        assert exc_info.value.not_found

    def test_malformed_body(self):
        get = fake_http({"https://a.example/example.com/tool/@latest": b"<html>"})
        with pytest.raises(ParseError):
            ProxyVersionSource("https://a.example", http_get=get).resolve("example.com/tool")


class TestToolchainVersionSource:
    """Tests for stable toolchain resolution."""

    def test_first_line_only(self):
        get = fake_http({"https://go.dev/VERSION?m=text": b"go1.22.0\ntime 2024-02-06T17:51:16Z\n"})
        assert ToolchainVersionSource("https://go.dev/VERSION?m=text", http_get=get).resolve() == "go1.22.0"

    def test_empty_body(self):
        get = fake_http({"https://go.dev/VERSION?m=text": b"\n"})
        with pytest.raises(ParseError):
            ToolchainVersionSource("https://go.dev/VERSION?m=text", http_get=get).resolve()


class TestBuildVersionSource:
    """Tests for version source selection."""

    def test_proxy_default(self):
        source = build_version_source(Config(), MagicMock())
        assert isinstance(source, ProxyVersionSource)
        assert isinstance(source.direct, CommandVersionSource)

    def test_list(self):
        assert isinstance(build_version_source(Config(version_source="list"), MagicMock()), CommandVersionSource)
