"""Tests for the composition root (context.py), auth helpers and package metadata."""

from __future__ import annotations

import subprocess
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
from github_fakes import TEST_ECOSYSTEMS_YAML

import devscore
from devscore.config import EngineConfig
from devscore.context import open_app_context
from devscore.fetcher.auth import github_headers, resolve_github_token
from devscore.scorecard.orchestrator import ScorecardOrchestrator
from devscore.server import app_lifespan

CONFIG = EngineConfig(github_token="test-token")


class TestOpenAppContext:
    async def test_creates_http_client_with_retries_transport(self):
        async with open_app_context(CONFIG) as ctx:
            transport = ctx.http_client._transport
            assert isinstance(transport, httpx.AsyncHTTPTransport)
            assert transport._pool._retries == 2

    async def test_creates_http_client_with_timeout(self):
        async with open_app_context(CONFIG) as ctx:
            assert ctx.http_client.timeout.read == 15.0
            assert ctx.http_client.timeout.connect == 5.0
            assert ctx.http_client.follow_redirects is True

    async def test_wires_orchestrator_and_builtin_ecosystems(self):
        async with open_app_context(CONFIG) as ctx:
            assert isinstance(ctx.scorecards, ScorecardOrchestrator)
            assert ctx.ecosystems.snapshot().source == "builtin:default"
            assert ctx.config is CONFIG

    async def test_client_closed_after_exit(self):
        async with open_app_context(CONFIG) as ctx:
            client = ctx.http_client
        assert client.is_closed

    async def test_watcher_task_for_ecosystem_file(self, tmp_path: Path):
        path = tmp_path / "ecosystems.yaml"
        path.write_text(TEST_ECOSYSTEMS_YAML)
        config = EngineConfig(
            github_token="t", ecosystems_path=str(path), ecosystems_reload_seconds=0.01
        )
        async with open_app_context(config) as ctx:
            assert ctx.ecosystems.snapshot().tags == ["web3-infra", "data-science", "devtools"]

    async def test_mcp_lifespan_yields_app_context(self):
        with patch("devscore.context.load_config", return_value=CONFIG):
            async with app_lifespan(MagicMock()) as ctx:
                assert ctx.config is CONFIG


class TestGitHubAuth:
    def test_configured_token_wins(self):
        with patch("devscore.fetcher.auth.subprocess.run") as run:
            assert resolve_github_token("  abc  ") == ("abc", "config")
        run.assert_not_called()

    def test_gh_cli_fallback(self):
        completed = subprocess.CompletedProcess(["gh"], 0, stdout="gho_cli\n", stderr="")
        with patch("devscore.fetcher.auth.subprocess.run", return_value=completed):
            assert resolve_github_token("") == ("gho_cli", "gh_cli")

    def test_no_token(self):
        with patch("devscore.fetcher.auth.subprocess.run", side_effect=FileNotFoundError):
            assert resolve_github_token("") == (None, "none")

    def test_headers(self):
        assert github_headers("abc")["Authorization"] == "Bearer abc"
        assert "Authorization" not in github_headers(None)
        assert github_headers(None)["Accept"] == "application/vnd.github+json"


class TestRuntimeVersion:
    def test_module_version_matches_installed_distribution(self):
        assert devscore.__version__ == distribution_version("devscore")

    def test_resolve_version_uses_fallback_when_metadata_missing(self, monkeypatch):
        def _raise_package_not_found(_: str) -> str:
            raise PackageNotFoundError

        monkeypatch.setattr(devscore, "_distribution_version", _raise_package_not_found)

        assert devscore._resolve_version() == devscore._LOCAL_VERSION_FALLBACK
