"""Tests for pyproject.toml and package layout."""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest


class TestPackage:
    """Package metadata and imports."""

    def test_version_defined(self):
        import voiceover_relay
        assert isinstance(voiceover_relay.__version__, str)
        assert voiceover_relay.__version__

    def test_modules_importable(self):
        from voiceover_relay import cli, client, main
        from voiceover_relay.api import dependencies, routes, schemas
        from voiceover_relay.core import config, metrics
        from voiceover_relay.services import relay_service, validators
        from voiceover_relay.upstream import google_client, payload

        assert all([cli, client, main, dependencies, routes, schemas, config,
                    metrics, relay_service, validators, google_client, payload])


class TestCLIEntryPoint:

    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "voiceover_relay.cli", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "voiceover CLI" in result.stdout


class TestPyprojectToml:
    """pyproject.toml contents."""

    @pytest.fixture
    def pyproject(self):
        tomllib = pytest.importorskip("tomllib")
        with open(Path(__file__).resolve().parents[1] / "pyproject.toml", "rb") as f:
            return tomllib.load(f)

    def test_project_name(self, pyproject):
        assert pyproject["project"]["name"] == "voiceover-relay"

    def test_runtime_dependencies(self, pyproject):
        deps = " ".join(pyproject["project"]["dependencies"])
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "prometheus-client"):
            assert name in deps

    def test_scripts(self, pyproject):
        scripts = pyproject["project"]["scripts"]
        assert scripts["voiceover"] == "voiceover_relay.cli:main"
        assert scripts["voiceover-relay"] == "voiceover_relay.main:run"
