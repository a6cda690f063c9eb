"""Shared fixtures for the CREator backend tests."""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from creator_backend.runtime import EnvironmentMode, OrchestratorConfig
from creator_backend.web import create_app

VALID_KEY = "ab" * 32

posix_only = pytest.mark.skipif(
    sys.platform.startswith("win"), reason="fake CLI scripts need /bin/sh"
)


@pytest.fixture
def orchestrator(tmp_path: Path) -> Path:
    root = tmp_path / "cre-orchestrator"
    root.mkdir()
    return root


@pytest.fixture
def make_config(orchestrator: Path):
    def _make(**overrides) -> OrchestratorConfig:
        overrides.setdefault("orchestrator_root", orchestrator)
        overrides.setdefault("environment_mode", EnvironmentMode.DEVELOPMENT)
        return OrchestratorConfig(**overrides)

    return _make


@pytest.fixture
def fake_cli(tmp_path: Path):
    """Write an executable shell script standing in for the cre CLI."""

    def _make(body: str, name: str = "fake-cre") -> str:
        script = tmp_path / name
        script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def client(make_config):
    with TestClient(create_app(make_config())) as c:
        yield c
