from __future__ import annotations

from pathlib import Path

import pytest

from creator_backend import cli

from conftest import VALID_KEY, posix_only


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    # Keep load_dotenv away from any .env in the real working directory
    monkeypatch.chdir(tmp_path)
    for var in ("ORCHESTRATOR_PATH", "CREATOR_ENV", "CRE_CLI", "PORT", "HOST"):
        monkeypatch.delenv(var, raising=False)


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "creator-backend" in capsys.readouterr().out


def test_env_status_reports_missing_key(orchestrator: Path, capsys):
    (orchestrator / ".env").write_text("CRE_ETH_PRIVATE_KEY=your_key\n")

    assert cli.main(["env-status", "--orchestrator-path", str(orchestrator)]) == 1
    assert "configured: no" in capsys.readouterr().out


def test_env_status_reports_configured_key(orchestrator: Path, monkeypatch, capsys):
    (orchestrator / ".env").write_text(f"CRE_ETH_PRIVATE_KEY={VALID_KEY}\n")
    monkeypatch.setenv("ORCHESTRATOR_PATH", str(orchestrator))

    assert cli.main(["env-status"]) == 0
    assert "configured: yes" in capsys.readouterr().out


def test_simulate_requires_orchestrator_directory(tmp_path: Path, capsys):
    assert cli.main(["simulate", "--orchestrator-path", str(tmp_path / "absent")]) == 1
    assert "not found" in capsys.readouterr().err


@posix_only
def test_simulate_prints_output(orchestrator: Path, fake_cli, monkeypatch, capsys):
    monkeypatch.setenv("CRE_CLI", fake_cli('echo "simulation complete"'))

    assert cli.main(["simulate", "--orchestrator-path", str(orchestrator)]) == 0
    assert "simulation complete" in capsys.readouterr().out


def test_serve_applies_overrides(orchestrator: Path, monkeypatch):
    captured = {}

    def fake_run_server(config, log_level="info"):
        captured["config"] = config
        captured["log_level"] = log_level

    monkeypatch.setattr("creator_backend.web.run_server", fake_run_server)

    code = cli.main(
        [
            "--log-level",
            "WARNING",
            "serve",
            "-p",
            "4321",
            "--env",
            "production",
            "--hackathon",
            "--orchestrator-path",
            str(orchestrator),
        ]
    )

    assert code == 0
    config = captured["config"]
    assert config.port == 4321
    assert config.orchestrator_root == orchestrator
    assert config.is_production and config.file_operations_enabled
    assert captured["log_level"] == "warning"
