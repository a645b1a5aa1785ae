"""Tests for the click CLI, against a temporary sqlite store and catalog snapshot."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner, Result

from main import main


@pytest.fixture
def cli_env(tmp_path, monkeypatch, catalog_data):
    monkeypatch.delenv("TRACKER_DB_PATH", raising=False)
    monkeypatch.delenv("TARKOV_API_URL", raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "settings.yaml").write_text(
        "storage:\n"
        f"  progress_db: {tmp_path / 'data' / 'progress.db'}\n"
        "tracker:\n"
        "  default_game_mode: pvp\n",
        encoding="utf-8",
    )
    snapshot = tmp_path / "catalog.json"
    snapshot.write_text(json.dumps({"data": catalog_data}), encoding="utf-8")
    return ["--config-dir", str(config_dir), "--catalog", str(snapshot)]


def _invoke(args: list[str]) -> Result:
    return CliRunner().invoke(main, args)


def test_task_then_progress(cli_env):
    result = _invoke([*cli_env, "task", "u1", "t1", "failed"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["data"] == {"taskId": "t1", "state": "failed"}

    result = _invoke([*cli_env, "progress", "u1"])
    assert result.exit_code == 0, result.output
    view = json.loads(result.stdout)
    tasks = {item["id"]: item for item in view["tasksProgress"]}
    assert tasks["t1"]["failed"] is True
    assert tasks["t2"]["invalid"] is True
    assert view["userId"] == "u1"


def test_batch_and_objective(cli_env):
    result = _invoke([*cli_env, "tasks", "u1", "t1=completed", "t2=completed"])
    assert result.exit_code == 0, result.output

    result = _invoke([*cli_env, "objective", "u1", "o2", "--count", "4"])
    assert result.exit_code == 0, result.output

    view = json.loads(_invoke([*cli_env, "progress", "u1"]).stdout)
    objectives = {item["id"]: item for item in view["taskObjectivesProgress"]}
    assert objectives["o2"]["count"] == 4


def test_malformed_batch_pair(cli_env):
    result = _invoke([*cli_env, "tasks", "u1", "t1"])
    assert result.exit_code != 0
    assert "TASK_ID=STATE" in result.output


def test_progress_errors_exit_non_zero(cli_env):
    result = _invoke([*cli_env, "progress", "nobody"])
    assert result.exit_code == 1
    assert "Error (404)" in result.output

    result = _invoke([*cli_env, "level", "u1", "0"])
    assert result.exit_code == 1
    assert "Error (400)" in result.output


def test_mode_switch_and_reset(cli_env):
    assert _invoke([*cli_env, "switch-mode", "u1", "pve"]).exit_code == 0
    assert _invoke([*cli_env, "level", "u1", "33"]).exit_code == 0
    view = json.loads(_invoke([*cli_env, "progress", "u1", "--mode", "pve"]).stdout)
    assert view["playerLevel"] == 33

    result = _invoke([*cli_env, "reset", "u1", "--yes"])
    assert result.exit_code == 0, result.output
    view = json.loads(_invoke([*cli_env, "progress", "u1", "--mode", "pve"]).stdout)
    assert view["playerLevel"] == 1


def test_migrate_command(cli_env):
    result = _invoke([*cli_env, "migrate", "nobody"])
    assert result.exit_code == 1


def test_entry_and_hideout_commands(cli_env):
    assert _invoke([*cli_env, "module", "u1", "gen-1", "completed"]).exit_code == 0

    result = _invoke([*cli_env, "entry", "u1", "hideoutModule", "gen-1"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["state"] == "completed"

    result = _invoke([*cli_env, "hideout", "u1", "--module", "gen-2"])
    assert result.exit_code == 0, result.output
    plan = json.loads(result.stdout)
    assert "gen-1" not in plan["remainingModules"]
    assert plan["module"]["totalConstructionTime"] == 300

    assert _invoke([*cli_env, "entry", "u1", "quest", "q1"]).exit_code != 0
