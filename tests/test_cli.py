from __future__ import annotations

import argparse
import importlib.util
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]

CATALOG = """
- id: polgar
  name: Polgar Mates
  category: Tactics
  scoreboardDisplay: PROGRESS_BAR
  counts:
    A: 10
- id: intro
  name: Intro
  category: Welcome to the Dojo
  scoreboardDisplay: CHECKBOX
  counts:
    ALL_COHORTS: 1
- id: elsewhere
  name: Elsewhere
  category: Endgame
  counts:
    B: 3
"""

USERS = """
- username: alice
  dojoCohort: A
  progress:
    polgar: {requirementId: polgar, counts: {A: 5}}
    intro: {requirementId: intro, counts: {ALL_COHORTS: 1}}
  timeline:
    - {requirementId: polgar, cohort: A, previousCount: 0, newCount: 3, minutesSpent: 65, createdAt: "2024-03-01T00:00:00Z"}
    - {requirementId: polgar, cohort: A, previousCount: 3, newCount: 5, minutesSpent: 0, createdAt: "2024-03-02T00:00:00Z"}
- username: bob
  dojoCohort: A
  timeline:
    - {requirementId: polgar, cohort: A, previousCount: 0, newCount: 2, createdAt: "2024-03-01T00:00:00Z"}
    - {requirementId: polgar, cohort: A, previousCount: 1, newCount: 4, createdAt: "2024-03-02T00:00:00Z"}
- username: carol
  dojoCohort: B
"""


def load_diag(name: str):
    module_path = REPO_ROOT / "scripts" / "tracker_diag.py"
    spec = importlib.util.spec_from_file_location(name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    catalog_dir = tmp_path / "catalog"
    catalog_dir.mkdir()
    (catalog_dir / "requirements.yaml").write_text(CATALOG, encoding="utf-8")
    (tmp_path / "users.yaml").write_text(USERS, encoding="utf-8")
    monkeypatch.setenv("TRACKER_CATALOG_PATHS", str(catalog_dir))
    return tmp_path


def test_catalog_lists_sorted_requirements(workspace: Path, capsys) -> None:
    diag = load_diag("tracker_diag_catalog")

    diag.cmd_catalog(argparse.Namespace(json=True, cohort="A"))

    payload = json.loads(capsys.readouterr().out)
    assert [item["id"] for item in payload] == ["intro", "polgar"]
    assert payload[0]["scoreboardDisplay"] == "CHECKBOX"


def test_scoreboard_for_cohort(workspace: Path, capsys) -> None:
    diag = load_diag("tracker_diag_scoreboard")

    diag.main(["scoreboard", "--cohort", "A", "--users", str(workspace / "users.yaml")])

    payload = json.loads(capsys.readouterr().out)
    assert payload["columns"] == ["intro", "polgar"]
    rows = {row["username"]: row for row in payload["rows"]}
    assert set(rows) == {"alice", "bob"}
    assert rows["alice"]["cohort_score"] == 6
    assert rows["alice"]["percent_complete"] == "55%"


def test_timeline_reports_broken_chain(workspace: Path, capsys) -> None:
    diag = load_diag("tracker_diag_timeline")
    users = str(workspace / "users.yaml")

    diag.main(["timeline", "--users", users, "--username", "alice", "--requirement", "polgar", "--cohort", "A"])
    output = capsys.readouterr().out
    assert "0 -> 3 (1h 5m)" in output
    assert "BROKEN" not in output

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["timeline", "--users", users, "--username", "bob", "--requirement", "polgar", "--cohort", "A"])
    assert excinfo.value.code == 2
    assert "1 -> 4 (0m) BROKEN" in capsys.readouterr().out


def test_missing_user_exits(workspace: Path, capsys) -> None:
    diag = load_diag("tracker_diag_missing")

    with pytest.raises(SystemExit):
        diag.main(
            ["timeline", "--users", str(workspace / "users.yaml"), "--username", "zed",
             "--requirement", "polgar", "--cohort", "A"]
        )
    assert "not found" in capsys.readouterr().out


def test_diagnostics_cli_handles_broken_catalog(tmp_path: Path) -> None:
    script = REPO_ROOT / "scripts" / "tracker_diag.py"
    (tmp_path / "broken.yaml").write_text("- [unclosed\n", encoding="utf-8")
    env = os.environ.copy()
    env["PYTHONPATH"] = f"{REPO_ROOT / 'src'}" + os.pathsep + env.get("PYTHONPATH", "")
    env["TRACKER_CATALOG_PATHS"] = str(tmp_path)
    process = subprocess.run(
        [sys.executable, str(script), "catalog"],
        cwd=str(REPO_ROOT),
        capture_output=True,
        text=True,
        env=env,
    )
    assert process.returncode != 0
    assert "Catalog unavailable" in process.stdout
