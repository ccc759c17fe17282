from __future__ import annotations

import json
import subprocess
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tdd_machine.config import default_config_data  # noqa: E402

KATA_TEXT = textwrap.dedent(
    """
    # String calculator

    Implement add() for comma separated numbers.
    """
).lstrip()


@dataclass(slots=True)
class TddWorkspace:
    """Fixture payload representing a throwaway TDD workspace."""

    root: Path
    config_path: Path

    def run_git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout

    def commit_count(self) -> int:
        probe = subprocess.run(
            ["git", "rev-parse", "--verify", "HEAD"],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=False,
        )
        if probe.returncode != 0:
            return 0
        return int(self.run_git("rev-list", "--count", "HEAD").strip())

    def commit_messages(self) -> List[str]:
        """Return full commit messages, newest first."""
        if self.commit_count() == 0:
            return []
        raw = self.run_git("log", "--format=%B%x00")
        return [entry.strip() for entry in raw.split("\0") if entry.strip()]

    def write_config(self, **overrides: Dict[str, Any]) -> None:
        data = workspace_config_data()
        for section, values in overrides.items():
            data[section].update(values)
        with self.config_path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(data, handle, sort_keys=False)

    def plan_files(self) -> List[str]:
        plan_dir = self.root / ".tdd" / "plan"
        if not plan_dir.exists():
            return []
        return sorted(path.name for path in plan_dir.iterdir())


def workspace_config_data() -> Dict[str, Any]:
    data = default_config_data()
    data["ci"] = {"fmt": ["true"], "check": ["true"], "test": ["true"]}
    return data


def edit_plan_json(commit_message: str, files: Dict[str, str], notes: str = "") -> str:
    return json.dumps(
        {
            "commit_message": commit_message,
            "notes": notes,
            "files": [{"path": path, "contents": contents} for path, contents in files.items()],
        }
    )


@pytest.fixture()
def tdd_workspace(tmp_path: Path) -> TddWorkspace:
    """Create an empty git repository with tdd.yaml and kata.md but no commits."""

    root = tmp_path / "kata"
    root.mkdir()
    subprocess.run(["git", "init"], cwd=root, check=True, capture_output=True, text=True)

    (root / "kata.md").write_text(KATA_TEXT, encoding="utf-8")
    workspace = TddWorkspace(root=root, config_path=root / "tdd.yaml")
    workspace.write_config()
    return workspace


@pytest.fixture()
def plan_json():
    """Return a helper that renders an edit plan payload as JSON text."""

    return edit_plan_json
