from __future__ import annotations

from pathlib import Path

import pytest

from tdd_machine.tools.vcs import CommitAuthor, GitError, GitRepository

AUTHOR = CommitAuthor(name="TDD Machine", email="tdd@example.com")


def test_open_or_init_creates_repository(tmp_path: Path) -> None:
    repo = GitRepository.open_or_init(tmp_path / "fresh")

    assert (tmp_path / "fresh" / ".git").is_dir()
    state = repo.state()
    assert state.is_empty
    assert state.head_commit is None
    assert state.last_commit_message == ""
    assert state.last_commit_diff == ""
    assert state.is_clean


def test_constructor_rejects_non_repositories(tmp_path: Path) -> None:
    with pytest.raises(GitError):
        GitRepository(tmp_path)


def test_commit_records_message_author_and_diff(tmp_path: Path) -> None:
    repo = GitRepository.open_or_init(tmp_path)
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "calc.py").write_text("VALUE = 1\n", encoding="utf-8")

    assert not repo.state().is_clean
    repo.stage_all()
    sha = repo.commit("feat: add value\n\nbody text", AUTHOR)

    state = repo.state()
    assert state.head_commit == sha
    assert state.last_commit_message == "feat: add value\n\nbody text"
    assert "+VALUE = 1" in state.last_commit_diff
    assert state.is_clean
    author = repo.git("log", "-1", "--format=%an <%ae>").stdout.strip()
    assert author == "TDD Machine <tdd@example.com>"
    assert repo.commit_count() == 1


def test_commit_without_changes_still_creates_a_commit(tmp_path: Path) -> None:
    repo = GitRepository.open_or_init(tmp_path)
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")
    repo.stage_all()
    repo.commit("first", AUTHOR)

    repo.stage_all()
    repo.commit("second", AUTHOR)

    assert repo.commit_count() == 2


def test_list_workspace_files_honours_ignores_and_hidden_paths(tmp_path: Path) -> None:
    repo = GitRepository.open_or_init(tmp_path)
    (tmp_path / ".gitignore").write_text("build/\n", encoding="utf-8")
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "out.txt").write_text("ignored\n", encoding="utf-8")
    (tmp_path / ".tdd" / "plan").mkdir(parents=True)
    (tmp_path / ".tdd" / "plan" / "step-001-tester.md").write_text("plan\n", encoding="utf-8")
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    (tmp_path / "src" / "pkg" / "mod.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("readme\n", encoding="utf-8")

    assert repo.list_workspace_files() == ["README.md", "src/pkg/mod.py"]


def test_list_workspace_files_skips_deleted_tracked_files(tmp_path: Path) -> None:
    repo = GitRepository.open_or_init(tmp_path)
    (tmp_path / "gone.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "kept.py").write_text("y = 2\n", encoding="utf-8")
    repo.stage_all()
    repo.commit("add files", AUTHOR)
    (tmp_path / "gone.py").unlink()

    assert repo.list_workspace_files() == ["kept.py"]
