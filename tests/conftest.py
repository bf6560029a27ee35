import subprocess
from collections.abc import Generator
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    for name in (
        "BULKCMT_REPO_PATH",
        "BULKCMT_PUSH_AFTER_COMMIT",
        "BULKCMT_CONFIRM_BEFORE_COMMIT",
        "BULKCMT_GIT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)

    from bulkcmt.config import clear_active_config

    clear_active_config()
    yield
    clear_active_config()


def git(args: list[str], cwd: Path) -> str:
    result = subprocess.run(
        ["git"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(["init", "-q"], path)
    git(["symbolic-ref", "HEAD", "refs/heads/main"], path)
    git(["config", "user.name", "Test"], path)
    git(["config", "user.email", "test@example.com"], path)
    git(["config", "commit.gpgsign", "false"], path)
    return path


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Empty repository (no commits) on branch ``main``."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def seeded_repo(repo_dir: Path) -> Path:
    """Repository with one commit tracking ``a.txt``, ``c.txt`` and ``keep.txt``."""
    for name in ("a.txt", "c.txt", "keep.txt"):
        (repo_dir / name).write_text(f"{name}\n")
    git(["add", "."], repo_dir)
    git(["commit", "-q", "-m", "chore: initial"], repo_dir)
    return repo_dir


@pytest.fixture
def config(repo_dir: Path):
    from bulkcmt.config import Config, set_active_config

    cfg = Config(git_repo_path=str(repo_dir), confirm_before_commit=False, git_timeout=20.0)
    set_active_config(cfg)
    return cfg


@pytest.fixture
def tracked_repo(seeded_repo: Path, tmp_path: Path) -> Path:
    """``seeded_repo`` pushed to a bare ``remote.git`` and tracking it."""
    remote = tmp_path / "remote.git"
    git(["init", "-q", "--bare", str(remote)], tmp_path)
    git(["symbolic-ref", "HEAD", "refs/heads/main"], remote)
    git(["remote", "add", "origin", str(remote)], seeded_repo)
    git(["push", "-q", "-u", "origin", "main"], seeded_repo)
    return seeded_repo
