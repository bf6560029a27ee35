import pytest

from bulkcmt.events import RepositoryEvents
from bulkcmt.git import GitRepo, RawChange
from bulkcmt.sync import (
    OperationResult,
    RemoteSync,
    RepoSyncStatus,
    SyncStatusTracker,
    UndoController,
    recent_commits,
    repository_info,
)

from conftest import git

pytestmark = pytest.mark.integration


def _commit(repo_dir, name, content, message):
    (repo_dir / name).write_text(content)
    git(["add", name], repo_dir)
    git(["commit", "-q", "-m", message], repo_dir)


def test_no_upstream_is_absent(seeded_repo, config):
    assert SyncStatusTracker(GitRepo(str(seeded_repo), config)).get_sync_status() is None


def test_two_commits_ahead(tracked_repo, config):
    repo = GitRepo(str(tracked_repo), config)
    tracker = SyncStatusTracker(repo)
    assert tracker.get_sync_status() == RepoSyncStatus(ahead=0, behind=0)
    assert tracker.get_sync_status().in_sync

    _commit(tracked_repo, "a.txt", "one\n", "feat: one")
    _commit(tracked_repo, "a.txt", "two\n", "feat: two")

    assert tracker.get_sync_status() == RepoSyncStatus(ahead=2, behind=0)


def test_behind_after_fetch(tracked_repo, tmp_path, config):
    other = tmp_path / "other"
    git(["clone", "-q", str(tmp_path / "remote.git"), str(other)], tmp_path)
    git(["config", "user.name", "Other"], other)
    git(["config", "user.email", "other@example.com"], other)
    git(["config", "commit.gpgsign", "false"], other)
    _commit(other, "remote.txt", "r\n", "feat: remote")
    git(["push", "-q", "origin", "HEAD:main"], other)

    repo = GitRepo(str(tracked_repo), config)
    assert RemoteSync(repo).fetch() == OperationResult(success=True)

    assert SyncStatusTracker(repo).get_sync_status() == RepoSyncStatus(ahead=0, behind=1)


def test_undo_with_zero_commits_fails_cleanly(repo_dir, config):
    result = UndoController(GitRepo(str(repo_dir), config)).undo_last_commit()

    assert result == OperationResult(success=False, error="No commits to undo")


def test_undo_is_a_soft_reset(seeded_repo, config):
    _commit(seeded_repo, "a.txt", "edited\n", "feat: edit a")
    (seeded_repo / "keep.txt").write_text("uncommitted work\n")
    events = RepositoryEvents()
    notified = []
    events.subscribe(lambda: notified.append(True))
    repo = GitRepo(str(seeded_repo), config)

    result = UndoController(repo, events).undo_last_commit()

    assert result.success is True
    assert [c.message for c in repo.log(5)] == ["chore: initial"]
    assert repo.list_index_changes() == [RawChange("a.txt", "M")]
    assert (seeded_repo / "a.txt").read_text() == "edited\n"
    assert (seeded_repo / "keep.txt").read_text() == "uncommitted work\n"
    assert notified == [True]


def test_undo_root_commit_leaves_content_staged(seeded_repo, config):
    repo = GitRepo(str(seeded_repo), config)

    result = UndoController(repo).undo_last_commit()

    assert result.success is True
    assert repo.has_commits() is False
    assert sorted(c.path for c in repo.list_index_changes()) == ["a.txt", "c.txt", "keep.txt"]
    assert all(c.code == "A" for c in repo.list_index_changes())


def test_push_without_remote_is_reported(seeded_repo, config):
    result = RemoteSync(GitRepo(str(seeded_repo), config)).push()

    assert result.success is False
    assert result.error


def test_push_sets_upstream_and_clears_ahead(tracked_repo, config):
    repo = GitRepo(str(tracked_repo), config)
    _commit(tracked_repo, "c.txt", "new\n", "fix: c")

    assert RemoteSync(repo).push().success is True
    assert SyncStatusTracker(repo).get_sync_status() == RepoSyncStatus(0, 0)


def test_recent_commits_and_repository_info(seeded_repo, config):
    repo = GitRepo(str(seeded_repo), config)
    _commit(seeded_repo, "a.txt", "2\n", "feat: second")

    commits = recent_commits(repo, 1)
    info = repository_info(repo)

    assert [c.message for c in commits] == ["feat: second"]
    assert info.branch == "main"
    assert info.name == seeded_repo.name
    assert info.root_path == str(repo.root)


def test_repository_info_on_unborn_branch(repo_dir, config):
    assert repository_info(GitRepo(str(repo_dir), config)).branch == "main"
