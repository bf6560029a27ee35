"""Sync status, soft undo and remote operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from .core import repository_guard
from .exceptions import GitError
from .git import CommitLogEntry, RepositoryInfo

if TYPE_CHECKING:
    from .events import RepositoryEvents
    from .git import GitRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoSyncStatus:
    ahead: int
    behind: int

    @property
    def in_sync(self) -> bool:
        return self.ahead == 0 and self.behind == 0

    def to_dict(self) -> Dict[str, int]:
        return {"ahead": self.ahead, "behind": self.behind}


@dataclass(frozen=True)
class OperationResult:
    success: bool
    error: Optional[str] = None


class SyncStatusTracker:
    """Reports how far the current branch has diverged from its upstream."""

    def __init__(self, repo: GitRepo) -> None:
        self.repo = repo

    def get_sync_status(self) -> Optional[RepoSyncStatus]:
        counts = self.repo.current_branch_ahead_behind()
        if counts is None:
            return None
        ahead, behind = counts
        return RepoSyncStatus(ahead=ahead, behind=behind)


class UndoController:
    """Soft-resets the last commit so its changes return to the index."""

    def __init__(
        self, repo: GitRepo, events: Optional[RepositoryEvents] = None
    ) -> None:
        self.repo = repo
        self.events = events

    def undo_last_commit(self) -> OperationResult:
        """Undo HEAD without touching the working tree.

        Returns a failed :class:`OperationResult` when there is nothing to
        undo or git rejects the reset.
        """
        with repository_guard(self.repo.root):
            try:
                if not self.repo.has_commits():
                    return OperationResult(success=False, error="No commits to undo")
                self.repo.soft_reset_last()
            except GitError as e:
                logger.warning("Undo failed: %s", e)
                return OperationResult(success=False, error=str(e))
        if self.events is not None:
            self.events.emit()
        return OperationResult(success=True)


class RemoteSync:
    """Push, pull and fetch, each reported as a standalone result."""

    def __init__(
        self, repo: GitRepo, events: Optional[RepositoryEvents] = None
    ) -> None:
        self.repo = repo
        self.events = events

    def _run(self, name: str, operation) -> OperationResult:
        try:
            operation()
        except GitError as e:
            logger.warning("%s failed: %s", name.capitalize(), e)
            return OperationResult(success=False, error=str(e))
        if self.events is not None:
            self.events.emit()
        return OperationResult(success=True)

    def push(self) -> OperationResult:
        return self._run("push", self.repo.push)

    def pull(self) -> OperationResult:
        # Pull rewrites the index and working tree, unlike push and fetch.
        with repository_guard(self.repo.root):
            return self._run("pull", self.repo.pull)

    def fetch(self) -> OperationResult:
        return self._run("fetch", self.repo.fetch)


def recent_commits(repo: GitRepo, count: int = 10) -> List[CommitLogEntry]:
    return repo.log(max_entries=count)


def repository_info(repo: GitRepo) -> RepositoryInfo:
    return RepositoryInfo(
        name=repo.root.name or "Unknown",
        branch=repo.current_branch(),
        root_path=str(repo.root),
    )
