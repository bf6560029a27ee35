"""Core bulk commit workflow for bulkcmt."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence

from .exceptions import GitError, RepositoryBusyError, RepositoryNotFoundError

if TYPE_CHECKING:
    from .events import RepositoryEvents
    from .git import GitRepo

logger = logging.getLogger(__name__)

RESET = "\033[0m"
BOLD = "\033[1m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
DIM = "\033[2m"
RED = "\033[91m"


@dataclass(frozen=True)
class CommitTask:
    """A file and the message it should be committed with."""

    file_path: str
    message: str


@dataclass(frozen=True)
class CommitResult:
    """Result of a commit operation."""

    success: bool
    file_path: str
    message: Optional[str] = None
    error: Optional[str] = None
    commit_hash: Optional[str] = None


@dataclass
class BulkCommitResult:
    successful: List[CommitResult] = field(default_factory=list)
    failed: List[CommitResult] = field(default_factory=list)
    total_commits: int = 0

    def errors(self) -> List[str]:
        return [f"{result.file_path}: {result.error}" for result in self.failed]

    def summary(self) -> str:
        """Generate a human-readable summary string."""
        parts: List[str] = []
        if self.successful:
            parts.append(f"Successfully created {len(self.successful)} commit(s)")
        else:
            parts.append("No commits were made")
        if self.failed:
            parts.append(f"Failed to commit {len(self.failed)} file(s)")
        parts.append(f"{self.total_commits} task(s) processed")
        return ". ".join(parts)


class WorkflowStats:
    """Tracks batch progress and renders real-time stats."""

    def __init__(self) -> None:
        self.total_files = 0
        self.processed = 0
        self.successes = 0
        self.failures = 0
        self._start = time.time()
        self._lock = threading.Lock()

    def set_total(self, total: int) -> None:
        with self._lock:
            self.total_files = total
            self._start = time.time()

    def mark_result(self, success: bool) -> None:
        with self._lock:
            self.processed += 1
            if success:
                self.successes += 1
            else:
                self.failures += 1

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            elapsed = max(time.time() - self._start, 1e-6)
            return {
                "total_files": self.total_files,
                "processed": self.processed,
                "successes": self.successes,
                "failures": self.failures,
                "elapsed": elapsed,
                "rate": self.processed / elapsed if self.processed else 0.0,
            }


_REPO_LOCKS: Dict[str, threading.Lock] = {}
_REGISTRY_LOCK = threading.Lock()


def _repo_lock(root: Path) -> threading.Lock:
    key = str(Path(root).resolve(strict=False))
    with _REGISTRY_LOCK:
        lock = _REPO_LOCKS.get(key)
        if lock is None:
            lock = _REPO_LOCKS[key] = threading.Lock()
        return lock


@contextmanager
def repository_guard(root: Path) -> Iterator[None]:
    """Hold the single-flight lock for ``root`` or fail immediately.

    Index mutations from two callers would interleave, so a second caller
    gets :class:`RepositoryBusyError` instead of queueing behind the first.
    """
    lock = _repo_lock(root)
    if not lock.acquire(blocking=False):
        raise RepositoryBusyError(
            f"Another operation is already running against {root}"
        )
    try:
        yield
    finally:
        lock.release()


class CommitOrchestrator:
    """Stages and commits files one at a time, never stopping on failure."""

    def __init__(
        self,
        repo: Optional[GitRepo],
        show_progress: bool = False,
        events: Optional[RepositoryEvents] = None,
    ) -> None:
        self.repo = repo
        self.events = events
        self._show_progress = show_progress
        self._stats = WorkflowStats()

    def _require_repo(self) -> GitRepo:
        if self.repo is None:
            raise RepositoryNotFoundError("No repository found")
        return self.repo

    def _notify(self) -> None:
        if self.events is not None:
            self.events.emit()

    def _repo_relative(self, file_path: str) -> str:
        repo = self._require_repo()
        candidate = Path(file_path)
        if candidate.is_absolute():
            try:
                return candidate.relative_to(repo.root).as_posix()
            except ValueError:
                return file_path
        return file_path

    def bulk_commit(self, tasks: Sequence[CommitTask]) -> BulkCommitResult:
        """Commit each task's file with its own message, in input order.

        Raises :class:`RepositoryNotFoundError` before touching anything when
        no repository is bound. Every other failure is recorded on the result
        and the next task still runs.
        """
        repo = self._require_repo()
        result = BulkCommitResult(total_commits=len(tasks))
        self._stats = WorkflowStats()
        self._stats.set_total(len(tasks))

        with repository_guard(repo.root):
            renames = self._staged_renames() if tasks else {}
            try:
                for task in tasks:
                    commit_result = self._commit_single_task(task, renames)
                    if commit_result.success:
                        result.successful.append(commit_result)
                    else:
                        logger.warning(
                            "Failed to commit %s: %s",
                            task.file_path,
                            commit_result.error,
                        )
                        result.failed.append(commit_result)
                    self._stats.mark_result(commit_result.success)
                    self._print_progress()
            finally:
                self._finalize_progress()

        if tasks:
            self._notify()
        return result

    def _staged_renames(self) -> Dict[str, str]:
        """Map each staged rename target to its source path."""
        repo = self._require_repo()
        try:
            changes = repo.list_index_changes()
        except GitError as e:
            logger.warning("Could not read staged renames: %s", e)
            return {}
        return {
            change.path: change.original_path
            for change in changes
            if change.code == "R" and change.original_path
        }

    def _commit_single_task(
        self, task: CommitTask, renames: Optional[Dict[str, str]] = None
    ) -> CommitResult:
        """Stage only ``task.file_path`` and commit it with ``task.message``.

        A staged rename target is committed together with its source path so
        the commit records the rename rather than a bare addition.
        """
        repo = self._require_repo()
        path = self._repo_relative(task.file_path)
        extra = [renames[path]] if renames and path in renames else []

        try:
            repo.stage_file(path)
        except GitError as e:
            return CommitResult(
                success=False,
                file_path=task.file_path,
                message=task.message,
                error=f"Failed to stage: {e}",
            )

        try:
            repo.commit_file(task.message, path, *extra)
        except GitError as e:
            return CommitResult(
                success=False,
                file_path=task.file_path,
                message=task.message,
                error=f"Failed to commit: {e}",
            )

        try:
            commit_hash = repo.head_hash()
        except GitError:
            # The commit already landed; a missing hash is not a failure.
            commit_hash = None
        return CommitResult(
            success=True,
            file_path=task.file_path,
            message=task.message,
            commit_hash=commit_hash,
        )

    def stage_file(self, file_path: str) -> None:
        repo = self._require_repo()
        with repository_guard(repo.root):
            repo.stage_file(self._repo_relative(file_path))
        self._notify()

    def unstage_file(self, file_path: str) -> None:
        repo = self._require_repo()
        with repository_guard(repo.root):
            path = self._repo_relative(file_path)
            source = self._staged_renames().get(path)
            repo.unstage(path, *([source] if source else []))
        self._notify()

    def stats_snapshot(self) -> Dict[str, float]:
        return self._stats.snapshot()

    def _build_progress_line(self, stage: str) -> str:
        snapshot = self._stats.snapshot()
        total = snapshot["total_files"]
        processed = snapshot["processed"]
        success = snapshot["successes"]
        failures = snapshot["failures"]
        rate = snapshot["rate"]

        color = GREEN if stage == "commit" else YELLOW
        return (
            f"{BOLD}bulkcmt{RESET} "
            f"{color}{stage.upper():<7}{RESET} │ "
            f"{GREEN}{processed:>3}{RESET}/{total:>3} files │ "
            f"{GREEN}✓ {success:>3}{RESET} │ "
            f"{RED}✗ {failures:>3}{RESET} │ "
            f"{DIM}{rate:5.2f} commits/s{RESET}   "
        )

    def _print_progress(self) -> None:
        if not self._show_progress:
            return
        print(f"\r{self._build_progress_line('commit')}", end="", flush=True)

    def _finalize_progress(self) -> None:
        if not self._show_progress:
            return
        print("\r\033[K", end="")
        print(self._build_progress_line("done"))
