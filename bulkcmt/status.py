"""Working-tree and index change reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Union

from .git import UNMERGED_CODES, RawChange


class FileStatus(str, Enum):
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"
    CONFLICTED = "conflicted"


# Raw per-side status codes collapsed onto the canonical statuses. Unmerged
# codes are handled separately because they always win.
STATUS_CODES: Dict[str, FileStatus] = {
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "A": FileStatus.ADDED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.RENAMED,
    "??": FileStatus.UNTRACKED,
}

FILTER_KINDS = (
    "all",
    "modified",
    "added",
    "deleted",
    "staged",
    "unstaged",
    "conflicted",
)


@dataclass
class FileChange:
    """A single pending change as presented to callers."""

    path: str
    relative_path: str
    status: FileStatus
    staged: bool
    # Source path when the change is a rename or copy.
    original_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Union[str, bool, None]]:
        return {
            "path": self.path,
            "relativePath": self.relative_path,
            "status": self.status.value,
            "staged": self.staged,
            "originalPath": self.original_path,
        }


def classify(code: str) -> FileStatus:
    """Map a raw git status code onto a :class:`FileStatus`."""
    code = code.strip()
    if code in UNMERGED_CODES:
        return FileStatus.CONFLICTED
    return STATUS_CODES.get(code, FileStatus.MODIFIED)


def reconcile(
    working_tree_changes: Iterable[RawChange],
    index_changes: Iterable[RawChange],
    root: Optional[Path] = None,
) -> List[FileChange]:
    """Merge unstaged and staged change lists into one entry per path.

    Working-tree entries seed the result unstaged. Index entries then mark an
    existing path staged, keeping the working-tree status, or add the path
    staged with the index status. A conflicted classification from either
    side replaces any other status for that path. Paths are kept exactly as
    git reports them, relative to the repository root.
    """

    base = Path(root) if root is not None else None
    merged: Dict[str, FileChange] = {}

    def _absolute(relative: str) -> str:
        return str(base / relative) if base is not None else relative

    for change in working_tree_changes:
        status = classify(change.code)
        existing = merged.get(change.path)
        if existing is None:
            merged[change.path] = FileChange(
                path=_absolute(change.path),
                relative_path=change.path,
                status=status,
                staged=False,
                original_path=change.original_path,
            )
        elif status is FileStatus.CONFLICTED:
            existing.status = status

    for change in index_changes:
        status = classify(change.code)
        existing = merged.get(change.path)
        if existing is None:
            merged[change.path] = FileChange(
                path=_absolute(change.path),
                relative_path=change.path,
                status=status,
                staged=True,
                original_path=change.original_path,
            )
            continue
        existing.staged = True
        if change.original_path and existing.original_path is None:
            existing.original_path = change.original_path
        if status is FileStatus.CONFLICTED:
            existing.status = status

    return list(merged.values())


class StatusReconciler:
    """Reads both change lists from a repository and reconciles them."""

    def __init__(self, repo) -> None:
        self.repo = repo

    def changed_files(self) -> List[FileChange]:
        entries = self.repo.status_entries()
        return reconcile(
            self.repo.list_working_tree_changes(entries),
            self.repo.list_index_changes(entries),
            root=self.repo.root,
        )


def filter_changes(
    changes: Iterable[FileChange],
    kind: str = "all",
    query: Optional[str] = None,
) -> List[FileChange]:
    """Narrow a change list the way the file list filters do."""
    if kind not in FILTER_KINDS:
        raise ValueError(f"Unknown filter {kind!r}; expected one of {FILTER_KINDS}")

    def _keep(change: FileChange) -> bool:
        if kind == "modified":
            return change.status is FileStatus.MODIFIED
        if kind == "added":
            return change.status in (FileStatus.ADDED, FileStatus.UNTRACKED)
        if kind == "deleted":
            return change.status is FileStatus.DELETED
        if kind == "staged":
            return change.staged
        if kind == "unstaged":
            return not change.staged
        if kind == "conflicted":
            return change.status is FileStatus.CONFLICTED
        return True

    needle = query.strip().lower() if query else ""
    return [
        change
        for change in changes
        if _keep(change) and (not needle or needle in change.relative_path.lower())
    ]


def group_by_folder(changes: Iterable[FileChange]) -> Dict[str, List[FileChange]]:
    """Group entries by parent folder; the repository root is ``""``."""
    groups: Dict[str, List[FileChange]] = {}
    for change in changes:
        parent = str(PurePosixPath(change.relative_path).parent)
        folder = "" if parent == "." else parent
        groups.setdefault(folder, []).append(change)
    return groups
