"""bulkcmt - per-file bulk committing for Git working copies."""

from importlib import import_module
from typing import TYPE_CHECKING

__version__ = "0.1.0"

# Public API (lazy-exported to avoid import-time side effects)
__all__ = [
    # Config
    "Config", "load_config",
    # Git
    "GitRepo",
    # Status
    "FileChange", "FileStatus", "StatusReconciler", "reconcile",
    # Commit orchestration
    "CommitOrchestrator", "CommitTask", "CommitResult", "BulkCommitResult",
    "apply_template", "build_commit_tasks",
    # Sync and undo
    "SyncStatusTracker", "RepoSyncStatus", "UndoController", "OperationResult",
    # Events
    "RepositoryEvents", "Subscription",
    # Exceptions
    "BulkCommitError", "GitError", "RepositoryNotFoundError",
    "RepositoryBusyError", "ConfigError", "ValidationError",
]


def __getattr__(name: str):
    """Lazy attribute loader to avoid importing every module at package import.

    Keeps ``bulkcmt.config`` (which reads the environment) from loading
    unless it is actually used.
    """
    mapping = {
        # Config
        "Config": ("bulkcmt.config", "Config"),
        "load_config": ("bulkcmt.config", "load_config"),
        # Git
        "GitRepo": ("bulkcmt.git", "GitRepo"),
        # Status
        "FileChange": ("bulkcmt.status", "FileChange"),
        "FileStatus": ("bulkcmt.status", "FileStatus"),
        "StatusReconciler": ("bulkcmt.status", "StatusReconciler"),
        "reconcile": ("bulkcmt.status", "reconcile"),
        # Commit orchestration
        "CommitOrchestrator": ("bulkcmt.core", "CommitOrchestrator"),
        "CommitTask": ("bulkcmt.core", "CommitTask"),
        "CommitResult": ("bulkcmt.core", "CommitResult"),
        "BulkCommitResult": ("bulkcmt.core", "BulkCommitResult"),
        "apply_template": ("bulkcmt.commit", "apply_template"),
        "build_commit_tasks": ("bulkcmt.commit", "build_commit_tasks"),
        # Sync and undo
        "SyncStatusTracker": ("bulkcmt.sync", "SyncStatusTracker"),
        "RepoSyncStatus": ("bulkcmt.sync", "RepoSyncStatus"),
        "UndoController": ("bulkcmt.sync", "UndoController"),
        "OperationResult": ("bulkcmt.sync", "OperationResult"),
        # Events
        "RepositoryEvents": ("bulkcmt.events", "RepositoryEvents"),
        "Subscription": ("bulkcmt.events", "Subscription"),
        # Exceptions
        "BulkCommitError": ("bulkcmt.exceptions", "BulkCommitError"),
        "GitError": ("bulkcmt.exceptions", "GitError"),
        "RepositoryNotFoundError": ("bulkcmt.exceptions", "RepositoryNotFoundError"),
        "RepositoryBusyError": ("bulkcmt.exceptions", "RepositoryBusyError"),
        "ConfigError": ("bulkcmt.exceptions", "ConfigError"),
        "ValidationError": ("bulkcmt.exceptions", "ValidationError"),
    }
    if name in mapping:
        mod_name, attr = mapping[name]
        mod = import_module(mod_name)
        value = getattr(mod, attr)
        globals()[name] = value  # cache for future access
        return value
    raise AttributeError(f"module 'bulkcmt' has no attribute {name!r}")


if TYPE_CHECKING:
    # For type checkers and IDEs, provide direct imports
    from .config import Config, load_config
    from .git import GitRepo
    from .status import FileChange, FileStatus, StatusReconciler, reconcile
    from .core import CommitOrchestrator, CommitTask, CommitResult, BulkCommitResult
    from .commit import apply_template, build_commit_tasks
    from .sync import SyncStatusTracker, RepoSyncStatus, UndoController, OperationResult
    from .events import RepositoryEvents, Subscription
    from .exceptions import (
        BulkCommitError,
        GitError,
        RepositoryNotFoundError,
        RepositoryBusyError,
        ConfigError,
        ValidationError,
    )
