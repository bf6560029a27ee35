"""JSON line request/response boundary for front ends."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple, Union, assert_never

from .commit import load_templates
from .config import Config, get_active_config
from .core import CommitOrchestrator, CommitTask
from .events import RepositoryEvents
from .exceptions import BulkCommitError, RepositoryNotFoundError, ValidationError
from .git import GitRepo, find_git_repo_root
from .status import StatusReconciler
from .sync import RemoteSync, SyncStatusTracker, UndoController, recent_commits, repository_info

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class GetChangedFiles:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class CommitFiles:
    commits: Tuple[CommitTask, ...] = ()
    confirmed: bool = False


@dataclass(frozen=True)
class StageFile:
    file_path: str


@dataclass(frozen=True)
class UnstageFile:
    file_path: str


@dataclass(frozen=True)
class UndoLastCommit:
    pass


@dataclass(frozen=True)
class GetTemplates:
    pass


@dataclass(frozen=True)
class PushChanges:
    pass


@dataclass(frozen=True)
class PullChanges:
    pass


@dataclass(frozen=True)
class FetchChanges:
    pass


@dataclass(frozen=True)
class GetSyncStatus:
    pass


@dataclass(frozen=True)
class GetRecentCommits:
    count: int = 10


@dataclass(frozen=True)
class GetDiff:
    file_path: str


Request = Union[
    GetChangedFiles,
    Refresh,
    Ready,
    CommitFiles,
    StageFile,
    UnstageFile,
    UndoLastCommit,
    GetTemplates,
    PushChanges,
    PullChanges,
    FetchChanges,
    GetSyncStatus,
    GetRecentCommits,
    GetDiff,
]


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class ChangedFiles:
    files: List[Dict[str, Any]]
    repo_info: Optional[Dict[str, str]]
    templates: List[Dict[str, str]] = field(default_factory=list)
    settings: Dict[str, bool] = field(default_factory=dict)
    sync: Optional[Dict[str, int]] = None


@dataclass(frozen=True)
class CommitResultInfo:
    successful: int
    failed: int
    total: int
    errors: List[str]


@dataclass(frozen=True)
class ErrorMessage:
    message: str


@dataclass(frozen=True)
class Loading:
    loading: bool


@dataclass(frozen=True)
class Templates:
    templates: List[Dict[str, str]]


@dataclass(frozen=True)
class OperationOutcome:
    operation: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ConfirmationRequired:
    count: int


@dataclass(frozen=True)
class SyncStatusInfo:
    sync: Optional[Dict[str, int]]


@dataclass(frozen=True)
class RecentCommits:
    commits: List[Dict[str, Any]]


@dataclass(frozen=True)
class DiffText:
    file_path: str
    diff: str


Response = Union[
    ChangedFiles,
    CommitResultInfo,
    ErrorMessage,
    Loading,
    Templates,
    OperationOutcome,
    ConfirmationRequired,
    SyncStatusInfo,
    RecentCommits,
    DiffText,
]

RESPONSE_TYPES: Dict[type, str] = {
    ChangedFiles: "changedFiles",
    CommitResultInfo: "commitResult",
    ErrorMessage: "error",
    Loading: "loading",
    Templates: "templates",
    OperationOutcome: "operationResult",
    ConfirmationRequired: "confirmationRequired",
    SyncStatusInfo: "syncStatus",
    RecentCommits: "recentCommits",
    DiffText: "diff",
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialise(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {_camel(key): _serialise(val) for key, val in asdict(value).items()}
    if isinstance(value, dict):
        return {str(key): _serialise(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialise(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def encode_response(response: Response) -> Dict[str, Any]:
    return {"event": RESPONSE_TYPES[type(response)], "payload": _serialise(response)}


# ----------------------------------------------------------------------
# Request parsing
# ----------------------------------------------------------------------
def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"'{key}' must be a non-empty string")
    return value


def _parse_commits(data: Dict[str, Any]) -> Tuple[CommitTask, ...]:
    raw = data.get("commits", [])
    if not isinstance(raw, list):
        raise ValidationError("'commits' must be a list")
    tasks = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError(f"Invalid commit entry: {item!r}")
        message = item.get("message", "")
        if not isinstance(message, str):
            raise ValidationError(f"Invalid commit message for {item.get('filePath')!r}")
        tasks.append(CommitTask(file_path=_require_str(item, "filePath"), message=message))
    return tuple(tasks)


def parse_request(data: Any) -> Request:
    """Build a typed request from a decoded JSON object."""
    if not isinstance(data, dict):
        raise ValidationError("Request must be a JSON object")
    command = data.get("command")
    if command == "getChangedFiles":
        return GetChangedFiles()
    if command == "refresh":
        return Refresh()
    if command == "ready":
        return Ready()
    if command == "commitFiles":
        return CommitFiles(
            commits=_parse_commits(data), confirmed=bool(data.get("confirmed", False))
        )
    if command == "stageFile":
        return StageFile(file_path=_require_str(data, "filePath"))
    if command == "unstageFile":
        return UnstageFile(file_path=_require_str(data, "filePath"))
    if command == "undoLastCommit":
        return UndoLastCommit()
    if command == "getTemplates":
        return GetTemplates()
    if command == "pushChanges":
        return PushChanges()
    if command == "pullChanges":
        return PullChanges()
    if command == "fetchChanges":
        return FetchChanges()
    if command == "getSyncStatus":
        return GetSyncStatus()
    if command == "getRecentCommits":
        count = data.get("count", 10)
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValidationError("'count' must be a positive integer")
        return GetRecentCommits(count=count)
    if command == "getDiff":
        return GetDiff(file_path=_require_str(data, "filePath"))
    raise ValidationError(f"Unknown command: {command!r}")


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------
class BackendSession:
    """Answers requests for one repository through an ``emit`` callback."""

    def __init__(
        self,
        repo: Optional[GitRepo],
        emit: Callable[[Response], None],
        config: Optional[Config] = None,
    ) -> None:
        self.repo = repo
        self._emit = emit
        self._config = config or get_active_config()
        self.events = RepositoryEvents()
        self.orchestrator = CommitOrchestrator(repo, events=self.events)
        self._stale = False
        self._subscription = self.events.subscribe(self._on_repository_changed)

    def close(self) -> None:
        self._subscription.dispose()

    def report_error(self, message: str) -> None:
        self._emit(ErrorMessage(message=message))

    def _on_repository_changed(self) -> None:
        self._stale = True

    def _require_repo(self) -> GitRepo:
        if self.repo is None:
            raise RepositoryNotFoundError("No repository found")
        return self.repo

    def handle(self, request: Request) -> None:
        try:
            self._dispatch(request)
        except BulkCommitError as e:
            self._emit(ErrorMessage(message=str(e)))
        if self._stale:
            self._send_changed_files()

    def _dispatch(self, request: Request) -> None:
        if isinstance(request, (GetChangedFiles, Refresh, Ready)):
            self._send_changed_files()
        elif isinstance(request, CommitFiles):
            self._commit_files(request)
        elif isinstance(request, StageFile):
            self.orchestrator.stage_file(request.file_path)
        elif isinstance(request, UnstageFile):
            self.orchestrator.unstage_file(request.file_path)
        elif isinstance(request, UndoLastCommit):
            outcome = UndoController(self._require_repo(), self.events).undo_last_commit()
            self._emit(OperationOutcome("undo", outcome.success, outcome.error))
        elif isinstance(request, GetTemplates):
            self._emit(Templates(self._templates()))
        elif isinstance(request, PushChanges):
            self._remote_operation("push")
        elif isinstance(request, PullChanges):
            self._remote_operation("pull")
        elif isinstance(request, FetchChanges):
            self._remote_operation("fetch")
        elif isinstance(request, GetSyncStatus):
            self._emit(SyncStatusInfo(sync=self._sync_status()))
        elif isinstance(request, GetRecentCommits):
            commits = recent_commits(self._require_repo(), request.count)
            self._emit(RecentCommits(commits=[_serialise(c) for c in commits]))
        elif isinstance(request, GetDiff):
            diff = self._require_repo().get_file_diff(request.file_path)
            self._emit(DiffText(file_path=request.file_path, diff=diff))
        else:
            assert_never(request)

    def _templates(self) -> List[Dict[str, str]]:
        return [template.to_dict() for template in load_templates(self._config)]

    def _sync_status(self) -> Optional[Dict[str, int]]:
        status = SyncStatusTracker(self._require_repo()).get_sync_status()
        return status.to_dict() if status is not None else None

    def _remote_operation(self, operation: str) -> None:
        remote = RemoteSync(self._require_repo(), self.events)
        outcome = getattr(remote, operation)()
        self._emit(OperationOutcome(operation, outcome.success, outcome.error))

    def _send_changed_files(self) -> None:
        self._stale = False
        self._emit(Loading(loading=True))
        try:
            if self.repo is None:
                files: List[Dict[str, Any]] = []
                info = None
                sync = None
            else:
                changes = StatusReconciler(self.repo).changed_files()
                files = [change.to_dict() for change in changes]
                info = _serialise(repository_info(self.repo))
                sync = self._sync_status()
            self._emit(
                ChangedFiles(
                    files=files,
                    repo_info=info,
                    templates=self._templates(),
                    settings={
                        "pushAfterCommit": self._config.push_after_commit,
                        "confirmBeforeCommit": self._config.confirm_before_commit,
                    },
                    sync=sync,
                )
            )
        except BulkCommitError as e:
            self._emit(ErrorMessage(message=str(e)))
        finally:
            self._emit(Loading(loading=False))

    def _commit_files(self, request: CommitFiles) -> None:
        if not request.commits:
            self._emit(ErrorMessage(message="No files selected for commit."))
            return

        valid = [task for task in request.commits if task.message.strip()]
        if not valid:
            self._emit(ErrorMessage(message="All selected files need commit messages."))
            return

        if self._config.confirm_before_commit and not request.confirmed:
            self._emit(ConfirmationRequired(count=len(valid)))
            return

        self._emit(Loading(loading=True))
        try:
            result = self.orchestrator.bulk_commit(valid)
            self._emit(
                CommitResultInfo(
                    successful=len(result.successful),
                    failed=len(result.failed),
                    total=result.total_commits,
                    errors=result.errors(),
                )
            )
            if result.successful and self._config.push_after_commit:
                self._remote_operation("push")
        finally:
            self._emit(Loading(loading=False))


def open_session(
    repo_path: Optional[str],
    emit: Callable[[Response], None],
    config: Optional[Config] = None,
) -> BackendSession:
    """Create a session, binding no repository when none is found."""
    cfg = config or get_active_config()
    base = Path(repo_path or cfg.git_repo_path).expanduser().resolve(strict=False)
    root = find_git_repo_root(base)
    repo = GitRepo(str(root), cfg) if root is not None else None
    return BackendSession(repo, emit, cfg)


class JsonLineWriter:
    """Writes each response as one ``{"event", "payload"}`` JSON line."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def __call__(self, response: Response) -> None:
        self.stream.write(json.dumps(encode_response(response)) + "\n")
        self.stream.flush()


def serve(session: BackendSession, stdin: Optional[TextIO] = None) -> int:
    """Answer one JSON request per input line until EOF."""
    source = stdin or sys.stdin
    try:
        for line in source:
            line = line.strip()
            if not line:
                continue
            try:
                request = parse_request(json.loads(line))
            except json.JSONDecodeError as e:
                session.report_error(f"Malformed request: {e}")
                continue
            except ValidationError as e:
                session.report_error(str(e))
                continue
            logger.debug("request %s", type(request).__name__)
            session.handle(request)
    finally:
        session.close()
    return 0
