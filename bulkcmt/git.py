"""Git operations for bulkcmt."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import Config, get_active_config
from .exceptions import GitError, GitTimeoutError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

# Two-letter porcelain codes git reports for unmerged paths.
UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

_FIELD_SEP = "\x1f"


@dataclass(frozen=True)
class RawChange:
    """One side (working tree or index) of a porcelain status entry."""

    path: str
    code: str
    # Source path of a rename or copy reported on this side.
    original_path: Optional[str] = None


@dataclass(frozen=True)
class StatusEntry:
    """One ``git status --porcelain -z`` record."""

    status: str
    path: str
    original_path: Optional[str] = None


@dataclass(frozen=True)
class CommitLogEntry:
    hash: str
    message: str
    author: str
    date: Optional[datetime] = None


@dataclass(frozen=True)
class RepositoryInfo:
    name: str
    branch: str
    root_path: str


def find_git_repo_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the top-level Git repository directory for ``start_path``.

    Attempts ``git rev-parse --show-toplevel`` first so worktrees and
    submodules are handled correctly. Falls back to walking parent
    directories looking for a ``.git`` directory or file. Returns ``None``
    when no Git repository can be found starting from ``start_path``.
    """

    path = Path(start_path or Path.cwd()).expanduser().resolve(strict=False)
    if path.is_file():
        path = path.parent

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        top = result.stdout.strip()
        if top:
            return Path(top)
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        pass

    for candidate in (path, *path.parents):
        git_meta = candidate / ".git"
        if git_meta.exists():
            return candidate

    return None


def parse_porcelain_z(output: str) -> list[StatusEntry]:
    """Parse NUL-separated ``git status --porcelain=v1 -z`` output.

    Paths come through verbatim (no quoting). A rename or copy record is
    followed by an extra field holding the source path.
    """
    fields = output.split("\0")
    entries: list[StatusEntry] = []
    i = 0
    while i < len(fields):
        record = fields[i]
        i += 1
        if len(record) < 4:
            continue
        status, path = record[:2], record[3:]
        original = None
        if "R" in status or "C" in status:
            if i < len(fields):
                original = fields[i] or None
            i += 1
        entries.append(StatusEntry(status=status, path=path, original_path=original))
    return entries


class GitRepo:
    """Handles Git repository operations by shelling out to ``git``."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Initialize Git repository handler."""

        self._config = config or get_active_config()
        self.repo_path = Path(repo_path or self._config.git_repo_path)
        self.timeout = self._config.git_timeout
        if not self._is_git_repo():
            raise RepositoryNotFoundError(f"Not a Git repository: {self.repo_path}")
        self.root = Path(self._run_git_command(["rev-parse", "--show-toplevel"]))
        # Porcelain paths are root-relative, so every command runs from the root.
        self.repo_path = self.root

    def _is_git_repo(self) -> bool:
        """Check if the current directory is a Git repository."""
        try:
            self._run_git_command(["rev-parse", "--git-dir"])
            return True
        except GitError:
            return False

    def _run_git(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command bounded by the configured timeout."""
        logger.debug("git %s (cwd=%s)", " ".join(args), self.repo_path)
        try:
            return subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=check,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            cmd = " ".join(args)
            detail = (e.stderr or e.stdout or "").strip()
            raise GitError(f"Git command failed: {cmd}\n{detail}") from e
        except subprocess.TimeoutExpired as e:
            cmd = " ".join(args)
            raise GitTimeoutError(
                f"Git command timed out after {self.timeout:g}s: {cmd}"
            ) from e
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise GitError("Git command not found. Please install Git.") from exc

    def _run_git_command(self, args: list[str], strip: bool = True) -> str:
        """Run a Git command and return its output."""
        output = self._run_git(args).stdout or ""
        return output.strip() if strip else output.rstrip("\n")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def status_entries(self) -> list[StatusEntry]:
        """Return porcelain status records, paths exactly as stored by git."""
        status_output = self._run_git_command(
            [
                "-c",
                "core.quotePath=false",
                "status",
                "--porcelain=v1",
                "-z",
                "--untracked-files=all",
            ],
            strip=False,
        )
        return parse_porcelain_z(status_output)

    def list_working_tree_changes(
        self, entries: Optional[list[StatusEntry]] = None
    ) -> list[RawChange]:
        """Unstaged side of ``git status``: untracked, unmerged and Y codes."""
        changes: list[RawChange] = []
        for entry in entries if entries is not None else self.status_entries():
            status = entry.status
            if status == "??" or status in UNMERGED_CODES:
                changes.append(RawChange(path=entry.path, code=status))
            elif status[1] != " ":
                original = entry.original_path if status[1] in "RC" else None
                changes.append(
                    RawChange(path=entry.path, code=status[1], original_path=original)
                )
        return changes

    def list_index_changes(
        self, entries: Optional[list[StatusEntry]] = None
    ) -> list[RawChange]:
        """Staged side of ``git status``: the X column of merged entries."""
        changes: list[RawChange] = []
        for entry in entries if entries is not None else self.status_entries():
            status = entry.status
            if status in UNMERGED_CODES or status[0] in (" ", "?", "!"):
                continue
            original = entry.original_path if status[0] in "RC" else None
            changes.append(
                RawChange(path=entry.path, code=status[0], original_path=original)
            )
        return changes

    def _branch_headers(self) -> dict[str, str]:
        output = self._run_git_command(
            ["status", "--porcelain=v2", "--branch", "--untracked-files=no"]
        )
        headers: dict[str, str] = {}
        for line in output.split("\n"):
            if not line.startswith("# branch."):
                continue
            key, _, value = line[len("# branch."):].partition(" ")
            headers[key] = value.strip()
        return headers

    def current_branch(self) -> str:
        """Return the branch name, ``HEAD`` when detached."""
        head = self._branch_headers().get("head", "")
        if not head or head == "(detached)":
            return "HEAD"
        return head

    def current_branch_ahead_behind(self) -> Optional[tuple[int, int]]:
        """Return (ahead, behind) against the upstream, or None without one.

        Reads local tracking metadata only; nothing is fetched.
        """
        headers = self._branch_headers()
        if "upstream" not in headers or "ab" not in headers:
            return None
        ahead_raw, _, behind_raw = headers["ab"].partition(" ")
        try:
            return abs(int(ahead_raw)), abs(int(behind_raw))
        except ValueError as exc:
            raise GitError(f"Unexpected tracking header: {headers['ab']!r}") from exc

    def has_upstream(self) -> bool:
        return "upstream" in self._branch_headers()

    # ------------------------------------------------------------------
    # Index and history
    # ------------------------------------------------------------------
    def has_commits(self) -> bool:
        result = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    def stage_file(self, file_path: str) -> None:
        """Stage a specific file for commit."""
        self._run_git_command(["add", "--", file_path])

    def unstage(self, file_path: str, *extra_paths: str) -> None:
        """Unstage a specific file, plus any paths paired with it."""
        paths = [file_path, *extra_paths]
        if self.has_commits():
            self._run_git_command(["reset", "-q", "HEAD", "--", *paths])
        else:
            self._run_git_command(["rm", "--cached", "-q", "--", *paths])

    def commit_file(self, message: str, file_path: str, *extra_paths: str) -> None:
        """Create a commit including ONLY the specified file.

        The pathspec after the message keeps any other staged files out of
        this commit. ``extra_paths`` joins paths that belong to the same
        change, such as the source side of a staged rename.
        """
        self._run_git_command(["commit", "-m", message, "--", file_path, *extra_paths])

    def head_hash(self) -> Optional[str]:
        result = self._run_git(
            ["rev-parse", "--verify", "--quiet", "--short", "HEAD"], check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def log(self, max_entries: int = 10) -> list[CommitLogEntry]:
        """Return up to ``max_entries`` commits, newest first."""
        if not self.has_commits():
            return []
        fmt = _FIELD_SEP.join(["%h", "%an", "%aI", "%s"])
        output = self._run_git_command(
            ["log", f"-{max_entries}", f"--pretty=format:{fmt}"]
        )
        entries: list[CommitLogEntry] = []
        for line in output.split("\n"):
            if not line:
                continue
            parts = line.split(_FIELD_SEP, 3)
            if len(parts) != 4:
                continue
            commit_hash, author, date_raw, subject = parts
            try:
                date = datetime.fromisoformat(date_raw)
            except ValueError:
                date = None
            entries.append(
                CommitLogEntry(
                    hash=commit_hash,
                    message=subject,
                    author=author or "Unknown",
                    date=date,
                )
            )
        return entries

    def soft_reset_last(self) -> None:
        """Move the branch back one commit, keeping its changes staged.

        A root commit has no parent to reset to, so the branch ref is
        deleted instead; the index still holds the commit's content.
        """
        parent = self._run_git(
            ["rev-parse", "--verify", "--quiet", "HEAD~1"], check=False
        )
        if parent.returncode == 0:
            self._run_git_command(["reset", "--soft", "HEAD~1"])
        else:
            self._run_git_command(["update-ref", "-d", "HEAD"])

    def get_file_diff(self, file_path: str, staged: bool = False) -> str:
        """Get the diff for a specific file.

        Args:
            file_path: Path to file relative to repo root.
            staged: True to get staged diff, False for working tree diff.
        """
        args = ["diff"]
        if staged:
            args.append("--cached")
        args += ["--", file_path]
        return self._run_git_command(args)

    # ------------------------------------------------------------------
    # Remotes
    # ------------------------------------------------------------------
    def push(
        self, remote: str = "origin", branch: Optional[str] = None
    ) -> str:
        """Push current branch.

        Uses the configured upstream when there is one, otherwise pushes
        ``branch`` (default: the current branch) to ``remote`` and sets it
        as upstream.
        """
        if branch is None and self.has_upstream():
            return self._run_git_command(["push"])
        if branch is None:
            branch = self.current_branch()
        return self._run_git_command(["push", "--set-upstream", remote, branch])

    def pull(self) -> str:
        return self._run_git_command(["pull"])

    def fetch(self) -> str:
        return self._run_git_command(["fetch"])

    def fingerprint(self) -> str:
        """Cheap snapshot of repository state used to detect changes."""
        status = self._run_git_command(
            ["status", "--porcelain=v2", "--branch", "--untracked-files=all"]
        )
        return f"{self.head_hash() or ''}\n{status}"
