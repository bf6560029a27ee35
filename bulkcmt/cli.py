"""Command line interface for bulkcmt."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .backend import JsonLineWriter, open_session, serve
from .commit import apply_template_to_all, build_commit_tasks, find_template, load_templates
from .config import Config, load_config
from .core import BulkCommitResult, CommitOrchestrator
from .events import RepositoryEvents, RepositoryMonitor
from .exceptions import BulkCommitError, ValidationError
from .git import GitRepo, find_git_repo_root
from .status import (
    FILTER_KINDS,
    FileChange,
    FileStatus,
    StatusReconciler,
    filter_changes,
    group_by_folder,
)
from .sync import RemoteSync, SyncStatusTracker, UndoController, recent_commits, repository_info

RESET = "\033[0m"
BOLD = "\033[1m"
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
DIM = "\033[2m"
RED = "\033[91m"

STATUS_LETTERS = {
    FileStatus.MODIFIED: "M",
    FileStatus.ADDED: "A",
    FileStatus.DELETED: "D",
    FileStatus.RENAMED: "R",
    FileStatus.UNTRACKED: "?",
    FileStatus.CONFLICTED: "!",
}


def _parse_assignment(raw: str) -> tuple[str, str]:
    path, sep, message = raw.partition("=")
    if not sep or not path.strip():
        raise argparse.ArgumentTypeError(f"expected PATH=MESSAGE, got {raw!r}")
    return path.strip(), message


def _load_task_file(path: str) -> List[tuple[str, str]]:
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Cannot read task file {path}: {exc}") from exc
    if not isinstance(data, list):
        raise ValidationError("Task file must hold a JSON list")
    pairs: List[tuple[str, str]] = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("filePath"), str):
            raise ValidationError(f"Invalid task entry: {item!r}")
        pairs.append((item["filePath"], str(item.get("message", ""))))
    return pairs


class CLI:
    """Argument parsing and command dispatch."""

    def __init__(self) -> None:
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="bulkcmt",
            description="Commit pending changes one file at a time, each with its own message.",
        )
        parser.add_argument("--version", action="version", version=f"bulkcmt {__version__}")
        parser.add_argument("--repo-path", help="Path to the Git repository (default: cwd)")
        parser.add_argument("--debug", action="store_true", help="Enable debug logging")

        sub = parser.add_subparsers(dest="command", required=True)

        status = sub.add_parser("status", help="List pending changes")
        status.add_argument("--filter", choices=FILTER_KINDS, default="all")
        status.add_argument("--query", help="Only paths containing this text")
        status.add_argument("--group", action="store_true", help="Group by folder")

        commit = sub.add_parser("commit", help="Commit files one by one")
        commit.add_argument(
            "-m",
            "--message",
            dest="assignments",
            action="append",
            type=_parse_assignment,
            default=[],
            metavar="PATH=MESSAGE",
            help="File and its commit message (repeatable, order is kept)",
        )
        commit.add_argument("--tasks", help="JSON list of {filePath, message}")
        commit.add_argument("--template", help="Prefix every message with this template")
        commit.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
        commit.add_argument("--no-progress", action="store_true", help="Hide progress line")

        for name, help_text in (("stage", "Stage a file"), ("unstage", "Unstage a file")):
            cmd = sub.add_parser(name, help=help_text)
            cmd.add_argument("path")

        sub.add_parser("undo", help="Undo the last commit, keeping its changes staged")
        sub.add_parser("sync", help="Show ahead/behind counts")
        sub.add_parser("push", help="Push the current branch")
        sub.add_parser("pull", help="Pull from upstream")
        sub.add_parser("fetch", help="Fetch from remotes")

        log = sub.add_parser("log", help="Show recent commits")
        log.add_argument("-n", "--count", type=int, default=10)

        sub.add_parser("templates", help="List commit templates")

        watch = sub.add_parser("watch", help="Print the change list whenever it changes")
        watch.add_argument("--interval", type=float, default=2.0)
        watch.add_argument("--count", type=int, default=0, help="Stop after N checks")

        sub.add_parser("serve", help="Answer JSON line requests on stdin")
        return parser

    def run(self, args: Optional[list[str]] = None) -> int:
        try:
            parsed = self.parser.parse_args(args)
        except SystemExit as exc:
            return int(exc.code or 0)

        if parsed.debug:
            logging.basicConfig(
                level=logging.DEBUG,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )

        try:
            config = self._load_config(parsed.repo_path)
            handler = getattr(self, f"_cmd_{parsed.command}")
            return handler(parsed, config)
        except BulkCommitError as e:
            self._print_error(str(e))
            return 1
        except KeyboardInterrupt:
            self._print_error("Interrupted")
            return 130

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load_config(self, repo_path: Optional[str]) -> Config:
        base = Path(repo_path or ".").expanduser().resolve(strict=False)
        root = find_git_repo_root(base) or base
        overrides: Dict[str, str] = {"repo_path": str(base)} if repo_path else {}
        return load_config(repo_root=root, overrides=overrides)

    def _repo(self, config: Config) -> GitRepo:
        return GitRepo(config.git_repo_path, config)

    def _print_error(self, message: str) -> None:
        print(f"{RED}Error: {message}{RESET}", file=sys.stderr)

    def _print_changes(self, changes: List[FileChange], group: bool) -> None:
        if not changes:
            print(f"{DIM}No pending changes{RESET}")
            return
        groups = group_by_folder(changes) if group else {"": changes}
        for folder, entries in groups.items():
            if group:
                print(f"{BOLD}{folder or '.'}/{RESET}")
            for change in entries:
                letter = STATUS_LETTERS[change.status]
                color = RED if change.status is FileStatus.CONFLICTED else CYAN
                staged = f" {GREEN}[staged]{RESET}" if change.staged else ""
                indent = "  " if group else ""
                shown = change.relative_path
                if change.original_path:
                    shown = f"{change.original_path} -> {shown}"
                print(f"{indent}{color}{letter}{RESET} {shown}{staged}")

    def _print_bulk_result(self, result: BulkCommitResult) -> None:
        for item in result.successful:
            subject = (item.message or "").splitlines()[0] if item.message else ""
            short = f"{DIM}{item.commit_hash}{RESET} " if item.commit_hash else ""
            print(f"{GREEN}✓{RESET} {short}{item.file_path}: {subject}")
        for item in result.failed:
            print(f"{RED}✗ {item.file_path}: {item.error}{RESET}")
        color = GREEN if not result.failed else YELLOW
        print(
            f"{color}{len(result.successful)} succeeded, {len(result.failed)} failed, "
            f"{result.total_commits} total{RESET}"
        )

    def _confirm(self, count: int) -> bool:
        if not sys.stdin.isatty():
            raise ValidationError(
                "Confirmation required; pass --yes to commit non-interactively"
            )
        answer = input(f"Create {count} commit(s)? [y/N] ")
        return answer.strip().lower() in {"y", "yes"}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _cmd_status(self, parsed: argparse.Namespace, config: Config) -> int:
        repo = self._repo(config)
        info = repository_info(repo)
        sync = SyncStatusTracker(repo).get_sync_status()
        sync_text = "no upstream" if sync is None else f"↑{sync.ahead} ↓{sync.behind}"
        print(f"{BOLD}{info.name}{RESET} on {CYAN}{info.branch}{RESET} {DIM}({sync_text}){RESET}")
        changes = StatusReconciler(repo).changed_files()
        self._print_changes(filter_changes(changes, parsed.filter, parsed.query), parsed.group)
        return 0

    def _cmd_commit(self, parsed: argparse.Namespace, config: Config) -> int:
        pairs = list(parsed.assignments)
        if parsed.tasks:
            pairs.extend(_load_task_file(parsed.tasks))
        if not pairs:
            raise ValidationError("No files selected for commit.")

        order = [path for path, _ in pairs]
        messages = {path: message for path, message in pairs}
        if parsed.template:
            template = find_template(parsed.template, config)
            filled = [path for path in order if messages[path].strip()]
            apply_template_to_all(messages, filled, template.template)

        tasks = build_commit_tasks(order, messages)
        skipped = len(set(order)) - len(tasks)
        if skipped:
            print(f"{YELLOW}Skipping {skipped} file(s) without a commit message{RESET}")
        if not tasks:
            raise ValidationError("All selected files need commit messages.")

        if config.confirm_before_commit and not parsed.yes and not self._confirm(len(tasks)):
            print(f"{DIM}Aborted{RESET}")
            return 1

        repo = self._repo(config)
        orchestrator = CommitOrchestrator(
            repo, show_progress=not parsed.no_progress and sys.stdout.isatty()
        )
        result = orchestrator.bulk_commit(tasks)
        self._print_bulk_result(result)

        if result.successful and config.push_after_commit:
            outcome = RemoteSync(repo).push()
            if outcome.success:
                print(f"{GREEN}Push successful{RESET}")
            else:
                self._print_error(f"Push failed - {outcome.error}")
                return 1
        return 0 if not result.failed else 1

    def _cmd_stage(self, parsed: argparse.Namespace, config: Config) -> int:
        CommitOrchestrator(self._repo(config)).stage_file(parsed.path)
        print(f"{GREEN}Staged {parsed.path}{RESET}")
        return 0

    def _cmd_unstage(self, parsed: argparse.Namespace, config: Config) -> int:
        CommitOrchestrator(self._repo(config)).unstage_file(parsed.path)
        print(f"{GREEN}Unstaged {parsed.path}{RESET}")
        return 0

    def _cmd_undo(self, parsed: argparse.Namespace, config: Config) -> int:
        outcome = UndoController(self._repo(config)).undo_last_commit()
        if not outcome.success:
            self._print_error(f"Undo failed - {outcome.error}")
            return 1
        print(f"{GREEN}Last commit undone; its changes are staged{RESET}")
        return 0

    def _cmd_sync(self, parsed: argparse.Namespace, config: Config) -> int:
        sync = SyncStatusTracker(self._repo(config)).get_sync_status()
        if sync is None:
            print(f"{DIM}No upstream branch configured{RESET}")
        elif sync.in_sync:
            print(f"{GREEN}Up to date{RESET}")
        else:
            print(f"{sync.ahead} to push, {sync.behind} to pull")
        return 0

    def _remote(self, config: Config, operation: str) -> int:
        outcome = getattr(RemoteSync(self._repo(config)), operation)()
        if not outcome.success:
            self._print_error(f"{operation.capitalize()} failed - {outcome.error}")
            return 1
        print(f"{GREEN}{operation.capitalize()} successful{RESET}")
        return 0

    def _cmd_push(self, parsed: argparse.Namespace, config: Config) -> int:
        return self._remote(config, "push")

    def _cmd_pull(self, parsed: argparse.Namespace, config: Config) -> int:
        return self._remote(config, "pull")

    def _cmd_fetch(self, parsed: argparse.Namespace, config: Config) -> int:
        return self._remote(config, "fetch")

    def _cmd_log(self, parsed: argparse.Namespace, config: Config) -> int:
        commits = recent_commits(self._repo(config), max(parsed.count, 1))
        if not commits:
            print(f"{DIM}No commits yet{RESET}")
        for entry in commits:
            date = entry.date.strftime("%Y-%m-%d %H:%M") if entry.date else ""
            print(
                f"{YELLOW}{entry.hash}{RESET} {entry.message} "
                f"{DIM}({entry.author}, {date}){RESET}"
            )
        return 0

    def _cmd_templates(self, parsed: argparse.Namespace, config: Config) -> int:
        templates = load_templates(config)
        if not templates:
            print(f"{DIM}No commit templates configured{RESET}")
        for template in templates:
            print(
                f"{CYAN}{template.name:<12}{RESET} {template.template!r} "
                f"{DIM}{template.description}{RESET}"
            )
        return 0

    def _cmd_watch(self, parsed: argparse.Namespace, config: Config) -> int:
        repo = self._repo(config)
        events = RepositoryEvents()
        monitor = RepositoryMonitor(repo, events)
        reconciler = StatusReconciler(repo)

        def _show() -> None:
            print(f"{DIM}{time.strftime('%H:%M:%S')} repository changed{RESET}")
            self._print_changes(reconciler.changed_files(), group=False)

        with events.subscribe(_show):
            self._print_changes(reconciler.changed_files(), group=False)
            checks = 0
            while parsed.count <= 0 or checks < parsed.count:
                monitor.check()
                checks += 1
                if parsed.count <= 0 or checks < parsed.count:
                    time.sleep(parsed.interval)
        return 0

    def _cmd_serve(self, parsed: argparse.Namespace, config: Config) -> int:
        session = open_session(config.git_repo_path, JsonLineWriter(sys.stdout), config)
        return serve(session, sys.stdin)


def main(argv: Optional[list[str]] = None) -> int:
    return CLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
