"""Commit message helpers: templates and task selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional

from .config import Config, get_active_config
from .core import CommitTask
from .exceptions import ValidationError


@dataclass(frozen=True)
class CommitTemplate:
    name: str
    template: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "template": self.template,
            "description": self.description,
        }


def apply_template(current: str, template: str) -> str:
    """Prefix ``current`` with ``template`` unless it already starts with it."""
    if current.startswith(template):
        return current
    return template + current


def apply_template_to_all(
    messages: MutableMapping[str, str],
    paths: Iterable[str],
    template: str,
) -> MutableMapping[str, str]:
    """Apply ``template`` to the message of every path in ``paths``.

    Paths without a message yet get the bare template. ``messages`` is
    updated in place and returned.
    """
    for path in paths:
        messages[path] = apply_template(messages.get(path, ""), template)
    return messages


def load_templates(config: Optional[Config] = None) -> List[CommitTemplate]:
    cfg = config or get_active_config()
    return [
        CommitTemplate(
            name=item.get("name", item["template"]),
            template=item["template"],
            description=item.get("description", ""),
        )
        for item in cfg.commit_templates
    ]


def find_template(name: str, config: Optional[Config] = None) -> CommitTemplate:
    """Look a template up by name (case-insensitive) or by its prefix text."""
    wanted = name.strip().lower()
    for template in load_templates(config):
        if template.name.lower() == wanted or template.template.strip().lower() == wanted:
            return template
    raise ValidationError(f"Unknown commit template: {name}")


def build_commit_tasks(
    selected_paths: Iterable[str],
    messages: Mapping[str, str],
) -> List[CommitTask]:
    """Turn a selection into commit tasks, skipping blank messages.

    Selection order is preserved and each path is used at most once.
    """
    tasks: List[CommitTask] = []
    seen: set[str] = set()
    for path in selected_paths:
        if path in seen:
            continue
        seen.add(path)
        message = messages.get(path, "")
        if not message or not message.strip():
            continue
        tasks.append(CommitTask(file_path=path, message=message))
    return tasks
