"""Configuration management for bulkcmt."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ConfigError

CONFIG_DIR_NAME = ".bulkcmt"
CONFIG_FILE_NAME = "config.json"

DEFAULT_GIT_TIMEOUT = 30.0

DEFAULT_TEMPLATES: List[Dict[str, str]] = [
    {"name": "Feature", "template": "feat: ", "description": "A new feature"},
    {"name": "Fix", "template": "fix: ", "description": "A bug fix"},
    {"name": "Docs", "template": "docs: ", "description": "Documentation only"},
    {
        "name": "Refactor",
        "template": "refactor: ",
        "description": "Code change that neither fixes a bug nor adds a feature",
    },
    {"name": "Chore", "template": "chore: ", "description": "Maintenance work"},
]

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _default_templates() -> List[Dict[str, str]]:
    return [dict(item) for item in DEFAULT_TEMPLATES]


@dataclass
class Config:
    """Runtime configuration for bulkcmt."""

    git_repo_path: str = "."
    commit_templates: List[Dict[str, str]] = field(default_factory=_default_templates)
    push_after_commit: bool = False
    confirm_before_commit: bool = True
    # Upper bound, in seconds, for any single git invocation.
    git_timeout: float = DEFAULT_GIT_TIMEOUT

    def to_dict(self) -> Dict[str, Any]:
        """Serialise configuration to a dict for persistence."""
        return asdict(self)


_CONFIG_STATE: Dict[str, Optional[Config]] = {"active": None}


def _ensure_path(path_like: Optional[Path]) -> Path:
    if path_like is None:
        return Path.cwd().resolve(strict=False)
    return Path(path_like).expanduser().resolve(strict=False)


def _config_dir(repo_root: Optional[Path] = None) -> Path:
    return _ensure_path(repo_root) / CONFIG_DIR_NAME


def config_file_path(repo_root: Optional[Path] = None) -> Path:
    return _config_dir(repo_root) / CONFIG_FILE_NAME


def parse_bool(value: Any, setting: str) -> bool:
    """Interpret a boolean setting given as bool or string."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ConfigError(f"Invalid boolean for {setting}: {value!r}")


def parse_timeout(value: Any, setting: str = "git_timeout") -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid number for {setting}: {value!r}") from exc
    if timeout <= 0:
        raise ConfigError(f"{setting} must be positive, got {timeout}")
    return timeout


def _validate_templates(raw: Any) -> List[Dict[str, str]]:
    if not isinstance(raw, list):
        raise ConfigError("commit_templates must be a list")
    templates: List[Dict[str, str]] = []
    for item in raw:
        if not isinstance(item, dict) or "template" not in item:
            raise ConfigError(f"Invalid commit template entry: {item!r}")
        templates.append(
            {
                "name": str(item.get("name") or item["template"]).strip(),
                "template": str(item["template"]),
                "description": str(item.get("description", "")),
            }
        )
    return templates


def _resolve_repo_path(raw: Optional[str], base_root: Path) -> str:
    if not raw:
        return str(base_root)
    candidate = Path(raw).expanduser()
    if candidate.is_absolute():
        return str(candidate.resolve(strict=False))
    return str((base_root / candidate).resolve(strict=False))


def save_config(config: Config, repo_root: Optional[Path] = None) -> None:
    """Persist configuration JSON within the repository."""
    cfg_path = config_file_path(repo_root)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    data["git_repo_path"] = _resolve_repo_path(
        data.get("git_repo_path"), _ensure_path(repo_root)
    )
    config.git_repo_path = data["git_repo_path"]
    cfg_path.write_text(json.dumps(data, indent=2))


def load_persisted_config(
    repo_root: Optional[Path] = None,
) -> Optional[Config]:
    cfg_path = config_file_path(repo_root)
    if not cfg_path.exists():
        return None
    try:
        data = json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Malformed config file {cfg_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {cfg_path} must hold a JSON object")

    known = set(Config.__dataclass_fields__)
    data = {key: value for key, value in data.items() if key in known}
    resolved_root = _ensure_path(repo_root) if repo_root else cfg_path.parent.parent
    data["git_repo_path"] = _resolve_repo_path(
        data.get("git_repo_path"), _ensure_path(resolved_root)
    )
    if "commit_templates" in data:
        data["commit_templates"] = _validate_templates(data["commit_templates"])
    for flag in ("push_after_commit", "confirm_before_commit"):
        if flag in data:
            data[flag] = parse_bool(data[flag], flag)
    if "git_timeout" in data:
        data["git_timeout"] = parse_timeout(data["git_timeout"])
    return Config(**data)


def load_config(
    *,
    repo_root: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Config:
    """Build configuration from overrides, config file and environment."""

    overrides = dict(overrides or {})
    repo_root = _ensure_path(repo_root)
    persisted = load_persisted_config(repo_root)
    defaults = Config()

    git_repo_path_raw = (
        overrides.get("repo_path")
        or (persisted.git_repo_path if persisted else None)
        or os.environ.get("BULKCMT_REPO_PATH")
        or str(repo_root)
    )
    git_repo_path = _resolve_repo_path(git_repo_path_raw, repo_root)

    def _flag(name: str, env_name: str, default: bool) -> bool:
        if overrides.get(name) is not None:
            return parse_bool(overrides[name], name)
        if persisted is not None:
            return bool(getattr(persisted, name))
        env_value = os.environ.get(env_name)
        if env_value:
            return parse_bool(env_value, env_name)
        return default

    push_after_commit = _flag(
        "push_after_commit",
        "BULKCMT_PUSH_AFTER_COMMIT",
        defaults.push_after_commit,
    )
    confirm_before_commit = _flag(
        "confirm_before_commit",
        "BULKCMT_CONFIRM_BEFORE_COMMIT",
        defaults.confirm_before_commit,
    )

    timeout_env = os.environ.get("BULKCMT_GIT_TIMEOUT")
    if overrides.get("git_timeout") is not None:
        git_timeout = parse_timeout(overrides["git_timeout"])
    elif persisted is not None:
        git_timeout = persisted.git_timeout
    elif timeout_env:
        git_timeout = parse_timeout(timeout_env, "BULKCMT_GIT_TIMEOUT")
    else:
        git_timeout = defaults.git_timeout

    if overrides.get("commit_templates") is not None:
        templates = _validate_templates(overrides["commit_templates"])
    elif persisted is not None:
        templates = persisted.commit_templates
    else:
        templates = defaults.commit_templates

    config = Config(
        git_repo_path=git_repo_path,
        commit_templates=templates,
        push_after_commit=push_after_commit,
        confirm_before_commit=confirm_before_commit,
        git_timeout=git_timeout,
    )

    set_active_config(config)
    return config


def set_active_config(config: Config) -> None:
    _CONFIG_STATE["active"] = config


def get_active_config() -> Config:
    active = _CONFIG_STATE.get("active")
    if active is None:
        return load_config()
    return active


def clear_active_config() -> None:
    _CONFIG_STATE["active"] = None
