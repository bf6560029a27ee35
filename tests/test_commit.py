import pytest

from bulkcmt.commit import (
    CommitTemplate,
    apply_template,
    apply_template_to_all,
    build_commit_tasks,
    find_template,
    load_templates,
)
from bulkcmt.config import Config
from bulkcmt.core import BulkCommitResult, CommitTask
from bulkcmt.exceptions import ValidationError


@pytest.mark.parametrize(
    "current, template",
    [
        ("", ""),
        ("add parser", "feat: "),
        ("feat: add parser", "feat: "),
        ("feat", "feat: "),
        ("fix: typo", "feat: "),
        ("anything", ""),
    ],
)
def test_apply_template_is_idempotent(current, template):
    once = apply_template(current, template)

    assert apply_template(once, template) == once
    assert once.startswith(template)


def test_apply_template_prepends_or_keeps():
    assert apply_template("add parser", "feat: ") == "feat: add parser"
    assert apply_template("feat: add parser", "feat: ") == "feat: add parser"
    assert apply_template("feat", "feat: ") == "feat: feat"


def test_apply_template_to_all_only_touches_selected_paths():
    messages = {"a.py": "add a", "b.py": "fix: b", "c.py": "leave me"}

    apply_template_to_all(messages, ["a.py", "b.py", "d.py"], "fix: ")

    assert messages == {
        "a.py": "fix: add a",
        "b.py": "fix: b",
        "c.py": "leave me",
        "d.py": "fix: ",
    }


def test_only_files_with_messages_reach_the_orchestrator():
    pending = ["one.py", "two.py", "three.py", "four.py", "five.py"]
    messages = {
        "one.py": "feat: one",
        "two.py": "",
        "three.py": "fix: three",
        "four.py": "   ",
        "five.py": "docs: five",
    }
    received = []

    class _Orchestrator:
        def bulk_commit(self, tasks):
            received.append(list(tasks))
            return BulkCommitResult(total_commits=len(tasks))

    _Orchestrator().bulk_commit(build_commit_tasks(pending, messages))

    (tasks,) = received
    assert len(tasks) == 3
    assert tasks == [
        CommitTask("one.py", "feat: one"),
        CommitTask("three.py", "fix: three"),
        CommitTask("five.py", "docs: five"),
    ]


def test_build_commit_tasks_ignores_repeated_and_unknown_paths():
    tasks = build_commit_tasks(["a", "b", "a"], {"a": "msg a"})

    assert tasks == [CommitTask("a", "msg a")]


def test_default_templates_loaded():
    templates = load_templates(Config())

    assert CommitTemplate("Feature", "feat: ", "A new feature") in templates
    assert all(isinstance(t, CommitTemplate) for t in templates)


def test_find_template_by_name_or_prefix():
    cfg = Config(commit_templates=[{"name": "Fix", "template": "fix: ", "description": ""}])

    assert find_template("fix", cfg).template == "fix: "
    assert find_template("FIX:", cfg).name == "Fix"
    with pytest.raises(ValidationError):
        find_template("nope", cfg)
