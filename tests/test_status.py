from pathlib import Path

import pytest

from bulkcmt.git import RawChange, StatusEntry
from bulkcmt.status import (
    FileChange,
    FileStatus,
    StatusReconciler,
    classify,
    filter_changes,
    group_by_folder,
    reconcile,
)


def _paths(changes):
    return [change.relative_path for change in changes]


def test_each_path_appears_once():
    working = [
        RawChange("a.txt", "M"),
        RawChange("b.txt", "??"),
        RawChange("a.txt", "M"),
    ]
    index = [RawChange("a.txt", "M"), RawChange("c.txt", "A"), RawChange("c.txt", "A")]

    changes = reconcile(working, index)

    assert sorted(_paths(changes)) == ["a.txt", "b.txt", "c.txt"]


def test_path_in_both_sets_is_staged_with_working_tree_status():
    working = [RawChange("src/app.py", "D")]
    index = [RawChange("src/app.py", "M")]

    (change,) = reconcile(working, index)

    assert change.staged is True
    assert change.status is FileStatus.DELETED


def test_index_only_path_uses_index_status():
    changes = reconcile([RawChange("a.txt", "M")], [RawChange("new.txt", "A")])
    by_path = {change.relative_path: change for change in changes}

    assert by_path["a.txt"].staged is False
    assert by_path["new.txt"].staged is True
    assert by_path["new.txt"].status is FileStatus.ADDED


def test_output_keeps_first_seen_order():
    working = [RawChange("z.txt", "M"), RawChange("a.txt", "M")]
    index = [RawChange("m.txt", "A")]

    assert _paths(reconcile(working, index)) == ["z.txt", "a.txt", "m.txt"]


def test_conflict_takes_priority_over_other_statuses():
    working = [RawChange("both.txt", "M"), RawChange("merge.txt", "UU")]
    index = [RawChange("both.txt", "AA")]

    by_path = {c.relative_path: c for c in reconcile(working, index)}

    assert by_path["both.txt"].status is FileStatus.CONFLICTED
    assert by_path["both.txt"].staged is True
    assert by_path["merge.txt"].status is FileStatus.CONFLICTED
    assert by_path["merge.txt"].staged is False


def test_conflict_reported_after_plain_entry_in_working_tree():
    working = [RawChange("x.txt", "M"), RawChange("x.txt", "DU")]

    (change,) = reconcile(working, [])

    assert change.status is FileStatus.CONFLICTED


@pytest.mark.parametrize(
    "code, expected",
    [
        ("M", FileStatus.MODIFIED),
        ("T", FileStatus.MODIFIED),
        ("A", FileStatus.ADDED),
        ("D", FileStatus.DELETED),
        ("R", FileStatus.RENAMED),
        ("C", FileStatus.RENAMED),
        ("??", FileStatus.UNTRACKED),
        ("UU", FileStatus.CONFLICTED),
        ("AA", FileStatus.CONFLICTED),
        ("DD", FileStatus.CONFLICTED),
        ("AU", FileStatus.CONFLICTED),
        ("X", FileStatus.MODIFIED),
    ],
)
def test_classify(code, expected):
    assert classify(code) is expected


def test_absolute_paths_are_built_from_root(tmp_path):
    (change,) = reconcile([RawChange("dir/file.py", "M")], [], root=tmp_path)

    assert change.relative_path == "dir/file.py"
    assert change.path == str(tmp_path / "dir/file.py")


def test_paths_are_kept_verbatim():
    working = [RawChange("dir\\file.py", "??"), RawChange('q"uote.txt', "??")]

    changes = reconcile(working, [RawChange("a -> b.txt", "A")])

    assert _paths(changes) == ["dir\\file.py", 'q"uote.txt', "a -> b.txt"]


def test_staged_rename_carries_source_path():
    index = [RawChange("moved.txt", "R", original_path="a.txt")]

    (change,) = reconcile([RawChange("moved.txt", "M")], index)

    assert change.relative_path == "moved.txt"
    assert change.original_path == "a.txt"
    assert change.staged is True


def test_to_dict_uses_wire_names():
    change = FileChange("/r/a.txt", "a.txt", FileStatus.UNTRACKED, False)

    assert change.to_dict() == {
        "path": "/r/a.txt",
        "relativePath": "a.txt",
        "status": "untracked",
        "staged": False,
        "originalPath": None,
    }


def _sample():
    return [
        FileChange("/r/a.py", "a.py", FileStatus.MODIFIED, True),
        FileChange("/r/src/b.py", "src/b.py", FileStatus.UNTRACKED, False),
        FileChange("/r/src/c.py", "src/c.py", FileStatus.ADDED, True),
        FileChange("/r/docs/d.md", "docs/d.md", FileStatus.DELETED, False),
        FileChange("/r/e.py", "e.py", FileStatus.CONFLICTED, False),
    ]


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("all", ["a.py", "src/b.py", "src/c.py", "docs/d.md", "e.py"]),
        ("modified", ["a.py"]),
        ("added", ["src/b.py", "src/c.py"]),
        ("deleted", ["docs/d.md"]),
        ("staged", ["a.py", "src/c.py"]),
        ("unstaged", ["src/b.py", "docs/d.md", "e.py"]),
        ("conflicted", ["e.py"]),
    ],
)
def test_filter_changes(kind, expected):
    assert _paths(filter_changes(_sample(), kind)) == expected


def test_filter_changes_query_is_case_insensitive():
    assert _paths(filter_changes(_sample(), "all", query="SRC/")) == ["src/b.py", "src/c.py"]


def test_filter_changes_rejects_unknown_kind():
    with pytest.raises(ValueError):
        filter_changes(_sample(), "bogus")


def test_group_by_folder():
    groups = group_by_folder(_sample())

    assert list(groups) == ["", "src", "docs"]
    assert _paths(groups[""]) == ["a.py", "e.py"]
    assert _paths(groups["src"]) == ["src/b.py", "src/c.py"]


def test_reconciler_reads_both_sides_from_repo(tmp_path):
    class _Repo:
        root = Path(tmp_path)

        def status_entries(self):
            return [
                StatusEntry("MM", "a.txt"),
                StatusEntry("A ", "b.txt"),
                StatusEntry("??", "c.txt"),
            ]

        def list_working_tree_changes(self, entries):
            assert entries == self.status_entries()
            return [RawChange("a.txt", "M"), RawChange("c.txt", "??")]

        def list_index_changes(self, entries):
            return [RawChange("a.txt", "M"), RawChange("b.txt", "A")]

    changes = StatusReconciler(_Repo()).changed_files()

    assert [(c.relative_path, c.staged) for c in changes] == [
        ("a.txt", True),
        ("c.txt", False),
        ("b.txt", True),
    ]
