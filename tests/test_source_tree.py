"""Tests for the local source tree."""

from prefixkit.source_tree import LocalSourceTree, diff_snapshots


def test_files_are_relative_and_sorted(tree):
    assert tree.files() == [
        "Package.swift",
        "README.md",
        "Sources/App/AppDelegate.swift",
        "Sources/Net/ConnectionManager.swift",
        "Sources/Net/NetworkClient.swift",
    ]


def test_files_skip_tool_directories(sample_project):
    (sample_project / ".prefixkit").mkdir()
    (sample_project / ".prefixkit" / "notes.md").write_text("x\n", encoding="utf-8")
    (sample_project / "Pods").mkdir()
    (sample_project / "Pods" / "Lib.swift").write_text("x\n", encoding="utf-8")

    files = LocalSourceTree(str(sample_project)).files()
    assert not any(path.startswith((".prefixkit", "Pods")) for path in files)


def test_ignore_paths_and_extensions(sample_project):
    tree = LocalSourceTree(str(sample_project), extensions=[".swift"], ignore_paths=["Sources/App"])
    assert tree.files() == [
        "Package.swift",
        "Sources/Net/ConnectionManager.swift",
        "Sources/Net/NetworkClient.swift",
    ]


def test_match_files_by_suffix(tree):
    assert tree.match_files("ConnectionManager.swift") == ["Sources/Net/ConnectionManager.swift"]
    assert tree.match_files("Net/NetworkClient.swift") == ["Sources/Net/NetworkClient.swift"]
    assert tree.match_files("Manager.swift") == []


def test_find_class_uses_brace_matching(tree):
    [location] = tree.find_symbols("ConnectionManager", "class")
    assert (location.path, location.start, location.end) == ("Sources/Net/ConnectionManager.swift", 3, 16)


def test_find_func(tree):
    [location] = tree.find_symbols("connect", "func")
    assert (location.start, location.end) == (6, 11)


def test_find_python_symbol_uses_indentation(sample_project):
    (sample_project / "tool.py").write_text(
        "def helper():\n    x = 1\n\n    return x\n\n\ndef other():\n    pass\n",
        encoding="utf-8",
    )
    [location] = LocalSourceTree(str(sample_project)).find_symbols("helper", "func")
    assert (location.start, location.end) == (1, 4)


def test_snapshot_diff_reports_manual_changes(sample_project):
    tree = LocalSourceTree(str(sample_project))
    before = tree.snapshot()

    (sample_project / "Sources/Net/NetworkClient.swift").write_text("// rewritten\n", encoding="utf-8")
    (sample_project / "Sources/App/AppDelegate.swift").unlink()
    (sample_project / "Sources/App/Scene.swift").write_text("class Scene {}\n", encoding="utf-8")

    delta = diff_snapshots(before, tree.snapshot())
    assert delta == {
        "modified": ["Sources/Net/NetworkClient.swift"],
        "added": ["Sources/App/Scene.swift"],
        "deleted": ["Sources/App/AppDelegate.swift"],
    }


def test_diff_of_identical_snapshots_is_empty(tree):
    snapshot = tree.snapshot()
    assert diff_snapshots(snapshot, tree.snapshot()) == {"modified": [], "added": [], "deleted": []}
