"""
导航栈单元测试：descend / ascend / reset 与「根目录当且仅当历史为空」。
"""

from __future__ import annotations

import pytest

from picstream.models import FileSystemEntry, NavigationState
from picstream.navigation import NavigationStack


def _dir(path: str) -> FileSystemEntry:
    return FileSystemEntry(name=path.rsplit("/", 1)[-1], path=path, is_directory=True)


def test_initial_state_is_root() -> None:
    nav = NavigationStack()
    assert nav.state == NavigationState("/", ())


def test_descend_then_ascend_round_trip() -> None:
    nav = NavigationStack()
    nav.descend(_dir("/a"))
    nav.descend(_dir("/a/b"))
    assert nav.current_path == "/a/b"
    assert len(nav.history) == 2

    nav.ascend()
    assert nav.current_path == "/a"
    assert len(nav.history) == 1
    nav.ascend()
    assert nav.state == NavigationState("/", ())


def test_ascend_at_root_is_noop() -> None:
    nav = NavigationStack()
    nav.ascend()
    assert nav.state == NavigationState("/", ())


@pytest.mark.parametrize("path", ["/a", "/a/b", "/a/b/c d"])
def test_ascend_removes_one_segment(path: str) -> None:
    nav = NavigationStack()
    nav.descend(_dir(path))
    before = [s for s in nav.current_path.split("/") if s]
    nav.ascend()
    after = [s for s in nav.current_path.split("/") if s]
    assert after == before[:-1]


def test_descend_rejects_files() -> None:
    nav = NavigationStack()
    with pytest.raises(ValueError):
        nav.descend(FileSystemEntry(name="a.jpg", path="/a.jpg", is_directory=False))
    assert nav.current_path == "/"


def test_reset_returns_to_root() -> None:
    nav = NavigationStack()
    nav.descend(_dir("/a"))
    nav.descend(_dir("/a/b"))
    nav.reset()
    assert nav.state == NavigationState("/", ())


def test_root_iff_history_empty() -> None:
    nav = NavigationStack()
    for step in ("down:/a", "down:/a/b", "up", "down:/a/c", "up", "up", "up"):
        if step == "up":
            nav.ascend()
        else:
            nav.descend(_dir(step.split(":", 1)[1]))
        assert (nav.current_path == "/") == (len(nav.history) == 0)
