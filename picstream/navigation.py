"""目录导航栈：纯状态机，状态为路径字符串，转移为 descend / ascend / reset。"""

from __future__ import annotations

from picstream.models import ROOT_PATH, FileSystemEntry, NavigationState, parent_path


class NavigationStack:
    def __init__(self) -> None:
        self._current_path = ROOT_PATH
        self._history: list[str] = []

    @property
    def current_path(self) -> str:
        return self._current_path

    @property
    def history(self) -> tuple[str, ...]:
        return tuple(self._history)

    @property
    def state(self) -> NavigationState:
        return NavigationState(self._current_path, tuple(self._history))

    def descend(self, entry: FileSystemEntry) -> None:
        """进入子目录；entry 必须是目录。"""
        if not entry.is_directory:
            raise ValueError(f"not a directory: {entry.path}")
        self._history.append(self._current_path)
        self._current_path = entry.path

    def ascend(self) -> None:
        """回到父目录；已在根目录时不做任何事。"""
        if self._current_path == ROOT_PATH:
            return
        if self._history:
            self._history.pop()
        self._current_path = parent_path(self._current_path)

    def reset(self) -> None:
        self._current_path = ROOT_PATH
        self._history.clear()
