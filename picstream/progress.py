"""
进度计算与进度通道。

- aggregate：批次总进度 = 各条目进度的算术平均（已完成条目计 1.0），空批次为 0
- normalize_percent：会话回调给出的 0–100 整数 → [0, 1]
- ProgressStream：交给 write_file 的进度回调；编排器以 async for 消费，连发的多个值只取最新
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from picstream.models import UploadItem

_CLOSED = object()


def aggregate(items: Iterable[UploadItem]) -> float:
    items = list(items)
    if not items:
        return 0.0
    return sum(item.contribution for item in items) / len(items)


def normalize_percent(percent: int | float) -> float:
    """63 -> 0.63；越界值截断到 [0, 1]。"""
    return min(max(percent / 100.0, 0.0), 1.0)


class ProgressStream:
    """
    单次传输的进度通道。

    作为回调：stream(percent) 归一化后入队，返回是否继续传输（cancel() 之后返回 False）。
    作为异步迭代器：产出归一化后的进度，close() 后迭代结束。
    回调可以在其它线程中调用，入队会转交给创建通道时的事件循环。
    """

    def __init__(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._thread_id = threading.get_ident()
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._cancelled = False
        self._exhausted = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __call__(self, percent: int) -> bool:
        if self._cancelled:
            return False
        self._put(normalize_percent(percent))
        return True

    def close(self) -> None:
        self._put(_CLOSED)

    def _put(self, value: object) -> None:
        if threading.get_ident() == self._thread_id:
            self._queue.put_nowait(value)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, value)

    def __aiter__(self) -> ProgressStream:
        return self

    async def __anext__(self) -> float:
        if self._exhausted:
            raise StopAsyncIteration
        value = await self._queue.get()
        if value is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        # 合并积压的更新，只把最新值交给展示层
        while not self._queue.empty():
            pending = self._queue.get_nowait()
            if pending is _CLOSED:
                self._exhausted = True
                break
            value = pending
        return value  # type: ignore[return-value]
