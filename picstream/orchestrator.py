"""
上传编排：把一批媒体上传到远程目录，汇总每项与整体进度。

流程：
1. 并发解析文件名（见 picstream.naming），按选择顺序生成 UploadItem，顺序即进度更新用的下标
2. 解析会话；失败则整批记为失败，attempted = 0
3. 逐项读取源数据并 write_file；单项失败只记录在该项上，继续下一项
4. 批次结束后触发目标目录的重新列出（on_complete）

默认一次只有一个传输在途；max_concurrency > 1 时额外的 worker 各自使用独立会话（SessionResolver.fork）。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from picstream.errors import ConfigurationError, ItemTransferError, SessionConnectionError
from picstream.media import MediaRef, MediaSource
from picstream.models import BatchResult, UploadItem, join_path
from picstream.naming import resolve_filenames
from picstream.progress import ProgressStream
from picstream.resolver import SessionResolver
from picstream.session import RemoteSession

logger = logging.getLogger(__name__)

BatchListener = Callable[[BatchResult], None]


class UploadOrchestrator:
    """
    :param media_source: 读取原始文件名与字节的媒体源
    :param max_concurrency: 同时在途的传输数，1 为严格按顺序
    :param on_complete: 批次结束（会话解析成功）后以目标路径调用，用于刷新目录列表
    """

    def __init__(
        self,
        media_source: MediaSource,
        *,
        max_concurrency: int = 1,
        on_complete: Callable[[str], Awaitable[None]] | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._media_source = media_source
        self.max_concurrency = max_concurrency
        self.on_complete = on_complete

    async def upload(
        self,
        source_refs: Sequence[MediaRef],
        target_path: str,
        resolver: SessionResolver,
        on_update: BatchListener | None = None,
    ) -> BatchResult:
        refs = list(source_refs)
        filenames = await resolve_filenames(refs, self._media_source)
        batch = BatchResult(items=[UploadItem(ref, name) for ref, name in zip(refs, filenames)])
        notify = _safe_listener(on_update)
        logger.info("prepared %d item(s) for upload to %s", len(batch.items), target_path)
        notify(batch)
        if not batch.items:
            batch.finished = True
            notify(batch)
            return batch

        try:
            session = await resolver.resolve()
        except (ConfigurationError, SessionConnectionError) as e:
            logger.warning("upload to %s aborted before any transfer: %s", target_path, e)
            batch.error = e
            batch.finished = True
            notify(batch)
            return batch

        if self.max_concurrency == 1 or len(batch.items) == 1:
            for index in range(len(batch.items)):
                await self._transfer(batch, index, session, target_path, notify)
        else:
            await self._transfer_parallel(batch, session, target_path, resolver, notify)

        batch.finished = True
        logger.info("uploaded %d of %d item(s) to %s", batch.succeeded, batch.attempted, target_path)
        notify(batch)
        if self.on_complete is not None:
            await self.on_complete(target_path)
        return batch

    async def _transfer_parallel(
        self,
        batch: BatchResult,
        session: RemoteSession,
        target_path: str,
        resolver: SessionResolver,
        notify: BatchListener,
    ) -> None:
        pending: asyncio.Queue[int] = asyncio.Queue()
        for index in range(len(batch.items)):
            pending.put_nowait(index)
        workers = min(self.max_concurrency, len(batch.items))
        forks = [resolver.fork() for _ in range(workers - 1)]

        async def worker(own: RemoteSession | None, fork: SessionResolver | None) -> None:
            while not pending.empty():
                index = pending.get_nowait()
                if own is None and fork is not None:
                    try:
                        own = await fork.resolve()
                    except (ConfigurationError, SessionConnectionError) as e:
                        logger.warning("extra upload worker could not connect: %s", e)
                        pending.put_nowait(index)
                        return
                await self._transfer(batch, index, own, target_path, notify)

        try:
            await asyncio.gather(worker(session, None), *(worker(None, fork) for fork in forks))
            # 额外 worker 连不上时退回的条目，由主会话补上
            while not pending.empty():
                await self._transfer(batch, pending.get_nowait(), session, target_path, notify)
        finally:
            for fork in forks:
                await fork.aclose()

    async def _transfer(
        self,
        batch: BatchResult,
        index: int,
        session: RemoteSession,
        target_path: str,
        notify: BatchListener,
    ) -> None:
        item = batch.items[index]
        remote_path = join_path(target_path, item.filename)
        batch.attempted += 1
        logger.info("uploading %s -> %s", item.filename, remote_path)
        try:
            data = await self._media_source.load_bytes(item.source_ref)
            await self._write(session, data, remote_path, item, batch, notify)
        except Exception as e:
            item.progress = 0.0
            item.completed = False
            item.error = ItemTransferError(index, item.filename, e)
            logger.warning("%s", item.error)
            notify(batch)
            return
        # 服务端最后一次回调可能不到 100，成功即视为 1.0
        item.progress = 1.0
        item.completed = True
        batch.succeeded += 1
        notify(batch)

    async def _write(
        self,
        session: RemoteSession,
        data: bytes,
        remote_path: str,
        item: UploadItem,
        batch: BatchResult,
        notify: BatchListener,
    ) -> None:
        stream = ProgressStream()

        async def run() -> None:
            try:
                await session.write_file(data, remote_path, stream)
            finally:
                stream.close()

        task = asyncio.create_task(run())
        try:
            async for fraction in stream:
                item.progress = fraction
                notify(batch)
        except BaseException:
            stream.cancel()
            task.cancel()
            raise
        await task


def _safe_listener(listener: BatchListener | None) -> BatchListener:
    """展示层回调出错不能影响传输，只记录日志。"""

    def notify(batch: BatchResult) -> None:
        if listener is None:
            return
        try:
            listener(batch)
        except Exception:
            logger.exception("batch listener failed")

    return notify
