"""
浏览器上下文：串起会话解析、目录列表、导航与上传，并把状态变化推送给展示层。

展示层通过 add_listener 订阅 BrowserEvent：
- NAVIGATION    payload = NavigationState
- LISTING       payload = list[FileSystemEntry]
- LISTING_ERROR payload = ListingError / SessionConnectionError / ConfigurationError
- BATCH         payload = BatchResult（上传过程中的快照）
- NOTICE        payload = Notice（状态 / 错误提示）

列目录的结果只有在发起时的路径仍是当前路径时才会被采用，慢请求不会覆盖更新的列表。
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from picstream.errors import ConfigurationError, ListingError, PicStreamError, SessionConnectionError
from picstream.lister import DirectoryLister
from picstream.media import LocalMediaSource, MediaRef, MediaSource
from picstream.models import ROOT_PATH, BatchResult, FileSystemEntry, NavigationState, parent_path
from picstream.navigation import NavigationStack
from picstream.orchestrator import UploadOrchestrator
from picstream.resolver import SessionResolver

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    NAVIGATION = "navigation"
    LISTING = "listing"
    LISTING_ERROR = "listing_error"
    BATCH = "batch"
    NOTICE = "notice"


@dataclass(frozen=True)
class Notice:
    message: str
    error: bool = False
    # 阻塞式提示（需要用户确认），用于配置 / 连接 / 列表错误
    blocking: bool = False


@dataclass(frozen=True)
class BrowserEvent:
    kind: EventKind
    payload: Any


Listener = Callable[[BrowserEvent], None]


class MediaBrowser:
    def __init__(
        self,
        resolver: SessionResolver,
        *,
        media_source: MediaSource | None = None,
        lister: DirectoryLister | None = None,
        navigation: NavigationStack | None = None,
        max_concurrency: int = 1,
    ):
        self.resolver = resolver
        self.lister = lister or DirectoryLister()
        self.navigation = navigation or NavigationStack()
        self.orchestrator = UploadOrchestrator(
            media_source or LocalMediaSource(),
            max_concurrency=max_concurrency,
            on_complete=self.load,
        )
        self.listing: list[FileSystemEntry] = []
        self.listing_error: PicStreamError | None = None
        self.batch: BatchResult | None = None
        self.connected = False
        self.uploading = False
        self._listeners: list[Listener] = []

    # ------------------------- 事件 -------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _emit(self, kind: EventKind, payload: Any) -> None:
        event = BrowserEvent(kind, payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("listener failed on %s event", kind.value)

    def _notice(self, message: str, *, error: bool = False, blocking: bool = False) -> None:
        self._emit(EventKind.NOTICE, Notice(message, error=error, blocking=blocking))

    @property
    def state(self) -> NavigationState:
        return self.navigation.state

    @property
    def current_path(self) -> str:
        return self.navigation.current_path

    # ------------------------- 连接与列表 -------------------------

    async def connect(self) -> bool:
        """按当前参数重建会话并列出共享根目录；成功后导航重置到 "/"。"""
        await self.resolver.reset()
        try:
            session = await self.resolver.resolve()
            items = await self.lister.list(ROOT_PATH, session)
        except (ConfigurationError, SessionConnectionError, ListingError) as e:
            logger.warning("connect failed: %s", e)
            self.connected = False
            self._set_listing([], e)
            self._notice(f"Connection failed: {e}", error=True, blocking=True)
            return False
        # 新连接总是回到根目录，根列表无需过期检查
        self.navigation.reset()
        self.connected = True
        self._emit(EventKind.NAVIGATION, self.navigation.state)
        self._set_listing(items, None)
        self._notice(f"Connected, {len(items)} item(s).")
        return True

    async def load(self, path: str | None = None) -> None:
        """列出 path（默认当前路径）；完成时若路径已不是当前路径则丢弃结果。"""
        path = self.navigation.current_path if path is None else path
        try:
            session = await self.resolver.resolve()
            items = await self.lister.list(path, session)
        except (ConfigurationError, SessionConnectionError, ListingError) as e:
            if self.navigation.current_path != path:
                logger.debug("ignoring stale listing error for %s", path)
                return
            logger.warning("listing %s failed: %s", path, e)
            self._set_listing([], e)
            self._notice(f"Cannot load folder: {e}", error=True, blocking=True)
            return
        if self.navigation.current_path != path:
            logger.debug("path changed during load, ignoring results for %s", path)
            return
        self._set_listing(items, None)
        self._notice(f"Loaded {len(items)} item(s).")

    async def refresh(self) -> None:
        await self.load()

    def _set_listing(self, items: list[FileSystemEntry], error: PicStreamError | None) -> None:
        self.listing = items
        self.listing_error = error
        if error is None:
            self._emit(EventKind.LISTING, items)
        else:
            self._emit(EventKind.LISTING_ERROR, error)

    # ------------------------- 导航 -------------------------

    async def open(self, entry: FileSystemEntry) -> None:
        """进入目录并加载其内容；非目录条目、不属于当前目录的条目（旧列表中的）忽略。"""
        if not entry.is_directory:
            return
        if parent_path(entry.path) != self.navigation.current_path:
            logger.debug("ignoring %s, not a child of %s", entry.path, self.navigation.current_path)
            return
        self.navigation.descend(entry)
        self._emit(EventKind.NAVIGATION, self.navigation.state)
        await self.load()

    async def up(self) -> None:
        if self.navigation.current_path == ROOT_PATH:
            return
        self.navigation.ascend()
        self._emit(EventKind.NAVIGATION, self.navigation.state)
        await self.load()

    def find(self, name: str) -> FileSystemEntry | None:
        """在当前列表中按名称查找条目。"""
        for entry in self.listing:
            if entry.name == name:
                return entry
        return None

    # ------------------------- 上传 -------------------------

    async def upload(self, refs: Sequence[MediaRef]) -> BatchResult | None:
        """上传到当前路径；未选择媒体或已有批次在进行时不启动，返回 None。"""
        if not refs:
            self._notice("Select at least one file to upload.", error=True, blocking=True)
            return None
        if self.uploading:
            logger.debug("upload requested while a batch is running; ignored")
            return None
        self.uploading = True
        self._notice("Preparing upload...")
        try:
            batch = await self.orchestrator.upload(
                refs,
                self.navigation.current_path,
                self.resolver,
                on_update=self._on_batch_update,
            )
        finally:
            self.uploading = False
        if batch.error is not None:
            self._notice(f"Upload failed: {batch.error}", error=True, blocking=True)
        else:
            self._notice(f"Uploaded {batch.succeeded} of {batch.attempted} file(s).")
        return batch

    def _on_batch_update(self, batch: BatchResult) -> None:
        self.batch = batch
        self._emit(EventKind.BATCH, batch)

    async def aclose(self) -> None:
        await self.resolver.aclose()
