"""
媒体源：MediaSource 协议与本地文件实现。

MediaRef 携带媒体类型（图片 / 视频）以及视频的高帧率标记，文件名解析与回退命名依赖这两项。
"""

from __future__ import annotations

import asyncio
import enum
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from picstream.errors import MediaAccessError

logger = logging.getLogger(__name__)


class MediaType(enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"


@dataclass(frozen=True)
class MediaRef:
    locator: Any
    media_type: MediaType = MediaType.OTHER
    high_frame_rate: bool = False


class MediaSource(Protocol):
    async def original_filename(self, ref: MediaRef) -> str | None: ...

    async def load_bytes(self, ref: MediaRef) -> bytes: ...


def guess_media_type(path: str | Path) -> MediaType:
    """按 MIME 类型判断图片 / 视频；HEIC 等 mimetypes 不认识的扩展名单独处理。"""
    suffix = Path(path).suffix.lower()
    if suffix in (".heic", ".heif"):
        return MediaType.IMAGE
    mime, _ = mimetypes.guess_type(str(path))
    if mime is None:
        return MediaType.OTHER
    if mime.startswith("image/"):
        return MediaType.IMAGE
    if mime.startswith("video/"):
        return MediaType.VIDEO
    return MediaType.OTHER


def media_ref_for(path: str | Path, *, high_frame_rate: bool = False) -> MediaRef:
    media_type = guess_media_type(path)
    return MediaRef(
        locator=Path(path),
        media_type=media_type,
        high_frame_rate=high_frame_rate and media_type is MediaType.VIDEO,
    )


class LocalMediaSource:
    """从本地文件读取媒体。原始文件名即本地文件名。"""

    async def original_filename(self, ref: MediaRef) -> str | None:
        name = Path(ref.locator).name
        return name or None

    async def load_bytes(self, ref: MediaRef) -> bytes:
        path = Path(ref.locator)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise MediaAccessError(f"cannot read {path}: {e}") from e
        logger.debug("loaded %d bytes from %s", len(data), path)
        return data
