"""
上传文件名解析。

优先使用媒体的原始文件名；拿不到时按媒体类型生成回退名：
  图片 -> IMG_XXXXXXXX.jpg，视频 -> VID_XXXXXXXX.mp4（高帧率视频 .mov），其它 -> MEDIA_XXXXXXXX.dat
XXXXXXXX 为随机 8 位十六进制。HEIC/HEIF 扩展名改写为 .jpg（只换扩展名，不转码）。
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import PurePosixPath
from typing import Sequence

from picstream.media import MediaRef, MediaSource, MediaType

logger = logging.getLogger(__name__)

# 厂商私有的静态图片扩展名 -> 通用扩展名
PORTABLE_EXTENSIONS = {
    ".heic": ".jpg",
    ".heif": ".jpg",
}

IMAGE_EXTENSION = "jpg"
VIDEO_EXTENSION = "mp4"
HIGH_FRAME_RATE_VIDEO_EXTENSION = "mov"
OTHER_EXTENSION = "dat"


def portable_filename(filename: str) -> str:
    """"photo.HEIC" -> "photo.jpg"；其它扩展名原样返回。"""
    suffix = PurePosixPath(filename).suffix
    replacement = PORTABLE_EXTENSIONS.get(suffix.lower())
    if replacement is None:
        return filename
    return filename[: -len(suffix)] + replacement


def fallback_filename(ref: MediaRef) -> str:
    if ref.media_type is MediaType.IMAGE:
        prefix, extension = "IMG", IMAGE_EXTENSION
    elif ref.media_type is MediaType.VIDEO:
        prefix = "VID"
        extension = HIGH_FRAME_RATE_VIDEO_EXTENSION if ref.high_frame_rate else VIDEO_EXTENSION
    else:
        prefix, extension = "MEDIA", OTHER_EXTENSION
    return f"{prefix}_{uuid.uuid4().hex[:8].upper()}.{extension}"


async def _resolve(ref: MediaRef, source: MediaSource) -> tuple[str, bool]:
    try:
        original = await source.original_filename(ref)
    except Exception as e:
        logger.warning("cannot read original filename of %r: %s", ref.locator, e)
        original = None
    # 原始名里若带目录部分，只保留最后一段
    if original:
        original = PurePosixPath(original.replace("\\", "/")).name
    if original:
        return portable_filename(original), False
    name = fallback_filename(ref)
    logger.info("no original filename for %r, using fallback %s", ref.locator, name)
    return name, True


async def resolve_filename(ref: MediaRef, source: MediaSource) -> str:
    """取原始文件名（改写私有扩展名）；失败或为空时生成回退名。"""
    name, _ = await _resolve(ref, source)
    return name


async def resolve_filenames(refs: Sequence[MediaRef], source: MediaSource) -> list[str]:
    """并发解析整批文件名，保持选择顺序；回退名与批内已有名称重复时重新生成。"""
    resolved = await asyncio.gather(*(_resolve(ref, source) for ref in refs))
    seen: set[str] = set()
    names: list[str] = []
    for ref, (name, is_fallback) in zip(refs, resolved):
        while is_fallback and name in seen:
            name = fallback_filename(ref)
        seen.add(name)
        names.append(name)
    return names
