"""
目录列表：从会话取原始条目，过滤、补全路径并排序。

排序规则：目录在前，文件在后；组内按名称不区分大小写升序。
以 "." 开头的隐藏条目、缺少名称或类型的条目一律丢弃。
"""

from __future__ import annotations

import logging

from picstream.errors import ListingError
from picstream.models import RESOURCE_DIRECTORY, FileSystemEntry, RawEntry, join_path
from picstream.session import RemoteSession

logger = logging.getLogger(__name__)


def _sort_key(entry: FileSystemEntry) -> tuple[bool, str, str]:
    # casefold 后相同的名称再按原名排，保证顺序稳定
    return (not entry.is_directory, entry.name.casefold(), entry.name)


def to_entry(raw: RawEntry, parent: str) -> FileSystemEntry | None:
    """把一条原始条目转换为 FileSystemEntry；应被丢弃时返回 None。"""
    if not raw.name or not raw.resource_type:
        logger.debug("dropping entry without name or type in %s: %r", parent, raw)
        return None
    if raw.name.startswith("."):
        return None
    return FileSystemEntry(
        name=raw.name,
        path=join_path(parent, raw.name),
        is_directory=raw.resource_type == RESOURCE_DIRECTORY,
        size=raw.size,
        modified_at=raw.modified_at,
    )


def sort_entries(entries: list[FileSystemEntry]) -> list[FileSystemEntry]:
    return sorted(entries, key=_sort_key)


class DirectoryLister:
    async def list(self, path: str, session: RemoteSession) -> list[FileSystemEntry]:
        """列出共享内 path 目录；任何传输错误都包装成 ListingError。"""
        try:
            raw_entries = await session.list_directory(path)
        except Exception as e:
            raise ListingError(path, e) from e
        logger.debug("fetched %d raw entries for %s", len(raw_entries), path)
        entries = [e for e in (to_entry(raw, path) for raw in raw_entries) if e is not None]
        return sort_entries(entries)
