"""
picstream 数据模型。

- RawEntry：会话 list_directory 返回的原始条目（名称、类型、大小、修改时间，均可能缺失）
- FileSystemEntry：过滤、排序后的目录条目；每次列目录都生成新的 id，相等性只看 id
- NavigationState：当前路径 + 下钻历史
- UploadItem / BatchResult：上传批次中的条目与批次结果
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from picstream.progress import aggregate

# RawEntry.resource_type 取值
RESOURCE_DIRECTORY = "directory"
RESOURCE_REGULAR = "regular"

ROOT_PATH = "/"


@dataclass(frozen=True)
class RawEntry:
    name: str | None
    resource_type: str | None
    size: int | None = None
    modified_at: datetime | None = None


@dataclass(frozen=True)
class FileSystemEntry:
    """目录列表中的一项。path 为共享内的绝对路径，如 "/Folder/a.jpg"。"""

    name: str = field(compare=False)
    path: str = field(compare=False)
    is_directory: bool = field(compare=False)
    size: int | None = field(default=None, compare=False)
    modified_at: datetime | None = field(default=None, compare=False)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class NavigationState:
    current_path: str = ROOT_PATH
    history: tuple[str, ...] = ()


@dataclass
class UploadItem:
    source_ref: Any
    filename: str
    progress: float = 0.0
    completed: bool = False
    error: Exception | None = None

    @property
    def contribution(self) -> float:
        """计入总进度的值：已完成的条目恒为 1.0。"""
        return 1.0 if self.completed else self.progress


@dataclass
class BatchResult:
    """
    一个上传批次的结果（上传过程中也作为进度快照对外发布）。

    error 非空表示会话解析失败，批次未尝试任何条目。
    """

    items: list[UploadItem] = field(default_factory=list)
    attempted: int = 0
    succeeded: int = 0
    finished: bool = False
    error: Exception | None = None

    @property
    def overall_progress(self) -> float:
        return aggregate(self.items)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def failures(self) -> list[UploadItem]:
        return [item for item in self.items if item.error is not None]


def join_path(parent: str, name: str) -> str:
    """拼接共享内路径：根目录下为 "/name"，否则 "parent/name"。"""
    return f"/{name}" if parent == ROOT_PATH else f"{parent}/{name}"


def parent_path(path: str) -> str:
    """去掉最后一段；无剩余段时返回根 "/"。"""
    segments = [seg for seg in path.split("/") if seg][:-1]
    return "/" + "/".join(segments) if segments else ROOT_PATH


# ------------------------- HFS 原始条目 -------------------------
# get_file_list 返回的 list 中每一项：
# n=名称（文件夹以 "/" 结尾）, c=创建时间, m=修改时间, s=大小(字节), p=权限缩写
HFSEntry = dict[str, Any]


def parse_timestamp(value: Any) -> datetime | None:
    """HFS 的 ISO 时间字符串（可能以 Z 结尾）→ datetime；无法解析时返回 None。"""
    if not isinstance(value, str) or not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def entry_size(entry: HFSEntry) -> int | None:
    """条目大小（字节）；文件夹通常不提供。"""
    size = entry.get("s")
    return int(size) if isinstance(size, (int, float)) else None


def entry_modified(entry: HFSEntry) -> datetime | None:
    return parse_timestamp(entry.get("m"))


def hfs_entry_to_raw(entry: HFSEntry) -> RawEntry:
    """把 HFS 条目转换为会话无关的 RawEntry；名称缺失时 name/resource_type 为 None。"""
    name = entry.get("n")
    if not isinstance(name, str) or not name.strip("/"):
        return RawEntry(name=None, resource_type=None)
    is_folder = name.endswith("/")
    return RawEntry(
        name=name.rstrip("/"),
        resource_type=RESOURCE_DIRECTORY if is_folder else RESOURCE_REGULAR,
        size=entry_size(entry),
        modified_at=entry_modified(entry),
    )
