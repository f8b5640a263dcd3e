"""picstream：浏览 HFS (HTTP File Server) 共享目录，并把照片 / 视频批量上传到当前目录。"""

from picstream.browser import BrowserEvent, EventKind, MediaBrowser, Notice
from picstream.errors import (
    ConfigurationError,
    ItemTransferError,
    ListingError,
    MediaAccessError,
    PicStreamError,
    SessionConnectionError,
    TransferCancelled,
    TransportError,
)
from picstream.lister import DirectoryLister
from picstream.media import LocalMediaSource, MediaRef, MediaSource, MediaType, media_ref_for
from picstream.models import BatchResult, FileSystemEntry, NavigationState, RawEntry, UploadItem
from picstream.navigation import NavigationStack
from picstream.orchestrator import UploadOrchestrator
from picstream.progress import ProgressStream, aggregate, normalize_percent
from picstream.resolver import SessionResolver, SessionSettings
from picstream.session import HFSSession, RemoteSession, parse_endpoint

__all__ = [
    "BatchResult",
    "BrowserEvent",
    "ConfigurationError",
    "DirectoryLister",
    "EventKind",
    "FileSystemEntry",
    "HFSSession",
    "ItemTransferError",
    "ListingError",
    "LocalMediaSource",
    "MediaAccessError",
    "MediaBrowser",
    "MediaRef",
    "MediaSource",
    "MediaType",
    "NavigationStack",
    "NavigationState",
    "Notice",
    "PicStreamError",
    "ProgressStream",
    "RawEntry",
    "RemoteSession",
    "SessionConnectionError",
    "SessionResolver",
    "SessionSettings",
    "TransferCancelled",
    "TransportError",
    "UploadItem",
    "UploadOrchestrator",
    "aggregate",
    "media_ref_for",
    "normalize_percent",
    "parse_endpoint",
]
