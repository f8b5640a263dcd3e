"""
picstream 异常类型。

对外只暴露四类：ConfigurationError / SessionConnectionError / ListingError / ItemTransferError；
TransportError、MediaAccessError 由会话与媒体源抛出，在各操作边界被翻译成上面四类。
"""

from __future__ import annotations


class PicStreamError(Exception):
    """所有 picstream 异常的基类。"""


class ConfigurationError(PicStreamError):
    """端点地址无法解析为合法网络地址。"""


class SessionConnectionError(PicStreamError):
    """会话创建或挂载共享失败；不自动重试。"""

    def __init__(self, endpoint: str, share: str, cause: BaseException | None = None):
        self.endpoint = endpoint
        self.share = share
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot attach share {share!r} on {endpoint}{detail}")


class ListingError(PicStreamError):
    """获取目录列表失败。"""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot list {path}{detail}")


class ItemTransferError(PicStreamError):
    """批次中单个条目失败（读取源数据或写入远端）；不会中断整个批次。"""

    def __init__(self, index: int, filename: str, cause: BaseException | None = None):
        self.index = index
        self.filename = filename
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"upload of {filename} (#{index + 1}) failed{detail}")


class TransportError(PicStreamError):
    """会话层的网络 / HTTP 错误。"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TransferCancelled(TransportError):
    """进度回调返回 False，写入被中止。"""


class MediaAccessError(PicStreamError):
    """无法读取媒体源数据。"""
