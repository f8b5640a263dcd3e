"""
会话解析：每次操作前拿到一个已挂载共享的可用会话。

底层传输无法廉价判断会话是否仍然存活，所以 resolve() 每次都重新挂载共享，
用一次额外请求换取「不会在已失效的会话上操作」。失败不自动重试，由调用方决定。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from picstream.errors import ConfigurationError, SessionConnectionError
from picstream.session import HFSSession, RemoteSession

logger = logging.getLogger(__name__)

DEFAULT_SHARE = "data"


@dataclass(frozen=True)
class SessionSettings:
    """连接参数：服务器地址、共享名、账号。"""

    endpoint: str
    share: str = DEFAULT_SHARE
    username: str | None = None
    password: str | None = None
    timeout: float = 30.0
    verify: bool = True


SessionFactory = Callable[[SessionSettings], RemoteSession]


def hfs_session_factory(settings: SessionSettings) -> RemoteSession:
    return HFSSession(
        settings.endpoint,
        username=settings.username,
        password=settings.password,
        timeout=settings.timeout,
        verify=settings.verify,
    )


class SessionResolver:
    """
    独占持有会话对象；调用方只在一次逻辑操作内使用 resolve() 的返回值，不要缓存。

    :param settings: 连接参数
    :param session_factory: 由 settings 构造会话，默认 HFSSession；地址非法时应抛出 ConfigurationError
    """

    def __init__(self, settings: SessionSettings, *, session_factory: SessionFactory | None = None):
        self._settings = settings
        self._factory = session_factory or hfs_session_factory
        self._session: RemoteSession | None = None

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def has_session(self) -> bool:
        return self._session is not None

    def _create(self) -> RemoteSession:
        try:
            session = self._factory(self._settings)
        except ConfigurationError:
            raise
        except Exception as e:
            raise SessionConnectionError(self._settings.endpoint, self._settings.share, e) from e
        logger.info("created session for %s", self._settings.endpoint)
        return session

    async def resolve(self) -> RemoteSession:
        """确保会话存在并（重新）挂载共享后返回。"""
        if self._session is None:
            self._session = self._create()
        share = self._settings.share
        logger.debug("attaching share %r", share)
        try:
            await self._session.connect_share(share)
        except Exception as e:
            logger.warning("failed to attach share %r on %s: %s", share, self._settings.endpoint, e)
            raise SessionConnectionError(self._settings.endpoint, share, e) from e
        return self._session

    async def reset(self, settings: SessionSettings | None = None, **changes: object) -> None:
        """丢弃现有会话（下次 resolve 时按新参数重建），用于重新连接或修改了地址 / 账号之后。"""
        await self.aclose()
        if settings is not None:
            self._settings = settings
        if changes:
            self._settings = replace(self._settings, **changes)

    def fork(self) -> SessionResolver:
        """同参数的独立解析器（独立会话），用于并行传输。"""
        return SessionResolver(self._settings, session_factory=self._factory)

    async def aclose(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.aclose()
