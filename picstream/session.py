"""
远程会话：RemoteSession 协议与基于 HFS (HTTP File Server, https://github.com/rejetto/hfs) 的实现。

会话是有状态的：挂载共享（connect_share）之后，list_directory / write_file 的路径均相对共享根目录，
"/" 即共享根。会话是否仍然有效无法廉价探测，因此由 SessionResolver 在每次操作前重新挂载。
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import AsyncIterator, Callable, Iterator, Protocol, Sequence
from urllib.parse import quote, urlencode

import httpx

from picstream.errors import ConfigurationError, TransferCancelled, TransportError
from picstream.models import ROOT_PATH, HFSEntry, RawEntry, hfs_entry_to_raw

logger = logging.getLogger(__name__)

# 进度回调：接收 0–100 的整数百分比，返回 False 表示中止传输
ProgressCallback = Callable[[int], "bool | None"]

# POST/PUT 请求需携带的防 CSRF 头（HFS OpenAPI 要求）
HFS_ANTI_CSRF_HEADER = "x-hfs-anti-csrf"
HFS_ANTI_CSRF_VALUE = "1"


class RemoteSession(Protocol):
    async def connect_share(self, name: str) -> None: ...

    async def list_directory(self, path: str) -> Sequence[RawEntry]: ...

    async def write_file(self, data: bytes, path: str, on_progress: ProgressCallback | None = None) -> None: ...

    async def aclose(self) -> None: ...


def parse_endpoint(endpoint: str) -> str:
    """
    把用户输入的服务器地址解析为 base URL。

    支持 "192.168.1.230"、"nas.local:8280"、"https://host/prefix"；未写协议时默认 http。
    无法解析为合法地址时抛出 ConfigurationError。
    """
    raw = (endpoint or "").strip()
    if not raw or any(ch.isspace() for ch in raw):
        raise ConfigurationError(f"invalid server address: {endpoint!r}")
    if "://" not in raw:
        raw = f"http://{raw}"
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"invalid server address: {endpoint!r} ({e})") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"invalid server address: {endpoint!r}")
    netloc = url.netloc.decode("ascii")
    return f"{url.scheme}://{netloc}{url.path}".rstrip("/")


def _path_for_url(path: str) -> str:
    """将路径按段做 UTF-8 百分号编码，供 URL 使用（避免中文等非 ASCII 导致 ascii codec 错误）。"""
    segments = (path.strip("/").split("/") if path.strip("/") else [])
    return "/" + "/".join(quote(seg, safe="") for seg in segments) if segments else "/"


@contextmanager
def _transport_errors(action: str) -> Iterator[None]:
    """把 httpx 的网络异常翻译为 TransportError。"""
    try:
        yield
    except httpx.HTTPError as e:
        raise TransportError(f"{action}: {e}") from e


def _raise_for_status(r: httpx.Response, action: str) -> None:
    if not r.is_success:
        raise TransportError(f"{action}: {r.status_code} {r.reason_phrase}", status_code=r.status_code)


class HFSSession:
    """
    基于 HFS HTTP API 的 RemoteSession 实现。

    认证方式：首次请求带 ?login=用户名:密码 建立会话（cookie），每次 connect_share 都会重新登录。
    示例： HFSSession("127.0.0.1:8280", username="abct", password="abc123")
    """

    UPLOAD_CHUNK_SIZE = 256 * 1024  # 流式上传块大小，同时决定进度回调的粒度

    def __init__(
        self,
        endpoint: str,
        username: str | None = None,
        password: str | None = None,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        :param endpoint: 服务器地址，如 192.168.1.230:8280 或 http://127.0.0.1:8280
        :param username: 登录用户名；为 None 时匿名访问
        :param password: 登录密码
        :param timeout: 请求超时秒数
        :param verify: 是否验证 HTTPS 证书
        :param transport: 自定义 httpx 传输层（测试时传入 httpx.MockTransport）
        """
        self.base_url = parse_endpoint(endpoint)
        self.username = username
        self.password = password
        self.timeout = timeout
        self.verify = verify
        self._transport = transport
        self._api_base = f"{self.base_url}/~/api"
        self._client: httpx.AsyncClient | None = None
        self._share: str | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                verify=self.verify,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _post_headers(self) -> dict[str, str]:
        return {HFS_ANTI_CSRF_HEADER: HFS_ANTI_CSRF_VALUE}

    async def aclose(self) -> None:
        """关闭底层 HTTP 客户端。"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HFSSession:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def share(self) -> str | None:
        return self._share

    def _share_path(self, path: str) -> str:
        """共享内路径 → 服务器上的绝对路径，如 ("data", "/sub") -> "/data/sub"。"""
        if self._share is None:
            raise TransportError("share not attached; call connect_share() first")
        inner = path.strip("/")
        parts = [p for p in (self._share, inner) if p]
        return "/" + "/".join(parts)

    # ------------------------- 登录与共享 -------------------------

    async def login(self) -> bool:
        """
        使用 URL 参数方式建立登录会话。
        返回是否请求成功（不保证服务端一定接受凭证，凭证无效时后续请求会返回 401/403）。
        """
        if self.username is None or self.password is None:
            return False
        login_value = f"{self.username}:{self.password}"
        try:
            r = await self._get_client().get(f"/?{urlencode({'login': login_value})}")
        except httpx.HTTPError as e:
            logger.debug("login request to %s failed: %s", self.base_url, e)
            return False
        return r.is_success

    async def connect_share(self, name: str) -> None:
        """挂载共享：重新登录后请求一次共享根目录列表，失败抛出 TransportError。"""
        self._share = name.strip("/")
        if self.username is not None and self.password is not None:
            if not await self.login():
                raise TransportError(f"login to {self.base_url} as {self.username!r} failed")
        await self.get_file_list(self._share_path(ROOT_PATH).rstrip("/") + "/", limit=1)
        logger.debug("attached share %r on %s", self._share, self.base_url)

    # ------------------------- 文件列表 -------------------------

    async def get_file_list(
        self,
        uri: str = "/",
        *,
        limit: int | None = None,
        request_c_and_m: bool = False,
    ) -> dict:
        """
        获取服务器上指定目录的原始列表响应（含 can_upload 等字段与 list 数组）。

        :param uri: 服务器绝对目录路径，如 "/" 或 "/data/"
        :param limit: 最多返回条数
        :param request_c_and_m: 是否同时请求 c（创建）和 m（修改）时间
        """
        params: dict[str, str | int] = {"uri": uri}
        if limit is not None:
            params["limit"] = limit
        if request_c_and_m:
            params["c"] = "1"
        with _transport_errors(f"list {uri}"):
            r = await self._get_client().get(f"{self._api_base}/get_file_list", params=params)
        _raise_for_status(r, f"list {uri}")
        try:
            return r.json()
        except ValueError as e:
            raise TransportError(f"list {uri}: malformed response") from e

    async def list_directory(self, path: str) -> list[RawEntry]:
        uri = self._share_path(path).rstrip("/") + "/"
        data = await self.get_file_list(uri, request_c_and_m=True)
        entries: list[HFSEntry] = data.get("list") or []
        return [hfs_entry_to_raw(e) for e in entries if isinstance(e, dict)]

    # ------------------------- 上传 -------------------------

    def _report(self, on_progress: ProgressCallback | None, sent: int, total: int) -> None:
        if on_progress is None:
            return
        percent = 100 if total <= 0 else sent * 100 // total
        if on_progress(percent) is False:
            raise TransferCancelled("transfer cancelled by progress consumer")

    async def write_file(self, data: bytes, path: str, on_progress: ProgressCallback | None = None) -> None:
        """
        PUT 上传到共享内 path（同名文件由服务端处理，resume=0! 表示从头写入）。

        body 按 UPLOAD_CHUNK_SIZE 分块流式发送，每块发出后调用 on_progress(百分比)。
        """
        server_path = self._share_path(path)
        folder = server_path.rsplit("/", 1)[0]
        url = _path_for_url(server_path)
        total = len(data)
        headers = {
            **self._post_headers(),
            "Content-Length": str(total),
            "Referer": f"{self.base_url}{_path_for_url(folder)}{'/' if folder else ''}",
        }

        async def stream_chunks() -> AsyncIterator[bytes]:
            if total == 0:
                self._report(on_progress, 0, 0)
                return
            sent = 0
            for start in range(0, total, self.UPLOAD_CHUNK_SIZE):
                chunk = data[start:start + self.UPLOAD_CHUNK_SIZE]
                yield chunk
                sent += len(chunk)
                self._report(on_progress, sent, total)

        with _transport_errors(f"write {path}"):
            r = await self._get_client().put(url, params={"resume": "0!"}, content=stream_chunks(), headers=headers)
        _raise_for_status(r, f"write {path}")
        logger.debug("wrote %d bytes to %s", total, server_path)
