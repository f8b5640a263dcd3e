"""
真实 HFS 服务器上的端到端测试：挂载共享、列目录、上传并确认出现在列表中。

服务器与账号来自 tests.config，对 HFS_TEST_ACCOUNTS 中每个账号各跑一遍；服务器不可达时跳过。
"""

from __future__ import annotations

import time

import pytest

from picstream.browser import MediaBrowser
from picstream.errors import SessionConnectionError
from picstream.lister import DirectoryLister
from picstream.media import MediaRef
from picstream.resolver import SessionResolver, SessionSettings

from tests.config import HFS_ENDPOINT, HFS_SHARE, HFS_TEST_ACCOUNTS
from tests.fakes import FakeMediaSource


@pytest.fixture(params=[pytest.param(acc, id=acc["username"]) for acc in HFS_TEST_ACCOUNTS])
def live_settings(request: pytest.FixtureRequest) -> SessionSettings:
    acc = request.param
    return SessionSettings(
        endpoint=HFS_ENDPOINT,
        share=HFS_SHARE,
        username=acc["username"],
        password=acc["password"],
        timeout=10.0,
    )


async def _resolve_or_skip(resolver: SessionResolver):
    try:
        return await resolver.resolve()
    except SessionConnectionError as e:
        await resolver.aclose()
        pytest.skip(f"HFS 测试服务器不可用 ({HFS_ENDPOINT}): {e}")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_share_root(live_settings: SessionSettings) -> None:
    resolver = SessionResolver(live_settings)
    session = await _resolve_or_skip(resolver)
    try:
        entries = await DirectoryLister().list("/", session)
        assert all(not e.name.startswith(".") for e in entries)
        dirs = [e.is_directory for e in entries]
        assert dirs == sorted(dirs, reverse=True)
    finally:
        await resolver.aclose()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_upload_shows_up_in_listing(live_settings: SessionSettings) -> None:
    resolver = SessionResolver(live_settings)
    await _resolve_or_skip(resolver)
    name = f"picstream_test_{int(time.time() * 1000)}.HEIC"
    source = FakeMediaSource({"live": name})
    browser = MediaBrowser(resolver, media_source=source)
    try:
        assert await browser.connect()
        batch = await browser.upload([MediaRef("live")])
        assert batch is not None
        assert batch.failures == []
        assert batch.succeeded == 1
        uploaded = name[: -len(".HEIC")] + ".jpg"
        assert browser.find(uploaded) is not None
    finally:
        await browser.aclose()
