"""
上传编排单元测试：部分失败、进度归一、会话解析失败、上传后刷新、并行传输。
"""

from __future__ import annotations

import pytest

from picstream.errors import ConfigurationError, ItemTransferError, SessionConnectionError, TransportError
from picstream.media import MediaRef, MediaType
from picstream.models import BatchResult
from picstream.orchestrator import UploadOrchestrator
from picstream.resolver import SessionResolver, SessionSettings

from tests.fakes import FakeMediaSource, FakeSession


def _refs(*locators: str) -> list[MediaRef]:
    return [MediaRef(loc, MediaType.IMAGE) for loc in locators]


def _names(*locators: str) -> dict[str, str]:
    return {loc: f"{loc}.jpg" for loc in locators}


@pytest.mark.asyncio
async def test_one_failed_fetch_does_not_abort_batch(resolver: SessionResolver, session: FakeSession) -> None:
    """3 项中第 2 项读取失败：attempted=3，succeeded=2，第 2 项未完成且进度为 0。"""
    source = FakeMediaSource(_names("one", "two", "three"), failing={"two"})
    batch = await UploadOrchestrator(source).upload(_refs("one", "two", "three"), "/album", resolver)

    assert batch.attempted == 3
    assert batch.succeeded == 2
    assert batch.finished
    assert batch.error is None
    first, second, third = batch.items
    assert first.completed and third.completed
    assert second.completed is False
    assert second.progress == 0
    assert isinstance(second.error, ItemTransferError)
    assert second.error.index == 1
    assert sorted(session.writes) == ["/album/one.jpg", "/album/three.jpg"]


@pytest.mark.asyncio
async def test_completion_forces_full_progress(resolver: SessionResolver) -> None:
    """最后一次回调为 97% 时，成功后该项进度仍为 1.0。"""
    source = FakeMediaSource(_names("a"))
    batch = await UploadOrchestrator(source).upload(_refs("a"), "/", resolver)
    (item,) = batch.items
    assert item.progress == 1.0
    assert item.completed
    assert batch.overall_progress == 1.0


@pytest.mark.asyncio
async def test_write_failure_resets_item(settings: SessionSettings) -> None:
    """目标目录被删除等写入失败只影响该项。"""
    session = FakeSession(failing_writes={"/gone/b.jpg"})
    resolver = SessionResolver(settings, session_factory=lambda _s: session)
    source = FakeMediaSource(_names("a", "b"))
    batch = await UploadOrchestrator(source).upload(_refs("a", "b"), "/gone", resolver)
    assert batch.succeeded == 1
    assert batch.items[1].progress == 0
    assert isinstance(batch.items[1].error.cause, TransportError)
    assert batch.failures == [batch.items[1]]


@pytest.mark.asyncio
async def test_progress_updates_are_normalized(resolver: SessionResolver) -> None:
    snapshots: list[tuple[float, bool]] = []

    def on_update(batch: BatchResult) -> None:
        item = batch.items[0]
        snapshots.append((item.progress, item.completed))

    source = FakeMediaSource(_names("a"))
    await UploadOrchestrator(source).upload(_refs("a"), "/", resolver, on_update=on_update)
    progresses = [p for p, _ in snapshots]
    assert pytest.approx(0.63) in progresses
    assert all(0.0 <= p <= 1.0 for p in progresses)
    assert snapshots[-1] == (1.0, True)


@pytest.mark.asyncio
async def test_session_failure_reports_zero_attempts(settings: SessionSettings) -> None:
    session = FakeSession(connect_error=TransportError("login failed"))
    resolver = SessionResolver(settings, session_factory=lambda _s: session)
    refreshed: list[str] = []

    async def on_complete(path: str) -> None:
        refreshed.append(path)

    source = FakeMediaSource(_names("a", "b"))
    batch = await UploadOrchestrator(source, on_complete=on_complete).upload(_refs("a", "b"), "/", resolver)
    assert batch.failed
    assert isinstance(batch.error, SessionConnectionError)
    assert batch.attempted == 0
    assert batch.succeeded == 0
    assert source.loaded == []
    assert refreshed == []


@pytest.mark.asyncio
async def test_configuration_error_reports_zero_attempts() -> None:
    resolver = SessionResolver(SessionSettings(endpoint="not a host"))
    batch = await UploadOrchestrator(FakeMediaSource(_names("a"))).upload(_refs("a"), "/", resolver)
    assert isinstance(batch.error, ConfigurationError)
    assert batch.attempted == 0


@pytest.mark.asyncio
async def test_refresh_after_partial_success(resolver: SessionResolver) -> None:
    refreshed: list[str] = []

    async def on_complete(path: str) -> None:
        refreshed.append(path)

    source = FakeMediaSource(_names("a", "b"), failing={"a"})
    await UploadOrchestrator(source, on_complete=on_complete).upload(_refs("a", "b"), "/album", resolver)
    assert refreshed == ["/album"]


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_transfers(resolver: SessionResolver) -> None:
    def on_update(batch: BatchResult) -> None:
        raise RuntimeError("view went away")

    source = FakeMediaSource(_names("a"))
    batch = await UploadOrchestrator(source).upload(_refs("a"), "/", resolver, on_update=on_update)
    assert batch.succeeded == 1


@pytest.mark.asyncio
async def test_empty_batch_does_not_connect(resolver: SessionResolver, session: FakeSession) -> None:
    batch = await UploadOrchestrator(FakeMediaSource()).upload([], "/", resolver)
    assert batch.finished
    assert batch.attempted == 0
    assert session.connect_calls == []


@pytest.mark.asyncio
async def test_parallel_transfers_use_independent_sessions(settings: SessionSettings) -> None:
    sessions: list[FakeSession] = []

    def factory(_settings: SessionSettings) -> FakeSession:
        s = FakeSession()
        sessions.append(s)
        return s

    resolver = SessionResolver(settings, session_factory=factory)
    locators = [f"p{i}" for i in range(6)]
    source = FakeMediaSource(_names(*locators), failing={"p3"})
    batch = await UploadOrchestrator(source, max_concurrency=3).upload(_refs(*locators), "/", resolver)

    assert len(sessions) == 3
    assert batch.attempted == 6
    assert batch.succeeded == 5
    assert [item.filename for item in batch.items] == [f"{loc}.jpg" for loc in locators]
    assert [item.completed for item in batch.items] == [True, True, True, False, True, True]
    written = set().union(*(s.writes for s in sessions))
    assert written == {f"/{loc}.jpg" for loc in locators if loc != "p3"}
    # 额外 worker 的会话在批次结束后关闭，主会话仍归 resolver 所有
    assert [s.closed for s in sessions] == [False, True, True]


@pytest.mark.asyncio
async def test_parallel_falls_back_to_main_session(settings: SessionSettings) -> None:
    """额外 worker 连不上时，剩余条目由主会话完成。"""
    main = FakeSession()
    created: list[FakeSession] = []

    def factory(_settings: SessionSettings) -> FakeSession:
        if not created:
            created.append(main)
            return main
        broken = FakeSession(connect_error=TransportError("too many sessions"))
        created.append(broken)
        return broken

    resolver = SessionResolver(settings, session_factory=factory)
    source = FakeMediaSource(_names("a", "b", "c"))
    batch = await UploadOrchestrator(source, max_concurrency=2).upload(_refs("a", "b", "c"), "/", resolver)
    assert batch.succeeded == 3
    assert batch.attempted == 3
    assert set(main.writes) == {"/a.jpg", "/b.jpg", "/c.jpg"}


def test_rejects_invalid_concurrency() -> None:
    with pytest.raises(ValueError):
        UploadOrchestrator(FakeMediaSource(), max_concurrency=0)
