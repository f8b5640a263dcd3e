"""
pytest 配置与共享 fixture。

服务器地址与账号见 tests.config；假会话见 tests.fakes。
"""

from __future__ import annotations

import pytest

from picstream.resolver import SessionResolver, SessionSettings

from tests.config import HFS_ENDPOINT, HFS_PASSWORD, HFS_SHARE, HFS_USERNAME
from tests.fakes import FakeSession, raw_dir, raw_file


@pytest.fixture
def settings() -> SessionSettings:
    return SessionSettings(endpoint=HFS_ENDPOINT, share=HFS_SHARE, username=HFS_USERNAME, password=HFS_PASSWORD)


@pytest.fixture
def session() -> FakeSession:
    """共享根目录下有两个文件夹、两个文件和一个隐藏文件。"""
    return FakeSession(
        {
            "/": [raw_file("b.jpg"), raw_dir("Wakacje"), raw_file(".DS_Store"), raw_dir("album"), raw_file("A.mov")],
            "/Wakacje": [raw_file("IMG_0001.jpg"), raw_dir("2024")],
            "/album": [],
        }
    )


@pytest.fixture
def resolver(settings: SessionSettings, session: FakeSession) -> SessionResolver:
    return SessionResolver(settings, session_factory=lambda _settings: session)
