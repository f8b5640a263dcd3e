"""
CLI 连接配置：本地保存/读取 endpoint、share、username、password。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from picstream.resolver import DEFAULT_SHARE, SessionSettings


def _config_dir() -> Path:
    """配置目录：~/.config/picstream（所有平台统一）。"""
    return Path.home() / ".config" / "picstream"


def _config_path() -> Path:
    return _config_dir() / "config.json"


def load_config() -> dict[str, Any] | None:
    """读取本地配置；不存在或无效则返回 None。"""
    p = _config_path()
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict) or not data.get("endpoint"):
        return None
    return data


def save_config(
    endpoint: str,
    share: str = DEFAULT_SHARE,
    username: str | None = None,
    password: str | None = None,
) -> None:
    """保存连接信息到本地。"""
    p = _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    data: dict[str, Any] = {"endpoint": endpoint.strip().rstrip("/"), "share": share.strip("/")}
    if username is not None:
        data["username"] = username
    if password is not None:
        data["password"] = password
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def clear_config() -> bool:
    """清除本地配置；存在则删除并返回 True。"""
    p = _config_path()
    if p.exists():
        p.unlink()
        return True
    return False


def settings_from_config(
    cfg: dict[str, Any] | None,
    *,
    endpoint: str | None = None,
    share: str | None = None,
) -> SessionSettings | None:
    """
    由本地配置构造 SessionSettings；endpoint / share 参数优先于配置。
    两者都没有 endpoint 时返回 None。
    """
    cfg = cfg or {}
    url = endpoint or cfg.get("endpoint")
    if not url:
        return None
    return SessionSettings(
        endpoint=url,
        share=share if share is not None else cfg.get("share", DEFAULT_SHARE),
        username=cfg.get("username"),
        password=cfg.get("password"),
    )
