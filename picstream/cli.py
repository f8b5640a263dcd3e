"""
picstream CLI：连接信息保存一次，之后所有命令复用；支持列目录、批量上传与交互式浏览。
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import shlex
import sys
from pathlib import Path
from typing import Annotated, Callable, Optional

import typer

from picstream.browser import BrowserEvent, EventKind, MediaBrowser, Notice
from picstream.config import clear_config, load_config, save_config, settings_from_config
from picstream.errors import PicStreamError
from picstream.lister import DirectoryLister
from picstream.media import LocalMediaSource, MediaRef, media_ref_for
from picstream.models import ROOT_PATH, BatchResult, FileSystemEntry
from picstream.orchestrator import UploadOrchestrator
from picstream.resolver import DEFAULT_SHARE, SessionResolver, SessionSettings
from picstream.session import parse_endpoint


def _format_size(n: int) -> str:
    """将字节数格式化为人类可读（KiB/MiB/GiB）。"""
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KiB"
    if n < 1024 * 1024 * 1024:
        return f"{n / (1024 * 1024):.1f} MiB"
    return f"{n / (1024 * 1024 * 1024):.1f} GiB"


def _make_batch_progress() -> tuple[Callable[[BatchResult], None], Callable[[], None]]:
    """返回 (on_update(batch) 回调, finish 回调)。整批进度条输出到 stderr。"""
    last: list[tuple[int, int]] = [(-1, -1)]
    bar_width = 24

    def on_update(batch: BatchResult) -> None:
        total = len(batch.items)
        if total == 0:
            return
        pct = min(100, int(100 * batch.overall_progress))
        done = sum(1 for item in batch.items if item.completed)
        if (pct, done) == last[0]:
            return
        last[0] = (pct, done)
        filled = int(bar_width * pct / 100) if pct < 100 else bar_width
        bar = "=" * filled + ">" * (1 if filled < bar_width else 0) + " " * (bar_width - filled - (1 if filled < bar_width else 0))
        sys.stderr.write(f"\r  [{bar}] {pct}% {done}/{total}   ")
        sys.stderr.flush()

    def finish() -> None:
        sys.stderr.write("\n")
        sys.stderr.flush()

    return on_update, finish


app = typer.Typer(
    name="picstream",
    help="Browse an HFS share and upload photos/videos into it.",
)

_endpoint_option: type = Annotated[
    Optional[str],
    typer.Option("--endpoint", "-e", help="Override saved server address (or required if not logged in)"),
]
_share_option: type = Annotated[
    Optional[str],
    typer.Option("--share", "-s", help="Override saved share name"),
]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log transfer details to stderr")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _normalize_remote_path(path: str | None) -> str:
    """"data/sub/" -> "/data/sub"，空串 -> "/"。"""
    inner = (path or "").strip().strip("/")
    return f"/{inner}" if inner else ROOT_PATH


def _make_resolver(settings: SessionSettings) -> SessionResolver:
    return SessionResolver(settings)


def _require_settings(endpoint: str | None, share: str | None) -> SessionSettings:
    settings = settings_from_config(load_config(), endpoint=endpoint, share=share)
    if settings is None:
        typer.echo("error: no saved server. run 'picstream login' or pass --endpoint", err=True)
        raise typer.Exit(1)
    return settings


def _describe_entry(entry: FileSystemEntry) -> str:
    name = f"{entry.name}/" if entry.is_directory else entry.name
    size = _format_size(entry.size) if entry.size is not None and not entry.is_directory else "-"
    modified = entry.modified_at.strftime("%Y-%m-%d %H:%M") if entry.modified_at else "-"
    return f"  {name}  {size}  {modified}"


# ------------------------- login / logout / auth -------------------------


@app.command("login", help="Save server address and credentials to local config")
def login(
    endpoint: Annotated[Optional[str], typer.Option("--endpoint", "-e", help="Server address, e.g. 192.168.1.230:8280")] = None,
    share: Annotated[Optional[str], typer.Option("--share", "-s", help=f"Share name (default: {DEFAULT_SHARE})")] = None,
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Username")] = None,
    password: Annotated[Optional[str], typer.Option("--password", "-p", help="Password (unsafe in shell)")] = None,
) -> None:
    endpoint = endpoint or input("Server address (e.g. 192.168.1.230:8280): ").strip()
    if not endpoint:
        typer.echo("error: server address required", err=True)
        raise typer.Exit(1)
    try:
        parse_endpoint(endpoint)
    except PicStreamError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)
    username = username or input("Username: ").strip() or None
    if username and password is None:
        password = getpass.getpass("Password: ")
    save_config(endpoint, share or DEFAULT_SHARE, username, password)
    typer.echo("Saved.")


@app.command("logout", help="Clear saved credentials")
def logout() -> None:
    if clear_config():
        typer.echo("Cleared.")
    else:
        typer.echo("No saved credentials.")


auth_app = typer.Typer(help="Auth subcommands")
app.add_typer(auth_app, name="auth")


@auth_app.command("status", help="Show whether credentials are saved")
def auth_status() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in.")
        return
    has_auth = bool(cfg.get("username") and cfg.get("password"))
    typer.echo(f"endpoint: {cfg.get('endpoint', '')}")
    typer.echo(f"share: {cfg.get('share', DEFAULT_SHARE)}")
    typer.echo(f"auth: {'yes' if has_auth else 'no'}")


@app.command("info", help="Show saved server and auth status")
def info_cmd() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in. Run 'picstream login' or pass --endpoint for commands.")
        return
    typer.echo(f"endpoint: {cfg.get('endpoint')}")
    typer.echo(f"share: {cfg.get('share', DEFAULT_SHARE)}")
    typer.echo(f"auth: {'yes' if (cfg.get('username') and cfg.get('password')) else 'no'}")


# ------------------------- list / ls -------------------------


async def _list(settings: SessionSettings, path: str) -> list[FileSystemEntry]:
    resolver = _make_resolver(settings)
    try:
        session = await resolver.resolve()
        return await DirectoryLister().list(path, session)
    finally:
        await resolver.aclose()


def _cmd_list_impl(path: str, endpoint: str | None, share: str | None) -> None:
    settings = _require_settings(endpoint, share)
    try:
        entries = asyncio.run(_list(settings, _normalize_remote_path(path)))
    except PicStreamError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)
    for entry in entries:
        typer.echo(_describe_entry(entry))


@app.command("list", help="List a folder of the share")
def list_cmd(
    path: Annotated[str, typer.Argument(help="Folder inside the share (default: /)")] = "/",
    endpoint: _endpoint_option = None,
    share: _share_option = None,
) -> None:
    _cmd_list_impl(path, endpoint, share)


@app.command("ls", help="Alias for list")
def ls_cmd(
    path: Annotated[str, typer.Argument(help="Folder inside the share (default: /)")] = "/",
    endpoint: _endpoint_option = None,
    share: _share_option = None,
) -> None:
    _cmd_list_impl(path, endpoint, share)


# ------------------------- upload -------------------------


async def _upload(
    settings: SessionSettings,
    refs: list[MediaRef],
    folder: str,
    concurrency: int,
    on_update: Callable[[BatchResult], None] | None,
) -> BatchResult:
    resolver = _make_resolver(settings)
    orchestrator = UploadOrchestrator(LocalMediaSource(), max_concurrency=concurrency)
    try:
        return await orchestrator.upload(refs, folder, resolver, on_update=on_update)
    finally:
        await resolver.aclose()


@app.command("upload", help="Upload photos/videos into a folder of the share")
def upload_cmd(
    paths: Annotated[list[Path], typer.Argument(help="Local media files")],
    folder: Annotated[str, typer.Option("--folder", "-f", help="Target folder inside the share")] = "/",
    progress: Annotated[bool, typer.Option("--progress", "-p", help="Show upload progress")] = False,
    concurrency: Annotated[int, typer.Option("--concurrency", "-c", min=1, help="Transfers in flight at once")] = 1,
    hfr: Annotated[bool, typer.Option("--hfr", help="Mark videos as high frame rate (fallback names use .mov)")] = False,
    endpoint: _endpoint_option = None,
    share: _share_option = None,
) -> None:
    missing = [p for p in paths if not p.is_file()]
    if missing:
        typer.echo(f"error: not a file: {missing[0]}", err=True)
        raise typer.Exit(1)
    settings = _require_settings(endpoint, share)
    refs = [media_ref_for(p, high_frame_rate=hfr) for p in paths]
    on_update, progress_finish = _make_batch_progress() if progress else (None, lambda: None)
    try:
        batch = asyncio.run(_upload(settings, refs, _normalize_remote_path(folder), concurrency, on_update))
    finally:
        progress_finish()
    if batch.error is not None:
        typer.echo(f"error: {batch.error}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Uploaded {batch.succeeded} of {batch.attempted} file(s).")
    if batch.failures:
        for item in batch.failures:
            typer.echo(f"  failed: {item.filename}: {item.error}", err=True)
        raise typer.Exit(1)


# ------------------------- browse -------------------------

_BROWSE_HELP = "commands: ls | pwd | cd NAME | cd .. | up | put FILE... | quit"


def _print_event(event: BrowserEvent) -> None:
    if event.kind is EventKind.LISTING:
        for entry in event.payload:
            typer.echo(_describe_entry(entry))
    elif event.kind is EventKind.NOTICE:
        notice: Notice = event.payload
        typer.echo(f"error: {notice.message}" if notice.error else notice.message, err=notice.error)


async def _browse(settings: SessionSettings, concurrency: int) -> None:
    browser = MediaBrowser(_make_resolver(settings), max_concurrency=concurrency)
    browser.add_listener(_print_event)
    try:
        if not await browser.connect():
            raise typer.Exit(1)
        while True:
            try:
                line = await asyncio.to_thread(input, f"{browser.current_path}> ")
            except EOFError:
                break
            try:
                words = shlex.split(line)
            except ValueError as e:
                typer.echo(f"error: {e}", err=True)
                continue
            if not words:
                continue
            cmd, args = words[0], words[1:]
            if cmd in ("quit", "exit"):
                break
            if cmd == "ls":
                await browser.refresh()
            elif cmd == "pwd":
                typer.echo(browser.current_path)
            elif cmd == "up" or (cmd == "cd" and args == [".."]):
                await browser.up()
            elif cmd == "cd" and len(args) == 1:
                entry = browser.find(args[0])
                if entry is None or not entry.is_directory:
                    typer.echo(f"error: not a folder: {args[0]}", err=True)
                    continue
                await browser.open(entry)
            elif cmd == "put" and args:
                files = [Path(a) for a in args]
                missing = [p for p in files if not p.is_file()]
                if missing:
                    typer.echo(f"error: not a file: {missing[0]}", err=True)
                    continue
                on_update, progress_finish = _make_batch_progress()
                listener = _batch_listener(on_update)
                browser.add_listener(listener)
                try:
                    await browser.upload([media_ref_for(p) for p in files])
                finally:
                    browser.remove_listener(listener)
                    progress_finish()
            else:
                typer.echo(_BROWSE_HELP)
    finally:
        await browser.aclose()


def _batch_listener(on_update: Callable[[BatchResult], None]) -> Callable[[BrowserEvent], None]:
    def listener(event: BrowserEvent) -> None:
        if event.kind is EventKind.BATCH:
            on_update(event.payload)

    return listener


@app.command("browse", help="Interactive browser: navigate folders and upload into the current one")
def browse_cmd(
    concurrency: Annotated[int, typer.Option("--concurrency", "-c", min=1, help="Transfers in flight at once")] = 1,
    endpoint: _endpoint_option = None,
    share: _share_option = None,
) -> None:
    settings = _require_settings(endpoint, share)
    asyncio.run(_browse(settings, concurrency))


# ------------------------- main -------------------------


def main() -> None:
    app()


if __name__ == "__main__":
    main()
