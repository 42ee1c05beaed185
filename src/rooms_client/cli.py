# cli.py
import asyncio
import logging
from pathlib import Path
from typing import List, Set

import click

from rooms_api.errors import RoomsError
from rooms_api.schemas import FileRecord
from rooms_client.api import RoomsClient
from rooms_client.reconciler import DEFAULT_POLL_INTERVAL
from rooms_client.session import open_room

# Configure logging
logger = logging.getLogger(__name__)


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024


def _format_record(record: FileRecord) -> str:
    name = record.original_filename or record.storage_key
    return f"{record.created_at:%Y-%m-%d %H:%M:%S}  {_format_size(record.byte_size):>9}  {name}  {record.download_url}"


def _run(coro):
    try:
        return asyncio.run(coro)
    except RoomsError as e:
        logger.debug(f"Command failed: {e}")
        raise click.ClickException(e.message) from e


@click.group()
@click.option("--api-url", envvar="ROOMS_API_URL", default="http://localhost:8000", show_default=True,
              help="Base URL of the Rooms API")
@click.option("--log-level", envvar="LOG_LEVEL", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def cli(ctx, api_url, log_level):
    """Share files through rooms"""
    logging.basicConfig(
        level=log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.obj = {"api_url": api_url}


@cli.command()
@click.pass_obj
def create(obj):
    """Create a new room and print its id"""
    async def _create():
        async with RoomsClient(obj["api_url"]) as client:
            return await client.create_room()

    click.echo(_run(_create()))


@cli.command()
@click.argument("room_id")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def upload(obj, room_id, paths):
    """Upload one or more files into ROOM_ID"""
    async def _upload() -> List[FileRecord]:
        async with RoomsClient(obj["api_url"]) as client:
            records = []
            for path in paths:
                records.append(await client.upload_file(room_id, path.read_bytes(), path.name))
            return records

    for record in _run(_upload()):
        click.echo(_format_record(record))


@cli.command(name="ls")
@click.argument("room_id")
@click.pass_obj
def list_files(obj, room_id):
    """List the files in ROOM_ID, newest first"""
    async def _list() -> List[FileRecord]:
        async with RoomsClient(obj["api_url"]) as client:
            async with open_room(client, room_id) as session:
                await session.refresh()
                if session.notice:
                    raise RoomsError(session.notice)
                return session.files

    records = _run(_list())
    if not records:
        click.echo(f"Room {room_id} is empty")
    for record in records:
        click.echo(_format_record(record))


@cli.command()
@click.argument("room_id", required=False)
@click.option("--interval", envvar="ROOMS_POLL_INTERVAL", default=DEFAULT_POLL_INTERVAL, show_default=True,
              type=float, help="Seconds between polls")
@click.pass_obj
def watch(obj, room_id, interval):
    """Follow ROOM_ID (or a new room) and print files as they arrive"""
    seen: Set[str] = set()

    def on_change(files: List[FileRecord]) -> None:
        for record in reversed(files):
            if record.storage_key not in seen:
                seen.add(record.storage_key)
                click.echo(_format_record(record))

    def on_error(error: RoomsError) -> None:
        click.echo(f"! {error.message}", err=True)

    async def _watch() -> None:
        async with RoomsClient(obj["api_url"]) as client:
            async with open_room(client, room_id, interval=interval, on_change=on_change, on_error=on_error) as session:
                click.echo(f"Watching room {session.room_id} (Ctrl-C to stop)", err=True)
                await asyncio.Event().wait()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        pass


@cli.command()
@click.argument("room_id")
@click.option("--out", "out_dir", default=".", show_default=True,
              type=click.Path(file_okay=False, path_type=Path), help="Directory to save into")
@click.option("--name", "names", multiple=True, help="Only download files with this name")
@click.pass_obj
def download(obj, room_id, out_dir, names):
    """Download the files in ROOM_ID"""
    out_dir.mkdir(parents=True, exist_ok=True)

    async def _download() -> List[Path]:
        async with RoomsClient(obj["api_url"]) as client:
            records = await client.list_files(room_id)
            wanted = [r for r in records if not names or r.original_filename in names]
            return [await client.download(record, out_dir) for record in wanted]

    saved = _run(_download())
    if not saved:
        click.echo(f"Nothing to download from room {room_id}")
    for path in saved:
        click.echo(str(path))


if __name__ == "__main__":
    cli()
