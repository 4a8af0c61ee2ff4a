"""CLI interface for sokoni."""

import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

import click

from sokoni.config import Config
from sokoni.database import (
    Connection,
    ConnectionRepository,
    ConnectionRequest,
    Database,
    FileRepository,
)
from sokoni.errors import SokoniError
from sokoni.scanner import ConnectionScanner, LocalBackend, collect
from sokoni.scanner.progress import format_bytes
from sokoni.scheduler import DueConnectionScheduler

database_option = click.option(
    "--database", type=click.Path(path_type=Path), help="Path to database file"
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = Config.from_env()
    except ValueError as e:
        _fail(e)


def _db_path(ctx: click.Context, database: Path | None) -> Path:
    config: Config = ctx.obj["config"]
    return database or config.database_path


def _fail(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@cli.command()
@click.argument("root", type=click.Path(file_okay=False, path_type=Path), required=False)
@click.pass_context
def scan(ctx: click.Context, root: Path | None) -> None:
    """List every PDF under ROOT without storing anything."""
    config: Config = ctx.obj["config"]
    root = root or config.scanner.default_root

    click.echo(f"Scanning files under {root}...")
    try:
        files = collect(LocalBackend(), str(root))
    except SokoniError as e:
        _fail(e)

    click.echo(f"Found {len(files)} PDF files:")
    for f in files:
        click.echo(f"- {f.path} ({f.size} bytes)")


@cli.command("scan-connection")
@click.argument("connection_id", type=int)
@click.option("--user-id", type=int, default=None, help="Requesting user id")
@click.option("--batch-size", type=int, default=None, help="Files per transaction")
@database_option
@click.pass_context
def scan_connection(
    ctx: click.Context,
    connection_id: int,
    user_id: int | None,
    batch_size: int | None,
    database: Path | None,
) -> None:
    """Scan one connection and store its PDFs."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id

    try:
        with Database(_db_path(ctx, database)) as db:
            scanner = ConnectionScanner(
                db,
                batch_size=batch_size or config.scanner.batch_size,
                progress_interval=config.scanner.progress_interval,
                smb_port=config.smb.port,
            )
            stats = scanner.scan_connection(connection_id, user_id)
    except SokoniError as e:
        _fail(e)

    click.echo(
        f"Successfully stored {stats.files_committed:,} files "
        f"for connection {connection_id}"
    )


@cli.command()
@click.option("--check-interval", type=float, default=None, help="Seconds between due checks")
@database_option
@click.pass_context
def scheduler(ctx: click.Context, check_interval: float | None, database: Path | None) -> None:
    """Run the background scanner until interrupted."""
    config: Config = ctx.obj["config"]

    with Database(_db_path(ctx, database)) as db:
        scanner = ConnectionScanner(
            db,
            batch_size=config.scanner.batch_size,
            progress_interval=config.scanner.progress_interval,
            smb_port=config.smb.port,
        )
        daemon = DueConnectionScheduler(
            db,
            scanner,
            check_interval=check_interval or config.scheduler.check_interval,
        )

        def _shutdown(signum, _frame) -> None:
            logging.getLogger(__name__).info(
                "Shutting down scheduler (signal %d)...", signum
            )
            daemon.stop()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)

        click.echo("Starting scheduler daemon...")
        daemon.run()


@cli.command()
@click.option("--user-id", type=int, default=None, help="Owner whose connections to show")
@database_option
@click.pass_context
def status(ctx: click.Context, user_id: int | None, database: Path | None) -> None:
    """Show connections with their last scan and file counts."""
    config: Config = ctx.obj["config"]
    db_path = _db_path(ctx, database)
    user_id = config.default_user_id if user_id is None else user_id

    if not db_path.exists():
        click.echo("No database found. Add a connection first.")
        return

    with Database(db_path) as db:
        connections = ConnectionRepository(db).list_by_user(user_id)
        files = FileRepository(db)

        if not connections:
            click.echo("No connections found.")
            return

        click.echo("\nConnections:")
        click.echo("-" * 80)
        header = "ID".rjust(4) + "  " + "Name".ljust(20) + "Path".ljust(30)
        header += "Files".rjust(10) + "  " + "Last scan"
        click.echo(header)
        click.echo("-" * 80)

        for conn in connections:
            click.echo(
                f"{conn.id:>4}  "
                f"{_truncate(conn.name, 19):<20}"
                f"{_truncate(conn.base_path, 29):<30}"
                f"{files.count_for_connection(conn.id):>10,}  "
                f"{_format_relative_time(conn.last_scan)}"
            )


@cli.command()
@click.argument("query")
@click.option("--limit", type=int, default=100, help="Maximum results")
@database_option
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, database: Path | None) -> None:
    """Find stored PDFs whose name contains QUERY."""
    db_path = _db_path(ctx, database)
    if not db_path.exists():
        click.echo("Error: No database found. Run 'sokoni scan-connection' first.", err=True)
        sys.exit(1)

    with Database(db_path) as db:
        results = FileRepository(db).search_by_name(query, limit=limit)

    if not results:
        click.echo("No matching files.")
        return
    for f in results:
        click.echo(f"{f.path}  {format_bytes(f.size)}  {_format_timestamp(f.mod_time)}")


@cli.group()
def connection() -> None:
    """Manage scan connections."""


@connection.command("add")
@click.argument("name")
@click.argument("base_path")
@click.option("--remote-path", default="", help="Subpath under BASE_PATH")
@click.option("--username", default=None)
@click.option("--password", default=None)
@click.option("--options", default=None, help="Free-form connection options")
@click.option("--scan-interval", type=int, default=None, help="Seconds between scans")
@click.option("--auto-scan/--no-auto-scan", default=None)
@click.option("--user-id", type=int, default=None)
@database_option
@click.pass_context
def connection_add(
    ctx: click.Context,
    name: str,
    base_path: str,
    remote_path: str,
    username: str | None,
    password: str | None,
    options: str | None,
    scan_interval: int | None,
    auto_scan: bool | None,
    user_id: int | None,
    database: Path | None,
) -> None:
    """Register a local directory or //server/share as a connection."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id
    request = ConnectionRequest(
        name=name,
        base_path=base_path,
        remote_path=remote_path,
        username=username,
        password=password,
        options=options,
        scan_interval=scan_interval,
        auto_scan=auto_scan,
    )

    try:
        with Database(_db_path(ctx, database)) as db:
            created = ConnectionRepository(db).create(request, user_id)
    except SokoniError as e:
        _fail(e)

    click.echo(f"Created connection {created.id}: {created.name}")


@connection.command("list")
@click.option("--user-id", type=int, default=None)
@database_option
@click.pass_context
def connection_list(ctx: click.Context, user_id: int | None, database: Path | None) -> None:
    """List the connections owned by a user."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id

    with Database(_db_path(ctx, database)) as db:
        connections = ConnectionRepository(db).list_by_user(user_id)

    if not connections:
        click.echo("No connections found.")
        return
    for conn in connections:
        click.echo(f"{conn.id:>4}  {conn.name}  {conn.base_path}")


@connection.command("show")
@click.argument("connection_id", type=int)
@click.option("--user-id", type=int, default=None)
@database_option
@click.pass_context
def connection_show(
    ctx: click.Context, connection_id: int, user_id: int | None, database: Path | None
) -> None:
    """Show the details of one connection."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id

    try:
        with Database(_db_path(ctx, database)) as db:
            conn = ConnectionRepository(db).get(connection_id, user_id)
    except SokoniError as e:
        _fail(e)

    _echo_connection(conn)


@connection.command("update")
@click.argument("connection_id", type=int)
@click.option("--name", default=None)
@click.option("--base-path", default=None)
@click.option("--remote-path", default=None)
@click.option("--username", default=None)
@click.option("--password", default=None)
@click.option("--options", default=None)
@click.option("--scan-interval", type=int, default=None)
@click.option("--auto-scan/--no-auto-scan", default=None)
@click.option("--user-id", type=int, default=None)
@database_option
@click.pass_context
def connection_update(
    ctx: click.Context,
    connection_id: int,
    name: str | None,
    base_path: str | None,
    remote_path: str | None,
    username: str | None,
    password: str | None,
    options: str | None,
    scan_interval: int | None,
    auto_scan: bool | None,
    user_id: int | None,
    database: Path | None,
) -> None:
    """Change fields of an existing connection; omitted fields keep their value."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id

    try:
        with Database(_db_path(ctx, database)) as db:
            repo = ConnectionRepository(db)
            current = repo.get(connection_id, user_id)
            request = ConnectionRequest(
                name=current.name if name is None else name,
                base_path=current.base_path if base_path is None else base_path,
                remote_path=current.remote_path if remote_path is None else remote_path,
                username=current.username if username is None else username,
                password=current.password if password is None else password,
                options=current.options if options is None else options,
                scan_interval=scan_interval,
                auto_scan=auto_scan,
            )
            updated = repo.update(connection_id, user_id, request)
    except SokoniError as e:
        _fail(e)

    _echo_connection(updated)


@connection.command("remove")
@click.argument("connection_id", type=int)
@click.option("--user-id", type=int, default=None)
@database_option
@click.pass_context
def connection_remove(
    ctx: click.Context, connection_id: int, user_id: int | None, database: Path | None
) -> None:
    """Delete a connection and every file recorded under it."""
    config: Config = ctx.obj["config"]
    user_id = config.default_user_id if user_id is None else user_id

    try:
        with Database(_db_path(ctx, database)) as db:
            ConnectionRepository(db).delete(connection_id, user_id)
    except SokoniError as e:
        _fail(e)

    click.echo(f"Deleted connection {connection_id}")


def _echo_connection(conn: Connection) -> None:
    click.echo(f"ID:            {conn.id}")
    click.echo(f"Name:          {conn.name}")
    click.echo(f"Base path:     {conn.base_path}")
    click.echo(f"Remote path:   {conn.remote_path}")
    click.echo(f"Username:      {conn.username or '-'}")
    click.echo(f"Scan interval: {conn.scan_interval}s")
    click.echo(f"Auto scan:     {'yes' if conn.auto_scan else 'no'}")
    click.echo(f"Last scan:     {_format_relative_time(conn.last_scan)}")


def _format_relative_time(unix_timestamp: int | None) -> str:
    if not unix_timestamp:
        return "never"

    now = datetime.now()
    then = datetime.fromtimestamp(unix_timestamp)
    delta = now - then

    if delta.days > 1:
        return f"{delta.days} days ago"
    if delta.days == 1:
        return "yesterday"
    if delta.seconds > 3600:
        hours = delta.seconds // 3600
        return f"{hours}h ago"
    if delta.seconds > 60:
        minutes = delta.seconds // 60
        return f"{minutes}m ago"
    return "just now"


def _format_timestamp(unix_timestamp: int) -> str:
    return datetime.fromtimestamp(unix_timestamp).strftime("%Y-%m-%d %H:%M")


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
