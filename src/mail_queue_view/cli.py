# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for mail-queue-view.

Operates directly on the queue view database, without going through the
HTTP API.

Usage:
    mail-queue-view queues
    mail-queue-view init spool
    mail-queue-view enqueue spool message.eml --sender a@example.com --recipient b@example.com
    mail-queue-view list spool
    mail-queue-view size spool
    mail-queue-view delete spool --sender a@example.com
    mail-queue-view ack spool message-1
    mail-queue-view serve --port 8000

Example:
    $ mail-queue-view --db /data/queue_view.db delete spool --recipient bob@example.com
    ✓ Deleted 3 mails from queue 'spool'
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from mail_queue_view.core import MailQueueViewCore
from mail_queue_view.errors import ConfigurationError

console = Console()
err_console = Console(stderr=True)


def get_core(db_path: Optional[str], config_path: Optional[str]) -> MailQueueViewCore:
    """Create a MailQueueViewCore from CLI options."""
    return MailQueueViewCore(db_path=db_path, config_path=config_path)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def _run_command(ctx: click.Context, cmd: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Run one core command against a freshly opened database and exit on failure."""
    try:
        core = get_core(ctx.obj.get("db_path"), ctx.obj.get("config_path"))
    except ConfigurationError as exc:
        print_error(str(exc))
        sys.exit(2)

    async def _run():
        await core.init()
        try:
            return await core.handle_command(cmd, payload)
        finally:
            await core.close()

    result = run_async(_run())
    if not result.get("ok"):
        print_error(result.get("error") or "command failed")
        sys.exit(1)
    return result


@click.group()
@click.version_option(package_name="mail-queue-view")
@click.option("--db", "db_path", envvar="MQV_DB_PATH", help="Database path or postgresql:// DSN.")
@click.option("--config", "config_path", envvar="MQV_CONFIG", type=click.Path(dir_okay=False),
              help="INI configuration file.")
@click.option("--verbose", "-v", is_flag=True, help="Log at INFO level.")
@click.pass_context
def main(ctx: click.Context, db_path: Optional[str], config_path: Optional[str], verbose: bool) -> None:
    """Browse, count and purge broker mail queues."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path
    ctx.obj["config_path"] = config_path


@main.command("queues")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_queues(ctx: click.Context, as_json: bool) -> None:
    """List initialized queues."""
    result = _run_command(ctx, "listQueues", {})
    if as_json:
        print_json(result["queues"])
        return
    if not result["queues"]:
        console.print("[dim]No queues initialized.[/dim]")
        return
    for queue_name in result["queues"]:
        console.print(queue_name)


@main.command("init")
@click.argument("queue")
@click.pass_context
def init_queue(ctx: click.Context, queue: str) -> None:
    """Initialize a queue. An existing queue is left untouched."""
    _run_command(ctx, "createQueue", {"queue": queue})
    print_success(f"Queue '{queue}' initialized")


@main.command("enqueue")
@click.argument("queue")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--sender", "-s", help="Envelope sender (omit for the null reverse path).")
@click.option("--recipient", "-r", "recipients", multiple=True, required=True, help="Envelope recipient.")
@click.option("--name", "-n", help="Mail name (default: file name).")
@click.pass_context
def enqueue_mail(
    ctx: click.Context, queue: str, file: Path, sender: Optional[str], recipients: tuple[str, ...], name: Optional[str]
) -> None:
    """Index the RFC 5322 message in FILE."""
    payload = {
        "queue": queue,
        "name": name or file.name,
        "sender": sender,
        "recipients": list(recipients),
        "message": file.read_bytes().decode("utf-8", "surrogateescape"),
    }
    result = _run_command(ctx, "enqueueMail", payload)
    print_success(
        f"Mail '{result['name']}' indexed in queue '{queue}' "
        f"(slice {result['slice']}, bucket {result['bucket_id']})"
    )


@main.command("list")
@click.argument("queue")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_mails(ctx: click.Context, queue: str, as_json: bool) -> None:
    """Browse QUEUE, oldest mail first."""
    result = _run_command(ctx, "listMails", {"queue": queue})
    mails = result["mails"]
    if as_json:
        print_json(mails)
        return
    if not mails:
        console.print(f"[dim]Queue '{queue}' is empty.[/dim]")
        return

    table = Table(title=f"Queue {queue}")
    table.add_column("Name", style="cyan")
    table.add_column("Enqueued")
    table.add_column("Sender")
    table.add_column("Recipients")
    table.add_column("Subject")
    for mail in mails:
        subject = mail.get("subject") or "-"
        if mail.get("error"):
            subject = f"[red]{mail.get('error_code')}[/red]"
        table.add_row(
            mail["name"],
            mail["enqueued_time"],
            mail.get("sender") or "<>",
            ", ".join(mail.get("recipients") or []),
            subject,
        )
    console.print(table)


@main.command("size")
@click.argument("queue")
@click.pass_context
def queue_size(ctx: click.Context, queue: str) -> None:
    """Count pending mails in QUEUE."""
    result = _run_command(ctx, "queueSize", {"queue": queue})
    console.print(result["size"])


@main.command("delete")
@click.argument("queue")
@click.option("--sender", "-s", help="Match envelope sender.")
@click.option("--recipient", "-r", help="Match one of the envelope recipients.")
@click.option("--name", "-n", help="Match mail name.")
@click.option("--all", "delete_all", is_flag=True, help="Delete every mail when no filter is given.")
@click.pass_context
def delete_mails(
    ctx: click.Context,
    queue: str,
    sender: Optional[str],
    recipient: Optional[str],
    name: Optional[str],
    delete_all: bool,
) -> None:
    """Delete mails of QUEUE matching every given filter."""
    if not (sender or recipient or name or delete_all):
        print_error("Give at least one of --sender, --recipient, --name, or --all.")
        sys.exit(2)
    payload = {"queue": queue, "sender": sender, "recipient": recipient, "name": name}
    result = _run_command(ctx, "deleteMails", payload)
    print_success(f"Deleted {result['deleted']} mails from queue '{queue}'")


@main.command("ack")
@click.argument("queue")
@click.argument("name")
@click.pass_context
def ack_mail(ctx: click.Context, queue: str, name: str) -> None:
    """Mark mail NAME of QUEUE as consumed."""
    _run_command(ctx, "ackMail", {"queue": queue, "name": name})
    print_success(f"Mail '{name}' removed from queue '{queue}'")


@main.command("serve")
@click.option("--host", "-h", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0).")
@click.option("--port", "-p", type=int, default=8000, help="Port to listen on (default: 8000).")
@click.option("--api-token", envvar="MQV_API_TOKEN", help="Token required in the X-API-Token header.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, api_token: Optional[str]) -> None:
    """Run the HTTP API."""
    from contextlib import asynccontextmanager

    import uvicorn

    from mail_queue_view.api import create_app

    try:
        core = get_core(ctx.obj.get("db_path"), ctx.obj.get("config_path"))
    except ConfigurationError as exc:
        print_error(str(exc))
        sys.exit(2)

    @asynccontextmanager
    async def lifespan(app):
        await core.init()
        yield
        await core.close()

    console.print(f"[bold cyan]Serving queue view on http://{host}:{port}[/bold cyan]")
    uvicorn.run(create_app(core, api_token=api_token, lifespan=lifespan), host=host, port=port)


if __name__ == "__main__":
    main()
