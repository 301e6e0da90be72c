"""agency-inbox CLI - inspect and serve agency inbox workspaces."""

import asyncio
import json
import logging
from typing import Any

import click

from . import conventions
from .config import config_path, load_config
from .inbox import InboxWorkspace
from .services import InboxServices, init_services
from .threads import lifecycle_state

logger = logging.getLogger(__name__)


class _EpilogGroup(click.Group):
    """Click group that preserves epilog formatting."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if self.epilog:
            formatter.write("\n")
            for line in self.epilog.splitlines():
                formatter.write(f"{line}\n")


EPILOG = """\
Quick-start examples:

  agency-inbox show ws-1              Summary and threads for a workspace
  agency-inbox route ws-1 thread-7    Which routing rule claims a thread
  agency-inbox config                 Show the effective configuration
  agency-inbox serve --simulator      Run the HTTP API on in-memory data"""


def _init(simulator: bool = False) -> InboxServices:
    config = load_config()
    if simulator:
        backend = config.backend.model_copy(update={"simulator_mode": True})
        config = config.model_copy(update={"backend": backend})
    return init_services(config=config)


def _load(inbox: InboxWorkspace, force: bool) -> None:
    snapshot = asyncio.run(inbox.load(force=force))
    if snapshot.error:
        click.echo(f"Warning: {snapshot.error} (showing last known data)", err=True)


@click.group(
    cls=_EpilogGroup,
    epilog=EPILOG,
    help="Agency inbox workspace tool.\n\n"
    "Reads workspace inboxes through the shared cache and serves the "
    "inbox HTTP API.",
)
@click.version_option(package_name="agency-inbox")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """Agency inbox workspace tool."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command(help="Show the summary and threads of a workspace.")
@click.argument("workspace_id")
@click.option("--force", is_flag=True, help="Bypass the cache.")
@click.option("--json", "as_json", is_flag=True, help="Output machine-readable JSON.")
@click.option("--simulator", is_flag=True, help="Use the in-memory backend.")
def show(workspace_id: str, force: bool, as_json: bool, simulator: bool) -> None:
    services = _init(simulator)
    inbox = services.workspace(workspace_id)
    _load(inbox, force)
    workspace = inbox.workspace

    if as_json:
        click.echo(json.dumps(workspace.to_dict(), indent=2))
        return

    summary = workspace.summary
    click.echo(f"Workspace {workspace_id}")
    click.echo(f"  Last synced:     {workspace.last_synced_at or '(never)'}")
    click.echo(f"  Unread threads:  {summary.unread_threads}")
    click.echo(f"  Awaiting reply:  {summary.awaiting_reply}")
    click.echo(f"  Open cases:      {summary.open_support_cases}")
    click.echo(f"  Escalations:     {summary.escalations_open}")

    if not workspace.active_threads:
        click.echo("\nNo threads.")
        return

    click.echo("\nThreads:")
    for thread in workspace.active_threads:
        marker = "*" if thread.pinned else " "
        flags = [lifecycle_state(thread), thread.channel_type]
        if thread.is_escalated:
            flags.append("escalated")
        click.echo(f"  {marker} {thread.id}  {thread.subject}  [{', '.join(flags)}]")


@main.command(help="Show which routing rule claims a thread.")
@click.argument("workspace_id")
@click.argument("thread_id")
@click.option("--simulator", is_flag=True, help="Use the in-memory backend.")
def route(workspace_id: str, thread_id: str, simulator: bool) -> None:
    services = _init(simulator)
    inbox = services.workspace(workspace_id)
    _load(inbox, force=False)

    if inbox.workspace.find_thread(thread_id) is None:
        click.echo(f"Thread {thread_id} not found in {workspace_id}.", err=True)
        raise SystemExit(1)

    rule = inbox.route(thread_id)
    if rule is None:
        click.echo(f"{thread_id}: unrouted")
    else:
        click.echo(f"{thread_id}: {rule.target} (rule {rule.id} '{rule.name}')")


@main.command("config", help="Show the effective configuration.")
def show_config() -> None:
    path = config_path()
    data: dict[str, Any] = load_config().model_dump()
    if data["backend"]["api_token"]:
        data["backend"]["api_token"] = "***"
    if data["server"]["api_key"]:
        data["server"]["api_key"] = "***"
    source = path if path.exists() else f"{path} (not found, using defaults)"
    click.echo(f"Config: {source}")
    click.echo(json.dumps(data, indent=2))


@main.command(help="Run the inbox HTTP API.")
@click.option("--host", default=None, help="Bind host (default from config).")
@click.option("--port", default=None, type=int, help="Bind port (default from config).")
@click.option("--simulator", is_flag=True, help="Use the in-memory backend.")
def serve(host: str | None, port: int | None, simulator: bool) -> None:
    import uvicorn

    from .server.app import create_app

    services = _init(simulator)
    host = host or services.config.server.host
    port = port or services.config.server.port or conventions.SERVER_DEFAULT_PORT
    click.echo(f"Services: backend={type(services.backend).__name__}")
    click.echo(f"Starting Agency Inbox on {host}:{port}")
    click.echo(f"  API docs:  http://{host}:{port}/api/docs")
    uvicorn.run(create_app(), host=host, port=port, log_level="info")
