"""Typer CLI entrypoint for notice-watcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import typer
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table

from .api import create_app
from .bot import CommandHandler, UpdateDeduplicator, UpdatePoller
from .channel import TelegramChannel, TelegramError
from .config import ConfigRepository, GlobalConfig, SourceKind
from .engine import PreviewItem
from .logging_conf import available_source_logs, configure_logging, log_paths, main_log_path, tail_log
from .orchestrator import Orchestrator, PassSummary
from .scheduler import APSchedulerAdapter
from .store import MonitoredSource, StateBackend, StoreError, StoreFactory, Subscriber

app = typer.Typer(
    help="Notice watcher command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
webhook_app = typer.Typer(
    name="webhook",
    help="Telegram webhook commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log viewing commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    backend: StateBackend
    orchestrator: Orchestrator
    scheduler: APSchedulerAdapter
    channel: Optional[TelegramChannel] = None
    handler: Optional[CommandHandler] = None


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load_global_config()
    backend = StoreFactory.build(config.storage, repository.locator.project_root)

    channel = None
    if config.telegram.configured:
        channel = TelegramChannel(config.telegram, timeout=config.dispatch.send_timeout)

    orchestrator = Orchestrator(config=config, backend=backend, channel=channel)
    handler = None
    if channel is not None:
        handler = CommandHandler(backend, backend, channel, orchestrator.render_preview)
    return AppState(
        repository=repository,
        config=config,
        backend=backend,
        orchestrator=orchestrator,
        scheduler=APSchedulerAdapter(blocking=True),
        channel=channel,
        handler=handler,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _require_channel(state: AppState) -> TelegramChannel:
    if state.channel is None:
        console.print("Telegram bot token is not configured (set BOT_TOKEN).", style="red")
        raise typer.Exit(code=1)
    return state.channel


def _start_background_passes(state: AppState) -> APSchedulerAdapter:
    background = APSchedulerAdapter(blocking=False)
    background.schedule_pass(state.config.schedule, state.orchestrator.run_pass)
    background.start()
    return background


def _format_time(value: Any) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S") if hasattr(value, "strftime") else str(value)


def _render_summary_table(summary: PassSummary) -> Table:
    table = Table(title="Pass result", box=box.SIMPLE_HEAD)
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Notified", style="green", justify="right")
    for change in summary.changes:
        table.add_row(change["source"], "changed", str(change["notified_count"]))
    for check in summary.checks:
        table.add_row(check["source"], check["status"], "-")
    for source in summary.abandoned:
        table.add_row(source, "abandoned", "-")
    return table


def _render_sources_table(config: GlobalConfig, records: Sequence[MonitoredSource]) -> Table:
    by_kind = {record.kind: record for record in records}
    table = Table(title=f"Monitored sources · {len(config.sources)}", box=box.SIMPLE_HEAD)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Fingerprint", style="magenta")
    table.add_column("Last checked", style="green")
    table.add_column("Last changed", style="yellow")
    for kind, profile in config.sources.items():
        record = by_kind.get(kind)
        table.add_row(
            kind.value,
            profile.url,
            (record.last_fingerprint or "-")[:12] if record else "not seen",
            _format_time(record.last_checked_at) if record else "-",
            _format_time(record.last_changed_at) if record else "-",
        )
    return table


def _render_preview_table(kind: SourceKind, items: Iterable[PreviewItem]) -> Table:
    table = Table(title=f"Latest {kind.value} items", box=box.SIMPLE_HEAD)
    table.add_column("#", justify="right")
    table.add_column("Title", overflow="fold")
    table.add_column("Date", style="green")
    table.add_column("Link", style="dim", overflow="fold")
    for index, item in enumerate(items, start=1):
        table.add_row(str(index), item.title, item.date or "-", item.link or "-")
    return table


def _render_subscribers_table(subscribers: Sequence[Subscriber]) -> Table:
    table = Table(title=f"Subscribers · {len(subscribers)}", box=box.SIMPLE_HEAD)
    table.add_column("Chat ID", style="cyan", no_wrap=True)
    table.add_column("Username")
    table.add_column("Active", style="green")
    table.add_column("Preferences", style="magenta", overflow="fold")
    for subscriber in subscribers:
        prefs = ", ".join(
            f"{topic.value}={'on' if enabled else 'off'}" for topic, enabled in subscriber.preferences.items()
        )
        table.add_row(
            str(subscriber.id),
            subscriber.username or "-",
            "yes" if subscriber.active else "no",
            prefs,
        )
    return table


app.add_typer(webhook_app, name="webhook", help="Register or inspect the Telegram webhook")
app.add_typer(log_app, name="log", help="View log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Run one detection pass over every source.")
def run_pass(
    ctx: typer.Context,
    deadline: Optional[float] = typer.Option(None, "--deadline", help="Pass deadline in seconds."),
) -> None:
    state = _get_state(ctx)
    summary = state.orchestrator.run_pass(deadline=deadline)
    console.print(_render_summary_table(summary))
    console.print(f"Finished in {summary.duration_ms} ms", style="dim")


@app.command("schedule", help="Run detection passes on the configured schedule (blocking).")
def schedule(
    ctx: typer.Context,
    run_now: bool = typer.Option(True, "--run-now/--no-run-now", help="Run one pass before the first tick."),
) -> None:
    state = _get_state(ctx)
    if run_now:
        state.orchestrator.run_pass()
    state.scheduler.schedule_pass(state.config.schedule, state.orchestrator.run_pass)
    console.print("Scheduler started, press Ctrl+C to stop.", style="green")
    try:
        state.scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        state.scheduler.shutdown()
        console.print("Scheduler stopped.", style="yellow")


@app.command("serve", help="Serve the HTTP API (health, check-updates, webhook).")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
    with_scheduler: bool = typer.Option(
        False, "--with-scheduler", help="Also run passes in the background.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    server = state.config.server
    background = _start_background_passes(state) if with_scheduler else None
    api = create_app(state.orchestrator, server, handler=state.handler)
    try:
        uvicorn.run(api, host=host or server.host, port=port or server.port)
    finally:
        if background is not None:
            background.shutdown()


@app.command("poll", help="Answer bot commands by long polling instead of a webhook.")
def poll(
    ctx: typer.Context,
    timeout: int = typer.Option(25, "--timeout", help="getUpdates wait in seconds."),
    with_scheduler: bool = typer.Option(
        False, "--with-scheduler", help="Also run passes in the background.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    channel = _require_channel(state)
    try:
        # getUpdates is refused while a webhook is registered
        channel.delete_webhook()
    except TelegramError as exc:
        console.print(f"Failed to remove webhook: {exc}", style="red")
        raise typer.Exit(code=1)

    server = state.config.server
    poller = UpdatePoller(
        channel,
        state.handler,
        UpdateDeduplicator(max_entries=server.dedup_max_entries, ttl_seconds=server.dedup_ttl_seconds),
        poll_timeout=timeout,
    )
    background = _start_background_passes(state) if with_scheduler else None
    console.print("Polling for updates, press Ctrl+C to stop.", style="green")
    try:
        poller.run()
    except KeyboardInterrupt:
        console.print("Polling stopped.", style="yellow")
    finally:
        if background is not None:
            background.shutdown()


@app.command("sources", help="Show monitored sources and their stored state.")
def sources(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        records = state.backend.list_sources()
    except StoreError as exc:
        console.print(f"Could not read source state: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(_render_sources_table(state.config, records))


@app.command("preview", help="Show the current top items of one source.")
def preview(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Source kind: result, datesheet or circular."),
    limit: int = typer.Option(5, "--limit", help="Maximum number of items."),
) -> None:
    state = _get_state(ctx)
    try:
        source_kind = SourceKind(kind.lower())
        items = state.orchestrator.preview(source_kind)
    except (ValueError, KeyError):
        console.print(f"Unknown source kind: {kind}", style="red")
        raise typer.Exit(code=1)
    if not items:
        console.print("No items could be fetched right now.", style="yellow")
        raise typer.Exit(code=1)
    console.print(_render_preview_table(source_kind, items[:limit]))


@app.command("subscribers", help="List subscribers and their preferences.")
def subscribers(
    ctx: typer.Context,
    active_only: bool = typer.Option(False, "--active-only", help="Only show active subscribers.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        rows = state.backend.list_active() if active_only else state.backend.list_subscribers()
    except StoreError as exc:
        console.print(f"Could not read subscribers: {exc}", style="red")
        raise typer.Exit(code=1)
    if not rows:
        console.print("No subscribers yet.", style="dim")
        return
    console.print(_render_subscribers_table(rows))


@app.command("events", help="Show the most recent audit events.")
def events(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", help="Number of events to show."),
) -> None:
    state = _get_state(ctx)
    try:
        rows = state.backend.recent(limit)
    except StoreError as exc:
        console.print(f"Could not read events: {exc}", style="red")
        raise typer.Exit(code=1)
    if not rows:
        console.print("No events recorded yet.", style="dim")
        return
    table = Table(title=f"Recent events · {len(rows)}", box=box.SIMPLE_HEAD)
    table.add_column("Time", style="green")
    table.add_column("Type", style="cyan")
    table.add_column("Data", overflow="fold")
    for row in rows:
        table.add_row(str(row.get("timestamp")), str(row.get("type")), str(row.get("data")))
    console.print(table)


@webhook_app.command("set", help="Point the Telegram webhook at this deployment.")
def webhook_set(
    ctx: typer.Context,
    url: Optional[str] = typer.Argument(None, help="Full webhook URL (defaults to WEBHOOK_DOMAIN/api/webhook)."),
) -> None:
    state = _get_state(ctx)
    channel = _require_channel(state)
    target = url
    if not target:
        domain = state.config.telegram.webhook_domain.rstrip("/")
        if not domain:
            console.print("No webhook URL given and WEBHOOK_DOMAIN is not set.", style="red")
            raise typer.Exit(code=1)
        target = f"{domain}/api/webhook"
    try:
        channel.set_webhook(target)
    except TelegramError as exc:
        console.print(f"Failed to set webhook: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(f"Webhook set to {target}", style="green")


@webhook_app.command("info", help="Show the webhook registered with Telegram.")
def webhook_info(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    channel = _require_channel(state)
    try:
        info = channel.get_webhook_info() or {}
    except TelegramError as exc:
        console.print(f"Failed to read webhook info: {exc}", style="red")
        raise typer.Exit(code=1)
    table = Table(title="Webhook info", box=box.SIMPLE_HEAD)
    table.add_column("Field", style="cyan")
    table.add_column("Value", overflow="fold")
    for key, value in info.items():
        table.add_row(str(key), str(value))
    console.print(table)


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_source_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No source logs have been written yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    name: Optional[str] = typer.Option(None, "--source", help="Source kind (main log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Show the last N lines."),
) -> None:
    if name:
        path = log_paths().source(name)
    else:
        path = main_log_path()
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log output yet.", style="dim")
        return
    header = f"{'Source log' if name else 'Main log'} · last {len(lines)} lines"
    console.print(header, style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
