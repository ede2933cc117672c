"""Command line interface for pulsemeter.

Ingests pulse files and prints time analytics from the local store.
"""

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .constants import DEFAULT_RECENT_LIMIT, DEFAULT_TOP_N, DISPLAY_CATEGORIES
from .engine import ActivityEngine
from .errors import PulsemeterError
from .sources import resolve_source, source_details
from .timeutil import format_relative_time, minutes_to_hours, next_day, start_of_day

console = Console()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(settings) -> None:
    """Log to a file in the data dir and to stderr.

    The file gets everything at the configured level; stderr only warnings,
    so command output stays clean. Safe to call more than once; existing root
    handlers are replaced.
    """
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(settings.log_path),
            stderr_handler,
        ],
        force=True,
    )


@contextmanager
def handle_errors():
    """Print pulsemeter errors in red and exit with status 1."""
    try:
        yield
    except PulsemeterError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _engine(ctx) -> ActivityEngine:
    if "engine" not in ctx.obj:
        with handle_errors():
            engine = ActivityEngine.open(ctx.obj["settings"])
        ctx.obj["engine"] = engine
        ctx.call_on_close(engine.close)
    return ctx.obj["engine"]


def _dump(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option(
    "--data-path",
    envvar="PULSEMETER_PATH",
    type=click.Path(path_type=Path),
    help="Directory holding the pulse database and log file",
)
@click.option("--tz", "tz_name", default=None, help="IANA timezone for day boundaries (default: local)")
@click.option("--log-level", default=None, help="Log level (default: INFO)")
@click.pass_context
def cli(ctx, data_path, tz_name, log_level):
    """Pulsemeter - local coding and browsing time tracker."""
    ctx.ensure_object(dict)
    settings = load_settings(data_dir=data_path, timezone=tz_name, log_level=log_level)
    setup_logging(settings)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("file", type=click.File("r"))
@click.option("--json", "as_json", is_flag=True, help="Print the plugin response body")
@click.pass_context
def ingest(ctx, file, as_json):
    """Ingest pulses from a JSON file (one object or an array)."""
    engine = _engine(ctx)
    try:
        payload = json.load(file)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {file.name} is not valid JSON: {e}")
        sys.exit(1)

    with handle_errors():
        if isinstance(payload, dict):
            result = engine.create_pulse(payload)
        else:
            result = engine.create_pulses(payload)

    if as_json:
        _dump(result.to_response())
    else:
        console.print(f"[green]✓[/green] Accepted {result.count} pulse{'s' if result.count != 1 else ''}")


@cli.command()
@click.option("--date", "day", default="today", help="Day to summarize (ISO or 'yesterday', '3 days ago')")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def overview(ctx, day, as_json):
    """Minutes per category for one day."""
    engine = _engine(ctx)
    with handle_errors():
        start = start_of_day(day, engine.tz)
        [categories] = engine.get_category_time_overview(
            [{"start_date": start, "end_date": next_day(start, engine.tz)}]
        )

    if as_json:
        _dump([item.model_dump() for item in categories])
        return

    if not categories:
        console.print(f"[dim]No activity on {start.date().isoformat()}[/dim]")
        return

    table = Table(title=f"Activity on {start.date().isoformat()}")
    table.add_column("Category", style="cyan")
    table.add_column("Minutes", justify="right")
    table.add_column("Time", justify="right", style="green")
    # Dashboard categories first, in their usual order, then the rest by time
    rank = {name: i for i, name in enumerate(DISPLAY_CATEGORIES)}
    for item in sorted(categories, key=lambda c: (rank.get(c.category, len(rank)), -c.minutes)):
        table.add_row(item.category or "(none)", str(item.minutes), minutes_to_hours(item.minutes))
    console.print(table)


@cli.command()
@click.option("--date", "day", default="today", help="Reference day (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def week(ctx, day, as_json):
    """Today, yesterday, the past week and its longest day."""
    engine = _engine(ctx)
    with handle_errors():
        result = engine.get_week_overview(start_of_day(day, engine.tz))

    if as_json:
        _dump(result.model_dump())
        return

    console.print(f"Today:       [bold]{minutes_to_hours(result.today_minutes)}[/bold]")
    console.print(f"Yesterday:   {minutes_to_hours(result.yesterday_minutes)}")
    console.print(f"Past 7 days: {minutes_to_hours(result.week_minutes)}")
    console.print(f"Longest day: [green]{minutes_to_hours(result.longest_day_minutes)}[/green]")


@cli.command("deep-work")
@click.option("--start", "start_day", required=True, help="First day (inclusive)")
@click.option("--end", "end_day", required=True, help="Last day (inclusive)")
@click.option("--true-end", is_flag=True, help="End periods when their last flow ends")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def deep_work(ctx, start_day, end_day, true_end, as_json):
    """Deep work periods between two days."""
    engine = _engine(ctx)
    with handle_errors():
        periods = engine.get_deep_work_between_dates(start_day, end_day, true_end=true_end)

    if as_json:
        _dump([p.model_dump(mode="json") for p in periods])
        return

    if not periods:
        console.print("[dim]No deep work periods found[/dim]")
        return

    table = Table(title="Deep work")
    table.add_column("Start", style="cyan")
    table.add_column("End")
    table.add_column("Time", justify="right", style="green")
    for period in periods:
        table.add_row(
            period.start_date.astimezone(engine.tz).strftime("%Y-%m-%d %H:%M"),
            period.end_date.astimezone(engine.tz).strftime("%H:%M"),
            minutes_to_hours(period.time),
        )
    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sources(ctx, as_json):
    """Editors and browsers that have sent pulses."""
    engine = _engine(ctx)
    found = engine.get_sources()

    if as_json:
        _dump([s.model_dump(mode="json") for s in found])
        return

    if not found:
        console.print("[dim]No known sources yet[/dim]")
        return

    table = Table(title="Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    table.add_column("Last active")
    for source in found:
        details = source_details(source.name)
        table.add_row(
            source.name,
            details.display_name if details else "",
            details.type if details else "",
            format_relative_time(source.last_active),
        )
    console.print(table)


@cli.command()
@click.option("--date", "day", default="today", help="Day to summarize (default: today)")
@click.option("-n", "--limit", type=int, default=DEFAULT_TOP_N, help="Projects per category")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def projects(ctx, day, limit, as_json):
    """Top projects per category for one day."""
    engine = _engine(ctx)
    with handle_errors():
        start = start_of_day(day, engine.tz)
        grouped = engine.get_per_project_top_n(start, next_day(start, engine.tz), limit)

    if as_json:
        _dump({category: [p.model_dump() for p in rows] for category, rows in grouped.items()})
        return

    if not grouped:
        console.print(f"[dim]No project activity on {start.date().isoformat()}[/dim]")
        return

    for category, rows in grouped.items():
        console.print(f"[bold]{category or '(none)'}[/bold]")
        for row in rows:
            console.print(f"  [cyan]{row.title}[/cyan] {row.time} ({row.progress:.0f}%)")


@cli.command()
@click.option("-n", "--limit", type=int, default=DEFAULT_RECENT_LIMIT, help="Pulses to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def recent(ctx, limit, as_json):
    """Most recently stored pulses."""
    engine = _engine(ctx)
    pulses = engine.get_latest_pulses(limit)

    if as_json:
        _dump([p.model_dump(mode="json") for p in pulses])
        return

    if not pulses:
        console.print("[dim]No pulses stored[/dim]")
        return

    table = Table(title=f"Latest {len(pulses)} pulses")
    table.add_column("Time", style="dim")
    table.add_column("Entity", style="cyan")
    table.add_column("Project")
    table.add_column("Category")
    table.add_column("Source")
    for pulse in pulses:
        table.add_row(
            pulse.time.astimezone(engine.tz).strftime("%Y-%m-%d %H:%M:%S"),
            pulse.entity,
            pulse.project or "",
            pulse.category,
            resolve_source(pulse.user_agent) or "",
        )
    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, as_json):
    """Today's total, as an editor status bar shows it."""
    engine = _engine(ctx)
    bar = engine.get_activity_status_bar()

    if as_json:
        _dump({"data": bar.model_dump()})
    else:
        click.echo(bar.grand_total.text)


@cli.command()
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write CSV here instead of stdout")
@click.pass_context
def export(ctx, output):
    """Export every stored pulse as CSV."""
    engine = _engine(ctx)
    data = engine.generate_pulses_csv()

    if output:
        output.write_bytes(data)
        console.print(f"[green]✓[/green] Exported to {output}")
    else:
        click.echo(data.decode("utf-8"), nl=False)


if __name__ == "__main__":
    cli()
