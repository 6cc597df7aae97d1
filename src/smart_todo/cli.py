"""Command-line interface for smart-todo.

A thin developer surface over the parser and the recurrence engine, handy
for trying inputs without a UI.
"""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ConfigError, get_config, load_config
from .parser import NaturalLanguageParser
from .recurring import RecurringTaskConfig, describe, generate_instances, next_due_date
from .task import RecurringPattern, Task
from .utils.datetime import parse_date_value, to_iso_string

console = Console()

PATTERN_CHOICES = [pattern.value for pattern in RecurringPattern]


def _parse_date_option(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_date_value(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an ISO date (YYYY-MM-DD)")


def _recurrence_options(func):
    """Options shared by the recurrence commands."""
    func = click.option("--day-of-month", type=click.IntRange(1, 31), help="Day of month (monthly)")(func)
    func = click.option("--day", "days", type=click.IntRange(0, 6), multiple=True,
                        help="Day of week, 0=Sunday (custom; repeatable)")(func)
    func = click.option("--end", callback=_parse_date_option, help="Last allowed date (inclusive)")(func)
    func = click.option("--interval", "-i", type=click.IntRange(min=1), default=1, help="Repeat every N periods")(func)
    func = click.option("--pattern", "-p", type=click.Choice(PATTERN_CHOICES), default="daily",
                        help="Recurrence pattern")(func)
    return func


def _build_config(pattern, interval, end, days, day_of_month) -> RecurringTaskConfig:
    return RecurringTaskConfig(
        pattern=RecurringPattern(pattern),
        interval=interval,
        end_date=end,
        days_of_week=tuple(days),
        day_of_month=day_of_month,
    )


@click.group()
@click.option("--config", "config_path", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config_path, verbose):
    """smart-todo - natural language task entry and recurrence tools."""
    ctx.ensure_object(dict)

    try:
        config = load_config(Path(config_path)) if config_path else get_config()
    except ConfigError as e:
        raise click.ClickException(str(e))

    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(message)s", handlers=[RichHandler(console=console)], force=True)

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


@main.command("parse")
@click.argument("text")
@click.option("--json", "as_json", is_flag=True, help="Print the parsed task as JSON")
@click.pass_context
def parse_command(ctx, text, as_json):
    """Parse a task typed in natural language."""
    parser = NaturalLanguageParser(ctx.obj["config"])
    result = parser.parse(text)

    if not result.success:
        console.print(f"[red]Error ({result.error.value}): {result.message}[/red]")
        sys.exit(1)

    task = result.task
    if as_json:
        click.echo(json.dumps(task.to_dict(), indent=2))
        return

    table = Table(title="Parsed task", show_header=True, header_style="bold blue")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for key, value in task.to_dict().items():
        if value in (None, []):
            continue
        table.add_row(key, ", ".join(value) if isinstance(value, list) else str(value))
    console.print(table)


@main.command("suggest")
@click.argument("text")
@click.option("--label", "labels", multiple=True, help="Known label (repeatable)")
@click.pass_context
def suggest_command(ctx, text, labels):
    """Show hints for fields the input does not set yet."""
    parser = NaturalLanguageParser(ctx.obj["config"])
    hints = parser.suggest(text) + parser.suggest_corrections(text, list(labels))

    if not hints:
        console.print("[green]Nothing to suggest.[/green]")
        return
    for hint in hints:
        console.print(f"[yellow]•[/yellow] {hint}")


@main.command("next")
@click.argument("base", callback=_parse_date_option)
@_recurrence_options
def next_command(base, pattern, interval, end, days, day_of_month):
    """Next occurrence after BASE (YYYY-MM-DD)."""
    config = _build_config(pattern, interval, end, days, day_of_month)
    next_date = next_due_date(base, config)
    if next_date is None:
        console.print("[yellow]No further occurrence.[/yellow]")
        return
    click.echo(to_iso_string(next_date))


@main.command("instances")
@click.argument("start", callback=_parse_date_option)
@click.argument("end_window", metavar="END", callback=_parse_date_option)
@click.option("--name", default="Recurring task", help="Template task name")
@_recurrence_options
def instances_command(start, end_window, name, pattern, interval, end, days, day_of_month):
    """Occurrences from START up to (not including) END."""
    config = _build_config(pattern, interval, end, days, day_of_month)
    template = Task(id=0, name=name, is_recurring=True, recurring_pattern=config.pattern,
                    recurring_interval=interval)
    drafts = generate_instances(template, config, start, end_window)

    table = Table(title=f"{name} ({describe(config)})", show_header=True, header_style="bold blue")
    table.add_column("#", style="dim")
    table.add_column("Date", style="cyan")
    for index, draft in enumerate(drafts, 1):
        table.add_row(str(index), to_iso_string(draft.date))
    console.print(table)


@main.command("describe")
@_recurrence_options
def describe_command(pattern, interval, end, days, day_of_month):
    """Human readable label for a recurrence."""
    click.echo(describe(_build_config(pattern, interval, end, days, day_of_month)))


if __name__ == "__main__":
    main()
