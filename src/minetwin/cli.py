"""MineTwin CLI - ask questions and issue commands against the haul-fleet twin."""

import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from typing import Any, NoReturn, ParamSpec, TypeVar

import click
from rich.console import Console
from rich.table import Table

from minetwin.common.errors import DomainError, IntentParseError, error_body
from minetwin.common.logging import setup_logging
from minetwin.common.settings import Settings, get_settings
from minetwin.engine.entity_resolver import EntityResolver
from minetwin.engine.factory import Engine, create_engine, create_sqlite_engine, load_dtdl_file
from minetwin.stores.base import PropertyConstraint
from minetwin.stores.sqlite import SqliteConstraintStore, SqliteTelemetryStore, SqliteTwinRepository
from minetwin.twin.model import TwinModel

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


async def _build_engine(ctx: click.Context) -> Engine:
    settings: Settings = ctx.obj["settings"]
    dtdl_path = ctx.obj.get("dtdl")
    if not dtdl_path:
        return await create_sqlite_engine(settings)

    model = TwinModel(load_dtdl_file(dtdl_path))
    path = settings.database_path
    return create_engine(
        model,
        SqliteTelemetryStore(path),
        SqliteConstraintStore(path),
        SqliteTwinRepository(path),
        settings=settings,
    )


def _fail(message: str, code: int = 1) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    sys.exit(code)


def _fail_request(error: DomainError | IntentParseError, as_json: bool, code: int = 1) -> NoReturn:
    if as_json:
        body = error_body(error.code, error.message, getattr(error, "details", None))
        console.print_json(json.dumps(body, default=str))
        sys.exit(code)
    _fail(f"{error.code}: {error.message}", code)


@click.group()
@click.option("--db", default=None, help="SQLite database path (overrides MINETWIN_DATABASE_PATH)")
@click.option(
    "--dtdl",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Load the twin model from a DTDL JSON file instead of the database",
)
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.pass_context
def cli(
    ctx: click.Context,
    db: str | None,
    dtdl: str | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """MineTwin CLI - Query and command the haul-fleet digital twin."""
    settings = get_settings()
    if db:
        settings = settings.model_copy(update={"database_path": db})

    setup_logging(level=log_level or settings.log_level, json_output=json_logs or settings.log_json)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["dtdl"] = dtdl


# === Queries and commands ===


@cli.command("ask")
@click.argument("question")
@click.option("--json", "as_json", is_flag=True, help="Print the raw response as JSON")
@click.pass_context
@async_command
async def ask(ctx: click.Context, question: str, as_json: bool) -> None:
    """Ask a question, e.g. "average speed of truck 56 in the last hour"."""
    engine = await _build_engine(ctx)
    try:
        response = await engine.queries.ask(question)
    except IntentParseError as e:
        _fail_request(e, as_json, code=2)
    except DomainError as e:
        _fail_request(e, as_json)

    if as_json:
        console.print_json(json.dumps(response.to_dict(), default=str))
        return

    console.print(f"[green]{response.answer}[/green]")
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Entity", response.entity_id)
    table.add_row("Value", str(response.value))
    table.add_row("Units", response.units or "-")
    table.add_row("Records", str(response.record_count))
    table.add_row("Window", f"{response.time_window_minutes} min")
    console.print(table)


@cli.command("run")
@click.argument("command")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
@click.pass_context
@async_command
async def run_command(ctx: click.Context, command: str, as_json: bool) -> None:
    """Run a write command, e.g. "set the speed limit of truck 56 to 40"."""
    engine = await _build_engine(ctx)
    try:
        result = await engine.commands.run(command)
    except IntentParseError as e:
        _fail_request(e, as_json, code=2)
    except DomainError as e:
        _fail_request(e, as_json)

    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        if not result.success:
            sys.exit(1)
        return

    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/{style}]")

    if result.updates:
        table = Table(title="Updates")
        table.add_column("Entity", style="cyan")
        table.add_column("Property", style="green")
        table.add_column("Old")
        table.add_column("New")
        table.add_column("Status")
        for update in result.updates:
            status = "[green]ok[/green]" if update.success else f"[red]{update.error}[/red]"
            table.add_row(
                update.entity_id,
                update.property,
                str(update.old_value),
                str(update.new_value),
                status,
            )
        console.print(table)

    if not result.success:
        sys.exit(1)


# === Model inspection ===


@cli.command("resolve")
@click.argument("reference")
@click.pass_context
@async_command
async def resolve(ctx: click.Context, reference: str) -> None:
    """Show which entity a free-text reference resolves to."""
    engine = await _build_engine(ctx)
    try:
        entity = EntityResolver().resolve(reference, engine.model)
    except DomainError as e:
        _fail(e.message)

    console.print(f"[green]{reference!r} → {entity.id}[/green] ({entity.category})")


@cli.command("properties")
@click.argument("reference")
@click.option("--telemetry/--no-telemetry", default=False, help="Include telemetry fields")
@click.pass_context
@async_command
async def properties(ctx: click.Context, reference: str, telemetry: bool) -> None:
    """List the properties available on an entity."""
    engine = await _build_engine(ctx)
    try:
        entity = EntityResolver().resolve(reference, engine.model)
    except DomainError as e:
        _fail(e.message)

    descriptors = engine.resolver.available_properties(entity.id)
    if not telemetry:
        descriptors = [d for d in descriptors if not d.is_telemetry]

    table = Table(title=f"Properties of {entity.id}")
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("Type")
    table.add_column("Value")
    table.add_column("Units")
    table.add_column("Writable")
    for d in descriptors:
        table.add_row(
            d.name,
            d.source.value,
            d.type,
            "-" if d.is_telemetry else str(d.value),
            d.units or "",
            "yes" if d.writable and not d.is_telemetry else "no",
        )
    console.print(table)


# === Constraint management ===


@cli.command("constraints")
@click.pass_context
@async_command
async def list_constraints(ctx: click.Context) -> None:
    """List persisted property constraints."""
    store = SqliteConstraintStore(ctx.obj["settings"].database_path)
    constraints = await store.all_constraints()

    if not constraints:
        console.print("[yellow]No constraints defined[/yellow]")
        return

    table = Table(title="Property Constraints")
    table.add_column("Entity Type", style="cyan")
    table.add_column("Property", style="green")
    table.add_column("Min")
    table.add_column("Max")
    table.add_column("Editable")
    table.add_column("Allowed Values")
    for c in constraints:
        table.add_row(
            c.entity_type,
            c.property,
            "-" if c.min_value is None else str(c.min_value),
            "-" if c.max_value is None else str(c.max_value),
            "yes" if c.is_editable else "no",
            ", ".join(str(v) for v in c.allowed_values) if c.allowed_values else "-",
        )
    console.print(table)


@cli.command("set-constraint")
@click.argument("entity_type")
@click.argument("property_name")
@click.option("--min", "min_value", type=float, default=None, help="Minimum numeric value")
@click.option("--max", "max_value", type=float, default=None, help="Maximum numeric value")
@click.option("--read-only", is_flag=True, help="Mark the property read-only")
@click.option("--not-editable", is_flag=True, help="Mark the property not editable")
@click.option("--allowed", multiple=True, help="Allowed value (repeatable)")
@click.pass_context
@async_command
async def set_constraint(
    ctx: click.Context,
    entity_type: str,
    property_name: str,
    min_value: float | None,
    max_value: float | None,
    read_only: bool,
    not_editable: bool,
    allowed: tuple[str, ...],
) -> None:
    """Create or replace the constraint for ENTITY_TYPE.PROPERTY_NAME."""
    if min_value is not None and max_value is not None and min_value > max_value:
        _fail(f"--min {min_value} is greater than --max {max_value}")

    store = SqliteConstraintStore(ctx.obj["settings"].database_path)
    constraint = PropertyConstraint(
        entity_type=entity_type,
        property=property_name,
        min_value=min_value,
        max_value=max_value,
        read_only=read_only,
        editable=not not_editable,
        allowed_values=list(allowed) or None,
    )
    await store.save_constraint(constraint)
    console.print(f"[green]Constraint saved for {entity_type}.{property_name}[/green]")


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
