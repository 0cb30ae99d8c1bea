"""
Command Line Interface for Content Bridge.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import print as rprint

from ..config import AirtableConfig, get_settings
from ..content_source import TableContentSource
from ..data.models.records import ExternalRecord, RecordRef
from ..errors import ContentBridgeError
from ..logging_config import configure_logging


app = typer.Typer(help="Content Bridge - drafts and publishing on top of a table service")
console = Console()

STATUS_STYLES = {
    "added": "yellow",
    "modified": "cyan",
    "published": "green",
    "deleted": "red",
}


def build_content_source() -> TableContentSource:
    """Create the content source from settings. Replaced in tests."""
    return TableContentSource(AirtableConfig.from_settings(get_settings()))


def parse_field_assignments(assignments: List[str]) -> Dict[str, Any]:
    """
    Parse ``Name=Value`` pairs. Values that are valid JSON are decoded,
    anything else is kept as a string.
    """
    fields: Dict[str, Any] = {}
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected Name=Value, got '{assignment}'")
        try:
            fields[name] = json.loads(raw)
        except json.JSONDecodeError:
            fields[name] = raw
    return fields


def _run(action: Callable[[TableContentSource], Awaitable[Any]]) -> Any:
    async def runner():
        source = build_content_source()
        await source.init()
        try:
            return await action(source)
        finally:
            await source.close()

    try:
        return asyncio.run(runner())
    except ContentBridgeError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


def _print_records(records: List[ExternalRecord], title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Shadow", no_wrap=True)
    table.add_column("Fields")

    for record in records:
        style = STATUS_STYLES.get(record.label.value, "white")
        fields = json.dumps(record.fields, default=str)
        table.add_row(
            record.id,
            f"[{style}]{record.label.value}[/{style}]",
            record.shadow_id or "",
            fields[:60] + "..." if len(fields) > 60 else fields,
        )
    console.print(table)


@app.callback()
def main_callback():
    settings = get_settings()
    configure_logging(settings.log_level, "console")


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
):
    """Start the HTTP API."""
    import uvicorn

    settings = get_settings()
    rprint(Panel.fit("Starting Content Bridge", style="bold blue"))
    uvicorn.run(
        "content_bridge.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.debug,
    )


@app.command()
def tables():
    """List content tables and their columns."""
    models = _run(lambda source: source.get_models())

    table = Table(title="Tables", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="yellow", no_wrap=True)
    table.add_column("ID")
    table.add_column("Columns")
    for model in models:
        table.add_row(model.name, model.id, ", ".join(f.name for f in model.fields))
    console.print(table)


@app.command()
def records(
    table_name: str = typer.Argument(..., help="Table to read"),
    preview: bool = typer.Option(False, "--preview/--production", help="Read mode"),
):
    """List the records of a table visible in the given mode."""
    result = _run(lambda source: source.get_documents(preview=preview, tables=[table_name]))
    mode = "preview" if preview else "production"
    _print_records(result, f"{table_name} ({mode})")


@app.command()
def show(
    table_name: str = typer.Argument(..., help="Table of the record"),
    record_id: str = typer.Argument(..., help="External record id"),
    preview: bool = typer.Option(False, "--preview/--production", help="Read mode"),
):
    """Show a single record."""
    record = _run(lambda source: source.get_document(table_name, record_id, preview=preview))
    if record is None:
        console.print(f"❌ Record {record_id} not found")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(record.to_dict()))


@app.command()
def create(
    table_name: str = typer.Argument(..., help="Table to insert into"),
    field: List[str] = typer.Option([], "--field", "-f", help="Name=Value, repeatable"),
):
    """Create a draft record."""
    fields = parse_field_assignments(field)
    record = _run(lambda source: source.create_document(table_name, fields))
    console.print(f"✅ Created {record.id} ({record.label.value})")


@app.command()
def update(
    table_name: str = typer.Argument(..., help="Table of the record"),
    record_id: str = typer.Argument(..., help="External record id"),
    field: List[str] = typer.Option([], "--field", "-f", help="Name=Value, repeatable"),
):
    """Edit a record; published records get a pending copy."""
    fields = parse_field_assignments(field)
    record = _run(lambda source: source.update_document(table_name, record_id, fields))
    console.print(f"✅ Updated {record.id} ({record.label.value})")


@app.command()
def delete(
    table_name: str = typer.Argument(..., help="Table of the record"),
    record_id: str = typer.Argument(..., help="External record id"),
):
    """Delete a record; published records stay live until published."""
    deleted_ids = _run(lambda source: source.delete_document(table_name, record_id))
    console.print(f"✅ Deleted {', '.join(deleted_ids)}")


@app.command()
def publish(
    table_name: str = typer.Argument(..., help="Table of the records"),
    record_ids: List[str] = typer.Argument(..., help="External record ids"),
):
    """Publish pending changes of one or more records."""
    refs = [RecordRef(table=table_name, record_id=record_id) for record_id in record_ids]
    result = _run(lambda source: source.publish_documents(refs))
    for record in result.published_records:
        console.print(f"✅ Published {record.id}")
    for record_id in result.deleted_record_ids:
        console.print(f"🗑️ Deleted {record_id}")


@app.command()
def version():
    """Show version information."""
    from .. import __version__
    rprint(Panel.fit(f"Content Bridge v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
