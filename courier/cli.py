import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from courier.config import RequestResult, RequestStatus, RunRecord
from courier.errors import CourierError, WorkspaceError
from courier.runner import RunnerService
from courier.storage import load_workspace
from courier.transport import HttpxTransport
from courier.utils import setup_logging
from courier.variables import VariableProcessor

console = Console()
app = typer.Typer(rich_markup_mode="rich", help="Run API request collections from a YAML workspace.")

STATUS_STYLES = {
    RequestStatus.SUCCESS: "green",
    RequestStatus.ERROR: "red",
    RequestStatus.SKIPPED: "yellow",
    RequestStatus.PENDING: "dim",
}


def _load(workspace: Path):
    try:
        return load_workspace(workspace)
    except WorkspaceError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


def _parse_vars(pairs: Optional[List[str]]) -> Dict[str, str]:
    variables = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid --var {escape(pair)!r}, expected key=value[/red]")
            raise typer.Exit(1)
        variables[key.strip()] = value
    return variables


def _print_progress(index: int, total: int, result: RequestResult) -> None:
    style = STATUS_STYLES.get(result.status, "white")
    label = escape(result.name or result.path or result.endpoint_id or "")
    code = result.status_code if result.status_code is not None else "-"
    timing = f"{result.response_time_ms}ms" if result.response_time_ms is not None else ""
    console.print(f"[{index + 1}/{total}] [{style}]{result.status.value:<7}[/{style}] {result.method or ''} {label} {code} {timing}")

    for test in result.test_results:
        mark = "[green]PASS[/green]" if test.passed else "[red]FAIL[/red]"
        console.print(f"    {mark} {escape(test.message)}")
    if result.error:
        console.print(f"    [red]{escape(result.error)}[/red]")
    if result.script_error:
        console.print(f"    [yellow]script: {escape(result.script_error)}[/yellow]")


def _print_summary(record: RunRecord) -> None:
    table = Table(title=f"{escape(record.runner_name)} ({record.state.value})")
    table.add_column("#", justify="right")
    table.add_column("Request")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Time", justify="right")

    for result in record.requests:
        style = STATUS_STYLES.get(result.status, "white")
        table.add_row(
            str(result.index + 1),
            escape(result.name or result.path or result.endpoint_id or ""),
            f"[{style}]{result.status.value}[/{style}]",
            str(result.status_code) if result.status_code is not None else "-",
            f"{result.response_time_ms}ms" if result.response_time_ms is not None else "-",
        )

    console.print(table)
    console.print(
        f"[green]{record.passed} passed[/green], [red]{record.failed} failed[/red], "
        f"[yellow]{record.skipped} skipped[/yellow] in {record.total_time_ms}ms"
    )
    if record.variables_set:
        console.print(f"[dim]Variables set: {escape(', '.join(sorted(record.variables_set)))}[/dim]")


def _save_results(record: RunRecord, output: str) -> None:
    output_path = Path(output)
    with open(output_path, "w") as f:
        json.dump(record.model_dump(mode="json"), f, indent=2)
    console.print(f"[green]Results saved to: {output_path}[/green]")


@app.command()
def run(
    workspace: Path = typer.Argument(..., help="Workspace YAML file"),
    runner_id: str = typer.Argument(..., help="Runner to execute"),
    stop_on_error: Optional[bool] = typer.Option(
        None, "--stop-on-error/--continue", help="Override the runner's stop-on-error option"
    ),
    delay: Optional[int] = typer.Option(None, "--delay", min=0, help="Delay between requests in ms"),
    output: str = typer.Option(None, "-o", "--output", help="Output JSON file for the run record"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """Execute a runner from a workspace."""

    async def _run():
        setup_logging(verbose=verbose)
        store, settings = _load(workspace)

        async with HttpxTransport(settings) as transport:
            service = RunnerService.from_store(store, transport, settings=settings)

            runner = await service.get_runner(runner_id)
            if runner is None:
                console.print(f"[red]Runner not found: {escape(runner_id)}[/red]")
                raise typer.Exit(1)

            options = runner.options.model_copy()
            if stop_on_error is not None:
                options.stop_on_error = stop_on_error
            if delay is not None:
                options.delay_ms = delay
            if options != runner.options:
                await service.update_runner(runner_id, {"options": options.model_dump()})

            try:
                record = await service.execute_runner(runner_id, on_progress=_print_progress)
            except CourierError as e:
                console.print(f"[red]{escape(str(e))}[/red]")
                raise typer.Exit(1)

        _print_summary(record)

        if output:
            _save_results(record, output)

        raise typer.Exit(0 if record.failed == 0 else 1)

    asyncio.run(_run())


@app.command()
def preview(
    template: str = typer.Argument(..., help="Template text, e.g. '{{baseUrl}}/users/{{id}}'"),
    workspace: Optional[Path] = typer.Option(None, "-w", "--workspace", help="Workspace supplying variables"),
    collection_id: Optional[str] = typer.Option(None, "-c", "--collection", help="Collection whose variables apply"),
    var: Optional[List[str]] = typer.Option(None, "--var", help="Extra variable as key=value"),
):
    """Show how a template resolves without generating dynamic values."""

    async def _variables() -> Dict[str, str]:
        variables: Dict[str, str] = {}
        if workspace is None:
            return variables
        store, _ = _load(workspace)
        if collection_id:
            collection = await store.collections.get_by_id(collection_id)
            if collection is None:
                console.print(f"[red]Collection not found: {escape(collection_id)}[/red]")
                raise typer.Exit(1)
            if collection.base_url:
                variables["baseUrl"] = collection.base_url
            variables.update(await store.variables.get_variables_for_collection(collection_id))
        variables.update(await store.environments.get_active_environment_variables())
        return variables

    variables = asyncio.run(_variables())
    variables.update(_parse_vars(var))

    result = VariableProcessor().get_preview(template, variables)
    console.print(escape(result.preview))
    if result.found_variables:
        console.print(f"[green]Found:[/green] {escape(', '.join(result.found_variables))}")
    if result.missing_variables:
        console.print(f"[red]Missing:[/red] {escape(', '.join(result.missing_variables))}")
    if result.dynamic_variables:
        console.print(f"[cyan]Dynamic:[/cyan] {escape(', '.join(result.dynamic_variables))}")


@app.command()
def runners(workspace: Path = typer.Argument(..., help="Workspace YAML file")):
    """List the runners defined in a workspace."""
    store, _ = _load(workspace)
    definitions = asyncio.run(store.runners.get_all())

    if not definitions:
        console.print("[yellow]No runners defined[/yellow]")
        return

    table = Table(title="Runners")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Collection")
    table.add_column("Requests", justify="right")
    table.add_column("Stop on error")
    for definition in definitions:
        table.add_row(
            escape(definition.id or ""),
            escape(definition.name),
            escape(definition.collection_id or "-"),
            str(len(definition.requests)),
            "yes" if definition.options.stop_on_error else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
