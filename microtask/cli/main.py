"""
SOLE RESPONSIBILITY: Defines all Typer CLI commands (e.g., list, add, toggle),
handles user input, and makes HTTP requests to the server's REST API.
"""

import json
from typing import Optional, List, Annotated

import typer
import httpx
from rich.console import Console
from rich.table import Table

from microtask.server.models import Priority
from .config import get_server_url


app = typer.Typer(
    name="microtask",
    help="""
[bold cyan]MicroTask[/bold cyan] - tasks with ordered steps

[bold yellow]Quick Start[/bold yellow]
  $ microtask server start
  $ microtask add "Cook dinner" --due 2024-01-01 --priority high -s Chop -s Cook
  $ microtask list --sort priority --order desc
""",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

server_app = typer.Typer(help="[bold blue]Server Management[/bold blue]", rich_markup_mode="rich", no_args_is_help=True)
app.add_typer(server_app, name="server")

# Console for rich output
console = Console()


def version_callback(value: bool):
    """Version callback function for --version flag."""
    if value:
        from microtask import __version__

        console.print(f"[bold green]MicroTask[/bold green] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
):
    """MicroTask command line client."""


def _client() -> httpx.Client:
    """HTTP client bound to the configured server."""
    return httpx.Client(base_url=get_server_url(), timeout=10.0)


def _request(method: str, path: str, **kwargs):
    """Send a request and return the decoded JSON body; exits with code 1 on any failure."""
    with _client() as client:
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            try:
                detail = e.response.json().get("error", e.response.text)
            except ValueError:
                detail = e.response.text
            console.print(f"[red]Error ({e.response.status_code}): {detail}[/red]")
            raise typer.Exit(1)
        except httpx.HTTPError as e:
            console.print(f"[red]Could not reach server at {get_server_url()}: {e}[/red]")
            console.print("[dim]Start it with: microtask server start[/dim]")
            raise typer.Exit(1)
    return response.json()


def _steps_summary(task: dict) -> str:
    steps = task.get("steps") or []
    if not steps:
        return "-"
    done = sum(1 for step in steps if step.get("completed"))
    return f"{done}/{len(steps)}"


@app.command(name="list", help="List tasks, optionally filtered and sorted.")
def list_tasks(
    completed: Annotated[Optional[bool], typer.Option("--completed/--open", help="Only completed or only open tasks")] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="due_date or priority")] = None,
    order: Annotated[Optional[str], typer.Option("--order", help="asc or desc (default desc)")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output in JSON format")] = False,
):
    params = {}
    if completed is not None:
        params["completed"] = "true" if completed else "false"
    if sort:
        params["sort"] = sort
    if order:
        params["order"] = order

    tasks = _request("GET", "/tasks", params=params)

    if json_output:
        console.print_json(json.dumps(tasks))
        return

    if not tasks:
        console.print("\n[yellow]No tasks found.[/yellow]\n")
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Due", style="green")
    table.add_column("Priority", style="magenta")
    table.add_column("Done", style="yellow")
    table.add_column("Steps", style="dim")

    for task in tasks:
        table.add_row(
            str(task["id"]),
            task["title"],
            task["due_date"],
            task["priority"],
            "✓" if task["completed"] else "",
            _steps_summary(task),
        )

    console.print(table)


@app.command(help="Show one task with its steps.")
def show(task_id: Annotated[int, typer.Argument(help="Task ID")]):
    task = _request("GET", f"/tasks/{task_id}")

    console.print(f"\n[bold cyan]#{task['id']}[/bold cyan] [bold]{task['title']}[/bold]")
    if task.get("description"):
        console.print(f"[dim]{task['description']}[/dim]")
    console.print(
        f"Due: {task['due_date']}  Priority: {task['priority']}  Completed: {'yes' if task['completed'] else 'no'}\n"
    )

    if task.get("steps"):
        table = Table(title="Steps")
        table.add_column("#", style="cyan")
        table.add_column("Step", style="white")
        table.add_column("Done", style="yellow")
        for step in task["steps"]:
            table.add_row(str(step["order"]), step["title"], "✓" if step["completed"] else "")
        console.print(table)


@app.command(help="Create a task. Steps keep the order they are given in.")
def add(
    title: Annotated[str, typer.Argument(help="Task title")],
    due: Annotated[str, typer.Option("--due", "-d", help="Due date, YYYY-MM-DD")],
    priority: Annotated[Priority, typer.Option("--priority", "-p", help="low, medium or high")] = Priority.MEDIUM,
    description: Annotated[str, typer.Option("--description", help="Extra details")] = "",
    step: Annotated[Optional[List[str]], typer.Option("--step", "-s", help="Step title (repeatable)")] = None,
):
    payload = {
        "title": title,
        "description": description,
        "due_date": due,
        "priority": priority.value,
        "completed": False,
        "steps": [{"title": s} for s in step or []],
    }
    task = _request("POST", "/tasks", json=payload)
    console.print(f"[green]✓ Created task {task['id']}[/green] with {len(task['steps'])} step(s)")


@app.command(help="Flip a task between complete and incomplete.")
def toggle(task_id: Annotated[int, typer.Argument(help="Task ID")]):
    result = _request("PATCH", f"/tasks/{task_id}")
    console.print(f"[green]✓ {result['message']}[/green]")


@app.command(help="Delete a task and all of its steps.")
def delete(
    task_id: Annotated[int, typer.Argument(help="Task ID")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
):
    if not force and not typer.confirm(f"Delete task {task_id} and all its steps?"):
        raise typer.Exit()
    result = _request("DELETE", f"/tasks/{task_id}")
    console.print(f"[green]✓ {result['message']}[/green]")


@server_app.command(name="start", help="Run the API server in the foreground.")
def server_start(
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Server host")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Server port")] = None,
    reload: Annotated[bool, typer.Option("--reload", "-r", help="Enable auto-reload")] = False,
):
    from microtask.server.main import run

    console.print("\n[bold cyan]MicroTask Server[/bold cyan]\n")
    run(host=host, port=port, reload=reload)


@server_app.command(name="health", help="Check that the server and its database respond.")
def server_health():
    status = _request("GET", "/health")
    console.print(f"[green]✓ {status['service']} v{status['version']} is {status['status']}[/green]")


if __name__ == "__main__":
    app()
