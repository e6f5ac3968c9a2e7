"""
Autonym command line interface.

Inspect the resources an application registers without starting it:

    autonym routes myapp.resources:registry
    autonym routes myapp.resources:registry --json
"""

from __future__ import annotations

import importlib
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from autonym._version import get_version
from autonym.core.errors import ConfigurationError
from autonym.runtime.registry import ResourceRegistry
from autonym.runtime.resource import Resource
from autonym.specs.resource import CrudMethod

app = typer.Typer(
    help="Inspect Autonym resources",
    no_args_is_help=True,
)

console = Console()


def _load_target(target: str) -> Any:
    """Import ``module:attribute`` from the current working directory."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter("expected MODULE:ATTRIBUTE", param_hint="TARGET")

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import {module_name}: {e}", param_hint="TARGET") from e

    obj: Any = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise typer.BadParameter(
                f"{module_name} has no attribute {attribute}", param_hint="TARGET"
            ) from e
    return obj


def _as_registry(obj: Any) -> ResourceRegistry:
    if isinstance(obj, ResourceRegistry):
        return obj
    if isinstance(obj, Resource):
        return ResourceRegistry([obj])
    if isinstance(obj, Iterable) and not isinstance(obj, str | bytes):
        return ResourceRegistry(obj)
    raise ConfigurationError(
        f"expected a ResourceRegistry or resources, received {type(obj).__name__}.", "target"
    )


def _resource_to_dict(resource: Resource) -> dict[str, Any]:
    implemented = resource.config.store.implemented
    return {
        "name": resource.name,
        "route": resource.route,
        "methods": [str(method) for method in CrudMethod if method in implemented],
        "schema": resource.config.schema_gate.has_schema,
    }


# =============================================================================
# Commands
# =============================================================================


@app.command(name="routes")
def routes(
    target: Annotated[
        str, typer.Argument(help="Registry or resources to inspect, as MODULE:ATTRIBUTE")
    ],
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List registered resources with their routes and store methods."""
    try:
        registry = _as_registry(_load_target(target))
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    rows = [_resource_to_dict(resource) for resource in registry]

    if output_json:
        console.print_json(json.dumps(rows))
        return

    if not rows:
        console.print("[dim]No resources registered.[/dim]")
        return

    table = Table(title="Resources")
    table.add_column("Name", no_wrap=True)
    table.add_column("Route", no_wrap=True)
    table.add_column("Store methods")
    table.add_column("Schema")

    for row in rows:
        table.add_row(
            row["name"],
            f"/{row['route'].strip('/')}",
            ", ".join(row["methods"]) or "[dim]none[/dim]",
            "[green]yes[/green]" if row["schema"] else "[yellow]no[/yellow]",
        )

    console.print(table)


@app.command(name="version")
def version() -> None:
    """Show the installed Autonym version."""
    console.print(f"autonym {get_version()}")


if __name__ == "__main__":
    app()
