# -*- coding: utf-8 -*-
"""
NodeClass CLI
=============

Command-line front end to the classification engine.

Commands:
    nodeclass classify <certname> --groups G --facts F   - Classify one node
    nodeclass validate --groups G                         - Check the group hierarchy
    nodeclass members <group_id> --groups G --nodes N     - List a group's nodes

Example:
    $ nodeclass classify web01.example.com --groups groups.yaml --facts web01.json
    $ nodeclass classify web01.example.com -g groups.yaml -f web01.json --format enc
    $ nodeclass validate --groups groups.yaml
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from nodeclass import __version__
from nodeclass.classification.loader import load_facts, load_group_set, load_nodes
from nodeclass.classification.models import Node, ResolvedConfiguration
from nodeclass.classification.setup import get_classification_service
from nodeclass.exceptions import GroupSetLoadError, NodeClassException, StructuralError

app = typer.Typer(
    name="nodeclass",
    help="Resolve node classifications from group hierarchies and facts",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

OUTPUT_FORMATS = ("table", "json", "yaml", "enc")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"nodeclass {__version__}")
        raise typer.Exit()


@app.callback()
def cli(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
):
    """NodeClass: node classification engine."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _fail(message: str, code: int = 1) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code)


@app.command()
def classify(
    certname: str = typer.Argument(..., help="Certname of the node to classify"),
    groups: Path = typer.Option(..., "--groups", "-g", help="Group definitions (YAML or JSON)"),
    facts: Path = typer.Option(..., "--facts", "-f", help="Node facts (YAML or JSON)"),
    environment: Optional[str] = typer.Option(
        None, "--environment", "-e", help="Environment reported by the node",
    ),
    format: str = typer.Option("table", "--format", help="Output format: table, json, yaml, enc"),
):
    """
    Classify one node against a group set.

    Example:
        nodeclass classify web01 --groups groups.yaml --facts web01.json --format enc
    """
    if format not in OUTPUT_FORMATS:
        _fail(f"Unknown format '{format}'. Choose from: {', '.join(OUTPUT_FORMATS)}", 2)

    try:
        group_set = load_group_set(groups)
        node = Node(certname=certname, facts=load_facts(facts), environment=environment)
        result = get_classification_service().classify(node, group_set)
    except GroupSetLoadError as e:
        _fail(e.message, 2)
    except StructuralError as e:
        _fail(f"{e.message} ({e.error_code})")
    except NodeClassException as e:
        _fail(e.message)

    if format == "json":
        typer.echo(result.model_dump_json(indent=2))
    elif format == "yaml":
        typer.echo(yaml.safe_dump(result.model_dump(mode="json"), sort_keys=False))
    elif format == "enc":
        typer.echo(yaml.safe_dump(result.to_enc(), sort_keys=False))
    else:
        _print_result(result)


@app.command()
def validate(
    groups: Path = typer.Option(..., "--groups", "-g", help="Group definitions (YAML or JSON)"),
):
    """
    Validate a group hierarchy and show each group's depth.

    Exits with status 1 when the hierarchy has a cycle, an unknown parent
    or a duplicate group id.
    """
    try:
        group_set = load_group_set(groups)
        resolution = get_classification_service().validate_hierarchy(group_set)
    except GroupSetLoadError as e:
        _fail(e.message, 2)
    except StructuralError as e:
        console.print(f"[red]✗[/red] Invalid hierarchy: {escape(e.message)}")
        for key, value in e.context.items():
            console.print(f"  [dim]{key}:[/dim] {escape(str(value))}")
        raise typer.Exit(1)
    except NodeClassException as e:
        _fail(e.message)

    table = Table(title=f"Group hierarchy ({len(resolution.order)} groups)")
    table.add_column("Group", style="cyan")
    table.add_column("Name")
    table.add_column("Parent", style="dim")
    table.add_column("Depth", justify="right")
    for group_id in resolution.order:
        group = group_set.get(group_id)
        table.add_row(
            group_id,
            group.name if group else "",
            resolution.parents.get(group_id) or "-",
            str(resolution.depth(group_id)),
        )
    console.print(table)
    console.print(f"[green]✓[/green] Hierarchy valid (version {group_set.version[:12]})")


@app.command()
def members(
    group_id: str = typer.Argument(..., help="Group to list"),
    groups: Path = typer.Option(..., "--groups", "-g", help="Group definitions (YAML or JSON)"),
    nodes: Path = typer.Option(..., "--nodes", "-n", help="Node inventory (YAML or JSON)"),
    format: str = typer.Option("table", "--format", help="Output format: table, json"),
):
    """
    List the nodes that belong to a group.
    """
    try:
        group_set = load_group_set(groups)
        inventory = load_nodes(nodes)
        certnames = get_classification_service().nodes_in_group(
            group_id, inventory, group_set,
        )
    except GroupSetLoadError as e:
        _fail(e.message, 2)
    except KeyError:
        _fail(f"Group '{group_id}' does not exist")
    except NodeClassException as e:
        _fail(e.message)

    if format == "json":
        typer.echo(json.dumps({"group_id": group_id, "nodes": certnames}, indent=2))
        return

    if not certnames:
        console.print(f"[yellow]No nodes in group '{group_id}'[/yellow]")
        return
    table = Table(title=f"Nodes in {group_id}")
    table.add_column("Certname", style="cyan")
    for name in certnames:
        table.add_row(name)
    console.print(table)


def _print_result(result: ResolvedConfiguration) -> None:
    console.print(Panel(
        f"[bold]{result.certname}[/bold]\n"
        f"Environment: {result.environment or '-'}\n"
        f"Group set: {result.group_set_version[:12]}",
        title="Classification",
    ))

    table = Table(title="Matched groups")
    table.add_column("Group", style="cyan")
    table.add_column("Depth", justify="right")
    table.add_column("Match")
    table.add_column("Rules", style="dim")
    for match in result.groups:
        table.add_row(
            match.group_id, str(match.depth), match.match_type.value,
            ", ".join(match.matched_rule_ids),
        )
    console.print(table)

    console.print("\n[bold]Classes:[/bold] " + (", ".join(result.classes) or "-"))

    if result.parameters or result.variables:
        params = Table(title="Parameters")
        params.add_column("Scope", style="dim")
        params.add_column("Key", style="cyan")
        params.add_column("Value")
        for key, value in result.parameters.items():
            params.add_row("parameter", key, json.dumps(value, default=str))
        for key, value in result.variables.items():
            params.add_row("variable", key, json.dumps(value, default=str))
        console.print(params)

    for conflict in result.conflicts:
        console.print(
            f"[yellow]Conflict:[/yellow] {conflict.scope.value} '{conflict.key}' "
            f"at depth {conflict.depth} between {', '.join(conflict.group_ids)}; "
            f"using {escape(json.dumps(conflict.chosen_value, default=str))}"
        )
    for error in result.errors:
        console.print(
            f"[red]Rule error:[/red] {error.kind.value} in group {error.group_id} "
            f"rule {error.rule_id}: {escape(error.message)}"
        )


def main():
    """Main entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(1)


__all__ = ["app", "main"]
