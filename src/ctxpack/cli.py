"""Command-line interface for ctxpack."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from ctxpack import __version__
from ctxpack.config import (
    STORE_DB_FILE,
    find_project_root,
    get_config_value,
    get_ctxpack_dir,
    load_config,
    save_config,
    set_config_value,
)
from ctxpack.exceptions import ConfigError, CtxPackError, StoreError
from ctxpack.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Find the workspace root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ctxpack workspace found. Run 'ctxpack init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _open_store(root: Path):
    from ctxpack.knowledge.store import KnowledgeStore

    db_path = get_ctxpack_dir(root) / STORE_DB_FILE
    if not db_path.exists():
        console.error("No knowledge store found. Run 'ctxpack init' first.")
        sys.exit(1)
    return KnowledgeStore(db_path)


def _load_graph(root: Path):
    """Load the knowledge graph, or an empty one if nothing was imported yet."""
    import networkx as nx

    store = _open_store(root)
    try:
        graph = store.load()
    except StoreError as e:
        console.error(str(e))
        sys.exit(1)
    return (graph if graph is not None else nx.DiGraph()), store


@click.group()
@click.version_option(version=__version__, prog_name="ctxpack")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """ctxpack - pack the most relevant knowledge into a token budget."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


@main.command()
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
@click.option("--project", "-P", default=None, help="Default project scope for assembly.")
def init(path: str | None, project: str | None):
    """Initialize a ctxpack workspace with an empty knowledge store."""
    from ctxpack.knowledge.store import KnowledgeStore

    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ctxpack for: {root}")

    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = root.name
    config.root_path = str(root)
    if project:
        config.default_project = project
    save_config(root, config)
    console.success("Configuration saved")

    store = KnowledgeStore(get_ctxpack_dir(root) / STORE_DB_FILE)
    store.load()
    store.close()
    console.success("Knowledge store ready")


@main.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
def import_items(file: str, path: str | None):
    """Import projects and items from a JSON file.

    The file holds {"projects": [{"id", "name"}], "items": [{"id", "type",
    "content", "name", "project_id", "timestamp", "confidence", "related"}]}.
    A bare list is treated as the items list.
    """
    from ctxpack.knowledge.graph import KnowledgeGraphBuilder

    root = _get_project_root(path)
    graph, store = _load_graph(root)

    try:
        data = json.loads(Path(file).read_text())
    except json.JSONDecodeError as e:
        console.error(f"Invalid JSON in {file}: {e}")
        sys.exit(1)
    if isinstance(data, list):
        data = {"items": data}

    builder = KnowledgeGraphBuilder(graph)
    try:
        count = builder.load_records(data)
    except StoreError as e:
        console.error(str(e))
        store.close()
        sys.exit(1)

    stats = builder.get_stats()
    store.save(builder.graph, metadata={"stats": stats})
    store.close()
    console.success(f"Imported {count} item(s)")
    console.show_stats(stats)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
def status(path: str | None):
    """Show knowledge store statistics."""
    from ctxpack.knowledge.graph import KnowledgeGraphBuilder

    root = _get_project_root(path)
    graph, store = _load_graph(root)
    console.info(f"Workspace: {root.name}")
    console.show_stats(KnowledgeGraphBuilder(graph).get_stats())
    store.close()


@main.command()
@click.argument("item_id")
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
@click.option("--project", "-P", default=None, help="Project scope for routing (defaults to config).")
def show(item_id: str, path: str | None, project: str | None):
    """Show one knowledge item and the budget category it routes to."""
    from ctxpack.context.selector import route_item
    from ctxpack.knowledge.retriever import GraphRetriever

    root = _get_project_root(path)
    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)
    graph, store = _load_graph(root)
    store.close()

    item = GraphRetriever(graph).get_item(item_id)
    if item is None:
        console.error(f"Item not found: {item_id}")
        sys.exit(1)
    console.show_item(item, route_item(item, project or config.default_project))


# =========================================================================
# Context assembly
# =========================================================================

@main.command()
@click.argument("query")
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
@click.option("--project", "-P", default=None, help="Project scope (defaults to config).")
@click.option("--budget", "-b", default=None, type=int, help="Token budget (default: 4000).")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["xml", "json", "summary"]),
    default="xml",
    help="Output format (default: xml).",
)
@click.option("--scores", is_flag=True, help="Show the relevance score breakdown.")
def assemble(
    query: str, path: str | None, project: str | None, budget: int | None,
    output_format: str, scores: bool,
):
    """Assemble budgeted context for a query.

    Examples:

        ctxpack assemble "what did we decide about auth?"

        ctxpack assemble "open risks for launch" --project checkout --budget 2000

        ctxpack assemble "pricing constraints" --format json
    """
    from ctxpack.context.engine import ContextAssembler
    from ctxpack.knowledge.retriever import GraphRetriever
    from ctxpack.search.lexical import LexicalSimilarity

    root = _get_project_root(path)
    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)
    graph, store = _load_graph(root)
    store.close()

    assembler = ContextAssembler(
        GraphRetriever(graph),
        similarity=LexicalSimilarity(),
        config=config.assembly,
    )
    try:
        result = assembler.assemble(
            query,
            project_id=project or config.default_project,
            max_tokens=budget,
        )
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)

    if output_format == "json":
        payload = result.to_payload()
        payload["budget"] = result.budget.to_payload() if result.budget else None
        click.echo(json.dumps(payload, indent=2))
        return

    if output_format == "summary":
        console.raw(result.render_summary())
    elif sys.stdout.isatty():
        console.context_xml(result.context_xml)
    else:
        click.echo(result.context_xml)

    console.console.print()
    console.show_sources(result)
    if result.budget:
        console.show_budget(result.budget)
    if scores:
        console.show_scores(result)


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the workspace root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ctxpack configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: ctxpack config get <key>")
            sys.exit(1)
        try:
            value_found = get_config_value(config, key)
        except KeyError:
            console.error(f"Unknown key: {key}")
            sys.exit(1)
        console.console.print(f"{key} = {value_found}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: ctxpack config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ConfigError as e:
            console.error(str(e))
            sys.exit(1)


if __name__ == "__main__":
    main()
