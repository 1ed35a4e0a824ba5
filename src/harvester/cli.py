"""
Harvester CLI - Command-line interface for recursive entity research.

Commands:
- init: Write a starter harvester.toml
- search: Run one recursive search session
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .config import ConfigurationInvalid, create_default_config, load_config
from .utils.logging import setup_logging

app = typer.Typer(
    name="harvester",
    help="Recursive entity research with completeness-driven follow-up queries",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


@app.command()
def init(
    project_name: str = typer.Argument(..., help="Project name"),
    path: Path = typer.Option(Path.cwd(), "--path", "-p", help="Project directory"),
    entity_type: str = typer.Option(
        "organization", "--entity-type", "-e", help="Default entity type to extract"
    ),
) -> None:
    """
    Write a starter harvester.toml configuration file.

    Example:
        harvester init "Battery Suppliers" --entity-type company
    """
    path.mkdir(parents=True, exist_ok=True)
    config_path = path / "harvester.toml"

    if config_path.exists():
        console.print(f"[yellow]Warning:[/yellow] {config_path} already exists.")
        raise typer.Exit(1)

    create_default_config(config_path, project_name, entity_type)

    console.print(Panel.fit(
        f"[green]✓[/green] Initialized project: [bold]{project_name}[/bold]\n\n"
        f"Configuration: {config_path}\n\n"
        "[dim]Next steps:[/dim]\n"
        "1. Set API keys in environment (OPENROUTER_API_KEY, ANTHROPIC_API_KEY)\n"
        "2. Edit harvester.toml to choose models and limits\n"
        '3. Run a search: harvester search "your question"',
        title="Project Initialized",
        border_style="green",
    ))


@app.command()
def search(
    query: str = typer.Argument(..., help="Natural-language query"),
    config: Path = typer.Option(Path("harvester.toml"), "--config", "-c", help="Config file path"),
    entity_type: Optional[str] = typer.Option(
        None, "--entity-type", "-e", help="Entity type (overrides config)"
    ),
    max_depth: Optional[int] = typer.Option(
        None, "--max-depth", "-d", help="Recursion depth (overrides config)"
    ),
    sequential: bool = typer.Option(False, "--sequential", help="Run follow-up branches one at a time"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write session JSON here"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """
    Run one recursive search session.

    Example:
        harvester search "Which companies make solid-state batteries?"
        harvester search "EV charging networks in Europe" -e company -d 1 -o session.json
    """
    setup_logging(level=log_level)

    try:
        asyncio.run(_run_search(config, query, entity_type, max_depth, sequential, output))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except (ConfigurationInvalid, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


async def _run_search(
    config_path: Path,
    query: str,
    entity_type: Optional[str],
    max_depth: Optional[int],
    sequential: bool,
    output: Optional[Path],
) -> None:
    """Build clients from config and run the session."""
    from .clients.factory import attempt_timeout, build_clients, build_retry_policy
    from .config import OrchestratorConfig
    from .export import export_session_to_json, session_stats
    from .orchestrator import LLMCompletenessEvaluator, RecursiveOrchestrator

    config = load_config(config_path)

    overrides = config.orchestrator.model_dump()
    if max_depth is not None:
        overrides["max_depth"] = max_depth
    if sequential:
        overrides["parallel"] = False
    orchestrator_config = OrchestratorConfig.create(**overrides)

    answering, extraction, evaluation_adapter = build_clients(config)
    evaluator = LLMCompletenessEvaluator(
        evaluation_adapter,
        retry_policy=build_retry_policy(config.retry),
        timeout_seconds=attempt_timeout(config),
    )

    orchestrator = RecursiveOrchestrator(
        answering=answering,
        extraction=extraction,
        evaluator=evaluator,
        config=orchestrator_config,
        entity_type=entity_type or config.project.entity_type,
    )

    session = await orchestrator.search(query)
    stats = session_stats(session)

    console.print(
        f"[green]✓[/green] {stats['total_nodes']} queries "
        f"({stats['failed_nodes']} failed), depth {stats['max_depth']} | "
        f"{stats['distinct_entities']} distinct entities from "
        f"{stats['entities_extracted']} extracted | {session.elapsed_seconds:.1f}s"
    )

    if output:
        export_session_to_json(session, output)
        console.print(f"[green]✓[/green] Exported to {output}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
