"""Command-line interface for blackjack advisor."""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import AppSettings, load_settings
from .notify import BalanceNotifier
from .state.model import GameSnapshot, Provider, Recommendation
from .strategy.engine import RecommendationEngine, recommend as recommend_move
from .telemetry.logger import setup_logging
from .telemetry.metrics import MetricsBuffer


app = typer.Typer(
    name="blackjack-advisor",
    help="Assistant IA Blackjack - recommandations via Llama Stack, Ollama ou vLLM",
    no_args_is_help=True,
)

console = Console()


def _load_snapshot(path: Path) -> GameSnapshot:
    with path.open("r", encoding="utf-8") as f:
        return GameSnapshot.model_validate(json.load(f))


def _settings(config_file: Optional[Path], no_stream: bool = False) -> AppSettings:
    settings = load_settings(config_file)
    if no_stream:
        settings = settings.model_copy(update={"STREAMING": False})
    return settings


def _render(rec: Recommendation) -> Panel:
    ttft = f"{rec.ttft_ms:.0f} ms" if rec.ttft_ms is not None else "n/a"
    body = (
        f"[bold]{rec.action.value.upper()}[/bold]\n"
        f"{rec.rationale or ''}\n\n"
        f"Latency: {rec.latency_ms:.0f} ms | TTFT: {ttft}"
    )
    return Panel(body, title=f"{rec.provider.value} / {rec.model_id}", border_style="green")


@app.command()
def recommend(
    snapshot_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Game snapshot JSON"),
    provider: Provider = typer.Option(Provider.LS, "--provider", "-p", help="Inference provider"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Disable streaming"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug mode"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """Recommend the next move for a snapshot."""
    try:
        setup_logging(debug=debug, verbose=verbose)
        settings = _settings(config_file, no_stream)
        snapshot = _load_snapshot(snapshot_file)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(_render(recommend_move(snapshot, provider, settings)))


@app.command()
def bench(
    snapshot_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Game snapshot JSON"),
    providers: Optional[List[Provider]] = typer.Option(None, "--provider", "-p", help="Providers to compare"),
    runs: int = typer.Option(3, "--runs", "-n", min=1, help="Requests per provider"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Disable streaming"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """Compare latency and time-to-first-token across providers."""
    try:
        settings = _settings(config_file, no_stream)
        snapshot = _load_snapshot(snapshot_file)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    selected = providers or list(Provider)
    metrics = MetricsBuffer()

    async def _run() -> None:
        engine = RecommendationEngine.from_settings(settings, metrics=metrics)
        try:
            for provider in selected:
                for _ in range(runs):
                    rec = await engine.get_recommendation(snapshot, provider)
                    console.print(f"[cyan]{provider.value}[/cyan] -> {rec.action.value} ({rec.latency_ms:.0f} ms)")
        finally:
            await engine.aclose()

    asyncio.run(_run())

    table = Table(title="Latency by provider")
    table.add_column("Provider", style="cyan")
    table.add_column("Samples", style="magenta")
    table.add_column("Avg latency (ms)", style="green")
    table.add_column("Avg TTFT (ms)", style="yellow")
    for provider, s in metrics.summary().items():
        table.add_row(
            provider.value,
            str(s.count),
            str(s.avg_latency_ms),
            str(s.avg_ttft_ms) if s.avg_ttft_ms is not None else "N/A",
        )
    console.print(table)

    models = Table(title="Samples by model")
    models.add_column("Model", style="cyan")
    models.add_column("Samples", style="magenta")
    for model_id, samples in metrics.by_model().items():
        models.add_row(model_id, str(len(samples)))
    console.print(models)


@app.command()
def notify(
    note: str = typer.Argument(..., help="Free-text balance note"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """Post a balance note to the notification agent (best effort)."""
    try:
        settings = _settings(config_file)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    failures: List[BaseException] = []

    async def _run() -> None:
        notifier = BalanceNotifier.from_settings(settings, on_error=failures.append)
        try:
            await notifier.notify_balance(note)
        finally:
            await notifier.aclose()

    asyncio.run(_run())
    if failures:
        console.print(f"[yellow]Notification not delivered: {failures[0]}[/yellow]")
    else:
        console.print(f"[green]Sent to agent {settings.NTFY_AGENT_ID}[/green]")


@app.command()
def config(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """Show the resolved configuration."""
    try:
        settings = _settings(config_file)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.model_dump().items():
        if key.endswith("API_KEY") and value:
            value = "***"
        table.add_row(key, str(value))
    table.add_row("ls base url (resolved)", settings.ls_base_url)
    table.add_row("ollama base url (resolved)", settings.ollama_base_url)
    table.add_row("vllm base url (resolved)", settings.vllm_base_url)
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    panel = Panel(
        f"[bold blue]Blackjack Advisor[/bold blue]\n"
        f"Version: {__version__}\n"
        f"Python: {sys.version.split()[0]}\n"
        f"Platform: {sys.platform}",
        title="Version Info",
        border_style="blue"
    )
    console.print(panel)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
