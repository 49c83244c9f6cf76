"""Gatekeeper CLI - moderate text from the terminal."""

import asyncio

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gatekeeper import __version__
from gatekeeper.analysis.normalizer import default_normalizer
from gatekeeper.analysis.script import analyze_language
from gatekeeper.config import ModeratorConfig, ProviderKind, configure_logging, get_settings
from gatekeeper.lib.llm import LLMClient, close_llm_client, get_llm_client
from gatekeeper.lib.models import ModerationAction, ModerationResult
from gatekeeper.moderator import create_moderator

console = Console()

ACTION_STYLES = {
    ModerationAction.ALLOW: "bold green",
    ModerationAction.DENY: "bold red",
    ModerationAction.ESCALATE: "bold yellow",
}
BAR_WIDTH = 20


def _bar(score: float) -> str:
    filled = round(score * BAR_WIDTH)
    return "#" * filled + "." * (BAR_WIDTH - filled)


def _local_only(config: ModeratorConfig) -> ModeratorConfig:
    return config.model_copy(
        update={
            "provider": ProviderKind.LOCAL,
            "council": config.council.model_copy(update={"enabled": False}),
        }
    )


def _print_result(result: ModerationResult) -> None:
    style = ACTION_STYLES[result.action]
    console.print(
        Panel(
            f"[{style}]{result.action.value.upper()}[/]  "
            f"severity {result.severity:.2f}  confidence {result.confidence:.2f}",
            title="Decision",
        )
    )

    if result.normalized != result.original:
        console.print(f"[dim]Normalized:[/] {result.normalized}")

    if result.categories:
        table = Table(title="Categories")
        table.add_column("Category", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("")
        for category, score in sorted(result.categories.items(), key=lambda kv: -kv[1]):
            table.add_row(category.value, f"{score:.2f}", _bar(score))
        console.print(table)

    factors = result.context_factors
    console.print(
        f"[dim]Context:[/] intent={factors.intent.value} target={factors.target.value} "
        f"sentiment={factors.sentiment.value} quoted={factors.is_quoted} "
        f"educational={factors.is_educational} reclamation={factors.is_reclamation}"
    )

    if result.flagged_spans:
        terms = ", ".join(f"'{s.original}' [{s.start}:{s.end}]" for s in result.flagged_spans)
        console.print(f"[dim]Flagged terms:[/] {terms}")

    tier = result.tier_info
    console.print(
        f"[dim]Tier:[/] {tier.tier.value} ({tier.reason}) "
        f"script={tier.language.value} local={tier.local_latency_ms:.1f}ms"
        + (f" api={tier.api_latency_ms:.0f}ms" if tier.api_latency_ms is not None else "")
        + (f" council={tier.council_latency_ms:.0f}ms" if tier.council_latency_ms is not None else "")
    )

    for warning in result.warnings:
        console.print(f"  [yellow]![/] {warning}")
    if result.review_item_id:
        console.print(f"  [magenta]Queued for human review:[/] {result.review_item_id}")


def _build_moderator(local_only: bool, llm_client: LLMClient):
    settings = get_settings()
    config = _local_only(settings.moderator) if local_only else settings.moderator
    return create_moderator(config=config, settings=settings, llm_client=llm_client)


@click.group()
@click.version_option(version=__version__)
def main():
    """Gatekeeper - tiered content moderation.

    Obvious cases are decided locally; borderline ones go to remote
    classifiers, a voting council and finally a human review queue.
    """
    configure_logging(get_settings().log_level)


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option("--context", "-c", default=None, help="Conversational context for the text")
@click.option("--local-only", is_flag=True, help="Never call remote classifiers")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
def check(text: str, context: str | None, local_only: bool, as_json: bool):
    """Moderate TEXT through every tier."""

    async def run() -> ModerationResult:
        llm_client = await get_llm_client()
        try:
            async with _build_moderator(local_only, llm_client) as moderator:
                return await moderator.moderate(text, context)
        finally:
            await close_llm_client()

    result = asyncio.run(run())

    if as_json:
        console.print_json(result.model_dump_json())
        return
    _print_result(result)


# ── Normalize ────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
def normalize(text: str):
    """Show how TEXT is normalized before the rules run."""
    result = default_normalizer.normalize(text)
    console.print(f"[dim]Original:[/]   {result.original}")
    console.print(f"[dim]Normalized:[/] {result.normalized}")
    console.print(f"[dim]Steps:[/]      {', '.join(result.changes) or 'none'}")

    if default_normalizer.has_obfuscation(text):
        console.print("[yellow]Obfuscation detected[/]")
    else:
        console.print("[green]No obfuscation detected[/]")


# ── Script ───────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
def script(text: str):
    """Show script detection and fast-path routing for TEXT."""
    analysis = analyze_language(text)
    console.print(f"[dim]Script:[/]    {analysis.script.value}")
    console.print(f"[dim]Latin:[/]     {analysis.is_latin}")
    console.print(f"[dim]Fast path:[/] {'skipped' if analysis.should_skip_fast_path else 'eligible'}")
    console.print(f"[dim]Reason:[/]    {analysis.reason}")


# ── Interactive ──────────────────────────────────────────────────────


@main.command()
@click.option("--local-only", is_flag=True, help="Never call remote classifiers")
def interactive(local_only: bool):
    """Moderate lines typed at the prompt. Empty line or 'quit' exits."""

    async def run() -> None:
        llm_client = await get_llm_client()
        try:
            async with _build_moderator(local_only, llm_client) as moderator:
                while True:
                    try:
                        line = await asyncio.to_thread(console.input, "[bold blue]>[/] ")
                    except EOFError:
                        break
                    if not line.strip() or line.strip().lower() in ("quit", "exit"):
                        break
                    _print_result(await moderator.moderate(line))
        finally:
            await close_llm_client()

    console.print(f"\n[bold blue]Gatekeeper[/] {__version__}, interactive mode\n")
    asyncio.run(run())
