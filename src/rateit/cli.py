"""CLI for RateIt.

Commands:
    init-db                  - Create tables (and pg_trgm on PostgreSQL)
    resolve <name>           - Resolve a raw organization name to an entity
    show-entity <id>         - Show an entity with its stats and digest
    rank <query>             - Rank entities for a free-text question
    rankings                 - Per-country leaderboard by average rating
    ask <question>           - Answer a question (one entity or global)
    sweep-caches             - Delete expired cache rows
    rebuild-digests          - Recompute stats and digests for every entity
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rateit.caching import NormalizationCache, ResponseCache
from rateit.db import async_session_factory, init_db
from rateit.exceptions import RateItError
from rateit.inference import AnswerAgent, NameResolutionAgent
from rateit.models import Entity
from rateit.resolution import EntityResolver
from rateit.schemas import ResolveRequest
from rateit.services import CandidateRanker, InsightService, SentimentDigestBuilder
from rateit.services.insights import build_entity_context

app = typer.Typer(
    name="rateit",
    help="RateIt: entity resolution and summary-driven insights for crowdsourced reviews",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid UUID: {value}")
        raise typer.Exit(1) from None


@app.callback()
def main_options(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log resolution phases and cache activity")
    ] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command("init-db")
def init_database():
    """Initialize the database schema (creates tables if they don't exist)."""
    async def _init():
        await init_db()
        console.print("[green]Database initialized.[/green]")

    run_async(_init())


@app.command()
def resolve(
    name: Annotated[str, typer.Argument(help="Raw organization name, e.g. 'AUI'")],
    location: Annotated[str | None, typer.Option(help="City or campus")] = None,
    country: Annotated[str | None, typer.Option(help="Country")] = None,
    description: Annotated[str | None, typer.Option(help="Short description")] = None,
    no_llm: Annotated[
        bool, typer.Option("--no-llm", help="Deterministic resolution only")
    ] = False,
):
    """Resolve a name to an existing entity, or create a new one."""
    async def _resolve():
        await init_db()
        async with async_session_factory() as session:
            resolver = EntityResolver(
                session,
                reasoning=None if no_llm else NameResolutionAgent(),
                normalization_cache=NormalizationCache(async_session_factory),
            )
            try:
                result = await resolver.resolve_entity(
                    ResolveRequest(
                        name=name, location=location, country=country, description=description
                    )
                )
            except RateItError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()

            entity = result.entity
            outcome = "[green]matched[/green]" if result.is_existing else "[cyan]created[/cyan]"
            lines = [
                f"[bold]Outcome:[/bold] {outcome} ({result.phase.value})",
                f"[bold]ID:[/bold] {entity.id}",
                f"[bold]Name:[/bold] {entity.display_name}",
                f"[bold]Normalized:[/bold] {entity.normalized_name}",
            ]
            if result.score is not None:
                lines.append(f"[bold]Score:[/bold] {result.score:.3f}")
            if entity.location:
                lines.append(f"[bold]Location:[/bold] {entity.location_name}, {entity.country_name}")
            lines.append(f"[bold]Reasoning used:[/bold] {'yes' if result.used_external else 'no'}")
            if result.aliases_added:
                lines.append(f"[bold]New aliases:[/bold] {', '.join(result.aliases_added)}")

            console.print(Panel("\n".join(lines), title="Resolution"))

    run_async(_resolve())


@app.command("show-entity")
def show_entity(
    entity_id: Annotated[str, typer.Argument(help="Entity ID (UUID)")],
):
    """Show an entity with its aggregate stats and sentiment digest."""
    async def _show():
        eid = parse_uuid(entity_id)
        await init_db()
        async with async_session_factory() as session:
            entity = await session.get(Entity, eid)
            if entity is None:
                console.print(f"[red]Error:[/red] Entity not found: {entity_id}")
                raise typer.Exit(1)

            context = build_entity_context(entity)
            lines = [
                f"[bold]ID:[/bold] {entity.id}",
                f"[bold]Name:[/bold] {entity.display_name}",
                f"[bold]Normalized:[/bold] {entity.normalized_name}",
                f"[bold]Reviews:[/bold] {context.stats.total_count} "
                f"(avg {context.stats.average_rating}/5)",
            ]
            if context.location or context.country:
                place = ", ".join(part for part in (context.location, context.country) if part)
                lines.append(f"[bold]Location:[/bold] {place}")
            if context.digest:
                lines.append(f"[bold]Tone:[/bold] {context.digest.tone.value}")
                lines.append(f"[bold]Good:[/bold] {context.digest.positive_sample}")
                lines.append(f"[bold]Bad:[/bold] {context.digest.negative_sample}")
            console.print(Panel("\n".join(lines), title="Entity Details"))

            rated = [
                (category, stat)
                for category, stat in context.stats.categories.items()
                if stat.count > 0
            ]
            if rated:
                table = Table(title="Categories")
                table.add_column("Category", style="cyan")
                table.add_column("Reviews", justify="right")
                table.add_column("Average", justify="right")
                for category, stat in rated:
                    table.add_row(category.value, str(stat.count), f"{stat.average:.1f}")
                console.print(table)

    run_async(_show())


@app.command()
def rank(
    query: Annotated[str, typer.Argument(help="Free-text question")],
    region: Annotated[str | None, typer.Option(help="Country or region to favour")] = None,
):
    """Rank entities for a question without generating an answer."""
    async def _rank():
        await init_db()
        async with async_session_factory() as session:
            candidates = await CandidateRanker(session).rank_for_query(query, region)

            if not candidates:
                console.print("[yellow]Not enough data: no entity has reviews yet.[/yellow]")
                return

            table = Table(title=f"Candidates: '{query}'")
            table.add_column("Name", style="cyan")
            table.add_column("Country")
            table.add_column("Reviews", justify="right")
            table.add_column("Avg", justify="right")
            table.add_column("Tone")
            table.add_column("Score", justify="right")
            for candidate in candidates:
                table.add_row(
                    candidate.name,
                    candidate.country or "-",
                    str(candidate.review_count),
                    f"{candidate.average_rating:.1f}",
                    candidate.sentiment_digest.tone.value if candidate.sentiment_digest else "-",
                    f"{candidate.relevance_score:.2f}",
                )
            console.print(table)

    run_async(_rank())


@app.command()
def rankings():
    """Show every entity with a country, ranked within its country."""
    async def _rankings():
        await init_db()
        async with async_session_factory() as session:
            boards = await CandidateRanker(session).rankings_by_country()

        if not boards:
            console.print("[yellow]No entities with a country yet.[/yellow]")
            return

        for board in boards:
            table = Table(title=board.country)
            table.add_column("#", justify="right")
            table.add_column("Name", style="cyan")
            table.add_column("Location")
            table.add_column("Reviews", justify="right")
            table.add_column("Avg", justify="right")
            for position, entity in enumerate(board.entities, start=1):
                table.add_row(
                    str(position),
                    entity.name,
                    entity.location or "-",
                    str(entity.review_count),
                    f"{entity.average_rating:.1f}",
                )
            console.print(table)

    run_async(_rankings())


@app.command()
def ask(
    question: Annotated[str, typer.Argument(help="Question to answer")],
    entity: Annotated[
        str | None, typer.Option("--entity", "-e", help="Ask about one entity (UUID)")
    ] = None,
    region: Annotated[str | None, typer.Option(help="Region for global questions")] = None,
):
    """Answer a question from cached summaries (entity-scoped or global)."""
    async def _ask():
        entity_id = parse_uuid(entity) if entity else None
        await init_db()
        async with async_session_factory() as session:
            insights = InsightService(
                session,
                answers=AnswerAgent(),
                response_cache=ResponseCache(async_session_factory),
            )
            try:
                if entity_id is not None:
                    answer = await insights.answer_for_entity(entity_id, question)
                else:
                    answer = await insights.answer_global(question, region)
            except RateItError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None

            console.print(Panel(answer, title="Answer"))

    run_async(_ask())


@app.command("sweep-caches")
def sweep_caches():
    """Delete expired normalization and answer cache rows."""
    async def _sweep():
        await init_db()
        normalizations = await NormalizationCache(async_session_factory).sweep_expired()
        answers = await ResponseCache(async_session_factory).sweep_expired()
        console.print(
            f"[green]Swept {normalizations} normalization and {answers} answer entries.[/green]"
        )

    run_async(_sweep())


@app.command("rebuild-digests")
def rebuild_digests():
    """Recompute stats and sentiment digests for every entity."""
    async def _rebuild():
        await init_db()
        async with async_session_factory() as session:
            count = await SentimentDigestBuilder(session).recompute_all()
            await session.commit()
        console.print(f"[green]Rebuilt digests for {count} entities.[/green]")

    run_async(_rebuild())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
