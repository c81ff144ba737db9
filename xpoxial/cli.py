#!/usr/bin/env python3
"""
Xpoxial CLI

Typer/Rich-powered command-line interface for running searches through the
same gateway the HTTP server uses: web + image search, news, and the
multi-engine advanced search.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from xpoxial.services.gateway.service import (
    AdvancedSearchInput,
    SearchGatewayService,
    SearchQueryInput,
    SummarizeAdvancedInput,
)
from xpoxial.services.shared.logger import configure_logging
from xpoxial.services.shared.settings import get_settings
from xpoxial.tools.search.api_key_validator import get_setup_instructions

console = Console()

app = typer.Typer(help="Xpoxial search CLI")


def _with_gateway(action: Callable[[SearchGatewayService], Awaitable[Any]]) -> Any:
    """Run ``action`` against a gateway whose providers share one HTTP client."""
    settings = get_settings()

    async def runner():
        timeout = settings.search.cascade.provider_timeout_seconds
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            gateway = SearchGatewayService.create(settings, client=client)
            return await action(gateway)

    return asyncio.run(runner())


def _setup_logging(verbose: bool) -> None:
    level = get_settings().observability.logging.level
    configure_logging("DEBUG" if verbose else level, "text")


def _print_json(data: Dict[str, Any]) -> None:
    console.print_json(json.dumps(data, default=str))


@app.command("search")
def search_command(
    query: str = typer.Argument(..., help="What to search for."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every provider call and cascade step."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response instead of tables."),
) -> None:
    """Answer + web results + images for a query."""
    _setup_logging(verbose)
    result = _with_gateway(
        lambda gateway: gateway.process_search_query(SearchQueryInput(query=query, verbose=verbose))
    )

    if as_json:
        _print_json(result.to_wire())
        return

    if result.answer:
        console.print(Panel(result.answer.answer, title=f"[bold cyan]{query}[/bold cyan]", border_style="cyan"))

    if result.search_results:
        table = Table(title="Web results", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Link", style="cyan", overflow="fold")
        for index, item in enumerate(result.search_results.web_results, 1):
            table.add_row(str(index), item.title, item.link)
        console.print(table)

        images = Table(title="Images")
        images.add_column("Source")
        images.add_column("URL", overflow="fold")
        for image in result.search_results.images:
            images.add_row(image.source_platform or "-", image.image_url)
        console.print(images)

    if result.error:
        console.print(f"[bold red][xpoxial][/bold red] {result.error}")
        raise typer.Exit(code=1)


@app.command("news")
def news_command(
    query: str = typer.Argument(..., help="News topic."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every provider call and retry."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response instead of a table."),
) -> None:
    """Recent news articles for a query."""
    _setup_logging(verbose)
    bundle = _with_gateway(lambda gateway: gateway.search_news(query, verbose=verbose))

    if as_json:
        _print_json(bundle.to_wire())
        return

    table = Table(title=f"News: {query}")
    table.add_column("Published", style="dim")
    table.add_column("Source")
    table.add_column("Title", style="bold")
    for article in bundle.articles:
        table.add_row(article.published_at, article.source, article.title)
    console.print(table)


@app.command("advanced")
def advanced_command(
    query: str = typer.Argument(..., help="What to search for."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every engine call."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response instead of tables."),
    summarize: bool = typer.Option(False, "--summarize", "-s", help="Also ask the model for a summary."),
) -> None:
    """Search several engines at once through SerpApi."""
    _setup_logging(verbose)

    async def run(gateway: SearchGatewayService):
        result = await gateway.perform_advanced_search(AdvancedSearchInput(query=query, verbose=verbose))
        summary = None
        if summarize and result.advanced_search_results:
            summary = await gateway.summarize_advanced_results(
                SummarizeAdvancedInput.from_results(query, result.advanced_search_results, verbose=verbose)
            )
        return result, summary

    result, summary = _with_gateway(run)

    if as_json:
        data = result.to_wire()
        if summary is not None:
            data["summary"] = summary.summary
        _print_json(data)
        return

    if result.error:
        console.print(f"[bold red][xpoxial][/bold red] {result.error}")
        raise typer.Exit(code=1)

    for engine, bundle in (result.advanced_search_results or {}).items():
        table = Table(title=f"{engine}")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Link", style="cyan", overflow="fold")
        for item in bundle.web_results:
            table.add_row(str(item.position or "-"), item.title or "-", item.link or "-")
        console.print(table)
        if bundle.error:
            console.print(f"[yellow]{engine}: {bundle.error}[/yellow]")

    if summary is not None:
        console.print(Panel(summary.summary, title="Summary", border_style="cyan"))


@app.command("setup")
def setup_command() -> None:
    """Show which provider credentials are configured and how to get the rest."""
    console.print(get_setup_instructions(get_settings().credentials), markup=False)


def main() -> None:
    """Entrypoint used by `python -m xpoxial.cli` or a console_script."""
    app()


if __name__ == "__main__":
    main()
