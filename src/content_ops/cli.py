"""Command-line entry points for the content chat assistant."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from .actions import filter_articles
from .bus import ChatCommand
from .classifier import IntentClassifier
from .config import get_settings
from .engine import ChatEngine
from .models import ARTICLE_STATUSES, ChatMessage
from .session import ChatSession
from .store import JsonContentStore

app = typer.Typer(help="Chat with your content library from the terminal.")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_store(store_path: Optional[Path]) -> JsonContentStore:
    settings = get_settings()
    return JsonContentStore(store_path or settings.content_store_path)


def _print_command(command: ChatCommand) -> None:
    payload = ", ".join(f"{k}={v}" for k, v in command.payload.items())
    rprint(f"[magenta]-> {command.type}[/magenta] [dim]{payload}[/dim]")


def _print_message(message: ChatMessage) -> None:
    console.print(Markdown(message.text))
    for index, button in enumerate(message.buttons or [], start=1):
        rprint(f"  [cyan][{index}] {button.label}[/cyan]")


def _validate_status(status: Optional[str]) -> Optional[str]:
    if status is not None and status not in ARTICLE_STATUSES:
        raise typer.BadParameter(f"status must be one of: {', '.join(ARTICLE_STATUSES)}")
    return status


@app.command("chat")
def chat_command(
    store_path: Optional[Path] = typer.Option(
        None, "--store", "-s", help="JSON content store (defaults to CONTENT_STORE_PATH)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """
    Interactive chat. Type /click N to press a button of the last reply,
    /reset to start fresh, /quit to leave.
    """
    _configure_logging(verbose)
    settings = get_settings()
    engine = ChatEngine(_load_store(store_path), IntentClassifier(settings=settings), settings=settings)
    session = ChatSession()
    unsubscribe = session.bus.subscribe(_print_command)
    last_reply: Optional[ChatMessage] = None
    # One loop for the whole conversation; the OpenAI client keeps connections on it.
    loop = asyncio.new_event_loop()

    rprint("[bold]Content assistant[/bold] [dim](type 'help' to see what I can do)[/dim]")
    try:
        while True:
            text = typer.prompt("you", prompt_suffix="> ").strip()
            if not text:
                continue
            if text in {"/quit", "/exit"}:
                break
            if text == "/reset":
                session.start_fresh()
                last_reply = None
                rprint("[yellow]Started a fresh conversation.[/yellow]")
                continue
            if text.startswith("/click"):
                buttons = (last_reply.buttons if last_reply else None) or []
                try:
                    button = buttons[int(text.split()[1]) - 1]
                except (IndexError, ValueError):
                    rprint("[red]No such button.[/red]")
                    continue
                turn = engine.click_button(session, button.action, button.payload)
            else:
                turn = loop.run_until_complete(engine.send_message(session, text))
            if turn.response is not None:
                last_reply = turn.response
                _print_message(turn.response)
    finally:
        unsubscribe()
        loop.close()


@app.command("classify")
def classify_command(
    text: str = typer.Argument(..., help="Message to classify."),
    store_path: Optional[Path] = typer.Option(None, "--store", "-s"),
):
    """Print the intent a single message is classified into, as JSON."""
    store = _load_store(store_path)
    classifier = IntentClassifier(settings=get_settings())
    intent = asyncio.run(
        classifier.classify(text, [], store.list_articles(), store.get_profile())
    )
    rprint(json.dumps(intent.model_dump(by_alias=True, exclude_none=True), indent=2))


@app.command("articles")
def articles_command(
    status: Optional[str] = typer.Option(None, "--status", help="Only this status."),
    older_than: Optional[int] = typer.Option(
        None, "--older-than", min=0, help="Created at least N days ago."
    ),
    newer_than: Optional[int] = typer.Option(
        None, "--newer-than", min=0, help="Created at most N days ago."
    ),
    store_path: Optional[Path] = typer.Option(None, "--store", "-s"),
):
    """List the content library using the same filters as the chat."""
    store = _load_store(store_path)
    matches = filter_articles(
        store.list_articles(),
        status=_validate_status(status),
        older_than_days=older_than,
        newer_than_days=newer_than,
    )
    table = Table("Title", "Slug", "Status", "Category", "Created")
    for article in matches:
        table.add_row(
            article.display_name,
            article.slug,
            article.status,
            article.category,
            article.created_at.date().isoformat(),
        )
    console.print(table)
    rprint(f"[green]{len(matches)} article(s)[/green]")


if __name__ == "__main__":
    app()
