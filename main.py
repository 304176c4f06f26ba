#!/usr/bin/env python3
"""main.py

Interactive CLI for domainsmith.
Chat with the weather assistant or ask the domain advisor for names, using
the Rich library for display.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
import sys
from typing import Any, NoReturn

# Third-Party Libraries
from dotenv import load_dotenv
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme
from rich.prompt import Prompt
from rich.console import Console
from rich.markdown import Markdown

# Local Modules
from domainsmith.advisor import AdvisorResult
from domainsmith.context import AppContext
from domainsmith.conversation import ConversationState, Turn
from domainsmith.errors import DomainsmithError
from domainsmith.loop import OrchestrationRun
from domainsmith.prompts import WEATHER_SYSTEM_PROMPT, build_domain_request
from domainsmith.settings import Settings
from domainsmith.tools import WEATHER_TOOLS

# Load environment variables from .env file
load_dotenv()

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "user": "bold blue",
        "assistant": "green",
    }
)
console = Console(theme=custom_theme)


class Session:
    """Chat history and counters for one REPL session."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.history: list[Turn] = []
        self.runs = 0
        self.tool_calls = 0
        self.truncated_runs = 0

    def clear(self) -> None:
        self.history.clear()

    def record(self, user_text: str, run: OrchestrationRun) -> None:
        self.history.append(Turn.user(user_text))
        if run.final_answer:
            self.history.append(Turn.assistant(run.final_answer))
        self.runs += 1
        self.tool_calls += len(run.tool_call_log)
        self.truncated_runs += int(run.truncated)


async def ask(session: Session, user_text: str) -> OrchestrationRun:
    """Run one weather-chat turn against a fresh context."""
    conversation = ConversationState(
        [Turn.system(WEATHER_SYSTEM_PROMPT), *session.history, Turn.user(user_text)]
    )
    async with AppContext.from_settings(session.settings) as ctx:
        return await ctx.loop.run(conversation, tool_names=WEATHER_TOOLS)


async def advise(settings: Settings, keywords: str) -> AdvisorResult:
    async with AppContext.from_settings(settings) as ctx:
        return await ctx.advisor.advise([Turn.user(build_domain_request(keywords))])


def display_banner() -> None:
    """Display the domainsmith welcome banner."""
    console.print(
        Panel(
            "[bold]domainsmith[/bold]\nTool-calling weather chat and domain-name advisor",
            border_style="cyan",
        )
    )
    console.print()


def display_help() -> None:
    """Display available commands and usage information."""
    help_text = """
**Available Commands:**

- `/help` - Show this help message
- `/clear` - Clear conversation history
- `/stats` - Show session statistics
- `/domains <keywords>` - Suggest domain names for a business idea
- `/quit` or `/exit` - Exit domainsmith
- Any other text - Chat with the weather assistant
    """
    console.print(Panel(Markdown(help_text), title="Help", border_style="cyan"))


def display_stats(session: Session) -> None:
    settings = session.settings
    stats_text = f"""
**Session Statistics:**

- Turns in history: {len(session.history)}
- Runs: {session.runs} ({session.truncated_runs} truncated)
- Tool calls: {session.tool_calls}
- Backend: `{settings.model_backend}`
- Model: `{settings.model}`
- Max steps per run: {settings.max_steps}
    """
    console.print(Panel(Markdown(stats_text), title="Statistics", border_style="cyan"))


def display_suggestions(result: AdvisorResult) -> None:
    """Render advisor output as a table, or the raw answer if nothing parsed."""
    if not result.suggestions:
        content = result.result.get("message", {}).get("content") or "No suggestions."
        console.print(Panel(content, title="Domain advisor", border_style="yellow"))
        return

    rows: list[dict[str, Any]] = (
        result.result.get("ranked") or result.result.get("trademarks") or result.suggestions
    )
    table = Table(title=f"Suggestions ({result.decision})", border_style="green")
    table.add_column("Domain", style="bold")
    table.add_column("TLD")
    table.add_column("Reason")
    table.add_column("Rank" if result.decision == "rank" else "Trademark")
    for row in rows:
        score = row.get("rank") if result.decision == "rank" else row.get("trademark_status")
        table.add_row(
            str(row.get("domain", "")),
            str(row.get("tld", "")),
            str(row.get("reason", "")),
            "" if score is None else str(score),
        )
    console.print(table)
    if "error" in result.result:
        console.print(f"Scoring failed: {result.result['error']}", style="warning")


def main() -> NoReturn:
    """Main entry point for the domainsmith CLI."""
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    display_banner()
    console.print(f"Backend: {settings.model_backend}", style="info")
    console.print(f"Model: {settings.model}\n", style="info")
    console.print("Type [bold]/help[/bold] for commands, or start chatting!\n", style="info")

    session = Session(settings)

    while True:
        try:
            user_input = Prompt.ask("[bold blue]You[/bold blue]").strip()

            if not user_input:
                continue

            command = user_input.lower()
            if command in ["/quit", "/exit"]:
                console.print("\nGoodbye!\n", style="success")
                sys.exit(0)

            elif command == "/help":
                display_help()
                continue

            elif command == "/clear":
                session.clear()
                console.print("Conversation history cleared.\n", style="success")
                continue

            elif command == "/stats":
                display_stats(session)
                continue

            elif command.startswith("/domains"):
                keywords = user_input[len("/domains"):].strip()
                if not keywords:
                    console.print("Usage: /domains <keywords>\n", style="warning")
                    continue
                with console.status("[bold green]Brainstorming...", spinner="dots"):
                    result = asyncio.run(advise(settings, keywords))
                display_suggestions(result)
                console.print()
                continue

            console.print()
            with console.status("[bold green]Thinking...", spinner="dots"):
                run = asyncio.run(ask(session, user_input))
            session.record(user_input, run)

            title = "[bold green]domainsmith[/bold green]"
            if run.truncated:
                title += " [yellow](step limit reached)[/yellow]"
            console.print(
                Panel(Markdown(run.final_answer or "_No answer._"), title=title, border_style="green")
            )
            console.print()

        except KeyboardInterrupt:
            console.print("\n\nInterrupted. Goodbye!\n", style="warning")
            sys.exit(0)

        except DomainsmithError as exc:
            console.print(f"\nError: {exc}\n", style="error")
            console.print("You can continue chatting or type /quit to exit.\n", style="info")


if __name__ == "__main__":
    main()
