"""Async interactive REPL for the agent."""

from __future__ import annotations

import asyncio
import logging

from rich.console import Console
from rich.markdown import Markdown

from agentloop.events import ConsoleEventSink, LoggingEventSink, fan_out
from agentloop.memory import MessageLog
from agentloop.models import Config
from agentloop.orchestrator import Orchestrator
from agentloop.providers.base import ProviderAdapter
from agentloop.tools import default_handlers

logger = logging.getLogger(__name__)

console = Console()

_WELCOME = """\
[bold green]agentloop[/bold green]  [dim]powered by {provider}[/dim]
Type your message and press Enter. Special commands:
  [bold]/tools[/bold]   — list the tools available to the agent
  [bold]/memory[/bold]  — show message log statistics
  [bold]/clear[/bold]   — forget the conversation so far
  [bold]/quit[/bold]    — exit the agent
"""

_PROMPT = "> "


async def run_repl(
    config: Config,
    provider: ProviderAdapter,
) -> None:
    """Run the interactive REPL loop until the user quits.

    Reads user input off the event loop (via ``run_in_executor``) to keep the
    async event loop free for backend calls.

    Args:
        config: Agent runtime configuration.
        provider: LLM provider adapter.
    """
    log = MessageLog()
    events = fan_out(
        LoggingEventSink(),
        ConsoleEventSink(console, enabled=config.agent.show_intermediate_steps),
    )
    orchestrator = Orchestrator(provider, default_handlers(), log, config.agent, events)
    loop = asyncio.get_running_loop()

    console.print(_WELCOME.format(provider=provider.provider_name))

    while True:
        # Read input off the event loop.
        try:
            user_input: str = await loop.run_in_executor(None, input, _PROMPT)
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Bye![/dim]")
            break

        user_input = user_input.strip()

        if not user_input:
            continue

        command = user_input.lower()
        if command in {"/quit", "/exit", "quit", "exit"}:
            console.print("[dim]Bye![/dim]")
            break

        if command == "/tools":
            _print_tools(orchestrator)
            continue

        if command == "/memory":
            _print_memory(log)
            continue

        if command == "/clear":
            log.clear_all()
            console.print("[green]Conversation cleared.[/green]")
            continue

        cancel = asyncio.Event()
        try:
            answer = await orchestrator.process_query(user_input, cancel)
        except KeyboardInterrupt:
            cancel.set()
            console.print("\n[dim](interrupted)[/dim]")
            continue
        except Exception as exc:
            logger.exception("Unhandled error during turn")
            console.print(f"[red]Error: {exc}[/red]")
            continue

        console.print(Markdown(answer, code_theme="github-dark"))

        # Print usage summary after each turn.
        u = log.usage
        console.print(
            f"[dim]  tokens: {u.input_tokens} in / {u.output_tokens} out "
            f"(total {u.total})[/dim]"
        )


def _print_tools(orchestrator: Orchestrator) -> None:
    console.print("\n[bold]Available tools:[/bold]")
    for tool in orchestrator.available_tools:
        console.print(f"  - [bold]{tool.name}[/bold]: {tool.description}")
    console.print()


def _print_memory(log: MessageLog) -> None:
    console.print("\n[bold]Message log:[/bold]")
    console.print(f"  global: {len(log.snapshot_global())} messages")
    for module in log.modules:
        console.print(f"  └─ {module}: {len(log.module_messages(module))} messages")
    console.print()
