"""Command-line interface for the Inquiry Router.

This module provides the CLI for routing customer messages, looking up
diagnostic trouble codes and running a demonstration session. Output is
rendered with Rich panels and tables.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from typing_extensions import Annotated

from .assistant import RoutingAssistant
from .config import DEFAULT_KEYWORDS, RouterConfig
from .dtc import evaluate_dtc, fetch_dtc_information
from .models import AssistantReply, ConversationState

app = typer.Typer(
    name="inquiry-router",
    help="Conversation routing for automotive service inquiries",
    rich_markup_mode="rich",
)

console = Console()

SAMPLE_CONVERSATIONS = [
    {
        "demo_type": "Diagnostic Inquiry",
        "messages": ["My check engine light came on"],
    },
    {
        "demo_type": "Urgent Diagnostic Escalation",
        "messages": ["URGENT emergency, check engine light, stranded"],
    },
    {
        "demo_type": "Explicit Request for a Technician",
        "messages": ["I need to speak with a technician about my car"],
    },
    {
        "demo_type": "Complex Follow-up Question",
        "messages": [
            "hello there",
            "Why is the sensor voltage dropping? How does the ecu compensate?",
        ],
    },
]


def _configure_logging(config: RouterConfig):
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.WARNING))


def display_reply(reply: AssistantReply):
    """Display the classification and routing decision for one message."""
    evaluation = reply.classification.evaluation
    if evaluation is not None:
        console.print(
            Panel(
                f"[bold]Category:[/bold] {evaluation.category.value}\n"
                f"[bold]Urgency:[/bold] {evaluation.urgency}\n"
                f"[bold]Complexity:[/bold] {evaluation.complexity}\n"
                f"[bold]Explicit Routing:[/bold] {evaluation.explicit_routing or 'none'}\n"
                f"[bold]Confidence:[/bold] {evaluation.confidence * 100:.1f}%\n"
                f"[bold]Reason:[/bold] {reply.classification.reason}",
                title="Routing Evaluation",
                style="dim",
            )
        )

    routing = reply.routing
    if routing is not None:
        console.print(
            Panel(
                f"[bold]Routed To:[/bold] {routing.routed_to}\n"
                f"[bold]Assigned Agent:[/bold] {routing.assigned_agent or 'none'}\n"
                f"[bold]Priority:[/bold] {routing.priority_level}\n"
                f"[bold]Estimated Response:[/bold] {routing.estimated_response_time or 'n/a'}\n"
                f"[bold]Suggested Actions:[/bold] {', '.join(routing.suggested_actions) or 'none'}\n"
                f"[bold]Tracking ID:[/bold] {routing.tracking_id}",
                title="Routing Decision",
                style="cyan",
            )
        )

    if reply.dtc is not None:
        codes = ", ".join(f"{info.code} ({info.severity})" for info in reply.dtc.dtc_codes)
        console.print(f"[yellow]Diagnostic codes detected:[/yellow] {codes}")

    console.print(Panel(reply.output, title="Assistant", style="green"))


@app.command()
def route(
    message: Annotated[str, typer.Argument(help="Message text to route")],
    history: Annotated[
        Optional[List[str]],
        typer.Option("--history", "-H", help="Earlier message in the thread (repeatable, oldest first)"),
    ] = None,
):
    """Classify and route a single message.

    Prior messages given with --history are replayed first so that recency
    weighting sees the full thread; only the decision for MESSAGE is shown.
    """
    config = RouterConfig()
    _configure_logging(config)
    assistant = RoutingAssistant(config)

    async def run() -> AssistantReply:
        conversation_id = "cli"
        for earlier in history or []:
            await assistant.handle_message(conversation_id, earlier)
        return await assistant.handle_message(conversation_id, message)

    display_reply(asyncio.run(run()))


@app.command()
def codes(
    message: Annotated[str, typer.Argument(help="Message containing diagnostic trouble codes")],
):
    """Detect diagnostic trouble codes in a message and look them up."""
    config = RouterConfig()
    _configure_logging(config)
    assistant = RoutingAssistant(config)

    outcome = evaluate_dtc(message)
    if outcome.evaluation is None:
        console.print(f"[yellow]{outcome.reason}[/yellow]")
        raise typer.Exit(code=1)

    state = ConversationState(conversation_id="cli", last_dtc_evaluation=outcome.evaluation)
    result = asyncio.run(fetch_dtc_information(state, assistant.dtc_lookup))
    console.print(Panel(Markdown(result.output), title="Diagnostic Codes", style="green"))


@app.command()
def info():
    """Show the categories, destinations and routing keywords in use."""
    table = Table(title="Conversation Categories")
    table.add_column("Category", style="bold")
    table.add_column("Indicators")
    for category, indicators in DEFAULT_KEYWORDS.category_indicators.items():
        table.add_row(category.value, ", ".join(indicators))
    console.print(table)

    routes = Table(title="Explicit Routes")
    routes.add_column("Route", style="bold")
    routes.add_column("Specialist")
    routes.add_column("Keywords")
    for route_token, terms in DEFAULT_KEYWORDS.explicit_routes:
        routes.add_row(
            route_token,
            DEFAULT_KEYWORDS.route_specialists.get(route_token, "general_assistant"),
            ", ".join(terms),
        )
    console.print(routes)


@app.command()
def demo(
    no_interactive: Annotated[
        bool,
        typer.Option("--no-interactive", help="Run sample conversations instead of interactive mode"),
    ] = False,
):
    """Run the router demo in interactive or automated mode.

    Automated mode replays sample conversations that cover diagnostic
    routing, urgent escalation, explicit technician requests and a complex
    follow-up question. Interactive mode routes whatever you type; type
    'threads' to list tracked inquiries or 'quit' to exit.
    """
    config = RouterConfig()
    _configure_logging(config)

    console.print(
        Panel.fit(
            "[bold yellow]Inquiry Router[/bold yellow]\n"
            "[dim]Conversation routing for automotive service inquiries[/dim]",
            style="yellow",
        )
    )

    if no_interactive:
        asyncio.run(run_sample_demo(config))
    else:
        asyncio.run(run_interactive_demo(config))


async def run_sample_demo(config: RouterConfig):
    """Replay the sample conversations, one conversation id per scenario."""
    assistant = RoutingAssistant(config)

    for i, scenario in enumerate(SAMPLE_CONVERSATIONS, 1):
        console.print(f"\n{'='*60}")
        console.print(f"[bold yellow]Demo Scenario #{i}: {scenario['demo_type']}[/bold yellow]")
        console.print(f"{'='*60}")

        conversation_id = f"DEMO-{i:03d}"
        for message in scenario["messages"]:
            console.print(
                Panel(
                    f"[bold white]{message}[/bold white]",
                    title="[bold cyan]Customer[/bold cyan]",
                    style="cyan",
                )
            )
            reply = await assistant.handle_message(conversation_id, message)
            display_reply(reply)


async def run_interactive_demo(config: RouterConfig):
    """Route messages typed by the user within a single conversation."""
    assistant = RoutingAssistant(config)
    conversation_id = f"demo-{datetime.now().strftime('%Y%m%d-%H%M%S')}"

    while True:
        console.print("\n" + "=" * 60)
        message = Prompt.ask(
            "\n[bold yellow]Customer message[/bold yellow]\n"
            "[dim](type 'threads' to list inquiries, 'codes' to look up detected DTCs, 'quit' to exit)[/dim]"
        )

        if message.lower() in ["quit", "exit", "q"]:
            console.print("\nThanks for using the Inquiry Router demo!")
            break

        if message.lower().startswith("threads"):
            console.print(Markdown(assistant.describe_threads(conversation_id, message)))
            continue

        if message.lower() == "codes":
            outcome = await assistant.lookup_codes(conversation_id)
            console.print(Markdown(outcome.output))
            continue

        reply = await assistant.handle_message(conversation_id, message)
        display_reply(reply)


def main():
    """Main entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
