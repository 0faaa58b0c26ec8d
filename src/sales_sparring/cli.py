"""
Command line entry point for sparring practice.

Usage:
    spar personas
    spar practice --persona angry --difficulty hard
    spar practice --persona cfo --mode close_in_2m --offline

Practice sessions run against the in-memory store. Without ANTHROPIC_API_KEY
(or with --offline) the buyer answers from scripted persona lines.
"""
import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from sales_sparring.core.errors import SparringError
from sales_sparring.core.models import Difficulty, EmotionalState, FinalizeResult, Mode, TurnResult
from sales_sparring.personas.profiles import PERSONA_CARDS, persona_catalogue
from sales_sparring.service import create_sparring_service

load_dotenv()

console = Console()

QUIT_COMMANDS = {"/quit", "/exit", "/end"}


def setup_logging() -> None:
    level = os.getenv("SPARRING_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _state_line(state: EmotionalState) -> str:
    return f"[red]anger {state.anger}[/red]  [yellow]boredom {state.boredom}[/yellow]  [green]trust {state.trust}[/green]"


def show_personas() -> None:
    """Print the persona catalogue as a table."""
    table = Table(title="Sparring Personas")
    table.add_column("ID", style="cyan")
    table.add_column("Persona", style="bold")
    table.add_column("Traits")
    table.add_column("Default difficulty")
    table.add_column("Description")

    for card in persona_catalogue():
        table.add_row(
            card.persona.value,
            card.label,
            ", ".join(card.traits),
            card.difficulty_default.value,
            card.description,
        )

    console.print(table)


def show_turn(result: TurnResult) -> None:
    console.print(f"\n[bold magenta]Buyer:[/bold magenta] {result.buyer_reply}")
    if result.reply_degraded:
        console.print("[dim](fallback line, buyer reply generation was unavailable)[/dim]")

    if result.micro_score is not None:
        score = result.micro_score
        console.print(f"  [cyan]Turn score:[/cyan] {score.turn_score}/100  {_state_line(result.new_state)}")
        console.print(f"  [cyan]Coach:[/cyan] {score.coach_note}")
        if score.flags:
            console.print(f"  [yellow]Flags:[/yellow] {', '.join(score.flags)}")
        if result.streak.streak:
            console.print(
                f"  [green]Streak {result.streak.streak}[/green] "
                f"(x{result.streak.xp_multiplier:.1f} XP)"
            )


def show_result(result: FinalizeResult) -> None:
    b = result.breakdown
    colour = {"win": "green", "loss": "red"}.get(result.outcome.value, "yellow")
    base_note = "" if b.measured else " (unmeasured)"
    console.print(Panel(
        f"Base score: {b.base_score} [dim]({b.base_source.value}{base_note})[/dim]\n"
        f"Emotional adjustment: {b.emotional_adjustment:+d}\n"
        f"End reason adjustment: {b.end_reason_adjustment:+d}\n"
        f"[bold]Final score: {result.final_score}[/bold]\n"
        f"Outcome: [{colour}]{result.outcome.value.upper()}[/{colour}]\n\n"
        f"Base XP: {b.base_xp}  x{b.streak_multiplier:.1f} streak  x{b.global_multiplier:.2f} global\n"
        f"Comeback bonus: {b.bonus_applied:g}\n"
        f"[bold]XP awarded: {result.xp_awarded}[/bold]",
        title="Session Summary",
    ))


async def practice(persona: str, difficulty: str, mode: str, offline: bool) -> None:
    """Run an interactive sparring session in the terminal."""
    service = create_sparring_service(offline=offline)
    started = await service.start_session(persona, difficulty, mode, rep_id="cli")
    card = PERSONA_CARDS[started.persona]

    console.print(Panel(
        f"[bold]{card.label}[/bold] - {card.description}\n"
        f"Difficulty: {started.difficulty.value}  Mode: {started.mode.value}\n"
        f"{_state_line(started.initial_state)}\n\n"
        f"[dim]Type your pitch. {', '.join(sorted(QUIT_COMMANDS))} finishes the call.[/dim]",
        title="Sparring Session",
    ))

    while True:
        try:
            text = console.input("\n[bold blue]You:[/bold blue] ").strip()
        except EOFError:
            break
        if not text:
            continue
        if text.lower() in QUIT_COMMANDS:
            break

        result = await service.submit_turn(started.id, text)
        show_turn(result)

        if result.ended:
            console.print(f"\n[bold]Buyer ended the call ({result.end_reason.value}).[/bold]")
            break

    show_result(await service.finalize(started.id))


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sales sparring practice against simulated buyers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List personas
  spar personas

  # Practice against an angry buyer on hard
  spar practice --persona angry --difficulty hard

  # Offline practice with scripted replies
  spar practice --persona cfo --mode close_in_2m --offline
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("personas", help="List available buyer personas")

    practice_parser = subparsers.add_parser("practice", help="Start an interactive sparring session")
    practice_parser.add_argument("--persona", default=None, help="Persona id (default: price_sensitive)")
    practice_parser.add_argument(
        "--difficulty",
        default=None,
        choices=[d.value for d in Difficulty],
        help="Difficulty tier (default: normal)",
    )
    practice_parser.add_argument(
        "--mode",
        default=None,
        choices=[m.value for m in Mode],
        help="Drill format (default: standard)",
    )
    practice_parser.add_argument(
        "--offline",
        action="store_true",
        help="Use scripted buyer replies instead of the Anthropic API",
    )

    args = parser.parse_args()
    setup_logging()

    if args.command == "personas":
        show_personas()
        return

    try:
        asyncio.run(practice(args.persona, args.difficulty, args.mode, args.offline))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
    except SparringError as e:
        console.print(f"[red bold]Error: {e}[/red bold]")
        sys.exit(1)


if __name__ == "__main__":
    main()
