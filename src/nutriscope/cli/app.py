"""Main CLI application using Typer."""
import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..actions import ActionExecutor, ProposalState
from ..cache import RecordingCacheInvalidator
from ..capture import FileCaptureDevice
from ..conversation import Message
from ..domain import InMemoryDomainStores
from ..errors import PersistenceError
from ..logging_setup import configure_logging
from ..orchestrator import TurnOrchestrator
from ..presenter import TypingPresenter
from ..session import ChatSession, ConversationSession
from .providers import get_image_analyzer, get_settings, get_store, get_transcriber, require_llm

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="nutriscope",
    help="Conversational meal, workout and water logging assistant",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

HELP_TEXT = (
    "[dim]Commands: /confirm, /cancel, /image <url>, /voice <file>, /new, "
    "/history, /load <id>, /quit[/dim]"
)


class _SessionPrinter:
    """Renders session changes to the console as they happen."""

    def __init__(self, console: Console):
        self._console = console
        self._seen: set[str] = set()
        self._streamed = 0
        self._muted = False

    @contextmanager
    def muted(self) -> Iterator[None]:
        """Ignore changes while a whole conversation is swapped in."""
        self._muted = True
        try:
            yield
        finally:
            self._muted = False

    def prime(self, state: ConversationSession) -> None:
        self._seen = {m.id for m in state.messages}
        self._streamed = 0

    def __call__(self, state: ConversationSession) -> None:
        if self._muted:
            return
        if state.is_streaming:
            if self._streamed == 0 and state.streaming_text:
                self._console.print("[bold green]Assistant:[/bold green] ", end="")
            delta = state.streaming_text[self._streamed:]
            if delta:
                self._console.print(delta, end="", markup=False, highlight=False)
                self._streamed = len(state.streaming_text)
            return

        for message in state.messages:
            if message.id in self._seen:
                continue
            self._seen.add(message.id)
            if message.role == "user":
                continue
            if self._streamed:
                self._console.print()
                self._streamed = 0
            else:
                self._console.print(f"[bold green]Assistant:[/bold green] {message.content}", highlight=False)
            if state.state_of(message.id) == ProposalState.PROPOSED_NEEDS_CONFIRM:
                _print_proposal(self._console, message)


def _print_proposal(con: Console, message: Message) -> None:
    action = message.action
    text = action.confirmation_message or f"Proposed action: {action.type.value}"
    con.print(Panel(
        f"{text}\n[dim]/confirm to apply, /cancel to dismiss[/dim]",
        title=f"[cyan]{action.type.value}[/cyan]",
        border_style="cyan",
    ))


def _pending_proposal(state: ConversationSession) -> str | None:
    """Most recent message still waiting for confirmation."""
    for message in reversed(state.messages):
        if state.state_of(message.id) == ProposalState.PROPOSED_NEEDS_CONFIRM:
            return message.id
    return None


def _print_message(con: Console, message: Message) -> None:
    style = "bold yellow" if message.role == "user" else "bold green"
    label = "You" if message.role == "user" else "Assistant"
    con.print(f"[{style}]{label}:[/{style}] {message.content}", highlight=False)
    if message.image_url:
        con.print(f"[dim]  image: {message.image_url}[/dim]")
    if message.action is not None:
        status = "pending" if message.requires_confirmation else (
            "cancelled" if message.confirmed is False else "applied"
        )
        con.print(f"[dim]  action: {message.action.type.value} ({status})[/dim]")


async def _show_conversation(
    con: Console, session: ChatSession, printer: _SessionPrinter, conversation_id: str
) -> bool:
    """Load a saved conversation and print its history once."""
    with printer.muted():
        if not await session.load_conversation(conversation_id):
            return False
    for message in session.state.messages:
        _print_message(con, message)
    printer.prime(session.state)
    return True


async def _show_new_chat(con: Console, session: ChatSession, printer: _SessionPrinter) -> None:
    with printer.muted():
        await session.new_chat()
    printer.prime(session.state)
    _print_message(con, session.state.messages[0])


@app.command()
def chat(
    typing: bool = typer.Option(
        True,
        "--typing/--no-typing",
        help="Reveal replies character by character"
    ),
    conversation: str | None = typer.Option(
        None,
        "--conversation",
        "-c",
        help="Resume a saved conversation by id"
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (debug, info, warning, error)"
    ),
):
    """Chat with the assistant to log meals, workouts and water."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, console=Console(stderr=True))

    async def _chat():
        llm = require_llm(console, settings)
        store = get_store(settings)
        invalidator = RecordingCacheInvalidator()
        printer = _SessionPrinter(console)
        domain = InMemoryDomainStores()

        session = ChatSession(
            orchestrator=TurnOrchestrator(llm),
            executor=ActionExecutor(domain),
            store=store,
            user_id=settings.user_id,
            domain_stores=domain,
            presenter=TypingPresenter(speed=1.0 if typing else 0.0),
            invalidator=invalidator,
            transcriber=get_transcriber(llm),
            image_analyzer=get_image_analyzer(llm),
            on_change=printer,
        )

        try:
            await store.connect()

            if conversation:
                if not await _show_conversation(console, session, printer, conversation):
                    console.print(f"[red]Error: conversation {conversation} not found[/red]")
                    raise typer.Exit(code=1)
            else:
                _print_message(console, session.state.messages[0])
                printer.prime(session.state)

            console.print(HELP_TEXT)

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                command, _, argument = user_input.strip().partition(" ")
                argument = argument.strip()

                if command in ("/quit", "/exit", "/q"):
                    console.print("[dim]Goodbye![/dim]")
                    break

                elif command == "/confirm":
                    message_id = _pending_proposal(session.state)
                    if message_id is None or not await session.confirm(message_id):
                        console.print("[dim]Nothing to confirm.[/dim]")

                elif command == "/cancel":
                    message_id = _pending_proposal(session.state)
                    if message_id is None or not session.cancel(message_id):
                        console.print("[dim]Nothing to cancel.[/dim]")

                elif command == "/image":
                    if not argument:
                        console.print("[yellow]Usage: /image <url>[/yellow]")
                        continue
                    await session.attach_image(argument)
                    if session.state.input_text:
                        console.print(f"[dim]Image description: {session.state.input_text}[/dim]")
                    console.print("[dim]Image attached. Add a message or press Enter to send.[/dim]")
                    extra = console.input("[bold yellow]You:[/bold yellow] ")
                    if extra.strip():
                        session.set_input(f"{session.state.input_text} {extra}".strip())
                    await session.send()

                elif command == "/voice":
                    if session.state.is_busy:
                        console.print("[dim]Please wait for the current reply.[/dim]")
                        continue
                    if not argument:
                        console.print("[yellow]Usage: /voice <audio file>[/yellow]")
                        continue
                    try:
                        started = await session.start_recording(FileCaptureDevice(Path(argument)))
                    except ValueError as e:
                        console.print(f"[red]Error: {e}[/red]")
                        continue
                    if started and await session.stop_recording():
                        console.print(f"[dim]Transcribed: {session.state.input_text}[/dim]")
                        await session.send()

                elif command == "/new":
                    await _show_new_chat(console, session, printer)

                elif command == "/history":
                    _print_history(await session.list_conversations())

                elif command == "/load":
                    if not await _show_conversation(console, session, printer, argument):
                        console.print(f"[red]Conversation {argument} not found[/red]")

                elif command.startswith("/"):
                    console.print(HELP_TEXT)

                elif user_input.strip():
                    if not await session.send(user_input):
                        console.print("[dim]Please wait for the current reply.[/dim]")

                await session.wait_idle()
                if session.state.persistence_error:
                    console.print(
                        f"[yellow]Warning: conversation not saved: "
                        f"{session.state.persistence_error}[/yellow]"
                    )

        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await session.close()
            await store.disconnect()
            await llm.close()

    asyncio.run(_chat())


def _print_history(summaries) -> None:
    if not summaries:
        console.print("[dim]No previous chats[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")
    for summary in summaries:
        table.add_row(
            summary.id,
            summary.title,
            str(summary.message_count),
            summary.updated_at.strftime("%b %d, %I:%M %p"),
        )
    console.print(table)


@app.command()
def history():
    """List saved conversations, most recent first."""
    settings = get_settings()

    async def _history():
        store = get_store(settings)
        try:
            await store.connect()
            _print_history(await store.list_conversations(settings.user_id))
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_history())


@app.command()
def show(
    conversation_id: str = typer.Argument(..., help="Conversation id")
):
    """Show the messages of a saved conversation."""
    settings = get_settings()

    async def _show():
        store = get_store(settings)
        try:
            await store.connect()
            conversation = await store.get_conversation(settings.user_id, conversation_id)
            if conversation is None:
                console.print(f"[red]Error: conversation {conversation_id} not found[/red]")
                raise typer.Exit(code=1)

            console.print(Panel(
                f"[bold]{conversation.display_title}[/bold]\n"
                f"[dim]{len(conversation.messages)} messages, updated "
                f"{conversation.updated_at.strftime('%b %d, %I:%M %p')}[/dim]",
                border_style="cyan",
            ))
            for message in conversation.messages:
                _print_message(console, message)
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_show())


@app.command()
def delete(
    conversation_id: str = typer.Argument(..., help="Conversation id"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    ),
):
    """Delete a saved conversation."""
    settings = get_settings()

    if not yes and not typer.confirm("Are you sure you want to delete this conversation?"):
        console.print("[dim]Aborted.[/dim]")
        return

    async def _delete():
        store = get_store(settings)
        try:
            await store.connect()
            if await store.delete(settings.user_id, conversation_id):
                console.print("[green]Conversation deleted.[/green]")
            else:
                console.print(f"[yellow]Conversation {conversation_id} not found[/yellow]")
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_delete())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
