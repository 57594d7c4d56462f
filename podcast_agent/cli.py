"""
Command-line interface for Podcast Agent.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from podcast_agent.config import VOICES, AgentSettings, ConfigError, set_config
from podcast_agent.dialogue.events import OutboundCommand, Status
from podcast_agent.settings_store import SettingsStore

app = typer.Typer(
    name="podcast-agent",
    help="AI podcast participant that speaks when addressed by name",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Manage saved settings", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

console = Console()

_STATUS_STYLE = {
    Status.CONNECTING: "yellow",
    Status.IDLE: "dim",
    Status.DIALOGUE: "green",
    Status.SPEAKING: "blue",
    Status.ERROR: "red",
    Status.DISCONNECTED: "dim",
}

_ROLE_STYLE = {"user": "cyan", "agent": "magenta", "system": "dim"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_settings(
    config_file: Optional[Path] = None,
    store: Optional[SettingsStore] = None,
    **overrides,
) -> AgentSettings:
    """Build settings.

    Priority: CLI options > YAML file > saved settings > defaults.
    Options left as None are not treated as overrides.
    """
    store = store or SettingsStore()
    saved = store.load()
    values = saved.model_dump() if saved is not None else {}
    # Empty saved keys fall back to the environment
    for key in ("api_key", "tavily_key"):
        if not values.get(key):
            values.pop(key, None)

    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        values.update(AgentSettings.from_yaml(str(config_file)))

    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return AgentSettings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


def _print_status(status: Status, text: str) -> None:
    style = _STATUS_STYLE.get(status, "white")
    console.print(f"[{style}]● {escape(text)}[/{style}]")


def _print_message(role: str, text: str) -> None:
    style = _ROLE_STYLE.get(role, "white")
    console.print(f"[{style}]{role:>6}[/{style}]  {escape(text)}")


def _describe(command: OutboundCommand) -> str:
    wire = command.to_wire()
    if wire["type"] == "conversation.item.create":
        item = wire["item"]
        return f"{item['call_id']} → {item['output']}"
    if wire["type"] == "session.update":
        tools = [t["name"] for t in wire["session"].get("tools", [])]
        return f"voice={wire['session']['voice']} tools={','.join(tools) or '-'}"
    return ""


@app.command()
def connect(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Agent name (also the wake word)"),
    voice: Optional[str] = typer.Option(None, "--voice", "-v", help=f"Voice ({', '.join(VOICES)})"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Realtime model"),
    stop_words: Optional[str] = typer.Option(None, "--stop-words", help="Comma-separated stop phrases"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="OpenAI API key (default: saved or $OPENAI_API_KEY)"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
    save: bool = typer.Option(True, "--save/--no-save", help="Save settings after connecting"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """
    Join a live Realtime session.

    Audio capture and playback are handled by the session's media path; this
    command drives when the agent speaks.

    Example:
        podcast-agent connect --name Alex --voice coral
    """
    from podcast_agent.transport import RealtimeTransport, run_session

    _setup_logging(verbose)
    store = SettingsStore()

    try:
        settings = _resolve_settings(
            config_file,
            store=store,
            agent_name=name,
            voice=voice,
            model=model,
            stop_words=stop_words,
            api_key=api_key,
        )
        transport = RealtimeTransport(settings.api_key, settings.model)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    set_config(settings)
    if save:
        store.save(settings)

    console.print("[bold]Podcast Agent[/bold]\n")
    console.print(f"Name: {settings.agent_name}")
    console.print(f"Wake phrases: {', '.join(settings.wake_variants)}")
    console.print(f"Stop phrases: {', '.join(settings.stop_words)}")
    console.print(f"Model: {settings.model} / voice {settings.voice}")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(
            run_session(
                settings,
                transport,
                on_status=_print_status,
                on_transcript=_print_message,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    except OSError as e:
        console.print(f"[red]Connection failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def replay(
    events_file: Path = typer.Argument(..., help="JSON-lines file of server events"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Agent name"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
    gap: float = typer.Option(0.0, "--gap", help="Seconds between events"),
    tail: float = typer.Option(1.0, "--tail", help="Seconds to wait after the last event"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Drive the dialogue engine from a recorded event log (no network)."""
    from podcast_agent.transport import ReplayTransport, run_session

    _setup_logging(verbose)

    if not events_file.exists():
        console.print(f"[red]Error: File not found: {events_file}[/red]")
        raise typer.Exit(1)

    try:
        settings = _resolve_settings(config_file, agent_name=name)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    commands: list[OutboundCommand] = []
    transport = ReplayTransport(events_file, gap_s=gap, tail_s=tail)
    engine = asyncio.run(
        run_session(
            settings,
            transport,
            on_status=_print_status,
            on_transcript=_print_message,
            on_command=commands.append,
        )
    )

    table = Table(title="Commands sent")
    table.add_column("#", justify="right")
    table.add_column("Type", no_wrap=True)
    table.add_column("Detail")
    for i, command in enumerate(commands, start=1):
        table.add_row(str(i), command.type, escape(_describe(command)))

    console.print()
    console.print(table)
    console.print(f"[dim]Final mode: {engine.mode.value}[/dim]")


@app.command()
def calc(
    expression: str = typer.Argument(..., help="Arithmetic expression, e.g. 'sqrt(16) + 15% * 200'"),
):
    """Evaluate an expression with the calculator tool."""
    from podcast_agent.tools.calculator import CalculatorError, evaluate

    try:
        result = evaluate(expression)
    except CalculatorError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if result == int(result):
        result = int(result)
    console.print(f"{expression} = [bold]{result}[/bold]")


@app.command()
def tools(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
):
    """List tools and whether each would be offered to the model."""
    from podcast_agent.tools.executor import ToolExecutor

    try:
        settings = _resolve_settings(config_file)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    executor = ToolExecutor(settings)
    active = set(executor.active_tool_names())

    table = Table(title="Tools")
    table.add_column("Name", no_wrap=True)
    table.add_column("Active")
    table.add_column("Description")
    for definition in executor.registry.definitions():
        status = "[green]yes[/green]" if definition["name"] in active else "[dim]no[/dim]"
        table.add_row(definition["name"], status, definition["description"])
    console.print(table)

    if settings.tools.web_search and not settings.tavily_key:
        console.print("[dim]web_search needs a Tavily key ($TAVILY_API_KEY)[/dim]")


@settings_app.command("show")
def settings_show():
    """Show saved settings (API keys masked)."""
    store = SettingsStore()
    settings = store.load()
    if settings is None:
        console.print(f"[dim]No saved settings at {store.path}[/dim]")
        return

    table = Table(title=str(store.path))
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.model_dump().items():
        if key in ("api_key", "tavily_key") and value:
            value = value[:5] + "…"
        table.add_row(key, escape(str(value)))
    console.print(table)


@settings_app.command("save")
def settings_save(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Agent name"),
    voice: Optional[str] = typer.Option(None, "--voice", "-v", help="Voice"),
    stop_words: Optional[str] = typer.Option(None, "--stop-words", help="Comma-separated stop phrases"),
    reset_prompt: bool = typer.Option(False, "--reset-prompt", help="Restore the default system prompt"),
):
    """Save settings for later sessions."""
    store = SettingsStore()
    try:
        settings = _resolve_settings(
            config_file,
            store=store,
            agent_name=name,
            voice=voice,
            stop_words=stop_words,
        )
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if reset_prompt:
        settings = SettingsStore.reset_prompt(settings)
    store.save(settings)
    console.print(f"[green]Saved: {store.path}[/green]")


@settings_app.command("clear")
def settings_clear():
    """Delete saved settings."""
    store = SettingsStore()
    store.clear()
    console.print(f"[green]Cleared: {store.path}[/green]")


@app.command()
def info():
    """Show version and effective configuration."""
    from podcast_agent import __version__

    console.print(f"\n[bold]Podcast Agent v{__version__}[/bold]\n")

    store = SettingsStore()
    settings = store.load()
    source = str(store.path) if settings is not None else "defaults"
    settings = settings or AgentSettings()

    table = Table(title="Configuration")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Source", source)
    table.add_row("Agent name", settings.agent_name)
    table.add_row("Model", settings.model)
    table.add_row("Voice", settings.voice)
    table.add_row("Stop phrases", ", ".join(settings.stop_words))
    table.add_row("OpenAI key", "set" if settings.api_key else "[red]missing[/red]")
    table.add_row("Tavily key", "set" if settings.tavily_key else "[dim]missing[/dim]")
    table.add_row("Dialogue timeout", f"{settings.dialogue_timeout_s:.0f}s")
    console.print(table)
    console.print()


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
