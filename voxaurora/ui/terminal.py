"""
Rich-based terminal user interface.

Shows what the assistant hears, how the text was repaired, and which
commands it runs.
"""

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


class TerminalUI:
    """Terminal feedback for the dictation session."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_welcome(self, settings, command_count: int) -> None:
        """Display the startup banner with the active settings."""
        welcome_text = Text()
        welcome_text.append("🎙️  VoxAurora", style="bold magenta")
        welcome_text.append("\n\nVoice dictation and commands\n")

        self.console.print(Panel(
            welcome_text,
            title="Welcome",
            title_align="center",
            border_style="cyan",
            padding=(1, 2)
        ))

        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Language", settings.language)
        table.add_row("Dictionaries", ", ".join(settings.dictionary_languages))
        table.add_row("Whisper model", settings.model_size)
        table.add_row("Commands", str(command_count))
        table.add_row("Output", settings.output_mode)
        table.add_row("Wake word", "on" if settings.wake_word else "off")
        if settings.grammar:
            table.add_row("Grammar", settings.languagetool_url or "local LanguageTool")
        else:
            table.add_row("Grammar", "off")
        self.console.print(table)
        self.console.print("  • Press [bold red]Ctrl+C[/bold red] to quit\n")

    def show_status(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    def show_listening(self, awake: bool) -> None:
        if awake:
            self.console.print("🔴 [bold red]Listening...[/bold red]")
        else:
            self.console.print("💤 [dim]Asleep, say the wake word[/dim]")

    def show_transcription(self, raw: str, repaired: str) -> None:
        """Show the transcript and, when it changed, the repaired text."""
        self.console.print(f"📝 [white]{escape(raw)}[/white]")
        if repaired != raw:
            self.console.print(f"✨ [green]{escape(repaired)}[/green]")

    def show_wake(self) -> None:
        self.console.print("✨ [bold green]Wake word detected, listening for dictation[/bold green]")

    def show_sleep(self) -> None:
        self.console.print("💤 [yellow]Going to sleep[/yellow]")

    def show_command(self, trigger: str, action: str, score: float) -> None:
        self.console.print(
            f"⚡ [cyan]Command[/cyan] '{escape(trigger)}' → [magenta]{escape(action)}[/magenta] "
            f"[dim](similarity {score:.2f})[/dim]"
        )

    def show_text_output(self, text: str, mode: str) -> None:
        if mode == "clipboard":
            self.console.print(f"📋 Copied to clipboard: [green]{escape(text)}[/green]")
        elif mode == "type":
            self.console.print(f"⌨️  Typed: [green]{escape(text)}[/green]")
        else:
            self.console.print(f"[bold green]{escape(text)}[/bold green]")

    def show_devices(self, devices: List[Dict]) -> None:
        """List the audio input devices PyAudio can open."""
        if not devices:
            self.console.print("[yellow]No audio input devices found[/yellow]")
            return

        table = Table(title="Audio input devices", box=box.SIMPLE)
        table.add_column("Index", style="cyan", justify="right")
        table.add_column("Name", style="white")
        table.add_column("Channels", justify="right")
        table.add_column("Sample rate", justify="right")
        for device in devices:
            name = escape(device["name"])
            if device["is_default"]:
                name += " [green](default)[/green]"
            table.add_row(
                str(device["index"]),
                name,
                str(device["channels"]),
                f"{device['sample_rate']:.0f} Hz",
            )
        self.console.print(table)

    def show_error(self, error: Exception) -> None:
        """Display an error message with guidance for common problems."""
        error_message = str(error)

        if "device" in error_message.lower():
            guidance = "\n\n💡 Run with --list-devices and pick one with --device."
        elif "permission" in error_message.lower() or "audio" in error_message.lower():
            guidance = "\n\n💡 Try checking your microphone permissions."
        elif "dictionary" in error_message.lower():
            guidance = "\n\n💡 Check your network connection or the dictionary cache directory."
        elif "duplicate" in error_message.lower():
            guidance = "\n\n💡 Each command trigger may only be defined once."
        else:
            guidance = ""

        self.console.print(Panel(
            Text(f"❌ {error_message}{guidance}", style="red"),
            title="Error",
            title_align="center",
            border_style="red",
            padding=(1, 2)
        ))
