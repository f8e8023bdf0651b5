"""
Main application entry point for VoxAurora.

This module provides the command-line interface and the dictation session
loop: capture, transcription, grammar correction, word repair, then wake
word detection, command dispatch or text output.
"""

import asyncio
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.logging import RichHandler

from . import __version__
from .actions import OUTPUT_MODES, SLEEP_ACTION, ActionError, TextOutput
from .audio.recorder import AudioRecorder, AudioRecorderError, get_available_devices
from .audio.transcriber import WhisperTranscriber
from .cleanup.grammar import GrammarCorrector, GrammarServerError
from .config import DEFAULT_CONFIG_FILE, ConfigError, Settings, load_commands
from .text.dictionary import DictionaryLoadError
from .text.engine import Engine, build_engine
from .text.normalize import clean_transcript
from .ui.terminal import TerminalUI

logger = logging.getLogger(__name__)


class DictationSession:
    """
    Processes utterances one at a time, in capture order.

    Everything that touches the dictionaries or the embedding model runs
    on a single worker thread, which also serialises calls into the model.

    Args:
        settings: Runtime settings
        engine: Loaded text engine
        corrector: Grammar correction client, None to skip correction
        output: Where dictated text and typed actions go
        ui: Terminal feedback
        recorder: Microphone capture, only needed by ``run``
        transcriber: Speech-to-text, only needed by ``run``
    """

    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        corrector: Optional[GrammarCorrector],
        output: TextOutput,
        ui: TerminalUI,
        recorder: Optional[AudioRecorder] = None,
        transcriber: Optional[WhisperTranscriber] = None
    ):
        self.settings = settings
        self.engine = engine
        self.corrector = corrector
        self.output = output
        self.ui = ui
        self.recorder = recorder
        self.transcriber = transcriber

        self.awake = not settings.wake_word
        self._engine_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="text-engine")

    async def _in_engine(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._engine_executor, func, *args)

    async def process_transcript(self, raw_text: str) -> Optional[str]:
        """
        Handle one transcribed utterance.

        Returns:
            The repaired text, or None if the utterance was empty.
        """
        text = clean_transcript(raw_text)
        if not text:
            return None

        if self.corrector is not None:
            text = await self.corrector.correct_async(text)

        repaired = await self._in_engine(self.engine.merger.repair, text, self.settings.max_merge)
        self.ui.show_transcription(text, repaired)

        if not self.awake:
            if await self._in_engine(self.engine.wake_words.is_wake_word, repaired):
                self.awake = True
                self.ui.show_wake()
            return repaired

        match: Optional[Tuple] = await self._in_engine(self.engine.commands.find_command, repaired)
        if match is not None:
            command, score = match
            self.ui.show_command(command.trigger, command.action, score)
            await self._run_action(command.action)
        else:
            await self._emit_text(repaired)
        return repaired

    async def _run_action(self, action: str) -> None:
        if action == SLEEP_ACTION:
            self.awake = not self.settings.wake_word
            if not self.awake:
                self.ui.show_sleep()
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.output.execute, action)
        except ActionError as e:
            logger.error(f"Failed to execute command: {e}")
            self.ui.show_error(e)

    async def _emit_text(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.output.emit, text)
            self.ui.show_text_output(text, self.output.mode)
        except ActionError as e:
            logger.error(f"Failed to output text: {e}")
            self.ui.show_error(e)

    async def process_segment(self) -> Optional[str]:
        """Record, transcribe and process one audio segment."""
        self.ui.show_listening(self.awake)
        samples = await self.recorder.capture(self.settings.segment_seconds)
        raw_text = await self.transcriber.transcribe(samples, self.settings.language)
        logger.info(f"Raw transcription: {raw_text}")
        return await self.process_transcript(raw_text)

    async def run(self, once: bool = False) -> None:
        """
        Run the dictation loop until interrupted.

        A failing segment is reported and skipped; the loop continues.
        """
        try:
            while True:
                try:
                    await self.process_segment()
                except (asyncio.CancelledError, AudioRecorderError):
                    raise
                except Exception as e:
                    logger.exception(f"Error while processing segment: {e}")
                    self.ui.show_error(e)
                if once:
                    break
        finally:
            if self.recorder is not None:
                self.recorder.close()

    def close(self) -> None:
        self._engine_executor.shutdown(wait=True)


def setup_logging(verbose: bool, log_file: Optional[Path] = None) -> None:
    """Route log records to the terminal through rich, and optionally to a file."""
    handlers: List[logging.Handler] = [RichHandler(rich_tracebacks=True, show_path=False)]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s'))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def resolve_config_files(config_files: Tuple[Path, ...]) -> List[Path]:
    """Explicit files are required; the default file is optional."""
    if config_files:
        return list(config_files)
    default = Path(DEFAULT_CONFIG_FILE)
    if default.exists():
        return [default]
    logger.warning(f"No {DEFAULT_CONFIG_FILE} found, running without commands")
    return []


async def run_app(settings: Settings, once: bool, text: Optional[str], ui: TerminalUI) -> None:
    """Load everything, then process ``text`` or listen to the microphone."""
    commands = load_commands(settings.config_files)
    ui.show_welcome(settings, len(commands))

    loop = asyncio.get_running_loop()
    corrector = None
    engine = None
    session = None
    try:
        if settings.grammar:
            corrector = GrammarCorrector(
                settings.language,
                remote_server=settings.languagetool_url,
                retries=settings.grammar_retries,
                backoff=settings.grammar_backoff,
            )
            if settings.languagetool_url:
                ui.show_status(f"Connecting to LanguageTool at {settings.languagetool_url}...")
            else:
                ui.show_status("Starting LanguageTool server...")
            try:
                await loop.run_in_executor(None, corrector.open)
            except GrammarServerError as e:
                # correct() retries the connection for every utterance
                logger.warning(f"LanguageTool not ready, continuing: {e}")
                ui.show_error(e)

        ui.show_status("Loading dictionaries and embedding model...")
        engine = await loop.run_in_executor(None, build_engine, settings, commands)

        session = DictationSession(settings, engine, corrector, TextOutput(settings.output_mode), ui)

        if text is not None:
            await session.process_transcript(text)
            return

        session.recorder = AudioRecorder(device_index=settings.device_index)
        session.transcriber = WhisperTranscriber(model_size=settings.model_size)
        ui.show_status("Loading Whisper model...")
        await loop.run_in_executor(None, session.transcriber.load_model)
        await session.run(once=once)
    finally:
        if session is not None:
            session.close()
        if engine is not None:
            engine.close()
        if corrector is not None:
            corrector.close()


@click.command()
@click.version_option(version=__version__)
@click.option('--config', 'config_files', multiple=True, type=click.Path(path_type=Path),
              help=f'Command registry JSON file (repeatable, default: {DEFAULT_CONFIG_FILE})')
@click.option('--language', default='fr', show_default=True, help='Transcription and grammar language')
@click.option('--dictionary-language', 'dictionary_languages', multiple=True,
              help='Dictionary language to load (repeatable, default: fr and en)')
@click.option('--dictionary-dir', default='dics', show_default=True, type=click.Path(path_type=Path),
              help='Dictionary cache directory')
@click.option('--model-size', default='medium', show_default=True,
              type=click.Choice(WhisperTranscriber.AVAILABLE_MODELS), help='Whisper model size')
@click.option('--embedding-model', default='all-MiniLM-L6-v2', show_default=True,
              help='sentence-transformers model')
@click.option('--languagetool-url', envvar='VOXAURORA_LANGUAGETOOL_URL',
              help='Running LanguageTool server (default: start one locally)')
@click.option('--no-grammar', is_flag=True, help='Skip grammar correction')
@click.option('--device', 'device_index', type=int, help='Audio input device index (see --list-devices)')
@click.option('--list-devices', is_flag=True, help='List audio input devices and exit')
@click.option('--max-merge', default=3, show_default=True, type=click.IntRange(min=1),
              help='Largest number of fragments merged into one word')
@click.option('--segment-seconds', default=5.0, show_default=True, type=click.FloatRange(min=0.5),
              help='Length of each recorded segment')
@click.option('--output', 'output_mode', default='type', show_default=True,
              type=click.Choice(OUTPUT_MODES), help='Where dictated text goes')
@click.option('--no-wake-word', is_flag=True, help='Start awake and never go to sleep')
@click.option('--once', is_flag=True, help='Process a single segment and exit')
@click.option('--text', help='Process this transcript instead of listening')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logs')
@click.option('--log-file', type=click.Path(path_type=Path), help='Also write logs to this file')
def main(
    config_files: Tuple[Path, ...],
    language: str,
    dictionary_languages: Tuple[str, ...],
    dictionary_dir: Path,
    model_size: str,
    embedding_model: str,
    languagetool_url: Optional[str],
    no_grammar: bool,
    device_index: Optional[int],
    list_devices: bool,
    max_merge: int,
    segment_seconds: float,
    output_mode: str,
    no_wake_word: bool,
    once: bool,
    text: Optional[str],
    verbose: bool,
    log_file: Optional[Path]
) -> None:
    """
    VoxAurora - voice dictation and commands.

    Listens in short segments, repairs the transcription and either runs
    the matching command or types the text. Say the wake word first.
    """
    setup_logging(verbose, log_file)
    ui = TerminalUI()

    if list_devices:
        try:
            ui.show_devices(asyncio.run(get_available_devices()))
        except AudioRecorderError as e:
            ui.show_error(e)
            sys.exit(1)
        return

    settings = Settings(
        config_files=resolve_config_files(config_files),
        language=language,
        dictionary_languages=list(dictionary_languages) or ["fr", "en"],
        dictionary_dir=dictionary_dir,
        model_size=model_size,
        embedding_model=embedding_model,
        languagetool_url=languagetool_url,
        grammar=not no_grammar,
        device_index=device_index,
        max_merge=max_merge,
        segment_seconds=segment_seconds,
        output_mode=output_mode,
        wake_word=not no_wake_word,
    )

    try:
        settings.validate()
        asyncio.run(run_app(settings, once, text, ui))
    except KeyboardInterrupt:
        click.echo("\nApplication interrupted by user.")
        sys.exit(0)
    except (ConfigError, DictionaryLoadError, AudioRecorderError) as e:
        ui.show_error(e)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
