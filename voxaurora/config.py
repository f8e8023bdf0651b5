"""
Application settings and the command registry.

Commands are read from one or more JSON files of the form::

    {"commands": [{"trigger": "open the browser", "action": "cmd:firefox"}]}

Files are merged in order; a trigger defined twice (ignoring case and
surrounding whitespace) is a configuration error.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union
import json
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is inconsistent."""
    pass


@dataclass(frozen=True)
class Command:
    """A trigger phrase and the action it runs."""
    trigger: str
    action: str


@dataclass
class Settings:
    """Runtime settings collected from the command line."""
    config_files: List[Path] = field(default_factory=lambda: [Path(DEFAULT_CONFIG_FILE)])
    language: str = "fr"
    dictionary_languages: List[str] = field(default_factory=lambda: ["fr", "en"])
    dictionary_dir: Path = Path("dics")
    model_size: str = "medium"
    embedding_model: str = "all-MiniLM-L6-v2"
    languagetool_url: Optional[str] = None
    grammar: bool = True
    grammar_retries: int = 3
    grammar_backoff: float = 1.0
    max_merge: int = 3
    segment_seconds: float = 5.0
    output_mode: str = "type"
    device_index: Optional[int] = None
    wake_word: bool = True

    def validate(self) -> None:
        if self.max_merge < 1:
            raise ConfigError(f"max_merge must be at least 1, got {self.max_merge}")
        if self.segment_seconds <= 0:
            raise ConfigError(f"segment_seconds must be positive, got {self.segment_seconds}")
        if self.grammar_retries < 1:
            raise ConfigError(f"grammar_retries must be at least 1, got {self.grammar_retries}")
        if not self.dictionary_languages:
            raise ConfigError("At least one dictionary language is required")


def _parse_commands(data, source: str) -> List[Command]:
    if not isinstance(data, dict) or not isinstance(data.get("commands"), list):
        raise ConfigError(f"{source}: expected an object with a 'commands' list")

    commands = []
    for position, entry in enumerate(data["commands"]):
        if not isinstance(entry, dict):
            raise ConfigError(f"{source}: command #{position} is not an object")
        trigger = entry.get("trigger")
        action = entry.get("action")
        if not isinstance(trigger, str) or not trigger.strip():
            raise ConfigError(f"{source}: command #{position} has no trigger")
        if not isinstance(action, str):
            raise ConfigError(f"{source}: command '{trigger}' has no action")
        commands.append(Command(trigger=trigger.strip(), action=action))
    return commands


def merge_commands(sources: Iterable[Iterable[Command]]) -> List[Command]:
    """
    Concatenate command lists, rejecting duplicate triggers.

    Raises:
        ConfigError: If two commands share a trigger, case-insensitively.
    """
    merged = []
    seen = {}
    for commands in sources:
        for command in commands:
            key = command.trigger.strip().lower()
            if key in seen:
                raise ConfigError(
                    f"Duplicate command trigger '{command.trigger}' "
                    f"(already defined as '{seen[key]}')"
                )
            seen[key] = command.trigger
            merged.append(command)
    return merged


def load_commands(paths: Iterable[Union[str, Path]]) -> List[Command]:
    """
    Load and merge the command registries of several JSON files.

    Raises:
        ConfigError: If a file is missing, is not valid JSON, is malformed,
            or repeats a trigger.
    """
    per_file = []
    for path in paths:
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Configuration file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

        commands = _parse_commands(data, str(path))
        logger.info(f"{len(commands)} commands loaded from {path}")
        per_file.append(commands)

    return merge_commands(per_file)
