"""
Execution of command actions and delivery of dictated text.

An action is either a shell command (``cmd:`` prefix) or text to type.
Dictated text goes to the focused window, the clipboard, or nowhere
(printed only), depending on the output mode.
"""

import logging
import subprocess

import pyperclip

logger = logging.getLogger(__name__)

SHELL_PREFIX = "cmd:"
SLEEP_ACTION = "sleep"
OUTPUT_MODES = ("type", "clipboard", "print")


class ActionError(Exception):
    """Raised when an action fails to run."""
    pass


def execute_shell_command(command: str) -> None:
    """
    Run ``command`` through ``sh -c``.

    Raises:
        ActionError: If the shell cannot start or the command exits non-zero.
    """
    logger.info(f"Running shell command: {command}")
    try:
        completed = subprocess.run(["sh", "-c", command], check=False)
    except OSError as e:
        raise ActionError(f"Failed to run '{command}': {e}") from e
    if completed.returncode != 0:
        raise ActionError(f"Command exited with status: {completed.returncode}")


class TextOutput:
    """
    Delivers text to the user.

    Args:
        mode: ``type`` to send keystrokes, ``clipboard`` to copy,
            ``print`` to leave it to the terminal UI
    """

    def __init__(self, mode: str = "type"):
        if mode not in OUTPUT_MODES:
            raise ValueError(f"Unknown output mode '{mode}', expected one of {OUTPUT_MODES}")
        self.mode = mode
        self._keyboard = None

    def _get_keyboard(self):
        if self._keyboard is None:
            # pynput picks its backend at import time, which needs a display.
            try:
                from pynput.keyboard import Controller
            except ImportError as e:
                raise ActionError(f"pynput not available: {e}") from e
            self._keyboard = Controller()
        return self._keyboard

    def type_text(self, text: str) -> None:
        try:
            self._get_keyboard().type(text)
        except ActionError:
            raise
        except Exception as e:
            raise ActionError(f"Failed to type text: {e}") from e

    def emit(self, text: str) -> None:
        """Deliver dictated ``text`` according to the output mode."""
        if not text:
            return
        if self.mode == "type":
            self.type_text(text + " ")
        elif self.mode == "clipboard":
            try:
                pyperclip.copy(text)
            except pyperclip.PyperclipException as e:
                raise ActionError(f"Could not copy to clipboard: {e}") from e

    def execute(self, action: str) -> None:
        """
        Run a command action.

        ``cmd:<shell>`` runs a shell command; anything else is typed.
        """
        if action.startswith(SHELL_PREFIX):
            execute_shell_command(action[len(SHELL_PREFIX):].strip())
        else:
            self.type_text(action + " ")
