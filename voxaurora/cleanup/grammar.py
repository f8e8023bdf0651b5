"""
Grammar correction through LanguageTool.

language_tool_python either talks to a running LanguageTool HTTP server or
downloads LanguageTool and runs it as a local server. Its matches carry
character offsets into the submitted text; the corrector applies the first
suggested replacement of each match, last match first, so earlier offsets
stay valid while the text changes.

The correction service is best effort: failures are retried a bounded
number of times, after which the text is returned unchanged.
"""

from typing import Callable, List, Optional, Sequence, Tuple
import asyncio
import logging
import time

import language_tool_python
from language_tool_python.utils import LanguageToolError

logger = logging.getLogger(__name__)


class GrammarServerError(Exception):
    """Raised when LanguageTool cannot be started or reached."""
    pass


def char_span(text: str, offset: int, length: int) -> Tuple[int, int]:
    """Clamp a character offset/length pair to a valid slice of ``text``."""
    start = min(max(offset, 0), len(text))
    end = min(max(offset + length, start), len(text))
    return start, end


def byte_span(text: str, offset: int, length: int) -> Tuple[int, int]:
    """UTF-8 byte range covering characters ``offset`` .. ``offset + length``."""
    start, end = char_span(text, offset, length)
    byte_start = len(text[:start].encode("utf-8"))
    byte_end = byte_start + len(text[start:end].encode("utf-8"))
    return byte_start, byte_end


def _first_replacement(match) -> Optional[str]:
    replacements = getattr(match, "replacements", None) or []
    if not replacements:
        return None
    first = replacements[0]
    return first if isinstance(first, str) else None


def validate_matches(matches: Sequence) -> List:
    """
    Raises:
        ValueError: If a match has no integer offset or length.
    """
    for match in matches:
        if not isinstance(getattr(match, "offset", None), int) \
                or not isinstance(getattr(match, "errorLength", None), int):
            raise ValueError(f"malformed match: {match!r}")
    return list(matches)


def apply_matches(text: str, matches: Sequence) -> str:
    """
    Apply the first replacement of every match to ``text``.

    Matches are ``language_tool_python.Match`` objects (or anything with
    ``offset``, ``errorLength`` and ``replacements``), applied in descending
    offset order. Matches without a replacement are ignored.
    """
    corrected = text
    for match in sorted(matches, key=lambda m: m.offset, reverse=True):
        replacement = _first_replacement(match)
        if replacement is None:
            continue
        start, end = char_span(corrected, match.offset, match.errorLength)
        logger.debug(
            f"Replacing '{corrected[start:end]}' with '{replacement}' "
            f"(chars {start}-{end}, bytes {byte_span(corrected, match.offset, match.errorLength)})"
        )
        corrected = corrected[:start] + replacement + corrected[end:]
    return corrected


class GrammarCorrector:
    """
    LanguageTool client.

    Args:
        language: LanguageTool language code (``fr``, ``en-US``...)
        remote_server: URL of a running LanguageTool server. When None,
            language_tool_python downloads LanguageTool and runs it locally.
        retries: Total attempts per text before giving up
        backoff: Seconds to wait between attempts
        tool: Ready-made ``LanguageTool`` instance to use instead
        sleep: Function used to wait between attempts

    Example:
        >>> corrector = GrammarCorrector("fr", remote_server="http://localhost:8081")
        >>> corrector.correct("je suis alle au marche")
    """

    def __init__(
        self,
        language: str = "fr",
        remote_server: Optional[str] = None,
        retries: int = 3,
        backoff: float = 1.0,
        tool=None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.language = language
        self.remote_server = remote_server
        self.retries = max(1, retries)
        self.backoff = backoff
        self._tool = tool
        self._sleep = sleep

    def open(self) -> None:
        """
        Create the LanguageTool instance if it does not exist yet.

        Without a remote server this starts a local Java process, which
        takes a few seconds and downloads LanguageTool on first use.

        Raises:
            GrammarServerError: If LanguageTool cannot be started or reached.
        """
        if self._tool is not None:
            return
        try:
            if self.remote_server:
                logger.info(f"Connecting to LanguageTool server at {self.remote_server}")
                self._tool = language_tool_python.LanguageTool(
                    self.language, remote_server=self.remote_server
                )
            else:
                logger.info(f"Starting local LanguageTool server for {self.language}")
                self._tool = language_tool_python.LanguageTool(self.language)
        except (LanguageToolError, OSError) as e:
            raise GrammarServerError(f"Failed to start LanguageTool for '{self.language}': {e}") from e

    def check(self, text: str) -> List:
        """
        Ask LanguageTool for corrections.

        Raises:
            GrammarServerError: If LanguageTool cannot be started or reached.
            LanguageToolError: If the check itself fails.
            ValueError: If a returned match is malformed.
        """
        self.open()
        return validate_matches(self._tool.check(text))

    def correct(self, text: str) -> str:
        """
        Return ``text`` with LanguageTool's corrections applied.

        Never raises for service problems: after the last failed attempt,
        or on an unusable response, the text is returned as is.
        """
        if not text.strip():
            return text

        for attempt in range(1, self.retries + 1):
            try:
                matches = self.check(text)
            except (GrammarServerError, LanguageToolError) as e:
                logger.warning(
                    f"Grammar service unavailable (attempt {attempt}/{self.retries}): {e}"
                )
                if attempt < self.retries:
                    self._sleep(self.backoff)
                continue
            except ValueError as e:
                logger.warning(f"Grammar service returned an unusable response: {e}")
                return text

            corrected = apply_matches(text, matches)
            if corrected != text:
                logger.info(f"Grammar correction: '{text}' -> '{corrected}'")
            return corrected

        logger.warning("Grammar correction skipped, using uncorrected text")
        return text

    async def correct_async(self, text: str) -> str:
        """Run ``correct`` in a worker thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.correct, text)

    def close(self) -> None:
        """Stop the local server, if one was started."""
        if self._tool is None:
            return
        self._tool.close()
        self._tool = None
