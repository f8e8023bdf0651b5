"""Normalisation helpers shared by the dictionary, the merger and the matchers."""

import re
import unicodedata

BEGIN_TAG = re.compile(r"\[_BEG_\]")
TIMING_TAG = re.compile(r"\[_TT_\d+\]")
WHITESPACE_RUN = re.compile(r"\s+")


def normalize_word(word: str) -> str:
    """NFKC-normalise and lower-case a word for dictionary lookups."""
    return unicodedata.normalize("NFKC", word).lower()


def clean_transcript(raw: str) -> str:
    """
    Strip whisper sentinel tags and collapse whitespace.

    Removes the begin-of-stream marker and numbered timing markers, then
    turns every whitespace run into a single space.
    """
    text = BEGIN_TAG.sub("", raw)
    text = TIMING_TAG.sub("", text)
    return WHITESPACE_RUN.sub(" ", text).strip()
