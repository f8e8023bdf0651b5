"""
Word tokenizer for transcribed text.

Splits text into letter runs, keeping words joined by a single internal
apostrophe (``aujourd'hui``) together, and records where each token sits
in the source string so the text around it can be reassembled untouched.

A letter is a character for which ``str.isalpha()`` holds. Superscripts,
vulgar fractions and Roman numeral code points are numbers, not letters,
even though ``\\w`` accepts them.
"""

from typing import Iterator, NamedTuple

APOSTROPHES = "'’"


class Token(NamedTuple):
    """A word found in a source string, with its half-open span."""
    start: int
    end: int
    text: str


def tokenize(text: str) -> Iterator[Token]:
    """
    Yield the tokens of ``text`` in document order.

    Spans are character offsets into ``text``; tokens never overlap.
    Calling again restarts the scan.
    """
    length = len(text)
    position = 0
    while position < length:
        if not text[position].isalpha():
            position += 1
            continue

        start = position
        while position < length:
            char = text[position]
            if char.isalpha():
                position += 1
            elif char in APOSTROPHES and position + 1 < length and text[position + 1].isalpha():
                # the previous character is a letter, or we would not be here
                position += 1
            else:
                break
        yield Token(start, position, text[start:position])


def gap_is_whitespace(text: str, left: Token, right: Token) -> bool:
    """True if only whitespace separates two consecutive tokens."""
    return not text[left.end:right.start].strip()
