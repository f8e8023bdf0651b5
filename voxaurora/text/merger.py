"""
Repair of words the recogniser split into fragments.

Speech-to-text output sometimes breaks one word into several
(``aujourd hui``, ``ordi nateur``). The merge engine scans the text token by
token and, for each window of whitespace-separated tokens, decides whether
the concatenation is the intended word. Evidence comes from the language
dictionaries (exact and fuzzy membership) and from an embedding-based
plausibility score.
"""

from typing import List, NamedTuple, Optional, Sequence
import logging

from .dictionary import DictionaryIndex
from .normalize import normalize_word
from .tokenizer import Token, gap_is_whitespace, tokenize

logger = logging.getLogger(__name__)

MAX_WORD_LENGTH = 20
MIN_SCORED_LENGTH = 3
SHORT_WORD_LENGTH = 5
SHORT_PAIR_LENGTH = 10
SHORT_PAIR_MIN_PLAUSIBILITY = 0.1
PLAUSIBILITY_WEIGHT = 0.10

APOSTROPHES = ("'", "’")


class MergeCandidate(NamedTuple):
    """Consecutive tokens joined without and with spaces."""
    merged: str
    spaced: str
    merged_key: str
    spaced_key: str


class MergeDecision(NamedTuple):
    """An accepted merge: the replacement word and how many tokens it consumes."""
    word: str
    consumed: int


def is_reasonable_word(word: str) -> bool:
    """At most 20 characters, letters and apostrophes only."""
    return (
        0 < len(word) <= MAX_WORD_LENGTH
        and all(c.isalpha() or c in APOSTROPHES for c in word)
    )


def base_score(merge_len: int) -> float:
    if merge_len == 2:
        return 0.50
    if merge_len == 3:
        return 0.55
    return 0.60


def merge_threshold(merge_len: int) -> float:
    if merge_len == 2:
        return 0.70
    if merge_len == 3:
        return 0.75
    return 0.80


def build_candidate(tokens: Sequence[Token]) -> MergeCandidate:
    parts = [token.text for token in tokens]
    merged = "".join(parts)
    spaced = " ".join(parts)
    return MergeCandidate(merged, spaced, normalize_word(merged), normalize_word(spaced))


def tokens_adjacent(text: str, tokens: Sequence[Token], start_index: int, merge_len: int) -> bool:
    """True if the window exists and only whitespace separates its tokens."""
    if start_index + merge_len > len(tokens):
        return False
    return all(
        gap_is_whitespace(text, tokens[j], tokens[j + 1])
        for j in range(start_index, start_index + merge_len - 1)
    )


class MergeEngine:
    """
    Decides which token windows to merge and rebuilds the repaired text.

    Args:
        index: Dictionaries of every supported language
        oracle: Object providing ``plausibility(word) -> float`` in [0, 1]
        max_distance: Edit distance at which a merged form still counts as
            a dictionary word
    """

    def __init__(self, index: DictionaryIndex, oracle, max_distance: int = 1):
        self.index = index
        self.oracle = oracle
        self.max_distance = max_distance

    def plausibility(self, word: str) -> float:
        """Plausibility of ``word``, 0.0 if the embedding model fails."""
        try:
            return self.oracle.plausibility(word)
        except Exception as e:
            logger.warning(f"Plausibility check failed for '{word}': {e}")
            return 0.0

    def compute_score(self, word: str, merge_len: int) -> float:
        """
        Confidence in [0, 1] that merging ``merge_len`` tokens into ``word``
        restores a real word.
        """
        length = len(word)
        if not MIN_SCORED_LENGTH <= length <= MAX_WORD_LENGTH:
            return 0.0

        length_penalty = -0.05 if length < SHORT_WORD_LENGTH else 0.0
        total = base_score(merge_len) + length_penalty + PLAUSIBILITY_WEIGHT * self.plausibility(word)
        return min(max(total, 0.0), 1.0)

    def should_merge(
        self,
        candidate: MergeCandidate,
        merge_len: int,
        spaced_in_dict: bool
    ) -> bool:
        """Apply the short-pair or the general decision rule."""
        word = candidate.merged_key

        if merge_len == 2 and len(word) < SHORT_PAIR_LENGTH:
            plausibility = self.plausibility(word)
            if spaced_in_dict and plausibility < SHORT_PAIR_MIN_PLAUSIBILITY:
                logger.info(
                    f"Not merging common short expression: '{candidate.merged}' "
                    f"(keeping '{candidate.spaced}') [plausibility: {plausibility:.2f}]"
                )
                return False
            logger.info(f"Merging short word: '{candidate.merged}' [plausibility: {plausibility:.2f}]")
            return True

        threshold = merge_threshold(merge_len)
        if not spaced_in_dict:
            logger.info(f"Merging: '{candidate.merged}' (spaced form is not a word)")
            return True

        score = self.compute_score(word, merge_len)
        if score >= threshold:
            logger.info(f"Merging: '{candidate.merged}' [score: {score:.2f} >= {threshold:.2f}]")
            return True

        logger.info(
            f"Not merging '{candidate.merged}': spaced version exists and "
            f"score {score:.2f} < {threshold:.2f}"
        )
        return False

    def decide(
        self,
        text: str,
        tokens: Sequence[Token],
        start_index: int,
        max_merge: int
    ) -> Optional[MergeDecision]:
        """
        Try to merge tokens starting at ``start_index``.

        Longer windows are tried first, from ``max_merge`` down to 2.

        Returns:
            The merged word and the number of tokens it replaces, or None.
        """
        for merge_len in range(max_merge, 1, -1):
            if not tokens_adjacent(text, tokens, start_index, merge_len):
                continue

            candidate = build_candidate(tokens[start_index:start_index + merge_len])
            logger.debug(f"Checking candidate: '{candidate.merged_key}' (from '{candidate.spaced_key}')")

            if not is_reasonable_word(candidate.merged_key):
                logger.debug(f"Skipping candidate '{candidate.merged_key}': not reasonable")
                continue

            in_dict, spaced_in_dict = self.index.lookup(
                candidate.merged_key,
                candidate.spaced_key,
                self.max_distance,
            )
            if not in_dict:
                logger.debug(f"Not merging '{candidate.merged_key}': word not found in dictionary")
                continue

            if self.should_merge(candidate, merge_len, spaced_in_dict):
                return MergeDecision(candidate.merged, merge_len)

        return None

    def repair(self, text: str, max_merge: int = 2) -> str:
        """
        Rebuild ``text`` with split words merged back together.

        Greedy and single-pass: once a window is merged its tokens are not
        revisited. Everything between tokens is copied verbatim.
        """
        tokens: List[Token] = list(tokenize(text))
        if max_merge < 2 or len(tokens) < 2:
            return text

        logger.debug(f"Starting merge with tokens: {[token.text for token in tokens]}")

        parts = []
        last_end = 0
        i = 0
        while i < len(tokens):
            decision = self.decide(text, tokens, i, max_merge)
            parts.append(text[last_end:tokens[i].start])
            if decision is not None:
                parts.append(decision.word)
                last_end = tokens[i + decision.consumed - 1].end
                i += decision.consumed
            else:
                parts.append(tokens[i].text)
                last_end = tokens[i].end
                i += 1

        parts.append(text[last_end:])
        return "".join(parts)
