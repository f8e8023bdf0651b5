"""
Semantic matching of utterances against known phrases.

The same primitive serves two registries: the fixed wake-word variants and
the command triggers read from configuration.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np

from .embeddings import EmbeddingOracle, cosine_similarity

logger = logging.getLogger(__name__)

WAKE_VARIANTS = (
    "aurora",
    "auroha",
    "arora",
    "auroura",
    "uroha",
    "laura",
    "vox aurora",
    "vox oroha",
    "vox-oroha",
    "vox au rohe.",
    "vox-orore",
    "vox ouroho.",
)

WAKE_WORD_THRESHOLD = 0.70
COMMAND_THRESHOLD = 0.75


class PhraseMatcher:
    """Finds the phrase closest in meaning to an utterance."""

    def __init__(self, oracle: EmbeddingOracle):
        self.oracle = oracle

    def best_match(
        self,
        utterance: str,
        candidates: Sequence[str],
        threshold: float
    ) -> Optional[Tuple[str, float]]:
        """
        Return the best candidate and its similarity, or None.

        A candidate wins only with a similarity strictly above ``threshold``
        and strictly above every earlier candidate, so ties keep the first.
        Candidates that cannot be embedded are skipped.
        """
        utterance_embedding = self.oracle.encode(utterance)
        scored = []
        for candidate in candidates:
            try:
                scored.append((candidate, self.oracle.encode(candidate)))
            except Exception as e:
                logger.warning(f"Cannot embed candidate '{candidate}': {e}")
        return select_best(utterance_embedding, scored, threshold)


def select_best(
    utterance_embedding: np.ndarray,
    scored_candidates: Iterable[Tuple[str, np.ndarray]],
    threshold: float
) -> Optional[Tuple[str, float]]:
    best: Optional[Tuple[str, float]] = None
    for candidate, embedding in scored_candidates:
        similarity = cosine_similarity(utterance_embedding, embedding)
        logger.debug(f"Comparing input with candidate '{candidate}': similarity = {similarity:.3f}")
        if similarity > threshold and (best is None or similarity > best[1]):
            best = (candidate, similarity)
    return best


class PhraseRegistry:
    """
    A fixed set of phrases whose embeddings are computed once.

    Embeddings are computed on the first match unless ``precompute`` is
    called earlier. A phrase that fails to embed is left out of matching.
    """

    def __init__(self, phrases: Iterable[str], oracle: EmbeddingOracle, threshold: float):
        self.phrases: List[str] = list(phrases)
        self.oracle = oracle
        self.threshold = threshold
        self._embeddings: Optional[Dict[str, np.ndarray]] = None

    def precompute(self) -> None:
        if self._embeddings is not None:
            return
        embeddings = {}
        for phrase in self.phrases:
            try:
                embeddings[phrase] = self.oracle.encode(phrase)
            except Exception as e:
                logger.error(f"Failed to embed phrase '{phrase}': {e}")
        self._embeddings = embeddings

    @property
    def is_ready(self) -> bool:
        return self._embeddings is not None

    def match(self, utterance: str) -> Optional[Tuple[str, float]]:
        """Best phrase for ``utterance`` above the registry threshold."""
        if not utterance.strip():
            return None
        self.precompute()
        utterance_embedding = self.oracle.encode(utterance)
        return select_best(utterance_embedding, self._embeddings.items(), self.threshold)


class WakeWordDetector(PhraseRegistry):
    """Recognises the assistant's name among its usual mis-transcriptions."""

    def __init__(
        self,
        oracle: EmbeddingOracle,
        variants: Sequence[str] = WAKE_VARIANTS,
        threshold: float = WAKE_WORD_THRESHOLD
    ):
        super().__init__(variants, oracle, threshold)

    def is_wake_word(self, utterance: str) -> bool:
        match = self.match(utterance)
        if match:
            logger.info(f"Wake word detected: '{utterance}' ~ '{match[0]}' ({match[1]:.3f})")
            return True
        return False


class CommandMatcher(PhraseRegistry):
    """Maps an utterance to the configured command whose trigger it means."""

    def __init__(self, commands, oracle: EmbeddingOracle, threshold: float = COMMAND_THRESHOLD):
        self.commands = {command.trigger: command for command in commands}
        super().__init__(self.commands, oracle, threshold)

    def find_command(self, utterance: str):
        """
        Returns:
            ``(command, similarity)`` for the best trigger, or None.
        """
        match = self.match(utterance)
        if match is None:
            return None
        trigger, score = match
        logger.info(f"Command trigger detected: '{trigger}' ({score:.3f})")
        return self.commands[trigger], score
