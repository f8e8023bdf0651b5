"""
Sentence embeddings and the similarity measures built on them.

Wraps a sentence-transformers model behind a small, memoised ``encode``
and provides cosine similarity plus a word plausibility score used by the
merge engine.
"""

from functools import lru_cache
from typing import Sequence
import logging
import threading

import numpy as np

try:
    from sentence_transformers import SentenceTransformer
    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False
    SentenceTransformer = None

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"

REFERENCE_WORD = "bonjour"

PLAUSIBILITY_TEMPLATES = (
    "People often use the word {}.",
    "The {} is a common term in French.",
    "I really like this {}.",
    "He talks about {} with enthusiasm.",
)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors, 0.0 if either has zero norm."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


class EmbeddingOracle:
    """
    Memoised access to a sentence embedding model.

    The model is not assumed to be thread-safe: every call into it holds a
    lock. Results are cached per distinct input string, so fixed reference
    sentences and trigger phrases are only ever embedded once.

    Args:
        encoder: Object with an ``encode(text)`` method returning a vector.
            Defaults to a SentenceTransformer loaded on first use.
        model_name: sentence-transformers model to load when no encoder is given
        cache_size: Number of distinct strings kept in the cache
    """

    def __init__(
        self,
        encoder=None,
        model_name: str = DEFAULT_MODEL,
        cache_size: int = 4096
    ):
        self.model_name = model_name
        self._encoder = encoder
        self._lock = threading.Lock()
        self._cached_encode = lru_cache(maxsize=cache_size)(self._encode_uncached)

    def load_model(self) -> None:
        """
        Load the sentence-transformers model if no encoder was supplied.

        Raises:
            RuntimeError: If sentence-transformers is not installed.
        """
        with self._lock:
            self._ensure_encoder()

    def _ensure_encoder(self) -> None:
        if self._encoder is not None:
            return
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise RuntimeError(
                "sentence-transformers not available. Install with: pip install sentence-transformers"
            )
        logger.info(f"Loading sentence embeddings model: {self.model_name}")
        self._encoder = SentenceTransformer(self.model_name)

    def _encode_uncached(self, text: str) -> np.ndarray:
        with self._lock:
            self._ensure_encoder()
            vector = self._encoder.encode(text)
        embedding = np.array(vector, dtype=np.float32).reshape(-1)
        embedding.setflags(write=False)
        return embedding

    def encode(self, text: str) -> np.ndarray:
        """Embed ``text``; repeated calls with the same string hit the cache."""
        return self._cached_encode(text)

    def similarity(self, a: str, b: str) -> float:
        """Cosine similarity between the embeddings of two strings."""
        return cosine_similarity(self.encode(a), self.encode(b))

    def plausibility(self, word: str) -> float:
        """
        Score in [0, 1] of how much ``word`` behaves like a real word.

        The word and a known-good reference word are substituted into the
        same template sentences. For each template the cosine similarity of
        the two sentence embeddings is combined with the ratio of their
        norms (clamped to [0, 2], halved), and the per-template scores are
        averaged.
        """
        total = 0.0
        for template in PLAUSIBILITY_TEMPLATES:
            reference = self.encode(template.format(REFERENCE_WORD))
            candidate = self.encode(template.format(word))

            reference_norm = float(np.linalg.norm(reference))
            candidate_norm = float(np.linalg.norm(candidate))
            cosine = cosine_similarity(candidate, reference)
            if reference_norm > 0.0:
                norm_ratio = min(max(candidate_norm / reference_norm, 0.0), 2.0) / 2.0
            else:
                norm_ratio = 0.0

            score = min(max(0.7 * cosine + 0.3 * norm_ratio, 0.0), 1.0)
            logger.debug(
                f"  - Context '{template.format(word)}': cosine={cosine:.2f} "
                f"norm_ratio={norm_ratio:.2f} score={score:.2f}"
            )
            total += score

        combined = min(max(total / len(PLAUSIBILITY_TEMPLATES), 0.0), 1.0)
        logger.debug(f"  => Plausibility of '{word}' = {combined:.2f}")
        return combined

    def cache_info(self):
        """Hit/miss statistics of the embedding cache."""
        return self._cached_encode.cache_info()

    def clear_cache(self) -> None:
        self._cached_encode.cache_clear()
