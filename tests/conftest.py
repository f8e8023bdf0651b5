"""
Shared fixtures: in-memory dictionaries and deterministic embedding fakes.

Nothing here touches the network, a microphone or a real model.
"""

import hashlib
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from voxaurora.text.dictionary import DictionaryIndex
from voxaurora.text.embeddings import EmbeddingOracle

DIMENSIONS = 256


def unit(axis: int, dimensions: int = DIMENSIONS) -> np.ndarray:
    """Basis vector along ``axis``."""
    vector = np.zeros(dimensions, dtype=np.float32)
    vector[axis] = 1.0
    return vector


def hashed_vector(text: str, dimensions: int = DIMENSIONS) -> np.ndarray:
    """Pseudo-random vector derived from ``text``; unrelated strings are near-orthogonal."""
    seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:16], 16)
    return np.random.default_rng(seed).standard_normal(dimensions).astype(np.float32)


class FakeEncoder:
    """Encoder returning fixed vectors for known strings and hashed ones otherwise."""

    def __init__(self, vectors=None, failing=()):
        self.vectors = dict(vectors or {})
        self.failing = set(failing)
        self.calls = []

    def encode(self, text):
        self.calls.append(text)
        if text in self.failing:
            raise RuntimeError(f"cannot encode {text!r}")
        if text in self.vectors:
            return self.vectors[text]
        return hashed_vector(text)


class StubPlausibility:
    """Stands in for the embedding oracle in merge tests."""

    def __init__(self, scores=None, default=0.5, error=None):
        self.scores = dict(scores or {})
        self.default = default
        self.error = error
        self.calls = []

    def plausibility(self, word):
        self.calls.append(word)
        if self.error is not None:
            raise self.error
        return self.scores.get(word, self.default)


@pytest.fixture
def make_index():
    """Build DictionaryIndex objects from word lists, closing them afterwards."""
    created = []

    def factory(**words_by_language):
        index = DictionaryIndex.from_words(words_by_language)
        created.append(index)
        return index

    yield factory
    for index in created:
        index.close()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def oracle(fake_encoder):
    return EmbeddingOracle(encoder=fake_encoder)
