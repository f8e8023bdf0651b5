"""Text repair and semantic matching."""

from .dictionary import DictionaryIndex, DictionaryLoadError, load_dictionaries
from .embeddings import EmbeddingOracle, cosine_similarity
from .engine import Engine, build_engine
from .merger import MergeDecision, MergeEngine
from .normalize import clean_transcript, normalize_word
from .phrases import CommandMatcher, PhraseMatcher, WakeWordDetector
from .tokenizer import Token, tokenize

__all__ = [
    "CommandMatcher",
    "DictionaryIndex",
    "DictionaryLoadError",
    "EmbeddingOracle",
    "Engine",
    "MergeDecision",
    "MergeEngine",
    "PhraseMatcher",
    "Token",
    "WakeWordDetector",
    "build_engine",
    "clean_transcript",
    "cosine_similarity",
    "load_dictionaries",
    "normalize_word",
    "tokenize",
]
