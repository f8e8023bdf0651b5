"""
The text engine: everything the repair and matching steps share.

Built once at startup and handed to the session, so nothing in the text
package relies on module-level state and tests can assemble an engine
from fakes.
"""

from dataclasses import dataclass
from typing import Iterable
import logging

from .dictionary import DictionaryIndex, load_dictionaries
from .embeddings import EmbeddingOracle
from .merger import MergeEngine
from .phrases import CommandMatcher, WakeWordDetector

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Read-only dictionaries, the embedding model and the components using them."""
    index: DictionaryIndex
    oracle: EmbeddingOracle
    merger: MergeEngine
    wake_words: WakeWordDetector
    commands: CommandMatcher

    @classmethod
    def assemble(
        cls,
        index: DictionaryIndex,
        oracle: EmbeddingOracle,
        commands: Iterable = (),
        max_distance: int = 1
    ) -> "Engine":
        return cls(
            index=index,
            oracle=oracle,
            merger=MergeEngine(index, oracle, max_distance=max_distance),
            wake_words=WakeWordDetector(oracle),
            commands=CommandMatcher(commands, oracle),
        )

    def close(self) -> None:
        self.index.close()


def build_engine(settings, commands: Iterable = (), encoder=None) -> Engine:
    """
    Load dictionaries and the embedding model.

    Blocking and CPU-heavy; run it off the event loop.

    Raises:
        DictionaryLoadError: If a dictionary cannot be loaded.
    """
    index = load_dictionaries(settings.dictionary_languages, settings.dictionary_dir)
    try:
        oracle = EmbeddingOracle(encoder=encoder, model_name=settings.embedding_model)
        oracle.load_model()

        engine = Engine.assemble(index, oracle, commands)
        engine.wake_words.precompute()
    except Exception:
        index.close()
        raise

    logger.info(
        f"Text engine ready: languages={index.languages}, "
        f"{len(engine.commands.phrases)} command triggers"
    )
    return engine
