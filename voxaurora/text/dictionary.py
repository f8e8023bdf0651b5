"""
Per-language word dictionaries.

Downloads (or reads from a local cache) the Hunspell word lists published
by LibreOffice, normalises them and builds an Aho-Corasick automaton for
exact lookups. The flat word list is kept alongside the automaton for
nearest-neighbour edit distance queries.

The dictionaries are a hard prerequisite of the text repair pipeline: any
failure to obtain or parse one raises DictionaryLoadError.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
import logging

import ahocorasick
import requests
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from .normalize import normalize_word

logger = logging.getLogger(__name__)

DICTIONARY_SOURCES: Dict[str, str] = {
    "fr": "https://raw.githubusercontent.com/LibreOffice/dictionaries/master/fr_FR/fr.dic",
    "en": "https://raw.githubusercontent.com/LibreOffice/dictionaries/master/en/en_US.dic",
}

DOWNLOAD_TIMEOUT = 30.0


class DictionaryLoadError(Exception):
    """Raised when a required dictionary cannot be obtained or parsed."""
    pass


@dataclass(frozen=True)
class LanguageDictionary:
    """Immutable word set of one language."""
    language: str
    automaton: ahocorasick.Automaton
    words: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.words)


def parse_hunspell_dic(content: str) -> list:
    """
    Extract the words of a Hunspell ``.dic`` file.

    The first line (entry count) is skipped, affix flags after ``/`` and
    morphological fields after a tab are dropped, and words are normalised
    and deduplicated in first-seen order.
    """
    seen = set()
    words = []
    for line in content.splitlines()[1:]:
        word = line.split("/", 1)[0].split("\t", 1)[0]
        word = normalize_word(word.strip())
        if word and word not in seen:
            seen.add(word)
            words.append(word)
    return words


def build_dictionary(language: str, words: Iterable[str]) -> LanguageDictionary:
    """Build a LanguageDictionary from already extracted words."""
    entries = []
    seen = set()
    for word in words:
        word = normalize_word(word.strip())
        if word and word not in seen:
            seen.add(word)
            entries.append(word)

    automaton = ahocorasick.Automaton()
    for index, word in enumerate(entries):
        automaton.add_word(word, index)
    automaton.make_automaton()

    return LanguageDictionary(language=language, automaton=automaton, words=tuple(entries))


def contains_exact(dictionary: LanguageDictionary, word: str) -> bool:
    """True iff ``word`` is a complete entry, not merely part of a longer one."""
    if not word:
        return False
    return dictionary.automaton.exists(word)


def nearest_distance(words: Sequence[str], query: str) -> Optional[int]:
    """Smallest Levenshtein distance between ``query`` and any entry of ``words``."""
    if not words:
        return None
    best = process.extractOne(normalize_word(query), words, scorer=Levenshtein.distance)
    return int(best[1])


def is_similar(words: Sequence[str], query: str, max_distance: int) -> bool:
    """True iff some entry lies within ``max_distance`` edits of ``query``."""
    if not words:
        return False
    best = process.extractOne(
        normalize_word(query),
        words,
        scorer=Levenshtein.distance,
        score_cutoff=max_distance,
    )
    return best is not None


class DictionaryIndex:
    """
    All loaded language dictionaries.

    Read-only after construction, so lookups may run from any thread. The
    per-language checks of a lookup fan out on a small thread pool.
    """

    def __init__(self, dictionaries: Mapping[str, LanguageDictionary]):
        if not dictionaries:
            raise DictionaryLoadError("At least one dictionary is required")
        self._dictionaries: Dict[str, LanguageDictionary] = dict(dictionaries)
        self._executor = ThreadPoolExecutor(
            max_workers=len(self._dictionaries),
            thread_name_prefix="dictionary-lookup",
        )

    @classmethod
    def from_words(cls, words_by_language: Mapping[str, Iterable[str]]) -> "DictionaryIndex":
        """Build an index from in-memory word lists."""
        return cls({
            language: build_dictionary(language, words)
            for language, words in words_by_language.items()
        })

    @property
    def languages(self) -> list:
        return list(self._dictionaries)

    def __getitem__(self, language: str) -> LanguageDictionary:
        return self._dictionaries[language]

    def __len__(self) -> int:
        return len(self._dictionaries)

    def lookup(
        self,
        merged_key: str,
        spaced_key: str,
        max_distance: int = 1
    ) -> Tuple[bool, bool]:
        """
        Check a merge candidate against every language.

        Args:
            merged_key: Normalised concatenated form
            spaced_key: Normalised space-joined form
            max_distance: Edit distance accepted for the concatenated form

        Returns:
            ``(in_dict, spaced_in_dict)``. The concatenated form is accepted
            by exact or fuzzy match, the spaced form by exact match only.
        """
        results = list(self._executor.map(
            lambda dictionary: self._lookup_one(dictionary, merged_key, spaced_key, max_distance),
            self._dictionaries.values(),
        ))
        in_dict = any(found for found, _ in results)
        spaced_in_dict = any(spaced for _, spaced in results)
        return in_dict, spaced_in_dict

    @staticmethod
    def _lookup_one(
        dictionary: LanguageDictionary,
        merged_key: str,
        spaced_key: str,
        max_distance: int
    ) -> Tuple[bool, bool]:
        found = contains_exact(dictionary, merged_key)
        if found:
            logger.debug(f"Found '{merged_key}' in {dictionary.language} dictionary")
        elif max_distance > 0 and is_similar(dictionary.words, merged_key, max_distance):
            logger.debug(f"Found '{merged_key}' as similar in {dictionary.language} dictionary")
            found = True

        spaced = contains_exact(dictionary, spaced_key)
        if spaced:
            logger.debug(f"Found spaced version '{spaced_key}' in {dictionary.language} dictionary")
        return found, spaced

    def close(self) -> None:
        """Release the lookup thread pool."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "DictionaryIndex":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _read_or_download(
    language: str,
    url: str,
    cache_path: Path,
    session: requests.Session
) -> str:
    if cache_path.exists():
        logger.info(f"Using cached dictionary for {language}: {cache_path}")
        try:
            return cache_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DictionaryLoadError(
                f"Cannot read dictionary for '{language}' from {cache_path}: {e}"
            ) from e

    logger.info(f"Downloading dictionary for {language} from {url}")
    try:
        response = session.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DictionaryLoadError(
            f"Cannot download dictionary for '{language}' from {url}: {e}"
        ) from e

    response.encoding = "utf-8"
    content = response.text
    try:
        cache_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise DictionaryLoadError(
            f"Cannot write dictionary cache for '{language}' to {cache_path}: {e}"
        ) from e
    return content


def load_dictionaries(
    languages: Iterable[str],
    cache_dir: Union[str, Path] = "dics",
    sources: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None
) -> DictionaryIndex:
    """
    Load the dictionary of every requested language.

    Args:
        languages: Language codes to load (e.g. ``["fr", "en"]``)
        cache_dir: Directory holding the cached ``<lang>.dic`` files
        sources: Extra or overriding language -> URL mapping
        session: HTTP session used for downloads

    Returns:
        DictionaryIndex over all requested languages.

    Raises:
        DictionaryLoadError: If any language cannot be loaded.
    """
    urls = dict(DICTIONARY_SOURCES)
    if sources:
        urls.update(sources)

    cache_dir = Path(cache_dir)
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DictionaryLoadError(f"Cannot create dictionary cache directory {cache_dir}: {e}") from e

    session = session or requests.Session()
    dictionaries = {}
    for language in languages:
        if language in dictionaries:
            continue
        url = urls.get(language)
        if url is None:
            raise DictionaryLoadError(f"No dictionary source known for language '{language}'")

        content = _read_or_download(language, url, cache_dir / f"{language}.dic", session)
        words = parse_hunspell_dic(content)
        if not words:
            raise DictionaryLoadError(f"Dictionary for '{language}' contains no words")

        dictionaries[language] = build_dictionary(language, words)
        logger.info(f"{len(words)} words loaded for {language}")

    return DictionaryIndex(dictionaries)
