"""Tests for the LanguageTool grammar corrector."""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from language_tool_python.utils import LanguageToolError

from voxaurora.cleanup.grammar import (
    GrammarCorrector,
    GrammarServerError,
    apply_matches,
    byte_span,
    char_span,
    validate_matches,
)


def match(offset, length, *values):
    return SimpleNamespace(offset=offset, errorLength=length, replacements=list(values))


def make_corrector(*results, retries=3):
    tool = Mock()
    tool.check.side_effect = list(results)
    sleep = Mock()
    corrector = GrammarCorrector("fr", retries=retries, backoff=0.5, tool=tool, sleep=sleep)
    return corrector, tool, sleep


class TestApplyMatches:
    """Offset arithmetic."""

    def test_single_replacement(self):
        assert apply_matches("Il mange une pomme.", [match(3, 5, "mangeait")]) == "Il mangeait une pomme."

    def test_applied_from_the_end(self):
        text = "je suis alle au marche"
        matches = [match(8, 4, "allé"), match(16, 6, "marché")]
        assert apply_matches(text, matches) == "je suis allé au marché"
        assert apply_matches(text, list(reversed(matches))) == "je suis allé au marché"

    def test_replacement_changing_length(self):
        matches = [match(0, 1, "Une"), match(2, 3, "x")]
        assert apply_matches("a bcd e", matches) == "Une x e"

    def test_multibyte_text(self):
        text = "ééé€ab cde fin"
        assert byte_span(text, 7, 3) == (12, 15)
        assert apply_matches(text, [match(7, 3, "ment")]) == "ééé€ab ment fin"

    def test_first_replacement_only(self):
        assert apply_matches("teh cat", [match(0, 3, "the", "ten")]) == "the cat"

    def test_match_without_replacement_is_ignored(self):
        assert apply_matches("Bonjour", [match(0, 7)]) == "Bonjour"

    def test_out_of_range_offsets_are_clamped(self):
        assert char_span("abc", 2, 10) == (2, 3)
        assert char_span("abc", -4, 2) == (0, 0)
        assert apply_matches("abc", [match(2, 10, "Z")]) == "abZ"


class TestValidateMatches:
    def test_accepts_well_formed_matches(self):
        matches = (match(0, 1, "A"), match(2, 1))
        assert validate_matches(matches) == list(matches)

    @pytest.mark.parametrize("bad", [
        SimpleNamespace(offset="3", errorLength=1, replacements=[]),
        SimpleNamespace(offset=3, replacements=[]),
        42,
    ])
    def test_rejects_malformed_matches(self, bad):
        with pytest.raises(ValueError, match="malformed"):
            validate_matches([match(0, 1, "A"), bad])


class TestGrammarCorrector:
    """Checks, retries and fallbacks."""

    def test_checks_the_text(self):
        corrector, tool, _ = make_corrector([match(0, 3, "Les")])

        assert corrector.correct("les enfants") == "Les enfants"
        tool.check.assert_called_once_with("les enfants")

    def test_no_matches(self):
        corrector, _, _ = make_corrector([])
        assert corrector.correct("Tout va bien.") == "Tout va bien."

    def test_retries_then_succeeds(self):
        corrector, tool, sleep = make_corrector(
            LanguageToolError("connection refused"),
            LanguageToolError("connection refused"),
            [match(0, 3, "Les")],
        )
        assert corrector.correct("les chats") == "Les chats"
        assert tool.check.call_count == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(0.5)

    def test_gives_up_after_all_attempts(self):
        corrector, tool, sleep = make_corrector(*[LanguageToolError("down")] * 3)
        assert corrector.correct("les chats") == "les chats"
        assert tool.check.call_count == 3
        assert sleep.call_count == 2

    def test_malformed_response_returns_original(self):
        corrector, tool, sleep = make_corrector([SimpleNamespace(offset=None, errorLength=1)])
        assert corrector.correct("texte") == "texte"
        assert tool.check.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_skips_the_server(self, text):
        corrector, tool, _ = make_corrector()
        assert corrector.correct(text) == text
        tool.check.assert_not_called()

    def test_single_attempt(self):
        corrector, _, sleep = make_corrector(LanguageToolError("down"), retries=1)
        assert corrector.correct("texte") == "texte"
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_correct_async(self):
        corrector, _, _ = make_corrector([match(0, 1, "C")])
        assert await corrector.correct_async("c'est") == "C'est"

    def test_close_releases_the_tool(self):
        corrector, tool, _ = make_corrector()
        corrector.close()
        tool.close.assert_called_once()
        corrector.close()
        tool.close.assert_called_once()


class TestLanguageToolStartup:
    """Creating the language_tool_python instance."""

    def test_local_server(self):
        with patch("voxaurora.cleanup.grammar.language_tool_python.LanguageTool") as factory:
            corrector = GrammarCorrector("fr")
            corrector.open()
            corrector.open()

        factory.assert_called_once_with("fr")

    def test_remote_server(self):
        with patch("voxaurora.cleanup.grammar.language_tool_python.LanguageTool") as factory:
            factory.return_value.check.return_value = [match(0, 1, "B")]
            corrector = GrammarCorrector("fr", remote_server="http://lt.local:8081", sleep=Mock())
            assert corrector.correct("bonjour") == "Bonjour"

        factory.assert_called_once_with("fr", remote_server="http://lt.local:8081")

    @pytest.mark.parametrize("error", [LanguageToolError("server down"), FileNotFoundError("java")])
    def test_startup_failure(self, error):
        with patch("voxaurora.cleanup.grammar.language_tool_python.LanguageTool", side_effect=error):
            with pytest.raises(GrammarServerError, match="Failed to start LanguageTool"):
                GrammarCorrector("fr").open()

    def test_unreachable_server_degrades_to_original_text(self):
        sleep = Mock()
        with patch("voxaurora.cleanup.grammar.language_tool_python.LanguageTool",
                   side_effect=LanguageToolError("refused")) as factory:
            corrector = GrammarCorrector("fr", remote_server="http://lt.local:8081", retries=2, sleep=sleep)
            assert corrector.correct("bonjour") == "bonjour"

        assert factory.call_count == 2
        sleep.assert_called_once_with(1.0)

    def test_reconnects_after_a_failed_start(self):
        tool = Mock()
        tool.check.return_value = []
        with patch("voxaurora.cleanup.grammar.language_tool_python.LanguageTool",
                   side_effect=[LanguageToolError("starting"), tool]):
            corrector = GrammarCorrector("fr", sleep=Mock())
            assert corrector.correct("Bonjour") == "Bonjour"

        tool.check.assert_called_once_with("Bonjour")
