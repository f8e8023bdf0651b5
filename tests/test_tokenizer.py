"""Tests for word tokenization and transcript normalisation."""

import pytest

from voxaurora.text.normalize import clean_transcript, normalize_word
from voxaurora.text.tokenizer import Token, gap_is_whitespace, tokenize


class TestTokenize:
    """Letter runs with internal apostrophes."""

    def test_internal_apostrophe_joins_word(self):
        tokens = [t.text for t in tokenize("aujourd'hui il fait beau")]
        assert tokens == ["aujourd'hui", "il", "fait", "beau"]

    def test_typographic_apostrophe(self):
        assert [t.text for t in tokenize("aujourd’hui")] == ["aujourd’hui"]

    def test_apostrophe_before_space_is_not_joined(self):
        assert [t.text for t in tokenize("l' autoroute")] == ["l", "autoroute"]

    def test_digits_punctuation_and_underscores_split_tokens(self):
        tokens = [t.text for t in tokenize("abc123 def, ghi_jkl! 42")]
        assert tokens == ["abc", "def", "ghi", "jkl"]
        assert [t.text for t in tokenize("3½ kilo m² Ⅻ")] == ["kilo", "m"]

    @pytest.mark.parametrize("text, expected", [
        ("5 m² de sol", ["m", "de", "sol"]),
        ("moitié ½ tarte", ["moitié", "tarte"]),
        ("Louis XIV Ⅻ", ["Louis", "XIV"]),
        ("kilo m²", ["kilo", "m"]),
        ("x²y", ["x", "y"]),
    ])
    def test_numeric_symbols_are_not_letters(self, text, expected):
        assert [t.text for t in tokenize(text)] == expected

    def test_superscript_span_excludes_the_number(self):
        (token,) = tokenize("m²")
        assert token == Token(0, 1, "m")

    def test_apostrophe_next_to_number_is_not_joined(self):
        assert [t.text for t in tokenize("l'²a d'")] == ["l", "a", "d"]

    def test_accented_letters(self):
        assert [t.text for t in tokenize("Élève éléphant")] == ["Élève", "éléphant"]

    def test_spans_point_into_source(self):
        text = "  La voiture, roule  vite."
        tokens = list(tokenize(text))
        for token in tokens:
            assert text[token.start:token.end] == token.text
        for left, right in zip(tokens, tokens[1:]):
            assert left.end <= right.start

    def test_restartable(self):
        text = "bon jour à tous"
        assert list(tokenize(text)) == list(tokenize(text))

    def test_empty_text(self):
        assert list(tokenize("")) == []
        assert list(tokenize("123 !?")) == []


class TestGapIsWhitespace:
    def test_whitespace_gap(self):
        text = "bon \t jour"
        left, right = tokenize(text)
        assert gap_is_whitespace(text, left, right)

    def test_punctuation_gap(self):
        text = "bon, jour"
        left, right = tokenize(text)
        assert not gap_is_whitespace(text, left, right)

    def test_empty_gap(self):
        assert gap_is_whitespace("ab", Token(0, 1, "a"), Token(1, 2, "b"))


class TestCleanTranscript:
    """Whisper tag stripping and whitespace collapsing."""

    def test_removes_tags_and_extra_spaces(self):
        raw = "[_BEG_] Aujourd'hui est un [_TT_42] jour  magnifique."
        assert clean_transcript(raw) == "Aujourd'hui est un jour magnifique."

    @pytest.mark.parametrize("raw", [
        "[_BEG_]bonjour[_TT_1]   tout le   monde[_TT_150]",
        "  [_TT_0] [_BEG_]  a  [_TT_99]\t\tb \n c  ",
        "[_BEG_][_TT_12][_TT_13]",
    ])
    def test_no_markers_or_double_spaces_remain(self, raw):
        cleaned = clean_transcript(raw)
        assert "[_BEG_]" not in cleaned
        assert "[_TT_" not in cleaned
        assert "  " not in cleaned

    def test_unnumbered_timing_tag_is_kept(self):
        assert clean_transcript("a [_TT_] b") == "a [_TT_] b"


class TestNormalizeWord:
    def test_lowercases(self):
        assert normalize_word("BonJour") == "bonjour"

    def test_nfkc(self):
        assert normalize_word("ＡＢＣ") == "abc"
        assert normalize_word("ﬁn") == "fin"
