"""Tests for spelled-letter extraction from ASR transcripts."""

import pytest

from spellvoice.extraction.pattern_extractor import (
    NO_LETTER_SEQUENCE,
    MatchKind,
    TokenKind,
    extract,
    extract_spelling_pattern,
    find_word_fuzzy,
    is_fuzzy_match,
    normalize_word,
    tokenize,
)


class TestTokenize:
    def test_splits_on_separators_and_normalizes(self):
        tokens = tokenize("Cat. C, A-T_ Cat!")
        assert [t.text for t in tokens] == ["cat", "c", "a", "t", "cat"]
        assert [t.position for t in tokens] == [0, 1, 2, 3, 4]

    def test_drops_punctuation_only_tokens(self):
        assert [t.text for t in tokenize("cat ... ! c")] == ["cat", "c"]

    def test_token_kinds(self):
        letter, word = tokenize("b bee")
        assert letter.kind is TokenKind.SINGLE_LETTER
        assert word.kind is TokenKind.WORD

    def test_empty_text(self):
        assert tokenize("") == []

    def test_normalize_word(self):
        assert normalize_word("  Fisher's ") == "fishers"


class TestFuzzyMatch:
    @pytest.mark.parametrize(
        "token,word",
        [
            ("cats", "cat"),
            ("fishur", "fisher"),
            ("fissure", "fisher"),
            ("elephent", "elephant"),
        ],
    )
    def test_accepts_close_variants(self, token, word):
        assert is_fuzzy_match(token, word)

    @pytest.mark.parametrize(
        "token,word",
        [
            ("dog", "cat"),
            ("elephant", "cat"),
            ("the", "zebra"),
            ("", "cat"),
        ],
    )
    def test_rejects_unrelated_words(self, token, word):
        assert not is_fuzzy_match(token, word)

    def test_single_letters_are_not_fuzzy_anchors(self):
        tokens = tokenize("c a t")
        assert find_word_fuzzy(tokens, "cat") == -1


class TestExtraction:
    def test_word_letters_word(self):
        result = extract_spelling_pattern("CAT c a t CAT", "cat")
        assert result.spelling == "cat"
        assert result.is_valid
        assert result.confidence == 100
        assert result.anchors.first.position == 0
        assert result.anchors.second.position == 4
        assert result.anchors.first.match_kind is MatchKind.EXACT
        assert result.anchors.letters.letters == ("C", "A", "T")
        assert result.anchors.letters.positions == (1, 2, 3)

    def test_punctuated_transcript(self):
        result = extract("Cat. C, A, T. Cat.", "cat")
        assert result.spelling == "cat"
        assert result.confidence == 100

    def test_fuzzy_anchors(self):
        result = extract("fishur f i s h e r fishur", "fisher")
        assert result.spelling == "fisher"
        assert result.anchors.first is not None
        assert result.anchors.first.match_kind is MatchKind.FUZZY
        assert result.confidence >= 70
        assert "Used fuzzy matching for first word" in result.issues

    def test_no_anchor_fallback_uses_longest_run(self):
        result = extract("p i z z a", "pizzaria")
        assert result.spelling == "pizza"
        assert result.anchors.count == 0
        assert not result.is_valid
        assert result.confidence == 30
        assert "No anchors found - extracted longest letter sequence" in result.issues

    def test_longest_run_wins(self):
        result = extract("x y the c a t dog", "zebra")
        assert result.spelling == "cat"

    def test_single_anchor_fallback(self):
        result = extract("cat c a t um", "cat")
        assert result.spelling == "cat"
        assert result.anchors.second is None
        assert result.is_valid
        assert result.confidence == 50
        assert "Only one anchor found - used fallback extraction" in result.issues

    def test_single_anchor_stops_at_first_word(self):
        result = extract("cat c a well t", "cat")
        assert result.spelling == "ca"

    @pytest.mark.parametrize(
        "transcript,confidence",
        [
            ("cat c a t s cat", 90),
            ("cat c a cat", 90),
            ("cat c cat", 80),
            ("cat c a t x y z cat", 70),
        ],
    )
    def test_letter_count_mismatch(self, transcript, confidence):
        result = extract(transcript, "cat")
        assert result.anchors.count == 2
        assert result.confidence == confidence

    def test_anchors_without_letters(self):
        result = extract("cat cat", "cat")
        assert result.spelling == ""
        assert not result.is_valid
        assert result.confidence == 0
        assert "No letters found between words" in result.issues

    def test_empty_input(self):
        result = extract("", "cat")
        assert result.spelling == ""
        assert result.confidence == 0
        assert not result.is_valid
        assert NO_LETTER_SEQUENCE in result.issues

    def test_words_only(self):
        result = extract("hello there", "cat")
        assert result.spelling == ""
        assert result.confidence == 0
        assert NO_LETTER_SEQUENCE in result.issues

    def test_single_letter_target_excludes_anchors(self):
        result = extract("a x y a", "a")
        assert result.spelling == "xy"
        assert result.anchors.first.position == 0
        assert result.anchors.second.position == 3

    def test_single_letter_target_said_spelled_said(self):
        result = extract("a a a", "a")
        assert result.anchors.first.position == 0
        assert result.anchors.second.position == 1
        assert result.spelling == ""
        assert not result.is_valid
        assert result.confidence == 0
        assert "No letters found between words" in result.issues

    def test_spelling_is_lowercase_alpha(self):
        result = extract("Cat C 1 A T Cat", "cat")
        assert result.spelling == "cat"
        assert result.spelling.isalpha() and result.spelling.islower()

    def test_idempotent(self):
        first = extract("fishur f i s h e r fishur", "fisher")
        second = extract("fishur f i s h e r fishur", "fisher")
        assert first == second

    def test_to_dict_shape(self):
        payload = extract("cat c a t", "cat").to_dict()
        assert payload["anchors"]["first"]["found"] is True
        assert payload["anchors"]["second"] == {"found": False, "position": -1, "text": ""}
        assert payload["anchors"]["letters"]["text"] == ["C", "A", "T"]
