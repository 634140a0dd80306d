"""
Spelling extraction from "word -> letters -> word" transcripts.

The user says the target word, spells it letter by letter, then says the word
again. ASR output for that is noisy ("Cat. C, A, T. Cat." or "fishur f i s h e r
fishur"), so the two spoken words are located as anchors (exact match first,
fuzzy match second) and the single-letter tokens between them form the
spelling. When anchors are missing the extractor falls back to the letters
after a single anchor, then to the longest run of letters anywhere.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

NO_LETTER_SEQUENCE = "No letter sequence found in transcription"

_SEPARATORS = re.compile(r"[\s\-,._]+")
_PUNCTUATION = re.compile(r"[^\w\s]")
_SINGLE_LETTER = re.compile(r"^[a-z]$")

_FUZZY_MAX_LENGTH_GAP = 3
_FUZZY_PREFIX_RATIO = 0.6
_FUZZY_PREFIX_MIN_LENGTH = 3
_FUZZY_POSITIONAL_RATIO = 0.7


class TokenKind(str, Enum):
    SINGLE_LETTER = "single_letter"
    WORD = "word"


class MatchKind(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class Token:
    text: str
    position: int

    @property
    def kind(self) -> TokenKind:
        if _SINGLE_LETTER.match(self.text):
            return TokenKind.SINGLE_LETTER
        return TokenKind.WORD

    @property
    def is_letter(self) -> bool:
        return self.kind is TokenKind.SINGLE_LETTER


@dataclass(frozen=True)
class Anchor:
    position: int
    matched_text: str
    match_kind: MatchKind


@dataclass(frozen=True)
class LetterRun:
    positions: tuple[int, ...] = ()
    letters: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.letters)


@dataclass(frozen=True)
class PatternAnchors:
    first: Anchor | None = None
    letters: LetterRun = field(default_factory=LetterRun)
    second: Anchor | None = None

    @property
    def count(self) -> int:
        return int(self.first is not None) + int(self.second is not None)


@dataclass(frozen=True)
class PatternExtractionResult:
    spelling: str
    confidence: int
    is_valid: bool
    anchors: PatternAnchors
    issues: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        def anchor_payload(anchor: Anchor | None) -> dict:
            if anchor is None:
                return {"found": False, "position": -1, "text": ""}
            return {
                "found": True,
                "position": anchor.position,
                "text": anchor.matched_text,
                "match": anchor.match_kind.value,
            }

        return {
            "spelling": self.spelling,
            "confidence": self.confidence,
            "is_valid": self.is_valid,
            "anchors": {
                "first": anchor_payload(self.anchors.first),
                "letters": {
                    "found": self.anchors.letters.found,
                    "positions": list(self.anchors.letters.positions),
                    "text": list(self.anchors.letters.letters),
                },
                "second": anchor_payload(self.anchors.second),
            },
            "issues": list(self.issues),
        }


def normalize_word(word: str) -> str:
    return _PUNCTUATION.sub("", word.strip().lower())


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    for raw in _SEPARATORS.split(text or ""):
        normalized = normalize_word(raw)
        if normalized:
            tokens.append(Token(normalized, len(tokens)))
    return tokens


def find_word_occurrence(tokens: list[Token], word: str, start: int = 0) -> int:
    target = normalize_word(word)
    for index in range(start, len(tokens)):
        if tokens[index].text == target:
            return index
    return -1


def is_fuzzy_match(token: str, word: str) -> bool:
    if not token or not word:
        return False
    if token == word:
        return True
    gap = abs(len(token) - len(word))
    if (token in word or word in token) and gap <= _FUZZY_MAX_LENGTH_GAP:
        return True
    shorter = min(len(token), len(word))
    if shorter >= _FUZZY_PREFIX_MIN_LENGTH:
        prefix = int(shorter * _FUZZY_PREFIX_RATIO)
        if token[:prefix] == word[:prefix]:
            return True
    return _positionally_similar(token, word)


def _positionally_similar(first: str, second: str) -> bool:
    if abs(len(first) - len(second)) > _FUZZY_MAX_LENGTH_GAP:
        return False
    matches = sum(1 for a, b in zip(first, second) if a == b)
    return matches / max(len(first), len(second)) >= _FUZZY_POSITIONAL_RATIO


def find_word_fuzzy(tokens: list[Token], word: str, start: int = 0) -> int:
    target = normalize_word(word)
    skip_letters = len(target) > 1
    for index in range(start, len(tokens)):
        token = tokens[index]
        # Spelled letters are never anchors for a longer word.
        if skip_letters and token.is_letter:
            continue
        if is_fuzzy_match(token.text, target):
            return index
    return -1


def extract_letters_between(tokens: list[Token], start: int, end: int) -> list[Token]:
    return [token for token in tokens[start + 1 : end] if token.is_letter]


def _letters_after(tokens: list[Token], anchor: int) -> list[Token]:
    letters: list[Token] = []
    for token in tokens[anchor + 1 :]:
        if not token.is_letter:
            break
        letters.append(token)
    return letters


def _longest_letter_run(tokens: list[Token]) -> list[Token]:
    longest: list[Token] = []
    current: list[Token] = []
    for token in tokens:
        if token.is_letter:
            current.append(token)
            continue
        if len(current) > len(longest):
            longest = current
        current = []
    if len(current) > len(longest):
        longest = current
    return longest


def validate_pattern_structure(anchors: PatternAnchors) -> bool:
    return anchors.count > 0 and anchors.letters.found


def calculate_confidence(anchors: PatternAnchors, expected_word: str) -> int:
    has_letters = anchors.letters.found
    if has_letters and anchors.count == 2:
        difference = abs(len(anchors.letters.letters) - len(normalize_word(expected_word)))
        if difference == 0:
            return 100
        if difference == 1:
            return 90
        if difference == 2:
            return 80
        return 70
    if has_letters and anchors.count == 1:
        return 50
    if has_letters:
        return 30
    return 0


def _locate(
    tokens: list[Token], word: str, start: int
) -> tuple[int, MatchKind | None]:
    index = find_word_occurrence(tokens, word, start)
    if index != -1:
        return index, MatchKind.EXACT
    index = find_word_fuzzy(tokens, word, start)
    if index != -1:
        return index, MatchKind.FUZZY
    return -1, None


def extract_spelling_pattern(transcript: str, target_word: str) -> PatternExtractionResult:
    """Extract the spelled letters of ``target_word`` from an ASR transcript.

    Pure function: identical inputs always give identical results.
    """
    tokens = tokenize(transcript)
    issues: list[str] = []
    first: Anchor | None = None
    second: Anchor | None = None

    first_index, first_kind = _locate(tokens, target_word, 0)
    if first_kind is not None:
        first = Anchor(first_index, tokens[first_index].text, first_kind)
        if first_kind is MatchKind.FUZZY:
            issues.append("Used fuzzy matching for first word")
        # Nearest next occurrence; for a one-letter word "a a a" anchors at 0 and 1.
        second_index, second_kind = _locate(tokens, target_word, first_index + 1)
        if second_kind is not None:
            second = Anchor(second_index, tokens[second_index].text, second_kind)
            if second_kind is MatchKind.FUZZY:
                issues.append("Used fuzzy matching for second word")
        else:
            issues.append("Second word not found in transcription")
    else:
        issues.append("First word not found in transcription")

    if first is not None and second is not None:
        letters = extract_letters_between(tokens, first.position, second.position)
        if not letters:
            issues.append("No letters found between words")
    elif first is not None:
        letters = _letters_after(tokens, first.position)
        if letters:
            issues.append("Only one anchor found - used fallback extraction")
        else:
            issues.append("No letters found after anchor word")
    else:
        letters = _longest_letter_run(tokens)
        if letters:
            issues.append("No anchors found - extracted longest letter sequence")
        else:
            issues.append(NO_LETTER_SEQUENCE)

    run = LetterRun(
        positions=tuple(token.position for token in letters),
        letters=tuple(token.text.upper() for token in letters),
    )
    anchors = PatternAnchors(first=first, letters=run, second=second)
    return PatternExtractionResult(
        spelling="".join(run.letters).lower(),
        confidence=calculate_confidence(anchors, target_word),
        is_valid=validate_pattern_structure(anchors),
        anchors=anchors,
        issues=tuple(issues),
    )


extract = extract_spelling_pattern
