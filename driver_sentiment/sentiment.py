"""Lexicon-based sentiment scorer for driver feedback."""
import logging
import math
import re
from typing import List, Optional, Protocol

from driver_sentiment.schemas import SentimentResult

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 3.0

POSITIVE_WORDS = frozenset([
    # General
    "good", "great", "excellent", "amazing", "wonderful", "fantastic",
    "awesome", "outstanding", "perfect", "superb", "brilliant",
    # Driving
    "safe", "smooth", "clean", "friendly", "polite", "punctual",
    "comfortable", "helpful", "professional", "courteous", "pleasant",
    "careful", "fast", "efficient", "reliable", "respectful",
    "kind", "nice", "calm", "gentle", "skilled",
    # Experience
    "loved", "enjoyed", "happy", "satisfied", "impressed",
    "recommend", "best", "thank", "thanks", "appreciate",
])

NEGATIVE_WORDS = frozenset([
    # General
    "bad", "terrible", "horrible", "awful", "worst", "poor",
    "dreadful", "disappointing", "unacceptable", "pathetic",
    # Driving
    "rude", "dangerous", "reckless", "dirty", "late", "slow",
    "aggressive", "unsafe", "careless", "rough", "unprofessional",
    "rash", "speeding", "honking", "yelling", "smoking",
    # Experience
    "hated", "angry", "upset", "scared", "frustrated",
    "complained", "never", "avoid", "worse", "nightmare",
    "overcharged", "refused", "lost", "wrong", "broke",
])

_NON_LETTERS = re.compile(r"[^a-z\s]")


def round_half_up(value: float, digits: int) -> float:
    """Round like a calculator does (0.05 -> 0.1), not banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def score_to_label(score: float) -> str:
    """Three-bucket label: >=3.5 positive, >=2.5 neutral, else negative."""
    if score >= 3.5:
        return "positive"
    if score >= 2.5:
        return "neutral"
    return "negative"


def tokenize(text: str) -> List[str]:
    """Lowercase, keep letters and whitespace only, drop one-letter tokens."""
    cleaned = _NON_LETTERS.sub("", text.lower())
    return [word for word in cleaned.split() if len(word) > 1]


class Scorer(Protocol):
    """Anything that can turn feedback text and an optional rating into a result."""

    def score(self, text: str, explicit_rating: Optional[int] = None) -> SentimentResult: ...


class SentimentScorer:
    """Bag-of-words scorer over fixed positive/negative lexicons.

    Design decisions:
    - Exact token membership, no substring matching ("unsafe" never counts as "safe")
    - Text maps to a 1-5 scale so it can be blended with star ratings
    - Pure and deterministic: same input, same result
    """

    def __init__(self, positive_words=POSITIVE_WORDS, negative_words=NEGATIVE_WORDS):
        self.positive_words = frozenset(positive_words)
        self.negative_words = frozenset(negative_words)
        logger.debug(
            f"Sentiment lexicon loaded: {len(self.positive_words)} positive, "
            f"{len(self.negative_words)} negative words"
        )

    def score(self, text: str, explicit_rating: Optional[int] = None) -> SentimentResult:
        """Score feedback text, blending in an explicit star rating when given.

        Args:
            text: Raw feedback text (may be empty)
            explicit_rating: Optional 1-5 star rating; anything else is ignored

        Returns:
            SentimentResult with score, label and matched words
        """
        positive_count = 0
        negative_count = 0
        matched_words: List[str] = []

        for word in tokenize(text or ""):
            if word in self.positive_words:
                positive_count += 1
                matched_words.append(f"+{word}")
            elif word in self.negative_words:
                negative_count += 1
                matched_words.append(f"-{word}")

        final_score = self._text_score(positive_count, negative_count)

        if self._is_valid_rating(explicit_rating):
            final_score = round_half_up((final_score + explicit_rating) / 2, 1)

        return SentimentResult(
            score=final_score,
            label=score_to_label(final_score),
            matched_word_count=positive_count + negative_count,
            matched_words=tuple(matched_words)
        )

    @staticmethod
    def _text_score(positive_count: int, negative_count: int) -> float:
        """Map the positive/negative balance from [-1, 1] onto [1, 5]."""
        matched = positive_count + negative_count
        if matched == 0:
            return NEUTRAL_SCORE

        ratio = (positive_count - negative_count) / matched
        return round_half_up(((ratio + 1) / 2) * 4 + 1, 1)

    @staticmethod
    def _is_valid_rating(rating) -> bool:
        # bool is an int subclass; True must not count as a 1-star rating
        if rating is None or isinstance(rating, bool):
            return False
        return isinstance(rating, int) and 1 <= rating <= 5
