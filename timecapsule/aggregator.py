from dataclasses import dataclass
from typing import Iterable

VERY_POSITIVE = "Very Positive"
MOSTLY_POSITIVE = "Mostly Positive"
NEUTRAL = "Neutral/Mixed"
SLIGHTLY_NEGATIVE = "Slightly Negative"
QUITE_NEGATIVE = "Quite Negative"


@dataclass(frozen=True)
class SentimentSummary:
    total: float
    average: float
    mood: str
    count: int


def classify_mood(average: float) -> str:
    """Map an average score to a mood label. Thresholds are checked top to bottom."""
    if average > 0.5:
        return VERY_POSITIVE
    if average > 0:
        return MOSTLY_POSITIVE
    if average == 0:
        return NEUTRAL
    if average >= -0.5:
        return SLIGHTLY_NEGATIVE
    return QUITE_NEGATIVE


def summarize(scores: Iterable[float]) -> SentimentSummary:
    """Aggregate every stored score, non-text contents (scored 0) included."""
    scores = list(scores)
    total = sum(scores)
    average = total / len(scores) if scores else 0
    return SentimentSummary(total=total, average=average, mood=classify_mood(average), count=len(scores))


def summarize_contents(contents) -> SentimentSummary:
    return summarize(c.sentiment_score or 0 for c in contents)
