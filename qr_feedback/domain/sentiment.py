"""Default sentiment classifier (rating threshold)."""

from typing import Callable, Optional

from qr_feedback.domain.models import Sentiment

SentimentClassifier = Callable[[int, Optional[str]], Sentiment]


def classify_sentiment(rating: int, text: Optional[str] = None) -> Sentiment:
    """4-5 positive, 3 neutral, 1-2 negative. ``text`` is ignored."""
    if rating >= 4:
        return Sentiment.POSITIVE
    if rating == 3:
        return Sentiment.NEUTRAL
    return Sentiment.NEGATIVE
