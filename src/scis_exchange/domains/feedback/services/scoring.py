"""
Treatment Evaluation Score (TES) and sentiment scoring
"""

from typing import Optional
import logging

from ..models.feedback import FeedbackScore, Sentiment
from ....providers.sentiment import SentimentProvider
from ....core.config import ScoringConfig, get_scoring_config
from ....core.exceptions import ValidationFailure

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

SENTIMENT_BONUS = {
    Sentiment.POSITIVE: 1.0,
    Sentiment.NEUTRAL: 0.5,
    Sentiment.NEGATIVE: 0.0,
}


def normalize_rating(rating: int) -> float:
    """Map a 1..5 rating onto 0..1"""
    return (rating - MIN_RATING) / (MAX_RATING - MIN_RATING)


def validate_rating(name: str, rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationFailure(f"{name} must be an integer")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationFailure(f"{name} must be between {MIN_RATING} and {MAX_RATING}")
    return rating


class FeedbackScorer:
    """
    Scores one feedback submission.

    TES = 100 * (w_pre*n(pre) + w_post*n(post) + w_sat*n(sat) + w_text*bonus(sentiment))
    with the weights normalized to sum to 1 and the result clamped to [0, 100].
    """

    def __init__(self, sentiment_provider: SentimentProvider, config: Optional[ScoringConfig] = None):
        self.sentiment_provider = sentiment_provider
        config = config or get_scoring_config()

        weights = [
            config.pre_treatment_weight,
            config.post_treatment_weight,
            config.satisfaction_weight,
            config.sentiment_weight,
        ]
        total = sum(weights)
        if total <= 0:
            raise ValueError("TES weights must sum to a positive value")
        self.w_pre, self.w_post, self.w_sat, self.w_text = (w / total for w in weights)

    def treatment_evaluation_score(self, pre: int, post: int, satisfaction: int, sentiment: Sentiment) -> float:
        score = 100.0 * (
            self.w_pre * normalize_rating(pre)
            + self.w_post * normalize_rating(post)
            + self.w_sat * normalize_rating(satisfaction)
            + self.w_text * SENTIMENT_BONUS[sentiment]
        )
        return round(min(100.0, max(0.0, score)), 2)

    def score(self, pre: int, post: int, satisfaction: int, text: Optional[str] = None) -> FeedbackScore:
        validate_rating("pre_treatment_rating", pre)
        validate_rating("post_treatment_rating", post)
        validate_rating("satisfaction_rating", satisfaction)

        result = self.sentiment_provider.analyze(text)
        sentiment = Sentiment(result.label)

        return FeedbackScore(
            treatment_evaluation_score=self.treatment_evaluation_score(pre, post, satisfaction, sentiment),
            sentiment=sentiment,
            sentiment_score=result.score
        )
