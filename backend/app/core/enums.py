from enum import Enum

class FeedbackLabel(str, Enum):
    """Explicit feedback labels, strongest positive to strongest negative"""
    LOVE = "love"
    LIKE = "like"
    DISLIKE = "dislike"
    NOT_INTERESTED = "not_interested"

    @property
    def magnitude(self) -> float:
        return FEEDBACK_MAGNITUDES[self]

    @property
    def is_positive(self) -> bool:
        return self.magnitude > 0

    @classmethod
    def parse(cls, value) -> "FeedbackLabel":
        """Strict lookup; unsupported values raise ValueError instead of being coerced"""
        if isinstance(value, FeedbackLabel):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unsupported feedback label: {value!r}")
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(label.value for label in cls)
            raise ValueError(f"Unsupported feedback label: {value!r}. Must be one of: {allowed}")


# Signed nudge applied to the learned vector; negatives are deliberately
# larger so a dislike outweighs a like
FEEDBACK_MAGNITUDES = {
    FeedbackLabel.LOVE: 0.15,
    FeedbackLabel.LIKE: 0.10,
    FeedbackLabel.DISLIKE: -0.20,
    FeedbackLabel.NOT_INTERESTED: -0.30,
}

class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

class RecommendationSource(str, Enum):
    """Which query vector produced a result list"""
    PREFERENCE = "preference"
    BLENDED = "blended"
    TEXT_QUERY = "text_query"
    ITEM = "item"
