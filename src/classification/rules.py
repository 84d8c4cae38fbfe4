"""
Ordered keyword rule tables used by the heuristic classifier.

Rules are evaluated top to bottom; the order of matches is the order of
the resulting labels.
"""

from typing import List, NamedTuple, Sequence, Tuple

from src.models.schemas import Category, Emotion


class KeywordRule(NamedTuple):
    """Maps any of ``keywords`` (case-insensitive substrings) to ``label``."""
    label: str
    keywords: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        text = text.lower()
        return any(keyword in text for keyword in self.keywords)


CATEGORY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(Category.TECHNICAL_ISSUES.value, ("app", "website", "online")),
    KeywordRule(Category.STAFF_BEHAVIOR.value, ("staff", "rude", "helpful")),
    KeywordRule(Category.WAIT_TIME.value, ("wait", "queue", "slow")),
    KeywordRule(Category.TRANSACTION_ISSUES.value, ("atm", "transaction", "transfer")),
)

EMOTION_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(Emotion.FRUSTRATED.value, ("frustrat", "annoying")),
    KeywordRule(Emotion.ANGRY.value, ("angry", "upset")),
    KeywordRule(Emotion.HAPPY.value, ("happy", "great")),
    KeywordRule(Emotion.SATISFIED.value, ("satisfied", "good")),
    KeywordRule(Emotion.DISAPPOINTED.value, ("disappoint",)),
)

URGENT_KEYWORDS: Tuple[str, ...] = ("urgent", "immediately")


def match_labels(text: str, rules: Sequence[KeywordRule], limit: int = 3) -> List[str]:
    """Return the labels of matching rules in table order, at most ``limit``."""
    labels = [rule.label for rule in rules if rule.matches(text)]
    return labels[:limit]
