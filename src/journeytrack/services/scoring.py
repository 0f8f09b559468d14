"""Engagement score.

A deterministic 0-100 score built from four capped components:

- Page views: 0-30 points, ``ln(views + 1) * 15``
- Time spent: 0-30 points, ``seconds / 20`` (caps at 10 minutes)
- Interactions: 0-25 points, ``ln(interactions + 1) * 10``
- Chat engagement: 0-15 points, ``chat_interactions * 5``

Logarithmic terms give diminishing returns for cheap repeated actions; chat
is weighted most per unit as the strongest intent signal.
"""

import math
from dataclasses import dataclass

PAGE_SCORE_CAP = 30
TIME_SCORE_CAP = 30
INTERACTION_SCORE_CAP = 25
CHAT_SCORE_CAP = 15


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-component engagement points."""

    page_score: float
    time_score: float
    interaction_score: float
    chat_score: float

    @property
    def total(self) -> int:
        raw = self.page_score + self.time_score + self.interaction_score + self.chat_score
        return max(0, min(100, round(raw)))


def score_breakdown(
    page_views: int,
    duration_seconds: float,
    interactions: int,
    chat_interactions: int,
) -> ScoreBreakdown:
    """Compute the capped score components."""
    page_views = max(0, page_views)
    interactions = max(0, interactions)
    chat_interactions = max(0, chat_interactions)
    duration_seconds = max(0.0, duration_seconds)

    return ScoreBreakdown(
        page_score=min(PAGE_SCORE_CAP, math.log(page_views + 1) * 15),
        time_score=min(TIME_SCORE_CAP, duration_seconds / 20),
        interaction_score=min(INTERACTION_SCORE_CAP, math.log(interactions + 1) * 10),
        chat_score=min(CHAT_SCORE_CAP, chat_interactions * 5),
    )


def calculate_engagement_score(
    page_views: int,
    duration_seconds: float,
    interactions: int,
    chat_interactions: int,
) -> int:
    """Compute the engagement score (0-100).

    Args:
        page_views: Pages viewed this session.
        duration_seconds: Session duration so far, or final duration.
        interactions: Generic interaction total (clicks, forms, keys).
        chat_interactions: Chat messages sent.

    Returns:
        Rounded score in [0, 100].
    """
    return score_breakdown(page_views, duration_seconds, interactions, chat_interactions).total
