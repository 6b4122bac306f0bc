"""Weighted story selection.

A trigger picks which story to start in two steps:

  1. should_use_ai_story() decides between an AI-generated story and an
     authored one (global toggle plus percentage chance).
  2. pick_story() chooses among the authored activities, biased by the
     player's career through CAREER_WEIGHTS.

Categories are namespaced strings: "story:*" for stories and "work:*" for
work activities. A category missing from a weights table has weight 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TypeVar

from pydantic import BaseModel

from talecraft.rng import RNG

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WEIGHT = 1.0

CAREER_WEIGHTS: dict[str, dict[str, float]] = {
    # Office-focused
    "clerk": {
        "work:office": 3,
        "work:dev": 1,
        "work:misc": 1,
        "work:community": 1,
        "story:work": 3,
        "story:crime": 0.5,
        "story:adventure": 1,
    },
    # Tech-focused
    "developer": {
        "work:office": 1,
        "work:dev": 4,
        "work:misc": 1,
        "work:community": 2,
        "story:work": 2,
        "story:crime": 0.5,
        "story:adventure": 1,
    },
    # Client-focused
    "salesperson": {
        "work:office": 2,
        "work:dev": 0.5,
        "work:misc": 1,
        "work:community": 1,
        "story:work": 3,
        "story:crime": 1,
        "story:adventure": 1,
    },
    # Variety
    "adventurer": {
        "work:office": 1,
        "work:dev": 1,
        "work:misc": 2,
        "work:community": 2,
        "story:work": 1,
        "story:crime": 1,
        "story:adventure": 3,
    },
    # Morally grey
    "shadow": {
        "work:office": 0.5,
        "work:dev": 1,
        "work:misc": 2,
        "work:community": 1,
        "story:work": 0.5,
        "story:crime": 4,
        "story:adventure": 2,
    },
}


class StoryActivity(BaseModel):
    """A selectable entry in the story menu, pointing at a catalog story."""

    id: str
    title: str
    category: str
    story_id: str


def career_weights(career: str | None) -> dict[str, float]:
    """Weights for a career; an unknown or missing career weighs everything equally."""
    if career is None:
        return {}
    return CAREER_WEIGHTS.get(career, {})


def select_weighted(
    candidates: Sequence[T],
    weights: Mapping[str, float],
    *,
    category_of: Callable[[T], str],
    rng: RNG,
) -> T | None:
    """Roulette-wheel selection of one candidate by category weight.

    Returns None for an empty list. When every weight is zero the pick is
    uniform.
    """
    if not candidates:
        return None

    pool = [(c, weights.get(category_of(c), DEFAULT_WEIGHT)) for c in candidates]
    total = sum(w for _, w in pool)
    if total <= 0:
        return rng.choice(candidates)

    cursor = rng.random() * total
    for candidate, weight in pool:
        cursor -= weight
        if cursor < 0:
            return candidate
    # Float rounding can leave the cursor a hair above zero.
    return pool[-1][0]


def should_use_ai_story(enabled: bool, chance_percent: int, rng: RNG) -> bool:
    if not enabled:
        return False
    return rng.randint(0, 99) < chance_percent


def pick_story(
    activities: Sequence[StoryActivity],
    weights: Mapping[str, float],
    *,
    rng: RNG,
) -> StoryActivity | None:
    activity = select_weighted(activities, weights, category_of=lambda a: a.category, rng=rng)
    if activity is not None:
        logger.debug("Picked story activity %s (%s)", activity.id, activity.category)
    return activity
