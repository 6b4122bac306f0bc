"""Tests for talecraft.selection — career-weighted picks and the AI story roll."""

from collections import Counter

from helpers import FixedRNG
from talecraft.rng import SeededRNG
from talecraft.selection import (
    CAREER_WEIGHTS,
    StoryActivity,
    career_weights,
    pick_story,
    select_weighted,
    should_use_ai_story,
)


def _activity(category: str) -> StoryActivity:
    name = category.split(":")[1]
    return StoryActivity(id=f"story-{name}", title=name.title(), category=category, story_id=name)


WORK = _activity("story:work")
CRIME = _activity("story:crime")


class TestSelectWeighted:
    def test_empty_returns_none(self) -> None:
        assert select_weighted([], {}, category_of=str, rng=FixedRNG()) is None

    def test_weights_bias_the_pick(self) -> None:
        rng = SeededRNG(1234)
        counts = Counter(
            pick_story([WORK, CRIME], {"story:work": 3, "story:crime": 1}, rng=rng).id
            for _ in range(4000)
        )
        share = counts[WORK.id] / 4000
        assert 0.71 < share < 0.79

    def test_zero_weight_never_picked(self) -> None:
        pick = pick_story([CRIME, WORK], {"story:crime": 0}, rng=FixedRNG(random_value=0.0))
        assert pick is WORK

    def test_all_zero_weights_pick_uniformly(self) -> None:
        rng = SeededRNG(7)
        weights = {"story:work": 0, "story:crime": 0}
        picks = {pick_story([WORK, CRIME], weights, rng=rng).id for _ in range(50)}
        assert picks == {WORK.id, CRIME.id}

    def test_missing_category_weighs_one(self) -> None:
        assert pick_story([WORK, CRIME], {}, rng=FixedRNG(random_value=0.6)) is CRIME

    def test_top_of_wheel_picks_last(self) -> None:
        assert pick_story([WORK, CRIME], {}, rng=FixedRNG(random_value=0.999999)) is CRIME


class TestCareerWeights:
    def test_known_career(self) -> None:
        assert career_weights("shadow")["story:crime"] == 4

    def test_unknown_or_missing_career(self) -> None:
        assert career_weights("astronaut") == {}
        assert career_weights(None) == {}

    def test_every_career_weighs_every_story_category(self) -> None:
        for weights in CAREER_WEIGHTS.values():
            assert {"story:work", "story:crime", "story:adventure"} <= set(weights)


class TestShouldUseAIStory:
    def test_disabled(self) -> None:
        assert not should_use_ai_story(False, 100, FixedRNG())

    def test_chance_bounds(self) -> None:
        assert should_use_ai_story(True, 100, FixedRNG(default=99))
        assert not should_use_ai_story(True, 0, FixedRNG(default=0))

    def test_roll_against_chance(self) -> None:
        assert should_use_ai_story(True, 50, FixedRNG([49]))
        assert not should_use_ai_story(True, 50, FixedRNG([50]))
