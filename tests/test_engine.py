"""Tests for talecraft.engine — story traversal, rewards, resume and errors."""

from datetime import timedelta

import pytest

from helpers import Clock, FixedRNG, FlakyEconomy, make_engine, start_context
from talecraft.economy import LoggingEconomy
from talecraft.engine import KEEP_BALANCE_NODE_ID, calculate_base_xp
from talecraft.errors import (
    GenerationFailedError,
    InvalidActionError,
    MalformedNodeError,
    RewardGrantError,
    StoryNotFoundError,
)
from talecraft.models import (
    Choice,
    DecisionNode,
    IntroNode,
    OutcomeNode,
    StoryDefinition,
    TerminalNode,
)
from talecraft.sessions import SessionStore
from talecraft.stories import coffee_machine, demo


def _lazy_story(story_id: str = "lazy") -> StoryDefinition:
    """intro → decision → (X) sure outcome → pending 'later' | (Y) terminal."""
    return StoryDefinition(
        id=story_id,
        title="Lazy Story",
        start_node_id="intro",
        nodes=[
            IntroNode(id="intro", narrative="It begins.", next_node_id="decision"),
            DecisionNode(
                id="decision",
                narrative="Pick one.",
                choices={
                    "choiceX": Choice(label="Go on", next_node_id="outcome"),
                    "choiceY": Choice(label="Stop", next_node_id="stop"),
                },
            ),
            OutcomeNode(
                id="outcome",
                narrative="You push ahead.",
                success_chance=100,
                success_node_id="later",
                fail_node_id="stop",
            ),
            TerminalNode(id="stop", narrative="You stop.", is_positive_ending=True),
        ],
        pending_node_ids={"later"},
    )


def _risky_story() -> StoryDefinition:
    """intro → decision; both choices carry a risk multiplier and end at once."""
    return StoryDefinition(
        id="risky",
        title="Risky Story",
        start_node_id="intro",
        nodes=[
            IntroNode(id="intro", narrative="The vending machine hums.", next_node_id="decision"),
            DecisionNode(
                id="decision",
                narrative="Shake it or tip it?",
                choices={
                    "choiceX": Choice(label="Shake it", base_reward=50, risk_multiplier=1.5, next_node_id="jackpot"),
                    "choiceY": Choice(label="Tip it", base_reward=5, risk_multiplier=1.5, next_node_id="bruised"),
                },
            ),
            TerminalNode(id="jackpot", narrative="Snacks rain down.", coins_change=100, is_positive_ending=True),
            TerminalNode(id="bruised", narrative="It tips back.", is_positive_ending=False, xp_multiplier=0.5),
        ],
    )


class StubMaterializer:
    def __init__(self, fail_times: int = 0) -> None:
        self.calls: list[str] = []
        self.fail_times = fail_times

    async def materialize(self, story, session, node_id):
        self.calls.append(node_id)
        if self.fail_times:
            self.fail_times -= 1
            raise GenerationFailedError("model is asleep")
        story.materialize([
            TerminalNode(id=node_id, narrative="It was worth it.", coins_change=10, is_positive_ending=True),
        ])


def test_calculate_base_xp():
    assert calculate_base_xp(1) == 56
    assert calculate_base_xp(10) == 110


# ---------------------------------------------------------------------------
# Demo story walkthrough
# ---------------------------------------------------------------------------

class TestDemoStory:
    async def test_start_stops_at_first_decision(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())

        assert not step.is_complete
        assert step.current_node.id == "decision_1"
        assert "door you have never noticed" in step.narrative
        assert "jingle of coins" in step.narrative
        assert step.session.choices_path == ["intro"]
        assert [e.type for e in step.session.journal] == ["intro"]
        assert engine.sessions.get(step.session.session_id) is step.session

    async def test_winning_path(self) -> None:
        economy = LoggingEconomy()
        engine = make_engine(demo.STORY, rng=FixedRNG([50]), economy=economy)
        step = await engine.start_story("demo", start_context())
        session_id = step.session.session_id

        step = await engine.apply_choice(step.session, "choiceX")

        assert step.is_complete
        assert step.roll_result.rolled == 50
        assert step.roll_result.success
        assert step.final_result.total_coins == 550
        assert step.final_result.xp_earned == 84  # 56 * 1.5
        assert step.final_result.is_positive_ending
        assert step.final_result.terminal_node_id == "terminal_win"
        assert step.final_result.path_taken == ["intro", "choiceX", "success"]
        assert "creaks open" in step.narrative
        assert "forgotten vault" in step.narrative
        assert engine.sessions.get(session_id) is None

        [grant] = economy.grants
        assert grant.user_id == 7
        assert grant.coins == 550
        assert grant.activity_type == "demo_terminal_win"
        assert grant.notes == "Story: The Mysterious Door - success"

    async def test_losing_path(self) -> None:
        economy = LoggingEconomy()
        engine = make_engine(demo.STORY, rng=FixedRNG([90]), economy=economy)
        step = await engine.start_story("demo", start_context())
        step = await engine.apply_choice(step.session, "choiceX")

        assert not step.roll_result.success
        assert step.final_result.total_coins == -50
        assert step.final_result.xp_earned == 45  # round(56 * 0.8)
        assert not step.final_result.is_positive_ending
        assert step.final_result.path_taken == ["intro", "choiceX", "fail"]
        assert economy.grants[0].notes == "Story: The Mysterious Door - failure"

    async def test_walk_away_choice(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        step = await engine.apply_choice(step.session, "choiceY")

        assert step.is_complete
        assert step.roll_result is None
        assert step.final_result.total_coins == 0
        assert step.final_result.xp_earned == 56
        assert step.final_result.terminal_node_id == "terminal_walk_away"

    async def test_base_xp_override(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context(base_xp=100))
        step = await engine.apply_choice(step.session, "choiceY")
        assert step.final_result.xp_earned == 100

    async def test_choice_reward_scaled_by_risk_multiplier(self) -> None:
        engine = make_engine(_risky_story())
        step = await engine.start_story("risky", start_context())
        step = await engine.apply_choice(step.session, "choiceX")
        assert step.final_result.total_coins == 75 + 100

    async def test_half_rewards_round_up(self) -> None:
        engine = make_engine(_risky_story())
        step = await engine.start_story("risky", start_context(base_xp=45))
        step = await engine.apply_choice(step.session, "choiceY")
        assert step.final_result.total_coins == 8  # 7.5
        assert step.final_result.xp_earned == 23  # 22.5

    async def test_same_rolls_same_result(self) -> None:
        results = []
        for _ in range(2):
            engine = make_engine(demo.STORY, rng=FixedRNG([71]))
            step = await engine.start_story("demo", start_context())
            step = await engine.apply_choice(step.session, "choiceX")
            results.append(step.final_result)
        assert results[0] == results[1]

    async def test_journal_records_choice_and_roll(self) -> None:
        engine = make_engine(demo.STORY, rng=FixedRNG([10]))
        step = await engine.start_story("demo", start_context())
        session = step.session
        await engine.apply_choice(session, "choiceX")

        assert [e.type for e in session.journal] == ["intro", "decision", "outcome"]
        decision = session.journal[1]
        assert decision.choice == "choiceX"
        assert decision.options["choiceY"].label == "Walk away"
        assert session.journal[2].roll.rolled == 10
        assert session.choice_history[0].node_id == "decision_1"


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class TestActions:
    async def test_keep_balance(self) -> None:
        economy = LoggingEconomy()
        engine = make_engine(demo.STORY, economy=economy)
        step = await engine.start_story("demo", start_context(user_level=10))
        step = await engine.keep_balance(step.session)

        assert step.is_complete
        assert step.final_result.terminal_node_id == KEEP_BALANCE_NODE_ID
        assert step.final_result.xp_earned == 83  # 82.5 rounds up
        assert step.final_result.path_taken == ["intro", "keepBalance"]
        assert step.narrative == "You walk away with your current balance of +0 coins."
        assert economy.grants[0].activity_type == "demo_keep_balance"
        assert economy.grants[0].notes == "Story: The Mysterious Door - kept balance"

    async def test_cancel_grants_nothing(self) -> None:
        economy = LoggingEconomy()
        engine = make_engine(demo.STORY, economy=economy)
        step = await engine.start_story("demo", start_context())

        assert await engine.process_action(step.session, "cancel") is None
        assert engine.sessions.get(step.session.session_id) is None
        assert economy.grants == []

    async def test_process_action_dispatches_choices(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        step = await engine.process_action(step.session, "choiceY")
        assert step.final_result.terminal_node_id == "terminal_walk_away"

    async def test_unknown_action(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        with pytest.raises(InvalidActionError, match="Unknown action"):
            await engine.process_action(step.session, "dance")

    async def test_unknown_choice(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        with pytest.raises(InvalidActionError, match="Unknown choice"):
            await engine.apply_choice(step.session, "choiceZ")

    async def test_unknown_story(self) -> None:
        engine = make_engine(demo.STORY)
        with pytest.raises(StoryNotFoundError):
            await engine.start_story("nope", start_context())

    async def test_continue_at_decision_is_invalid(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        with pytest.raises(InvalidActionError, match="waiting for a choice"):
            await engine.continue_story(step.session)


# ---------------------------------------------------------------------------
# Computed values
# ---------------------------------------------------------------------------

class TestComputedValues:
    async def test_computed_narrative_is_resolved_once(self) -> None:
        engine = make_engine(coffee_machine.STORY)
        step = await engine.start_story("coffee_machine", start_context())
        session = step.session
        node = step.current_node

        first = engine.resolve_node_value(session, node.id, "narrative", node.narrative)
        second = engine.resolve_node_value(session, node.id, "narrative", node.narrative)

        assert first == second
        assert first in step.narrative
        assert session.resolved_values[node.id]["narrative"] == first

    async def test_static_value_not_cached(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        node = step.current_node
        value = engine.resolve_node_value(step.session, node.id, "narrative", node.narrative)
        assert value.startswith("A faint jingle")
        assert node.id not in step.session.resolved_values


# ---------------------------------------------------------------------------
# Resume window
# ---------------------------------------------------------------------------

class TestResume:
    async def test_resumable_inside_window(self) -> None:
        clock = Clock()
        engine = make_engine(demo.STORY, clock=clock, resume_window=timedelta(hours=12))
        step = await engine.start_story("demo", start_context())

        clock.advance(hours=11)
        assert engine.can_resume_session(step.session)
        clock.advance(hours=2)
        assert not engine.can_resume_session(step.session)

    async def test_touch_extends_window(self) -> None:
        clock = Clock()
        engine = make_engine(demo.STORY, clock=clock, resume_window=timedelta(hours=1))
        step = await engine.start_story("demo", start_context())

        clock.advance(minutes=50)
        engine.sessions.touch(step.session.session_id)
        clock.advance(minutes=50)
        assert engine.can_resume_session(step.session)

    async def test_story_gone_not_resumable(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        engine.catalog.unregister("demo")
        assert engine.get_story_context(step.session) is None
        assert not engine.can_resume_session(step.session)

    async def test_session_survives_restart(self, tmp_path) -> None:
        engine = make_engine(demo.STORY, store=SessionStore(tmp_path))
        step = await engine.start_story("demo", start_context())

        restarted = make_engine(demo.STORY, rng=FixedRNG([1]), store=SessionStore(tmp_path))
        assert restarted.sessions.load() == 1
        session = restarted.sessions.require(step.session.session_id)
        assert restarted.can_resume_session(session)

        step = await restarted.apply_choice(session, "choiceX")
        assert step.final_result.total_coins == 550


# ---------------------------------------------------------------------------
# Reward failures
# ---------------------------------------------------------------------------

class TestRewardFailure:
    async def test_failed_grant_keeps_session_for_retry(self) -> None:
        economy = FlakyEconomy(failures=1)
        engine = make_engine(demo.STORY, rng=FixedRNG([50]), economy=economy)
        step = await engine.start_story("demo", start_context())
        session = step.session

        with pytest.raises(RewardGrantError):
            await engine.apply_choice(session, "choiceX")

        stored = engine.sessions.get(session.session_id)
        assert stored is session
        assert stored.pending_reward.total_coins == 550
        assert not engine.can_resume_session(stored)
        with pytest.raises(InvalidActionError, match="reward is pending"):
            await engine.apply_choice(stored, "choiceY")

        final = await engine.settle_reward(stored)
        assert final.total_coins == 550
        assert len(economy.grants) == 1
        assert engine.sessions.get(session.session_id) is None

    async def test_settle_without_pending_reward(self) -> None:
        engine = make_engine(demo.STORY)
        step = await engine.start_story("demo", start_context())
        with pytest.raises(InvalidActionError, match="no pending reward"):
            await engine.settle_reward(step.session)


# ---------------------------------------------------------------------------
# Pending nodes
# ---------------------------------------------------------------------------

class TestPendingNodes:
    async def test_pending_node_is_materialized_on_entry(self) -> None:
        materializer = StubMaterializer()
        engine = make_engine(_lazy_story(), materializer=materializer)
        step = await engine.start_story("lazy", start_context())
        assert materializer.calls == []

        step = await engine.apply_choice(step.session, "choiceX")
        assert materializer.calls == ["later"]
        assert step.final_result.terminal_node_id == "later"
        assert step.final_result.total_coins == 10
        assert "You push ahead." in step.narrative

    async def test_failed_generation_is_resumable_without_reroll(self) -> None:
        materializer = StubMaterializer(fail_times=1)
        rng = FixedRNG([42])
        engine = make_engine(_lazy_story(), rng=rng, materializer=materializer)
        step = await engine.start_story("lazy", start_context())
        session = step.session

        with pytest.raises(GenerationFailedError):
            await engine.apply_choice(session, "choiceX")

        stored = engine.sessions.get(session.session_id)
        assert stored.current_node_id == "later"
        assert stored.pending_outcome.roll.rolled == 42

        rng.rolls = [99]  # would fail the outcome if it were rolled again
        step = await engine.continue_story(stored)
        assert step.is_complete
        assert step.roll_result.rolled == 42
        assert step.final_result.path_taken == ["intro", "choiceX", "success"]
        assert [e.type for e in session.journal] == ["intro", "decision", "outcome"]

    async def test_pending_without_materializer_is_malformed(self) -> None:
        engine = make_engine(_lazy_story())
        step = await engine.start_story("lazy", start_context())
        with pytest.raises(MalformedNodeError, match="no materializer"):
            await engine.apply_choice(step.session, "choiceX")

    async def test_dynamic_story_unregistered_when_finished(self) -> None:
        engine = make_engine(_lazy_story("ai_test"), materializer=StubMaterializer())
        step = await engine.start_story("ai_test", start_context())
        await engine.apply_choice(step.session, "choiceY")
        assert "ai_test" not in engine.catalog

    async def test_dynamic_story_unregistered_when_session_expires(self) -> None:
        clock = Clock()
        engine = make_engine(_lazy_story("ai_test"), materializer=StubMaterializer(), clock=clock)
        await engine.start_story("ai_test", start_context())

        clock.advance(hours=25)
        assert engine.sessions.cleanup_expired() == 1
        assert "ai_test" not in engine.catalog
