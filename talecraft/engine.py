"""Story engine — interprets a story graph against a session.

Each step is triggered by one interaction (start command or button click)
and runs to completion before returning:

    start_story / apply_choice
        → enter node
            intro    → append narrative, follow next_node_id
            outcome  → roll rng.randint(1, 100) against success_chance,
                       follow success_node_id or fail_node_id
            decision → append narrative, save session, stop (await a choice)
            terminal → compute final coins/XP, grant, remove session, stop

Computed narrative/coin values are evaluated once per visit and cached in
session.resolved_values, so re-rendering a node never re-rolls its flavor.

Incremental AI stories reference node ids that do not exist yet
(StoryDefinition.pending_node_ids). Entering one awaits the materializer.
The session is saved at that node first, so a GenerationFailedError leaves
it resumable through continue_story().

The engine does not retry. Reward grant failures keep the session with
pending_reward set; settle_reward() retries the same grant.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Literal, Protocol

from talecraft.catalog import StoryCatalog, is_dynamic_story
from talecraft.economy import LoggingEconomy, RewardGrant, RewardGranter
from talecraft.errors import (
    GenerationFailedError,
    InvalidActionError,
    MalformedNodeError,
    RewardGrantError,
    StoryNotFoundError,
)
from talecraft.models import (
    CHOICE_KEYS,
    AnyNode,
    ChoiceKey,
    ChoiceOption,
    ChoiceRecord,
    Computed,
    DecisionNode,
    FinalResult,
    IntroNode,
    JournalEntry,
    OutcomeNode,
    PendingOutcome,
    RollResult,
    Session,
    StartContext,
    Static,
    StoryContext,
    StoryDefinition,
    StoryStep,
    TerminalNode,
)
from talecraft.rng import RNG, SecureRNG, SeededRNG
from talecraft.sessions import SessionStore, utcnow

logger = logging.getLogger(__name__)

Action = Literal["choiceX", "choiceY", "keepBalance", "cancel"]
ACTIONS: tuple[Action, ...] = ("choiceX", "choiceY", "keepBalance", "cancel")

KEEP_BALANCE_NODE_ID = "keep_balance"
KEEP_BALANCE_XP_FACTOR = 0.75
DEFAULT_RESUME_WINDOW = timedelta(hours=12)


def calculate_base_xp(user_level: int) -> int:
    return user_level * 6 + 50


def round_half_up(value: float) -> int:
    """Round halves up (82.5 -> 83, -2.5 -> -2); round() would round them to even."""
    return math.floor(value + 0.5)


class NodeMaterializer(Protocol):
    """Creates pending nodes of a story on demand.

    Must call story.materialize() so that node_id exists afterwards, or raise
    GenerationFailedError.
    """

    async def materialize(self, story: StoryDefinition, session: Session, node_id: str) -> None: ...


class StoryEngine:
    def __init__(
        self,
        catalog: StoryCatalog,
        sessions: SessionStore,
        *,
        rng: RNG | None = None,
        flavor_rng: RNG | None = None,
        economy: RewardGranter | None = None,
        materializer: NodeMaterializer | None = None,
        resume_window: timedelta = DEFAULT_RESUME_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.catalog = catalog
        self.sessions = sessions
        self.rng = rng or SecureRNG()
        self.flavor_rng = flavor_rng or SeededRNG()
        self.economy = economy or LoggingEconomy()
        self.materializer = materializer
        self.resume_window = resume_window
        self._clock = clock
        sessions.on_remove = self._forget_story

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_story(self, story_id: str) -> StoryDefinition:
        story = self.catalog.get(story_id)
        if story is None:
            raise StoryNotFoundError(story_id)
        return story

    def get_story_context(self, session: Session) -> StoryContext | None:
        story = self.catalog.get(session.story_id)
        if story is None:
            return None
        node = story.node(session.current_node_id)
        if node is None:
            return None
        return StoryContext(story=story, current_node=node)

    def can_resume_session(self, session: Session) -> bool:
        """True while the player may pick up the session at its current decision."""
        ctx = self.get_story_context(session)
        if ctx is None or not isinstance(ctx.current_node, DecisionNode):
            return False
        if session.pending_reward is not None:
            return False
        return self._clock() - session.last_interaction_at <= self.resume_window

    def resolve_node_value(self, session: Session, node_id: str, field: str, raw: Static | Computed | None) -> Any:
        """Return the value of a node field, evaluating a Computed once per visit."""
        if raw is None:
            return None
        if isinstance(raw, Static):
            return raw.value
        cached = session.resolved_values.get(node_id, {})
        if field in cached:
            return cached[field]
        value = raw.fn(session, self.flavor_rng)
        session.resolved_values.setdefault(node_id, {})[field] = value
        return value

    def _narrative(self, session: Session, node: AnyNode) -> str:
        return str(self.resolve_node_value(session, node.id, "narrative", node.narrative))

    def _enter_coins(self, session: Session, node: AnyNode) -> None:
        change = self.resolve_node_value(session, node.id, "coins_change", node.coins_change)
        if change:
            session.accumulated_coins += int(change)

    def roll(self, success_chance: int) -> RollResult:
        rolled = self.rng.randint(1, 100)
        return RollResult(rolled=rolled, needed=success_chance, success=rolled <= success_chance)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_story(self, story_id: str, ctx: StartContext, ai_context: dict[str, Any] | None = None) -> StoryStep:
        story = self._require_story(story_id)
        session = self.sessions.create(ctx, story.id, story.start_node_id, ai_context=ai_context)
        logger.info("Story %s started for user %s", story.id, ctx.discord_user_id)
        return await self._advance(session, story)

    async def apply_choice(self, session: Session, choice_key: str) -> StoryStep:
        if choice_key not in CHOICE_KEYS:
            raise InvalidActionError(f"Unknown choice '{choice_key}'")
        self._check_no_pending_reward(session)
        story = self._require_story(session.story_id)
        node = story.node(session.current_node_id)
        if not isinstance(node, DecisionNode):
            raise InvalidActionError(
                f"Session {session.session_id} is not waiting for a choice "
                f"(current node '{session.current_node_id}')"
            )

        key: ChoiceKey = choice_key  # type: ignore[assignment]
        choice = node.choice(key)
        narrative = self._narrative(session, node)
        options = {
            k: ChoiceOption(label=node.choices[k].label, description=node.choices[k].description)
            for k in CHOICE_KEYS
        }
        session.accumulated_coins += round_half_up(choice.base_reward * choice.risk_multiplier)
        session.choices_path.append(key)
        session.choice_history.append(
            ChoiceRecord(node_id=node.id, narrative=narrative, choice=key, options=options)
        )
        session.journal.append(
            JournalEntry(type="decision", narrative=narrative, choice=key, options=options)
        )
        session.current_node_id = choice.next_node_id
        logger.debug("Session %s chose %s at %s", session.session_id, key, node.id)
        return await self._advance(session, story)

    async def process_action(self, session: Session, action: str) -> StoryStep | None:
        """Dispatch a button action. Returns None for cancel."""
        if action in CHOICE_KEYS:
            return await self.apply_choice(session, action)
        if action == "keepBalance":
            return await self.keep_balance(session)
        if action == "cancel":
            self.cancel(session)
            return None
        raise InvalidActionError(f"Unknown action '{action}'")

    async def keep_balance(self, session: Session) -> StoryStep:
        """End the story early: keep the coins so far, earn 75% of base XP."""
        self._check_no_pending_reward(session)
        story = self._require_story(session.story_id)
        node = story.node(session.current_node_id)
        if not isinstance(node, DecisionNode):
            raise InvalidActionError(f"Session {session.session_id} cannot keep balance here")

        session.choices_path.append("keepBalance")
        coins = session.accumulated_coins
        final = FinalResult(
            total_coins=coins,
            xp_earned=round_half_up(self._base_xp(session) * KEEP_BALANCE_XP_FACTOR),
            is_positive_ending=coins >= 0,
            terminal_node_id=KEEP_BALANCE_NODE_ID,
            path_taken=list(session.choices_path),
        )
        await self._grant(session, story, final)
        return StoryStep(
            session=session,
            current_node=node,
            narrative=f"You walk away with your current balance of {coins:+d} coins.",
            is_complete=True,
            final_result=final,
        )

    def cancel(self, session: Session) -> None:
        """Abandon the story. Nothing is granted."""
        logger.info("Session %s cancelled by user %s", session.session_id, session.discord_user_id)
        self._close(session)

    async def continue_story(self, session: Session) -> StoryStep:
        """Resume auto-advance, e.g. after a failed generation of a pending node."""
        self._check_no_pending_reward(session)
        story = self._require_story(session.story_id)
        if isinstance(story.node(session.current_node_id), DecisionNode):
            raise InvalidActionError(f"Session {session.session_id} is waiting for a choice")
        return await self._advance(session, story)

    async def settle_reward(self, session: Session) -> FinalResult:
        """Retry the grant of a completed story whose reward failed."""
        final = session.pending_reward
        if final is None:
            raise InvalidActionError(f"Session {session.session_id} has no pending reward")
        story = self.catalog.get(session.story_id)
        await self._grant(session, story, final)
        return final

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_no_pending_reward(self, session: Session) -> None:
        if session.pending_reward is not None:
            raise InvalidActionError(f"Session {session.session_id} is complete; reward is pending")

    def _base_xp(self, session: Session) -> int:
        if session.base_xp is not None:
            return session.base_xp
        return calculate_base_xp(session.user_level)

    async def _node(self, session: Session, story: StoryDefinition, node_id: str) -> AnyNode:
        node = story.node(node_id)
        if node is not None:
            return node
        if not story.is_pending(node_id):
            raise MalformedNodeError(story.id, [f"node '{node_id}' not found"])
        if self.materializer is None:
            raise MalformedNodeError(story.id, [f"node '{node_id}' is pending and no materializer is configured"])

        self.sessions.save(session)
        await self.materializer.materialize(story, session, node_id)
        node = story.node(node_id)
        if node is None:
            raise GenerationFailedError(f"Materializer did not produce node '{node_id}'")
        return node

    async def _advance(self, session: Session, story: StoryDefinition) -> StoryStep:
        parts: list[str] = []
        roll: RollResult | None = None
        steps = 0

        while True:
            if session.pending_outcome is not None:
                # The next node must exist before the outcome text is final.
                await self._node(session, story, session.current_node_id)
                roll = self._finish_outcome(session, story, session.pending_outcome, parts)

            steps += 1
            if steps > len(story.nodes) + len(story.pending_node_ids) + 1:
                raise MalformedNodeError(story.id, [f"no terminal reached after {steps - 1} steps"])

            node = await self._node(session, story, session.current_node_id)

            if isinstance(node, TerminalNode):
                return await self._finish(session, story, node, parts, roll)

            self._enter_coins(session, node)

            if isinstance(node, IntroNode):
                text = self._narrative(session, node)
                parts.append(text)
                session.journal.append(JournalEntry(type="intro", narrative=text))
                session.choices_path.append("intro")
                session.current_node_id = node.next_node_id

            elif isinstance(node, OutcomeNode):
                result = self.roll(node.success_chance)
                session.choices_path.append("success" if result.success else "fail")
                session.current_node_id = node.success_node_id if result.success else node.fail_node_id
                session.pending_outcome = PendingOutcome(node_id=node.id, roll=result)
                logger.debug(
                    "Session %s rolled %d against %d at %s",
                    session.session_id, result.rolled, result.needed, node.id,
                )

            elif isinstance(node, DecisionNode):
                parts.append(self._narrative(session, node))
                self.sessions.save(session)
                return StoryStep(
                    session=session,
                    current_node=node,
                    narrative="\n\n".join(parts),
                    roll_result=roll,
                )

    def _finish_outcome(
        self, session: Session, story: StoryDefinition, pending: PendingOutcome, parts: list[str]
    ) -> RollResult:
        node = story.node(pending.node_id)
        if node is None:
            raise MalformedNodeError(story.id, [f"outcome node '{pending.node_id}' not found"])
        text = self._narrative(session, node)
        parts.append(text)
        session.journal.append(JournalEntry(type="outcome", narrative=text, roll=pending.roll))
        session.pending_outcome = None
        return pending.roll

    async def _finish(
        self,
        session: Session,
        story: StoryDefinition,
        node: TerminalNode,
        parts: list[str],
        roll: RollResult | None,
    ) -> StoryStep:
        change = self.resolve_node_value(session, node.id, "coins_change", node.coins_change)
        session.accumulated_coins += int(change)
        parts.append(self._narrative(session, node))
        session.current_node_id = node.id

        final = FinalResult(
            total_coins=session.accumulated_coins,
            xp_earned=round_half_up(self._base_xp(session) * node.xp_multiplier),
            is_positive_ending=node.is_positive_ending,
            terminal_node_id=node.id,
            path_taken=list(session.choices_path),
        )
        await self._grant(session, story, final)
        return StoryStep(
            session=session,
            current_node=node,
            narrative="\n\n".join(parts),
            is_complete=True,
            final_result=final,
            roll_result=roll,
        )

    async def _grant(self, session: Session, story: StoryDefinition | None, final: FinalResult) -> None:
        title = story.title if story is not None else session.story_id
        if final.terminal_node_id == KEEP_BALANCE_NODE_ID:
            notes = f"Story: {title} - kept balance"
        else:
            notes = f"Story: {title} - {'success' if final.is_positive_ending else 'failure'}"
        grant = RewardGrant(
            user_id=session.db_user_id,
            coins=final.total_coins,
            xp=final.xp_earned,
            activity_type=f"{session.story_id}_{final.terminal_node_id}",
            notes=notes,
        )
        session.pending_reward = final
        try:
            await self.economy(grant)
        except RewardGrantError:
            self.sessions.save(session)
            logger.warning(
                "Reward grant failed for session %s (coins=%d xp=%d); kept for retry",
                session.session_id, final.total_coins, final.xp_earned,
            )
            raise
        logger.info(
            "Story %s completed by user %s: %s coins=%d xp=%d",
            session.story_id, session.discord_user_id, final.terminal_node_id,
            final.total_coins, final.xp_earned,
        )
        self._close(session)

    def _close(self, session: Session) -> None:
        self.sessions.remove(session.session_id)

    def _forget_story(self, session: Session) -> None:
        # Runs for every removed session, replaced and expired ones included.
        if is_dynamic_story(session.story_id):
            self.catalog.unregister(session.story_id)
