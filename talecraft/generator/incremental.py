"""Incremental AI story generator.

Only the part of the story a player actually reaches is generated:

  Layer 1 (story start):     intro + decision1
                             → outcome1X / outcome1Y (50 % success)
                             → decision2_{XS,XF,YS,YF} pending
  Layer 2 (after outcome 1): outcome narrative + decision2_{path}
                             → outcome2_{path}_{X,Y} (75 % success)
                             → terminal_{path}_{X,Y}_{S,F} pending
  Layer 3 (after outcome 2): outcome narrative + terminal_{path}_{X|Y}_{S|F}

The engine calls materialize() when a session enters a pending id. Each
layer also rewrites the narrative of the outcome node that led to it, so the
player reads how their choice actually played out.

Coins and XP of AI endings are computed here, never by the model.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from talecraft.engine import StoryEngine
from talecraft.errors import GenerationFailedError, MalformedNodeError, TaleError
from talecraft.generator.dna import WordBank, generate_story_dna
from talecraft.generator.prompts import BRANCH_PROMPT, ENDING_PROMPT, OPENING_PROMPT, PromptError, render_prompt
from talecraft.generator.schemas import (
    AIDecision,
    AIStoryContext,
    Layer1Response,
    Layer2Response,
    Layer3Response,
    parse_json_output,
)
from talecraft.llm import LLM, LLMError, TokenUsage
from talecraft.models import (
    BalanceMetadata,
    Choice,
    DecisionNode,
    IntroNode,
    OutcomeNode,
    Session,
    StartContext,
    Static,
    StoryDefinition,
    StoryStep,
    TerminalNode,
)
from talecraft.rng import RNG, SecureRNG

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FIRST_SUCCESS_RATE = 50
FINAL_SUCCESS_RATE = 75

MIN_SUCCESS_COINS = 100
MAX_TERMINAL_COINS = 600
MIN_TERMINAL_COINS = -400
MAX_XP_MULTIPLIER = 2.0
MIN_XP_MULTIPLIER = 0.5

INCREMENTAL_STORY_PREFIX = "ai_incr_"

_BRANCH_ID = re.compile(r"^decision2_([XY])([SF])$")
_ENDING_ID = re.compile(r"^terminal_([XY][SF])_([XY])_([SF])$")


def calculate_random_coins(is_success: bool, rng: RNG) -> int:
    if is_success:
        return rng.randint(MIN_SUCCESS_COINS, MAX_TERMINAL_COINS)
    return -rng.randint(0, abs(MIN_TERMINAL_COINS))


def calculate_random_xp_multiplier(is_success: bool, rng: RNG) -> float:
    """Success: 1.0 to 2.0, failure: 0.5 to 1.0, in steps of 0.1."""
    if is_success:
        steps = round((MAX_XP_MULTIPLIER - 1.0) * 10)
        return round(1.0 + rng.randint(0, steps) / 10, 1)
    steps = round((1.0 - MIN_XP_MULTIPLIER) * 10)
    return round(MIN_XP_MULTIPLIER + rng.randint(0, steps) / 10, 1)


def _decision_node(node_id: str, decision: AIDecision, next_prefix: str) -> DecisionNode:
    # Rewards come from the terminals; choices carry none.
    return DecisionNode(
        id=node_id,
        narrative=decision.narrative,
        choices={
            "choiceX": Choice(
                label=decision.choiceX.label,
                description=decision.choiceX.description,
                next_node_id=f"{next_prefix}X",
            ),
            "choiceY": Choice(
                label=decision.choiceY.label,
                description=decision.choiceY.description,
                next_node_id=f"{next_prefix}Y",
            ),
        },
    )


def build_story_from_layer1(layer1: Layer1Response, story_id: str) -> StoryDefinition:
    """Initial story: intro, decision1 and the two first outcomes."""
    nodes = [
        IntroNode(id="intro", narrative=layer1.intro.narrative, next_node_id="decision1"),
        _decision_node("decision1", layer1.decision1, "outcome1"),
    ]
    pending: set[str] = set()
    for choice in ("X", "Y"):
        nodes.append(
            OutcomeNode(
                id=f"outcome1{choice}",
                narrative="...",  # replaced by layer 2
                success_chance=FIRST_SUCCESS_RATE,
                success_node_id=f"decision2_{choice}S",
                fail_node_id=f"decision2_{choice}F",
            )
        )
        pending.update({f"decision2_{choice}S", f"decision2_{choice}F"})

    return StoryDefinition(
        id=story_id,
        title=layer1.title,
        emoji=layer1.emoji,
        start_node_id="intro",
        nodes=nodes,
        balance=BalanceMetadata(
            expected_paths=16,
            average_reward=200,
            max_possible_reward=MAX_TERMINAL_COINS,
            min_possible_reward=MIN_TERMINAL_COINS,
        ),
        pending_node_ids=pending,
    )


class Opening(BaseModel):
    response: Layer1Response
    context: AIStoryContext
    usage: TokenUsage


class IncrementalStart(BaseModel):
    """Outcome of start_incremental_ai_story; never raised, always returned."""

    success: bool
    result: StoryStep | None = None
    usage: TokenUsage | None = None
    error: str | None = None


class IncrementalStoryGenerator:
    """Generates AI story layers on demand; the engine's node materializer.

    Args:
        llm:          LLM callable; JSON replies are expected.
        rng:          Source for story DNA, word picks and ending rewards.
        words:        Word bank; loaded from the packaged data files if omitted.
        max_retries:  Extra attempts for layers 2 and 3.
        retry_delay:  Base delay in seconds; attempt n waits retry_delay * n.
    """

    def __init__(
        self,
        llm: LLM,
        *,
        rng: RNG | None = None,
        words: WordBank | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ) -> None:
        self.llm = llm
        self.rng = rng or SecureRNG()
        self.words = words or WordBank.load()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.usage = TokenUsage()
        self.last_usage = TokenUsage()

    # ------------------------------------------------------------------
    # LLM plumbing
    # ------------------------------------------------------------------

    async def _generate(self, stage: str, prompt: str, schema: type[T]) -> T:
        try:
            text = await self.llm(stage, prompt)
        except LLMError as e:
            raise GenerationFailedError(str(e)) from e

        usage = getattr(self.llm, "last_usage", None)
        self.last_usage = usage if isinstance(usage, TokenUsage) else TokenUsage()
        if isinstance(usage, TokenUsage):
            self.usage = self.usage + usage
            logger.info("Generated %s - %d tokens", stage, usage.total_tokens)

        data = parse_json_output(text)
        if data is None:
            raise GenerationFailedError(f"Failed to parse JSON: {text[:100]}...")
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise GenerationFailedError(f"Invalid structure: {problems}") from e

    async def _with_retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        last_error: GenerationFailedError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return await fn()
            except GenerationFailedError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_delay * (attempt + 1)
                    logger.info("Attempt %d failed (%s), retrying in %.1fs", attempt + 1, e, delay)
                    await asyncio.sleep(delay)
        raise last_error or GenerationFailedError("Generation failed")

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    async def generate_opening(self, discord_user_id: str | None = None) -> Opening:
        """Layer 1. Raises GenerationFailedError."""
        dna = generate_story_dna(self.rng)
        words = self.words.story_words(self.rng)
        facts = self.words.member_facts(discord_user_id, self.rng) if discord_user_id else []
        logger.info("Story DNA setting=%r twist=%r role=%r", dna.setting, dna.twist, dna.role)
        logger.debug("Story words nouns=%s verbs=%s facts=%s", words.nouns, words.verbs, facts)

        try:
            prompt = render_prompt(OPENING_PROMPT, {
                **dna.model_dump(),
                "nouns": words.nouns,
                "verbs": words.verbs,
                "has_words": bool(words.nouns or words.verbs),
                "facts": facts,
            })
        except PromptError as e:
            raise GenerationFailedError(str(e)) from e
        response = await self._generate("story_opening", prompt, Layer1Response)

        context = AIStoryContext(
            title=response.title,
            emoji=response.emoji,
            intro_narrative=response.intro.narrative,
            decision1=response.decision1,
        )
        return Opening(response=response, context=context, usage=self.last_usage)

    async def materialize(self, story: StoryDefinition, session: Session, node_id: str) -> None:
        if session.ai_context is None:
            raise GenerationFailedError(f"Session {session.session_id} carries no AI story context")
        context = AIStoryContext.model_validate(session.ai_context)

        try:
            if m := _BRANCH_ID.match(node_id):
                await self._add_branch(story, session, context, m.group(1), m.group(2) == "S")
            elif m := _ENDING_ID.match(node_id):
                await self._add_ending(story, context, m.group(1), m.group(2), m.group(3) == "S")
            else:
                raise GenerationFailedError(f"Don't know how to generate node '{node_id}'")
        except PromptError as e:
            raise GenerationFailedError(str(e)) from e

    async def _add_branch(
        self, story: StoryDefinition, session: Session, context: AIStoryContext, choice: str, success: bool
    ) -> None:
        """Layer 2: second decision after the first outcome."""
        path = f"{choice}{'S' if success else 'F'}"
        prompt = render_prompt(BRANCH_PROMPT, {
            "title": context.title,
            "emoji": context.emoji,
            "intro": context.intro_narrative,
            "decision": context.decision1.model_dump(),
            "choice": context.decision1.choice(choice).model_dump(),
            "outcome": "SUCCEEDED" if success else "FAILED",
            "success": success,
        })
        layer2 = await self._with_retry(lambda: self._generate("story_branch", prompt, Layer2Response))

        outcome_id = f"outcome1{choice}"
        nodes = [
            story.nodes[outcome_id].model_copy(update={"narrative": Static(value=layer2.outcome_narrative)}),
            _decision_node(f"decision2_{path}", layer2.decision2, f"outcome2_{path}_"),
        ]
        pending: set[str] = set()
        for second in ("X", "Y"):
            nodes.append(
                OutcomeNode(
                    id=f"outcome2_{path}_{second}",
                    narrative="...",  # replaced by layer 3
                    success_chance=FINAL_SUCCESS_RATE,
                    success_node_id=f"terminal_{path}_{second}_S",
                    fail_node_id=f"terminal_{path}_{second}_F",
                )
            )
            pending.update({f"terminal_{path}_{second}_S", f"terminal_{path}_{second}_F"})
        self._apply(story, nodes, pending)

        context.path_so_far = path
        context.first_outcome_narrative = layer2.outcome_narrative
        context.decision2 = layer2.decision2
        session.ai_context = context.model_dump()

    async def _add_ending(
        self, story: StoryDefinition, context: AIStoryContext, path: str, second: str, success: bool
    ) -> None:
        """Layer 3: final outcome narrative and the ending with code-computed rewards."""
        if context.decision2 is None:
            raise GenerationFailedError("Ending requested before the second decision was generated")
        prompt = render_prompt(ENDING_PROMPT, {
            "title": context.title,
            "emoji": context.emoji,
            "intro": context.intro_narrative,
            "first_choice": context.decision1.choice(path[0]).model_dump(),
            "first_outcome": context.first_outcome_narrative or "...",
            "decision": context.decision2.model_dump(),
            "choice": context.decision2.choice(second).model_dump(),
            "outcome": "SUCCEEDED" if success else "FAILED",
            "success": success,
        })
        layer3 = await self._with_retry(lambda: self._generate("story_ending", prompt, Layer3Response))

        outcome_id = f"outcome2_{path}_{second}"
        terminal = TerminalNode(
            id=f"terminal_{path}_{second}_{'S' if success else 'F'}",
            narrative=layer3.terminal.narrative,
            coins_change=calculate_random_coins(success, self.rng),
            is_positive_ending=success,
            xp_multiplier=calculate_random_xp_multiplier(success, self.rng),
        )
        nodes = [
            story.nodes[outcome_id].model_copy(update={"narrative": Static(value=layer3.outcome_narrative)}),
            terminal,
        ]
        self._apply(story, nodes, set())

    def _apply(self, story: StoryDefinition, nodes: list, pending: set[str]) -> None:
        try:
            story.materialize(nodes, pending)
        except ValueError as e:
            raise MalformedNodeError(story.id, [str(e)]) from e
        logger.debug("Story %s materialized %s", story.id, ", ".join(n.id for n in nodes))


# ---------------------------------------------------------------------------
# Entry point used by the trigger layer
# ---------------------------------------------------------------------------

def new_story_id(taken: Callable[[str], bool]) -> str:
    story_id = f"{INCREMENTAL_STORY_PREFIX}{int(time.time() * 1000)}"
    suffix = 1
    candidate = story_id
    while taken(candidate):
        suffix += 1
        candidate = f"{story_id}_{suffix}"
    return candidate


async def start_incremental_ai_story(
    engine: StoryEngine, generator: IncrementalStoryGenerator, ctx: StartContext
) -> IncrementalStart:
    """Generate layer 1, register the story and start a session on it.

    Generation problems are reported in the result rather than raised, so
    the caller can fall back to an authored story.
    """
    try:
        opening = await generator.generate_opening(ctx.discord_user_id)
    except GenerationFailedError as e:
        logger.warning("AI story opening failed for user %s: %s", ctx.discord_user_id, e)
        return IncrementalStart(success=False, error=str(e))

    story_id = new_story_id(lambda sid: sid in engine.catalog)
    try:
        engine.catalog.register(build_story_from_layer1(opening.response, story_id))
    except TaleError as e:
        logger.warning("AI story %s rejected: %s", story_id, e)
        return IncrementalStart(success=False, usage=opening.usage, error=str(e))

    try:
        step = await engine.start_story(story_id, ctx, ai_context=opening.context.model_dump())
    except TaleError as e:
        engine.catalog.unregister(story_id)
        logger.warning("AI story %s could not start: %s", story_id, e)
        return IncrementalStart(success=False, usage=opening.usage, error=str(e))

    logger.info("AI story %s started for user %s (%s)", story_id, ctx.discord_user_id, opening.response.title)
    return IncrementalStart(success=True, result=step, usage=opening.usage)
