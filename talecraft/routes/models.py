"""Pydantic request/response models for API endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from talecraft.engine import StoryEngine
from talecraft.models import CHOICE_KEYS, ChoiceOption, DecisionNode, FinalResult, RollResult, Session, StoryStep
from talecraft.payloads import build_abandon_id, build_custom_id, build_resume_id

# ── Requests ─────────────────────────────────────────────


class StartBody(BaseModel):
    discord_user_id: str
    db_user_id: int
    user_level: int = 1
    base_xp: int | None = None
    message_id: str = ""
    channel_id: str = ""
    guild_id: str = ""
    story_id: str | None = None  # None: pick one (AI or weighted by career)
    career: str | None = None


class ChoiceBody(BaseModel):
    choice: str


class InteractionBody(BaseModel):
    custom_id: str
    discord_user_id: str


class SettingsBody(BaseModel):
    ai_story_enabled: bool | None = None
    ai_story_chance_percent: int | None = None
    resume_window_minutes: int | None = None


# ── Responses ────────────────────────────────────────────


class StepView(BaseModel):
    """One rendered story step: narrative, buttons, and the result if it ended."""

    session_id: str
    story_id: str
    title: str
    emoji: str
    narrative: str
    accumulated_coins: int
    is_complete: bool
    choices: dict[str, ChoiceOption] = {}
    buttons: dict[str, str] = {}
    roll_result: RollResult | None = None
    final_result: FinalResult | None = None


class SessionView(BaseModel):
    session: dict[str, Any]
    can_resume: bool
    resume_id: str
    abandon_id: str
    step: StepView | None = None


def _decision_parts(session: Session, node: Any) -> tuple[dict[str, ChoiceOption], dict[str, str]]:
    if not isinstance(node, DecisionNode):
        return {}, {}
    choices = {
        k: ChoiceOption(label=node.choices[k].label, description=node.choices[k].description)
        for k in CHOICE_KEYS
    }
    buttons = {
        action: build_custom_id(session.story_id, session.session_id, action)
        for action in (*CHOICE_KEYS, "keepBalance", "cancel")
    }
    return choices, buttons


def step_view(engine: StoryEngine, step: StoryStep) -> StepView:
    story = engine.catalog.get(step.session.story_id)
    choices, buttons = ({}, {}) if step.is_complete else _decision_parts(step.session, step.current_node)
    return StepView(
        session_id=step.session.session_id,
        story_id=step.session.story_id,
        title=story.title if story else step.session.story_id,
        emoji=story.emoji if story else "",
        narrative=step.narrative,
        accumulated_coins=step.session.accumulated_coins,
        is_complete=step.is_complete,
        choices=choices,
        buttons=buttons,
        roll_result=step.roll_result,
        final_result=step.final_result,
    )


def session_view(engine: StoryEngine, session: Session) -> SessionView:
    """The session as stored, plus a re-render of its current decision if any.

    Re-rendering reads cached computed values, so the narrative is the one
    the player saw before.
    """
    step = None
    ctx = engine.get_story_context(session)
    if ctx is not None and isinstance(ctx.current_node, DecisionNode):
        narrative = str(engine.resolve_node_value(session, ctx.current_node.id, "narrative", ctx.current_node.narrative))
        step = step_view(engine, StoryStep(session=session, current_node=ctx.current_node, narrative=narrative))
    return SessionView(
        session=session.model_dump(mode="json"),
        can_resume=engine.can_resume_session(session),
        resume_id=build_resume_id(session.session_id),
        abandon_id=build_abandon_id(session.session_id),
        step=step,
    )
