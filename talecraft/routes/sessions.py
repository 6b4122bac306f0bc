"""Session play endpoints and the button interaction router.

Unknown session ids are 404. Expired sessions are 410: the player's buttons
outlived the session and the client should offer a new story instead.
"""

from fastapi import APIRouter, Depends, HTTPException

from talecraft.engine import StoryEngine
from talecraft.models import Session
from talecraft.payloads import AbandonButton, ResumeButton, parse_custom_id

from .deps import get_engine
from .models import ChoiceBody, InteractionBody, StepView, session_view, step_view

router = APIRouter()


def _settled_view(engine: StoryEngine, session: Session) -> StepView:
    final = session.pending_reward
    story = engine.catalog.get(session.story_id)
    return StepView(
        session_id=session.session_id,
        story_id=session.story_id,
        title=story.title if story else session.story_id,
        emoji=story.emoji if story else "",
        narrative="",
        accumulated_coins=session.accumulated_coins,
        is_complete=True,
        final_result=final,
    )


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, engine: StoryEngine = Depends(get_engine)):
    """Get a session and a re-render of its current decision."""
    return session_view(engine, engine.sessions.require(session_id))


@router.post("/sessions/{session_id}/choice")
async def apply_choice(session_id: str, body: ChoiceBody, engine: StoryEngine = Depends(get_engine)):
    """Pick choiceX or choiceY at the current decision."""
    session = engine.sessions.require(session_id)
    return step_view(engine, await engine.apply_choice(session, body.choice))


@router.post("/sessions/{session_id}/keep-balance")
async def keep_balance(session_id: str, engine: StoryEngine = Depends(get_engine)):
    """End the story early, keeping the coins collected so far."""
    session = engine.sessions.require(session_id)
    return step_view(engine, await engine.keep_balance(session))


@router.post("/sessions/{session_id}/continue")
async def continue_session(session_id: str, engine: StoryEngine = Depends(get_engine)):
    """Retry whatever stopped the session: a failed reward grant or story generation."""
    session = engine.sessions.require(session_id)
    if session.pending_reward is not None:
        view = _settled_view(engine, session)
        await engine.settle_reward(session)
        return view
    return step_view(engine, await engine.continue_story(session))


@router.delete("/sessions/{session_id}")
async def abandon_session(session_id: str, engine: StoryEngine = Depends(get_engine)):
    """Abandon a session. Nothing is granted."""
    engine.cancel(engine.sessions.require(session_id))
    return {"ok": True}


@router.get("/users/{discord_user_id}/session")
async def get_user_session(discord_user_id: str, engine: StoryEngine = Depends(get_engine)):
    """The user's pending session, for offering resume or abandon."""
    session = engine.sessions.get_by_user(discord_user_id)
    if session is None:
        raise HTTPException(404, "No active session")
    return session_view(engine, session)


@router.post("/interactions")
async def handle_interaction(body: InteractionBody, engine: StoryEngine = Depends(get_engine)):
    """Route a button click by its custom id."""
    payload = parse_custom_id(body.custom_id)
    if payload is None:
        raise HTTPException(400, f"Not a story button: {body.custom_id}")

    session = engine.sessions.require(payload.session_id)
    if session.discord_user_id != body.discord_user_id:
        raise HTTPException(403, "This story belongs to someone else")

    if isinstance(payload, ResumeButton):
        if not engine.can_resume_session(session):
            raise HTTPException(410, "This story can no longer be resumed; start a new one")
        engine.sessions.touch(session.session_id)
        return session_view(engine, session)

    if isinstance(payload, AbandonButton):
        engine.cancel(session)
        return {"ok": True}

    if payload.story_id != session.story_id:
        raise HTTPException(409, "Button does not match the session's story")
    step = await engine.process_action(session, payload.action)
    if step is None:
        return {"ok": True}
    return step_view(engine, step)
