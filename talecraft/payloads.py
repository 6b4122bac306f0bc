"""Button payload codec.

Story buttons carry their routing in the custom id:

    story_{story_id}_{session_id}_{action}     choiceX | choiceY | keepBalance | cancel
    story_resume_{session_id}                  resume an interrupted session
    story_abandon_{session_id}                 drop an interrupted session

Story ids may contain underscores, so story buttons are parsed from the end.
Session ids never do.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel

from talecraft.engine import ACTIONS, Action

STORY_PREFIX = "story_"
RESUME_PREFIX = "story_resume_"
ABANDON_PREFIX = "story_abandon_"


class StoryButton(BaseModel):
    kind: Literal["story"] = "story"
    story_id: str
    session_id: str
    action: Action


class ResumeButton(BaseModel):
    kind: Literal["resume"] = "resume"
    session_id: str


class AbandonButton(BaseModel):
    kind: Literal["abandon"] = "abandon"
    session_id: str


Payload = Union[StoryButton, ResumeButton, AbandonButton]


def build_custom_id(story_id: str, session_id: str, action: Action) -> str:
    if "_" in session_id:
        raise ValueError(f"session id must not contain underscores: {session_id!r}")
    return f"{STORY_PREFIX}{story_id}_{session_id}_{action}"


def build_resume_id(session_id: str) -> str:
    return f"{RESUME_PREFIX}{session_id}"


def build_abandon_id(session_id: str) -> str:
    return f"{ABANDON_PREFIX}{session_id}"


def parse_custom_id(custom_id: str) -> Payload | None:
    """Decode a button custom id; None if it is not a well-formed story button."""
    # Resume/abandon first: their prefix is more specific.
    for prefix, model in ((RESUME_PREFIX, ResumeButton), (ABANDON_PREFIX, AbandonButton)):
        if custom_id.startswith(prefix):
            session_id = custom_id[len(prefix):]
            return model(session_id=session_id) if session_id else None

    if not custom_id.startswith(STORY_PREFIX):
        return None
    parts = custom_id[len(STORY_PREFIX):].split("_")
    if len(parts) < 3:
        return None
    action, session_id = parts[-1], parts[-2]
    story_id = "_".join(parts[:-2])
    if not story_id or not session_id or action not in ACTIONS:
        return None
    return StoryButton(story_id=story_id, session_id=session_id, action=action)
