"""Engine error types.

Session absence is not an error at the store level: SessionStore.get() returns
None and callers offer resume/restart. The exceptions below are raised only by
operations that cannot continue.
"""

from __future__ import annotations


class TaleError(Exception):
    """Base class for all engine errors."""


class StoryNotFoundError(TaleError):
    """Starting or resuming a story whose id is not in the catalog."""

    def __init__(self, story_id: str) -> None:
        super().__init__(f"Story not found: {story_id}")
        self.story_id = story_id


class DuplicateStoryError(TaleError):
    """Registering a second story under an id that is already taken."""

    def __init__(self, story_id: str) -> None:
        super().__init__(f"Story already registered: {story_id}")
        self.story_id = story_id


class MalformedNodeError(TaleError):
    """A story graph is broken (dangling reference, cycle, missing start).

    This is a content-authoring defect, never a runtime condition.
    """

    def __init__(self, story_id: str, problems: list[str]) -> None:
        joined = "; ".join(problems)
        super().__init__(f"Story '{story_id}' is malformed: {joined}")
        self.story_id = story_id
        self.problems = problems


class SessionNotFoundError(TaleError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionExpiredError(TaleError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session expired: {session_id}")
        self.session_id = session_id


class SessionConflictError(TaleError):
    """A user already has a pending session and the store rejects a second one."""

    def __init__(self, discord_user_id: str, session_id: str) -> None:
        super().__init__(
            f"User {discord_user_id} already has a pending session {session_id}"
        )
        self.discord_user_id = discord_user_id
        self.session_id = session_id


class InvalidActionError(TaleError):
    """An action that does not apply to the session's current node."""


class GenerationFailedError(TaleError):
    """The AI content collaborator failed or returned unusable content."""


class RewardGrantError(TaleError):
    """The economy collaborator rejected or failed a reward grant."""
