"""Session store — in-progress story runs.

Sessions live in an in-memory cache indexed by session id, Discord user id
and message id. When a data directory is given, each session is also written
to its own JSON file so runs survive a restart:

    {data_dir}/
      sessions/
        {session_id}.json     ← Session, as pydantic JSON

A session that has not been touched for max_age is expired. get() and the
index lookups return None for unknown and expired sessions alike: a missing
session is an expected outcome (the player's buttons simply expired), not an
error. require() is the raising variant.

At most one pending session per user is kept. on_conflict decides what
create() does when the user already has one:
    "replace" — drop the old session (default)
    "reject"  — raise SessionConflictError

Every removal (finish, cancel, replace, expiry, cleanup) goes through
remove(), which calls on_remove with the dropped session. AI stories only
exist in memory, so load() discards persisted sessions that point at one.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from talecraft.catalog import is_dynamic_story
from talecraft.errors import SessionConflictError, SessionExpiredError, SessionNotFoundError
from talecraft.models import Session, StartContext

logger = logging.getLogger(__name__)

ConflictPolicy = Literal["replace", "reject"]

DEFAULT_MAX_AGE = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(
        self,
        data_dir: Path | None = None,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        on_conflict: ConflictPolicy = "replace",
        clock: Callable[[], datetime] = utcnow,
        on_remove: Callable[[Session], None] | None = None,
    ) -> None:
        self._dir = data_dir / "sessions" if data_dir is not None else None
        if self._dir is not None:
            self._dir.mkdir(parents=True, exist_ok=True)
        self.max_age = max_age
        self.on_conflict = on_conflict
        self.on_remove = on_remove
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._by_user: dict[str, str] = {}
        self._by_message: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _path(self, session_id: str) -> Path | None:
        if self._dir is None:
            return None
        return self._dir / f"{session_id}.json"

    def _write(self, session: Session) -> None:
        path = self._path(session.session_id)
        if path is not None:
            path.write_text(session.model_dump_json(indent=2))

    def _read(self, session_id: str) -> Session | None:
        path = self._path(session_id)
        if path is None or not path.is_file():
            return None
        try:
            return Session.model_validate_json(path.read_text())
        except ValidationError as e:
            logger.warning("Discarding unreadable session file %s: %s", path.name, e)
            path.unlink()
            return None

    def _index(self, session: Session) -> None:
        self._sessions[session.session_id] = session
        self._by_user[session.discord_user_id] = session.session_id
        if session.message_id:
            self._by_message[session.message_id] = session.session_id

    def _unindex(self, session: Session) -> None:
        self._sessions.pop(session.session_id, None)
        if self._by_user.get(session.discord_user_id) == session.session_id:
            del self._by_user[session.discord_user_id]
        if session.message_id and self._by_message.get(session.message_id) == session.session_id:
            del self._by_message[session.message_id]

    def _lookup(self, session_id: str) -> Session | None:
        """Find a session without applying expiry."""
        session = self._sessions.get(session_id)
        if session is None:
            session = self._read(session_id)
            if session is not None:
                self._index(session)
        return session

    def is_expired(self, session: Session) -> bool:
        return self._clock() - session.last_interaction_at > self.max_age

    def _live(self, session: Session | None) -> Session | None:
        if session is None:
            return None
        if self.is_expired(session):
            logger.info("Session %s expired", session.session_id)
            self.remove(session.session_id)
            return None
        return session

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(
        self,
        ctx: StartContext,
        story_id: str,
        start_node_id: str,
        ai_context: dict[str, Any] | None = None,
    ) -> Session:
        existing = self.get_by_user(ctx.discord_user_id)
        if existing is not None:
            if self.on_conflict == "reject":
                raise SessionConflictError(ctx.discord_user_id, existing.session_id)
            logger.info(
                "Replacing pending session %s of user %s",
                existing.session_id, ctx.discord_user_id,
            )
            self.remove(existing.session_id)

        now = self._clock()
        session = Session(
            session_id=str(uuid.uuid4()),
            story_id=story_id,
            current_node_id=start_node_id,
            discord_user_id=ctx.discord_user_id,
            db_user_id=ctx.db_user_id,
            message_id=ctx.message_id,
            channel_id=ctx.channel_id,
            guild_id=ctx.guild_id,
            user_level=ctx.user_level,
            base_xp=ctx.base_xp,
            created_at=now,
            last_interaction_at=now,
            ai_context=ai_context,
        )
        self._write(session)
        self._index(session)
        logger.info("Created session %s (story=%s user=%s)", session.session_id, story_id, ctx.discord_user_id)
        return session

    def get(self, session_id: str) -> Session | None:
        return self._live(self._lookup(session_id))

    def get_by_user(self, discord_user_id: str) -> Session | None:
        session_id = self._by_user.get(discord_user_id)
        if session_id is None:
            return None
        return self.get(session_id)

    def get_by_message(self, message_id: str) -> Session | None:
        session_id = self._by_message.get(message_id)
        if session_id is None:
            return None
        return self.get(session_id)

    def require(self, session_id: str) -> Session:
        """Like get(), but raise SessionNotFoundError / SessionExpiredError."""
        session = self._lookup(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if self._live(session) is None:
            raise SessionExpiredError(session_id)
        return session

    def save(self, session: Session) -> None:
        """Persist a mutated session and mark it as just interacted with."""
        session.last_interaction_at = self._clock()
        self._write(session)
        self._index(session)

    def touch(self, session_id: str) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        self.save(session)
        return True

    def set_message(self, session: Session, message_id: str) -> None:
        """Attach the chat message that renders this session (for button lookups)."""
        if session.message_id and self._by_message.get(session.message_id) == session.session_id:
            del self._by_message[session.message_id]
        session.message_id = message_id
        self.save(session)

    def remove(self, session_id: str) -> bool:
        session = self._sessions.get(session_id) or self._read(session_id)
        path = self._path(session_id)
        if path is not None and path.is_file():
            path.unlink()
        if session is None:
            return False
        self._unindex(session)
        logger.debug("Removed session %s", session_id)
        if self.on_remove is not None:
            self.on_remove(session)
        return True

    def all(self) -> list[Session]:
        return list(self._sessions.values())

    def count(self) -> int:
        return len(self._sessions)

    def cleanup_expired(self) -> int:
        expired = [s for s in self._sessions.values() if self.is_expired(s)]
        for session in expired:
            self.remove(session.session_id)
        if expired:
            logger.info("Cleaned up %d expired sessions", len(expired))
        return len(expired)

    def load(self) -> int:
        """Restore persisted sessions into memory, dropping expired ones."""
        if self._dir is None:
            return 0
        loaded = 0
        for path in sorted(self._dir.glob("*.json")):
            try:
                session = Session.model_validate(json.loads(path.read_text()))
            except (ValueError, ValidationError) as e:
                logger.warning("Discarding unreadable session file %s: %s", path.name, e)
                path.unlink()
                continue
            if self.is_expired(session):
                path.unlink()
                continue
            if is_dynamic_story(session.story_id):
                logger.info("Dropping session %s: AI story %s did not survive the restart",
                            session.session_id, session.story_id)
                path.unlink()
                continue
            self._index(session)
            loaded += 1
        logger.info("Loaded %d active sessions", loaded)
        return loaded
