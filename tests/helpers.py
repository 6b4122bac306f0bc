"""Shared test doubles: deterministic RNG, clock, LLM and economy stand-ins."""

import json
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from talecraft.catalog import build_catalog
from talecraft.economy import LoggingEconomy
from talecraft.engine import StoryEngine
from talecraft.errors import RewardGrantError
from talecraft.models import StartContext
from talecraft.rng import SeededRNG
from talecraft.sessions import SessionStore


class FixedRNG:
    """RNG stand-in: randint returns queued values, then `default`, clamped to [a, b]."""

    def __init__(self, rolls: Sequence[int] = (), default: int = 50, random_value: float = 0.0) -> None:
        self.rolls = list(rolls)
        self.default = default
        self.random_value = random_value

    def randint(self, a: int, b: int) -> int:
        value = self.rolls.pop(0) if self.rolls else self.default
        return min(max(value, a), b)

    def random(self) -> float:
        return self.random_value

    def choice(self, seq):
        return seq[0]


class Clock:
    """Settable clock for expiry and resume-window tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FlakyEconomy:
    """Fails the first `failures` grants, then records them like LoggingEconomy."""

    def __init__(self, failures: int = 1) -> None:
        self.failures = failures
        self.grants = []

    async def __call__(self, grant) -> None:
        if self.failures:
            self.failures -= 1
            raise RewardGrantError("economy backend unavailable")
        self.grants.append(grant)


# ---------------------------------------------------------------------------
# StubLLM — dispatches by stage name, independent queue per stage
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list[str]] | None = None) -> None:
        self._queues: dict[str, list[str]] = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[tuple[str, str]] = []

    def queue(self, stage: str, *responses: str) -> None:
        self._queues.setdefault(stage, []).extend(responses)

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {[c[0] for c in self.calls]}"
            )
        return queue.pop(0)

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]


# ---------------------------------------------------------------------------
# Canned layer replies
# ---------------------------------------------------------------------------

LAYER1 = {
    "title": "The Vanishing Stapler",
    "emoji": "📎",
    "intro": {
        "narrative": "Monday morning. The office's only working stapler is gone, "
                     "and the quarterly report is due at noon.",
    },
    "decision1": {
        "narrative": "A trail of paper clips leads towards the server room.",
        "choiceX": {"label": "Follow the trail", "description": "Paper clips never lie."},
        "choiceY": {"label": "Ask the intern", "description": "Interns know everything."},
    },
}

LAYER2 = {
    "outcomeNarrative": "The trail ends at a suspiciously warm server rack.",
    "decision2": {
        "narrative": "Behind the rack, the IT guy is stapling cables together.",
        "choiceX": {"label": "Confront him", "description": "Demand the stapler back."},
        "choiceY": {"label": "Offer a trade", "description": "Two donuts for one stapler."},
    },
}

LAYER3 = {
    "outcomeNarrative": "The IT guy accepts the donuts without a word.",
    "terminal": {"narrative": "You staple the report at 11:59 and become an office legend."},
}


def layer_json(data: dict) -> str:
    return json.dumps(data)


def start_context(user: str = "1001", db_user_id: int = 7, **kwargs) -> StartContext:
    return StartContext(discord_user_id=user, db_user_id=db_user_id, **kwargs)


def make_engine(
    *stories,
    rng=None,
    economy=None,
    materializer=None,
    store: SessionStore | None = None,
    clock=None,
    **kwargs,
) -> StoryEngine:
    """Engine over an in-memory store, with a logging economy by default."""
    extra = {"clock": clock} if clock is not None else {}
    return StoryEngine(
        build_catalog(stories),
        store or SessionStore(**extra),
        rng=rng or FixedRNG(),
        flavor_rng=SeededRNG(42),
        economy=economy or LoggingEconomy(),
        materializer=materializer,
        **extra,
        **kwargs,
    )
