"""Story DNA and word banks — the random seeds of an AI story.

Each opening combines a setting, a twist and a role (story DNA), a handful
of random nouns and verbs, and, when the player has a member profile, a few
personal traits. The word lists live in plain text files:

    data/
      story-words-nouns.txt   ← one word per line, # comments
      story-words-verbs.txt
      story-members.txt       ← <discord_id>: fact; fact; fact
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

from talecraft.rng import RNG

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

NOUN_COUNT = 10
VERB_COUNT = 2
MAX_FACTS = 3

STORY_SETTINGS: tuple[str, ...] = (
    "in a medieval castle",
    "on an abandoned space station",
    "in an underwater laboratory",
    "in an insurance office",
    "in a jungle on a remote island",
    "aboard a pirate ship",
    "in an underground bunker",
    "in a mountain cabin during a snowstorm",
    "in a television studio",
    "on a farm in the middle of nowhere",
    "in a hospital at midnight",
    "on a skyscraper construction site",
    "in a wax museum",
    "in a supermarket after closing time",
    "on a plane that cannot land",
    "in an abandoned amusement park",
    "in the subway tunnels",
    "at a wedding where nothing goes right",
    "in a chocolate factory",
    "in a casino full of cheats",
    "at a police station",
    "at the zoo after the animals escaped",
    "on the roof of an apartment block",
)

STORY_TWISTS: tuple[str, ...] = (
    "where someone planted fake evidence",
    "where two people swapped identities",
    "where a secret treasure hunt is under way",
    "where everyone is trying to get out",
    "where something important vanished and nobody knows where",
    "where a mysterious letter with an ultimatum appeared",
    "where every piece of technology broke down",
    "where an inspection is happening and nothing works",
    "where everyone acts normal but something is wrong",
    "where one person knows more than the others",
    "where a chain reaction of small accidents started",
    "where two rivals have to work together",
    "where someone is sabotaging things from the inside",
    "where a deadline is looming and nothing is done",
    "where an absurd rumour has spread",
    "where a vote on something important is taking place",
    "where two people accidentally swapped bags",
    "where the food for a big event went bad",
)

STORY_ROLES: tuple[str, ...] = (
    "a new intern on their first day",
    "a terrified accountant",
    "a lost pizza courier",
    "a retired spy",
    "a receptionist with a secret plan",
    "a firefighter on holiday",
    "a janitor who overhears everything",
    "a cook with big ambitions",
    "a taxi driver new to the city",
    "a pilot without a plane",
    "a professor who forgot what they teach",
    "a children's entertainer at a corporate party",
    "an influencer with zero followers",
    "a sports commentator away from the studio",
    "a security guard afraid of the dark",
    "a scientist with a dubious invention",
    "a grandmother with surprising skills",
    "a robot pretending to be human",
    "a museum guide who knows nothing",
    "a programmer who hates computers",
)


class StoryDNA(BaseModel):
    setting: str
    twist: str
    role: str


class StoryWords(BaseModel):
    nouns: list[str] = Field(default_factory=list)
    verbs: list[str] = Field(default_factory=list)


def generate_story_dna(rng: RNG) -> StoryDNA:
    return StoryDNA(
        setting=rng.choice(STORY_SETTINGS),
        twist=rng.choice(STORY_TWISTS),
        role=rng.choice(STORY_ROLES),
    )


def pick_random_words(words: Sequence[str], count: int, rng: RNG) -> list[str]:
    """Pick up to count distinct entries, in draw order."""
    available = list(words)
    picked: list[str] = []
    for _ in range(min(count, len(available))):
        picked.append(available.pop(rng.randint(0, len(available) - 1)))
    return picked


def load_words(path: Path) -> list[str]:
    """Read a word list, skipping blank lines and # comments. Missing file → []."""
    if not path.is_file():
        logger.warning("Word file not found: %s", path)
        return []
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def load_members(path: Path) -> dict[str, list[str]]:
    """Read member profiles in '<discord_id>: fact; fact' format. Missing file → {}."""
    members: dict[str, list[str]] = {}
    if not path.is_file():
        return members
    for line in load_words(path):
        discord_id, sep, rest = line.partition(":")
        if not sep:
            continue
        facts = [f.strip() for f in rest.split(";") if f.strip()]
        if facts:
            members[discord_id.strip()] = facts
    logger.info("Loaded %d member profiles", len(members))
    return members


class WordBank:
    """Nouns, verbs and member traits loaded once from a data directory."""

    def __init__(self, nouns: list[str], verbs: list[str], members: dict[str, list[str]] | None = None) -> None:
        self.nouns = nouns
        self.verbs = verbs
        self.members = members or {}

    @classmethod
    def load(cls, data_dir: Path = DATA_DIR) -> WordBank:
        bank = cls(
            nouns=load_words(data_dir / "story-words-nouns.txt"),
            verbs=load_words(data_dir / "story-words-verbs.txt"),
            members=load_members(data_dir / "story-members.txt"),
        )
        logger.info("Loaded %d nouns and %d verbs", len(bank.nouns), len(bank.verbs))
        return bank

    def story_words(self, rng: RNG) -> StoryWords:
        return StoryWords(
            nouns=pick_random_words(self.nouns, NOUN_COUNT, rng),
            verbs=pick_random_words(self.verbs, VERB_COUNT, rng),
        )

    def member_facts(self, discord_user_id: str, rng: RNG) -> list[str]:
        return pick_random_words(self.members.get(discord_user_id, []), MAX_FACTS, rng)
