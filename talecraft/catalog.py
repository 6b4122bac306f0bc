"""Story catalog — registry of story definitions keyed by id.

The catalog is built explicitly at startup from an enumerated list of
definitions (build_catalog), so there is no import-order-dependent global
state. Each story's graph is validated on registration:

  - the start node exists and is an intro node
  - every next/success/fail reference resolves to a node or a pending id
  - the graph is acyclic

Together these guarantee that every path from the start ends at a terminal
in a bounded number of steps (pending ids count as open ends that will be
materialized later), since every non-terminal node has outgoing edges.

Balance checks (terminal count, positive-ending ratio) are advisory and only
logged.

Dynamic (AI-generated) stories are registered under ids starting with "ai_"
and unregistered when their session ends.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from talecraft.errors import DuplicateStoryError, MalformedNodeError
from talecraft.models import IntroNode, StoryDefinition, TerminalNode, outgoing_ids

logger = logging.getLogger(__name__)

DYNAMIC_STORY_PREFIX = "ai_"

MIN_TERMINALS = 8
POSITIVE_RATIO_RANGE = (0.6, 0.8)


def is_dynamic_story(story_id: str) -> bool:
    return story_id.startswith(DYNAMIC_STORY_PREFIX)


def validate_story(story: StoryDefinition) -> list[str]:
    """Return a list of graph defects; empty if the story is playable."""
    problems = story.dangling_references()
    start = story.node(story.start_node_id)
    if start is not None and not isinstance(start, IntroNode):
        problems.append(f"start node '{story.start_node_id}' is a {start.type} node, expected intro")
    if problems:
        return problems

    # Depth-first walk: grey = on the current path, black = fully explored.
    grey: set[str] = set()
    black: set[str] = set()

    def visit(node_id: str) -> None:
        if node_id in black or story.is_pending(node_id):
            return
        if node_id in grey:
            problems.append(f"cycle through node '{node_id}'")
            return
        grey.add(node_id)
        for target in outgoing_ids(story.nodes[node_id]):
            visit(target)
        grey.discard(node_id)
        black.add(node_id)

    visit(story.start_node_id)

    unreachable = sorted(set(story.nodes) - black)
    for node_id in unreachable:
        logger.debug("Story %s: node '%s' is unreachable", story.id, node_id)
    return problems


def balance_warnings(story: StoryDefinition) -> list[str]:
    """Advisory authoring checks; never block registration."""
    warnings: list[str] = []
    terminals = [n for n in story.nodes.values() if isinstance(n, TerminalNode)]
    if len(terminals) < MIN_TERMINALS:
        warnings.append(f"only {len(terminals)} terminal nodes (minimum {MIN_TERMINALS})")
    if terminals:
        ratio = sum(1 for t in terminals if t.is_positive_ending) / len(terminals)
        low, high = POSITIVE_RATIO_RANGE
        if not low <= ratio <= high:
            warnings.append(
                f"positive ending ratio is {ratio:.0%} (should be {low:.0%}-{high:.0%})"
            )
    return warnings


class StoryCatalog:
    """Process-wide registry mapping story id to definition."""

    def __init__(self) -> None:
        self._stories: dict[str, StoryDefinition] = {}

    def register(self, story: StoryDefinition) -> None:
        """Add a story. Raises DuplicateStoryError or MalformedNodeError."""
        if story.id in self._stories:
            raise DuplicateStoryError(story.id)
        problems = validate_story(story)
        if problems:
            raise MalformedNodeError(story.id, problems)
        if not story.pending_node_ids:
            for warning in balance_warnings(story):
                logger.info("Story %s: %s", story.id, warning)
        self._stories[story.id] = story
        logger.debug("Registered story: %s", story.id)

    def unregister(self, story_id: str) -> bool:
        if self._stories.pop(story_id, None) is None:
            return False
        logger.debug("Unregistered story: %s", story_id)
        return True

    def get(self, story_id: str) -> StoryDefinition | None:
        return self._stories.get(story_id)

    def story_ids(self) -> list[str]:
        return list(self._stories)

    def __contains__(self, story_id: object) -> bool:
        return story_id in self._stories

    def __len__(self) -> int:
        return len(self._stories)


def build_catalog(stories: Iterable[StoryDefinition]) -> StoryCatalog:
    """Construct a catalog from an enumerated list of definitions."""
    catalog = StoryCatalog()
    for story in stories:
        catalog.register(story)
    logger.info("Story catalog ready with %d stories", len(catalog))
    return catalog
