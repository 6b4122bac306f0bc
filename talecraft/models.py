"""Core domain models.

Every engine component operates on these types. Pydantic is used for
validation and serialisation at every data boundary: story definitions are
validated when authored content is loaded, sessions are persisted as JSON.

Story graph:

    intro ──► decision ──choiceX──► outcome ──success──► decision | terminal
                  │                    └──────fail─────► decision | terminal
                  └──────choiceY──► outcome | decision | terminal

Narrative and coin fields are a tagged union of Static (a literal) and
Computed (a function of the session and a flavor RNG). Authored content may
pass a plain str/int or a plain callable; both are coerced on validation.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

ChoiceKey = Literal["choiceX", "choiceY"]
CHOICE_KEYS: tuple[ChoiceKey, ...] = ("choiceX", "choiceY")

NodeType = Literal["intro", "decision", "outcome", "terminal"]


# ---------------------------------------------------------------------------
# Dynamic values
# ---------------------------------------------------------------------------

class Static(BaseModel):
    """A literal narrative string or coin amount."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    value: str | int


class Computed(BaseModel):
    """A value produced on first visit by fn(session, rng)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["computed"] = "computed"
    fn: Callable[[Any, Any], Any]


def _coerce_dynamic(value: Any) -> Any:
    if value is None or isinstance(value, (Static, Computed, dict)):
        return value
    if callable(value):
        return Computed(fn=value)
    return Static(value=value)


DynamicValue = Annotated[Union[Static, Computed], BeforeValidator(_coerce_dynamic)]


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class Choice(BaseModel):
    """One of the two options at a decision node."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(min_length=1, max_length=80)
    description: str = ""
    base_reward: int = 0
    risk_multiplier: float = Field(default=1.0, ge=0)
    next_node_id: str


class _NodeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    narrative: DynamicValue
    coins_change: DynamicValue | None = None  # applied once, on entry


class IntroNode(_NodeBase):
    type: Literal["intro"] = "intro"
    next_node_id: str


class DecisionNode(_NodeBase):
    type: Literal["decision"] = "decision"
    choices: dict[ChoiceKey, Choice]

    @model_validator(mode="after")
    def _both_choices(self) -> DecisionNode:
        missing = [k for k in CHOICE_KEYS if k not in self.choices]
        if missing:
            raise ValueError(f"decision '{self.id}' is missing {', '.join(missing)}")
        return self

    def choice(self, key: ChoiceKey) -> Choice:
        return self.choices[key]


class OutcomeNode(_NodeBase):
    type: Literal["outcome"] = "outcome"
    success_chance: int = Field(ge=0, le=100)
    success_node_id: str
    fail_node_id: str


class TerminalNode(_NodeBase):
    type: Literal["terminal"] = "terminal"
    coins_change: DynamicValue = Static(value=0)
    is_positive_ending: bool
    xp_multiplier: float = Field(default=1.0, ge=0)


Node = Annotated[
    Union[IntroNode, DecisionNode, OutcomeNode, TerminalNode],
    Field(discriminator="type"),
]


def outgoing_ids(node: IntroNode | DecisionNode | OutcomeNode | TerminalNode) -> list[str]:
    """Ids this node can transition to, in a stable order."""
    if isinstance(node, IntroNode):
        return [node.next_node_id]
    if isinstance(node, DecisionNode):
        return [node.choices[k].next_node_id for k in CHOICE_KEYS]
    if isinstance(node, OutcomeNode):
        return [node.success_node_id, node.fail_node_id]
    return []


# ---------------------------------------------------------------------------
# Story definition
# ---------------------------------------------------------------------------

class BalanceMetadata(BaseModel):
    """Authoring targets used when balancing a story; not read by the engine."""

    model_config = ConfigDict(frozen=True)

    expected_paths: int = 0
    average_reward: int = 0
    max_possible_reward: int = 0
    min_possible_reward: int = 0


class StoryDefinition(BaseModel):
    """A complete (or, for incremental AI stories, partially materialized) story.

    pending_node_ids lists ids the graph references but that do not exist
    yet. They are filled in by materialize() when a session first reaches them.
    Authored stories never have pending ids and are never mutated.
    """

    id: str
    title: str
    emoji: str = ""
    start_node_id: str
    nodes: dict[str, Node]
    balance: BalanceMetadata = Field(default_factory=BalanceMetadata)
    pending_node_ids: set[str] = Field(default_factory=set)

    @model_validator(mode="before")
    @classmethod
    def _index_node_list(cls, data: Any) -> Any:
        # Authored content lists nodes; index them by id.
        if isinstance(data, dict) and isinstance(data.get("nodes"), (list, tuple)):
            data = dict(data)
            indexed: dict[str, Any] = {}
            for node in data["nodes"]:
                node_id = node.id if isinstance(node, BaseModel) else node["id"]
                if node_id in indexed:
                    raise ValueError(f"duplicate node id '{node_id}'")
                indexed[node_id] = node
            data["nodes"] = indexed
        return data

    @model_validator(mode="after")
    def _keys_match_ids(self) -> StoryDefinition:
        for key, node in self.nodes.items():
            if key != node.id:
                raise ValueError(f"node stored under '{key}' has id '{node.id}'")
        return self

    def node(self, node_id: str) -> IntroNode | DecisionNode | OutcomeNode | TerminalNode | None:
        return self.nodes.get(node_id)

    def is_pending(self, node_id: str) -> bool:
        return node_id in self.pending_node_ids and node_id not in self.nodes

    def dangling_references(self) -> list[str]:
        """Describe every reference that resolves to neither a node nor a pending id."""
        problems: list[str] = []
        if self.start_node_id not in self.nodes:
            problems.append(f"start node '{self.start_node_id}' not found")
        for node_id, node in self.nodes.items():
            for target in outgoing_ids(node):
                if target not in self.nodes and target not in self.pending_node_ids:
                    problems.append(f"{node.type} node '{node_id}' references missing node '{target}'")
        return problems

    def materialize(
        self,
        nodes: list[IntroNode | DecisionNode | OutcomeNode | TerminalNode],
        pending: set[str] | None = None,
    ) -> None:
        """Add (or replace) nodes and declare further pending ids.

        Raises ValueError if the result references ids that are neither
        materialized nor pending; callers translate it into MalformedNodeError.
        """
        for node in nodes:
            self.nodes[node.id] = node
            self.pending_node_ids.discard(node.id)
        if pending:
            self.pending_node_ids.update(p for p in pending if p not in self.nodes)
        problems = self.dangling_references()
        if problems:
            raise ValueError("; ".join(problems))


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class RollResult(BaseModel):
    rolled: int
    needed: int
    success: bool


class ChoiceOption(BaseModel):
    label: str
    description: str


class ChoiceRecord(BaseModel):
    """A decision as the player saw it, for the public story summary."""

    node_id: str
    narrative: str
    choice: ChoiceKey
    options: dict[ChoiceKey, ChoiceOption]


class JournalEntry(BaseModel):
    type: Literal["intro", "decision", "outcome"]
    narrative: str
    choice: ChoiceKey | None = None
    options: dict[ChoiceKey, ChoiceOption] | None = None
    roll: RollResult | None = None


class PendingOutcome(BaseModel):
    """An outcome whose roll is decided but whose next node is still being generated."""

    node_id: str
    roll: RollResult


class FinalResult(BaseModel):
    total_coins: int
    xp_earned: int
    is_positive_ending: bool
    terminal_node_id: str
    path_taken: list[str]


class StartContext(BaseModel):
    """Who started the story and where; passed by the trigger layer."""

    discord_user_id: str
    db_user_id: int
    message_id: str = ""
    channel_id: str = ""
    guild_id: str = ""
    user_level: int = 1
    base_xp: int | None = None  # defaults to calculate_base_xp(user_level)


class Session(BaseModel):
    """An in-progress story run."""

    session_id: str
    story_id: str
    current_node_id: str
    accumulated_coins: int = 0
    discord_user_id: str
    db_user_id: int
    message_id: str = ""
    channel_id: str = ""
    guild_id: str = ""
    user_level: int = 1
    base_xp: int | None = None
    created_at: datetime
    last_interaction_at: datetime
    choices_path: list[str] = Field(default_factory=list)
    choice_history: list[ChoiceRecord] = Field(default_factory=list)
    journal: list[JournalEntry] = Field(default_factory=list)
    resolved_values: dict[str, dict[str, str | int]] = Field(default_factory=dict)
    ai_context: dict[str, Any] | None = None
    pending_reward: FinalResult | None = None
    pending_outcome: PendingOutcome | None = None


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------

AnyNode = Union[IntroNode, DecisionNode, OutcomeNode, TerminalNode]


class StoryContext(BaseModel):
    story: StoryDefinition
    current_node: AnyNode


class StoryStep(BaseModel):
    """What one engine step produced, as plain data for the presentation layer."""

    session: Session
    current_node: AnyNode
    narrative: str
    is_complete: bool = False
    final_result: FinalResult | None = None
    roll_result: RollResult | None = None
