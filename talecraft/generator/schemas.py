"""Pydantic models for the JSON replies of each generation layer.

Layer 1 is validated strictly. Layers 2 and 3 truncate over-long text
before validation, so a model that ignores the length limits still yields a
usable continuation.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

logger = logging.getLogger(__name__)


def _truncate(limit: int, ellipsis: bool = True):
    def cut(value: Any) -> Any:
        if isinstance(value, str) and len(value) > limit:
            return value[: limit - 3] + "..." if ellipsis else value[:limit]
        return value
    return BeforeValidator(cut)


# ── Layer 1 ──────────────────────────────────────────────

class AIChoice(BaseModel):
    label: str = Field(min_length=1, max_length=25)
    description: str = Field(min_length=1, max_length=150)


class AIDecision(BaseModel):
    narrative: str = Field(min_length=20, max_length=400)
    choiceX: AIChoice
    choiceY: AIChoice

    def choice(self, key: str) -> AIChoice:
        return self.choiceX if key == "X" else self.choiceY


class AIIntro(BaseModel):
    narrative: str = Field(min_length=50, max_length=500)


class Layer1Response(BaseModel):
    title: str = Field(min_length=5, max_length=50)
    emoji: str = Field(min_length=1, max_length=4)
    intro: AIIntro
    decision1: AIDecision


# ── Layers 2 and 3 (normalized) ──────────────────────────

class NormalizedChoice(AIChoice):
    label: Annotated[str, _truncate(25, ellipsis=False)] = Field(min_length=1, max_length=25)
    description: Annotated[str, _truncate(150, ellipsis=False)] = Field(min_length=1, max_length=150)


class NormalizedDecision(AIDecision):
    narrative: Annotated[str, _truncate(400)] = Field(min_length=20, max_length=400)
    choiceX: NormalizedChoice
    choiceY: NormalizedChoice


class Layer2Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    outcome_narrative: Annotated[str, _truncate(300)] = Field(
        alias="outcomeNarrative", min_length=20, max_length=300
    )
    decision2: NormalizedDecision


class AITerminal(BaseModel):
    narrative: Annotated[str, _truncate(500)] = Field(min_length=30, max_length=500)


class Layer3Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    outcome_narrative: Annotated[str, _truncate(300)] = Field(
        alias="outcomeNarrative", min_length=20, max_length=300
    )
    terminal: AITerminal


# ── Story context carried in Session.ai_context ──────────

class AIStoryContext(BaseModel):
    """What later layers need to know about the story so far."""

    title: str
    emoji: str
    intro_narrative: str
    decision1: AIDecision
    path_so_far: str = ""
    first_outcome_narrative: str | None = None
    decision2: AIDecision | None = None


def parse_json_output(text: str) -> dict | None:
    """Parse a JSON object from LLM output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Generator output is not valid JSON: %s", e)
        return None
    return data if isinstance(data, dict) else None
