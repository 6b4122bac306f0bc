"""Handlebars prompt rendering for the story generation layers."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_join(this, items, separator=", "):
    """{{{join array ", "}}} — items joined into one string."""
    return str(separator).join(str(item) for item in (items or []))


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Layer templates ──────────────────────────────────────
# Triple-stash keeps quotes and apostrophes in model-written text unescaped.

OPENING_PROMPT = """\
You are a creative writer for a chat community game.

STORY SETUP:
- Setting: {{{setting}}}
- Situation: {{{twist}}}
- Main character: {{{role}}}

Create a SHORT funny interactive story following this setup. The story MUST \
take place in this setting, with this situation, and the player is this \
character.
{{#if has_words}}

REQUIRED ELEMENTS - weave these into the plot (not just mention them):
Key nouns (use at least 5): {{{join nouns ", "}}}
Key actions (use at least 1): {{{join verbs ", "}}}
{{/if}}
{{#if facts}}

The main character has these traits: {{{join facts ", "}}}. Incorporate them naturally.
{{/if}}

NARRATIVE COHERENCE RULES (MUST FOLLOW):
1. decision1.narrative must present a CLEAR situation requiring action
2. Each choice label MUST be an ACTION VERB PHRASE (e.g. "Run away", "Call security")
3. Each choice MUST be a DIRECT response to the situation presented
4. The two choices should represent DIFFERENT approaches (safe/risky, honest/deceptive, fight/flight)

OUTPUT JSON:
{
  "title": "Title (5-50 chars)",
  "emoji": "One emoji",
  "intro": { "narrative": "Setup (50-500 chars)" },
  "decision1": {
    "narrative": "Situation requiring a choice (20-400 chars)",
    "choiceX": { "label": "Action verb phrase (max 25 chars)", "description": "What happens (max 150 chars)" },
    "choiceY": { same structure as choiceX }
  }
}

Be funny. Return only the JSON object.\
"""

BRANCH_PROMPT = """\
Continue this story. The player made a choice and the outcome was determined.

STORY SO FAR:
Title: {{{title}}} {{{emoji}}}
Intro: {{{intro}}}
Decision: {{{decision.narrative}}}
Player chose: "{{{choice.label}}}" - {{{choice.description}}}
Outcome: {{outcome}}

Stay in the same setting, tone, and situation as the story so far.
Generate the NEXT PART: a brief outcome narrative and the second decision point.

JSON FORMAT:
{
  "outcomeNarrative": "What happened (20-300 chars)",
  "decision2": {
    "narrative": "Second decision (20-400 chars)",
    "choiceX": { "label": "Action verb phrase (max 25 chars)", "description": "What happens (max 150 chars)" },
    "choiceY": { same structure }
  }
}

CAUSE-AND-EFFECT RULES (MUST FOLLOW):
1. outcomeNarrative MUST describe what happened when they tried to "{{{choice.label}}}"
2. {{#if success}}"{{{choice.label}}}" worked or achieved its goal{{else}}"{{{choice.label}}}" backfired or was prevented{{/if}}
3. decision2 choices must follow logically from the outcome
4. Each choice label must be an ACTION VERB PHRASE

Return only the JSON object.\
"""

ENDING_PROMPT = """\
Finish this story with a final ending.

STORY SO FAR:
Title: {{{title}}} {{{emoji}}}
Intro: {{{intro}}}
First decision: player chose "{{{first_choice.label}}}"
After first outcome: {{{first_outcome}}}
Second decision: {{{decision.narrative}}}
Player chose: "{{{choice.label}}}"
Final outcome: {{outcome}}

Stay in the same setting, tone, and situation as the story so far.
Generate the ENDING: outcome narrative and the final result.

JSON FORMAT:
{
  "outcomeNarrative": "What happened in the final moment (20-300 chars)",
  "terminal": { "narrative": "Story ending (30-500 chars)" }
}

CAUSE-AND-EFFECT RULES (MUST FOLLOW):
1. outcomeNarrative MUST describe the direct result of "{{{choice.label}}}"
2. terminal.narrative must show the final consequence of their choice and \
{{#if success}}celebrate their success{{else}}show the unfortunate but logical consequence{{/if}}
3. The ending should reference their journey and be funny

Return only the JSON object.\
"""
