"""Tests for Handlebars prompt rendering: helpers, layer templates and errors."""

import pytest

from talecraft.generator.prompts import (
    BRANCH_PROMPT,
    ENDING_PROMPT,
    OPENING_PROMPT,
    PromptError,
    render_prompt,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_if_conditional():
    tpl = "{{#if show}}yes{{else}}no{{/if}}"
    assert render_prompt(tpl, {"show": True}) == "yes"
    assert render_prompt(tpl, {"show": False}) == "no"


def test_join_helper():
    assert render_prompt('{{{join items ", "}}}', {"items": ["mop", "fax", "badge"]}) == "mop, fax, badge"
    assert render_prompt("{{{join items}}}", {"items": []}) == ""


def test_triple_stash_keeps_quotes():
    assert render_prompt("{{{text}}}", {"text": "It's \"fine\""}) == "It's \"fine\""


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── Layer templates ──────────────────────────────────────────


def test_opening_prompt_with_words_and_facts():
    text = render_prompt(OPENING_PROMPT, {
        "setting": "in a wax museum",
        "twist": "where two rivals have to work together",
        "role": "a lost pizza courier",
        "nouns": ["stapler", "fax"],
        "verbs": ["negotiate"],
        "has_words": True,
        "facts": ["collects rubber ducks"],
    })
    assert "Setting: in a wax museum" in text
    assert "Main character: a lost pizza courier" in text
    assert "Key nouns (use at least 5): stapler, fax" in text
    assert "Key actions (use at least 1): negotiate" in text
    assert "collects rubber ducks" in text


def test_opening_prompt_without_words():
    text = render_prompt(OPENING_PROMPT, {
        "setting": "s", "twist": "t", "role": "r", "nouns": [], "verbs": [], "has_words": False, "facts": [],
    })
    assert "REQUIRED ELEMENTS" not in text
    assert "traits" not in text


def test_branch_prompt_reflects_outcome():
    context = {
        "title": "The Vanishing Stapler",
        "emoji": "📎",
        "intro": "Monday.",
        "decision": {"narrative": "A trail of paper clips."},
        "choice": {"label": "Follow the trail", "description": "Paper clips never lie."},
        "outcome": "FAILED",
        "success": False,
    }
    text = render_prompt(BRANCH_PROMPT, context)
    assert 'Player chose: "Follow the trail" - Paper clips never lie.' in text
    assert "Outcome: FAILED" in text
    assert '"Follow the trail" backfired or was prevented' in text


def test_ending_prompt_celebrates_success():
    context = {
        "title": "T",
        "emoji": "📎",
        "intro": "Monday.",
        "first_choice": {"label": "Follow the trail"},
        "first_outcome": "The trail ends at a server rack.",
        "decision": {"narrative": "The IT guy is stapling cables."},
        "choice": {"label": "Offer a trade"},
        "outcome": "SUCCEEDED",
        "success": True,
    }
    text = render_prompt(ENDING_PROMPT, context)
    assert "After first outcome: The trail ends at a server rack." in text
    assert "celebrate their success" in text
