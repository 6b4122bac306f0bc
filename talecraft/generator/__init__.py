"""AI story generation — stories produced layer by layer as the player advances."""

from talecraft.generator.dna import StoryDNA, WordBank, generate_story_dna
from talecraft.generator.incremental import (
    IncrementalStart,
    IncrementalStoryGenerator,
    build_story_from_layer1,
    start_incremental_ai_story,
)
from talecraft.generator.prompts import PromptError, render_prompt

__all__ = [
    "IncrementalStart",
    "IncrementalStoryGenerator",
    "PromptError",
    "StoryDNA",
    "WordBank",
    "build_story_from_layer1",
    "generate_story_dna",
    "render_prompt",
    "start_incremental_ai_story",
]
