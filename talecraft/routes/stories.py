"""Story catalog and story start endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from talecraft import config
from talecraft.catalog import is_dynamic_story
from talecraft.engine import StoryEngine
from talecraft.generator import IncrementalStoryGenerator, start_incremental_ai_story
from talecraft.models import StartContext
from talecraft.selection import career_weights, pick_story, should_use_ai_story
from talecraft.stories import STORY_ACTIVITIES

from .deps import get_engine, get_generator
from .models import StartBody, step_view

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stories")
async def list_stories(engine: StoryEngine = Depends(get_engine)):
    """List registered stories with their activity category, if dealt."""
    categories = {a.story_id: a.category for a in STORY_ACTIVITIES}
    stories = []
    for story_id in sorted(engine.catalog.story_ids()):
        story = engine.catalog.get(story_id)
        stories.append({
            "id": story.id,
            "title": story.title,
            "emoji": story.emoji,
            "category": categories.get(story.id),
            "dynamic": is_dynamic_story(story.id),
        })
    return stories


@router.post("/stories/start")
async def start_story(
    body: StartBody,
    engine: StoryEngine = Depends(get_engine),
    generator: IncrementalStoryGenerator | None = Depends(get_generator),
):
    """Start a story for a user.

    With story_id the given story starts. Without it, an AI story is tried
    first when enabled (falling back to an authored one if generation fails),
    then an authored story is picked, weighted by the user's career.
    """
    ctx = StartContext(**body.model_dump(exclude={"story_id", "career"}))

    if body.story_id is not None:
        return step_view(engine, await engine.start_story(body.story_id, ctx))

    settings = config.get_config()
    if generator is not None and should_use_ai_story(
        settings["ai_story_enabled"], settings["ai_story_chance_percent"], engine.rng
    ):
        started = await start_incremental_ai_story(engine, generator, ctx)
        if started.success and started.result is not None:
            return step_view(engine, started.result)
        logger.info("Falling back to an authored story: %s", started.error)

    activities = [a for a in STORY_ACTIVITIES if a.story_id in engine.catalog]
    activity = pick_story(activities, career_weights(body.career), rng=engine.rng)
    if activity is None:
        raise HTTPException(404, "No stories available")
    return step_view(engine, await engine.start_story(activity.story_id, ctx))
