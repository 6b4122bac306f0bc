"""Authored story content.

ALL_STORIES enumerates every definition for build_catalog(). Adding a story
means adding its module here; nothing registers itself on import.

STORY_ACTIVITIES lists the stories players can be dealt by the story
command, with the category used for career weighting. The demo story is
registered but not dealt.
"""

from talecraft.models import StoryDefinition
from talecraft.selection import StoryActivity

from . import coffee_machine, demo, friday_deploy, lunch_thief

ALL_STORIES: list[StoryDefinition] = [
    demo.STORY,
    coffee_machine.STORY,
    friday_deploy.STORY,
    lunch_thief.STORY,
]

STORY_ACTIVITIES: list[StoryActivity] = [
    StoryActivity(
        id="story-coffee-machine",
        title="Tame the new coffee machine",
        category="story:work",
        story_id=coffee_machine.STORY.id,
    ),
    StoryActivity(
        id="story-friday-deploy",
        title="Ship the release before the weekend",
        category="story:adventure",
        story_id=friday_deploy.STORY.id,
    ),
    StoryActivity(
        id="story-lunch-thief",
        title="Catch the office lunch thief",
        category="story:crime",
        story_id=lunch_thief.STORY.id,
    ),
]
