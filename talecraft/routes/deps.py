"""Request-scoped access to the objects built by create_app()."""

from fastapi import Request

from talecraft.engine import StoryEngine
from talecraft.generator import IncrementalStoryGenerator


def get_engine(request: Request) -> StoryEngine:
    return request.app.state.engine


def get_generator(request: Request) -> IncrementalStoryGenerator | None:
    return request.app.state.generator
