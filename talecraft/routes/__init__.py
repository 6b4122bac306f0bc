"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, runtime settings), stories (catalog,
start), sessions (play, resume, abandon) and interactions (button custom
ids, decoded and routed to the same session operations).
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router
from .stories import router as stories_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(stories_router)
router.include_router(sessions_router)
