"""Health check and runtime settings endpoints."""

from datetime import timedelta

from fastapi import APIRouter, Depends

from talecraft import config
from talecraft.engine import StoryEngine

from .deps import get_engine
from .models import SettingsBody

router = APIRouter()


@router.get("/health")
async def health(engine: StoryEngine = Depends(get_engine)):
    """Health check."""
    return {"status": "ok", "stories": len(engine.catalog), "sessions": engine.sessions.count()}


@router.get("/settings")
async def get_settings():
    """Get runtime story settings (AI story toggle and chance, resume window)."""
    return config.get_config()


@router.patch("/settings")
async def update_settings(body: SettingsBody, engine: StoryEngine = Depends(get_engine)):
    """Update runtime story settings (partial merge)."""
    updated = config.update_config(body.model_dump(exclude_none=True))
    engine.resume_window = timedelta(minutes=updated["resume_window_minutes"])
    return updated
