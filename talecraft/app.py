import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from talecraft import config
from talecraft.catalog import build_catalog
from talecraft.economy import HttpEconomyClient, LoggingEconomy, RewardGranter
from talecraft.engine import StoryEngine
from talecraft.errors import (
    GenerationFailedError,
    InvalidActionError,
    RewardGrantError,
    SessionConflictError,
    SessionExpiredError,
    SessionNotFoundError,
    StoryNotFoundError,
    TaleError,
)
from talecraft.generator import IncrementalStoryGenerator
from talecraft.llm import LLM, HttpLLM
from talecraft.rng import RNG
from talecraft.routes import router
from talecraft.sessions import SessionStore
from talecraft.stories import ALL_STORIES

logger = logging.getLogger(__name__)

_STATUS: list[tuple[type[TaleError], int]] = [
    (StoryNotFoundError, 404),
    (SessionNotFoundError, 404),
    (SessionExpiredError, 410),
    (SessionConflictError, 409),
    (InvalidActionError, 409),
    (GenerationFailedError, 502),
    (RewardGrantError, 502),
]


async def _tale_error_handler(request: Request, exc: TaleError) -> JSONResponse:
    status = next((code for cls, code in _STATUS if isinstance(exc, cls)), 500)
    if status == 500:
        logger.error("Story engine error on %s: %s", request.url.path, exc)
    detail = str(exc)
    if isinstance(exc, SessionExpiredError):
        detail = f"{exc} Start a new story."
    return JSONResponse(status_code=status, content={"detail": detail})


async def _sweep_sessions(sessions: SessionStore, interval: float) -> None:
    """Drop expired sessions that nobody looks up any more."""
    while True:
        await asyncio.sleep(interval)
        try:
            sessions.cleanup_expired()
        except OSError as e:
            logger.warning("Session cleanup failed: %s", e)


def create_app(
    data_dir: Path | None = None,
    *,
    settings: config.Settings | None = None,
    llm: LLM | None = None,
    economy: RewardGranter | None = None,
    rng: RNG | None = None,
) -> FastAPI:
    settings = settings or config.load_settings()
    config.configure_logging(settings.log_level)
    resolved = data_dir or settings.data_dir
    config.init_config(resolved)

    sessions = SessionStore(resolved, on_conflict=settings.session_conflict)
    sessions.load()

    if economy is None:
        if settings.economy_url:
            economy = HttpEconomyClient(settings.economy_url, settings.economy_api_key)
        else:
            economy = LoggingEconomy()

    if llm is None and settings.llm_provider_url:
        llm = HttpLLM(
            settings.llm_provider_url,
            api_key=settings.llm_api_key,
            provider_format=settings.llm_provider_format,
            model=settings.llm_model,
            temperature=1.5,
            max_tokens=2000,
            json_mode=True,
        )
    generator = IncrementalStoryGenerator(llm) if llm is not None else None

    engine = StoryEngine(
        build_catalog(ALL_STORIES),
        sessions,
        rng=rng,
        economy=economy,
        materializer=generator,
        resume_window=timedelta(minutes=config.get_config()["resume_window_minutes"]),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(_sweep_sessions(sessions, settings.session_cleanup_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(title="Talecraft", lifespan=lifespan)
    app.state.engine = engine
    app.state.generator = generator
    app.add_exception_handler(TaleError, _tale_error_handler)
    app.include_router(router, prefix="/api")
    return app
