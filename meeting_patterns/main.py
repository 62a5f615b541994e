# meeting_patterns/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from meeting_patterns.api.routes import dst, health, occurrences, patterns
from meeting_patterns.core.config import get_settings
from meeting_patterns.db.session import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


def create_app() -> FastAPI:
    """
    Application factory for the Division Meeting Patterns service.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Resolves recurring division meeting patterns into concrete dates,\n"
            "previews the effect of pattern edits on scheduled occurrences,\n"
            "and guards calendars against double-booking and DST surprises."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(patterns.router)
    app.include_router(occurrences.router)
    app.include_router(dst.router)

    return app


app = create_app()
