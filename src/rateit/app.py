"""FastAPI application for RateIt.

Only the operational surface lives here; request routing for reviews and
questions belongs to the hosting platform.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rateit import __version__
from rateit.db import get_session, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the schema (and pg_trgm) before serving."""
    await init_db()
    yield


app = FastAPI(
    title="RateIt",
    description="Entity resolution, caching and ranking core for crowdsourced school reviews",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health(session: Annotated[AsyncSession, Depends(get_session)]) -> dict[str, str]:
    """Liveness plus a round-trip to the entity store."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        return {"status": "degraded", "database": "unreachable", "version": __version__}
    return {"status": "ok", "database": "ok", "version": __version__}
