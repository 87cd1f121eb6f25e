import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.api.deps import SettingsDep
from leavedesk.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness plus leave store reachability."""

    status: Literal["ok", "degraded"]
    database: Literal["reachable", "unreachable"]
    version: str
    environment: str


async def _store_reachable(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Leave store did not answer the health probe")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep, settings: SettingsDep) -> HealthResponse:
    """Always 200; a store outage shows up as ``degraded``."""
    reachable = await _store_reachable(session)
    return HealthResponse(
        status="ok" if reachable else "degraded",
        database="reachable" if reachable else "unreachable",
        version=settings.app_version,
        environment=settings.environment,
    )
