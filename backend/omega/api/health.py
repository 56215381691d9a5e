"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from omega.db.database import Database
from omega.dependencies import get_database

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_database(database: Database) -> dict[str, Any]:
    """Run a trivial query and return status."""
    try:
        await database.ping()
        return {"status": "healthy"}
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("")
async def health_check(
    database: Database = Depends(get_database),
) -> dict[str, Any]:
    """Return aggregate health of all backend services."""
    services = {
        "database": await _check_database(database),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }
