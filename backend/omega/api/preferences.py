"""User preference endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from omega.db.adapter import DatabaseAdapter
from omega.dependencies import get_adapter
from omega.models.preferences import PreferencesOut, PreferencesUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}", response_model=PreferencesOut)
async def get_preferences(
    user_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Return the stored preference payload for ``user_id``."""
    record = await adapter.get_user_preferences(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Preferences not found")
    return record


@router.put("/{user_id}", response_model=PreferencesOut)
async def put_preferences(
    user_id: str,
    body: PreferencesUpdate,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Replace the preference payload, creating the record on first write."""
    try:
        return await adapter.update_user_preferences(user_id, body.preferences)
    except Exception as exc:
        logger.error("Failed to store preferences for %s: %s", user_id, exc)
        raise HTTPException(status_code=500, detail="Failed to store preferences") from exc
