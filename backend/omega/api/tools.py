"""Tool definition administration endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from omega.db.adapter import DatabaseAdapter
from omega.dependencies import get_adapter
from omega.errors import ToolNameConflictError, ToolNotFoundError
from omega.models.tools import ToolCreate, ToolOut, ToolUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[ToolOut])
async def list_tools(
    category: Optional[str] = None,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Return enabled tools, or every tool of ``category`` when given."""
    return await adapter.list_tools(category)


@router.post("", response_model=ToolOut, status_code=201)
async def create_tool(
    body: ToolCreate,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    try:
        tool = await adapter.create_tool(**body.model_dump())
    except ToolNameConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    logger.info("Created tool definition %s", tool.name)
    return tool


@router.get("/{tool_id}", response_model=ToolOut)
async def get_tool(
    tool_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    tool = await adapter.get_tool(tool_id)
    if tool is None:
        raise HTTPException(status_code=404, detail="Tool not found")
    return tool


@router.patch("/{tool_id}", response_model=ToolOut)
async def update_tool(
    tool_id: str,
    body: ToolUpdate,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> Any:
    """Change only the fields present in the body; ``enabled`` toggles availability."""
    try:
        return await adapter.update_tool(tool_id, **body.model_dump(exclude_unset=True))
    except ToolNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    except ToolNameConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.delete("/{tool_id}")
async def delete_tool(
    tool_id: str,
    adapter: DatabaseAdapter = Depends(get_adapter),
) -> dict[str, bool]:
    try:
        await adapter.delete_tool(tool_id)
    except ToolNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    return {"success": True}
