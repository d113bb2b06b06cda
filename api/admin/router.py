"""
Admin API endpoints. Every route requires a live admin session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies

from . import service

router = APIRouter(prefix="/api/admin")


@router.get("/data")
async def get_data(
    data_type: str | None = Query(default=None, alias="type"),
    _: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    rows = await service.list_data(data_type)
    return {"data": rows, "total_count": len(rows), "data_type": data_type}


@router.delete("/data")
async def delete_data(
    data_type: str | None = Query(default=None, alias="type"),
    item_id: str | None = Query(default=None, alias="id"),
    admin: dict = Depends(auth_dependencies.get_current_admin),
) -> dict:
    deleted_id = await service.delete_item(data_type, item_id, admin=admin)
    return {"ok": True, "deleted_id": deleted_id, "data_type": data_type}
