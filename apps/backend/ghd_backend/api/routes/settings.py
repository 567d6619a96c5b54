"""API routes for GUI settings."""
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ghd_backend.api.dependencies import get_db, get_state
from ghd_backend.core.state import AppState
from ghd_backend.services.settings_service import MAX_KEY_LENGTH, get_all_settings, put_setting

router = APIRouter()


class SettingValue(BaseModel):
    value: str


@router.get("", response_model=dict[str, str])
async def list_settings(
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    return await get_all_settings(db)


@router.put("/{key}", response_model=dict[str, str])
async def update_setting(
    key: Annotated[str, Path(min_length=1, max_length=MAX_KEY_LENGTH)],
    body: SettingValue,
    state: AppState = Depends(get_state),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    async with state.lock:
        await put_setting(db, key, body.value)
    return {key: body.value}
