from __future__ import annotations
import logging
from fastapi import APIRouter, Depends
from .common import get_auth, get_settings_service
from schemas.settings import SettingsResponse, SettingsUpdateRequest
from services.settings import SettingsService

router = APIRouter()
logger = logging.getLogger("lumina-api")

@router.get("/api/settings", response_model=SettingsResponse)
async def read_settings(
    auth=Depends(get_auth),
    service: SettingsService = Depends(get_settings_service),
):
    """Returns the user's AI feature flags, creating defaults on first access."""
    settings = await service.load(auth["user_id"])
    return SettingsResponse(data=settings)

@router.put("/api/settings", response_model=SettingsResponse)
async def update_settings(
    body: SettingsUpdateRequest,
    auth=Depends(get_auth),
    service: SettingsService = Depends(get_settings_service),
):
    """Applies a partial update and drops the cached copy."""
    changes = body.changes()
    settings = await service.update(auth["user_id"], changes)
    logger.info("settings_updated", extra={"user_id": auth["user_id"]})
    return SettingsResponse(data=settings)
