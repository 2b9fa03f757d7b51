from fastapi import APIRouter, Depends, HTTPException

from receta.core.dependencies import get_storage
from receta.models.settings import AppSettings, UpdateSettingsRequest
from receta.services.storage import StorageService

router = APIRouter(prefix="/settings", tags=["settings"])


#------This Function gets settings---------
@router.get("/")
async def get_settings(storage: StorageService = Depends(get_storage)):
    return (await storage.get_settings()).to_record()


#------This Function updates settings---------
@router.put("/")
async def update_settings(
    body: UpdateSettingsRequest, storage: StorageService = Depends(get_storage)
):
    current = await storage.get_settings()
    updated = AppSettings.model_validate(
        {**current.model_dump(), **body.model_dump(exclude_none=True)}
    )
    if not await storage.save_settings(updated):
        raise HTTPException(status_code=500, detail="Failed to save settings")
    return updated.to_record()
