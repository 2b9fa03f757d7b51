from fastapi import APIRouter, Depends, HTTPException

from receta.core.dependencies import get_storage
from receta.services.storage import StorageService

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


#------This Function gets onboarding status---------
@router.get("/status")
async def onboarding_status(storage: StorageService = Depends(get_storage)):
    return {"completed": await storage.is_onboarding_completed()}


#------This Function completes onboarding---------
@router.post("/complete")
async def complete_onboarding(storage: StorageService = Depends(get_storage)):
    if not await storage.complete_onboarding():
        raise HTTPException(status_code=500, detail="Failed to complete onboarding")
    return {"completed": True}
