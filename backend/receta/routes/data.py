import logging
from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import Response

from receta.core.dependencies import get_seeder, get_storage
from receta.services.seed_data import SeedDataService
from receta.services.storage import StorageService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/data", tags=["data"])


#------This Function exports every collection---------
@router.get("/export")
async def export_data(storage: StorageService = Depends(get_storage)):
    exported = await storage.export_data()
    if exported is None:
        raise HTTPException(status_code=500, detail="Failed to export data")
    return Response(content=exported, media_type="application/json")


#------This Function imports a backup document---------
@router.post("/import")
async def import_data(
    document: dict = Body(...),
    storage: StorageService = Depends(get_storage),
):
    if not await storage.import_data(document):
        raise HTTPException(status_code=400, detail="Invalid or unsupported backup document")
    return {"status": "imported"}


#------This Function clears every collection---------
@router.delete("/")
async def clear_data(storage: StorageService = Depends(get_storage)):
    if not await storage.clear_all():
        raise HTTPException(status_code=500, detail="Failed to clear data")
    logger.info("Cleared all data")
    return {"status": "cleared"}


#------This Function loads the demo data set---------
@router.post("/seed")
async def seed_data(seeder: SeedDataService = Depends(get_seeder)):
    if not await seeder.seed_all():
        raise HTTPException(status_code=500, detail="Failed to generate seed data")
    return {"status": "seeded"}
