import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from receta.core.dependencies import get_calculator, get_generator, get_storage
from receta.models.treatment import Treatment, TreatmentCreate, TreatmentUpdate
from receta.services import adherence
from receta.services.adherence import AdherenceCalculator
from receta.services.dose_generator import DoseGenerator
from receta.services.storage import StorageService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/treatments", tags=["treatments"])


MAX_HORIZON_DAYS = 365


#------This Function lists treatments---------
@router.get("/")
async def list_treatments(
    active_only: bool = False,
    patient_id: Optional[str] = None,
    storage: StorageService = Depends(get_storage),
):
    if active_only:
        treatments = await storage.get_active_treatments()
    else:
        treatments = await storage.get_treatments()
    if patient_id:
        treatments = [t for t in treatments if t.patient_id == patient_id]
    return [t.to_record() for t in treatments]


#------This Function gets a treatment---------
@router.get("/{treatment_id}")
async def get_treatment(treatment_id: str, storage: StorageService = Depends(get_storage)):
    return (await _get_or_404(storage, treatment_id)).to_record()


#------This Function creates a treatment and its doses---------
@router.post("/")
async def create_treatment(
    body: TreatmentCreate,
    horizon_days: Optional[int] = Query(None, ge=1, le=MAX_HORIZON_DAYS),
    storage: StorageService = Depends(get_storage),
    generator: DoseGenerator = Depends(get_generator),
):
    treatment = body.to_treatment()
    if not await storage.save_treatment(treatment):
        raise HTTPException(status_code=500, detail="Failed to create treatment")

    doses = await generator.generate_for_treatment(treatment, horizon_days)
    logger.info(f"Created treatment {treatment.id} with {len(doses)} doses")
    return {**treatment.to_record(), "dosesGenerated": len(doses)}


#------This Function updates a treatment---------
@router.put("/{treatment_id}")
async def update_treatment(
    treatment_id: str,
    body: TreatmentUpdate,
    storage: StorageService = Depends(get_storage),
):
    existing = await _get_or_404(storage, treatment_id)
    updates = body.to_updates()

    start = updates.get("start_date", existing.start_date)
    end = updates.get("end_date", existing.end_date)
    if end is not None and end < start:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")

    if not await storage.update_treatment(treatment_id, updates):
        raise HTTPException(status_code=500, detail="Failed to update treatment")
    logger.info(f"Updated treatment {treatment_id}")
    return (await _get_or_404(storage, treatment_id)).to_record()


#------This Function deletes a treatment and its doses---------
@router.delete("/{treatment_id}")
async def delete_treatment(treatment_id: str, storage: StorageService = Depends(get_storage)):
    await _get_or_404(storage, treatment_id)
    if not await storage.delete_treatment(treatment_id):
        raise HTTPException(status_code=500, detail="Failed to delete treatment")
    return {"status": "deleted", "id": treatment_id}


#------This Function regenerates a treatment's doses---------
@router.post("/{treatment_id}/regenerate")
async def regenerate_doses(
    treatment_id: str,
    horizon_days: Optional[int] = Query(None, ge=1, le=MAX_HORIZON_DAYS),
    storage: StorageService = Depends(get_storage),
    generator: DoseGenerator = Depends(get_generator),
):
    treatment = await _get_or_404(storage, treatment_id)
    doses = await generator.regenerate_for_treatment(treatment, horizon_days)
    return {"status": "ok", "id": treatment_id, "dosesGenerated": len(doses)}


#------This Function gets adherence stats for a treatment---------
@router.get("/{treatment_id}/stats")
async def treatment_stats(
    treatment_id: str,
    storage: StorageService = Depends(get_storage),
    calculator: AdherenceCalculator = Depends(get_calculator),
):
    await _get_or_404(storage, treatment_id)
    doses = await storage.get_doses_by_treatment(treatment_id)
    return {
        "treatmentId": treatment_id,
        **adherence.stats(doses).to_record(),
        "lastSevenDays": [
            d.to_record() for d in await calculator.seven_day_summary(treatment_id)
        ],
    }


async def _get_or_404(storage: StorageService, treatment_id: str) -> Treatment:
    treatment = await storage.get_treatment_by_id(treatment_id)
    if not treatment:
        raise HTTPException(status_code=404, detail="Treatment not found")
    return treatment
