import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
from datetime import datetime

from receta.core.dependencies import get_storage
from receta.models.dose import Dose, DoseAction
from receta.services import adherence
from receta.services.storage import StorageService
from receta.utils.datetime_parser import resolve_reference_datetime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/doses", tags=["doses"])


STATUS_PATTERN = "^(all|pending|taken|missed|skipped)$"
PERIOD_PATTERN = "^(week|month|all)$"


#------This Function serializes a dose with its overdue flag---------
def _serialize(dose: Dose, now: Optional[datetime] = None) -> dict:
    return {**dose.to_record(), "isOverdue": adherence.is_overdue(dose, now)}


#------This Function lists doses---------
@router.get("/")
async def list_doses(
    treatment_id: Optional[str] = None,
    status: str = Query("all", pattern=STATUS_PATTERN),
    period: str = Query("all", pattern=PERIOD_PATTERN),
    storage: StorageService = Depends(get_storage),
):
    if treatment_id:
        doses = await storage.get_doses_by_treatment(treatment_id)
    else:
        doses = await storage.get_doses()
    doses = adherence.filter_by_status(doses, status)
    doses = adherence.filter_by_period(doses, period)
    now = datetime.now()
    return [_serialize(d, now) for d in doses]


#------This Function gets today's pending doses---------
@router.get("/today")
async def today_pending(
    date: Optional[str] = Query(None, description="Day to list, e.g. 2025-01-03 or 'yesterday'"),
    storage: StorageService = Depends(get_storage),
):
    reference = resolve_reference_datetime(date)
    now = datetime.now()
    return [_serialize(d, now) for d in adherence.pending_today(await storage.get_doses(), reference)]


#------This Function gets upcoming doses---------
@router.get("/upcoming")
async def upcoming(
    days: int = Query(7, ge=1, le=60),
    storage: StorageService = Depends(get_storage),
):
    now = datetime.now()
    doses = adherence.upcoming_doses(await storage.get_doses(), days, now)
    return [_serialize(d, now) for d in doses]


#------This Function gets the dose history---------
@router.get("/history")
async def history(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    storage: StorageService = Depends(get_storage),
):
    return [d.to_record() for d in adherence.dose_history(await storage.get_doses(), limit)]


#------This Function gets a dose---------
@router.get("/{dose_id}")
async def get_dose(dose_id: str, storage: StorageService = Depends(get_storage)):
    return _serialize(await _get_or_404(storage, dose_id))


#------This Function marks a dose as taken---------
@router.post("/{dose_id}/take")
async def mark_taken(
    dose_id: str,
    body: Optional[DoseAction] = None,
    storage: StorageService = Depends(get_storage),
):
    await _get_or_404(storage, dose_id)
    if not await storage.mark_dose_taken(dose_id, body.notes if body else None):
        raise HTTPException(status_code=500, detail="Failed to mark dose as taken")
    logger.info(f"Marked dose {dose_id} as taken")
    return _serialize(await _get_or_404(storage, dose_id))


#------This Function marks a dose as missed---------
@router.post("/{dose_id}/miss")
async def mark_missed(
    dose_id: str,
    body: Optional[DoseAction] = None,
    storage: StorageService = Depends(get_storage),
):
    await _get_or_404(storage, dose_id)
    if not await storage.mark_dose_missed(dose_id, body.notes if body else None):
        raise HTTPException(status_code=500, detail="Failed to mark dose as missed")
    logger.info(f"Marked dose {dose_id} as missed")
    return _serialize(await _get_or_404(storage, dose_id))


#------This Function marks a dose as skipped---------
@router.post("/{dose_id}/skip")
async def mark_skipped(
    dose_id: str,
    body: Optional[DoseAction] = None,
    storage: StorageService = Depends(get_storage),
):
    await _get_or_404(storage, dose_id)
    if not await storage.mark_dose_skipped(dose_id, body.notes if body else None):
        raise HTTPException(status_code=500, detail="Failed to mark dose as skipped")
    logger.info(f"Marked dose {dose_id} as skipped")
    return _serialize(await _get_or_404(storage, dose_id))


async def _get_or_404(storage: StorageService, dose_id: str) -> Dose:
    dose = await storage.get_dose_by_id(dose_id)
    if not dose:
        raise HTTPException(status_code=404, detail="Dose not found")
    return dose
