import logging
from fastapi import APIRouter, Depends, Query
from typing import Optional

from receta.core.dependencies import get_calculator
from receta.services.adherence import AdherenceCalculator
from receta.utils.datetime_parser import resolve_reference_datetime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])


#------This Function gets the history report---------
@router.get("/history")
async def history_report(
    status: str = Query("all", pattern="^(all|taken|missed|skipped)$"),
    period: str = Query("week", pattern="^(week|month|all)$"),
    date: Optional[str] = Query(None, description="Reference date, defaults to now"),
    calculator: AdherenceCalculator = Depends(get_calculator),
):
    reference = resolve_reference_datetime(date)
    view = await calculator.history_view(status=status, period=period, reference_time=reference)
    return view.to_record()


#------This Function gets the caregiver overview---------
@router.get("/caregiver")
async def caregiver_report(
    patient_name: Optional[str] = None,
    date: Optional[str] = Query(None, description="Day to summarize, defaults to today"),
    calculator: AdherenceCalculator = Depends(get_calculator),
):
    reference = resolve_reference_datetime(date)
    overview = await calculator.caregiver_overview(patient_name, reference)
    return overview.to_record()


#------This Function gets taken and missed counts for the last seven days---------
@router.get("/last-seven-days")
async def last_seven_days_report(
    treatment_id: Optional[str] = None,
    date: Optional[str] = Query(None, description="Last day of the window, defaults to today"),
    calculator: AdherenceCalculator = Depends(get_calculator),
):
    reference = resolve_reference_datetime(date)
    days = await calculator.seven_day_summary(treatment_id, reference)
    return [d.to_record() for d in days]


#------This Function gets adherence stats over every dose---------
@router.get("/summary")
async def summary_report(calculator: AdherenceCalculator = Depends(get_calculator)):
    return (await calculator.global_stats()).to_record()
