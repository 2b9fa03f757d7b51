from pydantic import Field
from typing import Dict, List, Optional
from datetime import date

from receta.models.base import RecordModel
from receta.models.dose import Dose


class AdherenceStats(RecordModel):
    total: int = 0
    taken: int = 0
    missed: int = 0
    adherence_percentage: int = 0


class HistorySummary(RecordModel):
    total: int = 0
    taken: int = 0
    missed: int = 0
    skipped: int = 0
    adherence_percentage: int = 0


class DaySummary(RecordModel):
    day: date = Field(alias="date")
    taken: int = 0
    missed: int = 0


class DayOverview(RecordModel):
    pending: int = 0
    taken: int = 0
    missed: int = 0


class TreatmentAdherence(RecordModel):
    treatment_id: str
    medication_name: str
    patient_name: str = ""
    stats: AdherenceStats


class CaregiverOverview(RecordModel):
    patient_name: Optional[str] = None
    total_patients: int = 0
    total_treatments: int = 0
    pending_doses: int = 0
    completed_today: int = 0
    missed_today: int = 0
    overall_adherence: int = 0
    treatments: List[TreatmentAdherence] = Field(default_factory=list)


class HistoryView(RecordModel):
    summary: HistorySummary
    groups: Dict[str, List[Dose]] = Field(default_factory=dict)
