import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Union
from datetime import datetime, date, timedelta

from receta.models.dose import Dose, DoseStatus
from receta.models.stats import (
    AdherenceStats,
    CaregiverOverview,
    DayOverview,
    DaySummary,
    HistorySummary,
    HistoryView,
    TreatmentAdherence,
)
from receta.services.storage import StorageService

logger = logging.getLogger(__name__)


PERIOD_DAYS = {"week": 7, "month": 30}
PERIODS = ("week", "month", "all")
STATUS_FILTERS = ("all",) + tuple(s.value for s in DoseStatus)
DAY_LABEL_FORMAT = "%Y-%m-%d"


#------This Function rounds a percentage half up---------
def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def _count(doses: Iterable[Dose], status: DoseStatus) -> int:
    return sum(1 for d in doses if d.status == status)


def _as_date(value: Union[date, datetime, None]) -> date:
    if value is None:
        return datetime.now().date()
    if isinstance(value, datetime):
        return value.date()
    return value


#------This Function aggregates dose counts---------
def stats(doses: List[Dose]) -> AdherenceStats:
    total = len(doses)
    taken = _count(doses, DoseStatus.TAKEN)
    return AdherenceStats(
        total=total,
        taken=taken,
        missed=_count(doses, DoseStatus.MISSED),
        adherence_percentage=percentage(taken, total),
    )


def treatment_adherence(doses: List[Dose]) -> int:
    """Taken over every dose, pending and skipped included in the denominator."""
    return percentage(_count(doses, DoseStatus.TAKEN), len(doses))


def period_adherence(doses: List[Dose]) -> int:
    """Taken over taken plus missed. Used by the history screen."""
    taken = _count(doses, DoseStatus.TAKEN)
    missed = _count(doses, DoseStatus.MISSED)
    return percentage(taken, taken + missed)


def filter_by_status(doses: List[Dose], status: Union[DoseStatus, str]) -> List[Dose]:
    if status == "all":
        return list(doses)
    status = DoseStatus(status)
    return [d for d in doses if d.status == status]


def filter_by_period(
    doses: List[Dose], period: str, reference_time: Optional[datetime] = None
) -> List[Dose]:
    if period == "all":
        return list(doses)
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period {period!r}. Use one of {', '.join(PERIODS)}")
    cutoff = (reference_time or datetime.now()) - timedelta(days=PERIOD_DAYS[period])
    return [d for d in doses if d.effective_time >= cutoff]


#------This Function buckets doses by calendar day---------
def group_by_calendar_day(
    doses: List[Dose], label_format: str = DAY_LABEL_FORMAT
) -> Dict[str, List[Dose]]:
    groups: Dict[str, List[Dose]] = OrderedDict()
    for dose in doses:
        label = dose.effective_time.strftime(label_format)
        groups.setdefault(label, []).append(dose)
    return groups


def pending_today(
    doses: List[Dose], reference_date: Union[date, datetime, None] = None
) -> List[Dose]:
    day = _as_date(reference_date)
    pending = [
        d for d in doses
        if d.status == DoseStatus.PENDING and d.scheduled_time.date() == day
    ]
    return sorted(pending, key=lambda d: d.scheduled_time)


def upcoming_doses(
    doses: List[Dose], days: int = 7, reference_time: Optional[datetime] = None
) -> List[Dose]:
    now = reference_time or datetime.now()
    until = now + timedelta(days=days)
    upcoming = [
        d for d in doses
        if d.status == DoseStatus.PENDING and now <= d.scheduled_time <= until
    ]
    return sorted(upcoming, key=lambda d: d.scheduled_time)


def dose_history(doses: List[Dose], limit: Optional[int] = None) -> List[Dose]:
    history = sorted(
        (d for d in doses if d.status != DoseStatus.PENDING),
        key=lambda d: d.effective_time,
        reverse=True,
    )
    return history[:limit] if limit else history


def is_overdue(dose: Dose, reference_time: Optional[datetime] = None) -> bool:
    if dose.status != DoseStatus.PENDING:
        return False
    return dose.scheduled_time < (reference_time or datetime.now())


def history_summary(doses: List[Dose]) -> HistorySummary:
    return HistorySummary(
        total=len(doses),
        taken=_count(doses, DoseStatus.TAKEN),
        missed=_count(doses, DoseStatus.MISSED),
        skipped=_count(doses, DoseStatus.SKIPPED),
        adherence_percentage=period_adherence(doses),
    )


def last_seven_days(
    doses: List[Dose], reference_date: Union[date, datetime, None] = None
) -> List[DaySummary]:
    end = _as_date(reference_date)
    days = [end - timedelta(days=offset) for offset in range(6, -1, -1)]
    buckets = {day: DaySummary(day=day) for day in days}
    for dose in doses:
        summary = buckets.get(dose.scheduled_time.date())
        if summary is None:
            continue
        if dose.status == DoseStatus.TAKEN:
            summary.taken += 1
        elif dose.status == DoseStatus.MISSED:
            summary.missed += 1
    return [buckets[day] for day in days]


def overall_adherence(percentages: List[int]) -> int:
    if not percentages:
        return 0
    return percentage(sum(percentages), len(percentages) * 100)


def day_overview(
    doses: List[Dose], reference_date: Union[date, datetime, None] = None
) -> DayOverview:
    day = _as_date(reference_date)
    todays = [d for d in doses if d.scheduled_time.date() == day]
    return DayOverview(
        pending=_count(todays, DoseStatus.PENDING),
        taken=_count(todays, DoseStatus.TAKEN),
        missed=_count(todays, DoseStatus.MISSED),
    )


class AdherenceCalculator:
    """Loads a dose snapshot from the store and scopes it for a report."""

    def __init__(self, storage: StorageService):
        self.storage = storage

    async def treatment_stats(self, treatment_id: str) -> AdherenceStats:
        return stats(await self.storage.get_doses_by_treatment(treatment_id))

    async def patient_stats(self, patient_id: str) -> AdherenceStats:
        return stats(await self.storage.get_doses_by_patient(patient_id))

    async def global_stats(self) -> AdherenceStats:
        return stats(await self.storage.get_doses())

#------This Function builds the history screen view---------
    async def history_view(
        self,
        status: str = "all",
        period: str = "week",
        reference_time: Optional[datetime] = None,
        label_format: str = DAY_LABEL_FORMAT,
    ) -> HistoryView:
        doses = dose_history(await self.storage.get_doses())
        doses = filter_by_status(doses, status)
        doses = filter_by_period(doses, period, reference_time)
        logger.debug(f"History view status={status} period={period}: {len(doses)} doses")
        return HistoryView(
            summary=history_summary(doses),
            groups=group_by_calendar_day(doses, label_format),
        )

#------This Function builds the caregiver dashboard---------
    async def caregiver_overview(
        self,
        patient_name: Optional[str] = None,
        reference_time: Optional[datetime] = None,
    ) -> CaregiverOverview:
        reference_time = reference_time or datetime.now()
        treatments = await self.storage.get_treatments()
        doses = await self.storage.get_doses()

        patient_names = list(OrderedDict.fromkeys(t.patient_name for t in treatments))
        if patient_name:
            treatments = [t for t in treatments if t.patient_name == patient_name]
            treatment_ids = {t.id for t in treatments}
            doses = [d for d in doses if d.treatment_id in treatment_ids]

        doses_by_treatment: Dict[str, List[Dose]] = {}
        for dose in doses:
            doses_by_treatment.setdefault(dose.treatment_id, []).append(dose)

        active = [t for t in treatments if t.is_active]
        rows = [
            TreatmentAdherence(
                treatment_id=t.id,
                medication_name=t.medication_name,
                patient_name=t.patient_name,
                stats=stats(doses_by_treatment.get(t.id, [])),
            )
            for t in treatments
        ]
        active_ids = {t.id for t in active}
        today = day_overview(doses, reference_time)

        return CaregiverOverview(
            patient_name=patient_name,
            total_patients=len(patient_names),
            total_treatments=len(active),
            pending_doses=len(pending_today(doses, reference_time)),
            completed_today=today.taken,
            missed_today=today.missed,
            overall_adherence=overall_adherence(
                [r.stats.adherence_percentage for r in rows if r.treatment_id in active_ids]
            ),
            treatments=rows,
        )

    async def seven_day_summary(
        self, treatment_id: Optional[str] = None, reference_date: Union[date, datetime, None] = None
    ) -> List[DaySummary]:
        if treatment_id:
            doses = await self.storage.get_doses_by_treatment(treatment_id)
        else:
            doses = await self.storage.get_doses()
        return last_seven_days(doses, reference_date)
