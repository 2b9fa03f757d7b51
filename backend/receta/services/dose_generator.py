import logging
import math
from typing import List, Optional, Tuple
from datetime import datetime, date, time, timedelta

from receta.core.config import settings
from receta.models.dose import Dose, DoseStatus
from receta.models.treatment import Treatment, Schedule, TIME_PATTERN
from receta.services.storage import StorageService
from receta.utils.ids import new_id

logger = logging.getLogger(__name__)


SEED_MAX_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60


#------This Function parses an HH:mm schedule time---------
def parse_schedule_time(value: str) -> Optional[time]:
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


#------This Function computes how many days the seed path expands---------
def seed_day_count(
    start_date: date,
    end_date: Optional[date] = None,
    now: Optional[datetime] = None,
    max_days: int = SEED_MAX_DAYS,
) -> int:
    now = now or datetime.now()
    start = datetime.combine(start_date, time.min)
    effective_end = (
        datetime.combine(end_date, time.min) if end_date else now + timedelta(days=30)
    )
    days = math.ceil((effective_end - start).total_seconds() / SECONDS_PER_DAY)
    return max(0, min(days, max_days))


class DoseGenerator:
    """Expands treatments into pending dose records.

    Output is day-major, then in the order the schedules appear on the
    treatment. A schedule whose time cannot be parsed is skipped and logged;
    the treatment's other schedules still produce doses.
    """

    def __init__(self, storage: StorageService, default_horizon_days: Optional[int] = None):
        self.storage = storage
        if default_horizon_days is None:
            default_horizon_days = settings.default_horizon_days
        self.default_horizon_days = default_horizon_days

    def _valid_schedules(self, treatment: Treatment) -> List[Tuple[Schedule, time]]:
        valid = []
        for schedule in treatment.schedules:
            if not schedule.enabled:
                continue
            parsed = parse_schedule_time(schedule.time)
            if parsed is None:
                logger.warning(
                    f"Skipping malformed schedule {schedule.id} on treatment {treatment.id}: "
                    f"time {schedule.time!r} is not HH:MM"
                )
                continue
            valid.append((schedule, parsed))
        return valid

#------This Function materializes doses for a treatment---------
    def generate_doses(
        self,
        treatment: Treatment,
        horizon_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Dose]:
        horizon_days = self.default_horizon_days if horizon_days is None else horizon_days
        now = now or datetime.now()
        schedules = self._valid_schedules(treatment)
        doses: List[Dose] = []

        if not schedules:
            logger.debug(f"Treatment {treatment.id} has no usable schedules")
            return doses

        for day in range(horizon_days):
            current_date = treatment.start_date + timedelta(days=day)

            if treatment.end_date is not None and current_date > treatment.end_date:
                break

            for schedule, schedule_time in schedules:
                doses.append(self._build_dose(treatment, current_date, schedule_time, now))

        logger.debug(f"Generated {len(doses)} doses for treatment {treatment.id}")
        return doses

    def _build_dose(
        self, treatment: Treatment, current_date: date, schedule_time: time, now: datetime
    ) -> Dose:
        return Dose(
            id=new_id("dose"),
            treatment_id=treatment.id,
            medication_name=treatment.medication_name,
            dose=treatment.dose,
            scheduled_time=datetime.combine(current_date, schedule_time),
            status=DoseStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

#------This Function generates and persists doses for a treatment---------
    async def generate_for_treatment(
        self, treatment: Treatment, horizon_days: Optional[int] = None
    ) -> List[Dose]:
        doses = self.generate_doses(treatment, horizon_days)
        if not doses:
            return []
        if not await self.storage.save_doses(doses):
            logger.error(f"Failed to save generated doses for treatment {treatment.id}")
            return []
        logger.info(f"Saved {len(doses)} doses for treatment {treatment.id}")
        return doses

#------This Function replaces a treatment's doses with a fresh set---------
    async def regenerate_for_treatment(
        self, treatment: Treatment, horizon_days: Optional[int] = None
    ) -> List[Dose]:
        if not await self.storage.delete_doses_by_treatment(treatment.id):
            logger.error(f"Failed to clear doses before regenerating treatment {treatment.id}")
            return []
        return await self.generate_for_treatment(treatment, horizon_days)
