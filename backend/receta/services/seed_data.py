import logging
import random
from typing import List, Optional
from datetime import datetime, timedelta

from receta.core.config import settings
from receta.models.dose import Dose, DoseStatus
from receta.models.patient import Patient
from receta.models.treatment import Frequency, Schedule, Treatment
from receta.services.dose_generator import DoseGenerator, seed_day_count
from receta.services.storage import StorageService

logger = logging.getLogger(__name__)


TAKEN_PROBABILITY = 0.75
MISSED_PROBABILITY = 0.15
HISTORY_DAYS = 7


def _demo_patients(now: datetime) -> List[Patient]:
    return [
        Patient(
            id="patient_1",
            name="María García",
            age=68,
            notes="Paciente con hipertensión y diabetes",
            created_at=now,
        ),
        Patient(
            id="patient_2",
            name="Juan Pérez",
            age=45,
            notes="Tratamiento post-operatorio",
            created_at=now,
        ),
    ]


def _demo_treatments(patients: List[Patient], now: datetime) -> List[Treatment]:
    started = now - timedelta(days=HISTORY_DAYS)
    maria, juan = patients

    def treatment(index, name, dose, frequency, times, patient, end=None, notes=None):
        return Treatment(
            id=f"treatment_{index}",
            medication_name=name,
            dose=dose,
            frequency=frequency,
            schedules=[
                Schedule(id=f"schedule_{index}_{n}", time=t, enabled=True)
                for n, t in enumerate(times, start=1)
            ],
            patient_id=patient.id,
            patient_name=patient.name,
            start_date=started.date(),
            end_date=end.date() if end else None,
            notes=notes,
            is_active=True,
            created_at=started,
            updated_at=now,
        )

    return [
        treatment(1, "Losartán", "50mg", Frequency.DAILY, ["08:00", "20:00"], maria,
                  notes="Para controlar la presión arterial"),
        treatment(2, "Metformina", "850mg", Frequency.DAILY, ["07:30", "19:30"], maria,
                  notes="Para control de diabetes. Tomar con alimentos"),
        treatment(3, "Atorvastatina", "20mg", Frequency.DAILY, ["22:00"], maria,
                  notes="Para control del colesterol. Tomar antes de dormir"),
        treatment(4, "Amoxicilina", "500mg", Frequency.DAILY, ["09:00", "15:00", "21:00"], juan,
                  end=now + timedelta(days=7), notes="Antibiótico post-operatorio por 14 días"),
        treatment(5, "Ibuprofeno", "400mg", Frequency.AS_NEEDED, ["10:00", "18:00"], juan,
                  end=now + timedelta(days=10), notes="Para el dolor. Solo si es necesario"),
    ]


class SeedDataService:
    """Fills the store with demo patients, treatments and a dose history."""

    def __init__(
        self,
        storage: StorageService,
        generator: DoseGenerator,
        rng: Optional[random.Random] = None,
        max_days: Optional[int] = None,
    ):
        self.storage = storage
        self.generator = generator
        self.rng = rng or random.Random()
        self.max_days = settings.seed_max_days if max_days is None else max_days

#------This Function backfills the status of a dose in the past---------
    def backfill(self, dose: Dose, now: datetime) -> Dose:
        dose.created_at = dose.scheduled_time
        dose.updated_at = dose.scheduled_time
        if dose.scheduled_time >= now:
            return dose

        roll = self.rng.random()
        if roll < TAKEN_PROBABILITY:
            dose.status = DoseStatus.TAKEN
            dose.taken_at = dose.scheduled_time + timedelta(seconds=self.rng.random() * 3600)
            dose.updated_at = dose.taken_at
        elif roll < TAKEN_PROBABILITY + MISSED_PROBABILITY:
            dose.status = DoseStatus.MISSED
        else:
            dose.status = DoseStatus.SKIPPED
        return dose

    def doses_for(self, treatment: Treatment, now: datetime) -> List[Dose]:
        days = seed_day_count(treatment.start_date, treatment.end_date, now, self.max_days)
        doses = self.generator.generate_doses(treatment, days, now)
        return [self.backfill(dose, now) for dose in doses]

#------This Function replaces all data with the demo data set---------
    async def seed_all(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        logger.info("Generating seed data...")

        if not await self.storage.clear_all():
            logger.error("Seeding aborted: could not clear existing data")
            return False

        patients = _demo_patients(now)
        treatments = _demo_treatments(patients, now)
        doses = [dose for t in treatments for dose in self.doses_for(t, now)]

        ok = (
            await self.storage.patients.save_many(patients)
            and await self.storage.treatments.save_many(treatments)
            and await self.storage.save_doses(doses)
        )
        if ok:
            logger.info(
                f"Seeded {len(patients)} patients, {len(treatments)} treatments, {len(doses)} doses"
            )
        else:
            logger.error("Seeding failed while saving demo data")
        return ok

    async def has_data(self) -> bool:
        return len(await self.storage.get_treatments()) > 0

    async def clear_all(self) -> bool:
        cleared = await self.storage.clear_all()
        if cleared:
            logger.info("All data removed")
        return cleared
