"""
Shared fixtures: an isolated in-memory store per test, plus factories for
treatments and doses.
"""

import pytest
from datetime import datetime, date

from fastapi.testclient import TestClient

from receta.db.kv_store import MemoryKeyValueBackend
from receta.models.dose import Dose, DoseStatus
from receta.models.treatment import Schedule, Treatment
from receta.services.adherence import AdherenceCalculator
from receta.services.dose_generator import DoseGenerator
from receta.services.storage import StorageService


@pytest.fixture
def backend():
    return MemoryKeyValueBackend()


@pytest.fixture
def storage(backend):
    return StorageService(backend)


@pytest.fixture
def generator(storage):
    return DoseGenerator(storage, default_horizon_days=30)


@pytest.fixture
def calculator(storage):
    return AdherenceCalculator(storage)


@pytest.fixture
def make_treatment():
    def _make(
        times=("08:00",),
        start=date(2025, 1, 1),
        end=None,
        enabled=None,
        treatment_id="treatment_1",
        patient_id="patient_1",
        **overrides,
    ):
        enabled = enabled or [True] * len(times)
        return Treatment(
            id=treatment_id,
            medication_name=overrides.pop("medication_name", "Losartán"),
            dose=overrides.pop("dose", "50mg"),
            schedules=[
                Schedule(id=f"schedule_{i}", time=t, enabled=e)
                for i, (t, e) in enumerate(zip(times, enabled))
            ],
            patient_id=patient_id,
            patient_name=overrides.pop("patient_name", "María García"),
            start_date=start,
            end_date=end,
            **overrides,
        )
    return _make


@pytest.fixture
def make_dose():
    counter = {"n": 0}

    def _make(status=DoseStatus.PENDING, scheduled=None, taken_at=None, treatment_id="treatment_1"):
        counter["n"] += 1
        return Dose(
            id=f"dose_{counter['n']}",
            treatment_id=treatment_id,
            medication_name="Losartán",
            dose="50mg",
            scheduled_time=scheduled or datetime(2025, 1, 1, 8, 0),
            status=status,
            taken_at=taken_at,
        )
    return _make


@pytest.fixture
def mixed_doses(make_dose):
    """6 taken, 2 missed, 1 skipped, 1 pending"""
    statuses = (
        [DoseStatus.TAKEN] * 6
        + [DoseStatus.MISSED] * 2
        + [DoseStatus.SKIPPED, DoseStatus.PENDING]
    )
    return [make_dose(status=s) for s in statuses]


@pytest.fixture
def client():
    from receta.main import app

    with TestClient(app) as test_client:
        yield test_client
