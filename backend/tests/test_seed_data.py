"""
Tests for demo data seeding and the past-dose backfill
"""

import random
import pytest
from datetime import datetime, timedelta

from receta.models.dose import DoseStatus
from receta.services.seed_data import SeedDataService


NOW = datetime(2025, 3, 15, 12, 0)


class FixedRandom:
    """Returns a scripted sequence of values from random()"""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


@pytest.fixture
def seeder(storage, generator):
    return SeedDataService(storage, generator, rng=random.Random(42), max_days=30)


# =============================================================================
# Test Backfill
# =============================================================================

class TestBackfill:
    """Tests for assigning outcomes to doses already in the past"""

    def test_outcome_thresholds(self, storage, generator, make_dose):
        seeder = SeedDataService(storage, generator, rng=FixedRandom(0.10, 0.5, 0.80, 0.95), max_days=30)
        past = NOW - timedelta(days=1)

        taken = seeder.backfill(make_dose(scheduled=past), NOW)
        missed = seeder.backfill(make_dose(scheduled=past), NOW)
        skipped = seeder.backfill(make_dose(scheduled=past), NOW)

        assert taken.status == DoseStatus.TAKEN
        assert taken.taken_at == past + timedelta(minutes=30)
        assert taken.updated_at == taken.taken_at
        assert missed.status == DoseStatus.MISSED
        assert missed.taken_at is None
        assert skipped.status == DoseStatus.SKIPPED

    def test_future_dose_stays_pending(self, storage, generator, make_dose):
        seeder = SeedDataService(storage, generator, rng=FixedRandom(), max_days=30)
        future = NOW + timedelta(hours=1)

        dose = seeder.backfill(make_dose(scheduled=future), NOW)

        assert dose.status == DoseStatus.PENDING
        assert dose.created_at == future
        assert dose.updated_at == future


# =============================================================================
# Test Seed All
# =============================================================================

class TestSeedAll:
    """Tests for replacing the store with the demo data set"""

    @pytest.mark.asyncio
    async def test_demo_records(self, seeder, storage):
        assert await seeder.seed_all(now=NOW)

        patients = await storage.get_patients()
        treatments = await storage.get_treatments()
        assert [p.name for p in patients] == ["María García", "Juan Pérez"]
        assert [t.id for t in treatments] == [f"treatment_{i}" for i in range(1, 6)]
        assert all(t.start_date == (NOW - timedelta(days=7)).date() for t in treatments)

    @pytest.mark.asyncio
    async def test_dose_counts_follow_seed_day_count(self, seeder, storage):
        await seeder.seed_all(now=NOW)

        assert len(await storage.get_doses_by_treatment("treatment_1")) == 30 * 2
        assert len(await storage.get_doses_by_treatment("treatment_3")) == 30
        assert len(await storage.get_doses_by_treatment("treatment_4")) == 14 * 3

    @pytest.mark.asyncio
    async def test_past_resolved_future_pending(self, seeder, storage):
        await seeder.seed_all(now=NOW)

        doses = await storage.get_doses()

        past = [d for d in doses if d.scheduled_time < NOW]
        future = [d for d in doses if d.scheduled_time >= NOW]
        assert past and future
        assert all(d.status != DoseStatus.PENDING for d in past)
        assert all(d.status == DoseStatus.PENDING for d in future)
        for dose in past:
            if dose.status == DoseStatus.TAKEN:
                assert dose.scheduled_time <= dose.taken_at < dose.scheduled_time + timedelta(hours=1)
            else:
                assert dose.taken_at is None

    @pytest.mark.asyncio
    async def test_seed_replaces_existing_data(self, seeder, storage, make_treatment):
        await storage.save_treatment(make_treatment(treatment_id="old"))

        await seeder.seed_all(now=NOW)

        assert await storage.get_treatment_by_id("old") is None
        assert await seeder.has_data()

    @pytest.mark.asyncio
    async def test_clear_all(self, seeder, storage):
        await seeder.seed_all(now=NOW)

        assert await seeder.clear_all()

        assert not await seeder.has_data()
        assert await storage.get_doses() == []

    @pytest.mark.asyncio
    async def test_write_failure(self, seeder, backend):
        async def broken(key, value):
            raise IOError("storage unavailable")
        backend.set_item = broken

        assert await seeder.seed_all(now=NOW) is False
