"""
Tests for the record store facade: append/update/delete semantics,
cascade delete, failure handling, settings and backup round trips.
"""

import asyncio
import json
import pytest
from datetime import datetime, date

from receta.db.kv_store import MemoryKeyValueBackend
from receta.models.dose import DoseStatus
from receta.models.patient import Patient
from receta.models.settings import AppSettings
from receta.services.storage import StorageService


NOW = datetime(2025, 1, 1, 6, 0)


# =============================================================================
# Test Record Store
# =============================================================================

class TestRecordStore:
    """Tests for whole-collection persistence"""

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_list(self, storage):
        assert await storage.get_treatments() == []
        assert await storage.get_doses() == []

    @pytest.mark.asyncio
    async def test_collection_is_json_array_under_namespaced_key(self, storage, backend, make_treatment):
        await storage.save_treatment(make_treatment())

        raw = await backend.get_item("@receta_segura:treatments")

        records = json.loads(raw)
        assert isinstance(records, list)
        assert records[0]["medicationName"] == "Losartán"
        assert records[0]["startDate"] == "2025-01-01"
        assert "endDate" not in records[0]

    @pytest.mark.asyncio
    async def test_save_appends_without_duplicate_check(self, storage, make_treatment):
        treatment = make_treatment()

        assert await storage.save_treatment(treatment)
        assert await storage.save_treatment(treatment)

        assert len(await storage.get_treatments()) == 2

    @pytest.mark.asyncio
    async def test_update_merges_and_bumps_updated_at(self, storage, make_treatment):
        treatment = make_treatment(updated_at=datetime(2020, 1, 1))
        await storage.save_treatment(treatment)

        assert await storage.update_treatment(treatment.id, {"notes": "Con comida", "isActive": False})

        stored = await storage.get_treatment_by_id(treatment.id)
        assert stored.notes == "Con comida"
        assert stored.is_active is False
        assert stored.medication_name == "Losartán"
        assert stored.updated_at > datetime(2020, 1, 1)

    @pytest.mark.asyncio
    async def test_update_missing_id_is_soft_failure(self, storage):
        assert await storage.update_treatment("nope", {"notes": "x"}) is False

    @pytest.mark.asyncio
    async def test_update_with_invalid_value_is_rejected(self, storage, make_dose):
        dose = make_dose()
        await storage.save_dose(dose)

        assert await storage.update_dose(dose.id, {"status": "forgotten"}) is False
        assert (await storage.get_dose_by_id(dose.id)).status == DoseStatus.PENDING

    @pytest.mark.asyncio
    async def test_delete_missing_id_is_soft_failure(self, storage):
        assert await storage.treatments.delete("nope") is False

    @pytest.mark.asyncio
    async def test_concurrent_updates_do_not_lose_writes(self, storage, make_dose):
        doses = [make_dose() for _ in range(10)]
        await storage.save_doses(doses)

        results = await asyncio.gather(*(storage.mark_dose_taken(d.id) for d in doses))

        assert all(results)
        stored = await storage.get_doses()
        assert all(d.status == DoseStatus.TAKEN for d in stored)


# =============================================================================
# Test Dose Transitions
# =============================================================================

class TestDoseTransitions:
    """Tests for marking doses taken, missed and skipped"""

    @pytest.mark.asyncio
    async def test_mark_taken_sets_taken_at(self, storage, make_dose):
        dose = make_dose()
        await storage.save_dose(dose)

        assert await storage.mark_dose_taken(dose.id, "Con desayuno", taken_at=NOW)

        stored = await storage.get_dose_by_id(dose.id)
        assert stored.status == DoseStatus.TAKEN
        assert stored.taken_at == NOW
        assert stored.notes == "Con desayuno"

    @pytest.mark.asyncio
    async def test_mark_missed_and_skipped(self, storage, make_dose):
        missed, skipped = make_dose(), make_dose()
        await storage.save_doses([missed, skipped])

        assert await storage.mark_dose_missed(missed.id)
        assert await storage.mark_dose_skipped(skipped.id, "Indicación médica")

        assert (await storage.get_dose_by_id(missed.id)).status == DoseStatus.MISSED
        stored = await storage.get_dose_by_id(skipped.id)
        assert stored.status == DoseStatus.SKIPPED
        assert stored.taken_at is None
        assert stored.notes == "Indicación médica"

    @pytest.mark.asyncio
    async def test_mark_unknown_dose(self, storage):
        assert await storage.mark_dose_taken("missing") is False


# =============================================================================
# Test Cascade Delete
# =============================================================================

class TestCascadeDelete:
    """Tests for deleting a treatment together with its doses"""

    @pytest.mark.asyncio
    async def test_delete_treatment_removes_its_doses(self, storage, generator, make_treatment):
        kept = make_treatment(treatment_id="treatment_keep")
        removed = make_treatment(treatment_id="treatment_gone")
        for t in (kept, removed):
            await storage.save_treatment(t)
            await generator.generate_for_treatment(t, 5)

        assert await storage.delete_treatment(removed.id)

        remaining = await storage.get_doses()
        assert not [d for d in remaining if d.treatment_id == removed.id]
        assert len([d for d in remaining if d.treatment_id == kept.id]) == 5
        assert await storage.get_treatment_by_id(removed.id) is None

    @pytest.mark.asyncio
    async def test_doses_by_patient(self, storage, generator, make_treatment):
        mine = make_treatment(treatment_id="t1", patient_id="p1")
        theirs = make_treatment(treatment_id="t2", patient_id="p2")
        for t in (mine, theirs):
            await storage.save_treatment(t)
            await generator.generate_for_treatment(t, 2)

        doses = await storage.get_doses_by_patient("p1")

        assert {d.treatment_id for d in doses} == {"t1"}
        assert await storage.get_doses_by_patient("nobody") == []


# =============================================================================
# Test Failure Handling
# =============================================================================

class TestFailureHandling:
    """Store errors become empty results or False, never exceptions"""

    @pytest.mark.asyncio
    async def test_read_failure_returns_empty(self, storage, backend):
        async def broken(key):
            raise IOError("storage unavailable")
        backend.get_item = broken

        assert await storage.get_doses() == []
        assert await storage.get_treatment_by_id("x") is None
        assert await storage.get_settings() == AppSettings()
        assert await storage.is_onboarding_completed() is False
        assert await storage.export_data() is None

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(self, storage, backend, make_treatment):
        async def broken(key, value):
            raise IOError("storage unavailable")
        backend.set_item = broken

        assert await storage.save_treatment(make_treatment()) is False
        assert await storage.save_settings(AppSettings()) is False
        assert await storage.complete_onboarding() is False

    @pytest.mark.asyncio
    async def test_corrupt_collection_is_not_overwritten(self, storage, backend, make_treatment):
        await backend.set_item("@receta_segura:treatments", "{not json")

        assert await storage.get_treatments() == []
        assert await storage.save_treatment(make_treatment()) is False
        assert await backend.get_item("@receta_segura:treatments") == "{not json"


# =============================================================================
# Test Settings And Onboarding
# =============================================================================

class TestSettingsAndOnboarding:
    """Tests for the settings object and onboarding sentinel"""

    @pytest.mark.asyncio
    async def test_default_settings(self, storage):
        settings = await storage.get_settings()
        assert settings.reminder_minutes_before == 5
        assert settings.theme == "auto"
        assert settings.language == "es"

    @pytest.mark.asyncio
    async def test_settings_stored_as_object(self, storage, backend):
        await storage.save_settings(AppSettings(theme="dark", language="en"))

        raw = json.loads(await backend.get_item("@receta_segura:settings"))

        assert raw["theme"] == "dark"
        assert raw["notificationsEnabled"] is True
        assert (await storage.get_settings()).language == "en"

    @pytest.mark.asyncio
    async def test_onboarding_sentinel(self, storage, backend):
        assert await storage.is_onboarding_completed() is False

        await storage.complete_onboarding()

        assert await backend.get_item("@receta_segura:onboarding_completed") == "true"
        assert await storage.is_onboarding_completed() is True

    @pytest.mark.asyncio
    async def test_clear_all_keeps_onboarding(self, storage, make_treatment):
        await storage.save_treatment(make_treatment())
        await storage.complete_onboarding()

        assert await storage.clear_all()

        assert await storage.get_treatments() == []
        assert await storage.is_onboarding_completed() is True


# =============================================================================
# Test Export And Import
# =============================================================================

class TestExportImport:
    """Tests for the backup document"""

    @pytest.mark.asyncio
    async def test_export_shape(self, storage, make_treatment):
        await storage.save_treatment(make_treatment())

        document = json.loads(await storage.export_data(now=NOW))

        assert document["version"] == "1.0"
        assert document["exportDate"] == "2025-01-01T06:00:00"
        assert set(document["data"]) == {"treatments", "doses", "patients", "settings"}
        assert isinstance(document["data"]["settings"], dict)

    @pytest.mark.asyncio
    async def test_round_trip(self, storage, generator, make_treatment):
        treatment = make_treatment(end=date(2025, 1, 10), notes="Con comida")
        await storage.save_treatment(treatment)
        doses = await generator.generate_for_treatment(treatment, 5)
        await storage.mark_dose_taken(doses[0].id, taken_at=NOW)
        await storage.save_patient(Patient(id="patient_1", name="María García", age=68))
        await storage.save_settings(AppSettings(theme="dark"))
        exported = await storage.export_data()

        restored = StorageService(type(storage.backend)())
        assert await restored.import_data(exported)

        assert await restored.get_treatments() == await storage.get_treatments()
        assert await restored.get_doses() == await storage.get_doses()
        assert await restored.get_patients() == await storage.get_patients()
        assert await restored.get_settings() == await storage.get_settings()

    @pytest.mark.asyncio
    async def test_failed_import_keeps_previous_data(self, storage, backend, generator, make_treatment):
        """A write failure part way through an import leaves the old collections in place"""
        old = make_treatment(treatment_id="old_t")
        await storage.save_treatment(old)
        await generator.generate_for_treatment(old, 3)
        await storage.save_patient(Patient(id="patient_1", name="María García"))
        before = {key: await backend.get_item(key) for key in (
            storage.treatments.key, storage.doses.key, storage.patients.key
        )}

        set_item = backend.set_item

        async def failing_on_doses(key, value):
            if key == storage.doses.key:
                raise IOError("storage unavailable")
            await set_item(key, value)
        backend.set_item = failing_on_doses

        document = {
            "version": "1.0",
            "data": {
                "treatments": [make_treatment(treatment_id="new_t").to_record()],
                "doses": [],
                "patients": [],
            },
        }

        assert await storage.import_data(document) is False

        assert [t.id for t in await storage.get_treatments()] == ["old_t"]
        assert {d.treatment_id for d in await storage.get_doses()} == {"old_t"}
        assert len(await storage.get_doses()) == 3
        for key, value in before.items():
            assert await backend.get_item(key) == value

    @pytest.mark.asyncio
    async def test_failed_import_removes_collections_that_did_not_exist(self, storage, backend, make_treatment):
        async def broken_doses(key, value):
            if key == storage.doses.key:
                raise IOError("storage unavailable")
            await MemoryKeyValueBackend.set_item(backend, key, value)
        backend.set_item = broken_doses

        document = {"version": "1.0", "data": {"treatments": [make_treatment().to_record()]}}

        assert await storage.import_data(document) is False
        assert await backend.get_item(storage.treatments.key) is None

    @pytest.mark.asyncio
    async def test_import_rejects_unknown_version(self, storage):
        assert await storage.import_data({"version": "2.0", "exportDate": "2025-01-01T00:00:00", "data": {}}) is False

    @pytest.mark.asyncio
    async def test_import_rejects_malformed_document(self, storage):
        assert await storage.import_data("{\"version\": \"1.0\", \"data\": {\"doses\": [{}]}}") is False
