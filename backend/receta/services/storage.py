import asyncio
import json
import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from datetime import datetime

from pydantic import ValidationError

from receta.db.kv_store import KeyValueBackend
from receta.models.base import RecordModel
from receta.models.dose import Dose, DoseStatus
from receta.models.patient import Patient
from receta.models.settings import AppSettings, ExportData, ExportDocument, EXPORT_VERSION
from receta.models.treatment import Treatment

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=RecordModel)


DEFAULT_KEY_PREFIX = "@receta_segura:"

TREATMENTS_KEY = "treatments"
DOSES_KEY = "doses"
PATIENTS_KEY = "patients"
SETTINGS_KEY = "settings"
USER_KEY = "user"
ONBOARDING_KEY = "onboarding_completed"


class RecordStore(Generic[T]):
    """One entity collection, stored as a JSON array under a single key.

    Every mutation reads the whole collection, changes it in memory and
    writes the whole collection back. Mutations on the same store are
    serialized with a lock so two requests in this process cannot both
    rewrite the array from the same stale read.
    """

    def __init__(self, backend: KeyValueBackend, key: str, model: Type[T], label: str):
        self.backend = backend
        self.key = key
        self.model = model
        self.label = label
        self._lock = asyncio.Lock()
        self._aliases = {
            field.alias: name
            for name, field in model.model_fields.items()
            if field.alias
        }

    async def load(self) -> List[T]:
        data = await self.backend.get_item(self.key)
        if not data:
            return []
        return [self.model.model_validate(item) for item in json.loads(data)]

    async def _write(self, items: List[T]) -> None:
        payload = json.dumps([item.to_record() for item in items], ensure_ascii=False)
        await self.backend.set_item(self.key, payload)

    def _normalize(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        return {self._aliases.get(k, k): v for k, v in updates.items()}

#------This Function returns every record---------
    async def get_all(self) -> List[T]:
        try:
            return await self.load()
        except Exception as e:
            logger.error(f"Failed to read {self.label}: {e}")
            return []

#------This Function returns one record by id---------
    async def get_by_id(self, record_id: str) -> Optional[T]:
        try:
            items = await self.load()
            return next((item for item in items if item.id == record_id), None)
        except Exception as e:
            logger.error(f"Failed to read {self.label} {record_id}: {e}")
            return None

#------This Function appends a record---------
    async def save(self, item: T) -> bool:
        return await self.save_many([item])

#------This Function appends several records with one write---------
    async def save_many(self, new_items: List[T]) -> bool:
        async with self._lock:
            try:
                items = await self.load()
                items.extend(new_items)
                await self._write(items)
                return True
            except Exception as e:
                logger.error(f"Failed to save {self.label}: {e}")
                return False

#------This Function merges partial fields into a record---------
    async def update(self, record_id: str, updates: Dict[str, Any]) -> bool:
        async with self._lock:
            try:
                items = await self.load()
                index = next(
                    (i for i, item in enumerate(items) if item.id == record_id), None
                )
                if index is None:
                    logger.warning(f"Cannot update {self.label} {record_id}: not found")
                    return False

                record = items[index].model_dump()
                record.update(self._normalize(updates))
                record.pop("id", None)
                if "updated_at" in self.model.model_fields:
                    record["updated_at"] = datetime.now()
                items[index] = self.model.model_validate({"id": record_id, **record})

                await self._write(items)
                return True
            except ValidationError as e:
                logger.warning(f"Rejected update for {self.label} {record_id}: {e}")
                return False
            except Exception as e:
                logger.error(f"Failed to update {self.label} {record_id}: {e}")
                return False

#------This Function deletes a record by id---------
    async def delete(self, record_id: str) -> bool:
        async with self._lock:
            try:
                items = await self.load()
                remaining = [item for item in items if item.id != record_id]
                if len(remaining) == len(items):
                    return False
                await self._write(remaining)
                return True
            except Exception as e:
                logger.error(f"Failed to delete {self.label} {record_id}: {e}")
                return False

#------This Function deletes every record whose field matches---------
    async def delete_where(self, field: str, value: Any) -> bool:
        async with self._lock:
            try:
                items = await self.load()
                remaining = [item for item in items if getattr(item, field) != value]
                await self._write(remaining)
                logger.debug(
                    f"Deleted {len(items) - len(remaining)} {self.label} where {field}={value}"
                )
                return True
            except Exception as e:
                logger.error(f"Failed to delete {self.label} where {field}={value}: {e}")
                return False

#------This Function replaces the whole collection---------
    async def replace_all(self, items: List[T]) -> bool:
        async with self._lock:
            try:
                await self._write(list(items))
                return True
            except Exception as e:
                logger.error(f"Failed to replace {self.label}: {e}")
                return False


class StorageService:

    def __init__(self, backend: KeyValueBackend, key_prefix: str = DEFAULT_KEY_PREFIX):
        self.backend = backend
        self.key_prefix = key_prefix
        self.treatments: RecordStore[Treatment] = RecordStore(
            backend, self.key(TREATMENTS_KEY), Treatment, "treatments"
        )
        self.doses: RecordStore[Dose] = RecordStore(
            backend, self.key(DOSES_KEY), Dose, "doses"
        )
        self.patients: RecordStore[Patient] = RecordStore(
            backend, self.key(PATIENTS_KEY), Patient, "patients"
        )

    def key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    # Treatments

    async def get_treatments(self) -> List[Treatment]:
        return await self.treatments.get_all()

    async def get_treatment_by_id(self, treatment_id: str) -> Optional[Treatment]:
        return await self.treatments.get_by_id(treatment_id)

    async def get_active_treatments(self) -> List[Treatment]:
        return [t for t in await self.treatments.get_all() if t.is_active]

    async def save_treatment(self, treatment: Treatment) -> bool:
        return await self.treatments.save(treatment)

    async def update_treatment(self, treatment_id: str, updates: Dict[str, Any]) -> bool:
        return await self.treatments.update(treatment_id, updates)

#------This Function deletes a treatment and its doses---------
    async def delete_treatment(self, treatment_id: str) -> bool:
        deleted = await self.treatments.delete(treatment_id)
        cascaded = await self.delete_doses_by_treatment(treatment_id)
        if deleted and cascaded:
            logger.info(f"Deleted treatment {treatment_id} and its doses")
        return deleted and cascaded

    # Doses

    async def get_doses(self) -> List[Dose]:
        return await self.doses.get_all()

    async def get_dose_by_id(self, dose_id: str) -> Optional[Dose]:
        return await self.doses.get_by_id(dose_id)

    async def save_dose(self, dose: Dose) -> bool:
        return await self.doses.save(dose)

    async def save_doses(self, doses: List[Dose]) -> bool:
        return await self.doses.save_many(doses)

    async def update_dose(self, dose_id: str, updates: Dict[str, Any]) -> bool:
        return await self.doses.update(dose_id, updates)

    async def mark_dose_taken(
        self, dose_id: str, notes: Optional[str] = None, taken_at: Optional[datetime] = None
    ) -> bool:
        return await self.update_dose(dose_id, {
            "status": DoseStatus.TAKEN,
            "taken_at": taken_at or datetime.now(),
            "notes": notes,
        })

    async def mark_dose_missed(self, dose_id: str, notes: Optional[str] = None) -> bool:
        return await self.update_dose(dose_id, {"status": DoseStatus.MISSED, "notes": notes})

    async def mark_dose_skipped(self, dose_id: str, notes: Optional[str] = None) -> bool:
        return await self.update_dose(dose_id, {"status": DoseStatus.SKIPPED, "notes": notes})

    async def get_doses_by_treatment(self, treatment_id: str) -> List[Dose]:
        return [d for d in await self.doses.get_all() if d.treatment_id == treatment_id]

    async def get_doses_by_patient(self, patient_id: str) -> List[Dose]:
        treatment_ids = {
            t.id for t in await self.treatments.get_all() if t.patient_id == patient_id
        }
        if not treatment_ids:
            return []
        return [d for d in await self.doses.get_all() if d.treatment_id in treatment_ids]

    async def delete_doses_by_treatment(self, treatment_id: str) -> bool:
        return await self.doses.delete_where("treatment_id", treatment_id)

    # Patients

    async def get_patients(self) -> List[Patient]:
        return await self.patients.get_all()

    async def get_patient_by_id(self, patient_id: str) -> Optional[Patient]:
        return await self.patients.get_by_id(patient_id)

    async def save_patient(self, patient: Patient) -> bool:
        return await self.patients.save(patient)

    # Settings

    async def get_settings(self) -> AppSettings:
        try:
            data = await self.backend.get_item(self.key(SETTINGS_KEY))
            return AppSettings.model_validate_json(data) if data else AppSettings()
        except Exception as e:
            logger.error(f"Failed to read settings: {e}")
            return AppSettings()

    async def save_settings(self, app_settings: AppSettings) -> bool:
        try:
            await self.backend.set_item(
                self.key(SETTINGS_KEY), json.dumps(app_settings.to_record())
            )
            return True
        except Exception as e:
            logger.error(f"Failed to save settings: {e}")
            return False

    # Onboarding

    async def is_onboarding_completed(self) -> bool:
        try:
            return await self.backend.get_item(self.key(ONBOARDING_KEY)) == "true"
        except Exception as e:
            logger.error(f"Failed to read onboarding state: {e}")
            return False

    async def complete_onboarding(self) -> bool:
        try:
            await self.backend.set_item(self.key(ONBOARDING_KEY), "true")
            return True
        except Exception as e:
            logger.error(f"Failed to mark onboarding completed: {e}")
            return False

    # Maintenance

#------This Function removes every collection except the onboarding flag---------
    async def clear_all(self) -> bool:
        try:
            await self.backend.multi_remove([
                self.key(TREATMENTS_KEY),
                self.key(DOSES_KEY),
                self.key(PATIENTS_KEY),
                self.key(SETTINGS_KEY),
                self.key(USER_KEY),
            ])
            return True
        except Exception as e:
            logger.error(f"Failed to clear data: {e}")
            return False

#------This Function builds the backup document---------
    async def export_data(self, now: Optional[datetime] = None) -> Optional[str]:
        try:
            document = ExportDocument(
                version=EXPORT_VERSION,
                export_date=now or datetime.now(),
                data=ExportData(
                    treatments=await self.treatments.load(),
                    doses=await self.doses.load(),
                    patients=await self.patients.load(),
                    settings=await self.get_settings(),
                ),
            )
            return json.dumps(document.to_record(), ensure_ascii=False, indent=2)
        except Exception as e:
            logger.error(f"Failed to export data: {e}")
            return None

#------This Function restores a backup document---------
    async def import_data(self, document: Union[str, bytes, dict]) -> bool:
        try:
            if isinstance(document, (str, bytes)):
                parsed = ExportDocument.model_validate_json(document)
            else:
                parsed = ExportDocument.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Rejected import document: {e}")
            return False

        if parsed.version != EXPORT_VERSION:
            logger.warning(f"Rejected import document with unsupported version {parsed.version}")
            return False

        keys = [self.treatments.key, self.doses.key, self.patients.key, self.key(SETTINGS_KEY)]
        try:
            snapshot = {key: await self.backend.get_item(key) for key in keys}
        except Exception as e:
            logger.error(f"Import aborted: could not read current data: {e}")
            return False

        restored = (
            await self.treatments.replace_all(parsed.data.treatments)
            and await self.doses.replace_all(parsed.data.doses)
            and await self.patients.replace_all(parsed.data.patients)
            and await self.save_settings(parsed.data.settings)
        )
        if not restored:
            logger.error("Import failed part way, restoring previous data")
            await self._restore(snapshot)
            return False

        logger.info(
            f"Imported {len(parsed.data.treatments)} treatments, "
            f"{len(parsed.data.doses)} doses, {len(parsed.data.patients)} patients"
        )
        return True

    async def _restore(self, snapshot: Dict[str, Optional[str]]) -> None:
        for key, value in snapshot.items():
            try:
                if value is None:
                    await self.backend.multi_remove([key])
                else:
                    await self.backend.set_item(key, value)
            except Exception as e:
                logger.error(f"Failed to restore {key}: {e}")
