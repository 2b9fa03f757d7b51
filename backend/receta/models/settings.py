from pydantic import Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

from receta.models.base import RecordModel, RequestModel, to_naive_local
from receta.models.dose import Dose
from receta.models.patient import Patient
from receta.models.treatment import Treatment


EXPORT_VERSION = "1.0"


class AppSettings(RecordModel):
    notifications_enabled: bool = True
    sound_enabled: bool = True
    vibration_enabled: bool = True
    reminder_minutes_before: int = Field(default=5, ge=0, le=1440)
    theme: Literal["light", "dark", "auto"] = "auto"
    language: Literal["es", "en"] = "es"


class ExportData(RecordModel):
    treatments: List[Treatment] = Field(default_factory=list)
    doses: List[Dose] = Field(default_factory=list)
    patients: List[Patient] = Field(default_factory=list)
    settings: AppSettings = Field(default_factory=AppSettings)


class ExportDocument(RecordModel):
    version: str = EXPORT_VERSION
    export_date: datetime = Field(default_factory=datetime.now)
    data: ExportData = Field(default_factory=ExportData)

    @field_validator('export_date')
    @classmethod
    def to_local_time(cls, v):
        return to_naive_local(v)


class UpdateSettingsRequest(RequestModel):
    notifications_enabled: Optional[bool] = None
    sound_enabled: Optional[bool] = None
    vibration_enabled: Optional[bool] = None
    reminder_minutes_before: Optional[int] = Field(default=None, ge=0, le=1440)
    theme: Optional[Literal["light", "dark", "auto"]] = None
    language: Optional[Literal["es", "en"]] = None
