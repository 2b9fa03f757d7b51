import re
from pydantic import Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date
from enum import Enum

from receta.models.base import RecordModel, RequestModel, to_naive_local
from receta.utils.ids import new_id


MAX_NAME_LENGTH = 200
MAX_DOSE_LENGTH = 100
MAX_NOTES_LENGTH = 500
MAX_SCHEDULES = 10

TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')


class Frequency(str, Enum):
    DAILY = "daily"
    EVERY_HOURS = "every_hours"
    WEEKLY = "weekly"
    AS_NEEDED = "as_needed"


def _to_date(value):
    # ISO datetimes ("2025-01-03T08:30:00") are stored by older clients; keep the day.
    if isinstance(value, str) and "T" in value:
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        return to_naive_local(value).date()
    return value


class Schedule(RecordModel):
    id: str = Field(default_factory=lambda: new_id("schedule"))
    time: str
    enabled: bool = True


class Treatment(RecordModel):
    id: str = Field(default_factory=lambda: new_id("treatment"))
    medication_name: str
    dose: str = ""
    frequency: Frequency = Frequency.DAILY
    schedules: List[Schedule] = Field(default_factory=list)
    patient_id: str
    patient_name: str = ""
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def truncate_to_date(cls, v):
        return _to_date(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def to_local_time(cls, v):
        return to_naive_local(v)


class ScheduleCreate(RequestModel):
    time: str
    enabled: bool = True

    @field_validator('time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        v = v.strip()
        if not TIME_PATTERN.match(v):
            raise ValueError(f'Invalid time format: {v}. Use HH:MM format.')
        hours, minutes = v.split(":")
        return f"{int(hours):02d}:{minutes}"


class TreatmentCreate(RequestModel):
    medication_name: str
    dose: str = ""
    frequency: Frequency = Frequency.DAILY
    schedules: List[ScheduleCreate]
    patient_id: Optional[str] = None
    patient_name: str
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def truncate_to_date(cls, v):
        return _to_date(v)

    @field_validator('medication_name')
    @classmethod
    def validate_medication_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Medication name cannot be empty')
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f'Medication name cannot exceed {MAX_NAME_LENGTH} characters')
        return v.strip()

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Patient name cannot be empty')
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f'Patient name cannot exceed {MAX_NAME_LENGTH} characters')
        return v.strip()

    @field_validator('dose')
    @classmethod
    def validate_dose(cls, v: str) -> str:
        if v and len(v) > MAX_DOSE_LENGTH:
            raise ValueError(f'Dose cannot exceed {MAX_DOSE_LENGTH} characters')
        return v.strip() if v else ""

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) > MAX_NOTES_LENGTH:
            raise ValueError(f'Notes cannot exceed {MAX_NOTES_LENGTH} characters')
        return v.strip() if v else None

    @field_validator('schedules')
    @classmethod
    def validate_schedules(cls, v: List[ScheduleCreate]) -> List[ScheduleCreate]:
        if not v:
            raise ValueError('At least one schedule time is required')
        if len(v) > MAX_SCHEDULES:
            raise ValueError(f'Cannot have more than {MAX_SCHEDULES} schedule times')
        return v

    @model_validator(mode='after')
    def validate_date_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError('End date cannot be before start date')
        return self

    def to_treatment(self) -> Treatment:
        now = datetime.now()
        return Treatment(
            medication_name=self.medication_name,
            dose=self.dose,
            frequency=self.frequency,
            schedules=[Schedule(time=s.time, enabled=s.enabled) for s in self.schedules],
            patient_id=self.patient_id or new_id("patient"),
            patient_name=self.patient_name,
            start_date=self.start_date,
            end_date=self.end_date,
            notes=self.notes,
            is_active=True,
            created_at=now,
            updated_at=now,
        )


class TreatmentUpdate(RequestModel):
    medication_name: Optional[str] = None
    dose: Optional[str] = None
    frequency: Optional[Frequency] = None
    schedules: Optional[List[ScheduleCreate]] = None
    patient_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def truncate_to_date(cls, v):
        return _to_date(v)

    @field_validator('medication_name')
    @classmethod
    def validate_medication_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v.strip():
                raise ValueError('Medication name cannot be empty')
            if len(v) > MAX_NAME_LENGTH:
                raise ValueError(f'Medication name cannot exceed {MAX_NAME_LENGTH} characters')
            return v.strip()
        return v

    @field_validator('schedules')
    @classmethod
    def validate_schedules(cls, v: Optional[List[ScheduleCreate]]) -> Optional[List[ScheduleCreate]]:
        if v is not None and len(v) > MAX_SCHEDULES:
            raise ValueError(f'Cannot have more than {MAX_SCHEDULES} schedule times')
        return v

    def to_updates(self) -> dict:
        updates = self.model_dump(exclude_none=True)
        if self.schedules is not None:
            updates["schedules"] = [
                Schedule(time=s.time, enabled=s.enabled) for s in self.schedules
            ]
        return updates
