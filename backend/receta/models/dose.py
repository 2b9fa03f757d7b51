from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum

from receta.models.base import RecordModel, RequestModel, to_naive_local
from receta.utils.ids import new_id


class DoseStatus(str, Enum):
    PENDING = "pending"
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


class Dose(RecordModel):
    id: str = Field(default_factory=lambda: new_id("dose"))
    treatment_id: str
    medication_name: str
    dose: str = ""
    scheduled_time: datetime
    status: DoseStatus = DoseStatus.PENDING
    taken_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator('scheduled_time', 'taken_at', 'created_at', 'updated_at')
    @classmethod
    def to_local_time(cls, v):
        return to_naive_local(v)

    @property
    def effective_time(self) -> datetime:
        return self.taken_at or self.scheduled_time


class DoseAction(RequestModel):
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) > 500:
            raise ValueError('Notes cannot exceed 500 characters')
        return v.strip() if v else None
