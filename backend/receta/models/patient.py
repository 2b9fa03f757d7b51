from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime

from receta.models.base import RecordModel, RequestModel, to_naive_local
from receta.utils.ids import new_id


class Patient(RecordModel):
    id: str = Field(default_factory=lambda: new_id("patient"))
    name: str
    age: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator('created_at')
    @classmethod
    def to_local_time(cls, v):
        return to_naive_local(v)


class PatientCreate(RequestModel):
    name: str
    age: Optional[int] = Field(default=None, ge=0, le=150)
    notes: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Patient name cannot be empty')
        if len(v) > 200:
            raise ValueError('Patient name cannot exceed 200 characters')
        return v.strip()
