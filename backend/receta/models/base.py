from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


#------This Function converts an aware timestamp to naive local time---------
def to_naive_local(value):
    # Clients send toISOString() values ("...000Z"); stored times are naive local.
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class RecordModel(BaseModel):
    """Persisted entity. Attributes are snake_case, JSON keys are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RequestModel(BaseModel):
    """Request body. Accepts camelCase keys from the mobile client or snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
