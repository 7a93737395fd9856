from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Response(BaseModel):
    """A single recorded incident response. `id` is assigned by the store."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: Optional[int] = None
    incident_number: str = ""
    details: str = ""
    date: datetime


class Emergency(BaseModel):
    """A named category of call with its responses in entry order."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    id: Optional[int] = None
    type: str
    responses: List[Response] = Field(default_factory=list)

    @property
    def responses_count(self) -> int:
        return len(self.responses)


class ManualPointEntry(BaseModel):
    date_added: datetime
    points: int = Field(ge=0)


class ManualPointsDocument(BaseModel):
    """Persisted form of the manual point entries setting."""

    version: int = 1
    entries: List[ManualPointEntry] = Field(default_factory=list)


class Points(BaseModel):
    current_month: int = 0
    current_year: int = 0
    previous_month: int = 0
    all: int = 0
