from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import datetime


class BlockerRequest(BaseModel):
    start_date: datetime
    end_date: Optional[datetime] = None
    comment: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is None:
            return self
        if (self.start_date.tzinfo is None) != (self.end_date.tzinfo is None):
            raise ValueError("start_date and end_date must both carry a timezone or neither")
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class Blocker(BaseModel, frozen=True):
    id: int
    start_date: datetime
    end_date: Optional[datetime] = None
    comment: Optional[str] = None
    created_by_id: Optional[int] = None
    created_on: Optional[datetime] = None

    def covers(self, start: datetime, end: datetime) -> bool:
        if self.start_date > start:
            return False
        return self.end_date is None or end <= self.end_date
