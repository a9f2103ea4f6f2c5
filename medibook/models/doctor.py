"""Doctor data models."""

from datetime import date as Date, time as Time
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..utils.clock import WEEKDAYS, parse_time


class WorkingHoursPolicy(BaseModel):
    """A doctor's recurring weekly availability window."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    start_time: Time = Field(..., description="First slot may start at this time")
    end_time: Time = Field(..., description="Last slot must end by this time")
    working_days: frozenset[str] = Field(..., description="Lowercase weekday names")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_times(cls, value):
        if isinstance(value, str):
            return parse_time(value)
        return value

    @field_validator("working_days", mode="before")
    @classmethod
    def _normalize_days(cls, value):
        days = frozenset(str(day).strip().lower() for day in value)
        unknown = days - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday names: {sorted(unknown)}")
        return days

    @model_validator(mode="after")
    def _check_window(self) -> "WorkingHoursPolicy":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value) -> str:
        return value.strftime("%H:%M")

    @field_serializer("working_days")
    def _serialize_days(self, value) -> list[str]:
        return [day for day in WEEKDAYS if day in value]

    def works_on(self, weekday: str) -> bool:
        return weekday in self.working_days


class Doctor(BaseModel):
    """A doctor attached to one facility."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str = ""
    facility_id: str
    specialties: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_available: bool = True
    working_hours: Optional[WorkingHoursPolicy] = None

    def policy_or(self, default: WorkingHoursPolicy) -> WorkingHoursPolicy:
        """Doctor's own working hours, falling back to the clinic default."""
        return self.working_hours or default


class DoctorAvailability(BaseModel):
    """Free slots for one doctor on one date."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    doctor_id: str
    date: Date
    is_working_day: bool
    available_slots: list[Time]
    working_hours: WorkingHoursPolicy
    is_available: bool = True

    @field_serializer("available_slots")
    def _serialize_slots(self, value) -> list[str]:
        return [slot.strftime("%H:%M") for slot in value]
