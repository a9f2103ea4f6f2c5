"""Appointment data models."""

from datetime import date as Date, datetime, time as Time
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from ..utils.clock import parse_time

SLOT_DURATION_MINUTES = 30


class AppointmentStatus(str, Enum):
    """Possible appointment statuses."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"

    @property
    def is_active(self) -> bool:
        """Whether an appointment in this status still occupies its slot."""
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})

_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check whether the status machine allows moving from current to target."""
    return target in _TRANSITIONS.get(current, set())


class PreferredLanguage(str, Enum):
    """Languages a patient can ask to be seen in."""
    ENGLISH = "en"
    KINYARWANDA = "rw"
    FRENCH = "fr"


class _CamelModel(BaseModel):
    """Snake-case fields in Python and storage, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SlotKey(BaseModel):
    """The (doctor, date, time) tuple unique among active appointments."""
    model_config = ConfigDict(frozen=True)

    doctor_id: str
    date: Date
    time: Time


class Appointment(_CamelModel):
    """Represents a booked appointment."""
    id: Optional[str] = Field(default=None, description="Unique appointment ID")
    patient_id: str = Field(..., description="Patient who owns the appointment")
    facility_id: str = Field(..., description="Facility where the visit happens")
    doctor_id: str = Field(..., description="Doctor being seen")
    date: Date = Field(..., description="Appointment date")
    time: Time = Field(..., description="Local start time, minute resolution")
    duration_minutes: int = Field(default=SLOT_DURATION_MINUTES)
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    reason: str = Field(..., min_length=5, max_length=500)
    notes: str = Field(default="", max_length=1000)
    preferred_language: PreferredLanguage = Field(default=PreferredLanguage.ENGLISH)
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, value):
        if isinstance(value, str):
            return parse_time(value)
        return value

    @field_validator("reason", "notes", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_serializer("time")
    def _serialize_time(self, value) -> str:
        return value.strftime("%H:%M")

    @property
    def slot_key(self) -> SlotKey:
        return SlotKey(doctor_id=self.doctor_id, date=self.date, time=self.time)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def datetime_str(self) -> str:
        """Get formatted datetime string."""
        return f"{self.date.isoformat()} at {self.time.strftime('%H:%M')}"


class AppointmentQuery(_CamelModel):
    """Filters and pagination for listing a patient's appointments."""
    status: Optional[AppointmentStatus] = None
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None
    limit: int = Field(default=20, ge=1, le=50)
    page: int = Field(default=1, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, appointment: Appointment) -> bool:
        """Apply the filters to a single record."""
        if self.status is not None and appointment.status != self.status:
            return False
        if self.start_date is not None and appointment.date < self.start_date:
            return False
        if self.end_date is not None and appointment.date > self.end_date:
            return False
        return True


class Pagination(_CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, query: AppointmentQuery, total: int) -> "Pagination":
        return cls(
            current_page=query.page,
            total_pages=-(-total // query.limit),
            total_items=total,
            items_per_page=query.limit,
            has_next_page=query.offset + query.limit < total,
            has_prev_page=query.page > 1,
        )


class AppointmentPage(_CamelModel):
    """One page of a patient's appointments."""
    appointments: list[Appointment]
    pagination: Pagination
