"""Data models package."""

from .appointment import (
    ACTIVE_STATUSES,
    SLOT_DURATION_MINUTES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentPage,
    AppointmentQuery,
    AppointmentStatus,
    Pagination,
    PreferredLanguage,
    SlotKey,
    can_transition,
)
from .doctor import Doctor, DoctorAvailability, WorkingHoursPolicy
from .facility import (
    Facility,
    FacilityLocation,
    FacilityType,
    NearbyFacility,
    ProximityQuery,
    ProximitySearchResult,
)

__all__ = [
    "ACTIVE_STATUSES",
    "SLOT_DURATION_MINUTES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentPage",
    "AppointmentQuery",
    "AppointmentStatus",
    "Pagination",
    "PreferredLanguage",
    "SlotKey",
    "can_transition",
    "Doctor",
    "DoctorAvailability",
    "WorkingHoursPolicy",
    "Facility",
    "FacilityLocation",
    "FacilityType",
    "NearbyFacility",
    "ProximityQuery",
    "ProximitySearchResult",
]
