"""Storage collaborator interface and an in-process implementation."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, time
from typing import Any, Iterable, Optional

from ..errors import ConflictError, InvalidStateError, NotFoundError
from ..models import (
    Appointment,
    AppointmentQuery,
    AppointmentStatus,
    Doctor,
    Facility,
    FacilityType,
    SlotKey,
)

logger = logging.getLogger(__name__)


class AppointmentStore(ABC):
    """Abstract document store the scheduling engine runs against.

    Implementations must make ``insert_appointment`` and
    ``update_appointment`` atomic with respect to the active-slot uniqueness
    rule: no two appointments in an active status may share a SlotKey.
    """

    @abstractmethod
    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        pass

    @abstractmethod
    async def get_facility(self, facility_id: str) -> Optional[Facility]:
        pass

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        pass

    @abstractmethod
    async def occupied_times(self, doctor_id: str, day: date) -> set[time]:
        """Start times held by active appointments for a doctor on a date."""
        pass

    @abstractmethod
    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """
        Store a new appointment, assigning its id.

        Raises:
            ConflictError: An active appointment already holds the SlotKey
        """
        pass

    @abstractmethod
    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected: Iterable[AppointmentStatus],
        expected_slot: Optional[SlotKey] = None,
    ) -> Appointment:
        """
        Apply changes only if the current status is one of ``expected``
        and, when ``expected_slot`` is given, the appointment still holds it.

        If the result is active, its SlotKey must not be held by any other
        active appointment.

        Raises:
            NotFoundError: No such appointment
            InvalidStateError: Status is no longer one of ``expected``, or the
                appointment moved off ``expected_slot``
            ConflictError: Another active appointment holds the new SlotKey
        """
        pass

    @abstractmethod
    async def list_appointments(
        self, patient_id: str, query: AppointmentQuery
    ) -> tuple[list[Appointment], int]:
        """One page of a patient's appointments, newest first, plus the total."""
        pass

    @abstractmethod
    async def active_facilities(
        self,
        facility_type: Optional[FacilityType] = None,
        specialty: Optional[str] = None,
    ) -> list[Facility]:
        pass

    async def health_check(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        return True


class InMemoryStore(AppointmentStore):
    """Dict-backed store for local runs and tests.

    Every mutation happens inside one ``asyncio.Lock`` critical section with
    no awaits between the uniqueness check and the write.
    """

    def __init__(
        self,
        doctors: Optional[Iterable[Doctor]] = None,
        facilities: Optional[Iterable[Facility]] = None,
    ):
        self._doctors: dict[str, Doctor] = {d.id: d for d in doctors or ()}
        self._facilities: dict[str, Facility] = {f.id: f for f in facilities or ()}
        self._appointments: dict[str, Appointment] = {}
        self._active_slots: dict[SlotKey, str] = {}
        self._lock = asyncio.Lock()

    def add_doctor(self, doctor: Doctor) -> None:
        self._doctors[doctor.id] = doctor

    def add_facility(self, facility: Facility) -> None:
        self._facilities[facility.id] = facility

    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        doctor = self._doctors.get(doctor_id)
        return doctor.model_copy(deep=True) if doctor else None

    async def get_facility(self, facility_id: str) -> Optional[Facility]:
        facility = self._facilities.get(facility_id)
        return facility.model_copy(deep=True) if facility else None

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self._appointments.get(appointment_id)
        return appointment.model_copy() if appointment else None

    async def occupied_times(self, doctor_id: str, day: date) -> set[time]:
        return {
            key.time
            for key in self._active_slots
            if key.doctor_id == doctor_id and key.date == day
        }

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            key = appointment.slot_key
            if appointment.is_active and key in self._active_slots:
                raise ConflictError(
                    "This time slot is already booked",
                    {"doctorId": key.doctor_id, "date": key.date.isoformat(),
                     "time": key.time.strftime("%H:%M")},
                )

            stored = appointment.model_copy(update={"id": uuid.uuid4().hex})
            self._appointments[stored.id] = stored
            if stored.is_active:
                self._active_slots[key] = stored.id
            logger.debug(f"Stored appointment {stored.id} at {stored.datetime_str}")
            return stored.model_copy()

    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected: Iterable[AppointmentStatus],
        expected_slot: Optional[SlotKey] = None,
    ) -> Appointment:
        expected = frozenset(expected)
        async with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None:
                raise NotFoundError("Appointment not found")
            if current.status not in expected:
                raise InvalidStateError(
                    f"Appointment is {current.status.value}",
                    {"status": current.status.value},
                )
            if expected_slot is not None and current.slot_key != expected_slot:
                raise InvalidStateError(
                    "Appointment was changed by another request, please retry",
                    {"date": current.date.isoformat(), "time": current.time.strftime("%H:%M")},
                )

            updated = current.model_copy(update=changes)
            new_key = updated.slot_key
            if updated.is_active:
                holder = self._active_slots.get(new_key)
                if holder is not None and holder != appointment_id:
                    raise ConflictError(
                        "This time slot is already booked",
                        {"doctorId": new_key.doctor_id, "date": new_key.date.isoformat(),
                         "time": new_key.time.strftime("%H:%M")},
                    )

            if current.is_active:
                self._active_slots.pop(current.slot_key, None)
            if updated.is_active:
                self._active_slots[new_key] = appointment_id
            self._appointments[appointment_id] = updated
            return updated.model_copy()

    async def list_appointments(
        self, patient_id: str, query: AppointmentQuery
    ) -> tuple[list[Appointment], int]:
        matching = [
            a for a in self._appointments.values()
            if a.patient_id == patient_id and query.matches(a)
        ]
        matching.sort(key=lambda a: (a.date, a.time), reverse=True)
        page = matching[query.offset:query.offset + query.limit]
        return [a.model_copy() for a in page], len(matching)

    async def active_facilities(
        self,
        facility_type: Optional[FacilityType] = None,
        specialty: Optional[str] = None,
    ) -> list[Facility]:
        return [
            f.model_copy(deep=True)
            for f in self._facilities.values()
            if f.is_active
            and (facility_type is None or f.type == facility_type)
            and (specialty is None or specialty in f.specialties)
        ]
