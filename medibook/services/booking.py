"""Appointment booking, rescheduling and cancellation."""

import asyncio
import logging
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import pydantic

from ..errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ReservationOutcomeUnknown,
    SchedulingError,
    StorageTimeoutError,
    ValidationError,
)
from ..models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentPage,
    AppointmentQuery,
    AppointmentStatus,
    Doctor,
    DoctorAvailability,
    Pagination,
    PreferredLanguage,
    can_transition,
)
from ..utils.clock import hours_until, weekday_of
from .slot_generator import SlotGenerator
from .store import AppointmentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingService:
    """
    Reserves, moves and releases doctor time slots.

    Every mutating operation takes the acting patient's id explicitly and
    runs its storage write as one conditional operation on the store, so the
    rule that an active SlotKey is held by at most one appointment is
    enforced by the store, never by a read followed by a write here.
    """

    def __init__(
        self,
        store: AppointmentStore,
        slot_generator: SlotGenerator,
        cancellation_notice_hours: int = 24,
        storage_timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize booking service.

        Args:
            store: Appointment store
            slot_generator: Slot generation service
            cancellation_notice_hours: Minimum notice required to cancel
            storage_timeout_seconds: Timeout applied to each storage call
            clock: Returns the current local time
        """
        self.store = store
        self.slots = slot_generator
        self.cancellation_notice_hours = cancellation_notice_hours
        self.storage_timeout_seconds = storage_timeout_seconds
        self.clock = clock

    # ==================== Storage helpers ====================

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a storage call under the configured timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.storage_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Storage timeout during {operation}")
            raise StorageTimeoutError(f"Storage timed out during {operation}") from e

    async def _reserve(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a slot-reserving write; a timeout leaves the outcome unknown."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.storage_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Storage timeout during {operation}, outcome unknown")
            raise ReservationOutcomeUnknown(
                f"Timed out during {operation}; the slot may or may not have been "
                "reserved, check the appointment list before retrying"
            ) from e

    async def _load_doctor(self, doctor_id: str) -> Doctor:
        doctor = await self._call("fetch doctor", self.store.get_doctor(doctor_id))
        if doctor is None:
            raise NotFoundError("Doctor not found", {"doctorId": doctor_id})
        if not doctor.is_active:
            raise InvalidStateError("Doctor is inactive", {"doctorId": doctor_id})
        return doctor

    async def _load_owned(self, actor_id: str, appointment_id: str) -> Appointment:
        appointment = await self._call(
            "fetch appointment", self.store.get_appointment(appointment_id)
        )
        if appointment is None:
            raise NotFoundError("Appointment not found", {"appointmentId": appointment_id})
        if appointment.patient_id != actor_id:
            raise ForbiddenError("Access denied")
        return appointment

    # ==================== Availability ====================

    async def get_availability(
        self, doctor_id: str, facility_id: str, day: date
    ) -> DoctorAvailability:
        """
        Free slots for a doctor at a facility on a date.

        A day the doctor never works is reported with ``is_working_day``
        False and no slots, so callers can tell it apart from a fully booked
        day.

        Raises:
            NotFoundError: Doctor does not exist
            InvalidStateError: Doctor inactive or not at this facility
        """
        doctor = await self._load_doctor(doctor_id)
        if doctor.facility_id != facility_id:
            raise InvalidStateError("Doctor does not work at the specified facility")

        policy = doctor.policy_or(self.slots.default_policy)
        is_working_day = policy.works_on(weekday_of(day))

        available: list[time] = []
        if is_working_day:
            occupied = await self._call(
                "fetch occupied slots", self.store.occupied_times(doctor_id, day)
            )
            available = self.slots.get_available_slots(policy, day, occupied)

        return DoctorAvailability(
            doctor_id=doctor_id,
            date=day,
            is_working_day=is_working_day,
            available_slots=available,
            working_hours=policy,
            is_available=doctor.is_available,
        )

    # ==================== Booking state machine ====================

    async def create(
        self,
        actor_id: str,
        doctor_id: str,
        facility_id: str,
        day: date,
        at: time,
        reason: str,
        notes: str = "",
        preferred_language: PreferredLanguage = PreferredLanguage.ENGLISH,
    ) -> Appointment:
        """
        Book a new appointment.

        Args:
            actor_id: Patient making the booking
            doctor_id: Doctor to see
            facility_id: Facility the doctor works at
            day: Appointment date
            at: Slot start time
            reason: Reason for the visit (5-500 characters)
            notes: Optional notes (up to 1000 characters)
            preferred_language: Language the patient prefers

        Returns:
            The stored appointment with status ``scheduled``

        Raises:
            NotFoundError: Doctor or facility does not exist
            InvalidStateError: Inactive doctor/facility, facility mismatch,
                illegal or past slot
            ConflictError: Another active appointment holds the slot
            ReservationOutcomeUnknown: Store timed out during the write
        """
        now = self.clock()
        try:
            appointment = Appointment(
                patient_id=actor_id,
                facility_id=facility_id,
                doctor_id=doctor_id,
                date=day,
                time=at,
                status=AppointmentStatus.SCHEDULED,
                reason=reason,
                notes=notes or "",
                preferred_language=preferred_language,
                created_at=now,
                updated_at=now,
            )
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(e, "Invalid appointment data") from e

        try:
            facility = await self._call("fetch facility", self.store.get_facility(facility_id))
            if facility is None:
                raise NotFoundError("Facility not found", {"facilityId": facility_id})
            if not facility.is_active:
                raise InvalidStateError("Facility is inactive", {"facilityId": facility_id})

            doctor = await self._load_doctor(doctor_id)
            if doctor.facility_id != facility_id:
                raise InvalidStateError("Doctor does not work at the specified facility")

            policy = doctor.policy_or(self.slots.default_policy)
            self.slots.validate_slot(policy, day, at, now)

            created = await self._reserve(
                "create appointment", self.store.insert_appointment(appointment)
            )
        except SchedulingError as e:
            logger.warning(f"Booking rejected ({e.kind}) for {actor_id}: {e.detail}")
            raise

        logger.info(
            f"Appointment {created.id} booked for {actor_id} with {doctor_id} "
            f"on {created.datetime_str}"
        )
        return created

    async def reschedule(
        self,
        actor_id: str,
        appointment_id: str,
        new_date: Optional[date] = None,
        new_time: Optional[time] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to a new slot and/or edit its reason and notes.

        Date and time must be given together. Moving to the appointment's own
        current slot is allowed and changes nothing but ``updated_at``.
        An empty ``reason`` leaves the current one in place; an empty ``notes``
        clears them.

        Raises:
            NotFoundError: Appointment or its doctor does not exist
            ForbiddenError: Caller does not own the appointment
            InvalidStateError: Terminal status, or illegal/past slot
            ConflictError: Another active appointment holds the new slot
            ReservationOutcomeUnknown: Store timed out while moving the slot
        """
        if (new_date is None) != (new_time is None):
            raise ValidationError("New date and time must be provided together")

        try:
            appointment = await self._load_owned(actor_id, appointment_id)
            if not appointment.is_active:
                raise InvalidStateError(
                    "Cannot modify completed or cancelled appointments",
                    {"status": appointment.status.value},
                )

            now = self.clock()
            changes: dict[str, Any] = {"updated_at": now}
            if reason:
                changes["reason"] = reason
            if notes is not None:
                changes["notes"] = notes
            if new_date is not None:
                changes["date"] = new_date
                changes["time"] = new_time

            try:
                validated = Appointment.model_validate({**appointment.model_dump(), **changes})
            except pydantic.ValidationError as e:
                raise ValidationError.from_pydantic(e, "Invalid appointment data") from e
            changes = {field: getattr(validated, field) for field in changes}

            if new_date is not None:
                doctor = await self._load_doctor(appointment.doctor_id)
                policy = doctor.policy_or(self.slots.default_policy)
                self.slots.validate_slot(policy, new_date, new_time, now)
                updated = await self._reserve(
                    "reschedule appointment",
                    self.store.update_appointment(appointment_id, changes, ACTIVE_STATUSES),
                )
            else:
                updated = await self._call(
                    "update appointment",
                    self.store.update_appointment(appointment_id, changes, ACTIVE_STATUSES),
                )
        except SchedulingError as e:
            logger.warning(f"Reschedule of {appointment_id} rejected ({e.kind}): {e.detail}")
            raise

        logger.info(f"Appointment {appointment_id} updated, now {updated.datetime_str}")
        return updated

    async def cancel(self, actor_id: str, appointment_id: str) -> Appointment:
        """
        Cancel an appointment, releasing its slot.

        The write only applies while the appointment still holds the slot the
        notice was checked against.

        Raises:
            NotFoundError: Appointment does not exist
            ForbiddenError: Caller does not own the appointment
            InvalidStateError: Already terminal, less than the required notice
                remains, or the appointment was moved meanwhile
        """
        try:
            appointment = await self._load_owned(actor_id, appointment_id)
            if not can_transition(appointment.status, AppointmentStatus.CANCELLED):
                raise InvalidStateError(
                    "Appointment cannot be cancelled",
                    {"status": appointment.status.value},
                )

            now = self.clock()
            remaining = hours_until(appointment.date, appointment.time, now)
            if remaining < self.cancellation_notice_hours:
                raise InvalidStateError(
                    f"Appointments can only be cancelled at least "
                    f"{self.cancellation_notice_hours} hours in advance",
                    {"hoursUntil": round(remaining, 2)},
                )

            cancelled = await self._call(
                "cancel appointment",
                self.store.update_appointment(
                    appointment_id,
                    {"status": AppointmentStatus.CANCELLED, "updated_at": now},
                    ACTIVE_STATUSES,
                    expected_slot=appointment.slot_key,
                ),
            )
        except SchedulingError as e:
            logger.warning(f"Cancellation of {appointment_id} rejected ({e.kind}): {e.detail}")
            raise

        logger.info(f"Appointment {appointment_id} cancelled by {actor_id}")
        return cancelled

    async def confirm(self, actor_id: str, appointment_id: str) -> Appointment:
        """Move a scheduled appointment to confirmed; the slot stays held."""
        appointment = await self._load_owned(actor_id, appointment_id)
        if not can_transition(appointment.status, AppointmentStatus.CONFIRMED):
            raise InvalidStateError(
                f"Cannot confirm a {appointment.status.value} appointment",
                {"status": appointment.status.value},
            )

        confirmed = await self._call(
            "confirm appointment",
            self.store.update_appointment(
                appointment_id,
                {"status": AppointmentStatus.CONFIRMED, "updated_at": self.clock()},
                {AppointmentStatus.SCHEDULED},
            ),
        )
        logger.info(f"Appointment {appointment_id} confirmed")
        return confirmed

    # ==================== Reads ====================

    async def get_appointment(self, actor_id: str, appointment_id: str) -> Appointment:
        """Get one of the caller's appointments."""
        return await self._load_owned(actor_id, appointment_id)

    async def list_appointments(
        self, actor_id: str, query: Optional[AppointmentQuery] = None
    ) -> AppointmentPage:
        """List the caller's appointments, newest first."""
        query = query or AppointmentQuery()
        appointments, total = await self._call(
            "list appointments", self.store.list_appointments(actor_id, query)
        )
        return AppointmentPage(
            appointments=appointments,
            pagination=Pagination.build(query, total),
        )
