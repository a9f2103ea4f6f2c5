"""Slot generator for available appointment times."""

import logging
from datetime import date, datetime, time
from typing import Iterable, List, Optional

from ..errors import InvalidStateError
from ..models import SLOT_DURATION_MINUTES, WorkingHoursPolicy
from ..utils.clock import is_future, is_slot_boundary, iter_slots, weekday_of

logger = logging.getLogger(__name__)


class SlotGenerator:
    """Generates bookable slots from a doctor's working-hours policy."""

    def __init__(
        self,
        default_policy: WorkingHoursPolicy,
        slot_duration_minutes: int = SLOT_DURATION_MINUTES,
    ):
        """
        Initialize slot generator.

        Args:
            default_policy: Working hours for doctors that have none on record
            slot_duration_minutes: Width of every slot, also the step between them
        """
        self.default_policy = default_policy
        self.slot_duration_minutes = slot_duration_minutes

    def generate_slots(self, policy: WorkingHoursPolicy, day: date) -> List[time]:
        """
        Every slot start the policy offers on a day, ignoring bookings.

        Returns an empty list on days the doctor does not work.
        """
        if not policy.works_on(weekday_of(day)):
            return []
        return list(iter_slots(policy.start_time, policy.end_time, self.slot_duration_minutes))

    def get_available_slots(
        self,
        policy: WorkingHoursPolicy,
        day: date,
        occupied: Optional[Iterable[time]] = None,
    ) -> List[time]:
        """
        Get only free slots.

        Args:
            policy: Doctor's working hours
            day: Target date
            occupied: Start times held by active appointments on that date

        Returns:
            Ascending slot start times not present in ``occupied``
        """
        taken = set(occupied or ())
        logger.debug(f"Computing free slots for {day.isoformat()} with {len(taken)} taken")
        return [slot for slot in self.generate_slots(policy, day) if slot not in taken]

    def validate_slot(
        self,
        policy: WorkingHoursPolicy,
        day: date,
        at: time,
        now: datetime,
    ) -> None:
        """
        Check that a date/time is a legal, future slot under the policy.

        Raises:
            InvalidStateError: Non-working day, outside hours, off the slot
                grid, or not in the future
        """
        weekday = weekday_of(day)
        if not policy.works_on(weekday):
            raise InvalidStateError(
                f"Doctor does not work on {weekday.capitalize()}s",
                {"date": day.isoformat(), "weekday": weekday},
            )

        slots = iter_slots(policy.start_time, policy.end_time, self.slot_duration_minutes)
        if at not in set(slots):
            if is_slot_boundary(at, policy.start_time, self.slot_duration_minutes):
                detail = (
                    f"{at.strftime('%H:%M')} is outside working hours "
                    f"({policy.start_time.strftime('%H:%M')} - {policy.end_time.strftime('%H:%M')})"
                )
            else:
                detail = (
                    f"{at.strftime('%H:%M')} is not aligned to a "
                    f"{self.slot_duration_minutes}-minute slot"
                )
            raise InvalidStateError(detail, {"time": at.strftime("%H:%M")})

        if not is_future(day, at, now):
            raise InvalidStateError(
                "Appointment date must be in the future",
                {"date": day.isoformat(), "time": at.strftime("%H:%M")},
            )
