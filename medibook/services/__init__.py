"""Services package for scheduling and search."""

from .booking import BookingService
from .facility_search import FacilitySearch
from .slot_generator import SlotGenerator
from .store import AppointmentStore, InMemoryStore
from .supabase_service import SupabaseStore

__all__ = [
    "BookingService",
    "FacilitySearch",
    "SlotGenerator",
    "AppointmentStore",
    "InMemoryStore",
    "SupabaseStore",
]
