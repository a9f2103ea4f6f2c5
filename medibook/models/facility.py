"""Facility and proximity search models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FacilityType(str, Enum):
    """Kinds of healthcare facility."""
    HOSPITAL = "hospital"
    CLINIC = "clinic"
    PHARMACY = "pharmacy"
    LABORATORY = "laboratory"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FacilityLocation(_CamelModel):
    """Geographic position of a facility, in degrees."""
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class Facility(_CamelModel):
    """A healthcare facility patients can search for and book at."""
    id: str
    name: str = ""
    type: FacilityType
    location: FacilityLocation
    specialties: list[str] = Field(default_factory=list)
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True


class ProximityQuery(_CamelModel):
    """Parameters of a nearby-facility search."""
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    radius_km: float = Field(default=20.0, gt=0.1, le=50, allow_inf_nan=False)
    type: Optional[FacilityType] = None
    specialty: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=50)


class NearbyFacility(Facility):
    """A facility annotated with its distance from the search point."""
    distance: float = Field(..., description="Kilometres, rounded to 2 decimals")
    estimated_travel_time: int = Field(..., description="Minutes, rough estimate")


class ProximitySearchResult(_CamelModel):
    """Ranked facilities plus counts before and after truncation."""
    facilities: list[NearbyFacility]
    total_found: int
    total_returned: int
    search_radius: float
    user_location: FacilityLocation
