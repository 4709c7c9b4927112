from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class Place(BaseModel):
    """A point of interest that can be stored in the spatial index."""
    model_config = ConfigDict(frozen=True)

    place_id: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None)
    latitude: float
    longitude: float


class BatchPlaceRequest(BaseModel):
    """Batch of places for bulk loading."""
    places: List[Place] = Field(..., min_length=1, max_length=1000, description="List of places (max 1000)")


class PlaceResult(BaseModel):
    """A place returned by a proximity query, with its distance from the query center."""
    place: Place
    distance_km: Optional[float] = Field(default=None, ge=0)
