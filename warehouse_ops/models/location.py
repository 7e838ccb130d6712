"""Storage hierarchy: Warehouse → Zone → Shelf → Location.

Routing distance is a function of how much of the hierarchy two locations
share:

    same location                    0
    same shelf                       1
    same zone, different shelf       3
    different zone / unknown         10
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

SAME_SHELF_DISTANCE = 1.0
SAME_ZONE_DISTANCE = 3.0
FAR_DISTANCE = 10.0


class Zone(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    warehouse_id: Optional[int] = None
    name: str = ""


class Shelf(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    zone_id: Optional[int] = None
    name: str = ""


class Location(BaseModel):
    """A single storage slot. Belongs to at most one shelf."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Numeric identity; also the z_shape sort key")
    shelf_id: Optional[int] = Field(default=None, description="Owning shelf, if known")
    code: str = ""


class LocationGraph:
    """Resolves shelves and zones for locations and measures travel distance."""

    def __init__(
        self,
        zones: Iterable[Zone] = (),
        shelves: Iterable[Shelf] = (),
        locations: Iterable[Location] = (),
    ):
        self.zones: dict[int, Zone] = {z.id: z for z in zones}
        self.shelves: dict[int, Shelf] = {s.id: s for s in shelves}
        self.locations: dict[int, Location] = {loc.id: loc for loc in locations}

    def add_zone(self, zone: Zone) -> None:
        self.zones[zone.id] = zone

    def add_shelf(self, shelf: Shelf) -> None:
        self.shelves[shelf.id] = shelf

    def add_location(self, location: Location) -> None:
        self.locations[location.id] = location

    def location(self, location_id: int) -> Optional[Location]:
        return self.locations.get(location_id)

    def resolve(self, location_ids: Iterable[int]) -> list[Location]:
        """Map ids to known locations, dropping ids the graph does not hold."""
        return [self.locations[i] for i in location_ids if i in self.locations]

    def shelf_of(self, location: Location) -> Optional[Shelf]:
        if location.shelf_id is None:
            return None
        return self.shelves.get(location.shelf_id)

    def zone_of(self, location: Location) -> Optional[int]:
        """Zone id of a location, or None if the hierarchy is incomplete."""
        shelf = self.shelf_of(location)
        return shelf.zone_id if shelf is not None else None

    def distance(self, a: Location, b: Location) -> float:
        """Symmetric hierarchy distance between two locations."""
        if a.id == b.id:
            return 0.0

        if a.shelf_id is None or b.shelf_id is None:
            return FAR_DISTANCE
        if a.shelf_id == b.shelf_id:
            return SAME_SHELF_DISTANCE

        zone_a, zone_b = self.zone_of(a), self.zone_of(b)
        if zone_a is None or zone_b is None:
            return FAR_DISTANCE
        if zone_a == zone_b:
            return SAME_ZONE_DISTANCE

        return FAR_DISTANCE

    @staticmethod
    def zone_distance(zone_a: Optional[int], zone_b: Optional[int]) -> float:
        """Zone-level view of the same metric: 0 inside a zone, far otherwise."""
        if zone_a is None or zone_b is None or zone_a != zone_b:
            return FAR_DISTANCE
        return 0.0

    def path_distance(self, sequence: list[Location]) -> float:
        return sum(self.distance(a, b) for a, b in zip(sequence, sequence[1:]))
