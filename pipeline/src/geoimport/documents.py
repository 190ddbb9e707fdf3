"""Documents written to the search index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

from geoimport.admin.geofinder import Admin


class Coord(NamedTuple):
    lon: float
    lat: float


def _coord_document(coord: Coord | None) -> dict[str, float] | None:
    if coord is None:
        return None
    return {"lon": coord.lon, "lat": coord.lat}


@dataclass
class Street:
    """One logical street, built from its representative OSM way.

    ``weight`` starts as a placeholder and is overwritten once by
    :func:`geoimport.osm.streets.compute_street_weight`.
    """

    id: str
    name: str
    label: str
    weight: float
    zip_codes: tuple[str, ...]
    administrative_regions: tuple[Admin, ...]
    coord: Coord | None

    def to_document(self) -> dict[str, Any]:
        return {
            "type": "street",
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "weight": self.weight,
            "zip_codes": list(self.zip_codes),
            "administrative_regions": [admin.to_reference() for admin in self.administrative_regions],
            "coord": _coord_document(self.coord),
        }


@dataclass(frozen=True)
class Addr:
    id: str
    house_number: str
    street_name: str
    label: str
    coord: Coord
    zip_codes: tuple[str, ...] = field(default_factory=tuple)
    weight: float = 0.0

    def to_document(self) -> dict[str, Any]:
        return {
            "type": "addr",
            "id": self.id,
            "house_number": self.house_number,
            "street_name": self.street_name,
            "label": self.label,
            "weight": self.weight,
            "zip_codes": list(self.zip_codes),
            "coord": _coord_document(self.coord),
        }
