"""Point-in-region lookup of administrative regions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

if TYPE_CHECKING:
    from geoimport.documents import Coord

logger = logging.getLogger(__name__)


class AdminLoadError(ValueError):
    """Raised when an administrative regions file is invalid."""


@dataclass(frozen=True, order=True)
class Admin:
    """An administrative region, shared by reference between many documents.

    Identity, ordering and hashing use ``id`` only.
    """

    id: str
    level: int = field(compare=False)
    name: str = field(compare=False)
    weight: float = field(default=0.0, compare=False)
    zip_codes: tuple[str, ...] = field(default=(), compare=False)
    boundary: BaseGeometry | None = field(default=None, compare=False, repr=False)

    def to_reference(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "name": self.name,
            "zip_codes": list(self.zip_codes),
        }


class AdminGeoFinder:
    """Spatial index over admin boundaries.

    Admins without a boundary are kept out of the tree: they can never be
    found by coordinate.
    """

    def __init__(self, admins: Iterable[Admin]) -> None:
        self._admins = [admin for admin in admins if admin.boundary is not None]
        self._tree = STRtree([admin.boundary for admin in self._admins])

    def __len__(self) -> int:
        return len(self._admins)

    def get(self, coord: Coord) -> tuple[Admin, ...]:
        """Return the admins containing ``coord``, sorted and without duplicates."""

        point = Point(coord.lon, coord.lat)
        matches = {
            self._admins[idx]
            for idx in self._tree.query(point, predicate="intersects")
        }
        return tuple(sorted(matches))


def _parse_zip_codes(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(code.strip() for code in value.split(";") if code.strip())
    if isinstance(value, list):
        return tuple(str(code) for code in value if str(code).strip())
    raise AdminLoadError(f"zip_codes must be a string or a list, got {type(value).__name__}")


def _parse_feature(feature: dict[str, Any]) -> Admin:
    props = feature.get("properties")
    if not isinstance(props, dict):
        raise AdminLoadError("Admin feature is missing properties")

    admin_id = props.get("id")
    level = props.get("level")
    name = props.get("name")
    if admin_id is None or not isinstance(level, int) or not isinstance(name, str):
        raise AdminLoadError(f"Admin feature needs id, integer level and name: {props!r}")

    geometry = feature.get("geometry")
    boundary = shape(geometry) if geometry else None

    return Admin(
        id=str(admin_id),
        level=level,
        name=name,
        weight=float(props.get("weight") or 0.0),
        zip_codes=_parse_zip_codes(props.get("zip_codes")),
        boundary=boundary,
    )


def load_admins(path: Path) -> list[Admin]:
    """Read admins from a GeoJSON FeatureCollection."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise AdminLoadError(f"Invalid GeoJSON: {path}") from exc
    except OSError as exc:
        raise AdminLoadError(f"Cannot read admins: {path}") from exc

    features = payload.get("features") if isinstance(payload, dict) else None
    if not isinstance(features, list):
        raise AdminLoadError(f"GeoJSON features missing or invalid: {path}")

    admins = [_parse_feature(feature) for feature in features if isinstance(feature, dict)]
    logger.info("%d administrative regions loaded from %s", len(admins), path)
    return admins
