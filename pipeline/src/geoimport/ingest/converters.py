"""Record schemas of the supported address sources and their conversion to addresses."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from geoimport.documents import Addr, Coord


class ConversionError(ValueError):
    """Raised when a decoded record cannot become an address."""


def _checked_coord(lon: float, lat: float) -> Coord:
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ConversionError(f"non finite coordinates lon={lon} lat={lat}")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise ConversionError(f"coordinates out of range lon={lon} lat={lat}")
    return Coord(lon, lat)


def _label(house_number: str, street_name: str, city: str) -> str:
    label = f"{house_number} {street_name}".strip()
    if city:
        return f"{label} ({city})"
    return label


@dataclass(frozen=True)
class BanoRecord:
    """One line of a BANO export; files have no header."""

    id: str
    house_number: str
    street: str
    zip: str
    city: str
    source: str
    lat: float
    lon: float


def bano_into_addr(record: BanoRecord) -> Addr:
    house_number = record.house_number.strip()
    if not house_number:
        raise ConversionError(f"address {record.id} has no house number")

    street_name = record.street.strip()
    city = record.city.strip()
    zip_code = record.zip.strip()
    return Addr(
        id=f"addr:{record.id}",
        house_number=house_number,
        street_name=street_name,
        label=_label(house_number, street_name, city),
        coord=_checked_coord(record.lon, record.lat),
        zip_codes=(zip_code,) if zip_code else (),
    )


@dataclass(frozen=True)
class OpenAddressesRecord:
    """One line of an OpenAddresses csv; files start with a header."""

    lon: float
    lat: float
    number: str
    street: str
    unit: str | None
    city: str | None
    district: str | None
    region: str | None
    postcode: str | None
    id: str | None
    hash: str | None


def openaddresses_into_addr(record: OpenAddressesRecord) -> Addr:
    coord = _checked_coord(record.lon, record.lat)
    house_number = record.number.strip()
    if not house_number:
        raise ConversionError(f"address at {coord.lon};{coord.lat} has no house number")

    if record.hash:
        addr_id = f"addr:oa:{record.hash}"
    else:
        addr_id = f"addr:{coord.lon};{coord.lat}:{house_number}"

    street_name = record.street.strip()
    postcode = (record.postcode or "").strip()
    return Addr(
        id=addr_id,
        house_number=house_number,
        street_name=street_name,
        label=_label(house_number, street_name, (record.city or "").strip()),
        coord=coord,
        zip_codes=(postcode,) if postcode else (),
    )


@dataclass(frozen=True)
class SourceFormat:
    record_type: type
    into_addr: Callable[[object], Addr]
    has_headers: bool


SOURCE_FORMATS = {
    "bano": SourceFormat(BanoRecord, bano_into_addr, has_headers=False),
    "openaddresses": SourceFormat(OpenAddressesRecord, openaddresses_into_addr, has_headers=True),
}
