"""Street extraction from OSM ways and associatedStreet relations.

A street is often split into several ways that share a name (a section
becomes a bridge, a tunnel, changes its lane count...). Two mechanisms
collapse them into one street document:

* an ``associatedStreet`` relation groups its ways explicitly. Its first
  usable ``street`` member becomes the street and every way member is kept
  out of the standalone pass;
* the remaining ways are grouped by :class:`StreetKey`, the street name plus
  the admins at the city level around the way. The first way of each group
  represents it.

A key is emitted once: a relation street shadows later relations and way
groups with the same name in the same city.

Ways without a resolvable coordinate have no admins, so ways sharing a name
but lacking coordinates all land in the same group wherever they are.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Protocol

from geoimport.admin.geofinder import Admin
from geoimport.admin.labels import format_label, zip_codes_from_admins
from geoimport.documents import Coord, Street
from geoimport.osm.objects import Node, ObjectGraph, OsmId, OsmObject, OsmType, Relation, Way

logger = logging.getLogger(__name__)

DEFAULT_STREET_WEIGHT = 1
STREET_ROLE = "street"
ASSOCIATED_STREET = "associatedStreet"
STREET_ROOT_KINDS = (OsmType.WAY, OsmType.RELATION)


class GeoFinder(Protocol):
    def get(self, coord: Coord) -> tuple[Admin, ...]:
        ...


class StreetKey(NamedTuple):
    name: str
    admins: tuple[Admin, ...]


def is_street_object(obj: OsmObject) -> bool:
    if isinstance(obj, Way):
        return bool(obj.tags.get("highway")) and bool(obj.tags.get("name"))
    if isinstance(obj, Relation):
        return obj.tags.get("type") == ASSOCIATED_STREET
    return False


class _WayResolver:
    """Coordinates and admins of ways, computed once per way."""

    def __init__(self, objects: ObjectGraph, geofinder: GeoFinder) -> None:
        self._objects = objects
        self._geofinder = geofinder
        self._coords: dict[int, Coord | None] = {}
        self._admins: dict[int, tuple[Admin, ...]] = {}

    def coord(self, way: Way) -> Coord | None:
        # The coord of a way is the coord of its first known node.
        if way.id not in self._coords:
            self._coords[way.id] = next(
                (
                    node.coord
                    for node in (self._objects.get(OsmId.node(node_id)) for node_id in way.nodes)
                    if isinstance(node, Node)
                ),
                None,
            )
        return self._coords[way.id]

    def admins(self, way: Way) -> tuple[Admin, ...]:
        if way.id not in self._admins:
            coord = self.coord(way)
            self._admins[way.id] = self._geofinder.get(coord) if coord is not None else ()
        return self._admins[way.id]


def _city_admins(admins: Iterable[Admin], city_level: int) -> tuple[Admin, ...]:
    return tuple(admin for admin in admins if admin.level == city_level)


def _make_street(resolver: _WayResolver, way: Way, name: str, city_level: int) -> Street:
    admins = resolver.admins(way)
    return Street(
        id=str(way.id),
        name=name,
        label=format_label(admins, city_level, name),
        weight=DEFAULT_STREET_WEIGHT,
        zip_codes=zip_codes_from_admins(admins),
        administrative_regions=admins,
        coord=resolver.coord(way),
    )


def _relation_street(
    resolver: _WayResolver,
    objects: ObjectGraph,
    relation: Relation,
    city_level: int,
) -> Street | None:
    for member in relation.members:
        if not member.member.is_way() or member.role != STREET_ROLE:
            continue
        way = objects.get(member.member)
        if not isinstance(way, Way):
            continue
        # A name tag on the relation wins, even an empty one.
        name = relation.tags["name"] if "name" in relation.tags else way.tags.get("name")
        if not name:
            continue
        return _make_street(resolver, way, name, city_level)
    return None


def streets(
    objects: ObjectGraph,
    geofinder: GeoFinder,
    city_level: int,
    logger: logging.Logger = logger,
) -> list[Street]:
    """Build one street per associatedStreet relation and per merged way group."""

    resolver = _WayResolver(objects, geofinder)
    ordered = sorted(objects.items())
    street_list: list[Street] = []
    claimed: set[OsmId] = set()
    emitted: set[StreetKey] = set()

    for _, obj in ordered:
        if not isinstance(obj, Relation):
            continue
        claimed.update(member.member for member in obj.members if member.member.is_way())
        street = _relation_street(resolver, objects, obj, city_level)
        if street is None:
            continue
        key = StreetKey(street.name, _city_admins(street.administrative_regions, city_level))
        if key in emitted:
            logger.debug("relation %d duplicates street %r, skipped", obj.id, street.name)
            continue
        emitted.add(key)
        street_list.append(street)

    from_relations = len(street_list)
    logger.info("%d streets built from %d relation ways", from_relations, len(claimed))

    groups: dict[StreetKey, list[int]] = {}
    for osm_id, obj in ordered:
        if osm_id in claimed or not isinstance(obj, Way):
            continue
        name = obj.tags.get("name")
        if not name:
            continue
        key = StreetKey(name, _city_admins(resolver.admins(obj), city_level))
        groups.setdefault(key, []).append(obj.id)

    for key in sorted(groups):
        if key in emitted:
            logger.debug("ways %s already covered by a relation street", groups[key])
            continue
        way = objects[OsmId.way(groups[key][0])]
        street_list.append(_make_street(resolver, way, key.name, city_level))

    logger.info(
        "%d streets built from %d standalone ways",
        len(street_list) - from_relations,
        sum(len(way_ids) for way_ids in groups.values()),
    )
    return street_list


def compute_street_weight(street_list: Iterable[Street], city_level: int) -> None:
    """Give each street the weight of its city, in place."""

    for street in street_list:
        city = next(
            (admin for admin in street.administrative_regions if admin.level == city_level),
            None,
        )
        if city is not None:
            street.weight = city.weight
