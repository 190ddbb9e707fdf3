"""Read OSM objects and their dependencies from a pbf file with pyosmium."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Collection, Iterable, Mapping

import osmium

from geoimport.documents import Coord
from geoimport.osm.objects import Member, Node, OsmId, OsmObject, OsmType, Relation, Way

logger = logging.getLogger(__name__)

ALL_KINDS = frozenset(OsmType)

_MEMBER_TYPES = {
    "n": OsmType.NODE,
    "w": OsmType.WAY,
    "r": OsmType.RELATION,
}


def _tags(osm_obj) -> dict[str, str]:
    return {tag.k: tag.v for tag in osm_obj.tags}


def _accept_all(obj: OsmObject) -> bool:
    return True


class _Collector(osmium.SimpleHandler):
    """Keep the objects selected during one pass over the file.

    Objects of a kind outside ``kinds``, or whose id is missing from ``ids``
    when it is given, are skipped before any Python object is built for them.
    """

    def __init__(
        self,
        wanted: Callable[[OsmObject], bool],
        kinds: Collection[OsmType],
        ids: Mapping[OsmType, Collection[int]] | None = None,
    ) -> None:
        super().__init__()
        self._wanted = wanted
        self._kinds = frozenset(kinds)
        self._ids = ids
        self.objects: dict[OsmId, OsmObject] = {}

    def _skip(self, kind: OsmType, osm_id: int) -> bool:
        if kind not in self._kinds:
            return True
        return self._ids is not None and osm_id not in self._ids.get(kind, ())

    def _keep(self, obj: OsmObject) -> None:
        if self._wanted(obj):
            self.objects[obj.osm_id] = obj

    def node(self, n) -> None:
        if self._skip(OsmType.NODE, n.id) or not n.location.valid():
            return
        self._keep(Node(id=n.id, coord=Coord(n.location.lon, n.location.lat), tags=_tags(n)))

    def way(self, w) -> None:
        if self._skip(OsmType.WAY, w.id):
            return
        self._keep(Way(id=w.id, nodes=tuple(node_ref.ref for node_ref in w.nodes), tags=_tags(w)))

    def relation(self, r) -> None:
        if self._skip(OsmType.RELATION, r.id):
            return
        members = tuple(
            Member(OsmId(_MEMBER_TYPES[member.type], member.ref), member.role)
            for member in r.members
            if member.type in _MEMBER_TYPES
        )
        self._keep(Relation(id=r.id, members=members, tags=_tags(r)))


def _collect(
    path: Path,
    wanted: Callable[[OsmObject], bool],
    kinds: Collection[OsmType],
    ids: Mapping[OsmType, Collection[int]] | None = None,
) -> dict[OsmId, OsmObject]:
    collector = _Collector(wanted, kinds, ids)
    collector.apply_file(str(path))
    return collector.objects


def _ids_by_kind(osm_ids: Iterable[OsmId]) -> dict[OsmType, set[int]]:
    grouped: dict[OsmType, set[int]] = {}
    for osm_id in osm_ids:
        grouped.setdefault(osm_id.kind, set()).add(osm_id.id)
    return grouped


def get_objects_and_dependencies(
    path: Path,
    predicate: Callable[[OsmObject], bool],
    root_kinds: Collection[OsmType] = ALL_KINDS,
) -> dict[OsmId, OsmObject]:
    """Return the objects matching ``predicate`` plus what resolving them needs.

    Three passes over the file: root objects of ``root_kinds``, the members of
    root relations, then every node referenced by a collected way. Members of
    nested relations are not followed. The later passes only build the objects
    whose ids they look for.
    """

    objects = _collect(path, predicate, root_kinds)
    logger.info("%d root objects read from %s", len(objects), path)

    member_ids = _ids_by_kind(
        member.member
        for obj in objects.values()
        if isinstance(obj, Relation)
        for member in obj.members
        if member.member.kind is not OsmType.RELATION and member.member not in objects
    )
    if member_ids:
        objects.update(_collect(path, _accept_all, member_ids.keys(), member_ids))

    node_ids = {
        node_id
        for obj in objects.values()
        if isinstance(obj, Way)
        for node_id in obj.nodes
        if OsmId.node(node_id) not in objects
    }
    if node_ids:
        objects.update(_collect(path, _accept_all, (OsmType.NODE,), {OsmType.NODE: node_ids}))

    logger.info("%d objects read from %s including dependencies", len(objects), path)
    return objects
