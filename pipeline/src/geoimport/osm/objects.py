"""In-memory OSM objects, independent of the pbf parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping, NamedTuple, Union

from geoimport.documents import Coord


class OsmType(IntEnum):
    NODE = 0
    WAY = 1
    RELATION = 2


class OsmId(NamedTuple):
    kind: OsmType
    id: int

    @classmethod
    def node(cls, node_id: int) -> OsmId:
        return cls(OsmType.NODE, node_id)

    @classmethod
    def way(cls, way_id: int) -> OsmId:
        return cls(OsmType.WAY, way_id)

    @classmethod
    def relation(cls, relation_id: int) -> OsmId:
        return cls(OsmType.RELATION, relation_id)

    def is_way(self) -> bool:
        return self.kind is OsmType.WAY


class Member(NamedTuple):
    member: OsmId
    role: str


@dataclass(frozen=True)
class Node:
    id: int
    coord: Coord
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def osm_id(self) -> OsmId:
        return OsmId.node(self.id)


@dataclass(frozen=True)
class Way:
    id: int
    nodes: tuple[int, ...]
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def osm_id(self) -> OsmId:
        return OsmId.way(self.id)


@dataclass(frozen=True)
class Relation:
    id: int
    members: tuple[Member, ...]
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def osm_id(self) -> OsmId:
        return OsmId.relation(self.id)


OsmObject = Union[Node, Way, Relation]
ObjectGraph = Mapping[OsmId, OsmObject]

