"""Test doubles shared by the test modules."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "pipeline" / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from geoimport.admin.geofinder import Admin  # noqa: E402
from geoimport.documents import Coord  # noqa: E402
from geoimport.index.client import (  # noqa: E402
    Document,
    IndexingError,
    IndexVisibility,
    PublishError,
    SearchIndex,
)
from geoimport.index.settings import IndexSettings  # noqa: E402
from geoimport.osm.objects import OsmId, OsmObject  # noqa: E402


def graph_from_objects(*objects: OsmObject) -> dict[OsmId, OsmObject]:
    return {obj.osm_id: obj for obj in objects}


class FakeGeoFinder:
    def __init__(self, admins_by_coord: dict[Coord, tuple[Admin, ...]] | None = None) -> None:
        self._admins_by_coord = admins_by_coord or {}
        self.calls: list[Coord] = []

    def get(self, coord: Coord) -> tuple[Admin, ...]:
        self.calls.append(coord)
        return tuple(sorted(self._admins_by_coord.get(coord, ())))


class FakeIndexClient:
    """In-memory index client.

    ``fail_on`` names the operation that raises: ``create``, ``bulk`` (after
    the first document) or ``publish``.
    """

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.indices: dict[str, list[Document]] = {}
        self.published: dict[tuple[str, str, IndexVisibility], str] = {}
        self.events: list[str] = []

    def create_index(self, doc_type: str, dataset: str, settings: IndexSettings) -> SearchIndex:
        self.events.append("create")
        if self.fail_on == "create":
            raise IndexingError("cannot create table")
        index = SearchIndex(
            name=f"{doc_type}_{dataset}_{len(self.indices)}",
            doc_type=doc_type,
            dataset=dataset,
        )
        self.indices[index.name] = []
        return index

    def bulk_index(self, index: SearchIndex, documents: Iterable[Document]) -> int:
        self.events.append("bulk")
        written = self.indices[index.name]
        for document in documents:
            if self.fail_on == "bulk" and written:
                raise IndexingError("connection lost")
            written.append(document)
        return len(written)

    def publish_index(self, dataset: str, index: SearchIndex, visibility: IndexVisibility) -> None:
        self.events.append("publish")
        if self.fail_on == "publish":
            raise PublishError("cannot replace view")
        self.published[(index.doc_type, dataset, visibility)] = index.name

    def served(self, doc_type: str, dataset: str) -> list[Document] | None:
        name = self.published.get((doc_type, dataset, IndexVisibility.PUBLIC))
        return None if name is None else self.indices[name]
