"""Create, fill and publish an index for one dataset."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from geoimport.index.client import (
    Document,
    IndexingError,
    IndexVisibility,
    PublishError,
    SearchIndex,
)
from geoimport.index.settings import IndexSettings

logger = logging.getLogger(__name__)


class IngestError(RuntimeError):
    """Raised when an import cannot be loaded into or published from its index."""


class SearchIndexClient(Protocol):
    def create_index(self, doc_type: str, dataset: str, settings: IndexSettings) -> SearchIndex:
        ...

    def bulk_index(self, index: SearchIndex, documents: Iterable[Document]) -> int:
        ...

    def publish_index(self, dataset: str, index: SearchIndex, visibility: IndexVisibility) -> None:
        ...


def index_and_publish(
    client: SearchIndexClient,
    *,
    doc_type: str,
    dataset: str,
    index_settings: IndexSettings,
    documents: Iterable[Document],
    visibility: IndexVisibility = IndexVisibility.PUBLIC,
    logger: logging.Logger = logger,
) -> int:
    """Load ``documents`` into a new index, then make it the served one.

    The index is created before ``documents`` is iterated. Publication only
    happens after the bulk write completed, so a failure at any step leaves the
    dataset served by its previous index.
    """

    try:
        index = client.create_index(doc_type, dataset, index_settings)
    except IndexingError as exc:
        raise IngestError(f"Error occurred when making index {doc_type}_{dataset}") from exc

    logger.info("adding %s documents to %s", doc_type, index.name)
    try:
        nb_documents = client.bulk_index(index, documents)
    except IndexingError as exc:
        raise IngestError(f"Failed to bulk insert into {index.name}") from exc
    logger.info("%d %s documents added to %s", nb_documents, doc_type, index.name)

    try:
        client.publish_index(dataset, index, visibility)
    except PublishError as exc:
        raise IngestError(f"Error while publishing the index {index.name}") from exc

    return nb_documents
