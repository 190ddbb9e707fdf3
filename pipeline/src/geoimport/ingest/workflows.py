"""Address ingest workflow: files to a published address index."""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Iterator, TypeVar, Union

from geoimport.config import ADDR_DOC_TYPE
from geoimport.documents import Addr
from geoimport.index.client import IndexVisibility
from geoimport.index.settings import IndexSettings
from geoimport.index.workflows import SearchIndexClient, index_and_publish
from geoimport.ingest.converters import ConversionError
from geoimport.ingest.parallel import par_map_unordered
from geoimport.ingest.records import iter_records

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConversionResult = Union[Addr, ConversionError]


def _convert(into_addr: Callable[[T], Addr], record: T) -> ConversionResult:
    # Runs on a worker thread; failures travel back as values so one bad record
    # does not end the stream.
    try:
        return into_addr(record)
    except ConversionError as exc:
        return exc


def valid_addresses(
    results: Iterable[ConversionResult],
    logger: logging.Logger = logger,
) -> Iterator[Addr]:
    for result in results:
        if isinstance(result, ConversionError):
            logger.warning("Address Error ignored: %s", result)
        elif not result.street_name:
            logger.warning("Address %s has no street name and has been ignored.", result.id)
        else:
            yield result


def import_addresses(
    client: SearchIndexClient,
    *,
    dataset: str,
    index_settings: IndexSettings,
    has_headers: bool,
    with_gzip: bool,
    nb_threads: int,
    files: Iterable[Path],
    record_type: type[T],
    into_addr: Callable[[T], Addr],
    logger: logging.Logger = logger,
) -> int:
    """Import address files into a new index published for ``dataset``.

    Unreadable files, undecodable rows, conversion failures and addresses
    without a street name are logged and skipped. Index creation, bulk write and
    publication failures raise :class:`~geoimport.index.workflows.IngestError`.
    Returns the number of addresses indexed.
    """

    records = iter_records(
        files,
        record_type,
        has_headers=has_headers,
        with_gzip=with_gzip,
        logger=logger,
    )
    results = par_map_unordered(partial(_convert, into_addr), records, nb_threads)

    nb_addresses = index_and_publish(
        client,
        doc_type=ADDR_DOC_TYPE,
        dataset=dataset,
        index_settings=index_settings,
        documents=valid_addresses(results, logger),
        visibility=IndexVisibility.PUBLIC,
        logger=logger,
    )
    logger.info("importing addresses: %d addresses added.", nb_addresses)
    return nb_addresses
