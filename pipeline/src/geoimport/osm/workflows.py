"""Street import from an OSM pbf file."""

from __future__ import annotations

import logging
from pathlib import Path

from geoimport.config import STREET_DOC_TYPE
from geoimport.index.client import IndexVisibility
from geoimport.index.settings import IndexSettings
from geoimport.index.workflows import SearchIndexClient, index_and_publish
from geoimport.osm.reader import get_objects_and_dependencies
from geoimport.osm.streets import (
    STREET_ROOT_KINDS,
    GeoFinder,
    compute_street_weight,
    is_street_object,
    streets,
)

logger = logging.getLogger(__name__)


def import_streets(
    client: SearchIndexClient,
    osm_path: Path,
    geofinder: GeoFinder,
    *,
    dataset: str,
    city_level: int,
    index_settings: IndexSettings,
    logger: logging.Logger = logger,
) -> int:
    logger.info("reading pbf %s...", osm_path)
    objects = get_objects_and_dependencies(osm_path, is_street_object, STREET_ROOT_KINDS)
    logger.info("reading pbf done.")

    street_list = streets(objects, geofinder, city_level, logger=logger)
    compute_street_weight(street_list, city_level)

    return index_and_publish(
        client,
        doc_type=STREET_DOC_TYPE,
        dataset=dataset,
        index_settings=index_settings,
        documents=street_list,
        visibility=IndexVisibility.PUBLIC,
        logger=logger,
    )
