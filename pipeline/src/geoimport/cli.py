"""CLI entrypoint for the street and address importers."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from geoimport.admin.geofinder import AdminGeoFinder, AdminLoadError, load_admins
from geoimport.config import (
    ADDR_DOC_TYPE,
    DEFAULT_CITY_LEVEL,
    STREET_DOC_TYPE,
    default_dsn,
    default_log_level,
    migrations_dir,
)
from geoimport.db.connection import connect
from geoimport.db.migrations import apply_migrations
from geoimport.index.client import IndexClient
from geoimport.index.settings import IndexSettingsError, load_index_settings
from geoimport.index.workflows import IngestError
from geoimport.ingest.converters import SOURCE_FORMATS
from geoimport.ingest.workflows import import_addresses
from geoimport.manifest import ManifestError, load_address_manifest
from geoimport.osm.workflows import import_streets


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geoimport")
    parser.add_argument("--dsn", default=default_dsn(), help="PostgreSQL DSN")
    parser.add_argument("--log-level", default=default_log_level(), help="Logging level")
    parser.add_argument(
        "--index-settings",
        type=Path,
        default=None,
        help="Index settings JSON (defaults to pipeline/config/index_settings.json)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_command", required=True)
    db_subparsers.add_parser("migrate", help="Apply SQL migrations")

    addresses_parser = subparsers.add_parser("addresses", help="Address import")
    addresses_subparsers = addresses_parser.add_subparsers(dest="addresses_command", required=True)
    addresses_import_parser = addresses_subparsers.add_parser("import", help="Import address files")
    addresses_import_parser.add_argument("--manifest", required=True, type=Path)

    streets_parser = subparsers.add_parser("streets", help="Street import")
    streets_subparsers = streets_parser.add_subparsers(dest="streets_command", required=True)
    streets_import_parser = streets_subparsers.add_parser("import", help="Import streets from OSM")
    streets_import_parser.add_argument("--osm", required=True, type=Path, help="OSM pbf file")
    streets_import_parser.add_argument(
        "--admins", required=True, type=Path, help="Administrative regions GeoJSON"
    )
    streets_import_parser.add_argument("--dataset", required=True)
    streets_import_parser.add_argument("--city-level", type=int, default=DEFAULT_CITY_LEVEL)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "db" and args.db_command == "migrate":
            applied = apply_migrations(args.dsn, migrations_dir())
            print(json.dumps({"status": "ok", "migrations_applied": applied}))
            return 0

        if args.command == "addresses" and args.addresses_command == "import":
            manifest = load_address_manifest(args.manifest)
            source_format = SOURCE_FORMATS[manifest.source_format]
            index_settings = load_index_settings(ADDR_DOC_TYPE, args.index_settings)
            with connect(args.dsn) as conn:
                nb_addresses = import_addresses(
                    IndexClient(conn),
                    dataset=manifest.dataset,
                    index_settings=index_settings,
                    has_headers=manifest.has_headers,
                    with_gzip=manifest.gzip,
                    nb_threads=manifest.nb_threads,
                    files=manifest.files,
                    record_type=source_format.record_type,
                    into_addr=source_format.into_addr,
                )
            print(
                json.dumps(
                    {
                        "status": "published",
                        "doc_type": ADDR_DOC_TYPE,
                        "dataset": manifest.dataset,
                        "documents_indexed": nb_addresses,
                    }
                )
            )
            return 0

        if args.command == "streets" and args.streets_command == "import":
            geofinder = AdminGeoFinder(load_admins(args.admins))
            index_settings = load_index_settings(STREET_DOC_TYPE, args.index_settings)
            with connect(args.dsn) as conn:
                nb_streets = import_streets(
                    IndexClient(conn),
                    args.osm,
                    geofinder,
                    dataset=args.dataset,
                    city_level=args.city_level,
                    index_settings=index_settings,
                )
            print(
                json.dumps(
                    {
                        "status": "published",
                        "doc_type": STREET_DOC_TYPE,
                        "dataset": args.dataset,
                        "documents_indexed": nb_streets,
                    }
                )
            )
            return 0

        parser.print_help(sys.stderr)
        return 2
    except (ManifestError, AdminLoadError, IndexSettingsError, IngestError, RuntimeError) as exc:
        print(json.dumps({"status": "error", "error": _describe(exc)}), file=sys.stderr)
        return 1


def _describe(exc: BaseException) -> str:
    messages = [str(exc)]
    cause = exc.__cause__
    while cause is not None:
        messages.append(str(cause))
        cause = cause.__cause__
    return ": ".join(messages)


if __name__ == "__main__":
    raise SystemExit(main())
