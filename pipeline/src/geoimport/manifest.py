"""Address import manifest parsing and validation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from geoimport.config import DEFAULT_NB_THREADS
from geoimport.ingest.converters import SOURCE_FORMATS


class ManifestError(ValueError):
    """Raised when a manifest file is invalid."""


@dataclass(frozen=True)
class AddressImportManifest:
    dataset: str
    source_format: str
    has_headers: bool
    gzip: bool
    nb_threads: int
    files: tuple[Path, ...]
    raw: dict[str, Any]


def _load_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON manifest: {path}") from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest: {path}") from exc
    if not isinstance(payload, dict):
        raise ManifestError(f"Manifest root must be an object: {path}")
    return payload


def _require_string(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ManifestError(f"Manifest field '{key}' must be a non-empty string")
    return value.strip()


def _parse_optional_bool(payload: dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ManifestError(f"Manifest field '{key}' must be a boolean when present")
    return value


def _parse_nb_threads(payload: dict[str, Any]) -> int:
    value = payload.get("nb_threads")
    if value is None:
        return DEFAULT_NB_THREADS
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ManifestError("Manifest field 'nb_threads' must be an integer >= 1")
    return value


def _parse_files(payload: dict[str, Any], base_dir: Path) -> tuple[Path, ...]:
    files_raw = payload.get("files")
    if not isinstance(files_raw, list) or not files_raw:
        raise ManifestError("Manifest files must be a non-empty array")

    files: list[Path] = []
    for entry in files_raw:
        if not isinstance(entry, str) or not entry.strip():
            raise ManifestError("Each files[] entry must be a non-empty string")
        # Existence is checked at import time: a missing file is skipped, not fatal.
        file_path = Path(entry.strip()).expanduser()
        if not file_path.is_absolute():
            file_path = base_dir / file_path
        files.append(file_path)
    return tuple(files)


def load_address_manifest(path: Path) -> AddressImportManifest:
    payload = _load_json(path)

    dataset = _require_string(payload, "dataset")

    source_format = _require_string(payload, "source_format")
    if source_format not in SOURCE_FORMATS:
        raise ManifestError(
            f"Invalid source_format '{source_format}', expected one of: "
            f"{', '.join(sorted(SOURCE_FORMATS))}"
        )

    has_headers = _parse_optional_bool(
        payload, "has_headers", SOURCE_FORMATS[source_format].has_headers
    )
    gzip = _parse_optional_bool(payload, "gzip", False)
    nb_threads = _parse_nb_threads(payload)
    files = _parse_files(payload, path.resolve().parent)

    return AddressImportManifest(
        dataset=dataset,
        source_format=source_format,
        has_headers=has_headers,
        gzip=gzip,
        nb_threads=nb_threads,
        files=files,
        raw=payload,
    )
