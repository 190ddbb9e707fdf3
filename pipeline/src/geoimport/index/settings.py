"""Index settings per document type."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from geoimport.config import index_settings_config_path

_FIELD_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


class IndexSettingsError(ValueError):
    """Raised when the index settings file is invalid."""


@dataclass(frozen=True)
class IndexSettings:
    unlogged: bool = False
    fillfactor: int = 100
    search_fields: tuple[str, ...] = ()


def _parse_settings(doc_type: str, raw: Any) -> IndexSettings:
    if not isinstance(raw, dict):
        raise IndexSettingsError(f"Index settings for '{doc_type}' must be an object")

    unlogged = raw.get("unlogged", False)
    if not isinstance(unlogged, bool):
        raise IndexSettingsError(f"{doc_type}.unlogged must be a boolean")

    fillfactor = raw.get("fillfactor", 100)
    if not isinstance(fillfactor, int) or not 10 <= fillfactor <= 100:
        raise IndexSettingsError(f"{doc_type}.fillfactor must be an integer between 10 and 100")

    fields_raw = raw.get("search_fields", [])
    if not isinstance(fields_raw, list):
        raise IndexSettingsError(f"{doc_type}.search_fields must be an array")
    for value in fields_raw:
        if not isinstance(value, str) or _FIELD_RE.match(value) is None:
            raise IndexSettingsError(f"{doc_type}.search_fields has an invalid field name: {value!r}")

    return IndexSettings(unlogged=unlogged, fillfactor=fillfactor, search_fields=tuple(fields_raw))


def load_index_settings(doc_type: str, path: Path | None = None) -> IndexSettings:
    path = path or index_settings_config_path()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise IndexSettingsError(f"Invalid JSON index settings: {path}") from exc
    except OSError as exc:
        raise IndexSettingsError(f"Cannot read index settings: {path}") from exc
    if not isinstance(payload, dict):
        raise IndexSettingsError(f"Index settings root must be an object: {path}")
    if doc_type not in payload:
        return IndexSettings()
    return _parse_settings(doc_type, payload[doc_type])
