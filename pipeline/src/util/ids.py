"""ID generators: deterministic PostgreSQL-safe physical index names."""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from typing import Final

_CLEAN_RE: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9_]")

# PostgreSQL identifier max length is 63 bytes.
MAX_IDENTIFIER_LEN: Final[int] = 63


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _hash6(seed: str) -> str:
    if not seed:
        raise ValueError("seed must not be empty")
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:6]


def clean_identifier(value: str, *, max_len: int | None = None) -> str:
    cleaned = _CLEAN_RE.sub("_", value.lower())
    if max_len is not None:
        return cleaned[:max_len]
    return cleaned


def generate_index_name(doc_type: str, dataset: str, *, created_at: datetime) -> str:
    """Generate the physical index name for one import run.

    Format:
        <doc_type>_<dataset>_<yyyymmddhhmmss>_<hash6>

    The hash covers the microseconds too, so two runs started within the same
    second still get different names.
    """

    if not doc_type or not dataset:
        raise ValueError("doc_type and dataset must not be empty")

    created_utc = _to_utc(created_at)
    hash6 = _hash6(f"{doc_type}|{dataset}|{created_utc.isoformat()}")
    stamp = created_utc.strftime("%Y%m%d%H%M%S")

    prefix = clean_identifier(f"{doc_type}_{dataset}")
    suffix = f"_{stamp}_{hash6}"
    return prefix[: MAX_IDENTIFIER_LEN - len(suffix)] + suffix


def alias_name(doc_type: str, dataset: str) -> str:
    """Public name a dataset is served under, independent of the import run."""

    return clean_identifier(f"{doc_type}_{dataset}", max_len=MAX_IDENTIFIER_LEN)


__all__ = [
    "alias_name",
    "clean_identifier",
    "generate_index_name",
]
