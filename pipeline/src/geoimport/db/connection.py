"""Database connection helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg


@contextmanager
def connect(dsn: str) -> Iterator[psycopg.Connection]:
    """Open a connection for one CLI command.

    Nothing is committed implicitly: index creation, bulk loads and publication
    commit their own transactions so a failure leaves earlier steps durable and
    later ones untouched.
    """

    conn = psycopg.connect(dsn)
    try:
        yield conn
    finally:
        conn.close()
