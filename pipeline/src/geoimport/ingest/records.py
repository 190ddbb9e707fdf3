"""Lazy decoding of delimited, optionally gzipped, record files."""

from __future__ import annotations

import csv
import dataclasses
import gzip
import io
import logging
import typing
from contextlib import ExitStack
from functools import lru_cache
from pathlib import Path
from typing import IO, Any, Callable, Iterable, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordError(ValueError):
    """Raised when a row cannot be decoded into its record type."""


def _optional(parse: Callable[[str], Any]) -> Callable[[str], Any]:
    def parse_optional(value: str) -> Any:
        if value.strip() == "":
            return None
        return parse(value)

    return parse_optional


def _parser_for(hint: Any) -> Callable[[str], Any]:
    args = typing.get_args(hint)
    if type(None) in args:
        inner = [arg for arg in args if arg is not type(None)]
        if len(inner) != 1:
            raise TypeError(f"Unsupported record field type: {hint!r}")
        return _optional(_parser_for(inner[0]))
    if hint is str:
        return str
    if hint is float:
        return lambda value: float(value.strip())
    if hint is int:
        return lambda value: int(value.strip())
    raise TypeError(f"Unsupported record field type: {hint!r}")


@lru_cache(maxsize=None)
def _record_fields(record_type: type) -> tuple[tuple[str, Callable[[str], Any]], ...]:
    if not dataclasses.is_dataclass(record_type):
        raise TypeError(f"{record_type!r} is not a dataclass")
    hints = typing.get_type_hints(record_type)
    return tuple(
        (field.name, _parser_for(hints[field.name]))
        for field in dataclasses.fields(record_type)
    )


def decode_record(
    record_type: type[T],
    row: Sequence[str],
    header: Sequence[str] | None = None,
) -> T:
    """Build a ``record_type`` dataclass from one csv row.

    Without a header the row is positional in field declaration order. With a
    header, columns are matched to fields by case-insensitive name and extra
    columns are ignored.
    """

    fields = _record_fields(record_type)
    if header is None:
        if len(row) != len(fields):
            raise RecordError(f"expected {len(fields)} fields, found {len(row)}")
        named = dict(zip((name for name, _ in fields), row))
    else:
        if len(row) != len(header):
            raise RecordError(f"expected {len(header)} fields as in the header, found {len(row)}")
        named = dict(zip(header, row))

    values: dict[str, Any] = {}
    for name, parse in fields:
        if name not in named:
            raise RecordError(f"missing column '{name}'")
        try:
            values[name] = parse(named[name])
        except ValueError as exc:
            raise RecordError(f"invalid value {named[name]!r} for '{name}'") from exc
    return record_type(**values)


def _open_stream(path: Path, with_gzip: bool, stack: ExitStack, logger: logging.Logger) -> IO[bytes] | None:
    try:
        handle: IO[bytes] = stack.enter_context(path.open("rb"))
    except OSError as exc:
        logger.error("impossible to read file %s, error: %s", path, exc)
        return None

    if not with_gzip:
        return handle

    stream = stack.enter_context(gzip.GzipFile(fileobj=handle, mode="rb"))
    try:
        # Parses the gzip header so a non-gzip file is rejected before decoding.
        stream.peek(1)
    except (OSError, EOFError) as exc:
        logger.error("impossible to read gzip in %s, error: %s", path, exc)
        return None
    return stream


def iter_file_records(
    path: Path,
    record_type: type[T],
    *,
    has_headers: bool,
    with_gzip: bool,
    logger: logging.Logger = logger,
) -> Iterator[T]:
    """Yield the decodable records of one file, in file order.

    Unreadable files and undecodable rows are logged and skipped. A stream that
    breaks mid-file ends that file.
    """

    logger.info("importing %s...", path)
    with ExitStack() as stack:
        stream = _open_stream(Path(path), with_gzip, stack, logger)
        if stream is None:
            return

        text = stack.enter_context(io.TextIOWrapper(stream, encoding="utf-8-sig", newline=""))
        reader = csv.reader(text)
        header: list[str] | None = None
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                logger.warning("impossible to read line %d of %s, error: %s", reader.line_num, path, exc)
                continue
            except (OSError, EOFError, UnicodeDecodeError) as exc:
                logger.error("reading %s stopped at line %d, error: %s", path, reader.line_num, exc)
                break

            if not row:
                continue
            if has_headers and header is None:
                header = [column.strip().lower() for column in row]
                continue

            try:
                record = decode_record(record_type, row, header)
            except RecordError as exc:
                logger.warning("impossible to read line %d of %s, error: %s", reader.line_num, path, exc)
                continue
            yield record


def iter_records(
    files: Iterable[Path],
    record_type: type[T],
    *,
    has_headers: bool,
    with_gzip: bool,
    logger: logging.Logger = logger,
) -> Iterator[T]:
    for path in files:
        yield from iter_file_records(
            path,
            record_type,
            has_headers=has_headers,
            with_gzip=with_gzip,
            logger=logger,
        )
