"""Unordered parallel map over a lazy iterable."""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Iterator, TypeVar

T = TypeVar("T")
R = TypeVar("R")

# In-flight items per worker. Bounds memory when the input is much faster than
# the workers.
QUEUE_DEPTH_PER_WORKER = 4


def par_map_unordered(
    func: Callable[[T], R],
    items: Iterable[T],
    nb_threads: int,
) -> Iterator[R]:
    """Apply ``func`` to ``items`` on ``nb_threads`` workers, yielding results as they complete.

    ``items`` is consumed on the calling thread, only as fast as the workers
    free room. Results come in completion order, not input order. An exception
    raised by ``func`` is re-raised here.
    """

    if nb_threads < 1:
        raise ValueError(f"nb_threads must be >= 1, got {nb_threads}")

    max_pending = nb_threads * QUEUE_DEPTH_PER_WORKER
    with ThreadPoolExecutor(max_workers=nb_threads, thread_name_prefix="geoimport-worker") as executor:
        pending: set[Future[R]] = set()
        for item in items:
            pending.add(executor.submit(func, item))
            if len(pending) >= max_pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    yield future.result()

        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                yield future.result()
