"""
Process-pool map over independent units of work.

Each task receives its inputs as explicit arguments and returns a pure
value. Results are yielded as they complete; callers that need a stable
order sort by the returned index.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def map_units(
    fn: Callable[..., T],
    tasks: Sequence[tuple[Any, ...]],
    max_workers: int = 1,
) -> Iterator[tuple[int, T]]:
    """
    Apply fn to each argument tuple, yielding (task_index, result).

    Args:
        fn: A picklable top-level function.
        tasks: Argument tuples, one per unit.
        max_workers: Number of worker processes. 1 runs inline in the
            calling process.

    Yields:
        (index into tasks, fn result) in completion order.
    """
    if max_workers <= 1 or len(tasks) <= 1:
        for i, args in enumerate(tasks):
            yield i, fn(*args)
        return

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(fn, *args): i for i, args in enumerate(tasks)
        }
        for future in as_completed(futures):
            idx = futures[future]
            yield idx, future.result()
