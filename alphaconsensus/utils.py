import logging
import multiprocessing.pool
import os
from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger()


USE_NUMBA_CACHING = os.environ.get("USE_NUMBA_CACHING", "0") == "1"


def product(values) -> float:
    """Multiply all values, returning 1.0 for an empty iterable."""
    result = 1.0
    for value in values:
        result *= value
    return result


def map_matches(
    func: Callable,
    items: Iterable,
    thread_count: int = 1,
    progress_reporter=None,
) -> Iterator:
    """Apply `func` to every item and yield the results in input order.

    With `thread_count > 1` the items are processed on a thread pool. The progress of the reporter is
    incremented for every yielded result. Closing the generator early stops the pool.

    Parameters
    ----------
    func : Callable
        Function applied to every item, must not mutate shared state.

    items : Iterable
        Items to process.

    thread_count : int, default 1
        Number of worker threads.

    progress_reporter : ProgressReporter, optional
        Reporter whose progress is incremented.

    """
    if thread_count > 1:
        with multiprocessing.pool.ThreadPool(thread_count) as pool:
            for result in pool.imap(func, items):
                if progress_reporter is not None:
                    progress_reporter.increment_progress()
                yield result
    else:
        for item in items:
            result = func(item)
            if progress_reporter is not None:
                progress_reporter.increment_progress()
            yield result
