"""
Ordered fan-out for independent fetches.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar('T')
R = TypeVar('R')


def map_in_order(func: Callable[[T], R], items: Iterable[T],
                 max_workers: int = 1) -> List[R]:
    """
    Apply func to every item, returning results in input order.

    With max_workers <= 1 the calls run sequentially and stop at the first
    exception. Otherwise they run on a thread pool; on the first exception in
    input order, calls that have not started yet are cancelled and the
    exception propagates once the running ones finish.
    """
    items = list(items)
    if max_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=max_workers,
                            thread_name_prefix='dictionary-fetch') as executor:
        futures = [executor.submit(func, item) for item in items]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise
