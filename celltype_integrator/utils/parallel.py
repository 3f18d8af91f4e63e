"""Range-partitioned parallel execution.

Splits ``[0, ntasks)`` into contiguous ranges and hands each range to one
worker. Workers run on joblib's threading backend so they share read-only
inputs and write their results straight into caller-owned arrays.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, List, Optional, Tuple

from joblib import Parallel, delayed

RangeWorker = Callable[[int, int, int], None]


def partition_ranges(ntasks: int, num_workers: int) -> List[Tuple[int, int]]:
    """Split ``ntasks`` into at most ``num_workers`` contiguous ``(start, length)`` ranges.

    Ranges are as even as possible and cover every task exactly once. Empty
    ranges are never produced.
    """
    if ntasks <= 0:
        return []
    num_workers = max(1, min(int(num_workers), ntasks))
    job_size = int(math.ceil(ntasks / num_workers))
    ranges = []
    start = 0
    while start < ntasks:
        length = min(job_size, ntasks - start)
        ranges.append((start, length))
        start += length
    return ranges


def parallelize(
    fn: RangeWorker,
    ntasks: int,
    num_threads: int = 1,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Run ``fn(worker_id, start, length)`` over contiguous ranges of tasks.

    Parameters
    ----------
    fn : RangeWorker
        Worker callable; must only write outputs for its own range.
    ntasks : int
        Total number of tasks (e.g., test cells).
    num_threads : int
        Number of worker threads; 1 runs in the calling thread.
    logger : logging.Logger, optional
        Logger for timing information.
    """
    _logger = logger or logging.getLogger(__name__)
    ranges = partition_ranges(ntasks, num_threads)
    if not ranges:
        return

    start_time = time.time()
    if len(ranges) == 1:
        start, length = ranges[0]
        fn(0, start, length)
    else:
        Parallel(n_jobs=len(ranges), backend="threading")(
            delayed(fn)(worker_id, start, length)
            for worker_id, (start, length) in enumerate(ranges)
        )

    _logger.debug(
        "Processed %d tasks in %d range(s) in %.2f seconds",
        ntasks,
        len(ranges),
        time.time() - start_time,
    )
