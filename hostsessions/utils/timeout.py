from __future__ import annotations

import concurrent.futures

_TIMEOUT_EXECUTOR = concurrent.futures.ThreadPoolExecutor(
    max_workers=16,
    thread_name_prefix="host-query-timeout",
)


def run_with_timeout(fn, timeout_s: float):
    """Run in a shared worker pool and enforce timeout."""
    fut = _TIMEOUT_EXECUTOR.submit(fn)
    try:
        return fut.result(timeout=timeout_s)
    except concurrent.futures.TimeoutError:
        fut.cancel()
        raise
