"""
Concurrent fan-out of independent reads.

Every branch runs on its own worker thread; the join waits for all of them and
re-raises the first failure (in branch order). There is no partial result.
"""

import contextvars
from concurrent.futures import ThreadPoolExecutor


def run_parallel(**branches) -> dict:
    """
    Run the given zero-argument callables concurrently.

    Returns:
        dict mapping each branch name to its result.
    """
    if not branches:
        return {}

    with ThreadPoolExecutor(max_workers=len(branches)) as executor:
        futures = {
            # Each branch sees the caller's context (request id).
            name: executor.submit(contextvars.copy_context().run, branch)
            for name, branch in branches.items()
        }
        # Leaving the block joins every branch, failed or not.
    return {name: future.result() for name, future in futures.items()}
