import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from threading import Event
from typing import Dict, Mapping, Optional

from .logging_config import get_logger
from .search_query import SearchQuery
from .search_worker import Lookup, SearchWorker, WorkerOutcome
from .viaf_parser import ResultSet

logger = get_logger(__name__)

DEFAULT_POOL_SIZE = 3
DEFAULT_TIMEOUT = 10.0

#how often a cancellable wait checks its event
POLL_INTERVAL = 0.05

BatchResponse = Dict[str, ResultSet]


class Dispatcher:
    """Fans a keyed batch of queries out to a bounded pool of search workers.

    Each call to ``run`` gets its own pool, so the registry never sees more
    than ``pool_size`` concurrent lookups from one batch. All workers race a
    single deadline; keys whose worker did not complete in time (or failed)
    come back with an empty result set.
    """

    def __init__(self, lookup: Lookup, pool_size: int = DEFAULT_POOL_SIZE, timeout: float = DEFAULT_TIMEOUT):
        if pool_size < 1:
            raise ValueError(f"pool_size must be at least 1, got {pool_size}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.lookup = lookup
        self.pool_size = pool_size
        self.timeout = timeout

    def run(self, queries: Mapping[str, SearchQuery], cancel: Optional[Event] = None) -> BatchResponse:
        response: BatchResponse = {key: () for key in queries}
        if not queries:
            return response

        executor = ThreadPoolExecutor(max_workers=self.pool_size, thread_name_prefix="viaf-search")
        futures: Dict[Future, str] = {}
        start = time.monotonic()
        deadline = start + self.timeout

        try:
            for key, query in queries.items():
                worker = SearchWorker(key, query, self.lookup)
                futures[executor.submit(worker.run)] = key
            self._wait(set(futures), deadline, cancel)
        finally:
            #queued workers are dropped, running lookups finish on their own
            executor.shutdown(wait=False, cancel_futures=True)

        finished = 0
        for future, key in futures.items():
            outcome = self._outcome(future)
            if outcome is None:
                continue
            finished += 1
            if outcome.completed:
                response[key] = outcome.results

        elapsed = time.monotonic() - start
        logger.debug(f"{finished} of {len(futures)} workers finished in {elapsed:.3f}s")
        if finished < len(futures):
            logger.warning(f"{len(futures) - finished} queries missed the {self.timeout}s deadline")
        return response

    def _wait(self, pending: set, deadline: float, cancel: Optional[Event]) -> None:
        while pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            if cancel is not None:
                if cancel.is_set():
                    logger.warning("Batch cancelled, returning partial results")
                    return
                remaining = min(remaining, POLL_INTERVAL)
            _, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)

    @staticmethod
    def _outcome(future: Future) -> Optional[WorkerOutcome]:
        if not future.done() or future.cancelled():
            return None
        if future.exception() is not None:
            logger.error(f"Worker crashed: {future.exception()!r}")
            return None
        return future.result()
