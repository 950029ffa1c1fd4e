from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .logging_config import get_logger
from .search_query import SearchQuery
from .viaf_parser import ResultSet

logger = get_logger(__name__)

Lookup = Callable[[SearchQuery], ResultSet]


class WorkerState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class WorkerOutcome:
    key: str
    state: WorkerState
    results: ResultSet
    error: Optional[BaseException] = None

    @property
    def completed(self) -> bool:
        return self.state is WorkerState.COMPLETED


class SearchWorker:
    """Runs one query through the lookup and keeps its terminal state.

    ``run`` never raises for lookup or parse problems; they end the worker
    in FAILED and travel back to the dispatcher inside the outcome.
    """

    def __init__(self, key: str, query: SearchQuery, lookup: Lookup):
        self.key = key
        self.query = query
        self._lookup = lookup
        self.state = WorkerState.PENDING
        self.outcome: Optional[WorkerOutcome] = None

    def run(self) -> WorkerOutcome:
        if self.state is not WorkerState.PENDING:
            raise RuntimeError(f"worker {self.key!r} already {self.state.value}")
        self.state = WorkerState.RUNNING

        try:
            results = tuple(self._lookup(self.query))
        except Exception as e:
            logger.warning(f"Query {self.key!r} ({self.query.text!r}) failed: {e}")
            self.state = WorkerState.FAILED
            self.outcome = WorkerOutcome(self.key, self.state, (), e)
        else:
            self.state = WorkerState.COMPLETED
            self.outcome = WorkerOutcome(self.key, self.state, results)

        return self.outcome
