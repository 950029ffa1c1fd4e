from threading import Event
from typing import Mapping, Optional

from .dispatcher import BatchResponse, Dispatcher
from .logging_config import get_logger
from .search_query import SearchQuery
from .settings import Settings
from .viaf_client import ViafClient
from .viaf_parser import ResultSet

logger = get_logger(__name__)


class ReconcileService:
    def __init__(self, client: ViafClient, settings: Settings):
        self.client = client
        self.settings = settings

    #single path, failures go straight to the caller
    def search(self, query: SearchQuery) -> ResultSet:
        logger.info(f"Single query {query.text!r}")
        return self.client.search(query)

    def search_batch(self, queries: Mapping[str, SearchQuery], cancel: Optional[Event] = None) -> BatchResponse:
        logger.info(f"Batch of {len(queries)} queries")
        dispatcher = Dispatcher(
            self.client.search,
            pool_size=self.settings.pool_size,
            timeout=self.settings.batch_timeout,
        )
        return dispatcher.run(queries, cancel)
