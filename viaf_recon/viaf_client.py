from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import httpx

from .errors import LookupFailure
from .logging_config import get_logger
from .name_type import NameType
from .search_query import SearchQuery
from .settings import Settings
from .viaf_parser import ResultSet, parse_results

logger = get_logger(__name__)


def build_cql(query: SearchQuery) -> str:
    """CQL expression for VIAF's SRU search, e.g. local.personalNames all "steinbeck"."""
    index = (query.name_type or NameType.UNSPECIFIED).cql_index
    text = query.text.replace("\\", "\\\\").replace('"', '\\"')
    cql = f'{index} all "{text}"'
    if query.source:
        cql += f' and local.sources any "{query.source.lower()}"'
    return cql


class ViafClient:
    """Runs searches against the VIAF SRU endpoint.

    One instance serves every worker of a batch; nothing on it changes
    after construction.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None):
        self.search_url = settings.viaf_base_url.rstrip("/") + "/search"
        self.timeout = settings.http_timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=settings.http_timeout,
            headers={"Accept": "application/xml"},
            follow_redirects=True,
        )

    def search_params(self, query: SearchQuery) -> Dict[str, Any]:
        return {
            "query": build_cql(query),
            "maximumRecords": query.limit,
            "httpAccept": "application/xml",
            "sortKeys": "holdingscount",
        }

    @contextmanager
    def _request(self, query: SearchQuery) -> Iterator[httpx.Response]:
        """Open the search response; transport and HTTP errors become LookupFailure."""
        logger.debug(f"Searching {query.text!r} (type={query.name_type}, source={query.source})")
        try:
            with self._client.stream(
                "GET", self.search_url, params=self.search_params(query), timeout=self.timeout
            ) as response:
                response.raise_for_status()
                yield response
        except httpx.HTTPError as e:
            logger.error(f"Lookup failed for {query.text!r}: {e}")
            raise LookupFailure(f"registry lookup failed: {e}") from e

    def lookup(self, query: SearchQuery) -> bytes:
        """Fetch the raw XML response for one query."""
        with self._request(query) as response:
            return response.read()

    def search(self, query: SearchQuery) -> ResultSet:
        """Fetch and parse one query, feeding the parser as the body arrives."""
        with self._request(query) as response:
            results = parse_results(response.iter_bytes())

        logger.info(f"{query.text!r}: {len(results)} clusters")
        return results

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ViafClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
