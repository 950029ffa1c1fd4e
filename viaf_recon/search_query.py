import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidQuery
from .name_type import NameType

DEFAULT_LIMIT = 3
DEFAULT_TYPE_STRICT = "should"


@dataclass(frozen=True)
class SearchQuery:
    text: str
    limit: int = DEFAULT_LIMIT
    name_type: Optional[NameType] = None
    type_strict: Optional[str] = None
    source: Optional[str] = None

    def with_source(self, source: Optional[str]) -> "SearchQuery":
        if not source:
            return self
        return replace(self, source=source)


def _coerce_limit(value: Any) -> int:
    #bools are ints in python, treat them as garbage
    if value is None or isinstance(value, bool):
        return DEFAULT_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return limit if limit > 0 else DEFAULT_LIMIT


def build_search_query(struct: Mapping[str, Any], source: Optional[str] = None) -> SearchQuery:
    """Build a SearchQuery from one decoded query description.

    ``source`` is applied last and overrides any ``source`` key carried
    inside ``struct``.
    """
    if not isinstance(struct, Mapping):
        raise InvalidQuery("query description must be an object")

    raw_text = struct.get("query")
    text = str(raw_text).strip() if raw_text is not None else ""
    if not text:
        raise InvalidQuery("query text is missing or empty")

    name_type = None
    raw_type = struct.get("type")
    if raw_type is not None and str(raw_type).strip():
        name_type = NameType.lookup(str(raw_type))
        if name_type is None:
            raise InvalidQuery(f"unknown name type {raw_type!r}")

    type_strict = None
    if struct.get("type_strict") is not None:
        type_strict = str(struct["type_strict"])

    embedded_source = struct.get("source")
    query = SearchQuery(
        text=text,
        limit=_coerce_limit(struct.get("limit")),
        name_type=name_type,
        type_strict=type_strict,
        source=str(embedded_source) if embedded_source else None,
    )
    return query.with_source(source)


def parse_query_param(raw: str, source: Optional[str] = None) -> SearchQuery:
    """Decode the single ``query`` parameter: a JSON object or plain text."""
    raw = raw.strip()
    if raw.startswith("{"):
        try:
            struct = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidQuery(f"query is not valid JSON: {e.msg}") from e
        return build_search_query(struct, source)

    if not raw:
        raise InvalidQuery("query text is missing or empty")
    return SearchQuery(raw, DEFAULT_LIMIT, None, DEFAULT_TYPE_STRICT).with_source(source)


def build_batch(structs: Mapping[str, Any], source: Optional[str] = None) -> Dict[str, SearchQuery]:
    if not isinstance(structs, Mapping):
        raise InvalidQuery("queries must be an object keyed by query id")

    batch: Dict[str, SearchQuery] = {}
    for key, struct in structs.items():
        try:
            batch[str(key)] = build_search_query(struct, source)
        except InvalidQuery as e:
            raise InvalidQuery(str(e), key=str(key)) from e
    return batch
