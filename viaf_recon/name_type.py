from enum import Enum
from typing import Dict, List, Optional


class NameType(Enum):
    """Name types that can be used to narrow a registry search.

    Each member carries the reconciliation type id advertised to clients,
    a display name, the value VIAF writes in a cluster's nameType element
    and the CQL index searched for that type.
    """

    PERSONAL = ("/people/person", "Person", "Personal", "local.personalNames")
    CORPORATE = ("/organization/organization", "Corporate Name", "Corporate", "local.corporateNames")
    GEOGRAPHIC = ("/location/location", "Geographic Name", "Geographic", "local.geographicNames")
    WORK = ("/book/book", "Work", "UniformTitleWork", "local.uniformTitleWorks")
    EXPRESSION = ("/book/book_edition", "Expression", "UniformTitleExpression", "local.uniformTitleExpressions")
    UNSPECIFIED = ("/viaf/name", "Name", "Unspecified", "local.names")

    def __init__(self, type_id: str, display_name: str, viaf_code: str, cql_index: str):
        self.type_id = type_id
        self.display_name = display_name
        self.viaf_code = viaf_code
        self.cql_index = cql_index

    @classmethod
    def lookup(cls, code: Optional[str]) -> Optional["NameType"]:
        """Resolve a type id, short code or VIAF value, ignoring case."""
        if not code:
            return None
        return _LOOKUP.get(code.strip().lower())

    @classmethod
    def default_types(cls) -> List["NameType"]:
        return [t for t in cls if t is not cls.UNSPECIFIED]


_LOOKUP: Dict[str, NameType] = {}
for _t in NameType:
    _LOOKUP[_t.type_id.lower()] = _t
    _LOOKUP[_t.name.lower()] = _t
    _LOOKUP[_t.viaf_code.lower()] = _t
