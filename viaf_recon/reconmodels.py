from typing import List, Dict, Optional, Sequence
from pydantic import BaseModel

from .name_type import NameType
from .viaf_parser import ViafResult

class TypeRef(BaseModel):
    id: str
    name: str

class Candidate(BaseModel):
    id: str
    name: str
    type: List[TypeRef] = []
    match: bool = False

class ReconcileResult(BaseModel):
    result: List[Candidate]

class ServiceMetadata(BaseModel):
    name: str
    identifierSpace: str
    schemaSpace: str
    view: Dict[str, str]
    defaultTypes: List[TypeRef]

ResponsePayload = Dict[str, ReconcileResult]

IDENTIFIER_SPACE = "http://viaf.org/viaf/"
SCHEMA_SPACE = "http://viaf.org/viaf/terms#"
VIEW_URL = "https://viaf.org/viaf/{{id}}"

def type_ref(name_type: NameType) -> TypeRef:
    return TypeRef(id=name_type.type_id, name=name_type.display_name)

#clusters without an id or a usable heading can't be offered as candidates
def to_candidate(result: ViafResult, source: Optional[str] = None) -> Optional[Candidate]:
    name = result.preferred_name(source)
    if not result.viaf_id or not name:
        return None

    name_type = NameType.lookup(result.name_type)
    return Candidate(
        id=result.viaf_id,
        name=name,
        type=[type_ref(name_type)] if name_type else [],
    )

#registry order is kept, no scoring
def to_reconcile_result(results: Sequence[ViafResult], source: Optional[str] = None) -> ReconcileResult:
    candidates = [to_candidate(r, source) for r in results]
    return ReconcileResult(result=[c for c in candidates if c is not None])

def service_metadata(service_name: str, source: Optional[str] = None) -> ServiceMetadata:
    name = f"{service_name} - {source}" if source else service_name
    return ServiceMetadata(
        name=name,
        identifierSpace=IDENTIFIER_SPACE,
        schemaSpace=SCHEMA_SPACE,
        view={"url": VIEW_URL},
        defaultTypes=[type_ref(t) for t in NameType.default_types()],
    )
