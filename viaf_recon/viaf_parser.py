"""
Streaming parser for VIAF cluster XML.

A search response holds zero or more ``VIAFCluster`` elements, each with a
``mainHeadings`` block of ``data`` heading groups::

    <ns2:VIAFCluster>
      <ns2:viafID>96992551</ns2:viafID>
      <ns2:nameType>Personal</ns2:nameType>
      <ns2:mainHeadings>
        <ns2:data>
          <ns2:text>Steinbeck, John, 1902-1968</ns2:text>
          <ns2:sources>
            <ns2:s>LC</ns2:s>
            <ns2:sid>LC|n  79081460</ns2:sid>
          </ns2:sources>
        </ns2:data>
      </ns2:mainHeadings>
    </ns2:VIAFCluster>

Elements are matched by local name and nesting depth only, so namespace
prefixes and SRU wrapper elements (records, recordData, ...) make no
difference. Everything the state machine does not recognise is skipped.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple, Union
from xml.parsers import expat

from .errors import MalformedDocument
from .logging_config import get_logger

logger = get_logger(__name__)

CLUSTER = "VIAFCluster"
HEADINGS = "mainHeadings"
HEADING_GROUP = "data"
DISPLAY_TEXT = "text"
SOURCE_ID = "sid"
VIAF_ID = "viafID"
NAME_TYPE = "nameType"

SOURCE_DELIMITER = "|"
CHUNK_SIZE = 64 * 1024

ResultSet = Tuple["ViafResult", ...]
XmlSource = Union[bytes, bytearray, str, Iterable[bytes]]


@dataclass(frozen=True)
class NameEntry:
    name: str
    sources: Tuple[str, ...]


@dataclass(frozen=True)
class ViafResult:
    entries: Tuple[NameEntry, ...] = ()
    viaf_id: Optional[str] = None
    name_type: Optional[str] = None

    def preferred_name(self, source: Optional[str] = None) -> Optional[str]:
        """Name of the first heading, or the first one contributed by ``source``."""
        if source:
            wanted = source.upper()
            for entry in self.entries:
                if wanted in (s.upper() for s in entry.sources):
                    return entry.name
        if self.entries:
            return self.entries[0].name
        return None


def local_name(tag: str) -> str:
    #'{uri}name' from namespace-aware parsers, 'prefix:name' from expat
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.rsplit(":", 1)[-1]


def source_code(sid: str) -> str:
    """'LC|n78096951' -> 'LC', 'WKP' -> 'WKP'."""
    return sid.split(SOURCE_DELIMITER, 1)[0].strip()


@dataclass
class _EntryBuilder:
    name: str = ""
    sources: List[str] = field(default_factory=list)

    def freeze(self) -> Optional[NameEntry]:
        if not self.name or not self.sources:
            return None
        return NameEntry(self.name, tuple(self.sources))


@dataclass
class _ResultBuilder:
    entries: List[NameEntry] = field(default_factory=list)
    viaf_id: Optional[str] = None
    name_type: Optional[str] = None

    def freeze(self) -> ViafResult:
        return ViafResult(tuple(self.entries), self.viaf_id, self.name_type)


class ClusterStateMachine:
    """Builds ViafResult values from start/data/end events.

    State is one open cluster, one open heading group and one capture
    buffer, each remembered together with the depth it was opened at.
    """

    def __init__(self) -> None:
        self.results: List[ViafResult] = []
        self._depth = 0
        self._result: Optional[_ResultBuilder] = None
        self._result_depth = 0
        self._headings_depth = 0
        self._entry: Optional[_EntryBuilder] = None
        self._entry_depth = 0
        self._capture: Optional[List[str]] = None
        self._capture_tag = ""
        self._capture_depth = 0

    def _begin_capture(self, tag: str) -> None:
        self._capture = []
        self._capture_tag = tag
        self._capture_depth = self._depth

    def start(self, tag: str) -> None:
        self._depth += 1
        if self._capture is not None:
            return
        tag = local_name(tag)

        if tag == CLUSTER and self._result is None:
            self._result = _ResultBuilder()
            self._result_depth = self._depth
        elif self._result is None:
            return
        elif self._entry is not None:
            if tag in (DISPLAY_TEXT, SOURCE_ID):
                self._begin_capture(tag)
        elif self._headings_depth:
            if tag == HEADING_GROUP:
                self._entry = _EntryBuilder()
                self._entry_depth = self._depth
        elif tag == HEADINGS:
            self._headings_depth = self._depth
        elif tag in (VIAF_ID, NAME_TYPE) and self._depth == self._result_depth + 1:
            self._begin_capture(tag)

    def data(self, text: str) -> None:
        if self._capture is not None:
            self._capture.append(text)

    def end(self, tag: str) -> None:
        depth = self._depth
        self._depth -= 1

        if self._capture is not None:
            if depth == self._capture_depth:
                self._finish_capture("".join(self._capture).strip())
            return

        if self._entry is not None and depth == self._entry_depth:
            entry = self._entry.freeze()
            if entry is not None:
                self._result.entries.append(entry)
            else:
                logger.debug(f"Dropping incomplete heading group at depth {depth}")
            self._entry = None
        elif self._headings_depth and depth == self._headings_depth:
            self._headings_depth = 0
        elif self._result is not None and depth == self._result_depth:
            self.results.append(self._result.freeze())
            self._result = None

    def _finish_capture(self, text: str) -> None:
        tag = self._capture_tag
        self._capture = None
        self._capture_tag = ""

        if tag == DISPLAY_TEXT:
            self._entry.name = text
        elif tag == SOURCE_ID:
            code = source_code(text)
            if code:
                self._entry.sources.append(code)
        elif tag == VIAF_ID:
            self._result.viaf_id = text or None
        elif tag == NAME_TYPE:
            self._result.name_type = text or None


def _iter_chunks(source: XmlSource, chunk_size: int) -> Iterator[bytes]:
    if isinstance(source, str):
        yield source.encode("utf-8")
    elif isinstance(source, (bytes, bytearray, memoryview)):
        yield bytes(source)
    elif hasattr(source, "read"):
        while True:
            chunk = source.read(chunk_size)
            if not chunk:
                break
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    else:
        for chunk in source:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


def parse_results(source: XmlSource, chunk_size: int = CHUNK_SIZE) -> ResultSet:
    """
    Parse one registry response into results, in document order.

    Args:
        source: The whole document as bytes or str, a binary file-like
            object, or an iterable of byte chunks (e.g. a streamed HTTP body).
        chunk_size: Read size used for file-like sources.

    Raises:
        MalformedDocument: The input is not well-formed XML.
    """
    machine = ClusterStateMachine()
    #str input is fed as UTF-8 whatever its XML declaration says
    parser = expat.ParserCreate("UTF-8" if isinstance(source, str) else None)
    parser.buffer_text = True
    parser.StartElementHandler = lambda name, attrs: machine.start(name)
    parser.EndElementHandler = machine.end
    parser.CharacterDataHandler = machine.data

    try:
        for chunk in _iter_chunks(source, chunk_size):
            parser.Parse(chunk, False)
        parser.Parse(b"", True)
    except expat.ExpatError as e:
        logger.error(f"Malformed registry document: {e}")
        raise MalformedDocument(f"registry response is not well-formed XML: {e}", e.lineno, e.offset) from e

    logger.debug(f"Parsed {len(machine.results)} clusters")
    return tuple(machine.results)
