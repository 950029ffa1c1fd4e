import io
from pathlib import Path

import pytest

from viaf_recon.errors import MalformedDocument
from viaf_recon.viaf_parser import (
    ClusterStateMachine,
    NameEntry,
    ViafResult,
    local_name,
    parse_results,
    source_code,
)

DATA_DIR = Path(__file__).parent / "data"
STEINBECK = (DATA_DIR / "steinbeck_no_type.xml").read_bytes()


def joined(entry: NameEntry) -> str:
    return ",".join(entry.sources)


def cluster(*headings: str, viaf_id: str = "1") -> str:
    return (
        f"<VIAFCluster><viafID>{viaf_id}</viafID><mainHeadings>"
        + "".join(headings)
        + "</mainHeadings></VIAFCluster>"
    )


def heading(name: str, *sids: str) -> str:
    sources = "".join(f"<sid>{s}</sid>" for s in sids)
    return f"<data><text>{name}</text><sources>{sources}</sources></data>"


#tests against a recorded VIAF response
def test_parse_names_from_recorded_response():
    results = parse_results(STEINBECK)
    assert len(results) == 2

    first, second = results
    assert len(first.entries) == 10

    assert first.entries[0].name == "Steinbeck, John, 1902-1968"
    assert joined(first.entries[0]) == (
        "LC,BIBSYS,BNF,KRNLK,N6I,LAC,BNE,SUDOC,BAV,BNC,NLI,B2Q,PTBNP,NLP,LNB,SELIBR,NLA,ICCU,NDL,DNB,NUKAT,NKC"
    )

    assert first.entries[1].name == "Steinbeck, John (John Ernst), 1902-1968"
    assert joined(first.entries[1]) == "NTA"
    assert joined(first.entries[2]) == "NSK,SWNL"
    assert joined(first.entries[3]) == "WKP"
    assert joined(first.entries[4]) == "LNL,EGAXA"
    assert joined(first.entries[5]) == "NLI"
    assert joined(first.entries[6]) == "NLI"
    assert joined(first.entries[7]) == "NLI"
    assert joined(first.entries[8]) == "NLR"
    assert joined(first.entries[9]) == "JPG"

    assert len(second.entries) == 5
    assert second.entries[0].name == "Steinbeck, John 1946-1991"
    assert joined(second.entries[0]) == "NLP,ICCU,DNB,BNF"


def test_cluster_id_and_name_type():
    first, second = parse_results(STEINBECK)
    assert first.viaf_id == "96992551"
    assert first.name_type == "Personal"
    assert second.viaf_id == "40167211"


#sid elements outside mainHeadings (cluster sources, x400s) are ignored
def test_sources_outside_headings_are_ignored():
    first = parse_results(STEINBECK)[0]
    all_codes = [code for entry in first.entries for code in entry.sources]
    assert "XX" not in all_codes
    assert all(entry.name != "Steinbeck, John Ernst" for entry in first.entries)


def test_non_latin_names_survive():
    first = parse_results(STEINBECK)[0]
    assert first.entries[8].name == "Стейнбек, Джон, 1902-1968"
    assert first.entries[9].name == "スタインベック, ジョン"


def test_source_code_strips_from_first_pipe():
    assert source_code("LC|n78096951") == "LC"
    assert source_code("WKP") == "WKP"
    assert source_code("ICCU|IT\\ICCU|x") == "ICCU"
    assert source_code(" BNF |123") == "BNF"


def test_local_name():
    assert local_name("ns2:VIAFCluster") == "VIAFCluster"
    assert local_name("{http://viaf.org/viaf/terms#}data") == "data"
    assert local_name("text") == "text"


def test_sibling_clusters_in_document_order():
    doc = "<records>" + "".join(
        cluster(heading(f"Name {i}", "LC"), viaf_id=str(i)) for i in range(7)
    ) + "</records>"
    results = parse_results(doc)
    assert [r.viaf_id for r in results] == [str(i) for i in range(7)]


def test_sources_keep_duplicates_and_order():
    doc = cluster(heading("Someone", "NLI|1", "DNB|2", "NLI|3", "LC"))
    entry = parse_results(doc)[0].entries[0]
    assert entry.sources == ("NLI", "DNB", "NLI", "LC")


def test_empty_cluster_is_kept():
    results = parse_results("<r><VIAFCluster><viafID>9</viafID></VIAFCluster></r>")
    assert results == (ViafResult((), "9", None),)


def test_incomplete_headings_are_dropped():
    doc = cluster(
        heading("No sources"),
        heading("", "LC|1"),
        "<data><sources><sid>BNF</sid></sources></data>",
        heading("Kept", "DNB|5"),
    )
    entries = parse_results(doc)[0].entries
    assert entries == (NameEntry("Kept", ("DNB",)),)


def test_unknown_elements_are_ignored():
    doc = (
        "<VIAFCluster><newThing>noise<text>not a heading</text></newThing>"
        "<mainHeadings><data><extra>x</extra><text>  Padded Name </text>"
        "<sources><sid>LC|1</sid><future>ignored</future></sources></data>"
        "</mainHeadings></VIAFCluster>"
    )
    entries = parse_results(doc)[0].entries
    assert entries == (NameEntry("Padded Name", ("LC",)),)


def test_no_clusters():
    doc = b"<searchRetrieveResponse><numberOfRecords>0</numberOfRecords></searchRetrieveResponse>"
    assert parse_results(doc) == ()


def test_chunked_input_matches_whole_document():
    chunks = [STEINBECK[i:i + 97] for i in range(0, len(STEINBECK), 97)]
    assert parse_results(chunks) == parse_results(STEINBECK)


def test_file_like_input():
    assert parse_results(io.BytesIO(STEINBECK), chunk_size=128) == parse_results(STEINBECK)


@pytest.mark.parametrize("doc", [
    b"",
    b"<VIAFCluster><mainHeadings>",
    b"<a><b></a></b>",
    b"not xml at all",
])
def test_malformed_documents(doc):
    with pytest.raises(MalformedDocument):
        parse_results(doc)


def test_truncated_recorded_response():
    with pytest.raises(MalformedDocument) as info:
        parse_results(STEINBECK[: len(STEINBECK) // 2])
    assert info.value.line is not None


#the state machine can be driven without any xml library
def test_state_machine_events():
    machine = ClusterStateMachine()
    for event, arg in [
        ("start", "wrapper"),
        ("start", "x:VIAFCluster"),
        ("start", "x:mainHeadings"),
        ("start", "x:data"),
        ("start", "x:text"), ("data", "Twain, "), ("data", "Mark"), ("end", "x:text"),
        ("start", "x:sources"),
        ("start", "x:sid"), ("data", "LC|n79021164"), ("end", "x:sid"),
        ("end", "x:sources"),
        ("end", "x:data"),
        ("end", "x:mainHeadings"),
        ("end", "x:VIAFCluster"),
        ("end", "wrapper"),
    ]:
        getattr(machine, event)(arg)

    assert machine.results == [ViafResult((NameEntry("Twain, Mark", ("LC",)),))]


def test_preferred_name():
    result = parse_results(STEINBECK)[1]
    assert result.preferred_name() == "Steinbeck, John 1946-1991"
    assert result.preferred_name("LC") == "Steinbeck, John, 1946-1991"
    assert result.preferred_name("wkp") == "Steinbeck, John, IV"
    assert result.preferred_name("XYZ") == "Steinbeck, John 1946-1991"
    assert ViafResult().preferred_name() is None


def test_results_are_frozen():
    results = parse_results(STEINBECK)
    assert isinstance(results, tuple)
    assert isinstance(results[0].entries, tuple)


#a str has already been decoded, its encoding declaration no longer applies
def test_str_input_ignores_encoding_declaration():
    doc = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        + cluster(heading("García Márquez, Gabriel", "BNE|XX1718747"))
    )
    assert parse_results(doc)[0].entries[0].name == "García Márquez, Gabriel"


def test_bytes_input_follows_encoding_declaration():
    doc = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        + cluster(heading("García Márquez, Gabriel", "BNE|XX1718747"))
    ).encode("iso-8859-1")
    assert parse_results(doc)[0].entries[0].name == "García Márquez, Gabriel"
