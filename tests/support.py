from chronicle.caching import QueryCacheStore, TemporalValueCache
from chronicle.context import RunContext
from chronicle.expectations import ExpectationTable
from chronicle.timepoint import TimePoint

ENTITY_URI = "http://www.wikidata.org/entity/{qid}"
PREFERRED = "http://wikiba.se/ontology#PreferredRank"
NORMAL = "http://wikiba.se/ontology#NormalRank"
DEPRECATED = "http://wikiba.se/ontology#DeprecatedRank"

QUERY_TEMPLATES = {
    "birth": "{entity} p:P569 ?_prop. ?_prop psv:P569 ?_value.",
    "death": "{entity} p:P570 ?_prop. ?_prop psv:P570 ?_value.",
    "propertyStart": "{entity} p:{property} ?_prop. ?_prop psv:{property} ?_value.",
    "positionHeld": {
        "general": "{entity} p:P39 ?_prop.",
        "start": "?_prop pqv:P580 ?_start_value.",
        "end": "?_prop pqv:P582 ?_end_value.",
    },
}
ITEM_QUERY_TEMPLATES = {"instancesOf": "{entity} wdt:P31 {class}."}
EXPECTATIONS = [
    {"startQuery": "#birth", "duration": {"max": "P122Y", "avg": "P75Y"}},
    {"duration": {"avg": "P2Y"}},
]


def uri(qid):
    return {"type": "uri", "value": ENTITY_URI.format(qid=qid)}


def time_row(qid, key="value", value=None, precision=11, rank=None, statement=None):
    row = {"_entity": uri(qid)}
    if value is not None:
        row[f"_{key}_ti"] = {"type": "literal", "value": value}
        row[f"_{key}_pr"] = {"type": "literal", "value": str(precision)}
    if rank:
        row["_rank"] = {"type": "uri", "value": rank}
    if statement:
        row["_prop"] = {"type": "uri", "value": f"http://www.wikidata.org/entity/statement/{statement}"}
    return row


def sparql_response(rows):
    return {"head": {"vars": []}, "results": {"bindings": rows}}


class FakeClient:
    """Stands in for SparqlClient; answers through a responder callable and records queries."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda query: sparql_response([]))
        self.queries = []
        self.stats = {"network_calls": 0}

    def run_query(self, query):
        self.queries.append(query)
        self.stats["network_calls"] += 1
        return self.responder(query)


class RecordingStore(QueryCacheStore):
    def __init__(self):
        super().__init__()
        self.flush_count = 0

    def flush(self):
        self.flush_count += 1
        super().flush()


def make_context(client=None, store=None, skip_cache=False, now=None, expectations=None):
    return RunContext(
        query_templates=dict(QUERY_TEMPLATES),
        item_query_templates=dict(ITEM_QUERY_TEMPLATES),
        expectations=ExpectationTable(expectations or EXPECTATIONS),
        cache=TemporalValueCache(store if store is not None else QueryCacheStore(), skip_cache=skip_cache),
        client=client or FakeClient(),
        now=now or TimePoint(2026, 10, 19),
    )
