import logging
from dataclasses import dataclass, field

from tqdm import tqdm

from . import config
from .errors import DATA_GAP, ConfigurationError, TransportError
from .expander import clone_for_extra_values
from .models import PAIR_QUERY_FIELD, TIME_FIELDS, OneOrMany
from .ranking import filter_best_bindings, pick_best_binding
from .sparql import SparqlBuilder
from .terms import CompositeTerm, item_query_term, time_query_term
from .timepoint import normalize_time
from .utils import canonicalize, extract_qid_from_url

logger = logging.getLogger(__name__)


@dataclass
class QueryBundle:
    """Items sharing one bound query term; answered by a single request."""

    field_name: str
    term: CompositeTerm
    skip_cache: bool = False
    items: list = field(default_factory=list)

    @property
    def signature(self):
        return bundle_signature(self.field_name, self.term, self.skip_cache)

    def entities(self):
        return sorted({item.entity for item in self.items})


def bundle_signature(field_name, term, skip_cache):
    return canonicalize({"field": field_name, "term": [list(part) for part in term.parts], "skipCache": skip_cache})


def bind_item_terms(item, ctx):
    """Return {query field: bound term} with the entity left as the shared query variable."""
    params = item.template_params()
    params["entity"] = f"?{config.ENTITY_VAR}"
    return {
        field_name: time_query_term(field_name, reference, ctx.query_templates, params, item.id)
        for field_name, reference in item.query_fields().items()
    }


def validate_item_terms(items, ctx):
    """Dereference and bind every query reference up front so template errors surface before network I/O."""
    for item in items:
        validate_item_times(item)
        if item.item_query:
            params = item.template_params()
            params["entity"] = f"?{config.NODE_VAR}"
            item_query_term(item.item_query, ctx.item_query_templates, params, item.id)
        elif item.query_fields() and not item.finished and not item.entity:
            raise ConfigurationError(
                "INVALID_SPEC",
                f"Item {item.id or item.label} has queries but no entity.",
                {"item": item.id},
            )
        bind_item_terms(item, ctx)
        if item.expected_duration:
            ctx.expectations.lookup(item)


def validate_item_times(item):
    """Reject literal time values that cannot be normalized."""
    for name in TIME_FIELDS:
        temporal_value = getattr(item, name)
        if temporal_value is None:
            continue
        try:
            normalize_time(temporal_value.value, temporal_value.precision)
        except ValueError as exc:
            raise ConfigurationError(
                "INVALID_SPEC",
                f"Item {item.id or item.label} has an invalid {name} value: {exc}",
                {"item": item.id, "field": name, "value": temporal_value.value},
            ) from exc


def build_time_query(term, entities):
    entity_var = f"?{config.ENTITY_VAR}"
    prop_var = f"?{config.PROP_VAR}"
    builder = SparqlBuilder()
    builder.add_values(entity_var, [f"wd:{entity}" for entity in entities])
    builder.add_out_param(entity_var)
    builder.add_out_param(prop_var)
    builder.add_out_param(f"?{config.RANK_VAR}")
    general = term.get("general")
    if general:
        builder.add_query_term(general)
    value = term.get("value")
    if value:
        builder.add_time_term(value, "?_value", "?_value_ti", "?_value_pr")
    for key, text in term.parts:
        if key in ("general", "value"):
            continue
        builder.add_optional_time_term(text, f"?_{key}_value", f"?_{key}_ti", f"?_{key}_pr")
    builder.add_optional_query_term(f"{prop_var} wikibase:rank ?{config.RANK_VAR}.")
    return builder.build()


def read_binding(binding, keys, stats=None):
    """Extract {sub-term: {value, precision}} from one result row, skipping values that do not parse."""
    result = {}
    for key in keys:
        time_binding = binding.get(f"_{key}_ti")
        if not time_binding or not time_binding.get("value"):
            continue
        precision_binding = binding.get(f"_{key}_pr") or {}
        precision = precision_binding.get("value")
        try:
            precision = int(precision) if precision is not None else None
            normalize_time(time_binding["value"], precision)
        except ValueError as exc:
            logger.warning("[!] Ignoring unusable %s time value %r: %s", key, time_binding["value"], exc)
            if stats is not None:
                stats[DATA_GAP] = stats.get(DATA_GAP, 0) + 1
            continue
        result[key] = {"value": time_binding["value"], "precision": precision}
    return result


def group_bindings_by_entity(bindings):
    grouped = {}
    for binding in bindings:
        entity_binding = binding.get(config.ENTITY_VAR)
        if not entity_binding or entity_binding.get("type") != "uri":
            raise TransportError(
                "INVALID_RESPONSE",
                "Result row is missing the entity binding.",
                {"binding": binding},
            )
        grouped.setdefault(extract_qid_from_url(entity_binding["value"]), []).append(binding)
    return grouped


def statement_representatives(bindings):
    """One row per statement node, in first-seen order."""
    by_statement = {}
    for index, binding in enumerate(bindings):
        statement = (binding.get(config.PROP_VAR) or {}).get("value") or f"row-{index}"
        by_statement.setdefault(statement, binding)
    return list(by_statement.values())


def resolve_entity_results(bindings, keys, many=False, stats=None):
    """
    Narrow raw rows to the values used per entity: {qid: [value, ...]}.

    Point queries keep the single best statement. Start/end pair queries keep one
    value per surviving statement, since distinct statements are distinct
    intervals.
    """
    results = {}
    for qid, rows in group_bindings_by_entity(bindings).items():
        if many:
            chosen = filter_best_bindings(statement_representatives(rows))
        else:
            chosen = [pick_best_binding(statement_representatives(rows), context_label=qid, stats=stats)]
        values = [value for value in (read_binding(row, keys, stats) for row in chosen) if value]
        if values:
            results[qid] = values
    return results


class QueryBundler:
    """Partitions items by query signature and runs one query per bundle."""

    def __init__(self, ctx, assigner):
        self.ctx = ctx
        self.assigner = assigner

    def partition(self, items):
        bundles = {}
        for item in items:
            if item.finished or item.item_query:
                continue
            skip_cache = bool(self.ctx.cache.skip_cache or item.skip_cache)
            for field_name, term in bind_item_terms(item, self.ctx).items():
                signature = bundle_signature(field_name, term, skip_cache)
                bundle = bundles.get(signature)
                if bundle is None:
                    bundle = bundles[signature] = QueryBundle(field_name, term, skip_cache)
                bundle.items.append(item)
        return list(bundles.values())

    def run_bundle(self, bundle):
        """Return {qid: OneOrMany[value]} for the bundle, through the cache."""
        query = build_time_query(bundle.term, bundle.entities())
        label = bundle.items[0].id
        keys = bundle.term.keys()
        many = bundle.field_name == PAIR_QUERY_FIELD

        def compute():
            data = self.ctx.client.run_query(query)
            bindings = ((data or {}).get("results") or {}).get("bindings")
            if not isinstance(bindings, list):
                raise TransportError("INVALID_RESPONSE", "Query response has no result bindings.", {"query": query})
            logger.info("\tQuery for %s returned %s results.", label, len(bindings))
            return resolve_entity_results(bindings, keys, many=many, stats=self.ctx.stats)

        results = self.ctx.cache.fetch(query, compute, skip_cache=bundle.skip_cache)
        return {qid: OneOrMany(values) for qid, values in results.items()}

    def run(self, items):
        """Resolve every pending item; returns the item list with per-value clones placed after their source."""
        bundles = self.partition(items)
        self.ctx.stats["bundles"] += len(bundles)
        logger.info("[+] %s items grouped into %s queries.", len(items), len(bundles))
        clones_by_parent = {}
        progress = tqdm(bundles, desc="Running queries", unit="query", disable=not self.ctx.show_progress)
        for index, bundle in enumerate(progress):
            results = self.run_bundle(bundle)
            for item in list(bundle.items):
                found = results.get(item.entity)
                if found is None:
                    logger.debug("\tNo %s result for %s.", bundle.field_name, item.id)
                    continue
                item.apply_query_result(bundle.field_name, found.first)
                if not found.is_many:
                    continue
                clones = clone_for_extra_values(item, bundle.field_name, found.extras, self.assigner)
                clones_by_parent.setdefault(item.id, []).extend(clones)
                for later in bundles[index + 1 :]:
                    if any(member is item for member in later.items):
                        later.items.extend(clones)
        for item in items:
            if not item.item_query:
                item.finished = True
        return _place_clones(items, clones_by_parent)


def _place_clones(items, clones_by_parent):
    placed = []
    for item in items:
        placed.append(item)
        placed.extend(_place_clones(clones_by_parent.pop(item.id, []), clones_by_parent))
    return placed
