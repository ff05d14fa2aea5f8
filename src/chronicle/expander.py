import logging

from . import config
from .errors import TransportError
from .sparql import SparqlBuilder
from .terms import item_query_term
from .utils import extract_qid_from_url

logger = logging.getLogger(__name__)

LABEL_PLACEHOLDER = "{_LABEL}"
QID_PLACEHOLDER = "{_QID}"
GENERATION_ONLY_FIELDS = ("item_query", "comment")


def build_item_query(term, lang):
    node_var = f"?{config.NODE_VAR}"
    builder = SparqlBuilder()
    builder.add_out_param(node_var)
    builder.add_out_param(f"{node_var}Label")
    builder.add_query_term(term)
    builder.add_wikibase_label(lang)
    return builder.build()


def default_label(qid, wikidata_label):
    url = config.ENTITY_PAGE_URL.format(qid=qid)
    return f'<a target="_blank" href="{url}">{wikidata_label}</a>'


def render_label(template_label, qid, wikidata_label):
    if not template_label:
        return default_label(qid, wikidata_label)
    return template_label.replace(LABEL_PLACEHOLDER, wikidata_label).replace(QID_PLACEHOLDER, qid)


def read_generated_nodes(data):
    """Return [{"entity", "label"}] from an item-generating query response, de-duplicated by entity."""
    bindings = ((data or {}).get("results") or {}).get("bindings")
    if not isinstance(bindings, list):
        raise TransportError("INVALID_RESPONSE", "Item query response has no result bindings.")
    nodes = []
    seen = set()
    for binding in bindings:
        node = binding.get(config.NODE_VAR)
        if not node or not node.get("value"):
            continue
        qid = extract_qid_from_url(node["value"])
        if qid in seen:
            continue
        seen.add(qid)
        label = (binding.get(f"{config.NODE_VAR}Label") or {}).get("value") or qid
        nodes.append({"entity": qid, "label": label})
    return nodes


def run_item_query(template, ctx):
    params = template.template_params()
    params["entity"] = f"?{config.NODE_VAR}"
    term = item_query_term(template.item_query, ctx.item_query_templates, params, template.id)
    query = build_item_query(term, ctx.lang)
    return ctx.cache.fetch(
        query,
        lambda: read_generated_nodes(ctx.client.run_query(query)),
        skip_cache=template.skip_cache,
    )


def expand_template_item(template, ctx):
    """Clone the template once per generated entity."""
    new_items = []
    for node in run_item_query(template, ctx):
        item = template.clone()
        for name in GENERATION_ONLY_FIELDS:
            setattr(item, name, None)
        item.entity = node["entity"]
        item.label = render_label(template.label, node["entity"], node["label"])
        item.id = f"{template.id}-{node['entity']}" if template.id else None
        item.finished = False
        new_items.append(item)
    template.finished = True
    logger.info("[+] Item-generating query '%s' created %s items.", template.item_query, len(new_items))
    return new_items


def expand_items(items, ctx):
    """Replace every template item in place with the items its query generates."""
    expanded = []
    for item in items:
        if item.item_query and not item.finished:
            expanded.extend(expand_template_item(item, ctx))
        elif not item.item_query:
            expanded.append(item)
    ctx.stats["generated_items"] += len(expanded) - sum(1 for item in items if not item.item_query)
    return expanded


def clone_for_extra_values(item, field_name, extra_values, assigner):
    """Clone an item once per additional value of a multi-valued result, with -2, -3, ... id suffixes."""
    clones = []
    for offset, value in enumerate(extra_values, start=2):
        clone = item.clone()
        clone.id = assigner.next_free_id(item.id, start=offset)
        clone.apply_query_result(field_name, value)
        clones.append(clone)
    return clones
