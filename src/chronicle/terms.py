"""
Query terms and template binding.

A query reference in a timeline spec is either literal SPARQL or ``#name`` pointing
into a template table. The referenced term is either a single string
(``SimpleTerm``) or a mapping of named sub-terms (``CompositeTerm``). Binding
substitutes ``{placeholder}`` wildcards from an explicit parameter map and
refuses to leave any placeholder unresolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Union

from . import config
from .errors import ConfigurationError
from .models import PAIR_QUERY_FIELD, TIME_FIELDS
from .utils import is_qid

POINT_TERM_KEYS = {"general", "value", "min", "max"}
PAIR_TERM_KEYS = {"general", *TIME_FIELDS}


@dataclass(frozen=True)
class SimpleTerm:
    text: str


@dataclass(frozen=True)
class CompositeTerm:
    parts: tuple[tuple[str, str], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "CompositeTerm":
        return cls(tuple(mapping.items()))

    def get(self, name: str):
        for key, text in self.parts:
            if key == name:
                return text
        return None

    def keys(self):
        return [key for key, _ in self.parts]

    def as_dict(self) -> dict[str, str]:
        return dict(self.parts)


QueryTerm = Union[SimpleTerm, CompositeTerm]


def term_from_raw(raw, item_id=None) -> QueryTerm:
    if isinstance(raw, str):
        return SimpleTerm(raw)
    if isinstance(raw, Mapping) and raw and all(isinstance(v, str) for v in raw.values()):
        return CompositeTerm.from_mapping(raw)
    raise ConfigurationError(
        "INVALID_SPEC",
        f"Query term must be a string or a mapping of strings (on item {item_id}).",
        {"item": item_id, "term": raw},
    )


def dereference(reference, table: Mapping, table_name: str, item_id=None):
    """Resolve a ``#name`` reference against a template table; literal terms pass through."""
    if isinstance(reference, str) and reference.startswith("#"):
        name = reference[1:].strip()
        if name not in table:
            raise ConfigurationError(
                "MISSING_TEMPLATE",
                f"Query template '{name}' not found in {table_name} (on item {item_id}).",
                {"item": item_id, "template": name, "table": table_name},
            )
        return table[name]
    return reference


def format_param(value) -> str:
    if isinstance(value, str):
        value = value.strip()
        return f"wd:{value}" if is_qid(value) else value
    return str(value)


def bind_text(text: str, params: Mapping, item_id=None) -> str:
    """Substitute {placeholders} and terminate the triple pattern with a period."""
    missing = sorted(
        {name for name in config.PLACEHOLDER_PATTERN.findall(text) if name not in params}
    )
    if missing:
        raise ConfigurationError(
            "UNRESOLVED_PLACEHOLDER",
            f"Unresolved placeholder(s) {missing} in query term (on item {item_id}).",
            {"item": item_id, "placeholders": missing, "term": text},
        )
    bound = config.PLACEHOLDER_PATTERN.sub(lambda m: format_param(params[m.group(1)]), text)
    if not bound.strip().endswith("."):
        bound = bound.rstrip() + "."
    return bound


def bind_term(term: QueryTerm, params: Mapping, item_id=None) -> QueryTerm:
    if isinstance(term, SimpleTerm):
        return SimpleTerm(bind_text(term.text, params, item_id))
    return CompositeTerm(tuple((key, bind_text(text, params, item_id)) for key, text in term.parts))


def time_query_term(field_name: str, reference, templates: Mapping, params: Mapping, item_id=None) -> CompositeTerm:
    """
    Bind a start/end/bound query reference into a composite term.

    Simple terms bind the statement value and pick up the earliest/latest
    date qualifiers as bounds; composite terms must only use the sub-term
    names their query shape understands.
    """
    term = term_from_raw(dereference(reference, templates, "queryTemplates", item_id), item_id)
    allowed = PAIR_TERM_KEYS if field_name == PAIR_QUERY_FIELD else POINT_TERM_KEYS
    if isinstance(term, SimpleTerm):
        if field_name == PAIR_QUERY_FIELD:
            raise ConfigurationError(
                "UNKNOWN_TERM",
                f"Start/end queries need named sub-terms (on item {item_id}).",
                {"item": item_id, "field": field_name},
            )
        return CompositeTerm(
            (
                ("value", bind_text(term.text, params, item_id)),
                ("min", config.DEFAULT_MIN_TERM),
                ("max", config.DEFAULT_MAX_TERM),
            )
        )
    unknown = sorted(set(term.keys()) - allowed)
    if unknown:
        raise ConfigurationError(
            "UNKNOWN_TERM",
            f"Unrecognized query sub-term(s) {unknown} (on item {item_id}).",
            {"item": item_id, "field": field_name, "terms": unknown},
        )
    return bind_term(term, params, item_id)


def item_query_term(reference, templates: Mapping, params: Mapping, item_id=None) -> str:
    term = term_from_raw(dereference(reference, templates, "itemQueryTemplates", item_id), item_id)
    if not isinstance(term, SimpleTerm):
        raise ConfigurationError(
            "INVALID_SPEC",
            f"Item-generating queries must be a single term (on item {item_id}).",
            {"item": item_id},
        )
    return bind_text(term.text, params, item_id)
