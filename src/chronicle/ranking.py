import logging

from . import config
from .errors import AMBIGUOUS_RANK

logger = logging.getLogger(__name__)


def binding_rank(binding):
    """Return the statement rank URI of a result row (rows without one count as normal)."""
    rank = binding.get(config.RANK_VAR)
    if isinstance(rank, dict):
        return rank.get("value") or config.RANK_NORMAL
    return rank or config.RANK_NORMAL


def not_deprecated(binding):
    return binding_rank(binding) != config.RANK_DEPRECATED


def is_preferred(binding):
    return binding_rank(binding) == config.RANK_PREFERRED


# Sequential filters narrowing competing rows down to the best ones; later filters win.
BINDING_FILTERS = (not_deprecated, is_preferred)


def filter_best_bindings(bindings, filters=BINDING_FILTERS):
    """Apply filters in order, stopping before any filter that would discard every row."""
    remaining = list(bindings)
    for predicate in filters:
        narrowed = [binding for binding in remaining if predicate(binding)]
        if not narrowed:
            break
        remaining = narrowed
    return remaining


def pick_best_binding(bindings, context_label=None, stats=None):
    """Return the single best row, warning when several remain equally preferred."""
    if not bindings:
        raise ValueError("pick_best_binding needs at least one binding.")
    if len(bindings) == 1:
        return bindings[0]
    best = filter_best_bindings(bindings)
    if len(best) > 1:
        logger.warning(
            "[!] %s: query returned %s equally-preferred values; using the first.",
            context_label or "entity",
            len(best),
        )
        if stats is not None:
            stats[AMBIGUOUS_RANK] = stats.get(AMBIGUOUS_RANK, 0) + 1
    return best[0]
