import logging

from .bundling import QueryBundler, validate_item_terms
from .expander import expand_items
from .identity import IdentityAssigner
from .output import produce_output, write_output
from .resolver import RangeResolver
from .utils import write_json

logger = logging.getLogger(__name__)


def resolve_timeline(spec, ctx):
    """Run expansion, id assignment, bundled queries and range resolution; returns segments."""
    assigner = IdentityAssigner()
    # Configuration problems must surface before the first request.
    assigner.check_explicit_ids(spec.items)
    validate_item_terms(spec.items, ctx)

    items = expand_items(spec.items, ctx)
    assigner.assign(items)
    items = QueryBundler(ctx, assigner).run(items)
    ctx.stats["items"] += len(items)

    resolver = RangeResolver(now=ctx.now, stats=ctx.stats)
    segments = []
    for item in items:
        segments.extend(resolver.resolve(item, ctx.expectations.lookup(item)))
    ctx.stats["segments"] += len(segments)
    return segments


def run_timeline(spec, ctx, output_path, summary_path=None):
    """Build and write the timeline; the query cache is flushed whether or not the build succeeds."""
    try:
        segments = resolve_timeline(spec, ctx)
        document = produce_output(segments, groups=spec.groups, options=spec.options)
        write_output(output_path, document)
        logger.info("[+] Timeline complete. Wrote %s segments to %s.", len(segments), output_path)
        return document
    finally:
        ctx.cache.flush()
        if summary_path:
            write_json(summary_path, ctx.summary(), indent=2)
