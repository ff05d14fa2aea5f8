#!/usr/bin/env python3
"""
build_timeline.py: produce a vis.js Timeline data file from a timeline spec.

Reads:
  - SPEC (JSON): items, query templates, expectations, groups, options
  - intermediate/wikidata-term-cache.json (query cache, optional)

Writes:
  - OUTPUT (default intermediate/timeline.json)
  - the query cache, always, even when the build fails
"""

import argparse
import logging
import sys

from chronicle import config
from chronicle.caching import TemporalValueCache, open_cache_store
from chronicle.client import SparqlClient
from chronicle.context import RunContext
from chronicle.errors import ChronicleError
from chronicle.spec_loader import load_spec
from chronicle.timeline import run_timeline

logger = logging.getLogger("build_timeline")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Build a vis.js timeline from Wikidata time statements.")
    parser.add_argument("spec", help="Path to the timeline specification JSON file.")
    parser.add_argument(
        "output",
        nargs="?",
        default=str(config.DEFAULT_OUTPUT_FILE),
        help=f"Output file (default: {config.DEFAULT_OUTPUT_FILE}).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every query sent to the endpoint.")
    parser.add_argument(
        "--skip-wd-cache",
        action="store_true",
        help="Ignore cached query results (fresh results are still written back).",
    )
    parser.add_argument(
        "-q",
        "--query-url",
        default=config.SPARQL_ENDPOINT,
        help=f"SPARQL endpoint (default: {config.SPARQL_ENDPOINT}).",
    )
    parser.add_argument("--lang", default=config.DEFAULT_LANG, help="Label languages for generated items.")
    parser.add_argument(
        "--cache-file",
        default=str(config.DEFAULT_CACHE_FILE),
        help="Query cache location; .sqlite/.db selects the SQLite store.",
    )
    parser.add_argument("--summary", default=None, help="Optional path for a JSON run summary.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    store = None
    try:
        spec = load_spec(args.spec)
        store = open_cache_store(args.cache_file)
        ctx = RunContext.for_spec(
            spec,
            cache=TemporalValueCache(store, skip_cache=args.skip_wd_cache),
            client=SparqlClient(endpoint=args.query_url, verbose=args.verbose),
            lang=args.lang,
            show_progress=sys.stderr.isatty(),
        )
        run_timeline(spec, ctx, args.output, summary_path=args.summary)
    except ChronicleError as exc:
        logger.error("[!] %s", exc)
        return 1
    finally:
        if store is not None:
            store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
