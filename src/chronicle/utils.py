import json
from pathlib import Path

from . import config


def is_qid(value):
    """Return True if the value looks like a Wikidata item id (Q*)."""
    if not isinstance(value, str):
        return False
    return bool(config.QID_EXACT_PATTERN.fullmatch(value.strip()))


def extract_qid_from_url(url):
    """Return the trailing path segment of an entity URI (http://www.wikidata.org/entity/Q42 -> Q42)."""
    if not isinstance(url, str):
        return url
    return url.rsplit("/", 1)[-1]


def canonicalize(obj):
    """Stable JSON text used for signatures and cache keys."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def read_json(path):
    """Read JSON from disk and return the decoded payload."""
    with open(Path(path), "r", encoding="utf-8") as fh:
        return json.load(fh)


def ensure_parent_dir(path):
    """Create the directory that will hold the given file."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def write_json(path, payload, indent="\t"):
    """Write a JSON document, creating parent directories as needed."""
    ensure_parent_dir(path)
    with open(Path(path), "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=indent, ensure_ascii=False)
        fh.write("\n")
