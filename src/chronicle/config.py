import re
from datetime import UTC, datetime
from importlib import metadata
from pathlib import Path

try:
    PACKAGE_VERSION = metadata.version("wikidata-chronicle")
except metadata.PackageNotFoundError:
    PACKAGE_VERSION = "0.0.0"

# HTTP identity and base endpoints
HEADERS = {
    "User-Agent": f"wikidata-chronicle/{PACKAGE_VERSION} (timeline builder; python-requests)",
    "Content-Type": "application/sparql-query",
    "Accept": "application/sparql-results+json",
}
SPARQL_ENDPOINT = "https://query.wikidata.org/sparql"
ENTITY_PAGE_URL = "https://www.wikidata.org/wiki/{qid}"
DEFAULT_LANG = "en,mul"

# Transport tuning knobs
API_TIMEOUT = 65  # Seconds per HTTP request (the public endpoint stops queries at 60s)
MAX_RETRIES = 4  # Attempts for rate-limited / overloaded responses
RETRY_STATUSES = {429, 500, 502, 503, 504}

# Statement ranks as returned by the query service
RANK_DEPRECATED = "http://wikiba.se/ontology#DeprecatedRank"
RANK_NORMAL = "http://wikiba.se/ontology#NormalRank"
RANK_PREFERRED = "http://wikiba.se/ontology#PreferredRank"

# Query variable names shared by the bundler and the expander
ENTITY_VAR = "_entity"
RANK_VAR = "_rank"
PROP_VAR = "_prop"
NODE_VAR = "_node"

# Qualifiers that bound an imprecise point value (earliest / latest date)
DEFAULT_MIN_TERM = "?_prop pqv:P1319 ?_min_value."
DEFAULT_MAX_TERM = "?_prop pqv:P1326 ?_max_value."

# Input/output locations
DEFAULT_OUTPUT_FILE = Path("intermediate/timeline.json")
DEFAULT_CACHE_FILE = Path("intermediate/wikidata-term-cache.json")
SQLITE_CACHE_SUFFIXES = {".sqlite", ".sqlite3", ".db"}
PACKAGE_DIR = Path(__file__).resolve().parent
GLOBAL_DATA_FILE = PACKAGE_DIR / "data" / "global_data.json"
SPEC_SCHEMA_FILE = PACKAGE_DIR / "schemas" / "timeline_spec.schema.json"

# Id validation patterns
QID_EXACT_PATTERN = re.compile(r"^Q\d+$")
PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Range shaping
TAIL_MIN_FRACTION = 0.25  # Tail never narrower than this share of the average duration
MAX_DURATION_FACTOR = 2  # Stand-in for a missing maximum duration (multiple of the average)

# Run logging
RUN_ID = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
