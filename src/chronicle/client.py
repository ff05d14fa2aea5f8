import logging
import time

import requests

from . import config
from .errors import TransportError

logger = logging.getLogger(__name__)


class SparqlClient:
    """POSTs SPARQL queries to the query service and returns the decoded JSON results."""

    def __init__(
        self,
        endpoint=config.SPARQL_ENDPOINT,
        headers=None,
        timeout=config.API_TIMEOUT,
        max_retries=config.MAX_RETRIES,
        verbose=False,
    ):
        self.endpoint = endpoint
        self.headers = dict(headers or config.HEADERS)
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.verbose = verbose
        self.stats = {"network_calls": 0, "retries": 0}

    def run_query(self, query):
        """Return the parsed SPARQL JSON document; raise TransportError on any failure."""
        if self.verbose:
            logger.debug("%s", query)
        last_status = None
        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.endpoint,
                    data=query.encode("utf-8"),
                    headers=self.headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise TransportError(
                    "NETWORK",
                    f"Request to {self.endpoint} failed: {exc}",
                    {"endpoint": self.endpoint},
                ) from exc
            self.stats["network_calls"] += 1
            last_status = response.status_code
            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise TransportError(
                        "INVALID_RESPONSE",
                        f"Query service returned malformed JSON: {exc}",
                        {"endpoint": self.endpoint},
                    ) from exc
            if response.status_code in config.RETRY_STATUSES and attempt < self.max_retries - 1:
                sleep_for = self._retry_delay(response, attempt)
                logger.warning("[!] HTTP %s from query service. Sleeping %ss...", response.status_code, sleep_for)
                self.stats["retries"] += 1
                time.sleep(sleep_for)
                continue
            break
        raise TransportError(
            "HTTP_STATUS",
            f"Query service answered HTTP {last_status}.",
            {"endpoint": self.endpoint, "status": last_status},
        )

    @staticmethod
    def _retry_delay(response, attempt):
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return int(retry_after)
        return 2**attempt
