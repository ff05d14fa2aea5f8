from __future__ import annotations

from typing import Any, Optional


class ChronicleError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigurationError(ChronicleError):
    """Problem with the input spec or packaged data; raised before network I/O where possible."""


class TransportError(ChronicleError):
    """The query service could not be reached or answered with a non-success status."""


# Recoverable per-item conditions; logged and counted, never raised.
DATA_GAP = "DATA_GAP"
AMBIGUOUS_RANK = "AMBIGUOUS_RANK"
