import logging

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def ensure_unique_ids(items):
    """Validate that explicit item ids are unique and return them as a set."""
    seen = set()
    duplicates = set()
    for item in items:
        if not item.id:
            continue
        if item.id in seen:
            duplicates.add(item.id)
        else:
            seen.add(item.id)
    if duplicates:
        for duplicate in sorted(duplicates):
            logger.error("[!] Item id '%s' appears multiple times.", duplicate)
        raise ConfigurationError(
            "DUPLICATE_ID",
            f"Duplicate item ids detected: {sorted(duplicates)}",
            {"ids": sorted(duplicates)},
        )
    return seen


class IdentityAssigner:
    """Keeps item ids globally unique across explicit, generated and cloned items."""

    def __init__(self):
        self.ids = set()

    def check_explicit_ids(self, items):
        self.ids = ensure_unique_ids(items)
        return self.ids

    def next_free_id(self, base, start=1):
        """Reserve and return the first free ``<base>-<n>`` with n >= start."""
        index = start
        while f"{base}-{index}" in self.ids:
            index += 1
        new_id = f"{base}-{index}"
        self.ids.add(new_id)
        return new_id

    def assign(self, items):
        """Re-check explicit ids, then give every id-less item a generated one."""
        self.ids = ensure_unique_ids(items)
        for item in items:
            if not item.id:
                item.id = self.next_free_id(item.entity or "anonymous")
        return items
