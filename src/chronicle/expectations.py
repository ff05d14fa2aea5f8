from .errors import ConfigurationError
from .models import ATTRIBUTE_KEYS, EXPECTATION_QUERY_FIELDS, DurationExpectation


def _parse_expectation(raw, where):
    try:
        return DurationExpectation.from_raw(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("INVALID_SPEC", f"Invalid duration expectation ({where}): {exc}", {"entry": raw})


class ExpectationTable:
    """
    Ordered duration-expectation table matched against an item's query references.

    An entry matches when every query field it declares equals the item's; the
    first match wins. An entry declaring no query fields matches everything and
    must be present.
    """

    def __init__(self, entries):
        self.entries = []
        has_wildcard = False
        for index, entry in enumerate(entries or []):
            if not isinstance(entry, dict) or not isinstance(entry.get("duration"), dict):
                raise ConfigurationError(
                    "INVALID_SPEC",
                    f"Expectation #{index} needs a 'duration' object.",
                    {"entry": entry},
                )
            match = {
                attr: entry[ATTRIBUTE_KEYS[attr]]
                for attr in EXPECTATION_QUERY_FIELDS
                if entry.get(ATTRIBUTE_KEYS[attr]) is not None
            }
            has_wildcard = has_wildcard or not match
            self.entries.append((match, _parse_expectation(entry["duration"], f"expectation #{index}")))
        if not has_wildcard:
            raise ConfigurationError(
                "MISSING_EXPECTATION",
                "The expectation table has no universal entry (one without query fields).",
            )

    def lookup(self, item):
        """Return the item's override or the first matching table entry."""
        if item.expected_duration:
            return _parse_expectation(item.expected_duration, f"item {item.id}")
        for match, expectation in self.entries:
            if all(getattr(item, attr) == value for attr, value in match.items()):
                return expectation
        raise RuntimeError(f"No duration expectation matched item {item.id}; the universal entry is missing.")
