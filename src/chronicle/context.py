from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict

from . import config
from .caching import TemporalValueCache
from .client import SparqlClient
from .expectations import ExpectationTable
from .timepoint import TimePoint


@dataclass
class RunContext:
    """Everything one timeline build needs; passed explicitly to each stage."""

    query_templates: Dict[str, Any]
    item_query_templates: Dict[str, Any]
    expectations: ExpectationTable
    cache: TemporalValueCache = field(default_factory=TemporalValueCache)
    client: SparqlClient = field(default_factory=SparqlClient)
    lang: str = config.DEFAULT_LANG
    now: TimePoint = field(default_factory=TimePoint.now)
    show_progress: bool = False
    stats: Counter = field(default_factory=Counter)

    @classmethod
    def for_spec(cls, spec, **kwargs):
        return cls(
            query_templates=spec.query_templates,
            item_query_templates=spec.item_query_templates,
            expectations=spec.expectations,
            **kwargs,
        )

    def summary(self):
        """Flat run counters for the summary file."""
        summary = {"run_id": config.RUN_ID}
        summary.update(self.stats)
        summary.update({f"cache_{key}": value for key, value in self.cache.stats.items()})
        summary.update(self.client.stats)
        return summary
