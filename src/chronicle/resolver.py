"""
Range resolution: turns normalized time points, uncertainty bounds and
duration expectations into the segments drawn on the timeline.

A range item resolves to a confident main segment plus optional fringes:
connector segments covering the span between a bound and the confident
value, and a tail projecting an open-ended interval past its estimated end.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from . import config
from .errors import DATA_GAP
from .models import RANGE_TYPES, ResolvedSegment
from .timepoint import TimePoint, normalize_time

logger = logging.getLogger(__name__)

TAG_UNCERTAIN = "uncertain"
TAG_UNCERTAIN_START = "uncertain-start"
TAG_UNCERTAIN_END = "uncertain-end"
TAG_TAIL = "tail"
TAG_CONNECTS_LEFT = "connects-left"
TAG_CONNECTS_RIGHT = "connects-right"
TAG_HAS_TAIL = "has-tail"
TAG_OPEN_LEFT = "open-left"


def _normalize(temporal_value):
    if temporal_value is None:
        return None
    return normalize_time(temporal_value.value, temporal_value.precision)


def _first(*points):
    for point in points:
        if point is not None:
            return point
    return None


def _span(*points):
    """Earliest and latest of the known points; inconsistent bounds widen the span."""
    known = [point for point in points if point is not None]
    if not known:
        return None, None
    return min(known), max(known)


@dataclass(frozen=True)
class TemporalBounds:
    start: Optional[TimePoint] = None
    start_min: Optional[TimePoint] = None
    start_max: Optional[TimePoint] = None
    end: Optional[TimePoint] = None
    end_min: Optional[TimePoint] = None
    end_max: Optional[TimePoint] = None

    @classmethod
    def from_item(cls, item):
        return cls(
            start=_normalize(item.start),
            start_min=_normalize(item.start_min),
            start_max=_normalize(item.start_max),
            end=_normalize(item.end),
            end_min=_normalize(item.end_min),
            end_max=_normalize(item.end_max),
        )

    def is_empty(self):
        return all(
            point is None
            for point in (self.start, self.start_min, self.start_max, self.end, self.end_min, self.end_max)
        )

    def start_range(self):
        """(lower, upper) of the start; bounds default to the point and to each other."""
        return _span(self.start_min, self.start, self.start_max)

    def end_range(self):
        return _span(self.end_min, self.end, self.end_max)


def join_classes(*names):
    return " ".join(name for name in names if name)


def estimate_end(anchor, expectation, now):
    """
    Guess the end of an interval known only by its start; returns (end, tail_end).

    If even the maximum expected duration has elapsed the interval is taken as
    closed after the average duration, otherwise as still running.
    """
    use_max = expectation.max if expectation.max is not None else expectation.avg * config.MAX_DURATION_FACTOR
    if anchor + use_max < now:
        end = anchor + expectation.avg
    else:
        end = max(now, anchor)
    elapsed = end - anchor
    excess = max(expectation.avg - elapsed, expectation.avg * config.TAIL_MIN_FRACTION)
    return end, end + excess


class RangeResolver:
    """Resolves items into segments; ``now`` anchors ongoing intervals."""

    def __init__(self, now=None, stats=None):
        self.now = now or TimePoint.now()
        self.stats = stats if stats is not None else {}

    def _segment(self, item, start, end, tags=(), segment_id=None, content=None, segment_type=None):
        auxiliary = segment_id is not None
        return ResolvedSegment(
            id=segment_id or item.id,
            start=start,
            end=end,
            content=(item.label or "") if content is None else content,
            class_name=join_classes(item.class_name, *tags),
            group=item.group,
            subgroup=item.subgroup if item.subgroup is not None else item.entity,
            type=segment_type or item.type,
            comment=None if auxiliary else item.comment,
        )

    def _auxiliary(self, item, suffix, start, end, tag):
        return self._segment(item, start, end, (tag,), segment_id=f"{item.id}-{suffix}", content="", segment_type="range")

    def _count(self, key):
        self.stats[key] = self.stats.get(key, 0) + 1

    def resolve(self, item, expectation):
        bounds = TemporalBounds.from_item(item)
        if bounds.is_empty():
            logger.warning("[!] Item %s has no temporal data; dropping it.", item.id)
            self._count(DATA_GAP)
            return []
        start_lo, start_hi = bounds.start_range()
        end_lo, end_hi = bounds.end_range()

        # Start and end overlap: only the whole envelope is known.
        if start_hi is not None and end_lo is not None and start_hi >= end_lo:
            first, last = sorted((start_lo, end_hi))
            self._count("fully_uncertain")
            return [self._segment(item, first, last, (TAG_UNCERTAIN,))]

        if item.type not in RANGE_TYPES:
            return [self._resolve_plain(item, bounds)]

        segments = []
        main_tags = []

        if end_lo is not None and end_lo < end_hi:
            connector_start = end_lo if start_hi is None else max(end_lo, start_hi)
            main_end = connector_start
            segments.append(self._auxiliary(item, "uncertain-end", connector_start, end_hi, TAG_UNCERTAIN_END))
            main_tags.append(TAG_CONNECTS_RIGHT)
        elif end_lo is None:
            main_end, tail_end = estimate_end(start_hi, expectation, self.now)
            segments.append(self._auxiliary(item, "tail", main_end, tail_end, TAG_TAIL))
            main_tags.extend((TAG_CONNECTS_RIGHT, TAG_HAS_TAIL))
        else:
            main_end = end_lo

        if start_lo is not None and start_lo < start_hi:
            main_start = min(start_hi, main_end)
            segments.insert(0, self._auxiliary(item, "uncertain-start", start_lo, main_start, TAG_UNCERTAIN_START))
            main_tags.append(TAG_CONNECTS_LEFT)
        elif start_lo is None:
            main_start = main_end - expectation.avg
            main_tags.append(TAG_OPEN_LEFT)
        else:
            main_start = start_lo

        return [self._segment(item, main_start, main_end, main_tags)] + segments

    def _resolve_plain(self, item, bounds):
        start_lo, _ = bounds.start_range()
        end_lo, end_hi = bounds.end_range()
        start = _first(bounds.start, start_lo, bounds.end, end_lo)
        end = None
        if item.type != "point":
            end = _first(bounds.end, end_hi)
            if end is not None and end < start:
                end = None
        return self._segment(item, start, end)
