import unittest

from chronicle.errors import DATA_GAP
from chronicle.models import DurationExpectation, ItemDescriptor
from chronicle.resolver import RangeResolver, TemporalBounds, estimate_end
from chronicle.timepoint import Duration, TimePoint

NOW = TimePoint(2026, 10, 19)
TWO_YEARS = DurationExpectation.from_raw({"avg": "P2Y"})
LIFESPAN = DurationExpectation.from_raw({"avg": "P75Y", "max": "P122Y"})


def day(year, month=1, dom=1):
    return {"value": f"+{year:06d}-{month:02d}-{dom:02d}T00:00:00Z", "precision": 11}


def item(**fields):
    fields.setdefault("id", "A")
    return ItemDescriptor.from_dict(fields)


class ResolverTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = {}
        self.resolver = RangeResolver(now=NOW, stats=self.stats)

    def resolve(self, expectation=TWO_YEARS, **fields):
        return self.resolver.resolve(item(**fields), expectation)

    def assertWellFormed(self, segments) -> None:
        for segment in segments:
            if segment.end is not None:
                self.assertLessEqual(segment.start, segment.end, segment.id)


class OpenEndedTests(ResolverTestCase):
    def test_start_only_long_ago_closes_after_average(self) -> None:
        segments = self.resolve(start={"value": "+001999-01-01T00:00:00", "precision": 11})
        main, tail = segments
        self.assertEqual(main.id, "A")
        self.assertEqual(main.start, TimePoint(1999, 1, 1))
        self.assertEqual(main.end, TimePoint(2001, 1, 1))
        self.assertEqual(tail.id, "A-tail")
        self.assertEqual(tail.start, main.end)
        self.assertGreaterEqual(tail.end - tail.start, Duration(years=0.5) - Duration(seconds=1))
        self.assertIn("has-tail", main.class_name)
        self.assertIn("connects-right", main.class_name)
        self.assertEqual(tail.class_name, "tail")
        self.assertWellFormed(segments)

    def test_start_only_recent_runs_until_now(self) -> None:
        main, tail = self.resolve(start=day(2025))
        self.assertEqual(main.end, NOW)
        self.assertGreaterEqual(tail.end - tail.start, Duration(years=0.5) - Duration(seconds=1))

    def test_max_duration_decides_whether_still_running(self) -> None:
        main, _ = self.resolve(expectation=LIFESPAN, start=day(1950))
        self.assertEqual(main.end, NOW)
        main, _ = self.resolve(expectation=LIFESPAN, start=day(1850))
        self.assertEqual(main.end, TimePoint(1925))

    def test_tail_covers_remaining_average(self) -> None:
        end, tail_end = estimate_end(TimePoint(2026), LIFESPAN, NOW)
        self.assertEqual(end, NOW)
        self.assertGreater(tail_end, TimePoint(2090))

    def test_end_only_opens_left(self) -> None:
        segments = self.resolve(end=day(2000))
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].start, TimePoint(1998))
        self.assertEqual(segments[0].end, TimePoint(2000))
        self.assertIn("open-left", segments[0].class_name)


class UncertaintyTests(ResolverTestCase):
    def test_uncertain_start_connector_meets_main_segment(self) -> None:
        segments = self.resolve(startMin=day(1990), start=day(1995), end=day(2000))
        main, connector = segments
        self.assertEqual(main.start, TimePoint(1995))
        self.assertEqual(main.end, TimePoint(2000))
        self.assertEqual(connector.id, "A-uncertain-start")
        self.assertEqual(connector.start, TimePoint(1990))
        self.assertEqual(connector.end, main.start)
        self.assertIn("connects-left", main.class_name)
        self.assertWellFormed(segments)

    def test_uncertain_end_connector_starts_at_main_end(self) -> None:
        segments = self.resolve(start=day(1990), endMin=day(2000), endMax=day(2005))
        main, connector = segments
        self.assertEqual(main.end, TimePoint(2000))
        self.assertEqual(connector.id, "A-uncertain-end")
        self.assertEqual(connector.start, main.end)
        self.assertEqual(connector.end, TimePoint(2005))
        self.assertEqual(connector.class_name, "uncertain-end")
        self.assertWellFormed(segments)

    def test_overlapping_bounds_give_one_uncertain_segment(self) -> None:
        segments = self.resolve(startMin=day(1990), startMax=day(2005), endMin=day(2000), endMax=day(2010))
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].id, "A")
        self.assertEqual(segments[0].start, TimePoint(1990))
        self.assertEqual(segments[0].end, TimePoint(2010))
        self.assertEqual(segments[0].class_name, "uncertain")
        self.assertEqual(self.stats["fully_uncertain"], 1)

    def test_inconsistent_start_bounds_stay_ordered(self) -> None:
        late_earliest = self.resolve(startMin=day(2010), start=day(2000), end=day(2005))
        self.assertWellFormed(late_earliest)
        self.assertEqual([(s.start, s.end) for s in late_earliest], [(TimePoint(2000), TimePoint(2005))])
        self.assertEqual(late_earliest[0].class_name, "uncertain")

        early_latest = self.resolve(startMax=day(1995), start=day(2010), end=day(2005))
        self.assertWellFormed(early_latest)
        self.assertEqual([(s.start, s.end) for s in early_latest], [(TimePoint(1995), TimePoint(2005))])

    def test_inconsistent_bounds_without_overlap_keep_connector(self) -> None:
        segments = self.resolve(startMin=day(1995), start=day(1990), end=day(2005))
        self.assertWellFormed(segments)
        main, connector = segments
        self.assertEqual(connector.start, TimePoint(1990))
        self.assertEqual(connector.end, TimePoint(1995))
        self.assertEqual(main.start, TimePoint(1995))

    def test_bounds_fall_back_to_each_other(self) -> None:
        bounds = TemporalBounds.from_item(item(startMax=day(1990)))
        self.assertEqual(bounds.start_range(), (TimePoint(1990), TimePoint(1990)))
        self.assertEqual(bounds.end_range(), (None, None))

    def test_coarse_precision_is_normalized_first(self) -> None:
        segments = self.resolve(
            start={"value": "+1987-00-00T00:00:00Z", "precision": 8},
            end={"value": "+2004-05-06T00:00:00Z", "precision": 9},
        )
        self.assertEqual(segments[0].start, TimePoint(1990))
        self.assertEqual(segments[0].end, TimePoint(2004))


class SegmentShapeTests(ResolverTestCase):
    def test_main_segment_carries_item_attributes(self) -> None:
        main, tail = self.resolve(
            start=day(1999),
            entity="Q42",
            label="Douglas",
            className="person",
            group="authors",
            comment="note",
        )
        self.assertEqual(main.content, "Douglas")
        self.assertEqual(main.class_name, "person connects-right has-tail")
        self.assertEqual(main.subgroup, "Q42")
        self.assertEqual(main.comment, "note")
        self.assertEqual(tail.content, "")
        self.assertEqual(tail.type, "range")
        self.assertIsNone(tail.comment)
        self.assertEqual(tail.class_name, "person tail")

    def test_no_temporal_data_is_dropped_and_counted(self) -> None:
        with self.assertLogs("chronicle.resolver", level="WARNING"):
            segments = self.resolve(entity="Q1")
        self.assertEqual(segments, [])
        self.assertEqual(self.stats[DATA_GAP], 1)

    def test_point_items_have_no_end(self) -> None:
        segments = self.resolve(type="point", start=day(2000), end=day(2001))
        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].start, TimePoint(2000))
        self.assertIsNone(segments[0].end)
        self.assertEqual(segments[0].type, "point")

    def test_other_types_keep_their_end(self) -> None:
        segments = self.resolve(type="background", start=day(2000), end=day(2001))
        self.assertEqual(segments[0].end, TimePoint(2001))
        self.assertEqual(segments[0].to_output()["type"], "background")

    def test_output_shape(self) -> None:
        main, _ = self.resolve(start=day(1999), label="X", group="g")
        output = main.to_output()
        self.assertEqual(output["start"], "+001999-01-01T00:00:00")
        self.assertEqual(output["end"], "+002001-01-01T00:00:00")
        self.assertEqual(output["group"], "g")
        self.assertNotIn("subgroup", output)
        self.assertNotIn("comment", output)


if __name__ == "__main__":
    unittest.main()
