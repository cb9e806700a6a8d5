"""
Tests for adjacent-pair conflict detection and the annotated row builder.
"""

from __future__ import annotations

import unittest

from notchly.conflicts import build_event_rows, detect_conflicts
from notchly.models import ConflictPair, ConflictRow, EventRow

from .test_common import at, make_event


class TestDetectConflicts(unittest.TestCase):

    def test_overlapping_pair_detected(self):
        a = make_event("A", at(9, 0), at(9, 30))
        b = make_event("B", at(9, 15), at(9, 45))
        c = make_event("C", at(10, 0), at(10, 30))

        report = detect_conflicts([a, b, c])

        self.assertEqual(report.conflicting_ids, frozenset({"A", "B"}))
        self.assertEqual(report.pairs, (ConflictPair("A", "B", at(9, 15), at(9, 30)),))

    def test_input_order_does_not_matter(self):
        a = make_event("A", at(9, 0), at(9, 30))
        b = make_event("B", at(9, 15), at(9, 45))
        c = make_event("C", at(10, 0), at(10, 30))

        report = detect_conflicts([c, b, a])

        self.assertEqual(report.pairs, (ConflictPair("A", "B", at(9, 15), at(9, 30)),))

    def test_all_day_event_never_conflicts(self):
        all_day = make_event("day", at(0, 0), at(0, 0, days=1), is_all_day=True)
        timed = make_event("T", at(9, 0), at(10, 0))

        report = detect_conflicts([all_day, timed])

        self.assertEqual(report.conflicting_ids, frozenset())
        self.assertEqual(report.pairs, ())

    def test_back_to_back_events_do_not_conflict(self):
        a = make_event("A", at(9, 0), at(9, 30))
        b = make_event("B", at(9, 30), at(10, 0))

        self.assertEqual(detect_conflicts([a, b]).pairs, ())

    def test_chain_reported_as_separate_pairs(self):
        a = make_event("A", at(9, 0), at(9, 40))
        b = make_event("B", at(9, 30), at(10, 10))
        c = make_event("C", at(10, 0), at(10, 30))

        report = detect_conflicts([a, b, c])

        self.assertEqual([(p.event_id_a, p.event_id_b) for p in report.pairs], [("A", "B"), ("B", "C")])
        self.assertEqual(report.conflicting_ids, frozenset({"A", "B", "C"}))

    def test_non_adjacent_overlap_is_not_reported(self):
        # A overlaps C, but B sits between them in start order
        a = make_event("A", at(9, 0), at(11, 0))
        b = make_event("B", at(9, 30), at(10, 15))
        c = make_event("C", at(10, 30), at(10, 45))

        report = detect_conflicts([a, b, c])

        self.assertEqual([(p.event_id_a, p.event_id_b) for p in report.pairs], [("A", "B")])
        self.assertNotIn("C", report.conflicting_ids)

    def test_equal_starts_keep_source_order(self):
        first = make_event("first", at(9, 0), at(10, 0))
        second = make_event("second", at(9, 0), at(9, 30))

        report = detect_conflicts([first, second])

        self.assertEqual(report.pairs[0].event_id_a, "first")
        self.assertEqual(report.pairs[0].overlap_end, at(9, 30))

    def test_zero_length_event_yields_no_pair(self):
        a = make_event("A", at(9, 0), at(10, 0))
        marker = make_event("M", at(9, 30), at(9, 30))

        self.assertEqual(detect_conflicts([a, marker]).pairs, ())

    def test_local_times_compare_with_offset_times(self):
        # wall-clock local times, as a feed without offsets would carry them
        start = at(9, 0).astimezone().replace(tzinfo=None)
        end = at(9, 30).astimezone().replace(tzinfo=None)
        local = make_event("local", start, end)
        aware = make_event("aware", at(9, 15), at(9, 45))

        report = detect_conflicts([aware, local])

        self.assertEqual(report.pairs, (ConflictPair("local", "aware", at(9, 15), at(9, 30)),))

    def test_empty_and_single(self):
        self.assertEqual(detect_conflicts([]).pairs, ())
        self.assertEqual(detect_conflicts([make_event("A", at(9))]).conflicting_ids, frozenset())


class TestBuildEventRows(unittest.TestCase):

    def test_conflict_row_follows_earlier_event(self):
        a = make_event("A", at(9, 0), at(9, 30))
        b = make_event("B", at(9, 15), at(9, 45))
        c = make_event("C", at(10, 0), at(10, 30))

        rows = build_event_rows([c, a, b])

        self.assertEqual(
            rows,
            [
                EventRow(a),
                ConflictRow(ConflictPair("A", "B", at(9, 15), at(9, 30))),
                EventRow(b),
                EventRow(c),
            ],
        )

    def test_all_day_events_listed_without_annotation(self):
        all_day = make_event("day", at(0, 0), at(0, 0, days=1), is_all_day=True)
        timed = make_event("T", at(9, 0), at(10, 0))

        rows = build_event_rows([timed, all_day])

        self.assertEqual(rows, [EventRow(all_day), EventRow(timed)])
        self.assertFalse(any(isinstance(row, ConflictRow) for row in rows))
