import itertools
import unittest
from datetime import datetime, timedelta, timezone

from events import (EventDetector, EventType, SearchConfig, calculate_event_duration,
                    find_optimal_event_time, refine_event)
from solarsystem import BodyCatalog, OrbitalMechanics

UTC = timezone.utc
ONE_DAY = timedelta(days=1)
VENUS_TRANSIT_2004 = datetime(2004, 6, 8, 8, 20, tzinfo=UTC)  # mid-transit
VENUS_SUPERIOR_CONJUNCTION_2005 = datetime(2005, 3, 31, tzinfo=UTC)
GREAT_CONJUNCTION_2020 = datetime(2020, 12, 21, tzinfo=UTC)


class DetectorTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.catalog = BodyCatalog.from_config()
        cls.detector = EventDetector(cls.catalog, OrbitalMechanics())


class TestTransit(DetectorTestCase):

    def test_venus_transit_2004(self):
        self.assertTrue(self.detector.is_transit('venus', VENUS_TRANSIT_2004, 1.0))
        angle, nearer = self.detector.transit_angle('venus', VENUS_TRANSIT_2004)
        self.assertLess(angle, 0.5)
        self.assertTrue(nearer)

    def test_strict_transit_uses_solar_radius(self):
        self.assertTrue(self.detector.is_transit('venus', VENUS_TRANSIT_2004, 0.0, strict=True))
        self.assertFalse(self.detector.is_transit('venus', VENUS_TRANSIT_2004, 1.0, strict=True,
                                                  solar_angular_radius_deg=0.01))

    def test_far_side_is_not_a_transit(self):
        angle, nearer = self.detector.transit_angle('venus', VENUS_SUPERIOR_CONJUNCTION_2005)
        self.assertLess(angle, 5.0)
        self.assertFalse(nearer)
        self.assertFalse(self.detector.is_transit('venus', VENUS_SUPERIOR_CONJUNCTION_2005, 5.0))

    def test_outer_planet_never_transits(self):
        self.assertFalse(self.detector.is_transit('mars', VENUS_TRANSIT_2004, 180.0))

    def test_monotone_in_tolerance(self):
        dates = [VENUS_TRANSIT_2004, VENUS_TRANSIT_2004 + 2 * ONE_DAY, datetime(2012, 6, 6, 1, 30, tzinfo=UTC),
                 VENUS_SUPERIOR_CONJUNCTION_2005, datetime(2019, 11, 11, 15, 20, tzinfo=UTC)]
        tolerances = [0.05, 0.2, 0.5, 1.0, 2.0, 5.0, 20.0, 90.0]
        for body_id in ('mercury', 'venus', 'mars'):
            for date in dates:
                results = [self.detector.is_transit(body_id, date, tol) for tol in tolerances]
                # Once true, stays true for every larger tolerance
                self.assertEqual(results, sorted(results), msg=f"{body_id} {date}")

    def test_observer_never_transits_itself(self):
        angle, nearer = self.detector.transit_angle('earth', VENUS_TRANSIT_2004)
        self.assertEqual(angle, 0.0)
        self.assertFalse(nearer)
        for tolerance in (0.0, 1.0, 180.0):
            self.assertFalse(self.detector.is_transit('earth', VENUS_TRANSIT_2004, tolerance))
        self.assertFalse(self.detector.is_transit('earth', VENUS_TRANSIT_2004, 1.0, strict=True))


class TestAlignment(DetectorTestCase):

    def test_great_conjunction_2020(self):
        self.assertTrue(self.detector.check_alignment(GREAT_CONJUNCTION_2020, ['jupiter', 'saturn'], 2.0))

    def test_spread_planets_not_aligned(self):
        self.assertFalse(self.detector.check_alignment(datetime(2010, 6, 1, tzinfo=UTC), ['jupiter', 'saturn'], 10.0))

    def test_needs_two_targets(self):
        self.assertFalse(self.detector.check_alignment(GREAT_CONJUNCTION_2020, ['jupiter'], 360.0))

    def test_invariant_under_permutation(self):
        targets = ['mercury', 'venus', 'mars', 'jupiter']
        for date in (GREAT_CONJUNCTION_2020, datetime(1987, 3, 14, tzinfo=UTC), datetime(2040, 9, 8, tzinfo=UTC)):
            for tolerance in (10.0, 60.0, 120.0, 200.0):
                expected = self.detector.check_alignment(date, targets, tolerance)
                for perm in itertools.permutations(targets):
                    self.assertEqual(self.detector.check_alignment(date, list(perm), tolerance), expected)

    def test_metric_invariant_under_permutation(self):
        search = SearchConfig(EventType.PLANETARY_ALIGNMENT, ('mars', 'jupiter', 'saturn'), tolerance_deg=10.0)
        reordered = SearchConfig(EventType.PLANETARY_ALIGNMENT, ('saturn', 'mars', 'jupiter'), tolerance_deg=10.0)
        self.assertAlmostEqual(self.detector.alignment_metric(search, GREAT_CONJUNCTION_2020),
                               self.detector.alignment_metric(reordered, GREAT_CONJUNCTION_2020))
        self.assertEqual(search.guard_key, reordered.guard_key)


class TestEventDuration(unittest.TestCase):

    def setUp(self):
        self.center = datetime(2030, 5, 5, 6, 0, tzinfo=UTC)
        self.lo = self.center - timedelta(days=3, hours=5)
        self.hi = self.center + timedelta(days=6, hours=1)
        self.predicate = lambda d: self.lo <= d <= self.hi

    def test_expands_to_predicate_edges(self):
        window = calculate_event_duration(self.center, self.predicate)
        self.assertFalse(window.capped)
        self.assertLessEqual(window.start, self.center)
        self.assertLessEqual(self.center, window.end)
        self.assertTrue(self.predicate(window.start))
        self.assertTrue(self.predicate(window.end))
        self.assertFalse(self.predicate(window.start - ONE_DAY))
        self.assertFalse(self.predicate(window.end + ONE_DAY))
        self.assertEqual(window.start, self.center - 3 * ONE_DAY)
        self.assertEqual(window.end, self.center + 6 * ONE_DAY)

    def test_single_day_event(self):
        window = calculate_event_duration(self.center, lambda d: d == self.center)
        self.assertEqual(window.start, self.center)
        self.assertEqual(window.end, self.center)

    def test_expansion_cap_bounds_pathological_predicate(self):
        window = calculate_event_duration(self.center, lambda d: True, cap_days=5)
        self.assertTrue(window.capped)
        self.assertEqual(window.start, self.center - 5 * ONE_DAY)
        self.assertEqual(window.end, self.center + 5 * ONE_DAY)


class TestOptimalEventTime(unittest.TestCase):

    def setUp(self):
        self.start = datetime(2030, 1, 1, tzinfo=UTC)
        self.end = self.start + timedelta(days=10)

    def test_finds_minimum_of_unimodal_metric(self):
        target = self.start + timedelta(days=6, hours=7)
        metric = lambda d: abs((d - target).total_seconds()) / 3600.0
        best, value = find_optimal_event_time(self.start, self.end, metric)
        self.assertLess(abs((best - target).total_seconds()), 3600.0)
        self.assertAlmostEqual(value, metric(best))

    def test_never_worse_than_endpoints(self):
        metrics = [
            lambda d: (d - self.start).total_seconds(),
            lambda d: (self.end - d).total_seconds(),
            # Two separated dips
            lambda d: min(abs((d - self.start).days - 2), abs((d - self.start).days - 8) - 0.5),
        ]
        for metric in metrics:
            best, value = find_optimal_event_time(self.start, self.end, metric)
            self.assertLessEqual(value, metric(self.start))
            self.assertLessEqual(value, metric(self.end))
            self.assertLessEqual(self.start, best)
            self.assertLessEqual(best, self.end)

    def test_zero_length_window(self):
        best, value = find_optimal_event_time(self.start, self.start, lambda d: 4.2)
        self.assertEqual(best, self.start)
        self.assertEqual(value, 4.2)


class TestRefineEvent(DetectorTestCase):

    def test_venus_transit_refinement(self):
        search = SearchConfig(EventType.TRANSIT, ('venus',), tolerance_deg=1.0)
        event, window = refine_event(self.detector, search, VENUS_TRANSIT_2004)
        self.assertFalse(window.capped)
        self.assertLessEqual(event.start_date, event.optimal_date)
        self.assertLessEqual(event.optimal_date, event.end_date)
        self.assertTrue(self.detector.holds(search, event.optimal_date))
        self.assertLess(event.min_angle, 0.3)
        self.assertLess(abs((event.optimal_date - VENUS_TRANSIT_2004).total_seconds()), 12 * 3600)
        self.assertEqual(event.type, EventType.TRANSIT)
        self.assertEqual(event.target_ids, ('venus',))
        self.assertFalse(self.detector.holds(search, window.start - ONE_DAY))
        self.assertFalse(self.detector.holds(search, window.end + ONE_DAY))

    def test_event_ids_are_unique(self):
        search = SearchConfig(EventType.TRANSIT, ('venus',), tolerance_deg=1.0)
        first, _ = refine_event(self.detector, search, VENUS_TRANSIT_2004)
        second, _ = refine_event(self.detector, search, VENUS_TRANSIT_2004)
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(first.optimal_date, second.optimal_date)


if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
