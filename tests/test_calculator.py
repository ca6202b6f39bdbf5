import unittest

from helpers import FakeTicks

from trafficmeter.calculator import NetworkCalculator, calculate_speed, counter_delta
from trafficmeter.clock import MAX_UINT32, MAX_UINT64, elapsed_seconds
from trafficmeter.schemas import AGGREGATE_NAME, InterfaceStats


class CounterDeltaTests(unittest.TestCase):
    """Wraparound arithmetic for byte counters and the tick clock"""

    def test_increasing_counter(self):
        self.assertEqual(counter_delta(100, 250), 150)
        self.assertEqual(counter_delta(7, 7), 0)

    def test_wraparound_at_boundary(self):
        self.assertEqual(counter_delta(MAX_UINT64, 0), 1)
        self.assertEqual(counter_delta(MAX_UINT64 - 9, 5), 15)

    def test_decrease_is_treated_as_overflow(self):
        # A driver reset is indistinguishable from a wrap and yields a huge delta.
        self.assertEqual(counter_delta(1000, 10), MAX_UINT64 - 1000 + 10 + 1)

    def test_tick_wraparound(self):
        self.assertEqual(elapsed_seconds(1000, 3000), 2.0)
        self.assertEqual(elapsed_seconds(MAX_UINT32 - 499, 500), 1.0)
        self.assertEqual(elapsed_seconds(MAX_UINT32, 0), 0.001)

    def test_speed_with_zero_interval(self):
        self.assertEqual(calculate_speed(1000, 0.0), 0.0)
        self.assertEqual(calculate_speed(1000, 2.0), 500.0)


class UpdateTests(unittest.TestCase):
    """Speed and peak derivation from successive readings"""

    def setUp(self):
        self.ticks = FakeTicks(start=0)
        self.calc = NetworkCalculator(self.ticks)
        self.stats = InterfaceStats(name="Ethernet")

    def test_first_update_bootstraps(self):
        self.assertTrue(self.calc.update(self.stats, 5_000_000, 1_000_000))
        self.assertEqual(self.stats.download_speed, 0.0)
        self.assertEqual(self.stats.upload_speed, 0.0)
        self.assertTrue(self.stats.is_active)
        self.assertEqual(self.stats.bytes_received, 5_000_000)
        self.assertEqual(self.stats.prev_bytes_received, 5_000_000)
        self.assertEqual(self.stats.last_update_ms, 0)

    def test_steady_state_speed(self):
        self.calc.update(self.stats, 1000, 500)
        self.ticks.advance(2000)
        self.assertTrue(self.calc.update(self.stats, 5000, 1500))
        self.assertEqual(self.stats.download_speed, 2000.0)
        self.assertEqual(self.stats.upload_speed, 500.0)
        self.assertEqual(self.stats.prev_bytes_received, 1000)
        self.assertEqual(self.stats.bytes_received, 5000)
        self.assertEqual(self.stats.peak_download_speed, 2000.0)

    def test_sub_threshold_interval_is_rejected(self):
        self.calc.update(self.stats, 1000, 500)
        self.ticks.advance(1000)
        self.calc.update(self.stats, 2000, 700)
        before = self.stats.model_dump()

        self.ticks.advance(50)
        self.assertFalse(self.calc.update(self.stats, 9000, 9000))
        self.assertEqual(self.stats.model_dump(), before)

    def test_exactly_minimum_interval_is_accepted(self):
        self.calc.update(self.stats, 0, 0)
        self.ticks.advance(100)
        self.assertTrue(self.calc.update(self.stats, 100, 50))
        self.assertAlmostEqual(self.stats.download_speed, 1000.0)

    def test_counter_wrap_during_update(self):
        self.calc.update(self.stats, MAX_UINT64 - 99, 0)
        self.ticks.advance(2000)
        self.assertTrue(self.calc.update(self.stats, 100, 0))
        self.assertEqual(self.stats.download_speed, 100.0)

    def test_clock_wrap_during_update(self):
        self.ticks.now = MAX_UINT32 - 499
        self.calc.update(self.stats, 0, 0)
        self.ticks.advance(1000)
        self.assertEqual(self.ticks.now, 500)
        self.assertTrue(self.calc.update(self.stats, 4000, 2000))
        self.assertEqual(self.stats.download_speed, 4000.0)

    def test_peak_never_decreases(self):
        self.calc.update(self.stats, 0, 0)
        self.ticks.advance(1000)
        self.calc.update(self.stats, 10_000, 4_000)
        self.ticks.advance(1000)
        self.calc.update(self.stats, 11_000, 4_100)
        self.assertEqual(self.stats.download_speed, 1000.0)
        self.assertEqual(self.stats.peak_download_speed, 10_000.0)
        self.assertEqual(self.stats.peak_upload_speed, 4_000.0)

    def test_reset_clears_speeds_and_peaks(self):
        self.calc.update(self.stats, 0, 0)
        self.ticks.advance(1000)
        self.calc.update(self.stats, 10_000, 4_000)
        self.ticks.advance(500)
        self.calc.reset(self.stats)
        self.assertEqual(self.stats.peak_download_speed, 0.0)
        self.assertEqual(self.stats.download_speed, 0.0)
        self.assertEqual(self.stats.prev_bytes_received, 10_000)
        self.assertEqual(self.stats.last_update_ms, self.ticks.now)


class AggregateTests(unittest.TestCase):
    """Folding interfaces into the "All Interfaces" view"""

    def setUp(self):
        self.calc = NetworkCalculator(FakeTicks())

    def test_sums_counters_and_speeds(self):
        a = InterfaceStats(name="Ethernet", bytes_received=1000, bytes_sent=10,
                           download_speed=5.0, upload_speed=1.0,
                           peak_download_speed=50.0, peak_upload_speed=3.0, is_active=True)
        b = InterfaceStats(name="Wi-Fi", bytes_received=2000, bytes_sent=20,
                           download_speed=7.0, upload_speed=2.0,
                           peak_download_speed=20.0, peak_upload_speed=9.0, is_active=True)
        agg = self.calc.aggregate([a, b])
        self.assertEqual(agg.name, AGGREGATE_NAME)
        self.assertTrue(agg.is_aggregate)
        self.assertEqual(agg.bytes_received, 3000)
        self.assertEqual(agg.bytes_sent, 30)
        self.assertEqual(agg.download_speed, 12.0)
        self.assertEqual(agg.upload_speed, 3.0)
        self.assertEqual(agg.peak_download_speed, 50.0)
        self.assertEqual(agg.peak_upload_speed, 9.0)
        self.assertTrue(agg.is_active)

    def test_inactive_samples_are_not_summed(self):
        a = InterfaceStats(name="Ethernet", bytes_received=1000, is_active=True)
        b = InterfaceStats(name="Wi-Fi", bytes_received=2000, is_active=False)
        self.assertEqual(self.calc.aggregate([a, b]).bytes_received, 1000)

    def test_empty_input(self):
        agg = self.calc.aggregate([])
        self.assertFalse(agg.is_active)
        self.assertEqual(agg.bytes_received, 0)
        self.assertEqual(agg.download_speed, 0.0)
        self.assertIsNone(agg.last_update_ms)


if __name__ == "__main__":
    unittest.main()
