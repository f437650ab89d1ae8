import threading
import time
import unittest

from vicompass.core.timeline import Timeline
from vicompass.feedback.cadence import FeedbackCadence, SoundKind
from vicompass.feedback.scheduler import FeedbackScheduler

from fakes import ManualClock, ManualTimers


def cadence(interval: float, sound: SoundKind = SoundKind.STBD_CHIRP) -> FeedbackCadence:
    return FeedbackCadence(interval_s=interval, sound=sound)


class FeedbackSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.timers = ManualTimers(self.clock)
        self.played = []
        self.events = Timeline()
        self.scheduler = FeedbackScheduler(
            self.played.append,
            clock=self.clock,
            timer_factory=self.timers,
            events=self.events,
        )

    def fire_times(self):
        return [e.fired_at for e in self.played]

    def test_first_evaluation_fires_and_arms(self) -> None:
        event = self.scheduler.reevaluate(cadence(1.0))
        self.assertIsNotNone(event)
        self.assertEqual(event.sound, SoundKind.STBD_CHIRP)
        state = self.scheduler.state()
        self.assertEqual(state.last_fire_time, 0.0)
        self.assertEqual(state.pending_fire_time, 1.0)
        self.assertEqual(state.active_interval, 1.0)
        self.assertEqual(len(self.timers.active()), 1)

    def test_rapid_reevaluation_is_idempotent(self) -> None:
        self.scheduler.reevaluate(cadence(1.0))
        for step in range(5):
            self.clock.now = 0.1 * (step + 1)
            self.assertIsNone(self.scheduler.reevaluate(cadence(1.0)))
            self.assertAlmostEqual(self.scheduler.state().pending_fire_time, 1.0)
            self.assertEqual(len(self.timers.active()), 1)
        self.assertEqual(self.fire_times(), [0.0])

        self.timers.advance(0.5)
        self.assertEqual(len(self.played), 2)
        self.assertAlmostEqual(self.played[1].fired_at, 1.0)

    def test_timer_keeps_firing_at_cadence(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        self.timers.advance(2.0)
        self.assertEqual(self.fire_times(), [0.0, 0.5, 1.0, 1.5, 2.0])
        self.assertEqual(self.scheduler.fire_count, 5)

    def test_shorter_interval_than_elapsed_fires_immediately(self) -> None:
        self.scheduler.reevaluate(cadence(1.0))
        original = self.timers.active()[0]
        self.timers.advance(0.6)

        event = self.scheduler.reevaluate(cadence(0.3))

        self.assertIsNotNone(event)
        self.assertTrue(original.cancelled)
        self.assertAlmostEqual(self.scheduler.state().pending_fire_time, 0.9)
        self.timers.advance(0.3)
        self.assertEqual(len(self.played), 3)
        self.assertAlmostEqual(self.played[1].fired_at, 0.6)
        self.assertAlmostEqual(self.played[2].fired_at, 0.9)
        # the cancelled 1.0 s wait never produced a fire of its own
        self.timers.advance(0.15)
        self.assertEqual(len(self.played), 3)

    def test_shorter_interval_not_yet_due_rearms_for_remainder(self) -> None:
        self.scheduler.reevaluate(cadence(1.0))
        self.timers.advance(0.25)
        self.assertIsNone(self.scheduler.reevaluate(cadence(0.5)))
        self.assertAlmostEqual(self.scheduler.state().pending_fire_time, 0.5)
        self.timers.advance(0.25)
        self.assertEqual(self.fire_times(), [0.0, 0.5])

    def test_longer_interval_waits_without_firing(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        self.timers.advance(0.2)
        self.assertIsNone(self.scheduler.reevaluate(cadence(2.0)))
        self.assertAlmostEqual(self.scheduler.state().pending_fire_time, 2.0)
        self.timers.advance(1.0)
        self.assertEqual(len(self.played), 1)
        self.timers.advance(0.85)
        self.assertEqual(len(self.played), 2)
        self.assertAlmostEqual(self.played[1].fired_at, 2.0)

    def test_sound_follows_latest_cadence(self) -> None:
        self.scheduler.reevaluate(cadence(1.0, SoundKind.STBD_CHIRP))
        self.timers.advance(0.5)
        self.scheduler.reevaluate(cadence(1.0, SoundKind.PORT_CHIRP))
        self.timers.advance(0.5)
        self.assertEqual([e.sound for e in self.played], [SoundKind.STBD_CHIRP, SoundKind.PORT_CHIRP])

    def test_no_cadence_cancels_and_goes_idle(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        timer = self.timers.active()[0]
        self.scheduler.reevaluate(None)
        self.assertTrue(timer.cancelled)
        self.assertTrue(self.scheduler.is_idle)
        self.assertIsNone(self.scheduler.state().pending_fire_time)
        self.timers.advance(10.0)
        self.assertEqual(len(self.played), 1)

    def test_cancel_is_synchronous(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        self.scheduler.cancel()
        self.assertEqual(self.timers.active(), [])
        self.timers.advance(5.0)
        self.assertEqual(len(self.played), 1)
        self.assertEqual(self.events.last(1)[0]["kind"], "cancel")

    def test_stale_timer_callback_does_nothing(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        stale = self.timers.active()[0]
        self.clock.now = 0.2
        self.scheduler.reevaluate(cadence(0.8))
        # a callback that was already running when it got replaced
        self.clock.now = 0.5
        stale.callback()
        self.assertEqual(len(self.played), 1)
        self.assertAlmostEqual(self.scheduler.state().pending_fire_time, 0.8)

    def test_fire_after_idle_starts_fresh(self) -> None:
        self.scheduler.reevaluate(cadence(1.0))
        self.scheduler.cancel()
        self.clock.now = 0.1
        event = self.scheduler.reevaluate(cadence(1.0))
        self.assertIsNotNone(event)
        self.assertAlmostEqual(event.fired_at, 0.1)

    def test_player_errors_are_logged_not_raised(self) -> None:
        def broken(_event):
            raise RuntimeError("speaker unplugged")

        scheduler = FeedbackScheduler(broken, clock=self.clock, timer_factory=self.timers, events=self.events)
        with self.assertLogs("vicompass.feedback", level="ERROR") as logs:
            scheduler.reevaluate(cadence(0.5))
            self.timers.advance(0.5)
        self.assertEqual(scheduler.fire_count, 2)
        self.assertTrue(any("playback failed" in line for line in logs.output))

    def test_timeline_records_fires(self) -> None:
        self.scheduler.reevaluate(cadence(0.5))
        last = self.events.last(1)[0]
        self.assertEqual(last["kind"], "fire")
        self.assertEqual(last["label"], SoundKind.STBD_CHIRP.value)


class FeedbackSchedulerThreadingTests(unittest.TestCase):
    def test_concurrent_reevaluation_never_fires_early(self) -> None:
        interval = 0.05
        fired = []
        lock = threading.Lock()

        def player(event):
            with lock:
                fired.append(event.fired_at)

        scheduler = FeedbackScheduler(player, events=Timeline())
        stop = threading.Event()

        def hammer():
            while not stop.is_set():
                scheduler.reevaluate(cadence(interval))
                time.sleep(0.001)

        workers = [threading.Thread(target=hammer) for _ in range(4)]
        for w in workers:
            w.start()
        time.sleep(0.3)
        stop.set()
        for w in workers:
            w.join()
        scheduler.cancel()

        times = sorted(fired)
        self.assertGreaterEqual(len(times), 2)
        gaps = [b - a for a, b in zip(times, times[1:])]
        self.assertGreaterEqual(min(gaps), interval - 1e-3)
        self.assertTrue(scheduler.is_idle)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
