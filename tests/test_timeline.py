import unittest

from vicompass.core.timeline import EventKind, Timeline


class TimelineTests(unittest.TestCase):
    def test_keeps_most_recent_events(self) -> None:
        tl = Timeline(maxlen=3)
        for i in range(5):
            tl.add(EventKind.FIRE, f"cue{i}", n=i)
        labels = [e["label"] for e in tl.last(10)]
        self.assertEqual(labels, ["cue2", "cue3", "cue4"])
        self.assertEqual(tl.last(1)[0]["data"], {"n": 4})

    def test_kind_is_reported_by_value(self) -> None:
        tl = Timeline()
        evt = tl.add("cancel", "feedback")
        self.assertIs(evt.kind, EventKind.CANCEL)
        self.assertEqual(tl.last(1)[0]["kind"], "cancel")
        self.assertTrue(tl.last(1)[0]["ts"].endswith("Z"))

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Timeline().add("detect", "x")

    def test_filter_by_kind(self) -> None:
        tl = Timeline()
        tl.add(EventKind.TARGET, "tack", target=110.0)
        tl.add(EventKind.FIRE, "4k_to_2k_in_20ms")
        tl.add(EventKind.TARGET, "step", target=111.0)
        targets = tl.last(kind=EventKind.TARGET)
        self.assertEqual([e["label"] for e in targets], ["tack", "step"])
        self.assertEqual(tl.last(1, kind="fire")[0]["label"], "4k_to_2k_in_20ms")
        self.assertEqual(tl.last(0), [])

    def test_returned_data_is_a_copy(self) -> None:
        tl = Timeline()
        tl.add(EventKind.CONFIG, "settings", diff_tolerance=15.0)
        tl.last(1)[0]["data"]["diff_tolerance"] = 5.0
        self.assertEqual(tl.last(1)[0]["data"]["diff_tolerance"], 15.0)

    def test_clear(self) -> None:
        tl = Timeline()
        tl.add(EventKind.CANCEL, "feedback")
        tl.clear()
        self.assertEqual(tl.last(), [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
