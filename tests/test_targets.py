import unittest

from onkey.tuning.notes import note_by_name
from onkey.tuning.order import TuningOrder
from onkey.tuning.session import CompletedNote, Session
from onkey.tuning.stretch import StretchCurve
from onkey.tuning.targets import TargetResolver
from onkey.tuning.temperament import cents_from, frequency_for, frequency_from_cents


class TestConcertTargets(unittest.TestCase):
    def setUp(self):
        self.session = Session.concert_pitch(440.0)
        self.resolver = TargetResolver(self.session)
        self.stretch = StretchCurve()

    def test_temperament_keys_are_equal_tempered(self):
        # F3..F4 has no stretch
        for name in ("F3", "A3", "C4", "F4"):
            note = note_by_name(name)
            self.assertAlmostEqual(self.resolver.base_target(note), frequency_for(note))
            self.assertAlmostEqual(self.resolver.target_for_note(note), frequency_for(note))

    def test_stretched_base_targets(self):
        a0 = note_by_name("A0")
        self.assertAlmostEqual(cents_from(self.resolver.base_target(a0), 27.5), -20.0)
        c8 = note_by_name("C8")
        self.assertAlmostEqual(
            cents_from(self.resolver.base_target(c8), frequency_for(c8)), 20.0
        )

    def test_octave_from_where_reference_was_left(self):
        # A3 was left 3 cents sharp; A4 is tuned as a clean octave from it
        self.session.current_note_index = 14
        self.session.completed_notes.append(CompletedNote("A3", 3.0))
        a4 = note_by_name("A4")
        expected = frequency_from_cents(frequency_for(note_by_name("A3")), 3.0) * 2
        self.assertAlmostEqual(self.resolver.target_for_note(a4), expected, places=6)

    def test_octave_down_adds_stretch_difference(self):
        # E3 is tuned down from E4 and sits on the slope below F3
        e3 = note_by_name("E3")
        e4 = note_by_name("E4")
        delta = self.stretch.offset_for(e3) - self.stretch.offset_for(e4)
        expected = frequency_from_cents(frequency_for(e4) / 2, delta)
        self.assertAlmostEqual(self.resolver.target_for_note(e3), expected, places=6)

    def test_target_at_matches_entries(self):
        order = TuningOrder()
        for index in (0, 12, 13, 50, 87):
            entry = order.entry_at(index)
            self.assertEqual(
                self.resolver.target_at(index), self.resolver.target_for_note(entry.note)
            )

    def test_deviation(self):
        c4 = note_by_name("C4")
        measured = frequency_from_cents(self.resolver.target_for_note(c4), -7.5)
        self.assertAlmostEqual(self.resolver.deviation(c4, measured), -7.5, places=6)


class TestQuickTargets(unittest.TestCase):
    def test_shifted_by_piano_offset_without_stretch(self):
        session = Session.quick_tune(piano_offset_cents=-30.0)
        resolver = TargetResolver(session)
        for name in ("A0", "A4", "C8"):
            note = note_by_name(name)
            self.assertAlmostEqual(
                cents_from(resolver.target_for_note(note), frequency_for(note)),
                -30.0,
                places=6,
            )


if __name__ == "__main__":
    unittest.main()
