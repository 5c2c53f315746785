import unittest

from onkey.tuning.notes import NOTES, note_by_name
from onkey.tuning.order import TuningOrder, TuningPhase


class TestTuningOrder(unittest.TestCase):
    def setUp(self):
        self.order = TuningOrder()
        self.entries = list(self.order)

    def test_covers_every_key_once(self):
        self.assertEqual(len(self.order), 88)
        self.assertEqual(sorted(e.note.midi for e in self.entries), [n.midi for n in NOTES])

    def test_temperament_octave_first(self):
        names = [e.note.display_name for e in self.entries[:13]]
        self.assertEqual(names[0], "F3")
        self.assertEqual(names[-1], "F4")
        self.assertEqual([e.note.midi for e in self.entries[:13]], list(range(53, 66)))
        for entry in self.entries[:13]:
            self.assertIs(entry.phase, TuningPhase.TEMPERAMENT)
            self.assertIsNone(entry.reference)

    def test_references_one_octave_away(self):
        for entry in self.entries[13:]:
            if entry.phase is TuningPhase.OCTAVE_UP:
                self.assertGreater(entry.note.midi, 65)
                self.assertEqual(entry.reference.midi, entry.note.midi - 12)
            else:
                self.assertIs(entry.phase, TuningPhase.OCTAVE_DOWN)
                self.assertLess(entry.note.midi, 53)
                self.assertEqual(entry.reference.midi, entry.note.midi + 12)

    def test_phase_order(self):
        phases = [e.phase for e in self.entries]
        first_up = phases.index(TuningPhase.OCTAVE_UP)
        first_down = phases.index(TuningPhase.OCTAVE_DOWN)
        self.assertEqual(first_up, 13)
        self.assertTrue(all(p is TuningPhase.OCTAVE_UP for p in phases[first_up:first_down]))
        self.assertTrue(all(p is TuningPhase.OCTAVE_DOWN for p in phases[first_down:]))
        self.assertEqual(self.entries[first_down].note.display_name, "E3")
        self.assertEqual(self.entries[-1].note.display_name, "A0")

    def test_references_are_tuned_earlier(self):
        for index, entry in enumerate(self.entries):
            if entry.reference is not None:
                self.assertLess(self.order.index_of(entry.reference), index)

    def test_entry_at_bounds(self):
        self.assertEqual(self.order.entry_at(0).note, note_by_name("F3"))
        with self.assertRaises(IndexError):
            self.order.entry_at(88)
        with self.assertRaises(IndexError):
            self.order.entry_at(-1)


if __name__ == "__main__":
    unittest.main()
