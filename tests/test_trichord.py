import unittest

import pytest

from onkey.tuning.notes import note_by_name
from onkey.tuning.temperament import frequency_from_cents
from onkey.tuning.trichord import TrichordStep, TrichordStepMachine

TARGET = 261.63


class TestTrichordSteps(unittest.TestCase):
    def setUp(self):
        self.machine = TrichordStepMachine(note_by_name("C4"), TARGET, tolerance=5.0)

    def test_full_sequence_needs_explicit_confirms(self):
        self.assertIs(self.machine.step, TrichordStep.MUTE_OUTER)
        self.assertEqual(self.machine.total_steps, 4)

        # Readings alone never advance the procedure
        self.machine.update_pitch(TARGET)
        self.assertIs(self.machine.step, TrichordStep.MUTE_OUTER)

        self.assertTrue(self.machine.confirm())
        self.assertIs(self.machine.step, TrichordStep.TUNE_CENTER)
        self.machine.update_pitch(frequency_from_cents(TARGET, 2.0))
        self.assertIs(self.machine.step, TrichordStep.TUNE_CENTER)

        self.assertTrue(self.machine.confirm())
        self.assertIs(self.machine.step, TrichordStep.UNISON_LEFT)
        self.assertTrue(self.machine.confirm())
        self.assertIs(self.machine.step, TrichordStep.UNISON_RIGHT)
        self.assertEqual(self.machine.step_number, 4)
        self.assertTrue(self.machine.confirm())
        self.assertTrue(self.machine.is_done)
        self.assertFalse(self.machine.confirm())
        self.assertAlmostEqual(self.machine.final_cents, 2.0, places=6)

    def test_center_needs_reading_in_tolerance(self):
        self.machine.confirm()
        self.assertFalse(self.machine.confirm())

        self.machine.update_pitch(frequency_from_cents(TARGET, 12.0))
        self.assertFalse(self.machine.confirm())
        self.assertIs(self.machine.step, TrichordStep.TUNE_CENTER)
        self.assertIsNotNone(self.machine.direction_hint())
        self.assertIn("COUNTER-CLOCKWISE", self.machine.direction_hint())

        self.assertTrue(self.machine.confirm(force=True))
        self.assertIs(self.machine.step, TrichordStep.UNISON_LEFT)
        self.assertAlmostEqual(self.machine.final_cents, 12.0, places=6)

    def test_unison_targets_measured_center(self):
        self.machine.confirm()
        center = frequency_from_cents(TARGET, -4.0)
        self.machine.update_pitch(center)
        self.machine.confirm()

        self.assertAlmostEqual(self.machine.center_frequency, center)
        self.assertAlmostEqual(self.machine.active_target, center)
        self.assertAlmostEqual(self.machine.update_pitch(center), 0.0)
        self.machine.confirm()
        self.assertAlmostEqual(self.machine.active_target, center)

    def test_forced_center_without_reading_uses_target(self):
        self.machine.confirm()
        self.machine.confirm(force=True)
        self.assertEqual(self.machine.center_frequency, TARGET)
        self.assertEqual(self.machine.final_cents, 0.0)

    def test_confirm_clears_reading(self):
        self.machine.update_pitch(TARGET)
        self.machine.confirm()
        self.assertIsNone(self.machine.last_cents)


class TestSingleStepKeys(unittest.TestCase):
    def test_bichord_uses_tune_only(self):
        machine = TrichordStepMachine(note_by_name("C3"), 130.81)
        self.assertIs(machine.step, TrichordStep.TUNE_ONLY)
        self.assertEqual(machine.total_steps, 1)
        self.assertFalse(machine.confirm())
        machine.update_pitch(130.81)
        self.assertTrue(machine.confirm())
        self.assertTrue(machine.is_done)

    def test_invalid_target(self):
        with self.assertRaises(ValueError):
            TrichordStepMachine(note_by_name("A0"), 0.0)


@pytest.mark.parametrize("confirms", [0, 1, 2, 3])
def test_skip_from_any_step(confirms):
    machine = TrichordStepMachine(note_by_name("A4"), 440.0)
    for _ in range(confirms):
        machine.update_pitch(440.0)
        machine.confirm()
    machine.skip()
    assert machine.step is TrichordStep.DONE
    assert machine.skipped
    assert machine.final_cents == 0.0


if __name__ == "__main__":
    unittest.main()
