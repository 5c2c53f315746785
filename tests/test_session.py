import unittest
from datetime import datetime, timedelta, timezone

from onkey.tuning.notes import note_by_name
from onkey.tuning.profile import PianoProfile, parse_utc
from onkey.tuning.session import CompletedNote, Session, TuningMode


class TestSession(unittest.TestCase):
    def test_new_sessions(self):
        concert = Session.concert_pitch(442.0)
        self.assertIs(concert.mode, TuningMode.CONCERT)
        self.assertEqual(concert.a4_reference, 442.0)
        self.assertEqual(concert.current_note_index, 0)
        self.assertEqual(concert.created_at, concert.updated_at)

        quick = Session.quick_tune(-12.5)
        self.assertIs(quick.mode, TuningMode.QUICK)
        self.assertEqual(quick.piano_offset_cents, -12.5)

    def test_complete_note_advances(self):
        session = Session.concert_pitch()
        before = session.updated_at
        session.complete_note("F3", 1.5)
        self.assertEqual(session.current_note_index, 1)
        self.assertEqual(session.completed_notes[0].note, "F3")
        self.assertGreaterEqual(session.updated_at, before)
        self.assertEqual(session.final_cents_for("F3"), 1.5)
        self.assertIsNone(session.final_cents_for("A4"))

    def test_complete_note_after_end(self):
        session = Session.concert_pitch()
        session.current_note_index = 88
        self.assertTrue(session.is_complete())
        with self.assertRaises(ValueError):
            session.complete_note("A0", 0.0)

    def test_reopen_previous(self):
        session = Session.concert_pitch()
        session.complete_note("F3", 1.0)
        session.complete_note("F#3", -2.0)
        removed = session.reopen_previous("F#3")
        self.assertEqual(removed.final_cents, -2.0)
        self.assertEqual(session.current_note_index, 1)
        self.assertEqual([n.note for n in session.completed_notes], ["F3"])

        session.reopen_previous("F3")
        with self.assertRaises(ValueError):
            session.reopen_previous("F3")

    def test_statistics(self):
        session = Session.concert_pitch()
        self.assertEqual(session.average_deviation(), 0.0)
        session.complete_note("F3", 2.0)
        session.complete_note("F#3", -4.0)
        self.assertAlmostEqual(session.average_deviation(), 3.0)
        self.assertAlmostEqual(session.progress_percent(), 200 / 88)

    def test_round_trip(self):
        session = Session.quick_tune(-8.0, 441.0)
        session.complete_note("F3", 0.5)
        session.complete_note("F#3", 0.0)
        session.updated_at = session.created_at + timedelta(minutes=3)

        restored = Session.from_dict(session.to_dict())
        self.assertEqual(restored, session)

    def test_from_dict_rejects_broken_invariants(self):
        session = Session.concert_pitch()
        session.complete_note("F3", 0.0)

        data = session.to_dict()
        data["current_note_index"] = 89
        with self.assertRaises(ValueError):
            Session.from_dict(data)

        data = session.to_dict()
        data["current_note_index"] = 0
        with self.assertRaises(ValueError):
            Session.from_dict(data)

        data = session.to_dict()
        data["mode"] = "baroque"
        with self.assertRaises(ValueError):
            Session.from_dict(data)

        data = session.to_dict()
        del data["a4_reference"]
        with self.assertRaises(KeyError):
            Session.from_dict(data)


class TestCompletedNote(unittest.TestCase):
    def test_serialized_fields(self):
        data = CompletedNote("A0", -3.25).to_dict()
        self.assertEqual(set(data), {"note", "final_cents", "timestamp"})
        self.assertTrue(data["timestamp"].endswith("+00:00"))


class TestPianoProfile(unittest.TestCase):
    def setUp(self):
        self.profile = PianoProfile()

    def test_empty(self):
        self.assertEqual(len(self.profile), 0)
        self.assertEqual(self.profile.center_offset_cents(), 0.0)
        self.assertEqual(self.profile.progress(), (0, 88))
        self.assertFalse(self.profile.is_complete())

    def test_record_and_overwrite(self):
        a4 = note_by_name("A4")
        self.profile.record_note(a4, 430.0, -40.0)
        self.profile.record_note(a4, 435.0, -20.0)
        self.assertEqual(len(self.profile), 1)
        self.assertIn(a4, self.profile)
        self.assertEqual(self.profile.get(a4).frequency, 435.0)

    def test_center_and_worst(self):
        self.profile.record_note(note_by_name("A4"), 435.0, -20.0)
        self.profile.record_note(note_by_name("C4"), 260.0, -10.0)
        self.profile.record_note(note_by_name("E4"), 330.0, 6.0)
        self.assertAlmostEqual(self.profile.center_offset_cents(), -8.0)
        self.assertAlmostEqual(self.profile.average_deviation(), 12.0)
        self.assertEqual([n.midi for n in self.profile.worst_notes(2)], [69, 60])

    def test_round_trip(self):
        self.profile = PianoProfile(a4_reference=442.0)
        self.profile.record_note(note_by_name("A4"), 435.0, -20.0)
        restored = PianoProfile.from_dict(self.profile.to_dict())
        self.assertEqual(restored.get(note_by_name("A4")), self.profile.get(note_by_name("A4")))
        self.assertEqual(restored.created_at, self.profile.created_at)
        self.assertEqual(restored.id, self.profile.id)
        self.assertEqual(restored.a4_reference, 442.0)

    def test_invalid_profiles(self):
        data = PianoProfile().to_dict()
        data["a4_reference"] = 0
        with self.assertRaises(ValueError):
            PianoProfile.from_dict(data)

        data = PianoProfile().to_dict()
        data["notes"] = [
            {"midi": 12, "frequency": 16.0, "cents": 0.0, "timestamp": data["created_at"]}
        ]
        with self.assertRaises(ValueError):
            PianoProfile.from_dict(data)


class TestTimestamps(unittest.TestCase):
    def test_naive_timestamps_are_utc(self):
        parsed = parse_utc("2024-03-01T12:30:00")
        self.assertEqual(parsed, datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc))

    def test_offsets_are_converted(self):
        parsed = parse_utc("2024-03-01T14:30:00+02:00")
        self.assertEqual(parsed.utcoffset(), timedelta(0))
        self.assertEqual(parsed.hour, 12)

    def test_naive_session_compares_with_aware(self):
        data = Session.concert_pitch().to_dict()
        data["created_at"] = "2024-03-01T12:30:00"
        data["updated_at"] = "2024-03-01T12:45:00"
        legacy = Session.from_dict(data)
        self.assertLess(legacy.created_at, Session.concert_pitch().created_at)

    def test_profile_mode_has_no_sessions(self):
        data = Session.concert_pitch().to_dict()
        data["mode"] = TuningMode.PROFILE.value
        with self.assertRaises(ValueError):
            Session.from_dict(data)


if __name__ == "__main__":
    unittest.main()
