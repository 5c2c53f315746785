"""Measured pitch baseline of a particular piano."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..logger import get_logger
from .notes import NOTE_COUNT, Note, note_by_midi
from .temperament import DEFAULT_A4

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_utc(text: str) -> datetime:
    """Parse an ISO 8601 timestamp as an aware UTC datetime.

    Timestamps without an offset are taken to be UTC, so that every loaded
    timestamp can be compared with every other.
    """
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class ProfiledNote:
    """A single measurement taken from the instrument."""

    midi: int
    frequency: float  # Detected frequency in Hz
    cents: float  # Deviation from the theoretical frequency
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "midi": self.midi,
            "frequency": self.frequency,
            "cents": self.cents,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfiledNote":
        return cls(
            midi=int(data["midi"]),
            frequency=float(data["frequency"]),
            cents=float(data["cents"]),
            timestamp=parse_utc(data["timestamp"]),
        )


class PianoProfile:
    """Per-key measured frequencies of one piano.

    A full profile is built in Profile mode, key by key from A0 to C8, each
    reading compared with the key's equal-tempered frequency. Quick Tune
    calibration builds a one-key profile from A4. Measurements are recorded
    or overwritten per key and never removed.

    The keys furthest from pitch are the ones most in need of tuning. The
    center (mean deviation) is what Quick Tune aims for, so a piano that
    sits flat overall is tuned evenly at its own pitch level instead of
    being pulled up to concert pitch.
    """

    def __init__(
        self,
        created_at: Optional[datetime] = None,
        a4_reference: float = DEFAULT_A4,
        profile_id: Optional[str] = None,
    ) -> None:
        self.created_at = created_at or utc_now()
        self.id = profile_id or self.created_at.isoformat()
        self.a4_reference = a4_reference
        self._notes: Dict[int, ProfiledNote] = {}

    def record_note(self, note: Note, frequency: float, cents: float) -> ProfiledNote:
        """Record (or overwrite) the measurement for a key."""
        measurement = ProfiledNote(midi=note.midi, frequency=frequency, cents=cents)
        self._notes[note.midi] = measurement
        logger.debug(
            f"Profiled {note.display_name}: {frequency:.2f}Hz ({cents:+.1f} cents)"
        )
        return measurement

    def get(self, note: Note) -> Optional[ProfiledNote]:
        return self._notes.get(note.midi)

    def __contains__(self, note: Note) -> bool:
        return note.midi in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def is_complete(self) -> bool:
        return len(self._notes) == NOTE_COUNT

    def progress(self) -> Tuple[int, int]:
        return len(self._notes), NOTE_COUNT

    def average_deviation(self) -> float:
        """Mean absolute deviation in cents over the profiled keys."""
        if not self._notes:
            return 0.0
        return float(np.mean([abs(n.cents) for n in self._notes.values()]))

    def center_offset_cents(self) -> float:
        """Signed mean deviation: where the instrument's pitch center sits."""
        if not self._notes:
            return 0.0
        return float(np.mean([n.cents for n in self._notes.values()]))

    def notes_by_deviation(self) -> List[ProfiledNote]:
        """Profiled keys sorted by absolute deviation, worst first."""
        return sorted(self._notes.values(), key=lambda n: abs(n.cents), reverse=True)

    def worst_notes(self, count: int) -> List[ProfiledNote]:
        return self.notes_by_deviation()[:count]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "a4_reference": self.a4_reference,
            "created_at": self.created_at.isoformat(),
            "notes": [
                self._notes[midi].to_dict() for midi in sorted(self._notes)
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PianoProfile":
        """Rebuild a profile from its serialized form.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field is invalid or a key is not on the keyboard
        """
        profile = cls(
            created_at=parse_utc(data["created_at"]),
            a4_reference=float(data["a4_reference"]),
            profile_id=str(data["id"]),
        )
        if profile.a4_reference <= 0:
            raise ValueError(f"Invalid A4 reference: {profile.a4_reference}")
        for item in data.get("notes", []):
            measurement = ProfiledNote.from_dict(item)
            # Validates the key is on the keyboard
            note_by_midi(measurement.midi)
            profile._notes[measurement.midi] = measurement
        return profile
