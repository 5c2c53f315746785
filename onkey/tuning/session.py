"""Tuning session state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from .notes import NOTE_COUNT
from .profile import parse_utc, utc_now
from .temperament import DEFAULT_A4


class TuningMode(Enum):
    """Tuning mode."""

    CONCERT = "concert"  # Absolute pitch from the A4 reference, stretched
    QUICK = "quick"  # Relative to the piano's current pitch center
    PROFILE = "profile"  # Measure every key to find the worst; no session


@dataclass
class CompletedNote:
    """A key that has been finished (or skipped) in a session."""

    note: str  # Display name, e.g. 'F3'
    final_cents: float  # Deviation from target at confirmation, 0.0 when skipped
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note": self.note,
            "final_cents": self.final_cents,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletedNote":
        return cls(
            note=str(data["note"]),
            final_cents=float(data["final_cents"]),
            timestamp=parse_utc(data["timestamp"]),
        )


@dataclass
class Session:
    """A tuning session.

    ``current_note_index`` is a cursor into the tuning order; 88 means every
    key has been handled. Completed notes are appended in completion order.
    """

    id: str
    mode: TuningMode
    a4_reference: float
    piano_offset_cents: float = 0.0
    current_note_index: int = 0
    completed_notes: List[CompletedNote] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new(
        cls,
        mode: TuningMode,
        a4_reference: float = DEFAULT_A4,
        piano_offset_cents: float = 0.0,
    ) -> "Session":
        now = utc_now()
        return cls(
            id=now.isoformat(),
            mode=mode,
            a4_reference=a4_reference,
            piano_offset_cents=piano_offset_cents,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def concert_pitch(cls, a4_reference: float = DEFAULT_A4) -> "Session":
        return cls.new(TuningMode.CONCERT, a4_reference)

    @classmethod
    def quick_tune(
        cls, piano_offset_cents: float = 0.0, a4_reference: float = DEFAULT_A4
    ) -> "Session":
        return cls.new(TuningMode.QUICK, a4_reference, piano_offset_cents)

    def is_complete(self) -> bool:
        return self.current_note_index >= NOTE_COUNT

    def touch(self) -> None:
        self.updated_at = utc_now()

    def complete_note(self, note_name: str, final_cents: float) -> CompletedNote:
        """Record a finished key and advance the cursor."""
        if self.is_complete():
            raise ValueError("Session is already complete")
        completed = CompletedNote(note=note_name, final_cents=final_cents)
        self.completed_notes.append(completed)
        self.current_note_index += 1
        self.touch()
        return completed

    def reopen_previous(self, note_name: str) -> Optional[CompletedNote]:
        """Step the cursor back one key and drop that key's completion record.

        Args:
            note_name: Display name of the key at the previous cursor position

        Returns:
            The removed CompletedNote, or None if nothing was recorded for it
        """
        if self.current_note_index == 0:
            raise ValueError("Already at the first note")
        self.current_note_index -= 1
        removed = None
        for i in range(len(self.completed_notes) - 1, -1, -1):
            if self.completed_notes[i].note == note_name:
                removed = self.completed_notes.pop(i)
                break
        # Keep completed_notes no longer than the cursor
        del self.completed_notes[self.current_note_index :]
        self.touch()
        return removed

    def final_cents_for(self, note_name: str) -> Optional[float]:
        """Deviation the most recent completion of a key was left at."""
        for completed in reversed(self.completed_notes):
            if completed.note == note_name:
                return completed.final_cents
        return None

    def average_deviation(self) -> float:
        if not self.completed_notes:
            return 0.0
        return float(np.mean([abs(n.final_cents) for n in self.completed_notes]))

    def progress_percent(self) -> float:
        return self.current_note_index / NOTE_COUNT * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mode": self.mode.value,
            "a4_reference": self.a4_reference,
            "piano_offset_cents": self.piano_offset_cents,
            "current_note_index": self.current_note_index,
            "completed_notes": [n.to_dict() for n in self.completed_notes],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Rebuild a session from its serialized form.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field is invalid or an invariant is violated
        """
        session = cls(
            id=str(data["id"]),
            mode=TuningMode(data["mode"]),
            a4_reference=float(data["a4_reference"]),
            piano_offset_cents=float(data["piano_offset_cents"]),
            current_note_index=int(data["current_note_index"]),
            completed_notes=[CompletedNote.from_dict(n) for n in data["completed_notes"]],
            created_at=parse_utc(data["created_at"]),
            updated_at=parse_utc(data["updated_at"]),
        )
        if not 0 <= session.current_note_index <= NOTE_COUNT:
            raise ValueError(
                f"current_note_index out of range: {session.current_note_index}"
            )
        if len(session.completed_notes) > session.current_note_index:
            raise ValueError("More completed notes than the cursor has passed")
        if session.mode is TuningMode.PROFILE:
            raise ValueError("Profile mode does not produce tuning sessions")
        if session.a4_reference <= 0:
            raise ValueError(f"Invalid A4 reference: {session.a4_reference}")
        return session
