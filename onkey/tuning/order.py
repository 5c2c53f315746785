"""The order in which the 88 keys are tuned.

Tuning straight up or down the keyboard lets early work drift as the frame
takes up the changing string tension. Instead the temperament octave F3-F4 is
set first, then every key above it is tuned as an octave against the key
below, and finally every key below it as an octave against the key above.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple

from .notes import HIGHEST_MIDI, LOWEST_MIDI, NOTE_COUNT, Note, note_by_midi

TEMPERAMENT_LOW = 53  # F3
TEMPERAMENT_HIGH = 65  # F4
OCTAVE = 12


class TuningPhase(Enum):
    TEMPERAMENT = "temperament"
    OCTAVE_UP = "octave_up"
    OCTAVE_DOWN = "octave_down"


@dataclass(frozen=True)
class TuningOrderEntry:
    note: Note
    phase: TuningPhase
    # Already-tuned key one octave away, or None inside the temperament octave
    reference: Optional[Note] = None


def _build_entries() -> Tuple[TuningOrderEntry, ...]:
    entries = []
    for midi in range(TEMPERAMENT_LOW, TEMPERAMENT_HIGH + 1):
        entries.append(TuningOrderEntry(note_by_midi(midi), TuningPhase.TEMPERAMENT))
    for midi in range(TEMPERAMENT_HIGH + 1, HIGHEST_MIDI + 1):
        entries.append(
            TuningOrderEntry(
                note_by_midi(midi),
                TuningPhase.OCTAVE_UP,
                note_by_midi(midi - OCTAVE),
            )
        )
    for midi in range(TEMPERAMENT_LOW - 1, LOWEST_MIDI - 1, -1):
        entries.append(
            TuningOrderEntry(
                note_by_midi(midi),
                TuningPhase.OCTAVE_DOWN,
                note_by_midi(midi + OCTAVE),
            )
        )
    return tuple(entries)


class TuningOrder:
    """Immutable 88-entry tuning sequence."""

    _ENTRIES: Tuple[TuningOrderEntry, ...] = _build_entries()

    def __init__(self) -> None:
        self._index = {entry.note.midi: i for i, entry in enumerate(self._ENTRIES)}

    def entry_at(self, index: int) -> TuningOrderEntry:
        """Entry at a cursor position.

        Raises:
            IndexError: If ``index`` is outside 0..87
        """
        if not 0 <= index < NOTE_COUNT:
            raise IndexError(f"Tuning order index out of range: {index}")
        return self._ENTRIES[index]

    def index_of(self, note: Note) -> int:
        return self._index[note.midi]

    def __len__(self) -> int:
        return len(self._ENTRIES)

    def __iter__(self) -> Iterator[TuningOrderEntry]:
        return iter(self._ENTRIES)
