"""The 88 keys of a standard piano."""

import re
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Tuple

# Note name and octave, e.g. 'C#4', 'Bb0'
NOTE_PATTERN = re.compile(r"^([A-Ga-g][#b]?)(-?[0-9]+)$")

SHARP_NOTES: List[str] = [
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
]

FLAT_TO_SHARP: Dict[str, str] = {
    "Db": "C#",
    "Eb": "D#",
    "Gb": "F#",
    "Ab": "G#",
    "Bb": "A#",
}

A4_MIDI = 69
LOWEST_MIDI = 21  # A0
HIGHEST_MIDI = 108  # C8
NOTE_COUNT = HIGHEST_MIDI - LOWEST_MIDI + 1

# Highest MIDI note strung with one and with two strings; everything above is a trichord
LAST_MONOCHORD = 30  # F#1
LAST_BICHORD = 48  # C3


@dataclass(frozen=True)
class Note:
    """A piano key."""

    midi: int  # MIDI note number (21 = A0, 108 = C8)
    name: str  # Pitch class with sharps, e.g. 'C#'
    octave: int
    strings: int  # Unison strings for this key (1, 2 or 3)

    TRICHORD: ClassVar[int] = 3

    @property
    def display_name(self) -> str:
        return f"{self.name}{self.octave}"

    @property
    def semitone_offset(self) -> int:
        """Semitones relative to A4."""
        return self.midi - A4_MIDI

    @property
    def position(self) -> int:
        """Ordinal position on the keyboard, 0 for A0 to 87 for C8."""
        return self.midi - LOWEST_MIDI

    @property
    def is_trichord(self) -> bool:
        return self.strings == self.TRICHORD

    def __str__(self):
        return self.display_name


def _string_count(midi: int) -> int:
    if midi <= LAST_MONOCHORD:
        return 1
    if midi <= LAST_BICHORD:
        return 2
    return 3


def _build_notes() -> Tuple[Note, ...]:
    notes = []
    for midi in range(LOWEST_MIDI, HIGHEST_MIDI + 1):
        notes.append(
            Note(
                midi=midi,
                name=SHARP_NOTES[midi % 12],
                octave=(midi // 12) - 1,
                strings=_string_count(midi),
            )
        )
    return tuple(notes)


NOTES: Tuple[Note, ...] = _build_notes()


def note_by_midi(midi: int) -> Note:
    """Look up a key by MIDI number.

    Raises:
        ValueError: If the MIDI number is outside A0..C8
    """
    if not LOWEST_MIDI <= midi <= HIGHEST_MIDI:
        raise ValueError(f"MIDI note {midi} is not on an 88-key piano")
    return NOTES[midi - LOWEST_MIDI]


def note_by_name(name: str) -> Note:
    """Look up a key by its name in scientific pitch notation.

    Sharps and flats are both accepted ('A#3' and 'Bb3' are the same key).

    Raises:
        ValueError: If the name cannot be parsed or is not on the keyboard
    """
    match = NOTE_PATTERN.match(name.strip()) if name else None
    if not match:
        raise ValueError(f"Could not parse note name: {name!r}")

    pitch_class = match.group(1)
    pitch_class = pitch_class[0].upper() + pitch_class[1:]
    pitch_class = FLAT_TO_SHARP.get(pitch_class, pitch_class)
    if pitch_class not in SHARP_NOTES:
        # Cb, Fb and friends are not used on the keyboard labels
        raise ValueError(f"Unsupported pitch class: {match.group(1)!r}")

    octave = int(match.group(2))
    midi = (octave + 1) * 12 + SHARP_NOTES.index(pitch_class)
    return note_by_midi(midi)
