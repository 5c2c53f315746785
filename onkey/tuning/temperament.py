"""Twelve-tone equal temperament.

All functions are pure; the A4 reference is always passed in explicitly.
"""

from typing import Tuple

import numpy as np

from .notes import A4_MIDI, HIGHEST_MIDI, LOWEST_MIDI, Note, note_by_midi

CENTS_PER_OCTAVE = 1200.0
DEFAULT_A4 = 440.0


def frequency_for(note: Note, a4: float = DEFAULT_A4) -> float:
    """Theoretical frequency of a key for the given A4 reference."""
    return a4 * 2.0 ** (note.semitone_offset / 12.0)


def cents_from(measured: float, target: float) -> float:
    """Deviation of a measured frequency from a target, in cents.

    Raises:
        ValueError: If either frequency is not positive
    """
    if measured <= 0 or target <= 0:
        raise ValueError(
            f"Frequencies must be positive (measured={measured}, target={target})"
        )
    return CENTS_PER_OCTAVE * float(np.log2(measured / target))


def frequency_from_cents(target: float, cents: float) -> float:
    """The frequency lying ``cents`` away from ``target``."""
    return target * 2.0 ** (cents / CENTS_PER_OCTAVE)


def nearest_note(frequency: float, a4: float = DEFAULT_A4) -> Tuple[Note, float]:
    """Find the key closest to a frequency.

    Frequencies beyond the keyboard snap to A0 or C8, so the returned cents
    can be large for such input.

    Returns:
        (note, cents deviation of ``frequency`` from that note)

    Raises:
        ValueError: If the frequency is not positive
    """
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")
    half_steps = int(round(12 * np.log2(frequency / a4)))
    midi = min(max(A4_MIDI + half_steps, LOWEST_MIDI), HIGHEST_MIDI)
    note = note_by_midi(midi)
    return note, cents_from(frequency, frequency_for(note, a4))
