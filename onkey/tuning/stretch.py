"""Stretch tuning offsets approximating the Railsback curve.

Piano strings are stiff, so their partials run sharp of the harmonic series.
Octaves tuned beatless against those partials come out wider than 2:1; the
table below widens the theoretical targets the same way, bass flat and treble
sharp, flat in the middle of the keyboard.
"""

from typing import ClassVar, Optional, Sequence, Tuple

import numpy as np

from .notes import Note

# (MIDI number, cents offset), ordered by MIDI number
DEFAULT_ANCHORS: Tuple[Tuple[int, float], ...] = (
    (21, -20.0),  # A0
    (33, -8.0),  # A1
    (45, -3.0),  # A2
    (53, 0.0),  # F3
    (77, 0.0),  # F5
    (84, 3.0),  # C6
    (96, 8.0),  # C7
    (108, 20.0),  # C8
)


class StretchCurve:
    """Piecewise-linear cents offset keyed by key position."""

    ANCHORS: ClassVar[Tuple[Tuple[int, float], ...]] = DEFAULT_ANCHORS

    def __init__(self, anchors: Optional[Sequence[Tuple[int, float]]] = None) -> None:
        """Create a stretch curve.

        Args:
            anchors: (MIDI number, cents) pairs, or None for the default table

        Raises:
            ValueError: If fewer than two anchors are given or positions repeat
        """
        points = sorted(anchors if anchors is not None else self.ANCHORS)
        if len(points) < 2:
            raise ValueError("A stretch curve needs at least two anchors")
        positions = [midi for midi, _ in points]
        if len(set(positions)) != len(positions):
            raise ValueError("Stretch curve anchors must have distinct positions")

        self._positions = np.array(positions, dtype=float)
        self._offsets = np.array([cents for _, cents in points], dtype=float)

    @property
    def anchors(self) -> Tuple[Tuple[int, float], ...]:
        return tuple(
            (int(midi), float(cents))
            for midi, cents in zip(self._positions, self._offsets)
        )

    def offset_for(self, note: Note) -> float:
        """Stretch offset in cents for a key.

        Positions outside the table take the value of the nearest anchor.
        """
        # np.interp clamps to the end values outside the anchor range
        return float(np.interp(note.midi, self._positions, self._offsets))
