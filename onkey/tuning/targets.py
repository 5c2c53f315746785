"""Target frequencies for the keys of a session."""

from typing import Optional

from .notes import Note
from .order import TuningOrder, TuningOrderEntry, TuningPhase
from .session import Session, TuningMode
from .stretch import StretchCurve
from .temperament import cents_from, frequency_for, frequency_from_cents


class TargetResolver:
    """Resolves the frequency each key should be tuned to.

    Temperament keys get an absolute target: the equal-tempered frequency,
    stretched in Concert mode or shifted to the piano's pitch center in Quick
    mode. Octave keys are targeted from where their reference key was actually
    left (its recorded final deviation), doubled or halved, plus the stretch
    difference between the two keys in Concert mode.
    """

    def __init__(
        self,
        session: Session,
        order: Optional[TuningOrder] = None,
        stretch: Optional[StretchCurve] = None,
    ) -> None:
        self._session = session
        self._order = order or TuningOrder()
        self._stretch = stretch or StretchCurve()

    def _stretch_cents(self, note: Note) -> float:
        if self._session.mode is TuningMode.CONCERT:
            return self._stretch.offset_for(note)
        return 0.0

    def base_target(self, note: Note) -> float:
        """Absolute target, ignoring the tuning order."""
        theoretical = frequency_for(note, self._session.a4_reference)
        if self._session.mode is TuningMode.QUICK:
            return frequency_from_cents(theoretical, self._session.piano_offset_cents)
        return frequency_from_cents(theoretical, self._stretch.offset_for(note))

    def target_for_entry(self, entry: TuningOrderEntry) -> float:
        if entry.phase is TuningPhase.TEMPERAMENT or entry.reference is None:
            return self.base_target(entry.note)

        reference = entry.reference
        reference_target = self.target_for_note(reference)
        reference_cents = self._session.final_cents_for(reference.display_name) or 0.0
        reference_actual = frequency_from_cents(reference_target, reference_cents)

        if entry.phase is TuningPhase.OCTAVE_UP:
            octave = reference_actual * 2.0
        else:
            octave = reference_actual / 2.0
        stretch_delta = self._stretch_cents(entry.note) - self._stretch_cents(reference)
        return frequency_from_cents(octave, stretch_delta)

    def target_for_note(self, note: Note) -> float:
        return self.target_for_entry(self._order.entry_at(self._order.index_of(note)))

    def target_at(self, index: int) -> float:
        return self.target_for_entry(self._order.entry_at(index))

    def deviation(self, note: Note, measured: float) -> float:
        """Cents between a measured frequency and the key's target."""
        return cents_from(measured, self.target_for_note(note))
