"""Per-key tuning procedure.

A trichord is tuned by muting the outer strings, bringing the center string
to pitch, then pulling the left and right strings into unison with it. Keys
with one or two strings are tuned in a single step. Every transition is
driven by an explicit confirmation from the tuner.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from ..logger import get_logger
from .notes import Note
from .temperament import cents_from

logger = get_logger(__name__)

DEFAULT_TOLERANCE_CENTS = 5.0


class TrichordStep(Enum):
    MUTE_OUTER = "mute_outer"
    TUNE_CENTER = "tune_center"
    UNISON_LEFT = "unison_left"
    UNISON_RIGHT = "unison_right"
    TUNE_ONLY = "tune_only"
    DONE = "done"


TRANSITIONS: Dict[TrichordStep, TrichordStep] = {
    TrichordStep.MUTE_OUTER: TrichordStep.TUNE_CENTER,
    TrichordStep.TUNE_CENTER: TrichordStep.UNISON_LEFT,
    TrichordStep.UNISON_LEFT: TrichordStep.UNISON_RIGHT,
    TrichordStep.UNISON_RIGHT: TrichordStep.DONE,
    TrichordStep.TUNE_ONLY: TrichordStep.DONE,
}

# Steps that set the key's pitch; leaving them needs the reading in tolerance
PITCH_STEPS = (TrichordStep.TUNE_CENTER, TrichordStep.TUNE_ONLY)
UNISON_STEPS = (TrichordStep.UNISON_LEFT, TrichordStep.UNISON_RIGHT)

TRICHORD_SEQUENCE = (
    TrichordStep.MUTE_OUTER,
    TrichordStep.TUNE_CENTER,
    TrichordStep.UNISON_LEFT,
    TrichordStep.UNISON_RIGHT,
)

STEP_TEXT: Dict[TrichordStep, Tuple[str, str]] = {
    TrichordStep.MUTE_OUTER: (
        "Mute outer strings",
        "Use a felt strip or rubber mutes on the outer strings. "
        "Only the center string should sound.",
    ),
    TrichordStep.TUNE_CENTER: (
        "Tune center string",
        "Tune the center string to the target pitch using the meter.",
    ),
    TrichordStep.UNISON_LEFT: (
        "Tune left string",
        "Unmute the left string. Tune it to the center string until you hear no beats.",
    ),
    TrichordStep.UNISON_RIGHT: (
        "Tune right string",
        "Unmute the right string. Tune it to the center string until you hear no beats.",
    ),
    TrichordStep.TUNE_ONLY: (
        "Tune string",
        "Tune the string to the target pitch using the meter. "
        "On two-string keys, tune the second string to match the first.",
    ),
    TrichordStep.DONE: ("Done", ""),
}


class TrichordStepMachine:
    """Step machine for the key currently being tuned."""

    def __init__(
        self,
        note: Note,
        target_frequency: float,
        tolerance: float = DEFAULT_TOLERANCE_CENTS,
    ) -> None:
        """Start the procedure for a key.

        Args:
            note: The key being tuned
            target_frequency: Resolved target for the key in Hz
            tolerance: Largest |cents| accepted when confirming a pitch step
        """
        if target_frequency <= 0:
            raise ValueError(f"Target frequency must be positive: {target_frequency}")
        self.note = note
        self.target_frequency = target_frequency
        self.tolerance = tolerance

        self._step = (
            TrichordStep.MUTE_OUTER if note.is_trichord else TrichordStep.TUNE_ONLY
        )
        self._center_frequency: Optional[float] = None
        self._last_frequency: Optional[float] = None
        self._last_cents: Optional[float] = None
        self._final_cents: Optional[float] = None
        self._skipped = False

    @property
    def step(self) -> TrichordStep:
        return self._step

    @property
    def is_done(self) -> bool:
        return self._step is TrichordStep.DONE

    @property
    def skipped(self) -> bool:
        return self._skipped

    @property
    def center_frequency(self) -> Optional[float]:
        """Center string frequency captured when TUNE_CENTER was confirmed."""
        return self._center_frequency

    @property
    def active_target(self) -> float:
        """Frequency the meter compares against in the current step.

        Unison steps aim at the measured center string, not the theoretical
        pitch, so the outer strings are matched beatless to what is there.
        """
        if self._step in UNISON_STEPS and self._center_frequency is not None:
            return self._center_frequency
        return self.target_frequency

    @property
    def last_frequency(self) -> Optional[float]:
        return self._last_frequency

    @property
    def last_cents(self) -> Optional[float]:
        return self._last_cents

    @property
    def final_cents(self) -> float:
        """Deviation of the key's pitch from its target, 0.0 if skipped or unmeasured."""
        return self._final_cents if self._final_cents is not None else 0.0

    @property
    def step_number(self) -> int:
        if self._step in TRICHORD_SEQUENCE:
            return TRICHORD_SEQUENCE.index(self._step) + 1
        if self._step is TrichordStep.TUNE_ONLY:
            return 1
        return self.total_steps

    @property
    def total_steps(self) -> int:
        return len(TRICHORD_SEQUENCE) if self.note.is_trichord else 1

    @property
    def title(self) -> str:
        return STEP_TEXT[self._step][0]

    @property
    def instruction(self) -> str:
        return STEP_TEXT[self._step][1]

    def update_pitch(self, frequency: float) -> float:
        """Record a detected frequency and return its deviation from the active target."""
        self._last_frequency = frequency
        self._last_cents = cents_from(frequency, self.active_target)
        return self._last_cents

    def clear_pitch(self) -> None:
        self._last_frequency = None
        self._last_cents = None

    def within_tolerance(self) -> bool:
        return self._last_cents is not None and abs(self._last_cents) <= self.tolerance

    def direction_hint(self) -> Optional[str]:
        """Which way to turn the pin, when the reading is out of tolerance."""
        if self._step in (TrichordStep.MUTE_OUTER, TrichordStep.DONE):
            return None
        if self._last_cents is None or abs(self._last_cents) <= self.tolerance:
            return None
        if self._last_cents < 0:
            return "Turn tuning pin CLOCKWISE (tighten) slightly"
        return "Turn tuning pin COUNTER-CLOCKWISE (loosen) slightly"

    def confirm(self, force: bool = False) -> bool:
        """Advance to the next step.

        Pitch-setting steps only advance when the last reading is within
        tolerance, unless ``force`` is set.

        Returns:
            True if the step changed
        """
        if self.is_done:
            return False

        if self._step in PITCH_STEPS:
            if not force and not self.within_tolerance():
                logger.debug(
                    f"{self.note.display_name}: not confirming {self._step.value}, "
                    f"reading {self._last_cents} outside ±{self.tolerance} cents"
                )
                return False
            self._final_cents = self._last_cents
            if self._step is TrichordStep.TUNE_CENTER:
                self._center_frequency = (
                    self._last_frequency
                    if self._last_frequency is not None
                    else self.target_frequency
                )

        previous = self._step
        self._step = TRANSITIONS[self._step]
        self.clear_pitch()
        logger.debug(
            f"{self.note.display_name}: {previous.value} -> {self._step.value}"
        )
        return True

    def skip(self) -> None:
        """Abandon the key; it is recorded with a placeholder deviation."""
        if self.is_done:
            return
        self._step = TrichordStep.DONE
        self._skipped = True
        self._final_cents = None
        self.clear_pitch()
        logger.debug(f"{self.note.display_name}: skipped")
