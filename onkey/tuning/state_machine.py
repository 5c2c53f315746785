"""Guided tuning session state machine.

``SessionStateMachine.handle`` is a reducer over tagged events: it updates
the session and the per-key step machine, and returns the side effects
(reference tones, beeps, quitting) for the runtime to carry out. It is only
ever called from the event loop thread.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type

import numpy as np

from ..errors import PersistenceError
from ..logger import get_logger
from ..core.config import TunerConfig
from ..core.events import (
    Effect,
    EffectKind,
    Event,
    Key,
    KeyPress,
    ModeSelected,
    PitchUpdate,
    Tick,
)
from .notes import A4_MIDI, NOTE_COUNT, NOTES, Note, note_by_midi
from .order import TuningOrder, TuningOrderEntry
from .profile import PianoProfile
from .session import Session, TuningMode
from .store import ProfileStore, SessionStore
from .stretch import StretchCurve
from .targets import TargetResolver
from .temperament import cents_from, frequency_for
from .trichord import PITCH_STEPS, TrichordStepMachine

logger = get_logger(__name__)


class AppState(Enum):
    MODE_SELECT = "mode_select"
    CALIBRATION = "calibration"
    TUNING = "tuning"
    PROFILING = "profiling"
    COMPLETE = "complete"


# States in which pitch readings are used
LISTENING_STATES = (AppState.CALIBRATION, AppState.TUNING, AppState.PROFILING)


class SessionStateMachine:
    """Drives a session from mode selection to the last key.

    Profile mode has no session: it walks the keys from A0 to C8 and
    records how far each one sits from equal temperament.
    """

    CALIBRATION_SAMPLES = 10
    KEY_WINDOW_CENTS = 100.0  # Readings further from the expected key are another key
    STALE_PITCH_SECONDS = 1.0  # Without a reading this long, the meter goes idle

    def __init__(
        self,
        config: Optional[TunerConfig] = None,
        store: Optional[SessionStore] = None,
        session: Optional[Session] = None,
        order: Optional[TuningOrder] = None,
        stretch: Optional[StretchCurve] = None,
        profile_store: Optional[ProfileStore] = None,
    ) -> None:
        """Create the machine.

        Args:
            config: Tuner settings
            store: Where sessions are persisted, or None to keep them in memory
            session: An existing session to resume
            order: Tuning order (the standard order by default)
            stretch: Stretch curve used in Concert mode
            profile_store: Where Profile mode results are persisted
        """
        self.config = config or TunerConfig()
        self._store = store
        self._profile_store = profile_store
        self._order = order or TuningOrder()
        self._stretch = stretch or StretchCurve()

        self._state = AppState.MODE_SELECT
        self._session: Optional[Session] = None
        self._resolver: Optional[TargetResolver] = None
        self._steps: Optional[TrichordStepMachine] = None
        self._profile: Optional[PianoProfile] = None
        self._calibration: List[float] = []
        self._profile_index = 0
        self._profile_reading: Optional[Tuple[float, float]] = None
        self._last_pitch_time: Optional[float] = None
        self._last_save_error: Optional[str] = None

        self._handlers: Dict[Type, Callable[..., List[Effect]]] = {
            ModeSelected: self._on_mode_selected,
            KeyPress: self._on_key,
            PitchUpdate: self._on_pitch,
            Tick: self._on_tick,
        }

        if session is not None:
            self._resume(session)

    # State accessors used by the UI

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def steps(self) -> Optional[TrichordStepMachine]:
        """Step machine for the current key, while tuning."""
        return self._steps

    @property
    def profile(self) -> Optional[PianoProfile]:
        return self._profile

    @property
    def calibration_progress(self) -> int:
        return len(self._calibration)

    @property
    def profile_note(self) -> Optional[Note]:
        """Key being measured in Profile mode."""
        if self._state is not AppState.PROFILING:
            return None
        return NOTES[self._profile_index]

    @property
    def profile_target(self) -> Optional[float]:
        """Equal-tempered frequency of the key being measured."""
        note = self.profile_note
        if note is None:
            return None
        return frequency_for(note, self._profile.a4_reference)

    @property
    def profile_reading(self) -> Optional[Tuple[float, float]]:
        """Latest (frequency, cents) reading for the key being measured."""
        return self._profile_reading

    @property
    def current_entry(self) -> Optional[TuningOrderEntry]:
        if self._session is None or self._session.is_complete():
            return None
        return self._order.entry_at(self._session.current_note_index)

    @property
    def listening(self) -> bool:
        """True while no recent confident reading is available."""
        return self._last_pitch_time is None

    @property
    def last_save_error(self) -> Optional[str]:
        return self._last_save_error

    # Event handling

    def handle(self, event: Event) -> List[Effect]:
        """Apply an event and return the effects it requests."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unknown event type: {type(event).__name__}")
        return handler(event)

    def _on_mode_selected(self, event: ModeSelected) -> List[Effect]:
        if self._state is not AppState.MODE_SELECT:
            logger.debug(f"Ignoring mode selection in state {self._state.value}")
            return []

        a4 = event.a4 if event.a4 is not None else self.config.a4
        if a4 <= 0:
            raise ValueError(f"A4 reference must be positive, got {a4}")

        if event.mode is TuningMode.PROFILE:
            self._profile = PianoProfile(a4_reference=a4)
            self._profile_index = 0
            self._profile_reading = None
            self._last_pitch_time = None
            self._state = AppState.PROFILING
            logger.info(f"Profiling {NOTE_COUNT} keys at A4={a4}Hz")
        elif event.mode is TuningMode.QUICK:
            self._session = Session.quick_tune(0.0, a4)
            self._profile = PianoProfile(a4_reference=a4)
            self._calibration = []
            self._state = AppState.CALIBRATION
            logger.info(f"Quick tune session {self._session.id}: calibrating A4")
        else:
            self._session = Session.concert_pitch(a4)
            logger.info(f"Concert pitch session {self._session.id} at A4={a4}Hz")
            self._enter_tuning()
        return []

    def _on_key(self, event: KeyPress) -> List[Effect]:
        if event.key is Key.QUIT:
            self.save()
            return [Effect(EffectKind.QUIT)]

        if self._state is AppState.CALIBRATION:
            return self._calibration_key(event.key)
        if self._state is AppState.TUNING:
            return self._tuning_key(event.key)
        if self._state is AppState.PROFILING:
            return self._profiling_key(event.key)
        if self._state is AppState.COMPLETE and event.key is Key.RESTART:
            logger.info("Starting over")
            self._reset()
        return []

    def _on_pitch(self, event: PitchUpdate) -> List[Effect]:
        if self._state not in LISTENING_STATES:
            return []
        if event.confidence < self.config.min_confidence:
            return []

        if self._state is AppState.PROFILING:
            return self._profiling_pitch(event)

        self._last_pitch_time = event.timestamp
        if self._state is AppState.CALIBRATION:
            return self._calibration_pitch(event.frequency)

        steps = self._steps
        was_locked = steps.within_tolerance()
        steps.update_pitch(event.frequency)
        if (
            self.config.beep
            and steps.step in PITCH_STEPS
            and steps.within_tolerance()
            and not was_locked
        ):
            return [Effect(EffectKind.BEEP)]
        return []

    def _on_tick(self, event: Tick) -> List[Effect]:
        if (
            self._last_pitch_time is not None
            and event.timestamp - self._last_pitch_time > self.STALE_PITCH_SECONDS
        ):
            self._last_pitch_time = None
            self._profile_reading = None
            if self._steps is not None:
                self._steps.clear_pitch()
        return []

    # Calibration

    def _a4_note(self) -> Note:
        return note_by_midi(A4_MIDI)

    def _calibration_pitch(self, frequency: float) -> List[Effect]:
        expected = frequency_for(self._a4_note(), self._session.a4_reference)
        if abs(cents_from(frequency, expected)) > self.KEY_WINDOW_CENTS:
            logger.debug(f"Calibration reading {frequency:.2f}Hz is not near A4")
            return []
        self._calibration.append(frequency)
        if len(self._calibration) >= self.CALIBRATION_SAMPLES:
            self._finish_calibration()
        return []

    def _calibration_key(self, key: Key) -> List[Effect]:
        if key is Key.CONFIRM and self._calibration:
            self._finish_calibration()
        elif key is Key.SKIP:
            logger.info("Calibration skipped, tuning from the A4 reference")
            self._session.piano_offset_cents = 0.0
            self._enter_tuning()
        elif key is Key.REFERENCE:
            a4 = self._a4_note()
            return [
                Effect(
                    EffectKind.PLAY_REFERENCE,
                    frequency=frequency_for(a4, self._session.a4_reference),
                    note=a4.display_name,
                )
            ]
        return []

    def _finish_calibration(self) -> None:
        a4 = self._a4_note()
        measured = float(np.median(self._calibration))
        cents = cents_from(measured, frequency_for(a4, self._session.a4_reference))
        self._profile.record_note(a4, measured, cents)
        self._session.piano_offset_cents = self._profile.center_offset_cents()
        logger.info(
            f"Calibrated from {len(self._calibration)} readings: A4={measured:.2f}Hz, "
            f"pitch center {self._session.piano_offset_cents:+.1f} cents"
        )
        self._calibration = []
        self._enter_tuning()

    # Profiling

    def _profiling_pitch(self, event: PitchUpdate) -> List[Effect]:
        cents = cents_from(event.frequency, self.profile_target)
        if abs(cents) > self.KEY_WINDOW_CENTS:
            logger.debug(
                f"Reading {event.frequency:.2f}Hz is not near "
                f"{self.profile_note.display_name}"
            )
            return []
        self._last_pitch_time = event.timestamp
        self._profile_reading = (event.frequency, cents)
        return []

    def _profiling_key(self, key: Key) -> List[Effect]:
        note = self.profile_note
        if key is Key.CONFIRM:
            effects = []
            if self._profile_reading is not None:
                frequency, cents = self._profile_reading
                self._profile.record_note(note, frequency, cents)
                effects.append(
                    Effect(
                        EffectKind.NOTE_COMPLETED,
                        frequency=frequency,
                        note=note.display_name,
                    )
                )
            else:
                logger.debug(f"No reading for {note.display_name}, moving on")
            return effects + self._next_profile_key()
        if key is Key.SKIP:
            logger.debug(f"Skipped {note.display_name}")
            return self._next_profile_key()
        if key is Key.BACK:
            if self._profile_index > 0:
                self._profile_index -= 1
                self._clear_profile_reading()
            return []
        if key is Key.REFERENCE:
            return [
                Effect(
                    EffectKind.PLAY_REFERENCE,
                    frequency=self.profile_target,
                    note=note.display_name,
                )
            ]
        return []

    def _next_profile_key(self) -> List[Effect]:
        self._profile_index += 1
        self._clear_profile_reading()
        self.save()
        if self._profile_index < NOTE_COUNT:
            return []

        profile = self._profile
        logger.info(
            f"Profile complete: {len(profile)}/{NOTE_COUNT} keys, "
            f"average deviation {profile.average_deviation():.1f} cents, "
            f"center {profile.center_offset_cents():+.1f} cents"
        )
        self._state = AppState.COMPLETE
        return [Effect(EffectKind.PROFILE_COMPLETE)]

    def _clear_profile_reading(self) -> None:
        self._profile_reading = None
        self._last_pitch_time = None

    # Tuning

    def _tuning_key(self, key: Key) -> List[Effect]:
        steps = self._steps
        if key in (Key.CONFIRM, Key.FORCE_CONFIRM):
            if steps.confirm(force=key is Key.FORCE_CONFIRM) and steps.is_done:
                return self._finish_note()
        elif key is Key.SKIP:
            steps.skip()
            return self._finish_note()
        elif key is Key.BACK:
            self._go_back()
        elif key is Key.REFERENCE:
            return [
                Effect(
                    EffectKind.PLAY_REFERENCE,
                    frequency=steps.active_target,
                    note=steps.note.display_name,
                )
            ]
        return []

    def _finish_note(self) -> List[Effect]:
        steps = self._steps
        completed = self._session.complete_note(steps.note.display_name, steps.final_cents)
        logger.info(
            f"{completed.note} {'skipped' if steps.skipped else 'done'} "
            f"({completed.final_cents:+.1f} cents), "
            f"{self._session.current_note_index}/{len(self._order)}"
        )
        effects = [
            Effect(
                EffectKind.NOTE_COMPLETED,
                frequency=steps.target_frequency,
                note=completed.note,
            )
        ]
        self.save()

        if self._session.is_complete():
            self._state = AppState.COMPLETE
            self._steps = None
            logger.info(
                f"Session complete, average deviation "
                f"{self._session.average_deviation():.1f} cents"
            )
            effects.append(Effect(EffectKind.SESSION_COMPLETE))
        else:
            self._start_note()
        return effects

    def _go_back(self) -> None:
        index = self._session.current_note_index
        if index == 0:
            logger.debug("Already at the first note")
            return
        previous = self._order.entry_at(index - 1).note
        self._session.reopen_previous(previous.display_name)
        logger.info(f"Back to {previous.display_name}")
        self.save()
        self._start_note()

    def _enter_tuning(self) -> None:
        self._resolver = TargetResolver(self._session, self._order, self._stretch)
        if self._session.is_complete():
            self._state = AppState.COMPLETE
            self._steps = None
        else:
            self._state = AppState.TUNING
            self._start_note()
        self.save()

    def _start_note(self) -> None:
        entry = self._order.entry_at(self._session.current_note_index)
        target = self._resolver.target_for_entry(entry)
        self._steps = TrichordStepMachine(entry.note, target, self.config.tolerance)
        self._last_pitch_time = None
        logger.debug(
            f"Now tuning {entry.note.display_name} ({entry.phase.value}) "
            f"target {target:.2f}Hz"
        )

    def _resume(self, session: Session) -> None:
        logger.info(
            f"Resuming session {session.id} at note "
            f"{session.current_note_index}/{len(self._order)}"
        )
        self._session = session
        self._resolver = TargetResolver(session, self._order, self._stretch)
        if session.is_complete():
            self._state = AppState.COMPLETE
        else:
            self._state = AppState.TUNING
            self._start_note()

    def _reset(self) -> None:
        self._state = AppState.MODE_SELECT
        self._session = None
        self._resolver = None
        self._steps = None
        self._profile = None
        self._calibration = []
        self._profile_index = 0
        self._profile_reading = None
        self._last_pitch_time = None

    # Persistence

    def save(self) -> bool:
        """Persist the session, or the profile while profiling.

        Nothing is written without a configured store. A failed write is
        logged and remembered; in-memory state is kept and the next
        successful save brings the file up to date.
        """
        if self._session is not None:
            store, record, what = self._store, self._session, "session"
        else:
            store, record, what = self._profile_store, self._profile, "profile"
        if store is None or record is None:
            return False
        try:
            store.save(record)
        except PersistenceError as e:
            logger.error(f"Could not save {what}: {e}")
            self._last_save_error = str(e)
            return False
        self._last_save_error = None
        return True
