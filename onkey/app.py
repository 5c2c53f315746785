"""Runtime wiring: event loop, detection service, effects and the UI."""

from __future__ import annotations
import queue
import threading
import time
from typing import List, Optional, Protocol

from .errors import DeviceUnavailableError
from .logger import get_logger
from .note_types import PitchResult
from .audio.reference import ReferenceTone
from .core.events import Effect, EffectKind, Event, EventEmitter, PitchUpdate, Tick
from .core.interfaces import IAudioSink, IPitchDetectionService
from .tuning.state_machine import AppState, SessionStateMachine

logger = get_logger(__name__)


class EventLoop:
    """Thread-safe event inbox consumed by a single thread.

    Producers (the detector worker, the UI) post events from any thread. The
    consumer blocks in ``next_event`` for at most one redraw interval, so the
    UI stays live whether or not audio is arriving.
    """

    def __init__(self, tick_interval: float = 1 / 30):
        self.tick_interval = tick_interval
        self._inbox: "queue.Queue[Event]" = queue.Queue()

    def post(self, event: Event) -> None:
        self._inbox.put(event)

    def next_event(self, timeout: Optional[float] = None) -> Event:
        """Next posted event, or a Tick if none arrives within ``timeout``."""
        try:
            return self._inbox.get(
                timeout=self.tick_interval if timeout is None else timeout
            )
        except queue.Empty:
            return Tick(time.monotonic())


class TuningView(Protocol):
    """What the app needs from a user interface."""

    def poll(self, state: AppState) -> List[Event]:
        ...

    def render(self, machine: SessionStateMachine) -> None:
        ...


class TuningApp:
    """Connects the detection service, the state machine and the UI."""

    BEEP_FREQUENCY = 1760.0  # Hz
    BEEP_DURATION = 0.08  # Seconds
    FINISHED_FREQUENCY = 880.0  # Hz, played when every key is done
    FINISHED_DURATION = 0.3  # Seconds

    def __init__(
        self,
        machine: SessionStateMachine,
        service: Optional[IPitchDetectionService] = None,
        sink: Optional[IAudioSink] = None,
        view: Optional[TuningView] = None,
        loop: Optional[EventLoop] = None,
        reference_duration: float = 2.0,
    ) -> None:
        self.machine = machine
        self.loop = loop or EventLoop()
        self.effects = EventEmitter()
        self._service = service
        self._sink = sink
        self._view = view
        self._reference_duration = reference_duration
        self._tone = ReferenceTone(sink.sample_rate) if sink is not None else None
        self._playback: Optional[threading.Thread] = None
        self._quit = False

        self.effects.on(EffectKind.PLAY_REFERENCE, self._play_reference)
        self.effects.on(EffectKind.BEEP, self._beep)
        self.effects.on(EffectKind.NOTE_COMPLETED, self._on_note_completed)
        self.effects.on(EffectKind.SESSION_COMPLETE, self._on_finished)
        self.effects.on(EffectKind.PROFILE_COMPLETE, self._on_finished)
        self.effects.on(EffectKind.QUIT, self._on_quit)

    @property
    def quitting(self) -> bool:
        return self._quit

    def on_pitch(self, result: PitchResult, timestamp: float) -> None:
        """Detection callback; runs on the detector worker thread."""
        self.loop.post(PitchUpdate(result.frequency, result.confidence, timestamp))

    def start(self) -> bool:
        """Start pitch detection; False if the audio input is unavailable."""
        if self._service is None:
            return True
        return self._service.start(self.on_pitch)

    def dispatch(self, event: Event) -> List[Effect]:
        """Apply one event to the state machine and run its effects."""
        effects = self.machine.handle(event)
        for effect in effects:
            self.effects.emit(effect.kind, effect)
        return effects

    def run(self) -> None:
        """Process events until a quit effect; renders at the tick rate."""
        last_render = 0.0
        while not self._quit:
            if self._view is not None:
                for event in self._view.poll(self.machine.state):
                    self.loop.post(event)

            self.dispatch(self.loop.next_event())

            now = time.monotonic()
            if self._view is not None and now - last_render >= self.loop.tick_interval:
                self._view.render(self.machine)
                last_render = now

    def shutdown(self) -> None:
        """Final save, then release audio."""
        self.machine.save()
        if self._service is not None:
            self._service.stop()
        if self._playback is not None:
            self._playback.join(timeout=self._reference_duration + 1.0)
        if self._sink is not None:
            self._sink.close()
        logger.info("Shut down")

    def _on_quit(self, _effect: Effect) -> None:
        self._quit = True

    def _on_note_completed(self, effect: Effect) -> None:
        logger.debug(f"Finished {effect.note} at {effect.frequency:.2f}Hz")

    def _on_finished(self, effect: Effect) -> None:
        what = "Profile" if effect.kind is EffectKind.PROFILE_COMPLETE else "Session"
        logger.info(f"{what} complete")
        if self.machine.config.beep:
            self._play(self.FINISHED_FREQUENCY, self.FINISHED_DURATION)

    def _play_reference(self, effect: Effect) -> None:
        logger.info(f"Reference {effect.note}: {effect.frequency:.2f}Hz")
        self._play(effect.frequency, self._reference_duration)

    def _beep(self, _effect: Effect) -> None:
        self._play(self.BEEP_FREQUENCY, self.BEEP_DURATION)

    def _play(self, frequency: float, duration: float) -> None:
        """Play a tone without blocking the event loop; a failing output is not fatal."""
        if self._sink is None:
            return
        if self._playback is not None and self._playback.is_alive():
            logger.debug("Tone already playing, ignoring")
            return

        def play():
            try:
                self._tone.play(self._sink, frequency, duration)
            except DeviceUnavailableError as e:
                logger.warning(f"Reference playback unavailable: {e}")

        self._playback = threading.Thread(target=play, name="onkey-playback", daemon=True)
        self._playback.start()
