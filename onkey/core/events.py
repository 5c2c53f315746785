"""Events and effects exchanged between the audio layer, the UI and the tuning state machine."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Union

from ..logger import get_logger
from ..tuning.session import TuningMode

logger = get_logger(__name__)


class Key(Enum):
    """Keyboard commands understood by the state machine."""

    CONFIRM = auto()
    FORCE_CONFIRM = auto()
    SKIP = auto()
    BACK = auto()
    REFERENCE = auto()
    RESTART = auto()
    QUIT = auto()


@dataclass(frozen=True)
class KeyPress:
    key: Key


@dataclass(frozen=True)
class PitchUpdate:
    frequency: float
    confidence: float
    timestamp: float


@dataclass(frozen=True)
class Tick:
    timestamp: float


@dataclass(frozen=True)
class ModeSelected:
    mode: TuningMode
    a4: Optional[float] = None  # Custom reference ("advanced" concert pitch)


Event = Union[KeyPress, PitchUpdate, Tick, ModeSelected]


class EffectKind(Enum):
    """Side effects requested by the state machine."""

    PLAY_REFERENCE = auto()
    BEEP = auto()
    NOTE_COMPLETED = auto()
    SESSION_COMPLETE = auto()
    PROFILE_COMPLETE = auto()
    QUIT = auto()


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    frequency: Optional[float] = None
    note: Optional[str] = None


class EventEmitter:
    """Dispatches effects (or any tagged value) to registered listeners."""

    def __init__(self):
        """Initialize the event emitter."""
        self._listeners: Dict[Any, List[Callable]] = {}

    def on(self, event_type: Any, callback: Callable) -> None:
        """Register a callback for an event type.

        Args:
            event_type: Event type to listen for
            callback: Function to call when the event occurs
        """
        if event_type not in self._listeners:
            self._listeners[event_type] = []

        if callback not in self._listeners[event_type]:
            self._listeners[event_type].append(callback)
            logger.debug(f"Added listener for event {event_type}")

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Emit an event.

        A failing listener is logged and does not stop the others.

        Args:
            event_type: Event type to emit
            *args: Positional arguments to pass to listeners
            **kwargs: Keyword arguments to pass to listeners
        """
        if event_type not in self._listeners:
            return

        for callback in self._listeners[event_type]:
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type}: {e}")

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners = {}
        logger.debug("Cleared all event listeners")
