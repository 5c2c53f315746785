"""Pygame window for the guided tuner."""

import pygame
from typing import List, Optional, Tuple

from ..logger import get_logger
from ..core.events import Event, Key, KeyPress, ModeSelected
from ..tuning.notes import NOTE_COUNT, NOTES, note_by_midi
from ..tuning.session import TuningMode
from ..tuning.state_machine import AppState, SessionStateMachine
from ..tuning.temperament import DEFAULT_A4
from ..tuning.trichord import PITCH_STEPS

# Get logger for this module
logger = get_logger(__name__)

# Keys while tuning
TUNING_KEYS = {
    pygame.K_SPACE: Key.CONFIRM,
    pygame.K_RETURN: Key.CONFIRM,
    pygame.K_f: Key.FORCE_CONFIRM,
    pygame.K_s: Key.SKIP,
    pygame.K_b: Key.BACK,
    pygame.K_r: Key.REFERENCE,
    pygame.K_n: Key.RESTART,
    pygame.K_q: Key.QUIT,
    pygame.K_ESCAPE: Key.QUIT,
}

HELP_TEXT = {
    AppState.MODE_SELECT: "enter: default mode   c: concert   a: custom A4 (+/-)   k: quick   p: profile   q: quit",
    AppState.CALIBRATION: "Play A4 and let it ring   space: use readings   s: skip   r: reference   q: quit",
    AppState.TUNING: "space: confirm   f: force   s: skip   b: back   r: reference   q: quit",
    AppState.PROFILING: "space: record and next   s: skip   b: back   r: reference   q: quit",
    AppState.COMPLETE: "n: start over   q: quit",
}

METER_RANGE_CENTS = 50.0


class PygameUI:
    """Pygame window for the guided tuner"""

    def __init__(
        self,
        a4: float = DEFAULT_A4,
        default_mode: TuningMode = TuningMode.CONCERT,
        width: int = 1024,
        height: int = 768,
    ):
        """Initialize the Pygame UI

        Args:
            a4: Starting value of the custom A4 offered on the mode screen
            default_mode: Mode chosen with Enter on the mode screen
            width: Window width in pixels
            height: Window height in pixels
        """
        self.screen = None
        self.width = width
        self.height = height
        self.bg_color = (20, 20, 30)
        self.text_color = (255, 255, 0)
        self.secondary_color = (180, 255, 180)
        self.muted_color = (150, 150, 170)
        self.good_color = (80, 220, 120)
        self.warn_color = (255, 140, 60)
        self.initialized = False
        self.custom_a4 = a4
        self.default_mode = default_mode

        # Fonts
        self.title_font = None
        self.large_font = None
        self.medium_font = None
        self.small_font = None

        logger.debug("Initializing PygameUI")

    def init_screen(self) -> bool:
        """Initialize the Pygame screen and resources"""
        try:
            pygame.init()
            self.screen = pygame.display.set_mode((self.width, self.height))
            pygame.display.set_caption("onkey piano tuner")

            # Initialize fonts
            self.title_font = pygame.font.SysFont("Arial", 56, bold=True)
            self.large_font = pygame.font.SysFont("Arial", 120, bold=True)
            self.medium_font = pygame.font.SysFont("Arial", 32)
            self.small_font = pygame.font.SysFont("Arial", 20)

            self.initialized = True
            logger.info("Pygame UI initialized successfully")
            return True
        except pygame.error as e:
            logger.error(f"Failed to initialize Pygame UI: {e}")
            return False

    def poll(self, state: Optional[AppState] = None) -> List[Event]:
        """Translate pending window events into tuner events."""
        events: List[Event] = []
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                events.append(KeyPress(Key.QUIT))
            elif event.type == pygame.KEYDOWN:
                events.extend(self._translate_key(event.key, state))
        return events

    def _translate_key(self, key: int, state: Optional[AppState]) -> List[Event]:
        if state is AppState.MODE_SELECT:
            if key in (pygame.K_RETURN, pygame.K_SPACE):
                return [ModeSelected(self.default_mode)]
            if key == pygame.K_c:
                return [ModeSelected(TuningMode.CONCERT)]
            if key == pygame.K_a:
                return [ModeSelected(TuningMode.CONCERT, a4=self.custom_a4)]
            if key == pygame.K_k:
                return [ModeSelected(TuningMode.QUICK)]
            if key == pygame.K_p:
                return [ModeSelected(TuningMode.PROFILE)]
            if key in (pygame.K_EQUALS, pygame.K_PLUS, pygame.K_KP_PLUS):
                self.custom_a4 += 1.0
                return []
            if key in (pygame.K_MINUS, pygame.K_KP_MINUS):
                self.custom_a4 = max(1.0, self.custom_a4 - 1.0)
                return []
        mapped = TUNING_KEYS.get(key)
        return [KeyPress(mapped)] if mapped is not None else []

    def render(self, machine: SessionStateMachine) -> None:
        """Draw the screen for the machine's current state"""
        if not self.initialized or not self.screen:
            return

        self.screen.fill(self.bg_color)
        if machine.state is AppState.MODE_SELECT:
            self._draw_mode_select(machine)
        elif machine.state is AppState.CALIBRATION:
            self._draw_calibration(machine)
        elif machine.state is AppState.TUNING:
            self._draw_tuning(machine)
        elif machine.state is AppState.PROFILING:
            self._draw_profiling(machine)
        else:
            self._draw_complete(machine)

        self._draw_footer(HELP_TEXT[machine.state], machine.last_save_error)
        pygame.display.flip()

    def cleanup(self):
        """Clean up Pygame resources"""
        if self.initialized:
            logger.info("Cleaning up Pygame UI")
            pygame.quit()
            self.initialized = False

    # Screens

    def _draw_mode_select(self, machine: SessionStateMachine) -> None:
        self._text("onkey", self.title_font, self.text_color, (self.width // 2, 120))
        lines = [
            f"[c] Concert pitch (A4 = {machine.config.a4:.1f} Hz, stretched)",
            f"[a] Concert pitch at A4 = {self.custom_a4:.1f} Hz",
            "[k] Quick tune (keep the piano's current pitch center)",
            "[p] Profile (measure every key to find the worst)",
        ]
        y = 280
        for line in lines:
            self._text(line, self.medium_font, (255, 255, 255), (self.width // 2, y))
            y += 60

    def _draw_calibration(self, machine: SessionStateMachine) -> None:
        self._text("Calibration", self.title_font, self.text_color, (self.width // 2, 100))
        self._text(
            "Play A4 several times so the tuner can find the piano's pitch center",
            self.small_font,
            self.muted_color,
            (self.width // 2, 180),
        )
        count = machine.calibration_progress
        self._text(
            f"Readings: {count}/{machine.CALIBRATION_SAMPLES}",
            self.medium_font,
            (255, 255, 255),
            (self.width // 2, self.height // 2),
        )
        if machine.listening:
            self._text("Listening...", self.small_font, self.muted_color, (self.width // 2, self.height // 2 + 60))

    def _draw_tuning(self, machine: SessionStateMachine) -> None:
        session = machine.session
        entry = machine.current_entry
        steps = machine.steps
        if session is None or entry is None or steps is None:
            return

        # Header with progress
        header_rect = pygame.Rect(0, 0, self.width, 70)
        pygame.draw.rect(self.screen, (30, 30, 40), header_rect)
        progress = f"Key {session.current_note_index + 1}/88  ({session.progress_percent():.0f}% done)"
        self._text(progress, self.medium_font, (200, 200, 255), (self.width // 2, 35))
        phase = entry.phase.value.replace("_", " ").title()
        if entry.reference is not None:
            phase += f" from {entry.reference.display_name}"
        self._text(phase, self.small_font, self.muted_color, (120, 35))
        self._text(session.mode.value.title(), self.small_font, self.muted_color, (self.width - 80, 35))

        # Key and target
        self._text(entry.note.display_name, self.large_font, self.text_color, (self.width // 2, 170))
        self._text(
            f"Target {steps.active_target:.2f} Hz",
            self.medium_font,
            self.secondary_color,
            (self.width // 2, 250),
        )

        # Step
        title = f"Step {steps.step_number}/{steps.total_steps}: {steps.title}"
        self._text(title, self.medium_font, (255, 255, 255), (self.width // 2, 310))
        y = 350
        for line in self._wrap(steps.instruction, self.small_font, self.width - 160):
            self._text(line, self.small_font, self.muted_color, (self.width // 2, y))
            y += 26

        # Meter and reading
        self._draw_meter(steps.last_cents, steps.tolerance, 470)
        if machine.listening or steps.last_frequency is None:
            self._text("Listening...", self.medium_font, self.muted_color, (self.width // 2, 560))
        else:
            locked = steps.within_tolerance()
            color = self.good_color if locked and steps.step in PITCH_STEPS else (255, 255, 255)
            self._text(
                f"{steps.last_frequency:.2f} Hz   {steps.last_cents:+.1f} cents",
                self.medium_font,
                color,
                (self.width // 2, 560),
            )
        hint = steps.direction_hint()
        if hint:
            self._text(hint, self.small_font, self.warn_color, (self.width // 2, 605))

    def _draw_profiling(self, machine: SessionStateMachine) -> None:
        note = machine.profile_note
        profile = machine.profile
        if note is None or profile is None:
            return

        header_rect = pygame.Rect(0, 0, self.width, 70)
        pygame.draw.rect(self.screen, (30, 30, 40), header_rect)
        index = note.midi - NOTES[0].midi
        self._text(f"Key {index + 1}/{NOTE_COUNT}", self.medium_font, (200, 200, 255), (self.width // 2, 35))
        self._text("Profile", self.small_font, self.muted_color, (self.width - 80, 35))

        self._text(note.display_name, self.large_font, self.text_color, (self.width // 2, 170))
        self._text(
            f"Equal temperament {machine.profile_target:.2f} Hz",
            self.medium_font,
            self.secondary_color,
            (self.width // 2, 250),
        )
        measured = profile.get(note)
        if measured is not None:
            self._text(
                f"Recorded: {measured.frequency:.2f} Hz ({measured.cents:+.1f} cents)",
                self.small_font,
                self.muted_color,
                (self.width // 2, 310),
            )

        reading = machine.profile_reading
        self._draw_meter(reading[1] if reading else None, machine.config.tolerance, 470)
        if machine.listening or reading is None:
            self._text("Listening...", self.medium_font, self.muted_color, (self.width // 2, 560))
        else:
            self._text(
                f"{reading[0]:.2f} Hz   {reading[1]:+.1f} cents",
                self.medium_font,
                (255, 255, 255),
                (self.width // 2, 560),
            )

        count, total = profile.progress()
        self._text(
            f"Profiled: {count}/{total}  Avg deviation: {profile.average_deviation():.1f} cents",
            self.small_font,
            self.muted_color,
            (self.width // 2, 620),
        )

    def _draw_complete(self, machine: SessionStateMachine) -> None:
        session = machine.session
        if session is None:
            self._draw_profile_summary(machine)
            return
        self._text("Tuning complete", self.title_font, self.good_color, (self.width // 2, 100))
        self._text(
            f"Average deviation: {session.average_deviation():.1f} cents",
            self.medium_font,
            (255, 255, 255),
            (self.width // 2, 200),
        )
        worst = sorted(session.completed_notes, key=lambda n: abs(n.final_cents), reverse=True)[:5]
        y = 270
        for completed in worst:
            self._text(
                f"{completed.note}: {completed.final_cents:+.1f} cents",
                self.small_font,
                self.muted_color,
                (self.width // 2, y),
            )
            y += 30

    def _draw_profile_summary(self, machine: SessionStateMachine) -> None:
        profile = machine.profile
        self._text("Profile complete", self.title_font, self.good_color, (self.width // 2, 100))
        if profile is None:
            return
        count, total = profile.progress()
        self._text(
            f"{count}/{total} keys   average {profile.average_deviation():.1f} cents   "
            f"center {profile.center_offset_cents():+.1f} cents",
            self.medium_font,
            (255, 255, 255),
            (self.width // 2, 200),
        )
        self._text("Keys furthest from pitch", self.small_font, self.secondary_color, (self.width // 2, 260))
        y = 300
        for measured in profile.worst_notes(5):
            note = note_by_midi(measured.midi)
            self._text(
                f"{note.display_name}: {measured.frequency:.2f} Hz ({measured.cents:+.1f} cents)",
                self.small_font,
                self.muted_color,
                (self.width // 2, y),
            )
            y += 30

    # Drawing helpers

    def _draw_meter(self, cents: Optional[float], tolerance: float, y: int) -> None:
        left, right = 120, self.width - 120
        center = (left + right) // 2
        scale = (right - left) / (2 * METER_RANGE_CENTS)

        pygame.draw.line(self.screen, self.muted_color, (left, y), (right, y), 2)
        band = int(tolerance * scale)
        pygame.draw.rect(self.screen, (40, 90, 50), (center - band, y - 20, 2 * band, 40))
        for mark in range(-50, 51, 10):
            x = center + int(mark * scale)
            pygame.draw.line(self.screen, self.muted_color, (x, y - 8), (x, y + 8), 1)
            self._text(f"{mark:+d}" if mark else "0", self.small_font, self.muted_color, (x, y + 30))

        if cents is None:
            return
        clamped = max(-METER_RANGE_CENTS, min(METER_RANGE_CENTS, cents))
        x = center + int(clamped * scale)
        color = self.good_color if abs(cents) <= tolerance else self.warn_color
        pygame.draw.line(self.screen, color, (x, y - 30), (x, y + 30), 4)

    def _draw_footer(self, text: str, error: Optional[str]) -> None:
        self._text(text, self.small_font, self.muted_color, (self.width // 2, self.height - 40))
        if error:
            self._text(f"Not saved: {error}", self.small_font, self.warn_color, (self.width // 2, self.height - 70))

    def _text(self, text: str, font, color, center: Tuple[int, int]) -> None:
        surface = font.render(text, True, color)
        rect = surface.get_rect(center=center)
        self.screen.blit(surface, rect)

    @staticmethod
    def _wrap(text: str, font, max_width: int) -> List[str]:
        lines: List[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}".strip()
            if font.size(candidate)[0] <= max_width:
                current = candidate
            else:
                if current:
                    lines.append(current)
                current = word
        if current:
            lines.append(current)
        return lines
