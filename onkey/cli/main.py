"""Main entry point for the onkey CLI."""

import sys
import argparse
from typing import List, Optional

import numpy as np

from ..errors import DeviceUnavailableError
from ..logger import get_logger
from ..logging_config import setup_logging
from ..core.config import ConfigManager, TunerConfig
from ..core.events import ModeSelected
from ..core.factory import ComponentFactory
from ..audio.pitch_detection_service import detect_frames
from ..audio.reference import ReferenceTone
from ..tuning.notes import note_by_midi, note_by_name
from ..tuning.session import TuningMode
from ..tuning.store import ProfileStore, SessionStore
from ..tuning.temperament import frequency_for, nearest_note

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_DEVICE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onkey", description="onkey - guided piano tuner"
    )
    parser.add_argument(
        "--resume", action="store_true", help="Resume the most recent unfinished session"
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--quick",
        action="store_true",
        help="Quick tune: tune relative to the piano's current pitch center",
    )
    mode_group.add_argument(
        "--profile",
        action="store_true",
        help="Measure every key without tuning to find the worst ones (ignores --resume)",
    )
    parser.add_argument(
        "--a4", type=float, default=None, help="A4 reference frequency in Hz"
    )
    parser.add_argument(
        "--beep", action="store_true", help="Beep when a reading locks in tolerance"
    )
    parser.add_argument(
        "--tolerance", type=float, default=None, help="Confirmation tolerance in cents"
    )
    parser.add_argument(
        "--device", type=int, default=None, help="Audio device ID (default: system default)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    analyze_parser = subparsers.add_parser("analyze", help="Detect the pitch of a recording")
    analyze_parser.add_argument("file", help="Path to a WAV file")

    reference_parser = subparsers.add_parser("reference", help="Play a reference tone")
    reference_parser.add_argument("note", help='Note name, e.g. "A4" or "Bb3"')
    reference_parser.add_argument(
        "--duration", type=float, default=2.0, help="Duration in seconds"
    )
    reference_parser.add_argument(
        "--output", default=None, help="Write the tone to this WAV file instead of playing it"
    )

    subparsers.add_parser("history", help="List saved sessions")
    subparsers.add_parser("profiles", help="List saved piano profiles")
    subparsers.add_parser("reset", help="Delete all saved sessions and profiles")
    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, 1 if the audio device failed, 2 for usage errors)
    """
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    setup_logging("DEBUG" if parsed_args.debug else None)

    config_manager = ConfigManager()
    config = TunerConfig.load(
        config_manager,
        a4=parsed_args.a4,
        tolerance=parsed_args.tolerance,
        beep=True if parsed_args.beep else None,
    )
    factory = ComponentFactory(config_manager)
    store = SessionStore()
    profile_store = ProfileStore()

    if parsed_args.command == "analyze":
        return run_analyze(parsed_args.file, factory, config)
    if parsed_args.command == "reference":
        return run_reference(parsed_args, factory, config)
    if parsed_args.command == "history":
        return run_history(store)
    if parsed_args.command == "profiles":
        return run_profiles(profile_store)
    if parsed_args.command == "reset":
        return run_reset(store, profile_store)
    return run_interactive(parsed_args, factory, config, store, profile_store)


def run_analyze(file_path: str, factory: ComponentFactory, config: TunerConfig) -> int:
    """Print the pitch of every frame of a recording and the overall estimate."""
    try:
        source = factory.create_audio_source("wav", file_path=file_path)
    except (FileNotFoundError, RuntimeError) as e:
        print(f"Cannot read {file_path}: {e}", file=sys.stderr)
        return EXIT_USAGE

    detector = factory.create_pitch_detector()
    frequencies = []
    print(f"{file_path}: {source.duration:.2f}s at {source.sample_rate}Hz")
    frame_size = factory.frame_size_for(source.sample_rate)
    for start, result in detect_frames(source, detector, frame_size):
        if result is None or result.confidence < config.min_confidence:
            print(f"{start:7.2f}s  -")
            continue
        note, cents = nearest_note(result.frequency, config.a4)
        frequencies.append(result.frequency)
        print(
            f"{start:7.2f}s  {result.frequency:8.2f} Hz  {note.display_name:<4} "
            f"{cents:+6.1f} cents  (confidence {result.confidence:.2f})"
        )

    if not frequencies:
        print("No pitch detected")
        return EXIT_OK

    median = float(np.median(frequencies))
    note, cents = nearest_note(median, config.a4)
    print(
        f"Overall: {median:.2f} Hz = {note.display_name} {cents:+.1f} cents "
        f"({len(frequencies)} frames, A4={config.a4:.1f}Hz)"
    )
    return EXIT_OK


def run_reference(parsed_args, factory: ComponentFactory, config: TunerConfig) -> int:
    """Play (or write) an equal-tempered reference tone."""
    try:
        note = note_by_name(parsed_args.note)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE
    if parsed_args.duration <= 0:
        print("Duration must be positive", file=sys.stderr)
        return EXIT_USAGE

    frequency = frequency_for(note, config.a4)
    print(f"{note.display_name}: {frequency:.2f} Hz")

    if parsed_args.output:
        sink = factory.create_audio_sink("wav", file_path=parsed_args.output)
    else:
        try:
            sink = factory.create_audio_sink("device", device_id=parsed_args.device)
        except OSError as e:
            print(f"Audio output unavailable: {e}", file=sys.stderr)
            return EXIT_DEVICE

    try:
        ReferenceTone(sink.sample_rate).play(sink, frequency, parsed_args.duration)
    except DeviceUnavailableError as e:
        print(str(e), file=sys.stderr)
        return EXIT_DEVICE
    finally:
        sink.close()
    return EXIT_OK


def run_history(store: SessionStore) -> int:
    """List saved sessions, newest first."""
    sessions = store.list_all()
    if not sessions:
        print("No saved sessions")
        return EXIT_OK

    for session in sessions:
        status = "complete" if session.is_complete() else "in progress"
        print(
            f"{session.created_at:%Y-%m-%d %H:%M}  {session.mode.value:<7}  "
            f"A4={session.a4_reference:.1f}Hz  "
            f"{session.current_note_index:>2}/88 {status:<11}  "
            f"avg {session.average_deviation():.1f} cents"
        )
    return EXIT_OK


def run_profiles(profile_store: ProfileStore) -> int:
    """List saved piano profiles, newest first, with their worst keys."""
    profiles = profile_store.list_all()
    if not profiles:
        print("No saved profiles")
        return EXIT_OK

    for profile in profiles:
        count, total = profile.progress()
        line = (
            f"{profile.created_at:%Y-%m-%d %H:%M}  A4={profile.a4_reference:.1f}Hz  "
            f"{count:>2}/{total} keys  avg {profile.average_deviation():.1f} cents  "
            f"center {profile.center_offset_cents():+.1f} cents"
        )
        worst = [
            f"{note_by_midi(measured.midi).display_name} {measured.cents:+.1f}"
            for measured in profile.worst_notes(3)
        ]
        if worst:
            line += f"  worst: {', '.join(worst)}"
        print(line)
    return EXIT_OK


def run_reset(store: SessionStore, profile_store: ProfileStore) -> int:
    count = store.reset_all()
    profile_count = profile_store.reset_all()
    print(f"Deleted {count} session(s) and {profile_count} profile(s)")
    return EXIT_OK


def run_interactive(
    parsed_args,
    factory: ComponentFactory,
    config: TunerConfig,
    store: SessionStore,
    profile_store: ProfileStore,
) -> int:
    """Run the guided tuner in a pygame window."""
    # Imported here: the window and the audio devices are only needed interactively
    from ..app import TuningApp
    from ..tuning.state_machine import SessionStateMachine
    from ..ui import PygameUI

    session = None
    if parsed_args.resume and not parsed_args.profile:
        session = store.load_recent_incomplete()
        if session is None:
            print("No unfinished session to resume; starting a new one")

    try:
        if parsed_args.debug:
            from ..audio.devices import describe_devices

            logger.debug(f"Audio devices:\n{describe_devices()}")
        source = factory.create_audio_source("device", device_id=parsed_args.device)
    except (OSError, DeviceUnavailableError) as e:
        print(f"Audio input unavailable: {e}", file=sys.stderr)
        return EXIT_DEVICE

    service = factory.create_pitch_detection_service(source)
    try:
        sink = factory.create_audio_sink("device", device_id=parsed_args.device)
    except OSError as e:
        logger.warning(f"Audio output unavailable, reference tones disabled: {e}")
        sink = None

    machine = SessionStateMachine(
        config, store=store, session=session, profile_store=profile_store
    )
    ui = PygameUI(a4=config.a4, default_mode=config.default_mode)
    app = TuningApp(
        machine,
        service=service,
        sink=sink,
        view=ui,
        reference_duration=factory.config_manager.get_config("audio")["reference_duration"],
    )

    if not app.start():
        print("Could not start audio capture", file=sys.stderr)
        return EXIT_DEVICE
    if not ui.init_screen():
        app.shutdown()
        return EXIT_DEVICE

    if parsed_args.profile:
        app.dispatch(ModeSelected(TuningMode.PROFILE))
    elif session is None and (parsed_args.quick or parsed_args.a4 is not None):
        mode = TuningMode.QUICK if parsed_args.quick else TuningMode.CONCERT
        app.dispatch(ModeSelected(mode))

    try:
        app.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        app.shutdown()
        ui.cleanup()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
