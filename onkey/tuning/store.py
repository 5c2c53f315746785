"""Persistence: one JSON file per session or piano profile."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import CorruptedStateError, PersistenceError
from ..logger import get_logger
from .profile import PianoProfile
from .session import Session

logger = get_logger(__name__)


def default_data_dir() -> Path:
    """~/.local/share/onkey"""
    home = os.path.expanduser("~")
    return Path(home) / ".local" / "share" / "onkey"


def default_sessions_dir() -> Path:
    return default_data_dir() / "sessions"


def default_profiles_dir() -> Path:
    return default_data_dir() / "profiles"


def _file_name(record_id: str) -> str:
    # ISO timestamps contain ':' which some filesystems reject
    return f"{record_id.replace(':', '-')}.json"


def _write_json_atomic(directory: Path, path: Path, data: Dict[str, Any]) -> None:
    """Write ``data`` next to ``path`` and move it into place.

    A crash leaves either the old or the new version on disk.

    Raises:
        PersistenceError: If the file could not be written
    """
    tmp_name = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceError(f"Could not save {path}: {e}") from e


def _read_json(path: Path) -> Dict[str, Any]:
    with open(path, "r") as f:
        return json.load(f)


def _remove_all(directory: Path) -> int:
    if not directory.exists():
        return 0
    count = 0
    for path in directory.glob("*.json"):
        path.unlink()
        count += 1
    return count


class SessionStore:
    """Reads and writes sessions in a directory."""

    def __init__(self, directory: Optional[Union[str, Path]] = None) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding session files, or None for the default
        """
        self.directory = Path(directory) if directory else default_sessions_dir()

    def path_for(self, session: Session) -> Path:
        return self.directory / _file_name(session.id)

    def save(self, session: Session) -> Path:
        """Write a session atomically.

        Raises:
            PersistenceError: If the file could not be written
        """
        path = self.path_for(session)
        _write_json_atomic(self.directory, path, session.to_dict())
        logger.debug(f"Saved session {session.id} to {path}")
        return path

    def load(self, path: Union[str, Path]) -> Session:
        """Load a session file.

        Raises:
            CorruptedStateError: If the file is unreadable or invalid
        """
        path = Path(path)
        try:
            return Session.from_dict(_read_json(path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CorruptedStateError(path, str(e)) from e

    def list_all(self) -> List[Session]:
        """All readable sessions, most recently created first.

        Unreadable files are skipped with a warning.
        """
        if not self.directory.exists():
            return []

        sessions = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                sessions.append(self.load(path))
            except CorruptedStateError as e:
                logger.warning(f"Skipping corrupted session file {e}")

        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def load_recent_incomplete(self) -> Optional[Session]:
        """The most recently updated session that still has keys to tune."""
        incomplete = [s for s in self.list_all() if not s.is_complete()]
        if not incomplete:
            return None
        return max(incomplete, key=lambda s: s.updated_at)

    def delete(self, session: Session) -> None:
        path = self.path_for(session)
        if path.exists():
            path.unlink()

    def reset_all(self) -> int:
        """Delete every saved session.

        Returns:
            Number of session files removed
        """
        count = _remove_all(self.directory)
        logger.info(f"Removed {count} saved session(s) from {self.directory}")
        return count


class ProfileStore:
    """Reads and writes piano profiles in a directory."""

    def __init__(self, directory: Optional[Union[str, Path]] = None) -> None:
        self.directory = Path(directory) if directory else default_profiles_dir()

    def path_for(self, profile: PianoProfile) -> Path:
        return self.directory / _file_name(profile.id)

    def save(self, profile: PianoProfile) -> Path:
        """Write a profile atomically.

        Raises:
            PersistenceError: If the file could not be written
        """
        path = self.path_for(profile)
        _write_json_atomic(self.directory, path, profile.to_dict())
        logger.debug(f"Saved profile {profile.id} ({len(profile)} keys) to {path}")
        return path

    def load(self, path: Union[str, Path]) -> PianoProfile:
        """Load a profile file.

        Raises:
            CorruptedStateError: If the file is unreadable or invalid
        """
        path = Path(path)
        try:
            return PianoProfile.from_dict(_read_json(path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CorruptedStateError(path, str(e)) from e

    def list_all(self) -> List[PianoProfile]:
        """All readable profiles, most recent first; unreadable files are skipped."""
        if not self.directory.exists():
            return []

        profiles = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                profiles.append(self.load(path))
            except CorruptedStateError as e:
                logger.warning(f"Skipping corrupted profile file {e}")

        profiles.sort(key=lambda p: p.created_at, reverse=True)
        return profiles

    def reset_all(self) -> int:
        count = _remove_all(self.directory)
        logger.info(f"Removed {count} saved profile(s) from {self.directory}")
        return count
