"""Piano tuning domain: notes, temperament, tuning order and sessions."""

from .notes import NOTES, Note, note_by_midi, note_by_name
from .order import TuningOrder, TuningOrderEntry, TuningPhase
from .session import CompletedNote, Session, TuningMode
from .stretch import StretchCurve

__all__ = [
    "NOTES",
    "Note",
    "note_by_midi",
    "note_by_name",
    "TuningOrder",
    "TuningOrderEntry",
    "TuningPhase",
    "CompletedNote",
    "Session",
    "TuningMode",
    "StretchCurve",
]
