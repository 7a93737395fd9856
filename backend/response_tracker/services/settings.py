# response_tracker/services/settings.py
"""
Key/value settings kept next to the entity tables.

Two keys are used:
  - last_point_reset: ISO-8601 timestamp of the last points reset
  - preset_points: versioned JSON document of manual point entries

Values are read fresh on every call; nothing is cached here.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.setting import Setting
from ..schemas import ManualPointEntry, ManualPointsDocument

LAST_RESET_KEY = "last_point_reset"
MANUAL_POINTS_KEY = "preset_points"

MANUAL_POINTS_VERSION = 1


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = db.get(Setting, key)
    if row is None or row.value is None:
        return default
    return row.value


def set_setting(db: Session, key: str, value: str) -> None:
    row = db.get(Setting, key)
    if row is None:
        db.add(Setting(key=key, value=value))
    else:
        row.value = value
    db.flush()


def delete_setting(db: Session, key: str) -> None:
    row = db.get(Setting, key)
    if row is not None:
        db.delete(row)
        db.flush()


def get_last_reset(db: Session) -> Optional[datetime]:
    raw = get_setting(db, LAST_RESET_KEY)
    if not raw:
        return None
    return datetime.fromisoformat(raw)


def set_last_reset(db: Session, when: datetime) -> None:
    set_setting(db, LAST_RESET_KEY, when.isoformat())


def get_manual_entries(db: Session) -> List[ManualPointEntry]:
    """
    Load the manual point entries in the order they were added.

    Raises ValueError (pydantic's ValidationError included) when the stored
    document is malformed or written by an unknown schema version.
    """
    raw = get_setting(db, MANUAL_POINTS_KEY)
    if not raw:
        return []

    doc = ManualPointsDocument.model_validate_json(raw)
    if doc.version != MANUAL_POINTS_VERSION:
        raise ValueError(f"Unsupported manual points version: {doc.version}")
    return list(doc.entries)


def save_manual_entries(db: Session, entries: List[ManualPointEntry]) -> None:
    doc = ManualPointsDocument(version=MANUAL_POINTS_VERSION, entries=entries)
    set_setting(db, MANUAL_POINTS_KEY, doc.model_dump_json())


def clear_manual_entries(db: Session) -> None:
    delete_setting(db, MANUAL_POINTS_KEY)
