"""
Snapshot service.

JSON codec for the whole AppState. The same format is used for the
persisted state blob and for backup files, so a backup can be restored
on any machine and a persisted blob can be inspected as a backup.
"""
from datetime import datetime
from typing import Union
import json

from pydantic import ValidationError as PydanticValidationError

from schemas import AppState
from core.exceptions import InvalidSnapshotFormat

REQUIRED_COLLECTIONS = ("slots", "history", "waitingList")


def encode_state(state: AppState, indent: Union[int, None] = None) -> str:
    return state.model_dump_json(by_alias=True, indent=indent)


def export_backup(state: AppState) -> str:
    """Pretty-printed backup document."""
    return encode_state(state, indent=2)


def decode_state(blob: Union[str, bytes]) -> AppState:
    """
    Parse a persisted blob or backup file into an AppState.

    The document is rejected as a whole if it is not JSON, if any of
    the three top-level collections is missing, or if any entry fails
    validation (bad timestamp, slot occupied without entry time, ...).

    Raises InvalidSnapshotFormat.
    """
    if isinstance(blob, bytes):
        try:
            blob = blob.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidSnapshotFormat(f"Snapshot is not UTF-8 text: {e}") from e

    try:
        payload = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise InvalidSnapshotFormat(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidSnapshotFormat(
            f"Snapshot must be a JSON object, got {type(payload).__name__}"
        )

    missing = [key for key in REQUIRED_COLLECTIONS if payload.get(key) is None]
    if missing:
        raise InvalidSnapshotFormat(
            f"Snapshot is missing required collection(s): {', '.join(missing)}"
        )

    try:
        return AppState.model_validate(payload)
    except PydanticValidationError as e:
        raise InvalidSnapshotFormat(
            f"Snapshot has an invalid structure ({e.error_count()} error(s)): {e}"
        ) from e


def backup_filename(now: datetime) -> str:
    return f"backup_{now.date().isoformat()}.json"
