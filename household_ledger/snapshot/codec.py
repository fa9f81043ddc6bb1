"""
Legacy Snapshot Codec

A snapshot token is the whole household (profile plus every synced
collection) as camelCase JSON, UTF-8 encoded, then base64. Tokens are
pasted between devices over chat apps, so they must stay plain text.

Tokens exported by earlier versions of the app decode here unchanged.
"""

import base64
import binascii
import json
import time

from pydantic import ValidationError

from household_ledger.models.household import SyncSnapshot


REQUIRED_KEYS = ("expenses", "familyProfile")


class SnapshotDecodeError(Exception):
    """The token is not a valid snapshot. Nothing was imported."""
    pass


def encode_snapshot(snapshot: SyncSnapshot) -> str:
    """Encode a snapshot, stamping the export time in epoch milliseconds."""
    stamped = snapshot.model_copy(update={"timestamp": int(time.time() * 1000)})
    payload = stamped.model_dump_json(by_alias=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_snapshot(token: str) -> SyncSnapshot:
    """
    Decode a snapshot token.

    Raises:
        SnapshotDecodeError: If the token is not base64 of a UTF-8 JSON
            object carrying expenses and familyProfile, or the payload
            does not validate.
    """
    if not isinstance(token, str) or not token.strip():
        raise SnapshotDecodeError("Empty snapshot token")

    try:
        raw = base64.b64decode("".join(token.split()), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise SnapshotDecodeError(f"Token is not a readable snapshot: {e}")

    if not isinstance(data, dict):
        raise SnapshotDecodeError("Snapshot payload is not an object")

    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise SnapshotDecodeError(f"Snapshot is missing {', '.join(missing)}")

    try:
        return SyncSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotDecodeError(f"Snapshot contents are invalid: {e}")
