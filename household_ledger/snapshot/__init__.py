"""Snapshot token package."""

from household_ledger.snapshot.codec import (
    SnapshotDecodeError,
    decode_snapshot,
    encode_snapshot,
)

__all__ = [
    "SnapshotDecodeError",
    "decode_snapshot",
    "encode_snapshot",
]
