"""Merge rules for a team's displayed participant list.

The displayed list is a fold over the remote snapshot, the rows that only
exist locally (pending or failed writes) and the change events received since
the snapshot. All functions here are pure: they return new lists and never
touch storage or the network.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Sequence, Tuple

from portal.schemas.participant import Participant, ParticipantStatus, check_transition
from portal.services.gateway import ChangeEvent, ChangeKind, MatchKey


def timestamp_key(value: str) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def newest_first(rows: Iterable[Participant]) -> List[Participant]:
    return sorted(rows, key=lambda r: timestamp_key(r.timestamp), reverse=True)


def _same_id(a: Participant, b: Participant) -> bool:
    return a.id is not None and b.id is not None and str(a.id) == str(b.id)


def _same_timestamp(a: Participant, b: Participant) -> bool:
    return bool(a.timestamp) and a.timestamp == b.timestamp


def same_row(a: Participant, b: Participant) -> bool:
    """Rows with two ids are the same only if the ids agree; otherwise fall back to timestamp."""
    if a.id is not None and b.id is not None:
        return _same_id(a, b)
    return _same_timestamp(a, b)


def matches_local(row: Participant, key: MatchKey) -> bool:
    """Whether ``key`` addresses ``row`` in the local list.

    Synced rows are matched by id; rows without an id fall back to timestamp.
    """
    if key.id is not None and row.id is not None:
        return str(row.id) == str(key.id)
    if key.timestamp and row.timestamp == key.timestamp:
        return key.id is None or row.id is None
    return False


def merge_snapshot(canonical: Sequence[Participant], local: Sequence[Participant]) -> List[Participant]:
    """Full-fetch merge: canonical rows win; local rows unknown to the store are kept.

    A local row is folded into a canonical one by id, or by timestamp when
    either side has no id yet.
    """
    merged = list(canonical)
    for row in local:
        if _find(merged, lambda r: same_row(r, row)) >= 0:
            continue
        merged.append(row)
    return newest_first(merged)


def _replace_or_prepend(rows: List[Participant], incoming: Participant, index: int) -> List[Participant]:
    if index >= 0:
        rows[index] = incoming
    else:
        rows.insert(0, incoming)
    return rows


def _find(rows: Sequence[Participant], predicate) -> int:
    for index, row in enumerate(rows):
        if predicate(row):
            return index
    return -1


def apply_change(rows: Sequence[Participant], event: ChangeEvent) -> Tuple[List[Participant], bool]:
    """Apply one change notification.

    Returns the new list and whether the caller should fall back to a full
    re-fetch because the event could not be interpreted.
    """
    result = list(rows)
    incoming = event.row
    if event.kind is None or incoming is None:
        return result, True

    if event.kind is ChangeKind.INSERT:
        index = _find(result, lambda r: same_row(r, incoming))
        return _replace_or_prepend(result, incoming, index), False

    if event.kind is ChangeKind.UPDATE:
        index = _find(result, lambda r: _same_id(r, incoming))
        if index < 0:
            index = _find(result, lambda r: same_row(r, incoming))
        return _replace_or_prepend(result, incoming, index), False

    # Deletes keep the row visible for audit and only flip its status.
    key = MatchKey(id=incoming.id, timestamp=incoming.timestamp or None)
    for index, row in enumerate(result):
        if (key.id is not None and row.id is not None and str(row.id) == str(key.id)) or (
            row.id is None and key.timestamp and row.timestamp == key.timestamp
        ):
            result[index] = row.model_copy(update={"status": ParticipantStatus.DELETED})
    return result, False


def replay(rows: Sequence[Participant], events: Iterable[ChangeEvent]) -> Tuple[List[Participant], bool]:
    """Apply events in receipt order; the flag is set if any needed a re-fetch."""
    result = list(rows)
    refetch = False
    for event in events:
        result, needs = apply_change(result, event)
        refetch = refetch or needs
    return result, refetch


def merge_inserted(rows: Sequence[Participant], inserted: Iterable[Participant]) -> List[Participant]:
    """Fold rows returned by a successful insert into the local list."""
    result = list(rows)
    for row in inserted:
        index = _find(result, lambda r: same_row(r, row))
        _replace_or_prepend(result, row, index)
    return result


def mark_status(
    rows: Sequence[Participant],
    key: MatchKey,
    status: ParticipantStatus,
    override: bool = False,
) -> Tuple[List[Participant], int]:
    """Move matching rows to ``status``; illegal transitions raise IllegalTransition."""
    result = list(rows)
    changed = 0
    for index, row in enumerate(result):
        if matches_local(row, key):
            target = check_transition(row.status, status, override=override)
            result[index] = row.model_copy(update={"status": target})
            changed += 1
    return result, changed


def mark_rejected(rows: Sequence[Participant], timestamps: Iterable[str]) -> Tuple[List[Participant], int]:
    """Flag unsynced rows whose write the store refused; they stop counting toward quotas and fees."""
    stamps = set(timestamps)
    result = list(rows)
    changed = 0
    for index, row in enumerate(result):
        if row.id is None and row.timestamp in stamps and row.status is ParticipantStatus.ACTIVE:
            result[index] = row.model_copy(update={"status": ParticipantStatus.REJECTED})
            changed += 1
    return result, changed
