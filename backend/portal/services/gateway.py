from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from portal.schemas.participant import Participant, ParticipantStatus, utc_now_iso
from portal.services.eligibility import parse_age

RowId = Union[int, str]


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A single-row change pushed by the remote store.

    ``row`` is the new row for inserts and updates and the old row for deletes.
    ``kind`` is None when the payload shape was not recognised.
    """

    kind: Optional[ChangeKind]
    row: Optional[Participant] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChangeEvent":
        raw_kind = str(payload.get("eventType") or payload.get("event") or payload.get("type") or "").upper()
        try:
            kind: Optional[ChangeKind] = ChangeKind(raw_kind)
        except ValueError:
            return cls(None)
        if kind is ChangeKind.DELETE:
            raw_row = payload.get("old")
        else:
            raw_row = payload.get("new") or payload.get("record")
        if not isinstance(raw_row, dict):
            return cls(kind if kind is ChangeKind.DELETE else None)
        return cls(kind, row_to_participant(raw_row))


@dataclass(frozen=True)
class MatchKey:
    """Addresses a remote row by id, or by team + creation timestamp."""

    id: Optional[RowId] = None
    team_id: Optional[str] = None
    timestamp: Optional[str] = None

    @classmethod
    def for_row(cls, row: Participant) -> "MatchKey":
        return cls(id=row.id, team_id=row.team_id or None, timestamp=row.timestamp or None)

    @property
    def usable(self) -> bool:
        return self.id is not None or bool(self.team_id and self.timestamp)

    def matches(self, row: Participant) -> bool:
        if self.id is not None:
            return row.id is not None and str(row.id) == str(self.id)
        return bool(self.timestamp) and row.timestamp == self.timestamp and (
            not self.team_id or row.team_id == self.team_id
        )

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "teamId": self.team_id, "timestamp": self.timestamp}


ChangeHandler = Callable[[ChangeEvent], None]


class Subscription(abc.ABC):
    @abc.abstractmethod
    def unsubscribe(self) -> None:
        ...


class ParticipantGateway(abc.ABC):
    """Data access to the remote participant store.

    Implementations raise ``RemoteUnavailable`` / ``RemoteRejected`` on failure
    and ``SubscriptionUnavailable`` when they cannot push changes.
    """

    @abc.abstractmethod
    def fetch_team_participants(self, team_id: str) -> List[Participant]:
        """Rows for one team, newest first."""

    @abc.abstractmethod
    def insert_participants(self, rows: Sequence[Participant]) -> List[Participant]:
        """Append rows; returns them with server-assigned ids."""

    @abc.abstractmethod
    def update_participant_status(self, key: MatchKey, status: ParticipantStatus) -> List[Participant]:
        """Set the status of the matching row(s); returns the updated rows."""

    @abc.abstractmethod
    def subscribe_to_team_changes(self, team_id: str, on_change: ChangeHandler) -> Subscription:
        ...

    @abc.abstractmethod
    def fetch_all_participants(self) -> List[Participant]:
        ...

    @abc.abstractmethod
    def subscribe_to_all_changes(self, on_change: ChangeHandler) -> Subscription:
        ...

    @abc.abstractmethod
    def fetch_participant_photo(self, row_id: RowId) -> Optional[str]:
        ...


def _or_none(value: Any) -> Any:
    return value if value not in ("", None) else None


def participant_to_row(p: Participant) -> Dict[str, Any]:
    """Canonical participant -> remote column layout (no id; the store assigns it)."""
    age = parse_age(p.age)
    return {
        "team_id": _or_none(p.team_id),
        "name": _or_none(p.name),
        "gender": _or_none(p.gender),
        "age": int(age) if age is not None else None,
        "designation": _or_none(p.designation),
        "phone": _or_none(p.phone),
        "blood": _or_none(p.blood),
        "age_class": _or_none(p.age_class),
        "veg_non": _or_none(p.veg_non),
        "sports": p.chosen_sports,
        "photo_base64": _or_none(p.photo_base64),
        "timestamp": p.timestamp or utc_now_iso(),
        "status": ParticipantStatus(p.status).value,
    }


def row_to_participant(row: Dict[str, Any]) -> Participant:
    """Remote row -> canonical participant; a missing status reads as Active."""
    return Participant(
        id=row.get("id"),
        team_id=row.get("team_id"),
        name=row.get("name"),
        gender=row.get("gender"),
        age=row.get("age"),
        designation=row.get("designation"),
        phone=row.get("phone"),
        blood=row.get("blood"),
        age_class=row.get("age_class"),
        veg_non=row.get("veg_non"),
        sports=row.get("sports") or [],
        photo_base64=row.get("photo_base64"),
        timestamp=row.get("timestamp"),
        status=row.get("status") or ParticipantStatus.ACTIVE,
    )
