from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from portal.core.errors import IllegalTransition


class ParticipantStatus(str, Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"
    REQUESTED = "Requested"
    DELETED = "Deleted"
    # Local only: the store refused the row, so it never got an id.
    REJECTED = "Rejected"


_FORWARD: Dict[ParticipantStatus, FrozenSet[ParticipantStatus]] = {
    ParticipantStatus.DRAFT: frozenset({ParticipantStatus.ACTIVE}),
    ParticipantStatus.ACTIVE: frozenset({ParticipantStatus.REQUESTED, ParticipantStatus.REJECTED}),
    ParticipantStatus.REQUESTED: frozenset({ParticipantStatus.DELETED}),
    ParticipantStatus.DELETED: frozenset(),
    ParticipantStatus.REJECTED: frozenset(),
}

# Only an administrator may send a row back: rejecting a deletion request.
_OVERRIDE: Dict[ParticipantStatus, FrozenSet[ParticipantStatus]] = {
    ParticipantStatus.REQUESTED: frozenset({ParticipantStatus.ACTIVE}),
}


def can_transition(current: ParticipantStatus, target: ParticipantStatus, override: bool = False) -> bool:
    if current == target:
        return True
    if target in _FORWARD[current]:
        return True
    return override and target in _OVERRIDE.get(current, frozenset())


def check_transition(current: Any, target: Any, override: bool = False) -> ParticipantStatus:
    current_status = ParticipantStatus(current)
    target_status = ParticipantStatus(target)
    if not can_transition(current_status, target_status, override=override):
        raise IllegalTransition(current_status.value, target_status.value)
    return target_status


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_request_id() -> str:
    return f"req_{int(time.time() * 1000):x}_{secrets.token_hex(3)}"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Participant(_CamelModel):
    id: Optional[Union[int, str]] = None
    team_id: str = ""
    name: str = ""
    gender: str = ""
    age: Optional[Union[int, str]] = None  # drafts may hold blank or free text
    designation: str = ""
    phone: str = ""
    blood: str = ""
    age_class: str = ""
    veg_non: str = ""
    sports: List[str] = Field(default_factory=list)
    photo_base64: str = ""
    timestamp: str = ""
    status: ParticipantStatus = ParticipantStatus.DRAFT

    @field_validator(
        "team_id", "name", "gender", "designation", "phone", "blood", "age_class", "veg_non", "photo_base64", "timestamp",
        mode="before",
    )
    @classmethod
    def _none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("sports", mode="before")
    @classmethod
    def _sports_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [("" if s is None else s) for s in value]

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return ParticipantStatus.ACTIVE if value in (None, "") else value

    @property
    def chosen_sports(self) -> List[str]:
        return [s for s in self.sports if s and str(s).strip()]

    @property
    def counts_toward_quota(self) -> bool:
        return self.status not in (ParticipantStatus.DELETED, ParticipantStatus.REJECTED)

    @property
    def counts_toward_fee(self) -> bool:
        return self.status not in (ParticipantStatus.DELETED, ParticipantStatus.REQUESTED, ParticipantStatus.REJECTED)


class DeleteRequest(_CamelModel):
    req_id: str = Field(default_factory=new_request_id)
    row_id: Optional[Union[int, str]] = None
    team_id: str
    name: str = ""
    timestamp: Optional[str] = None
    reason: str = ""
    requester: str = ""
    requested_at: str = Field(default_factory=utc_now_iso)
    status: str = "pending"  # pending | approved | rejected
    processed_at: Optional[str] = None
