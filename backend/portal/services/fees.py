from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable

from portal.core.catalog import FeeSchedule
from portal.schemas.participant import Participant


@dataclass(frozen=True)
class FeeBreakdown:
    base: int
    extra_count: int
    extra_amount: int
    total: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "base": self.base,
            "extraCount": self.extra_count,
            "extraAmount": self.extra_amount,
            "total": self.total,
        }


def _as_count(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def compute_fee(participant_count: Any, team_id: str, schedule: FeeSchedule) -> FeeBreakdown:
    count = _as_count(participant_count)
    base = schedule.reduced_base if team_id in schedule.reduced_teams else schedule.standard_base
    if count <= schedule.included_players:
        return FeeBreakdown(base=base, extra_count=0, extra_amount=0, total=base)
    extra_count = count - schedule.included_players
    extra_amount = extra_count * schedule.per_player_surcharge
    return FeeBreakdown(base=base, extra_count=extra_count, extra_amount=extra_amount, total=base + extra_amount)


def billable_count(submitted: Iterable[Participant], drafts: Iterable[Participant]) -> int:
    """Active submitted rows (not Deleted or Requested) plus every draft."""
    return sum(1 for r in submitted if r.counts_toward_fee) + sum(1 for _ in drafts)


def format_inr(amount: int) -> str:
    """Indian digit grouping, e.g. 307500 -> ₹3,07,500."""
    digits = str(abs(int(amount)))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    sign = "-" if amount < 0 else ""
    return f"{sign}₹{digits}"
