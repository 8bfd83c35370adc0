from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from portal.core.catalog import GENDERS, MEAL_PREFERENCES, MeetCatalog
from portal.schemas.participant import Participant
from portal.services.eligibility import EligibilityRules, parse_age


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "Verdict":
        return cls(True)

    @classmethod
    def reject(cls, reason: str) -> "Verdict":
        return cls(False, reason)


def _blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


class QuotaValidator:
    """Decides whether a participant may be registered for a team.

    Checks run as a sequence of gates and stop at the first failure, so the
    reason text is deterministic for a given input:

    1. required fields
    2. age class allowed for gender/age
    3. sport count and sport eligibility
    4. per-sport quotas within the candidate's age class

    ``existing_for_team`` is the snapshot of the team's other rows (submitted and
    drafts). Deleted rows never count toward a quota.
    """

    def __init__(self, catalog: MeetCatalog, rules: Optional[EligibilityRules] = None) -> None:
        self.catalog = catalog
        self.rules = rules or EligibilityRules(catalog)

    def validate(self, candidate: Participant, existing_for_team: Iterable[Participant] = ()) -> Verdict:
        reason = (
            self._required_fields(candidate)
            or self._age_class(candidate)
            or self._sports(candidate)
            or self._quotas(candidate, existing_for_team)
        )
        return Verdict.reject(reason) if reason else Verdict.accept()

    def first_rejection(
        self, drafts: Sequence[Participant], submitted: Sequence[Participant]
    ) -> Optional[Tuple[int, Verdict]]:
        """Validate a batch; each draft is checked against submitted rows plus the other drafts."""
        for index, draft in enumerate(drafts):
            others: List[Participant] = list(submitted) + list(drafts[:index]) + list(drafts[index + 1:])
            verdict = self.validate(draft, others)
            if not verdict.ok:
                return index, verdict
        return None

    def _required_fields(self, p: Participant) -> Optional[str]:
        catalog = self.catalog
        if _blank(p.name):
            return "Name required"
        if p.gender not in GENDERS:
            return "Select gender (Male/Female)"
        if _blank(p.age):
            return "Age is required"
        age = parse_age(p.age)
        if age is None or age < catalog.min_age or age > catalog.max_age:
            return f"Enter valid age ({catalog.min_age}-{catalog.max_age})"
        if _blank(p.designation):
            return "Designation is required"
        if _blank(p.phone):
            return "Phone is required"
        if not re.fullmatch(r"\d{10}", re.sub(r"\D", "", p.phone)):
            return "Enter a valid 10-digit phone number"
        if _blank(p.blood):
            return "Select blood type"
        if p.blood not in catalog.blood_types:
            return "Invalid blood type selected"
        if _blank(p.age_class):
            return "Select age class"
        if p.veg_non not in MEAL_PREFERENCES:
            return "Select Veg or Non Veg"
        if _blank(p.photo_base64):
            return "Profile photo required (JPG/PNG ≤200KB)"
        return None

    def _age_class(self, p: Participant) -> Optional[str]:
        if p.age_class not in self.rules.allowed_tiers(p.gender, p.age):
            return "Invalid age class for this participant's age/gender"
        return None

    def _sports(self, p: Participant) -> Optional[str]:
        chosen = p.chosen_sports
        if not chosen:
            return "Choose at least one sport"
        if len(chosen) > self.catalog.max_sports:
            return f"Max {self.catalog.max_sports} sports allowed"
        allowed = set(self.rules.allowed_sports(p.gender, p.age_class))
        invalid = [s for s in chosen if s not in allowed]
        if invalid:
            return f"Selected sport(s) not allowed for {p.age_class}: {', '.join(invalid)}"
        return None

    def _quotas(self, p: Participant, existing_for_team: Iterable[Participant]) -> Optional[str]:
        chosen = set(p.chosen_sports)
        same_class = [r for r in existing_for_team if r.counts_toward_quota and r.age_class == p.age_class]
        gender = p.gender.lower()

        for rule in self.catalog.quotas:
            if rule.sport not in chosen:
                continue
            holders = [r for r in same_class if rule.sport in r.chosen_sports]
            if rule.per_gender is not None:
                same_gender = sum(1 for r in holders if r.gender == p.gender)
                if same_gender >= rule.per_gender:
                    return rule.gender_message.format(gender=gender)
            if rule.total is not None and len(holders) >= rule.total:
                return rule.full_message.format(gender=gender)
        return None
