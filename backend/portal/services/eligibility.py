from __future__ import annotations

import math
from typing import Any, List, Optional, Tuple

from portal.core.catalog import AgeClass, MeetCatalog


def parse_age(value: Any) -> Optional[float]:
    """Return the numeric age, or None when the value is blank or not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class EligibilityRules:
    """Age-class and sport eligibility derived from the meet catalog."""

    def __init__(self, catalog: MeetCatalog) -> None:
        self.catalog = catalog

    def allowed_age_classes(self, gender: Optional[str], age: Any) -> List[AgeClass]:
        classes = self.catalog.age_classes.get(gender or "", ())
        if not classes:
            return []
        numeric = parse_age(age)
        if numeric is None:
            return [classes[0]]
        return [cls for cls in classes if numeric >= cls.min_age]

    def allowed_tiers(self, gender: Optional[str], age: Any) -> List[str]:
        return [cls.tier for cls in self.allowed_age_classes(gender, age)]

    def allowed_sports(self, gender: Optional[str], age_class: Optional[str]) -> Tuple[str, ...]:
        if not gender:
            return self.catalog.sports
        rule = self.catalog.sport_rules.get((gender, age_class or ""))
        if rule is None:
            return self.catalog.sports
        return rule.apply(self.catalog.sports)
