from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query

from portal.core.catalog import GENDERS, MEAL_PREFERENCES, get_catalog
from portal.services.eligibility import EligibilityRules
from portal.services.fees import compute_fee, format_inr

router = APIRouter()


@router.get("")
def meet_catalog() -> Dict[str, Any]:
    catalog = get_catalog()
    return {
        "teams": list(catalog.teams),
        "sports": list(catalog.sports),
        "genders": list(GENDERS),
        "mealPreferences": list(MEAL_PREFERENCES),
        "designations": list(catalog.designations),
        "bloodTypes": list(catalog.blood_types),
        "ageClasses": {g: [c.as_dict() for c in classes] for g, classes in catalog.age_classes.items()},
        "maxSports": catalog.max_sports,
        "maxTeamSize": catalog.max_team_size,
        "ageRange": [catalog.min_age, catalog.max_age],
    }


@router.get("/age-classes")
def age_classes(
    gender: Optional[str] = Query(None, description="Male or Female"),
    age: Optional[str] = Query(None, description="Participant age; blank offers the first class only"),
) -> List[Dict[str, Any]]:
    rules = EligibilityRules(get_catalog())
    return [c.as_dict() for c in rules.allowed_age_classes(gender, age)]


@router.get("/sports")
def sports(
    gender: Optional[str] = Query(None),
    age_class: Optional[str] = Query(None, alias="ageClass"),
) -> List[str]:
    rules = EligibilityRules(get_catalog())
    return list(rules.allowed_sports(gender, age_class))


@router.get("/fee")
def fee(
    count: int = Query(..., ge=0, description="Billable participant count"),
    team_id: str = Query(..., alias="teamId"),
) -> Dict[str, Any]:
    breakdown = compute_fee(count, team_id, get_catalog().fees)
    return dict(breakdown.as_dict(), formatted=format_inr(breakdown.total))
