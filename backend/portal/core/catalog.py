from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

OPEN = "Open"
VETERAN = "Veteran"
SENIOR_VETERAN = "Senior Veteran"

MALE = "Male"
FEMALE = "Female"
GENDERS = (MALE, FEMALE)
MEAL_PREFERENCES = ("Veg", "Non Veg")

SPORTS: Tuple[str, ...] = (
    "100 m",
    "200 m",
    "400 m",
    "800 m",
    "1500 m",
    "5000 m",
    "4x100 m relay",
    "Long Jump",
    "High Jump",
    "Triple Jump",
    "Discus Throw",
    "Shotput",
    "Javelin throw",
    "400 m walking",
    "800 m walking",
    "Chess",
    "Carrom (Singles)",
    "Carrom (Doubles)",
    "Table Tennis (Singles)",
    "Table Tennis (Doubles)",
    "Table Tennis (Mixed Doubles)",
    "Badminton (Singles)",
    "Badminton (Doubles)",
    "Badminton (Mixed Doubles)",
    "Volleyball",
    "Kabaddi",
    "Basketball",
    "Tug of War",
    "Football",
    "Lawn Tennis",
    "Quiz",
    "10k Marathon",
)

DESIGNATIONS = (
    "PCCF",
    "APCCF",
    "CCF",
    "CF",
    "DCF/DFO",
    "ACF",
    "RFO",
    "Block Officer/Forest Guard",
    "Ministerial Staff",
    "Van Mitra",
    "Others",
)

BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

TEAMS = (
    "Chamba",
    "Dharamshala",
    "Mandi",
    "Solan",
    "Hamirpur",
    "Bilaspur",
    "Nahan",
    "Wildlife",
    "Kullu",
    "Rampur",
    "Shimla",
    "HPSFDC",
    "Direction",
)


@dataclass(frozen=True)
class AgeClass:
    gender: str
    tier: str
    label: str
    min_age: int

    def as_dict(self) -> Dict[str, object]:
        return {"id": self.tier, "label": self.label, "gender": self.gender, "minAge": self.min_age}


@dataclass(frozen=True)
class SportRule:
    """Allow-list or deny-list over the master catalog for one (gender, tier)."""

    mode: str  # "allow" | "deny"
    sports: FrozenSet[str]

    def apply(self, catalog: Tuple[str, ...]) -> Tuple[str, ...]:
        if self.mode == "allow":
            return tuple(s for s in catalog if s in self.sports)
        return tuple(s for s in catalog if s not in self.sports)


@dataclass(frozen=True)
class QuotaRule:
    """Per-team, per-age-class cap on holders of one sport.

    ``per_gender`` counts existing holders of the candidate's gender, ``total``
    counts holders of any gender. Either may be unset.
    """

    sport: str
    per_gender: Optional[int] = None
    total: Optional[int] = None
    gender_message: str = ""
    full_message: str = ""


@dataclass(frozen=True)
class FeeSchedule:
    standard_base: int = 300000
    reduced_base: int = 250000
    reduced_teams: FrozenSet[str] = frozenset({"Solan", "Bilaspur"})
    included_players: int = 35
    per_player_surcharge: int = 7500


@dataclass(frozen=True)
class MeetCatalog:
    sports: Tuple[str, ...]
    age_classes: Mapping[str, Tuple[AgeClass, ...]]
    sport_rules: Mapping[Tuple[str, str], SportRule]
    quotas: Tuple[QuotaRule, ...]
    fees: FeeSchedule
    teams: Tuple[str, ...]
    designations: Tuple[str, ...] = DESIGNATIONS
    blood_types: Tuple[str, ...] = BLOOD_TYPES
    max_sports: int = 3
    max_team_size: int = 80
    min_age: int = 12
    max_age: int = 120
    photo_max_bytes: int = 200 * 1024
    photo_mime_types: Tuple[str, ...] = field(default=("image/jpeg", "image/png"))

    def age_class(self, gender: str, tier: str) -> Optional[AgeClass]:
        for cls in self.age_classes.get(gender, ()):
            if cls.tier == tier:
                return cls
        return None


AGE_CLASSES: Dict[str, Tuple[AgeClass, ...]] = {
    MALE: (
        AgeClass(MALE, OPEN, "Men - Open", 0),
        AgeClass(MALE, VETERAN, "Men - Veteran (45+)", 45),
        AgeClass(MALE, SENIOR_VETERAN, "Men - Senior Veteran (53+)", 53),
    ),
    FEMALE: (
        AgeClass(FEMALE, OPEN, "Women - Open", 0),
        AgeClass(FEMALE, VETERAN, "Women - Veteran (40+)", 40),
    ),
}

# Mixed doubles is granted to women veterans and withheld from men senior veterans.
SPORT_RULES: Dict[Tuple[str, str], SportRule] = {
    (MALE, OPEN): SportRule("deny", frozenset({"400 m walking", "800 m walking"})),
    (MALE, VETERAN): SportRule(
        "deny",
        frozenset(
            {
                "800 m",
                "1500 m",
                "5000 m",
                "4x100 m relay",
                "Triple Jump",
                "400 m walking",
                "800 m walking",
                "Carrom (Singles)",
                "Carrom (Doubles)",
            }
        ),
    ),
    (MALE, SENIOR_VETERAN): SportRule(
        "allow",
        frozenset(
            {
                "800 m walking",
                "Table Tennis (Singles)",
                "Table Tennis (Doubles)",
                "Badminton (Singles)",
                "Badminton (Doubles)",
                "Quiz",
                "10k Marathon",
            }
        ),
    ),
    (FEMALE, OPEN): SportRule("deny", frozenset({"Football", "Lawn Tennis"})),
    (FEMALE, VETERAN): SportRule(
        "allow",
        frozenset(
            {
                "800 m walking",
                "Quiz",
                "10k Marathon",
                "Badminton (Mixed Doubles)",
                "Table Tennis (Mixed Doubles)",
            }
        ),
    ),
}

QUOTAS: Tuple[QuotaRule, ...] = (
    QuotaRule("Chess", per_gender=1, gender_message="Only one {gender} player allowed in Chess for this age class"),
    QuotaRule(
        "Carrom (Singles)",
        per_gender=1,
        gender_message="Only one {gender} player allowed in Carrom (Singles) for this age class",
    ),
    QuotaRule(
        "Badminton (Singles)",
        per_gender=2,
        gender_message="Only two {gender} badminton singles allowed for this age class",
    ),
    QuotaRule(
        "Table Tennis (Singles)",
        per_gender=2,
        gender_message="Only two {gender} table tennis singles allowed for this age class",
    ),
    QuotaRule(
        "Badminton (Doubles)",
        total=2,
        full_message="Badminton doubles team already filled for this age class (max 2 participants / one team)",
    ),
    QuotaRule(
        "Table Tennis (Doubles)",
        total=2,
        full_message="Table Tennis doubles team already filled for this age class (max 2 participants / one team)",
    ),
    QuotaRule(
        "Badminton (Mixed Doubles)",
        per_gender=1,
        total=2,
        gender_message="Only one {gender} allowed in Badminton mixed doubles for this age class",
        full_message="Badminton mixed doubles team already filled for this age class",
    ),
    QuotaRule(
        "Table Tennis (Mixed Doubles)",
        per_gender=1,
        total=2,
        gender_message="Only one {gender} allowed in Table Tennis mixed doubles for this age class",
        full_message="Table Tennis mixed doubles team already filled for this age class",
    ),
)


def build_catalog() -> MeetCatalog:
    return MeetCatalog(
        sports=SPORTS,
        age_classes=MappingProxyType(AGE_CLASSES),
        sport_rules=MappingProxyType(SPORT_RULES),
        quotas=QUOTAS,
        fees=FeeSchedule(),
        teams=TEAMS,
    )


@lru_cache(maxsize=1)
def get_catalog() -> MeetCatalog:
    return build_catalog()
