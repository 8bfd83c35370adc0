from __future__ import annotations

import csv
from typing import Any, Iterable, List

import pandas as pd

from portal.schemas.participant import Participant

EXPORT_COLUMNS = [
    "teamId",
    "name",
    "gender",
    "age",
    "designation",
    "phone",
    "blood",
    "ageClass",
    "vegNon",
    "sports",
    "photoBase64",
    "timestamp",
    "id",
    "status",
]
EXPORT_FILENAME = "chamba_registrations.csv"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _export_record(row: Participant) -> List[str]:
    return [
        _cell(row.team_id),
        _cell(row.name),
        _cell(row.gender),
        _cell(row.age),
        _cell(row.designation),
        _cell(row.phone),
        _cell(row.blood),
        _cell(row.age_class),
        _cell(row.veg_non),
        ";".join(row.chosen_sports),
        "[BASE64]" if row.photo_base64 else "",
        _cell(row.timestamp),
        _cell(row.id),
        _cell(row.status.value),
    ]


def to_frame(rows: Iterable[Participant]) -> pd.DataFrame:
    return pd.DataFrame([_export_record(r) for r in rows], columns=EXPORT_COLUMNS, dtype=str)


def export_csv(rows: Iterable[Participant]) -> str:
    """Render rows as CSV with every cell quoted; photos are redacted."""
    return to_frame(rows).to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
