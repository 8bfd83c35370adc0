from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_Body):
    username: str
    password: str


class GenerateSlotsRequest(_Body):
    count: Union[int, str] = Field(..., description="Number of blank draft rows to create (1-80)")


class DraftPatch(_Body):
    name: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[Union[int, str]] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    blood: Optional[str] = None
    age_class: Optional[str] = None
    veg_non: Optional[str] = None
    sports: Optional[List[str]] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class RowRef(_Body):
    """Identifies a submitted row by remote id, or by team + creation timestamp."""

    id: Optional[Union[int, str]] = None
    team_id: Optional[str] = None
    timestamp: Optional[str] = None


class DeleteRequestBody(RowRef):
    reason: str = ""
    requester: str = ""
