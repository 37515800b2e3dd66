from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

class TeamModel(BaseModel):
    """A row of the ``participants`` collection: one team's roster for one event."""
    id: str
    event_id: str
    team_name: str = Field(min_length=1)
    members: List[str] = Field(default_factory=list) # Member ids in join order, no duplicates

    class Config:
        from_attributes = True

class RosterAction(str, Enum):
    CREATED = "CREATED"
    APPENDED = "APPENDED"
    UNCHANGED = "UNCHANGED"
    REMOVED = "REMOVED"
    DELETED = "DELETED"
    NOT_MEMBER = "NOT_MEMBER"

class RosterOutcome(BaseModel):
    action: RosterAction
    team: Optional[TeamModel] = None # The team after the operation; None once deleted or if never joined

    class Config:
        use_enum_values = True

    @computed_field
    @property
    def changed(self) -> bool:
        return self.action not in (RosterAction.UNCHANGED, RosterAction.NOT_MEMBER)
