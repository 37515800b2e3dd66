from pydantic import BaseModel, Field

class JoinRequest(BaseModel):
    """Payload for joining an event as (or with) a team."""
    team_name: str = Field(..., description="Name of the team to create or join.")
