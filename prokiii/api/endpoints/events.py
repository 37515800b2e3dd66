from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status

from prokiii.api.dependencies import get_current_user, get_event_service, get_roster_service
from prokiii.core.exceptions import (
    EventNotFoundError,
    MembershipConflictError,
    NotFoundError,
    ValidationError,
)
from prokiii.models.event_model import EventModel
from prokiii.models.team_model import RosterOutcome, TeamModel
from prokiii.models.user_model import UserModel
from prokiii.schemas.event_schemas import EventCreate, EventUpdate
from prokiii.schemas.team_schemas import JoinRequest
from prokiii.services.event_service import EventService
from prokiii.services.roster_service import RosterService

router = APIRouter()

async def get_existing_event(
    event_id: str = Path(..., description="The ID of the event"),
    service: EventService = Depends(get_event_service),
) -> EventModel:
    event = await service.get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event

# --- Event Endpoints ---

@router.get("", response_model=List[EventModel], summary="List events")
async def list_events(service: EventService = Depends(get_event_service)):
    return await service.list_events()

@router.post("", response_model=EventModel, status_code=201, summary="Create New Event")
async def create_event(
    event_in: EventCreate,
    current_user: UserModel = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """
    Creates a new event owned by the authenticated user.

    - **title** and **organizer** are required.
    - **prizes**: up to three labels for 1st, 2nd and 3rd place; blank labels are dropped.
    """
    return await service.create_event(current_user.id, event_in)

@router.get("/{event_id}", response_model=EventModel, summary="Get event details")
async def get_event(event: EventModel = Depends(get_existing_event)):
    return event

@router.put("/{event_id}", response_model=EventModel, summary="Update an event")
async def update_event(
    event_update: EventUpdate,
    event_id: str = Path(..., description="The ID of the event"),
    current_user: UserModel = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """Only the creator of the event may update it."""
    try:
        return await service.update_event(event_id, event_update, current_user.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

# --- Roster Endpoints ---

@router.get("/{event_id}/teams", response_model=List[TeamModel], summary="List the teams that joined an event")
async def list_teams(
    event: EventModel = Depends(get_existing_event),
    roster: RosterService = Depends(get_roster_service),
):
    return await roster.list_teams(event.id)

@router.post("/{event_id}/join", response_model=RosterOutcome, summary="Join an event as a team member")
async def join_event(
    join_in: JoinRequest,
    event_id: str = Path(..., description="The ID of the event"),
    current_user: UserModel = Depends(get_current_user),
    roster: RosterService = Depends(get_roster_service),
):
    """
    Adds the current user to the named team, creating the team if needed.
    Joining the same team again is a no-op; joining a second team for the same event is rejected.
    """
    try:
        return await roster.join(event_id, join_in.team_name, current_user.prokiii_id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MembershipConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/{event_id}/leave", response_model=RosterOutcome, summary="Leave an event")
async def leave_event(
    event_id: str = Path(..., description="The ID of the event"),
    current_user: UserModel = Depends(get_current_user),
    roster: RosterService = Depends(get_roster_service),
):
    return await roster.leave(event_id, current_user.prokiii_id)

@router.get("/{event_id}/membership", response_model=Optional[TeamModel], summary="Team of the current user, if any")
async def get_membership(
    event_id: str = Path(..., description="The ID of the event"),
    current_user: UserModel = Depends(get_current_user),
    roster: RosterService = Depends(get_roster_service),
):
    return await roster.get_membership(event_id, current_user.prokiii_id)
