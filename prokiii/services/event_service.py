import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from prokiii.core.exceptions import NotFoundError, StoreError, ValidationError
from prokiii.models.event_model import EventModel
from prokiii.schemas.event_schemas import EventCreate, EventUpdate
from prokiii.store import EVENTS, DocumentStore, new_document_id

logger = logging.getLogger(__name__)

class EventService:
    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _to_event(document: dict) -> EventModel:
        try:
            return EventModel(**document)
        except PydanticValidationError as e:
            raise StoreError(f"Malformed events document {document.get('id')}: {e}") from e

    async def create_event(self, creator_id: str, event_in: EventCreate) -> EventModel:
        event = EventModel(id=new_document_id(), creator_id=creator_id, **event_in.model_dump())
        await self.store.insert_one(EVENTS, event.model_dump(mode='json'))
        logger.info("Event %s '%s' created by %s", event.id, event.title, creator_id)
        return event

    async def get_event(self, event_id: str) -> Optional[EventModel]:
        document = await self.store.find_one(EVENTS, {"id": event_id})
        if document is None:
            return None
        return self._to_event(document)

    async def list_events(self) -> List[EventModel]:
        documents = await self.store.find_many(EVENTS)
        return [self._to_event(document) for document in documents]

    async def update_event(self, event_id: str, event_update: EventUpdate, current_user_id: str) -> EventModel:
        """Applies the fields present in ``event_update``. Only the event's creator may do this."""
        event = await self.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found.")
        if event.creator_id != current_user_id:
            raise PermissionError("User is not authorized to update this event.")

        update_data = event_update.model_dump(exclude_unset=True)
        if not update_data:
            return event

        # Re-validate the merged record before it reaches the store
        try:
            updated_event = EventModel(**{**event.model_dump(), **update_data})
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        await self.store.update_one(
            EVENTS,
            {"id": event_id},
            {"$set": {key: value for key, value in updated_event.model_dump(mode='json').items() if key in update_data}},
        )
        logger.info("Event %s updated by %s: %s", event_id, current_user_id, sorted(update_data))
        return updated_event
