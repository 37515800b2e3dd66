"""
Team rosters for events.

A roster row lives in the ``participants`` collection keyed by
``(event_id, team_name)``. ``RosterService`` keeps three invariants over those
rows: a member id appears at most once per roster, a roster with no members is
deleted, and a member id belongs to at most one roster per event.

Joins are a single upsert with ``$addToSet``, so concurrent joins of a new team
name converge on one row. A leave pulls the member and drops the row if it is
left empty in one store operation, so a failed or timed-out leave never leaves
an empty roster behind. The cross-row one-team-per-event rule is enforced by serializing every
mutation for an event through a per-event lock held by the service.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Dict, List, Optional, Tuple, TypeVar

from pydantic import ValidationError as PydanticValidationError

from prokiii.core.exceptions import (
    EventNotFoundError,
    MembershipConflictError,
    ProkiiiError,
    StoreError,
    ValidationError,
)
from prokiii.models.team_model import RosterAction, RosterOutcome, TeamModel
from prokiii.store import EVENTS, PARTICIPANTS, DocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0


class RosterService:
    def __init__(self, store: DocumentStore, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.store = store
        self.timeout = timeout
        # event_id -> (lock, number of holders and waiters); entries go away when unused.
        self._event_locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _event_lock(self, event_id: str) -> AsyncIterator[None]:
        lock, users = self._event_locks.get(event_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._event_locks[event_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._event_locks[event_id]
            if users == 1:
                del self._event_locks[event_id]
            else:
                self._event_locks[event_id] = (lock, users - 1)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        # The timeout bounds waiting on the store (its lock or a remote round trip).
        # Local stores do their file I/O inline, which the timeout cannot interrupt.
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Store call timed out during %s after %ss", operation, self.timeout)
            raise StoreError(f"timed out after {self.timeout}s", operation=operation) from e
        except ProkiiiError:
            raise
        except Exception as e:
            logger.error("Store call failed during %s: %s", operation, e)
            raise StoreError(str(e), operation=operation) from e

    @staticmethod
    def _to_team(document: Optional[dict]) -> Optional[TeamModel]:
        if document is None:
            return None
        try:
            return TeamModel(**document)
        except PydanticValidationError as e:
            raise StoreError(f"Malformed participants document {document.get('id')}: {e}") from e

    async def join(self, event_id: str, team_name: str, user_id: str) -> RosterOutcome:
        """
        Adds ``user_id`` to the team ``team_name`` for the event, creating the team on first join.

        Joining a team the user is already in is a no-op. Joining a second team
        for the same event raises ``MembershipConflictError``; the user has to
        leave first.
        """
        team_name = (team_name or "").strip()
        if not team_name:
            raise ValidationError("Team name cannot be empty.")

        async with self._event_lock(event_id):
            event = await self._call("join", self.store.find_one(EVENTS, {"id": event_id}))
            if event is None:
                raise EventNotFoundError(event_id)

            current = await self.get_membership(event_id, user_id)
            if current is not None:
                if current.team_name == team_name:
                    return RosterOutcome(action=RosterAction.UNCHANGED, team=current)
                raise MembershipConflictError(event_id, user_id, current.team_name)

            document = await self._call(
                "join",
                self.store.find_one_and_update(
                    PARTICIPANTS,
                    {"event_id": event_id, "team_name": team_name},
                    {"$addToSet": {"members": user_id}},
                    upsert=True,
                ),
            )
            team = self._to_team(document)

        # Empty rosters never persist, so a roster holding only this user was just created.
        action = RosterAction.CREATED if team.members == [user_id] else RosterAction.APPENDED
        logger.info("User %s joined team '%s' for event %s (%s)", user_id, team_name, event_id, action.value)
        return RosterOutcome(action=action, team=team)

    async def leave(self, event_id: str, user_id: str) -> RosterOutcome:
        """Removes ``user_id`` from its team for the event, deleting the team if it becomes empty."""
        async with self._event_lock(event_id):
            document = await self._call(
                "leave",
                self.store.pull_and_prune(PARTICIPANTS, {"event_id": event_id, "members": user_id}, "members", user_id),
            )
        team = self._to_team(document)
        if team is None:
            return RosterOutcome(action=RosterAction.NOT_MEMBER)

        if team.members:
            logger.info("User %s left team '%s' for event %s", user_id, team.team_name, event_id)
            return RosterOutcome(action=RosterAction.REMOVED, team=team)

        logger.info("User %s left team '%s' for event %s; empty team deleted", user_id, team.team_name, event_id)
        return RosterOutcome(action=RosterAction.DELETED)

    async def get_membership(self, event_id: str, user_id: str) -> Optional[TeamModel]:
        document = await self._call(
            "get_membership",
            self.store.find_one(PARTICIPANTS, {"event_id": event_id, "members": user_id}),
        )
        return self._to_team(document)

    async def list_teams(self, event_id: str) -> List[TeamModel]:
        documents = await self._call("list_teams", self.store.find_many(PARTICIPANTS, {"event_id": event_id}))
        return [self._to_team(document) for document in documents]
