import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from prokiii.core.exceptions import (
    EventNotFoundError,
    MembershipConflictError,
    StoreError,
    ValidationError,
)
from prokiii.models.team_model import RosterAction
from prokiii.services.roster_service import RosterService
from prokiii.store import EVENTS, PARTICIPANTS, InMemoryDocumentStore, JsonDocumentStore

EVENT_ID = "event_lan_party"


class SlowUpsertStore(InMemoryDocumentStore):
    """Answers reads immediately but never finishes an upsert in time."""

    async def find_one_and_update(self, collection, filter, update, upsert=False):
        await asyncio.sleep(1)
        return await super().find_one_and_update(collection, filter, update, upsert=upsert)


@pytest.fixture
def store():
    return InMemoryDocumentStore()

@pytest.fixture
def roster_service(store):
    return RosterService(store, timeout=1.0)

async def create_event(store, event_id=EVENT_ID):
    await store.insert_one(EVENTS, {"id": event_id, "title": "LAN Party", "organizer": "Prokiii", "creator_id": "u_owner"})
    return event_id


class TestJoin:

    @pytest.mark.asyncio
    async def test_join_creates_team(self, roster_service: RosterService, store):
        await create_event(store)

        outcome = await roster_service.join(EVENT_ID, "Alpha", "u1")

        assert outcome.action == RosterAction.CREATED
        assert outcome.changed is True
        assert outcome.team.team_name == "Alpha"
        assert outcome.team.members == ["u1"]
        teams = await roster_service.list_teams(EVENT_ID)
        assert len(teams) == 1

    @pytest.mark.asyncio
    async def test_join_appends_in_order(self, roster_service: RosterService, store):
        await create_event(store)

        await roster_service.join(EVENT_ID, "Alpha", "u1")
        outcome = await roster_service.join(EVENT_ID, "Alpha", "u2")

        assert outcome.action == RosterAction.APPENDED
        assert outcome.team.members == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_join_twice_is_a_noop(self, roster_service: RosterService, store):
        await create_event(store)
        first = await roster_service.join(EVENT_ID, "Alpha", "u1")

        store.find_one_and_update = AsyncMock(wraps=store.find_one_and_update)
        second = await roster_service.join(EVENT_ID, "Alpha", "u1")

        assert second.action == RosterAction.UNCHANGED
        assert second.changed is False
        assert second.team.members == first.team.members == ["u1"]
        store.find_one_and_update.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("team_name", ["", "   ", None])
    async def test_empty_team_name_rejected_without_mutation(self, roster_service: RosterService, store, team_name):
        await create_event(store)
        store.find_one_and_update = AsyncMock()

        with pytest.raises(ValidationError, match="Team name cannot be empty."):
            await roster_service.join(EVENT_ID, team_name, "u1")

        store.find_one_and_update.assert_not_called()
        assert await store.find_many(PARTICIPANTS) == []

    @pytest.mark.asyncio
    async def test_team_name_is_trimmed(self, roster_service: RosterService, store):
        await create_event(store)

        await roster_service.join(EVENT_ID, "  Alpha ", "u1")
        outcome = await roster_service.join(EVENT_ID, "Alpha", "u2")

        assert outcome.team.team_name == "Alpha"
        assert outcome.team.members == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_join_unknown_event(self, roster_service: RosterService, store):
        with pytest.raises(EventNotFoundError):
            await roster_service.join("no_such_event", "Alpha", "u1")
        assert await store.find_many(PARTICIPANTS) == []

    @pytest.mark.asyncio
    async def test_join_second_team_same_event_conflicts(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")

        with pytest.raises(MembershipConflictError) as exc_info:
            await roster_service.join(EVENT_ID, "Bravo", "u1")

        assert exc_info.value.team_name == "Alpha"
        teams = await roster_service.list_teams(EVENT_ID)
        assert [t.team_name for t in teams] == ["Alpha"]

    @pytest.mark.asyncio
    async def test_same_user_can_join_teams_of_different_events(self, roster_service: RosterService, store):
        await create_event(store, "event_a")
        await create_event(store, "event_b")

        await roster_service.join("event_a", "Alpha", "u1")
        outcome = await roster_service.join("event_b", "Bravo", "u1")

        assert outcome.action == RosterAction.CREATED
        assert (await roster_service.get_membership("event_a", "u1")).team_name == "Alpha"
        assert (await roster_service.get_membership("event_b", "u1")).team_name == "Bravo"


class TestLeave:

    @pytest.mark.asyncio
    async def test_leave_removes_then_deletes_empty_team(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")
        await roster_service.join(EVENT_ID, "Alpha", "u2")

        outcome = await roster_service.leave(EVENT_ID, "u1")
        assert outcome.action == RosterAction.REMOVED
        assert outcome.team.members == ["u2"]

        outcome = await roster_service.leave(EVENT_ID, "u2")
        assert outcome.action == RosterAction.DELETED
        assert outcome.team is None
        assert await roster_service.list_teams(EVENT_ID) == []

    @pytest.mark.asyncio
    async def test_leave_non_member_is_noop(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")
        store.update_one = AsyncMock()
        store.delete_one = AsyncMock()

        outcome = await roster_service.leave(EVENT_ID, "uX")

        assert outcome.action == RosterAction.NOT_MEMBER
        assert outcome.changed is False
        store.update_one.assert_not_called()
        store.delete_one.assert_not_called()
        teams = await roster_service.list_teams(EVENT_ID)
        assert teams[0].members == ["u1"]

    @pytest.mark.asyncio
    async def test_last_leave_does_not_depend_on_a_separate_delete(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")
        store.delete_one = AsyncMock(side_effect=ConnectionError("connection reset"))

        outcome = await roster_service.leave(EVENT_ID, "u1")

        assert outcome.action == RosterAction.DELETED
        assert await store.find_many(PARTICIPANTS) == []
        store.delete_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_leave_keeps_the_roster_intact(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")
        store._save = Mock(side_effect=StoreError("disk full", operation="save"))

        with pytest.raises(StoreError, match="disk full"):
            await roster_service.leave(EVENT_ID, "u1")

        rows = await store.find_many(PARTICIPANTS)
        assert len(rows) == 1
        assert rows[0]["members"] == ["u1"]
        assert (await roster_service.get_membership(EVENT_ID, "u1")).team_name == "Alpha"

    @pytest.mark.asyncio
    async def test_leave_then_join_other_team(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")
        await roster_service.leave(EVENT_ID, "u1")

        outcome = await roster_service.join(EVENT_ID, "Bravo", "u1")

        assert outcome.action == RosterAction.CREATED
        assert (await roster_service.get_membership(EVENT_ID, "u1")).team_name == "Bravo"


class TestMembership:

    @pytest.mark.asyncio
    async def test_get_membership_absent(self, roster_service: RosterService, store):
        await create_event(store)
        assert await roster_service.get_membership(EVENT_ID, "u1") is None

    @pytest.mark.asyncio
    async def test_membership_agrees_with_rosters(self, roster_service: RosterService, store):
        await create_event(store)
        users = ["u1", "u2", "u3", "u4"]
        steps = [
            ("join", "Alpha", "u1"),
            ("join", "Alpha", "u2"),
            ("join", "Bravo", "u3"),
            ("leave", None, "u1"),
            ("join", "Bravo", "u1"),
            ("leave", None, "u3"),
            ("join", "Alpha", "u2"),
            ("leave", None, "u4"),
        ]
        for op, team_name, user_id in steps:
            if op == "join":
                await roster_service.join(EVENT_ID, team_name, user_id)
            else:
                await roster_service.leave(EVENT_ID, user_id)

        teams = await roster_service.list_teams(EVENT_ID)
        assert sorted((t.team_name, tuple(t.members)) for t in teams) == [("Alpha", ("u2",)), ("Bravo", ("u1",))]
        for user_id in users:
            containing = [t.team_name for t in teams if user_id in t.members]
            membership = await roster_service.get_membership(EVENT_ID, user_id)
            if containing:
                assert len(containing) == 1
                assert membership.team_name == containing[0]
            else:
                assert membership is None


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_joins_of_new_team_converge_to_one_row(self, roster_service: RosterService, store):
        await create_event(store)

        await asyncio.gather(
            roster_service.join(EVENT_ID, "Alpha", "u1"),
            roster_service.join(EVENT_ID, "Alpha", "u2"),
        )

        teams = await roster_service.list_teams(EVENT_ID)
        assert len(teams) == 1
        assert sorted(teams[0].members) == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_concurrent_joins_across_service_instances(self, tmp_path):
        shared_store = JsonDocumentStore(str(tmp_path / "data"))
        await create_event(shared_store)
        first = RosterService(shared_store)
        second = RosterService(shared_store)

        await asyncio.gather(*(
            service.join(EVENT_ID, "Alpha", f"u{i}")
            for i, service in enumerate([first, second] * 5)
        ))

        teams = await first.list_teams(EVENT_ID)
        assert len(teams) == 1
        assert sorted(teams[0].members) == sorted(f"u{i}" for i in range(10))

    @pytest.mark.asyncio
    async def test_concurrent_join_and_leave_keep_the_joiner(self, roster_service: RosterService, store):
        await create_event(store)
        await roster_service.join(EVENT_ID, "Alpha", "u1")

        await asyncio.gather(
            roster_service.leave(EVENT_ID, "u1"),
            roster_service.join(EVENT_ID, "Alpha", "u2"),
        )

        teams = await roster_service.list_teams(EVENT_ID)
        assert len(teams) == 1
        assert teams[0].members == ["u2"]

    @pytest.mark.asyncio
    async def test_event_locks_are_released_after_use(self, roster_service: RosterService, store):
        await create_event(store)

        await asyncio.gather(
            roster_service.join(EVENT_ID, "Alpha", "u1"),
            roster_service.join(EVENT_ID, "Alpha", "u2"),
        )
        await roster_service.leave(EVENT_ID, "u1")
        await roster_service.leave("no_such_event", "u1")
        with pytest.raises(EventNotFoundError):
            await roster_service.join("no_such_event", "Alpha", "u1")

        assert roster_service._event_locks == {}


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_timeout_raises_store_error_and_changes_nothing(self):
        store = SlowUpsertStore()
        await create_event(store)
        service = RosterService(store, timeout=0.05)

        with pytest.raises(StoreError, match="join: timed out"):
            await service.join(EVENT_ID, "Alpha", "u1")

        assert await store.find_many(PARTICIPANTS) == []

    @pytest.mark.asyncio
    async def test_timeout_while_store_is_busy(self, store):
        await create_event(store)
        service = RosterService(store, timeout=0.05)

        async with store._lock:
            with pytest.raises(StoreError, match="join: timed out"):
                await service.join(EVENT_ID, "Alpha", "u1")

        assert await store.find_many(PARTICIPANTS) == []
        assert service._event_locks == {}

    @pytest.mark.asyncio
    async def test_unexpected_store_exception_becomes_store_error(self, roster_service: RosterService, store):
        store.find_many = AsyncMock(side_effect=ConnectionError("connection refused"))

        with pytest.raises(StoreError) as exc_info:
            await roster_service.list_teams(EVENT_ID)

        assert exc_info.value.operation == "list_teams"

    @pytest.mark.asyncio
    async def test_store_error_propagates_unchanged(self, roster_service: RosterService, store):
        original = StoreError("disk full", operation="save")
        store.find_one = AsyncMock(side_effect=original)

        with pytest.raises(StoreError) as exc_info:
            await roster_service.get_membership(EVENT_ID, "u1")

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_malformed_team_document(self, roster_service: RosterService, store):
        await store.insert_one(PARTICIPANTS, {"event_id": EVENT_ID, "team_name": "", "members": ["u1"]})

        with pytest.raises(StoreError, match="Malformed participants document"):
            await roster_service.list_teams(EVENT_ID)
