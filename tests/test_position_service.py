from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from app.core.store import StoreError
from app.features.members.directory import MEMBERS_COLLECTION, StoreMemberDirectory
from app.features.positions.repository import COLLECTION, PositionAssignmentRepository
from app.features.positions.schemas import AssignmentStatus, AssignmentUpdate, TermAssignmentSet
from app.features.positions.service import (
    AssignmentNotFound,
    Clock,
    PositionAssignmentService,
    PositionConflict,
    StoreFailure,
    TermNotEditable,
    TermValidationError,
)
from app.features.positions.validator import ViolationKind
from tests.fakes.fake_store import FakeDocumentStore, RecordingRepository


class FixedClock(Clock):
    def now(self):
        return datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


class FailingRepository(RecordingRepository):
    """Raises on the create for ``fail_member``."""

    fail_member = "M2"

    async def create(self, assignment):
        if assignment.member_id == self.fail_member:
            raise StoreError(f"create for {assignment.member_id} refused")
        return await super().create(assignment)


def simple_term(year=2025):
    return TermAssignmentSet.from_mapping(
        year,
        board={"president": "M1"},
        cadre={"president_cadre": ["M2", "M3"]},
    )


def recording_service(store, calls):
    return PositionAssignmentService(
        store,
        clock=FixedClock(),
        repository_factory=lambda s: RecordingRepository(s, calls),
    )


@pytest.mark.asyncio
async def test_rejected_term_makes_no_store_calls(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    bad = TermAssignmentSet.from_mapping(2025, board={"president": "M1", "treasurer": "M1"})

    with pytest.raises(TermValidationError) as exc_info:
        await service.save_term(bad)

    assert [v.kind for v in exc_info.value.report.violations] == [ViolationKind.DUPLICATE_BOARD_MEMBER]
    assert fake_store.calls == []


@pytest.mark.asyncio
async def test_save_deletes_year_then_creates_in_order(fake_store):
    calls = []
    service = recording_service(fake_store, calls)

    result = await service.save_term(simple_term(), assigned_by="M9")

    assert calls == [
        ("delete_year", 2025),
        ("create", "M1", "president"),
        ("create", "M2", "president_cadre"),
        ("create", "M3", "president_cadre"),
    ]
    assert [a.id for a in result.created] == [
        "president:2025:M1",
        "president_cadre:2025:M2",
        "president_cadre:2025:M3",
    ]
    first = result.created[0]
    assert first.start_date == date(2025, 1, 1)
    assert first.end_date == date(2025, 12, 31)
    assert first.assigned_by == "M9"
    assert first.status == AssignmentStatus.ACTIVE


@pytest.mark.asyncio
async def test_save_replaces_previous_year_only(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    await service.save_term(TermAssignmentSet.from_mapping(2024, board={"mentor": "M7"}))
    await service.save_term(TermAssignmentSet.from_mapping(2025, board={"treasurer": "M8"}))

    result = await service.save_term(simple_term())

    assert [a.member_id for a in result.deleted] == ["M8"]
    assert sorted(fake_store.collections[COLLECTION]) == [
        "mentor:2024:M7",
        "president:2025:M1",
        "president_cadre:2025:M2",
        "president_cadre:2025:M3",
    ]


@pytest.mark.asyncio
async def test_create_failure_stops_and_reports_completed_steps():
    failing_id = "president_cadre:2025:M2"
    store = FakeDocumentStore(fail_when=lambda op, coll, doc_id: op == "create" and doc_id == failing_id)
    store.seed(COLLECTION, "treasurer:2025:M8", {
        "member_id": "M8",
        "position": "treasurer",
        "start_date": "2025-01-01",
        "end_date": "2025-12-31",
        "status": "active",
    })
    service = PositionAssignmentService(store, clock=FixedClock())

    with pytest.raises(StoreFailure) as exc_info:
        await service.save_term(simple_term())

    failure = exc_info.value
    assert failure.rolled_back is False
    assert failure.failed.kind == "create"
    assert failure.failed.member_id == "M2"
    assert failure.failed.document_id == failing_id
    assert [(op.kind, op.document_id) for op in failure.completed] == [
        ("delete", "treasurer:2025:M8"),
        ("create", "president:2025:M1"),
    ]
    # nothing after the failed step was attempted
    assert ("create", COLLECTION, "president_cadre:2025:M3") not in store.calls


@pytest.mark.asyncio
async def test_delete_failure_is_reported_before_any_create():
    store = FakeDocumentStore(fail_when=lambda op, coll, doc_id: op == "delete")
    store.seed(COLLECTION, "treasurer:2025:M8", {
        "member_id": "M8",
        "position": "treasurer",
        "start_date": "2025-01-01",
        "status": "active",
    })
    service = PositionAssignmentService(store, clock=FixedClock())

    with pytest.raises(StoreFailure) as exc_info:
        await service.save_term(simple_term())

    assert exc_info.value.failed.kind == "delete"
    assert exc_info.value.completed == []
    assert not [call for call in store.calls if call[0] == "create"]


@pytest.mark.asyncio
async def test_transactional_store_rolls_back_failed_save(sql_store):
    service = PositionAssignmentService(sql_store, clock=FixedClock())
    await service.save_term(TermAssignmentSet.from_mapping(2025, board={"treasurer": "M8"}))

    failing = PositionAssignmentService(
        sql_store,
        clock=FixedClock(),
        repository_factory=FailingRepository,
    )
    with pytest.raises(StoreFailure) as exc_info:
        await failing.save_term(simple_term())

    assert exc_info.value.rolled_back is True
    assert exc_info.value.completed == []
    assert exc_info.value.failed.member_id == "M2"

    stored = await service.repository.list_year(2025)
    assert [(a.position, a.member_id) for a in stored] == [("treasurer", "M8")]


@pytest.mark.asyncio
async def test_resaving_the_same_term_is_stable(sql_store):
    service = PositionAssignmentService(sql_store, clock=FixedClock())
    first = await service.save_term(simple_term())
    second = await service.save_term(simple_term())

    assert [a.id for a in second.created] == [a.id for a in first.created]
    assert len(second.deleted) == 3
    assert len(await service.repository.list_year(2025)) == 3


@pytest.mark.asyncio
async def test_load_term_returns_every_seat(sql_store):
    service = PositionAssignmentService(sql_store, clock=FixedClock())
    await service.save_term(simple_term())

    term = await service.load_term(2025)

    assert len(term.board) == 11
    assert len(term.cadre) == 11
    assert term.board[0].position == "president"
    assert term.board[0].member_id == "M1"
    assert term.board[0].start_date is None
    assert term.board[1].member_id is None
    assert term.cadre[0].member_ids == ["M2", "M3"]
    assert all(seat.member_ids == [] for seat in term.cadre[1:])


@pytest.mark.asyncio
async def test_load_term_for_empty_year(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    term = await service.load_term(2030)
    assert term == TermAssignmentSet.empty(2030)


@pytest.mark.asyncio
async def test_term_roster_uses_member_names(fake_store):
    fake_store.seed(MEMBERS_COLLECTION, "M1", {"name": "Amelia Hart"})
    service = PositionAssignmentService(fake_store, StoreMemberDirectory(fake_store), clock=FixedClock())
    await service.save_term(simple_term())

    roster = await service.term_roster(2025)

    assert [(e.position, e.member_name) for e in roster.board] == [("president", "Amelia Hart")]
    assert [e.member_name for e in roster.cadre] == ["M2", "M3"]


def test_term_years_count_back_to_founding(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    assert service.term_years(2022) == [2025, 2024, 2023, 2022]


@pytest.mark.asyncio
async def test_assign_position_rejects_overlap(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    created = await service.assign_position("M1", "secretary", date(2025, 1, 1), assigned_by="M9")
    assert created.id == "doc-0001"
    assert created.assigned_date == FixedClock().now()

    with pytest.raises(PositionConflict) as exc_info:
        await service.assign_position("M1", "secretary", date(2025, 6, 1), date(2025, 9, 1))
    assert exc_info.value.existing_id == created.id

    # a different position does not conflict
    await service.assign_position("M1", "mentor", date(2025, 6, 1))


@pytest.mark.asyncio
async def test_assign_position_rejects_inverted_dates(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    with pytest.raises(TermValidationError) as exc_info:
        await service.assign_position("M1", "secretary", date(2025, 6, 1), date(2025, 1, 1))
    assert exc_info.value.report.violations[0].kind == ViolationKind.INVALID_DATE_RANGE
    assert fake_store.writes() == []


@pytest.mark.asyncio
async def test_end_assignment_marks_inactive(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    created = await service.assign_position("M1", "treasurer", date(2025, 1, 1))

    ended = await service.end_assignment(created.id, date(2025, 4, 30))

    assert ended.status == AssignmentStatus.INACTIVE
    assert ended.end_date == date(2025, 4, 30)
    stored = await service.get_assignment(created.id)
    assert stored.status == AssignmentStatus.INACTIVE
    assert await service.current_position("M1") is None
    assert await service.holders("treasurer") == []


@pytest.mark.asyncio
async def test_update_and_delete_assignment(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    created = await service.assign_position("M1", "treasurer", date(2025, 1, 1))

    updated = await service.update_assignment(created.id, AssignmentUpdate(is_acting=True, acting_for="president"))
    assert updated.is_acting is True
    assert (await service.get_assignment(created.id)).acting_for == "president"

    with pytest.raises(TermValidationError):
        await service.update_assignment(created.id, AssignmentUpdate(end_date=date(2024, 1, 1)))

    await service.delete_assignment(created.id)
    with pytest.raises(AssignmentNotFound):
        await service.get_assignment(created.id)
    with pytest.raises(AssignmentNotFound):
        await service.delete_assignment(created.id)


@pytest.mark.asyncio
async def test_history_is_newest_first(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    await service.assign_position("M1", "secretary_cadre", date(2023, 1, 1), date(2023, 12, 31))
    await service.assign_position("M1", "secretary", date(2025, 1, 1))
    await service.assign_position("M1", "mentor_cadre", date(2024, 1, 1), date(2024, 12, 31))

    history = await service.position_history("M1")

    assert [a.position for a in history] == ["secretary", "mentor_cadre", "secretary_cadre"]
    assert (await service.current_position("M1")).position == "secretary"
    assert await service.position_history("M2") == []


@pytest.mark.asyncio
async def test_repository_lists_year_by_start_date(fake_store):
    repo = PositionAssignmentRepository(fake_store)
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    await service.save_term(simple_term(2024))
    await service.save_term(simple_term(2025))

    assert len(await repo.list_year(2024)) == 3
    assert len(await repo.list_all()) == 6


@pytest.mark.parametrize("changes", [
    {"is_acting": None},
    {"status": None},
    {"acting_for": "not_a_position"},
])
def test_assignment_update_rejects_unstorable_values(changes):
    with pytest.raises(ValidationError):
        AssignmentUpdate(**changes)


def test_assignment_update_allows_clearing_optional_fields():
    changes = AssignmentUpdate(end_date=None, acting_for=None)
    assert changes.model_dump(exclude_unset=True) == {"end_date": None, "acting_for": None}


@pytest.mark.asyncio
async def test_update_keeps_stored_year_readable(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    created = await service.assign_position("M1", "treasurer", date(2025, 1, 1), date(2025, 6, 30))

    updated = await service.update_assignment(created.id, AssignmentUpdate(end_date=None, acting_for="president"))

    assert updated.end_date is None
    assert fake_store.collections[COLLECTION][created.id]["acting_for"] == "president"
    assert fake_store.collections[COLLECTION][created.id]["is_acting"] is False
    history = await service.position_history("M1")
    assert [a.end_date for a in history] == [None]
    await service.save_term(TermAssignmentSet.from_mapping(2025, board={"president": "M2"}))


@pytest.mark.asyncio
async def test_reassigning_after_end_keeps_both_records(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    first = await service.assign_position("M1", "treasurer", date(2025, 1, 1))
    await service.end_assignment(first.id, date(2025, 4, 30))

    second = await service.assign_position("M1", "treasurer", date(2025, 9, 1))

    assert second.id != first.id
    history = await service.position_history("M1")
    assert [(a.start_date, a.status) for a in history] == [
        (date(2025, 9, 1), AssignmentStatus.ACTIVE),
        (date(2025, 1, 1), AssignmentStatus.INACTIVE),
    ]


@pytest.mark.asyncio
async def test_board_seat_has_one_active_holder_at_a_time(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    await service.assign_position("M1", "president", date(2025, 1, 1), date(2025, 6, 30))

    with pytest.raises(PositionConflict) as exc_info:
        await service.assign_position("M2", "president", date(2025, 3, 1))
    assert exc_info.value.holder == "M1"

    # cadre seats are shared
    await service.assign_position("M2", "president_cadre", date(2025, 3, 1))
    await service.assign_position("M3", "president_cadre", date(2025, 3, 1))
    # a successor starting after the first term ends is fine
    await service.assign_position("M2", "president", date(2025, 7, 1))


@pytest.mark.asyncio
async def test_load_term_refuses_successive_board_holders(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    await service.assign_position("M1", "president", date(2025, 1, 1), date(2025, 6, 30))
    await service.assign_position("M2", "president", date(2025, 7, 1), date(2025, 12, 31))

    with pytest.raises(TermNotEditable) as exc_info:
        await service.load_term(2025)
    assert exc_info.value.positions == ["president"]
    assert fake_store.writes() == [
        ("create", COLLECTION, "doc-0001"),
        ("create", COLLECTION, "doc-0002"),
    ]


@pytest.mark.asyncio
async def test_load_term_refuses_repeated_cadre_member(fake_store):
    service = PositionAssignmentService(fake_store, clock=FixedClock())
    first = await service.assign_position("M3", "mentor_cadre", date(2025, 1, 1))
    await service.end_assignment(first.id, date(2025, 3, 31))
    await service.assign_position("M3", "mentor_cadre", date(2025, 9, 1))

    with pytest.raises(TermNotEditable) as exc_info:
        await service.load_term(2025)
    assert exc_info.value.positions == ["mentor_cadre"]
