"""
Position assignment service.

Saving a term replaces the stored year as a whole: the proposed set is
validated first, then every assignment starting in that year is deleted and
the new ones are created. When the document store supports transactions the
replace runs in one transaction; otherwise the steps run one after another and
the first failure stops the sequence and is reported together with the steps
that already completed. Failed saves are never retried here. Document ids are
deterministic, so re-running a save is safe.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel

from app.core import config
from app.core.store import DocumentStore, StoreError
from app.features.members.directory import MemberDirectory
from app.features.positions.catalog import (
    BOARD_POSITIONS,
    CADRE_POSITIONS,
    is_board,
    is_cadre,
    ordered_positions,
)
from app.features.positions.repository import PositionAssignmentRepository, assignment_key
from app.features.positions.schemas import (
    AssignmentStatus,
    AssignmentUpdate,
    BoardSeat,
    CadreSeat,
    PositionAssignment,
    RosterEntry,
    TermAssignmentSet,
    TermRosterResponse,
)
from app.features.positions.validator import (
    ValidationReport,
    Violation,
    ViolationKind,
    validate_term,
)
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Errors
# ============================================================================

class TermValidationError(Exception):
    """The proposed assignments break one or more rules; nothing was written."""

    def __init__(self, report: ValidationReport):
        super().__init__(f"{len(report.violations)} violation(s) for {report.year}")
        self.report = report


class StoreOperation(BaseModel):
    kind: Literal["delete", "create", "commit"]
    year: int
    position: Optional[str] = None
    member_id: Optional[str] = None
    document_id: Optional[str] = None

    def describe(self) -> str:
        target = f"{self.position or '*'}/{self.member_id or '*'}"
        return f"{self.kind} {target} ({self.year})"


class StoreFailure(Exception):
    """
    A store write failed part way through saving a term.

    ``completed`` lists the writes that had already gone through. When
    ``rolled_back`` is true the store undid them and the stored year is
    unchanged.
    """

    def __init__(
        self,
        failed: StoreOperation,
        completed: List[StoreOperation],
        rolled_back: bool = False,
    ):
        super().__init__(f"Store operation failed: {failed.describe()}")
        self.failed = failed
        self.completed = completed
        self.rolled_back = rolled_back


class PositionConflict(Exception):
    def __init__(self, member_id: str, position: str, existing_id: Optional[str], holder: Optional[str] = None):
        if holder is None:
            message = f"Member {member_id} already holds {position} in an overlapping period"
        else:
            message = f"{position} is already held by {holder} in an overlapping period"
        super().__init__(message)
        self.member_id = member_id
        self.position = position
        self.existing_id = existing_id
        self.holder = holder


class TermNotEditable(Exception):
    """
    The stored year cannot be shown as one term: some seat has more than one
    assignment (successive board holders, or a cadre member assigned twice).
    Saving a term over it would drop those records.
    """

    def __init__(self, year: int, positions: List[str]):
        super().__init__(f"Term {year} has several assignments for {', '.join(positions)}")
        self.year = year
        self.positions = positions


class AssignmentNotFound(Exception):
    def __init__(self, assignment_id: str):
        super().__init__(f"Position assignment {assignment_id} not found")
        self.assignment_id = assignment_id


# ============================================================================
# Collaborators
# ============================================================================

class Clock:
    """Wall clock; replaced in tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    def current_year(self) -> int:
        return self.today().year


@dataclass
class SaveResult:
    year: int
    deleted: List[PositionAssignment] = field(default_factory=list)
    created: List[PositionAssignment] = field(default_factory=list)


_LATEST = date.max


def _overlaps(a_start: date, a_end: Optional[date], b_start: date, b_end: Optional[date]) -> bool:
    return a_start < (b_end or _LATEST) and (a_end or _LATEST) > b_start


def _crowded_seats(stored: List[PositionAssignment]) -> List[str]:
    """Positions holding more than one assignment where the term allows one."""
    crowded = []
    for position in ordered_positions():
        members = [a.member_id for a in stored if a.position == position]
        if len(members) != len(set(members)) or (is_board(position) and len(members) > 1):
            crowded.append(position)
    return crowded


class PositionAssignmentService:
    """
    Orchestrates officer term assignments.

    Usage:
        service = PositionAssignmentService(store, directory)
        term = await service.load_term(2025)
        await service.save_term(term, assigned_by="M42")
    """

    def __init__(
        self,
        store: DocumentStore,
        directory: Optional[MemberDirectory] = None,
        clock: Optional[Clock] = None,
        repository_factory: Callable[[DocumentStore], PositionAssignmentRepository] = PositionAssignmentRepository,
    ):
        self.store = store
        self.directory = directory
        self.clock = clock or Clock()
        self._repository_factory = repository_factory
        self.repository = repository_factory(store)

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    def plan_term(self, term: TermAssignmentSet, assigned_by: Optional[str] = None) -> List[PositionAssignment]:
        """The assignments a save of ``term`` creates, board seats first, in canonical order."""
        assigned_date = self.clock.now()
        planned: List[PositionAssignment] = []

        def stamp(seat, member_id: str, **extra) -> PositionAssignment:
            return PositionAssignment(
                member_id=member_id,
                position=seat.position,
                start_date=seat.start_date or term.term_start,
                end_date=seat.end_date or term.term_end,
                assigned_by=assigned_by,
                assigned_date=assigned_date,
                **extra,
            )

        for seat in term.ordered_board():
            if seat.member_id:
                planned.append(stamp(seat, seat.member_id, is_acting=seat.is_acting, acting_for=seat.acting_for))
        for seat in term.ordered_cadre():
            for member_id in seat.member_ids:
                planned.append(stamp(seat, member_id))
        return planned

    async def save_term(self, term: TermAssignmentSet, assigned_by: Optional[str] = None) -> SaveResult:
        """
        Validate ``term`` and replace the stored assignments of its year.

        Raises:
            TermValidationError: the term breaks a rule; the store is untouched.
            StoreFailure: a store write failed.
        """
        report = validate_term(term)
        if not report.ok:
            log.warning(f"Rejected term {term.year}: {report.messages()}")
            raise TermValidationError(report)

        planned = self.plan_term(term, assigned_by)

        if not self.store.supports_transactions:
            result = await self._replace_year(self.repository, term.year, planned)
        else:
            try:
                async with self.store.transaction() as tx:
                    result = await self._replace_year(self._repository_factory(tx), term.year, planned)
            except StoreFailure as e:
                log.error(f"Saving term {term.year} failed and was rolled back: {e}")
                raise StoreFailure(e.failed, [], rolled_back=True) from e.__cause__
            except StoreError as e:
                log.error(f"Committing term {term.year} failed: {e}")
                raise StoreFailure(StoreOperation(kind="commit", year=term.year), [], rolled_back=True) from e

        log.info(
            f"Saved term {term.year}: removed {len(result.deleted)}, "
            f"created {len(result.created)} assignments (by {assigned_by})"
        )
        return result

    async def _replace_year(
        self,
        repository: PositionAssignmentRepository,
        year: int,
        planned: List[PositionAssignment],
    ) -> SaveResult:
        result = SaveResult(year=year)
        completed: List[StoreOperation] = []

        try:
            await repository.delete_year(year, result.deleted)
        except StoreError as e:
            completed.extend(self._deleted_ops(year, result.deleted))
            failed = StoreOperation(kind="delete", year=year)
            log.error(f"Deleting assignments for {year} failed after {len(result.deleted)} deletes: {e}")
            raise StoreFailure(failed, completed) from e
        completed.extend(self._deleted_ops(year, result.deleted))

        for assignment in planned:
            operation = StoreOperation(
                kind="create",
                year=year,
                position=assignment.position,
                member_id=assignment.member_id,
                document_id=assignment_key(assignment.position, year, assignment.member_id),
            )
            try:
                result.created.append(await repository.create(assignment))
            except StoreError as e:
                log.error(f"{operation.describe()} failed after {len(completed)} completed operations: {e}")
                raise StoreFailure(operation, completed) from e
            completed.append(operation)

        return result

    @staticmethod
    def _deleted_ops(year: int, deleted: List[PositionAssignment]) -> List[StoreOperation]:
        return [
            StoreOperation(
                kind="delete",
                year=year,
                position=a.position,
                member_id=a.member_id,
                document_id=a.id,
            )
            for a in deleted
        ]

    async def load_term(self, year: int) -> TermAssignmentSet:
        """
        The stored term as an editable set: all twenty-two seats in canonical
        order, unassigned where nothing is stored.

        Raises:
            TermNotEditable: a seat holds more than one stored assignment.
        """
        stored = await self.repository.list_year(year)
        crowded = _crowded_seats(stored)
        if crowded:
            log.warning(f"Term {year} cannot be loaded for editing, crowded seats: {crowded}")
            raise TermNotEditable(year, crowded)
        term_start, term_end = date(year, 1, 1), date(year, 12, 31)

        def explicit(value: Optional[date], default: date) -> Optional[date]:
            return None if value == default else value

        board = []
        for position in BOARD_POSITIONS:
            holder = next((a for a in stored if a.position == position), None)
            if holder is None:
                board.append(BoardSeat(position=position))
                continue
            board.append(BoardSeat(
                position=position,
                member_id=holder.member_id,
                is_acting=holder.is_acting,
                acting_for=holder.acting_for,
                start_date=explicit(holder.start_date, term_start),
                end_date=explicit(holder.end_date, term_end),
            ))

        cadre = []
        for position in CADRE_POSITIONS:
            holders = [a for a in stored if a.position == position]
            cadre.append(CadreSeat(position=position, member_ids=[a.member_id for a in holders]))

        return TermAssignmentSet(year=year, board=board, cadre=cadre)

    async def term_roster(self, year: int) -> TermRosterResponse:
        """Stored assignments of ``year`` with member display names, in canonical order."""
        stored = await self.repository.list_year(year)
        names = await self.directory.names() if self.directory else {}
        order = {code: index for index, code in enumerate(ordered_positions())}
        roster = TermRosterResponse(year=year)
        for a in sorted(stored, key=lambda a: (order.get(a.position, len(order)), a.member_id)):
            entry = RosterEntry(
                position=a.position,
                member_id=a.member_id,
                member_name=names.get(a.member_id, a.member_id),
                is_acting=a.is_acting,
                acting_for=a.acting_for,
                start_date=a.start_date,
                end_date=a.end_date,
            )
            (roster.cadre if is_cadre(a.position) else roster.board).append(entry)
        return roster

    def term_years(self, founding_year: Optional[int] = None) -> List[int]:
        """Years from the current one back to the founding year, newest first."""
        founding_year = founding_year or config.CHAPTER_FOUNDING_YEAR
        current = self.clock.current_year()
        return list(range(current, founding_year - 1, -1))

    # ------------------------------------------------------------------
    # Single assignments
    # ------------------------------------------------------------------

    async def assign_position(
        self,
        member_id: str,
        position: str,
        start_date: date,
        end_date: Optional[date] = None,
        is_acting: bool = False,
        acting_for: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> PositionAssignment:
        """
        Assign one member to one position.

        Raises:
            TermValidationError: ``end_date`` is before ``start_date``.
            PositionConflict: the member already holds the position in an
                overlapping active period, or another member actively holds
                the same board position in an overlapping period.
        """
        if end_date is not None and end_date < start_date:
            raise TermValidationError(ValidationReport(
                year=start_date.year,
                violations=[Violation(
                    kind=ViolationKind.INVALID_DATE_RANGE,
                    year=start_date.year,
                    member_ids=[member_id],
                    positions=[position],
                )],
            ))

        for existing in await self.repository.list_for_member(member_id):
            if existing.position != position or existing.status != AssignmentStatus.ACTIVE:
                continue
            if _overlaps(start_date, end_date, existing.start_date, existing.end_date):
                raise PositionConflict(member_id, position, existing.id)

        if is_board(position):
            for holder in await self.repository.list_for_position(position):
                if holder.member_id == member_id:
                    continue
                if _overlaps(start_date, end_date, holder.start_date, holder.end_date):
                    raise PositionConflict(member_id, position, holder.id, holder=holder.member_id)

        assignment = PositionAssignment(
            member_id=member_id,
            position=position,
            start_date=start_date,
            end_date=end_date,
            is_acting=is_acting,
            acting_for=acting_for,
            assigned_by=assigned_by,
            assigned_date=self.clock.now(),
        )
        created = await self.repository.add(assignment)
        log.info(f"Assigned {member_id} to {position} from {start_date} (by {assigned_by})")
        return created

    async def get_assignment(self, assignment_id: str) -> PositionAssignment:
        assignment = await self.repository.get(assignment_id)
        if assignment is None:
            raise AssignmentNotFound(assignment_id)
        return assignment

    async def update_assignment(self, assignment_id: str, changes: AssignmentUpdate) -> PositionAssignment:
        assignment = await self.get_assignment(assignment_id)
        changed = changes.model_dump(exclude_unset=True)
        # The merged record must still read back as a valid assignment
        updated = PositionAssignment.model_validate({**assignment.model_dump(), **changed})
        if updated.end_date is not None and updated.end_date < updated.start_date:
            raise TermValidationError(ValidationReport(
                year=updated.year,
                violations=[Violation(
                    kind=ViolationKind.INVALID_DATE_RANGE,
                    year=updated.year,
                    member_ids=[updated.member_id],
                    positions=[updated.position],
                )],
            ))
        update_data = {k: v for k, v in updated.to_document().items() if k in changed}
        await self.repository.update(assignment_id, update_data)
        log.info(f"Updated assignment {assignment_id}: {update_data}")
        return updated

    async def end_assignment(self, assignment_id: str, end_date: date) -> PositionAssignment:
        return await self.update_assignment(
            assignment_id,
            AssignmentUpdate(end_date=end_date, status=AssignmentStatus.INACTIVE),
        )

    async def delete_assignment(self, assignment_id: str) -> None:
        await self.get_assignment(assignment_id)
        await self.repository.delete(assignment_id)
        log.info(f"Deleted assignment {assignment_id}")

    async def current_position(self, member_id: str) -> Optional[PositionAssignment]:
        """The member's most recent active assignment."""
        for assignment in await self.repository.list_for_member(member_id):
            if assignment.status == AssignmentStatus.ACTIVE:
                return assignment
        return None

    async def position_history(self, member_id: str) -> List[PositionAssignment]:
        return await self.repository.list_for_member(member_id)

    async def holders(self, position: str) -> List[PositionAssignment]:
        return await self.repository.list_for_position(position)
