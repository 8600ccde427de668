"""
Position assignment persistence on top of the document store.
"""
from typing import List, Optional

from app.core.store import DocumentStore
from app.features.positions.schemas import AssignmentStatus, PositionAssignment
from app.utils import get_logger


log = get_logger(__name__)

COLLECTION = "member_positions"


def assignment_key(position: str, year: int, member_id: str) -> str:
    """Deterministic document id, so re-creating the same assignment overwrites it."""
    return f"{position}:{year}:{member_id}"


def _newest_first(assignments: List[PositionAssignment]) -> List[PositionAssignment]:
    return sorted(
        assignments,
        key=lambda a: (a.start_date, a.assigned_date.isoformat() if a.assigned_date else ""),
        reverse=True,
    )


class PositionAssignmentRepository:
    """
    Reads and writes ``member_positions`` documents.

    Usage:
        repo = PositionAssignmentRepository(store)
        await repo.create(assignment)
        await repo.list_year(2025)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, assignment_id: str) -> Optional[PositionAssignment]:
        doc = await self.store.get(COLLECTION, assignment_id)
        return PositionAssignment.from_document(doc) if doc else None

    async def list_all(self) -> List[PositionAssignment]:
        docs = await self.store.query(COLLECTION)
        return _newest_first([PositionAssignment.from_document(d) for d in docs])

    async def list_year(self, year: int) -> List[PositionAssignment]:
        """Assignments whose start date falls in ``year``."""
        prefix = f"{year:04d}-"
        docs = await self.store.query(COLLECTION, lambda d: str(d.get("start_date", "")).startswith(prefix))
        return [PositionAssignment.from_document(d) for d in docs]

    async def list_for_member(self, member_id: str) -> List[PositionAssignment]:
        docs = await self.store.query(COLLECTION, lambda d: d.get("member_id") == member_id)
        return _newest_first([PositionAssignment.from_document(d) for d in docs])

    async def list_for_position(self, position: str, active_only: bool = True) -> List[PositionAssignment]:
        def matches(doc) -> bool:
            if doc.get("position") != position:
                return False
            return not active_only or doc.get("status") == AssignmentStatus.ACTIVE.value

        docs = await self.store.query(COLLECTION, matches)
        return _newest_first([PositionAssignment.from_document(d) for d in docs])

    async def add(self, assignment: PositionAssignment) -> PositionAssignment:
        """Store a single assignment under a generated id, never overwriting a record."""
        doc_id = await self.store.create(COLLECTION, assignment.to_document())
        return assignment.model_copy(update={"id": doc_id})

    async def create(self, assignment: PositionAssignment) -> PositionAssignment:
        doc_id = assignment_key(assignment.position, assignment.year, assignment.member_id)
        await self.store.create(COLLECTION, assignment.to_document(), doc_id=doc_id)
        return assignment.model_copy(update={"id": doc_id})

    async def update(self, assignment_id: str, partial: dict) -> None:
        await self.store.update(COLLECTION, assignment_id, partial)

    async def delete(self, assignment_id: str) -> None:
        await self.store.delete(COLLECTION, assignment_id)

    async def delete_year(
        self,
        year: int,
        deleted: Optional[List[PositionAssignment]] = None,
    ) -> List[PositionAssignment]:
        """
        Delete every assignment starting in ``year``.

        Deleted assignments are appended to ``deleted`` as they go, so a
        caller still knows what was removed if a later delete fails.
        """
        deleted = [] if deleted is None else deleted
        for assignment in await self.list_year(year):
            await self.store.delete(COLLECTION, assignment.id)
            deleted.append(assignment)
        log.debug(f"Deleted {len(deleted)} assignments for {year}")
        return deleted
