"""
Validation of a proposed term assignment set.

All rules run on every call and every violation is collected; a term is
accepted only when the report is empty. Unassigned seats never take part in
the uniqueness rules.
"""
import enum
from collections import Counter
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from app.features.positions.schemas import TermAssignmentSet


class ViolationKind(str, enum.Enum):
    DUPLICATE_BOARD_MEMBER = "duplicate_board_member"
    DUPLICATE_CADRE_MEMBER = "duplicate_cadre_member"
    CROSS_ROLE_CONFLICT = "cross_role_conflict"
    INVALID_DATE_RANGE = "invalid_date_range"


_MESSAGES = {
    ViolationKind.DUPLICATE_BOARD_MEMBER: "{members} cannot hold more than one board position in {year} ({positions})",
    ViolationKind.DUPLICATE_CADRE_MEMBER: "{members} cannot hold more than one cadre position in {year} ({positions})",
    ViolationKind.CROSS_ROLE_CONFLICT: "{members} cannot hold both a board and a cadre position in {year} ({positions})",
    ViolationKind.INVALID_DATE_RANGE: "End date is before start date for {positions} ({members})",
}


class Violation(BaseModel):
    kind: ViolationKind
    year: int
    member_ids: List[str] = Field(default_factory=list)
    positions: List[str] = Field(default_factory=list)

    def describe(self, names: Optional[Mapping[str, str]] = None) -> str:
        """Human readable message, using display names where known."""
        names = names or {}
        return _MESSAGES[self.kind].format(
            members=", ".join(names.get(m, m) for m in self.member_ids),
            positions=", ".join(self.positions),
            year=self.year,
        )


class ValidationReport(BaseModel):
    year: int
    violations: List[Violation] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def of_kind(self, kind: ViolationKind) -> List[Violation]:
        return [v for v in self.violations if v.kind == kind]

    def member_ids(self) -> List[str]:
        """Every member named by any violation, once each, in report order."""
        return list(dict.fromkeys(m for v in self.violations for m in v.member_ids))

    def messages(self, names: Optional[Mapping[str, str]] = None) -> List[str]:
        return [v.describe(names) for v in self.violations]


def _duplicates(pairs: List[tuple], kind: ViolationKind, year: int) -> List[Violation]:
    """One violation per member occurring more than once in (member, position) pairs."""
    counts = Counter(member for member, _ in pairs)
    held: Dict[str, List[str]] = {}
    for member, position in pairs:
        if counts[member] > 1:
            held.setdefault(member, []).append(position)
    return [
        Violation(kind=kind, year=year, member_ids=[member], positions=positions)
        for member, positions in held.items()
    ]


def board_pairs(term: TermAssignmentSet) -> List[tuple]:
    return [(seat.member_id, seat.position) for seat in term.ordered_board() if seat.member_id]


def cadre_pairs(term: TermAssignmentSet) -> List[tuple]:
    return [(member, seat.position) for seat in term.ordered_cadre() for member in seat.member_ids]


def check_board_uniqueness(term: TermAssignmentSet) -> List[Violation]:
    return _duplicates(board_pairs(term), ViolationKind.DUPLICATE_BOARD_MEMBER, term.year)


def check_cadre_uniqueness(term: TermAssignmentSet) -> List[Violation]:
    # Flattened across all cadre seats, not per seat
    return _duplicates(cadre_pairs(term), ViolationKind.DUPLICATE_CADRE_MEMBER, term.year)


def check_cross_uniqueness(term: TermAssignmentSet) -> List[Violation]:
    board = board_pairs(term)
    cadre = cadre_pairs(term)
    cadre_members = {member for member, _ in cadre}
    conflicts: Dict[str, List[str]] = {}
    for member, position in board:
        if member in cadre_members:
            conflicts.setdefault(member, []).append(position)
    for member, position in cadre:
        if member in conflicts:
            conflicts[member].append(position)
    return [
        Violation(kind=ViolationKind.CROSS_ROLE_CONFLICT, year=term.year, member_ids=[member], positions=positions)
        for member, positions in conflicts.items()
    ]


def check_date_ranges(term: TermAssignmentSet) -> List[Violation]:
    violations = []
    seats = [
        *((seat, [seat.member_id] if seat.member_id else []) for seat in term.ordered_board()),
        *((seat, seat.member_ids) for seat in term.ordered_cadre()),
    ]
    for seat, members in seats:
        if not members or seat.end_date is None:
            continue
        # Seats without an explicit start are stamped with January 1st on save
        if seat.end_date < (seat.start_date or term.term_start):
            violations.append(Violation(
                kind=ViolationKind.INVALID_DATE_RANGE,
                year=term.year,
                member_ids=list(members),
                positions=[seat.position],
            ))
    return violations


def validate_term(term: TermAssignmentSet) -> ValidationReport:
    """Run every rule against ``term`` and return the combined report."""
    violations = [
        *check_board_uniqueness(term),
        *check_cadre_uniqueness(term),
        *check_cross_uniqueness(term),
        *check_date_ranges(term),
    ]
    return ValidationReport(year=term.year, violations=violations)
