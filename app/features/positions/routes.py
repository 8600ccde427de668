"""
Officer position API routes.

Provides endpoints for loading, validating and saving yearly officer terms,
and for managing individual position assignments.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from app.features.members.directory import MemberDirectory
from app.features.permissions.catalog import Action, Module
from app.features.permissions.dependencies import require_any_permission, require_permission
from app.features.positions.catalog import is_position
from app.features.positions.dependencies import get_position_service
from app.features.positions.schemas import (
    AssignPositionRequest,
    AssignmentUpdate,
    EndAssignmentRequest,
    PositionAssignmentResponse,
    PositionCatalogResponse,
    TermAssignmentSet,
    TermRosterResponse,
    TermSaveResponse,
)
from app.features.positions.service import (
    AssignmentNotFound,
    PositionAssignmentService,
    PositionConflict,
    StoreFailure,
    TermNotEditable,
    TermValidationError,
)
from app.features.positions.validator import ValidationReport, validate_term
from app.features.users.schemas import Actor
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

can_read = require_permission(Module.MEMBER_MANAGEMENT, Action.READ)
can_create = require_permission(Module.MEMBER_MANAGEMENT, Action.CREATE)
can_update = require_permission(Module.MEMBER_MANAGEMENT, Action.UPDATE)
can_delete = require_permission(Module.MEMBER_MANAGEMENT, Action.DELETE)
can_read_history = require_any_permission([
    (Module.MEMBER_MANAGEMENT, Action.READ),
    (Module.PROFILE, Action.READ),
])


async def _names(directory: Optional[MemberDirectory]) -> dict:
    return await directory.names() if directory else {}


async def _validation_exception(service: PositionAssignmentService, report: ValidationReport) -> HTTPException:
    names = await _names(service.directory)
    return HTTPException(
        status_code=422,
        detail={
            "message": f"Assignments for {report.year} were rejected",
            "violations": [v.model_dump(mode="json") for v in report.violations],
            "messages": report.messages(names),
        },
    )


def _store_failure_exception(e: StoreFailure) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "message": str(e),
            "failed": e.failed.model_dump(),
            "completed": [op.model_dump() for op in e.completed],
            "rolled_back": e.rolled_back,
        },
    )


def _check_year(year: int, term: TermAssignmentSet) -> None:
    if term.year != year:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Term year {term.year} does not match path year {year}",
        )


# ============================================================================
# Catalog Routes
# ============================================================================

@router.get("/catalog", response_model=PositionCatalogResponse)
async def get_position_catalog():
    """Board and cadre position codes in canonical order."""
    return PositionCatalogResponse.build()


@router.get("/years", response_model=List[int])
async def list_term_years(
    founding_year: Optional[int] = None,
    actor: Actor = Depends(can_read),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Term years from the current one back to the chapter's founding year."""
    return service.term_years(founding_year)


# ============================================================================
# Term Routes
# ============================================================================

@router.get("/terms/{year}", response_model=TermAssignmentSet)
async def get_term(
    year: int,
    actor: Actor = Depends(can_read),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """The stored term as an editable set of all board and cadre seats."""
    try:
        return await service.load_term(year)
    except TermNotEditable as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "positions": e.positions},
        )


@router.get("/terms/{year}/roster", response_model=TermRosterResponse)
async def get_term_roster(
    year: int,
    actor: Actor = Depends(can_read),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """The stored term with member names, in canonical position order."""
    return await service.term_roster(year)


@router.post("/terms/{year}/validate", response_model=ValidationReport)
async def validate_term_assignments(
    year: int,
    term: TermAssignmentSet,
    actor: Actor = Depends(can_read),
):
    """Validate a proposed term without saving it."""
    _check_year(year, term)
    return validate_term(term)


@router.put("/terms/{year}", response_model=TermSaveResponse)
async def save_term(
    year: int,
    term: TermAssignmentSet,
    actor: Actor = Depends(can_update),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """
    Replace every assignment of ``year`` with the proposed term.

    Responds 422 with every violation when the term breaks a rule (nothing is
    written), and 502 naming the failed write when the store fails part way.
    """
    _check_year(year, term)
    try:
        result = await service.save_term(term, assigned_by=actor.id)
    except TermValidationError as e:
        raise await _validation_exception(service, e.report)
    except StoreFailure as e:
        raise _store_failure_exception(e)

    return TermSaveResponse(
        year=result.year,
        deleted=len(result.deleted),
        created=[PositionAssignmentResponse(**a.model_dump()) for a in result.created],
    )


# ============================================================================
# Assignment Routes
# ============================================================================

@router.post("/assignments", response_model=PositionAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_position(
    request: AssignPositionRequest,
    actor: Actor = Depends(can_create),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Assign a single member to a single position."""
    try:
        assignment = await service.assign_position(
            member_id=request.member_id,
            position=request.position,
            start_date=request.start_date,
            end_date=request.end_date,
            is_acting=request.is_acting,
            acting_for=request.acting_for,
            assigned_by=actor.id,
        )
    except TermValidationError as e:
        raise await _validation_exception(service, e.report)
    except PositionConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return assignment


@router.patch("/assignments/{assignment_id}", response_model=PositionAssignmentResponse)
async def update_assignment(
    assignment_id: str,
    changes: AssignmentUpdate,
    actor: Actor = Depends(can_update),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Change the end date, acting flag or status of an assignment."""
    try:
        return await service.update_assignment(assignment_id, changes)
    except AssignmentNotFound:
        raise HTTPException(status_code=404, detail="Position assignment not found")
    except TermValidationError as e:
        raise await _validation_exception(service, e.report)


@router.post("/assignments/{assignment_id}/end", response_model=PositionAssignmentResponse)
async def end_assignment(
    assignment_id: str,
    request: EndAssignmentRequest,
    actor: Actor = Depends(can_update),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """End an assignment on the given date and mark it inactive."""
    try:
        return await service.end_assignment(assignment_id, request.end_date)
    except AssignmentNotFound:
        raise HTTPException(status_code=404, detail="Position assignment not found")
    except TermValidationError as e:
        raise await _validation_exception(service, e.report)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    actor: Actor = Depends(can_delete),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Delete an assignment record."""
    try:
        await service.delete_assignment(assignment_id)
    except AssignmentNotFound:
        raise HTTPException(status_code=404, detail="Position assignment not found")


# ============================================================================
# Member Routes
# ============================================================================

@router.get("/members/{member_id}/history", response_model=List[PositionAssignmentResponse])
async def get_position_history(
    member_id: str,
    actor: Actor = Depends(can_read_history),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Every assignment the member has held, newest first."""
    return await service.position_history(member_id)


@router.get("/members/{member_id}/current", response_model=Optional[PositionAssignmentResponse])
async def get_current_position(
    member_id: str,
    actor: Actor = Depends(can_read_history),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """The member's most recent active assignment, or null."""
    return await service.current_position(member_id)


@router.get("/{position}/holders", response_model=List[PositionAssignmentResponse])
async def get_position_holders(
    position: str,
    actor: Actor = Depends(can_read),
    service: PositionAssignmentService = Depends(get_position_service),
):
    """Active holders of a position."""
    if not is_position(position):
        raise HTTPException(status_code=404, detail="Unknown position")
    return await service.holders(position)
