"""
Permission management API routes.

Provides endpoints for the role catalog, permission checks, and editing,
resetting and snapshotting the permission matrix.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status

from app.core.store import DocumentStore, get_store
from app.features.members.directory import StoreMemberDirectory
from app.features.permissions.catalog import Action, Module, Role
from app.features.permissions.dependencies import (
    get_permission_matrix,
    has_permission,
    require_permission,
)
from app.features.permissions.matrix import (
    SNAPSHOT_COLLECTION,
    PermissionMatrix,
    load_latest_snapshot,
    load_snapshot,
    save_snapshot,
)
from app.features.permissions.policy import rule_table
from app.features.permissions.schemas import (
    CatalogResponse,
    MatrixCell,
    MatrixCellUpdate,
    MatrixResponse,
    MatrixStatsResponse,
    PermissionCheckResponse,
    SnapshotResponse,
)
from app.features.users.dependencies import get_current_actor
from app.features.users.schemas import Actor, ActorResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

can_read = require_permission(Module.MEMBER_MANAGEMENT, Action.READ)
can_edit = require_permission(Module.MEMBER_MANAGEMENT, Action.UPDATE)


def _matrix_response(matrix: PermissionMatrix) -> MatrixResponse:
    doc = matrix.to_document()
    return MatrixResponse(
        roles=doc["roles"],
        modules=doc["modules"],
        actions=doc["actions"],
        matrix=doc["matrix"],
        overrides=[
            MatrixCell(module=module, action=action, role=role, value=value)
            for (module, action, role), value in matrix.overrides().items()
        ],
    )


# ============================================================================
# Catalog & Check Routes
# ============================================================================

@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog():
    """List roles (with their kind), modules and actions."""
    return CatalogResponse.build()


@router.get("/rules")
async def get_rules(actor: Actor = Depends(can_read)):
    """Dump the default rule table for auditing."""
    return rule_table()


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    module: Module,
    action: Action,
    role: Optional[Role] = None,
    actor: Actor = Depends(get_current_actor),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
):
    """
    Check a permission against the live matrix.

    With ``role`` the check is for that role alone; without it, for the
    calling actor's roles.
    """
    if role is not None:
        allowed = matrix.is_allowed(module, action, role)
    else:
        allowed = has_permission(matrix, actor, module, action)
    return PermissionCheckResponse(role=role, module=module, action=action, has_permission=allowed)


@router.get("/me", response_model=ActorResponse)
async def get_my_permissions(
    actor: Actor = Depends(get_current_actor),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
    store: DocumentStore = Depends(get_store),
):
    """The calling member, their roles and everything they may do."""
    name = await StoreMemberDirectory(store).display_name(actor.id)
    permissions = {
        module.value: [
            action.value for action in Action if matrix.allows_any(actor.roles, module, action)
        ]
        for module in Module
    }
    return ActorResponse(
        id=actor.id,
        name=name,
        categories=actor.categories,
        positions=actor.positions,
        permissions=permissions,
    )


# ============================================================================
# Matrix Routes
# ============================================================================

@router.get("/matrix", response_model=MatrixResponse)
async def get_matrix(
    actor: Actor = Depends(can_read),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
):
    """Get the live permission matrix and the cells overridden from policy."""
    return _matrix_response(matrix)


@router.put("/matrix/cells", response_model=MatrixCell)
async def toggle_matrix_cell(
    cell: MatrixCellUpdate,
    actor: Actor = Depends(can_edit),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
):
    """Set one cell of the live matrix."""
    matrix.toggle(cell.module, cell.action, cell.role, cell.value)
    log.info(
        f"Actor {actor.id} set {cell.role.value}/{cell.module.value}/{cell.action.value} to {cell.value}"
    )
    return MatrixCell(**cell.model_dump())


@router.post("/matrix/reset", response_model=MatrixResponse)
async def reset_matrix(
    actor: Actor = Depends(can_edit),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
):
    """Discard every override and rebuild the matrix from policy."""
    matrix.reset()
    return _matrix_response(matrix)


@router.get("/matrix/stats", response_model=MatrixStatsResponse)
async def get_matrix_stats(
    actor: Actor = Depends(can_read),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
):
    """Granted/total cell counts, overall and per role."""
    return MatrixStatsResponse.from_stats(matrix.stats())


@router.post("/matrix/snapshots", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
async def create_matrix_snapshot(
    actor: Actor = Depends(can_edit),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
    store: DocumentStore = Depends(get_store),
):
    """Save the live matrix to the document store."""
    snapshot_id = await save_snapshot(store, matrix, saved_by=actor.id)
    doc = await store.get(SNAPSHOT_COLLECTION, snapshot_id)
    return SnapshotResponse(id=snapshot_id, saved_by=doc.get("saved_by"), saved_at=doc.get("saved_at"))


@router.get("/matrix/snapshots/latest", response_model=MatrixResponse)
async def get_latest_snapshot(
    actor: Actor = Depends(can_read),
    store: DocumentStore = Depends(get_store),
):
    """Get the most recently saved matrix."""
    latest = await load_latest_snapshot(store)
    if latest is None:
        raise HTTPException(status_code=404, detail="No permission matrix snapshot saved")
    _snapshot_id, snapshot = latest
    return _matrix_response(snapshot)


@router.post("/matrix/snapshots/{snapshot_id}/restore", response_model=MatrixResponse)
async def restore_matrix_snapshot(
    snapshot_id: str,
    actor: Actor = Depends(can_edit),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
    store: DocumentStore = Depends(get_store),
):
    """Replace the live matrix with a saved snapshot."""
    snapshot = await load_snapshot(store, snapshot_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    matrix.restore(snapshot)
    log.info(f"Actor {actor.id} restored permission matrix snapshot {snapshot_id}")
    return _matrix_response(matrix)
