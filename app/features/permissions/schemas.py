"""
Pydantic schemas for permission management.

Request and response models for the role catalog, permission checks and the
permission matrix.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from app.features.permissions.catalog import Action, Module, Role, RoleKind
from app.features.permissions.matrix import MatrixStats


# ============================================================================
# Catalog Schemas
# ============================================================================

class RoleInfo(BaseModel):
    role: Role
    kind: RoleKind


class CatalogResponse(BaseModel):
    """Every role (with its kind), module and action known to the policy."""
    roles: List[RoleInfo]
    modules: List[Module]
    actions: List[Action]

    @classmethod
    def build(cls) -> "CatalogResponse":
        return cls(
            roles=[RoleInfo(role=role, kind=role.kind) for role in Role],
            modules=list(Module),
            actions=list(Action),
        )


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    role: Optional[Role] = None
    module: Module
    action: Action
    has_permission: bool


# ============================================================================
# Matrix Schemas
# ============================================================================

class MatrixCellUpdate(BaseModel):
    """Set one cell of the matrix."""
    module: Module
    action: Action
    role: Role
    value: bool


class MatrixCell(BaseModel):
    module: Module
    action: Action
    role: Role
    value: bool


class MatrixResponse(BaseModel):
    roles: List[Role]
    modules: List[Module]
    actions: List[Action]
    matrix: Dict[str, Dict[str, Dict[str, bool]]] = Field(
        ..., description="module -> action -> role -> allowed"
    )
    overrides: List[MatrixCell] = []


class RoleStatsResponse(BaseModel):
    total: int
    granted: int


class MatrixStatsResponse(BaseModel):
    total: int
    granted: int
    by_role: Dict[str, RoleStatsResponse]

    @classmethod
    def from_stats(cls, stats: MatrixStats) -> "MatrixStatsResponse":
        return cls(
            total=stats.total,
            granted=stats.granted,
            by_role={
                role.value: RoleStatsResponse(total=s.total, granted=s.granted)
                for role, s in stats.by_role.items()
            },
        )


class SnapshotResponse(BaseModel):
    id: str
    saved_by: Optional[str] = None
    saved_at: Optional[datetime] = None
