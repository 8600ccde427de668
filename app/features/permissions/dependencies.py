"""
Permission checking dependencies.

Implements:
- The process-wide permission matrix
- FastAPI dependencies for route protection
"""
from typing import List, Tuple
from fastapi import Depends, HTTPException, status

from app.features.permissions.catalog import Action, Module
from app.features.permissions.matrix import PermissionMatrix
from app.features.users.dependencies import get_current_actor
from app.features.users.schemas import Actor
from app.utils import get_logger


log = get_logger(__name__)


_matrix = PermissionMatrix()


def get_permission_matrix() -> PermissionMatrix:
    """The live matrix every permission check in this process reads."""
    return _matrix


def has_permission(matrix: PermissionMatrix, actor: Actor, module: Module, action: Action) -> bool:
    """
    Check whether any of the actor's roles may perform ``action`` on ``module``.
    """
    allowed = matrix.allows_any(actor.roles, module, action)
    if allowed:
        log.debug(f"Actor {actor.id} granted {action.value} on {module.value}")
    else:
        log.debug(f"Actor {actor.id} denied {action.value} on {module.value} (roles={[r.value for r in actor.roles]})")
    return allowed


def require_permission(module: Module, action: Action):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.put("/terms/{year}")
        async def save_term(
            actor: Actor = Depends(require_permission(Module.MEMBER_MANAGEMENT, Action.UPDATE))
        ):
            ...

    Raises:
        HTTPException: 403 if the actor doesn't have permission
    """
    async def permission_dependency(
        actor: Actor = Depends(get_current_actor),
        matrix: PermissionMatrix = Depends(get_permission_matrix),
    ) -> Actor:
        if not has_permission(matrix, actor, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action.value} on {module.value}"
            )
        return actor

    return permission_dependency


def require_any_permission(permissions: List[Tuple[Module, Action]]):
    """
    FastAPI dependency to require ANY of the specified permissions.

    Args:
        permissions: List of (module, action) tuples
    """
    async def permission_dependency(
        actor: Actor = Depends(get_current_actor),
        matrix: PermissionMatrix = Depends(get_permission_matrix),
    ) -> Actor:
        for module, action in permissions:
            if has_permission(matrix, actor, module, action):
                return actor

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: requires one of {[(m.value, a.value) for m, a in permissions]}"
        )

    return permission_dependency
