"""
Pydantic schemas for the authenticated actor.
"""
from typing import Dict, List
from pydantic import BaseModel, Field

from app.features.permissions.catalog import Role, RoleKind


class Actor(BaseModel):
    """The member making a request, with every role they hold."""
    id: str = Field(..., min_length=1)
    roles: List[Role] = Field(default_factory=list)

    @property
    def categories(self) -> List[Role]:
        return [role for role in self.roles if role.kind is RoleKind.CATEGORY]

    @property
    def positions(self) -> List[Role]:
        return [role for role in self.roles if role.kind is RoleKind.POSITION]


class ActorResponse(BaseModel):
    id: str
    name: str
    categories: List[Role]
    positions: List[Role]
    permissions: Dict[str, List[str]]
