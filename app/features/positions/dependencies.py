"""
FastAPI dependencies for the position feature.
"""
from fastapi import Depends

from app.core.store import DocumentStore, get_store
from app.features.members.directory import StoreMemberDirectory
from app.features.positions.service import PositionAssignmentService


def get_position_service(store: DocumentStore = Depends(get_store)) -> PositionAssignmentService:
    return PositionAssignmentService(store, StoreMemberDirectory(store))
