"""
Read-only view of the chapter's member list.

Used to turn member ids into display names. It does not check that a member
id handed to the position service refers to a real member.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from app.core.store import DocumentStore

MEMBERS_COLLECTION = "members"


class MemberDirectory(ABC):

    @abstractmethod
    async def list_members(self) -> List[Dict[str, str]]:
        """Return ``[{"id": ..., "name": ...}]`` sorted by name."""

    async def names(self) -> Dict[str, str]:
        return {member["id"]: member["name"] for member in await self.list_members()}

    async def display_name(self, member_id: str) -> str:
        """The member's name, or the id itself when the member is unknown."""
        return (await self.names()).get(member_id, member_id)


class StoreMemberDirectory(MemberDirectory):
    """Member directory backed by the ``members`` document collection."""

    def __init__(self, store: DocumentStore, collection: str = MEMBERS_COLLECTION):
        self.store = store
        self.collection = collection

    async def list_members(self) -> List[Dict[str, str]]:
        docs = await self.store.query(self.collection)
        members = [{"id": doc["id"], "name": doc.get("name") or doc["id"]} for doc in docs]
        return sorted(members, key=lambda m: m["name"].lower())
