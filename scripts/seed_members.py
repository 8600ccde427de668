"""
Seed script to populate the member directory and an initial officer term.

Run this script after database initialization to create:
- A handful of chapter members
- Board and cadre assignments for the current year

Usage:
    uv run python -m scripts.seed_members
"""
import asyncio
from datetime import date

from app.core.database.engine import AsyncSessionLocal, init_db
from app.core.store import SqlDocumentStore
from app.features.members.directory import MEMBERS_COLLECTION, StoreMemberDirectory
from app.features.positions.schemas import TermAssignmentSet
from app.features.positions.service import PositionAssignmentService, TermValidationError
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_MEMBERS = {
    "M001": "Amelia Hart",
    "M002": "Bruno Ferreira",
    "M003": "Chidi Okafor",
    "M004": "Dana Kowalski",
    "M005": "Emeka Nwosu",
    "M006": "Farah Haddad",
    "M007": "Gustav Lind",
    "M008": "Hana Sato",
}

DEFAULT_BOARD = {
    "president": "M001",
    "secretary": "M002",
    "treasurer": "M003",
    "vp_community_development": "M004",
}

DEFAULT_CADRE = {
    "president_cadre": ["M005", "M006"],
    "treasurer_cadre": ["M007"],
    "vp_community_development_cadre": ["M008"],
}


async def seed_members(store: SqlDocumentStore) -> None:
    """Create the default members (idempotent, ids are fixed)."""
    for member_id, name in DEFAULT_MEMBERS.items():
        await store.create(MEMBERS_COLLECTION, {"name": name}, doc_id=member_id)
    log.info(f"Seeded {len(DEFAULT_MEMBERS)} members")


async def seed_term(store: SqlDocumentStore, year: int) -> None:
    """Save the default term for ``year``, replacing whatever was stored."""
    service = PositionAssignmentService(store, StoreMemberDirectory(store))
    term = TermAssignmentSet.from_mapping(year, board=DEFAULT_BOARD, cadre=DEFAULT_CADRE)
    result = await service.save_term(term, assigned_by="seed")
    log.info(f"Seeded term {year} with {len(result.created)} assignments")


async def main():
    """Main function to seed members and positions."""
    log.info("Starting member seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    store = SqlDocumentStore(AsyncSessionLocal)
    try:
        await seed_members(store)
        await seed_term(store, date.today().year)
    except TermValidationError as e:
        log.error(f"Default term is invalid: {e.report.messages()}")
        raise

    log.info("Member seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
