import pytest

from app.core.store import DocumentNotFound, StoreError
from app.features.members.directory import MEMBERS_COLLECTION, StoreMemberDirectory


@pytest.mark.asyncio
async def test_create_and_get(sql_store):
    doc_id = await sql_store.create("members", {"name": "Amelia Hart"})
    assert len(doc_id) == 26

    doc = await sql_store.get("members", doc_id)
    assert doc == {"id": doc_id, "name": "Amelia Hart"}
    assert await sql_store.get("members", "missing") is None


@pytest.mark.asyncio
async def test_create_with_id_is_an_upsert(sql_store):
    await sql_store.create("members", {"name": "Old"}, doc_id="M1")
    await sql_store.create("members", {"name": "New", "id": "ignored"}, doc_id="M1")

    docs = await sql_store.query("members")
    assert docs == [{"id": "M1", "name": "New"}]


@pytest.mark.asyncio
async def test_collections_are_separate(sql_store):
    await sql_store.create("members", {"name": "A"}, doc_id="X")
    await sql_store.create("member_positions", {"position": "mentor"}, doc_id="X")

    assert (await sql_store.get("members", "X"))["name"] == "A"
    assert (await sql_store.get("member_positions", "X"))["position"] == "mentor"


@pytest.mark.asyncio
async def test_query_with_predicate(sql_store):
    for i, name in enumerate(["Ana", "Bo", "Abe"]):
        await sql_store.create("members", {"name": name}, doc_id=f"M{i}")

    docs = await sql_store.query("members", lambda d: d["name"].startswith("A"))
    assert [d["id"] for d in docs] == ["M0", "M2"]


@pytest.mark.asyncio
async def test_update_merges(sql_store):
    await sql_store.create("members", {"name": "Ana", "city": "Lyon"}, doc_id="M1")
    await sql_store.update("members", "M1", {"city": "Porto"})

    assert await sql_store.get("members", "M1") == {"id": "M1", "name": "Ana", "city": "Porto"}


@pytest.mark.asyncio
async def test_update_and_delete_missing(sql_store):
    with pytest.raises(DocumentNotFound):
        await sql_store.update("members", "nope", {"name": "x"})
    with pytest.raises(DocumentNotFound):
        await sql_store.delete("members", "nope")


@pytest.mark.asyncio
async def test_delete(sql_store):
    await sql_store.create("members", {"name": "Ana"}, doc_id="M1")
    await sql_store.delete("members", "M1")
    assert await sql_store.query("members") == []


@pytest.mark.asyncio
async def test_transaction_commits_together(sql_store):
    async with sql_store.transaction() as tx:
        await tx.create("members", {"name": "Ana"}, doc_id="M1")
        await tx.create("members", {"name": "Bo"}, doc_id="M2")

    assert len(await sql_store.query("members")) == 2


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(sql_store):
    await sql_store.create("members", {"name": "Ana"}, doc_id="M1")

    with pytest.raises(StoreError):
        async with sql_store.transaction() as tx:
            await tx.delete("members", "M1")
            await tx.create("members", {"name": "Bo"}, doc_id="M2")
            raise StoreError("boom")

    assert await sql_store.query("members") == [{"id": "M1", "name": "Ana"}]


@pytest.mark.asyncio
async def test_member_directory_sorts_by_name(sql_store):
    await sql_store.create(MEMBERS_COLLECTION, {"name": "zoe"}, doc_id="M1")
    await sql_store.create(MEMBERS_COLLECTION, {"name": "Adam"}, doc_id="M2")
    await sql_store.create(MEMBERS_COLLECTION, {}, doc_id="M3")

    directory = StoreMemberDirectory(sql_store)
    assert [m["id"] for m in await directory.list_members()] == ["M2", "M3", "M1"]
    assert await directory.display_name("M2") == "Adam"
    assert await directory.display_name("M404") == "M404"
