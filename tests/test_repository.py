"""KnowledgeRepository persistence tests."""
import asyncio
import json

import pytest

from knowledge_mcp.repository import KnowledgeRepository


@pytest.mark.asyncio
async def test_save_writes_record_and_index(repo):
    item = await repo.save("Naming Conventions", "Use camelCase", tags=["style"])

    record = json.loads(repo.record_path(item.id).read_text())
    assert record["id"] == item.id
    assert record["content"] == "Use camelCase"
    assert record["tags"] == ["style"]
    assert record["contentHash"] == item.content_hash

    index = json.loads(repo.index_path.read_text())
    assert item.id in index["items"]
    assert index["lastUpdated"] == item.created_at
    assert item.created_at == item.updated_at


@pytest.mark.asyncio
async def test_save_defaults_to_global_scope(repo):
    item = await repo.save("T", "C")
    assert item.scope == "global"
    assert item.tags == []
    assert item.project_path is None


@pytest.mark.asyncio
async def test_save_project_item(repo):
    item = await repo.save("T", "C", scope="project", project_path="/work/a")
    loaded = await repo.load_full(item.id)
    assert loaded.scope == "project"
    assert loaded.project_path == "/work/a"


@pytest.mark.asyncio
async def test_save_ignores_project_path_for_global_items(repo):
    item = await repo.save("T", "C", project_path="/work/a")
    assert item.project_path is None


@pytest.mark.asyncio
async def test_save_rejects_invalid_input_without_side_effects(repo):
    with pytest.raises(ValueError):
        await repo.save("", "C")
    with pytest.raises(ValueError):
        await repo.save("T", "C", scope="project")
    assert not repo.root.exists()


@pytest.mark.asyncio
async def test_duplicate_titles_get_distinct_ids(repo):
    first = await repo.save("Same", "one")
    second = await repo.save("Same", "two")
    assert first.id != second.id
    assert len(await repo.list_indexed()) == 2


@pytest.mark.asyncio
async def test_index_content_is_prefix_of_record(repo):
    content = "0123456789" * 30
    item = await repo.save("Long", content)
    entry = (await repo.list_indexed())[0]
    full = await repo.load_full(item.id)
    assert len(entry.content) == 200
    assert full.content == content
    assert full.content.startswith(entry.content)


@pytest.mark.asyncio
async def test_data_survives_new_repository_instance(repo):
    item = await repo.save("Persist", "across restarts")
    reopened = KnowledgeRepository(repo.root)
    assert [e.id for e in await reopened.list_indexed()] == [item.id]
    assert (await reopened.load_full(item.id)).content == "across restarts"


@pytest.mark.asyncio
async def test_missing_index_is_empty(repo):
    assert await repo.list_indexed() == []
    index = await repo.load_index()
    assert index.items == {}


@pytest.mark.asyncio
async def test_corrupt_index_is_empty_and_self_heals(repo):
    repo.root.mkdir(parents=True)
    repo.index_path.write_text("{not json")
    assert await repo.list_indexed() == []

    item = await repo.save("Fresh", "start")
    assert [e.id for e in await repo.list_indexed()] == [item.id]


@pytest.mark.asyncio
async def test_load_full_missing_record_returns_none(repo):
    assert await repo.load_full("deadbeef") is None


@pytest.mark.asyncio
async def test_load_full_corrupt_record_returns_none(repo):
    item = await repo.save("T", "C")
    repo.record_path(item.id).write_text("[]")
    assert await repo.load_full(item.id) is None


@pytest.mark.asyncio
async def test_load_full_rejects_mismatched_id(repo):
    item = await repo.save("T", "C")
    other = await repo.save("U", "D")
    repo.record_path(item.id).write_text(repo.record_path(other.id).read_text())
    assert await repo.load_full(item.id) is None


@pytest.mark.asyncio
async def test_load_full_rejects_path_like_ids(repo):
    await repo.save("T", "C")
    assert await repo.load_full("../index") is None


@pytest.mark.asyncio
async def test_record_write_failure_propagates(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    repo = KnowledgeRepository(blocker)
    with pytest.raises(RuntimeError):
        await repo.save("T", "C")


@pytest.mark.asyncio
async def test_index_write_failure_leaves_unindexed_record(repo, monkeypatch):
    original = repo._write_json

    async def fail_on_index(path, payload):
        if path == repo.index_path:
            raise RuntimeError("Failed to write index: disk full")
        await original(path, payload)

    monkeypatch.setattr(repo, "_write_json", fail_on_index)
    with pytest.raises(RuntimeError):
        await repo.save("Orphan", "C")

    assert await repo.list_indexed() == []
    records = [p for p in repo.root.glob("*.json") if p.name != "index.json"]
    assert len(records) == 1


@pytest.mark.asyncio
async def test_concurrent_saves_are_all_indexed(repo):
    items = await asyncio.gather(*(repo.save(f"Item {i}", "C") for i in range(5)))
    ids = {item.id for item in items}
    assert len(ids) == 5
    assert {e.id for e in await repo.list_indexed()} == ids


@pytest.mark.asyncio
async def test_no_temp_files_left_behind(repo):
    await repo.save("T", "C")
    assert list(repo.root.glob("*.tmp")) == []


# ============================================================================
# Index entry tolerance and format version
# ============================================================================

def _drop_index_field(repo, item_id, field):
    document = json.loads(repo.index_path.read_text())
    del document["items"][item_id][field]
    repo.index_path.write_text(json.dumps(document))


@pytest.mark.asyncio
async def test_invalid_index_entry_does_not_drop_others(repo):
    alpha = await repo.save("Alpha", "first")
    beta = await repo.save("Beta", "second")
    _drop_index_field(repo, alpha.id, "createdAt")

    assert [e.id for e in await repo.list_indexed()] == [beta.id]
    assert await repo.list_indexed_ids() == [alpha.id, beta.id]


@pytest.mark.asyncio
async def test_save_keeps_invalid_index_entries(repo):
    alpha = await repo.save("Alpha", "first")
    beta = await repo.save("Beta", "second")
    _drop_index_field(repo, alpha.id, "createdAt")

    gamma = await repo.save("Gamma", "third")

    document = json.loads(repo.index_path.read_text())
    assert set(document["items"]) == {alpha.id, beta.id, gamma.id}
    assert "createdAt" not in document["items"][alpha.id]
    assert {e.id for e in await repo.list_indexed()} == {beta.id, gamma.id}


@pytest.mark.asyncio
async def test_index_with_non_object_items_is_empty(repo):
    repo.root.mkdir(parents=True)
    repo.index_path.write_text(json.dumps({"items": ["x"], "lastUpdated": 5}))
    index = await repo.load_index()
    assert index.items == {}
    assert index.last_updated is None
    assert await repo.list_indexed_ids() == []


@pytest.mark.asyncio
async def test_unversioned_index_loads_as_version_one(repo):
    item = await repo.save("Legacy", "C")
    document = json.loads(repo.index_path.read_text())
    del document["version"]
    repo.index_path.write_text(json.dumps(document))

    index = await repo.load_index()
    assert index.version == 1
    assert list(index.items) == [item.id]
    await repo.save("Next", "C")
    assert json.loads(repo.index_path.read_text())["version"] == 1


@pytest.mark.asyncio
async def test_newer_index_version_is_read_but_not_overwritten(repo):
    item = await repo.save("Existing", "C")
    document = json.loads(repo.index_path.read_text())
    document["version"] = 99
    repo.index_path.write_text(json.dumps(document))

    index = await repo.load_index()
    assert index.version == 99
    assert list(index.items) == [item.id]

    with pytest.raises(RuntimeError):
        await repo.save("Blocked", "C")
    assert json.loads(repo.index_path.read_text()) == document
    assert len([p for p in repo.root.glob("*.json") if p.name != "index.json"]) == 1
