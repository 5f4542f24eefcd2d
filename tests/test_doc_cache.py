import json

import pytest

from pipelines.doc_cache import DocCache


@pytest.mark.asyncio
async def test_save_and_get(tmp_path, http_request_doc):
    cache = DocCache(tmp_path / "docs")
    await cache.save(http_request_doc)

    assert await cache.get(http_request_doc.node_type) == http_request_doc


@pytest.mark.asyncio
async def test_missing_entry_is_a_miss(tmp_path):
    assert await DocCache(tmp_path / "docs").get("n8n-nodes-base.set") is None


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss(tmp_path):
    cache = DocCache(tmp_path)
    cache.initialize()
    cache.path_for("n8n-nodes-base.set").write_text("{not json", encoding="utf-8")

    assert await cache.get("n8n-nodes-base.set") is None


@pytest.mark.asyncio
async def test_entry_missing_node_type_is_a_miss(tmp_path):
    cache = DocCache(tmp_path)
    cache.path_for("n8n-nodes-base.set").write_text('{"displayName": "Set"}', encoding="utf-8")

    assert await cache.get("n8n-nodes-base.set") is None


@pytest.mark.asyncio
async def test_file_uses_camel_case_keys(tmp_path, http_request_doc):
    cache = DocCache(tmp_path)
    await cache.save(http_request_doc)

    data = json.loads(cache.path_for(http_request_doc.node_type).read_text(encoding="utf-8"))
    assert data["nodeType"] == "n8n-nodes-base.httpRequest"
    assert data["displayName"] == "HTTP Request"
    assert "sourceUrl" in data and "fetchedAt" in data


@pytest.mark.asyncio
async def test_save_replaces_entry_without_leftovers(tmp_path, http_request_doc):
    cache = DocCache(tmp_path)
    await cache.save(http_request_doc)
    await cache.save(http_request_doc.model_copy(update={"description": "Updated"}))

    assert (await cache.get(http_request_doc.node_type)).description == "Updated"
    assert [p.name for p in tmp_path.iterdir()] == ["n8n-nodes-base.httpRequest.json"]


def test_path_for_encodes_node_type(tmp_path):
    cache = DocCache(tmp_path)
    assert cache.path_for("../etc/passwd").name == "..%2Fetc%2Fpasswd.json"
    assert cache.path_for("../etc/passwd").parent == tmp_path
    assert cache.path_for("n8n-nodes-base.httpRequest").parent == tmp_path


def test_path_for_keeps_node_types_apart(tmp_path):
    cache = DocCache(tmp_path)
    names = {cache.path_for(t).name for t in ("a/b", "a_b", "a%2Fb", "a b", "a+b")}
    assert len(names) == 5


@pytest.mark.asyncio
async def test_similar_node_types_do_not_share_an_entry(tmp_path, http_request_doc):
    cache = DocCache(tmp_path / "docs")
    slashed = http_request_doc.model_copy(update={"node_type": "a/b", "display_name": "Slashed"})
    underscored = http_request_doc.model_copy(update={"node_type": "a_b", "display_name": "Underscored"})

    await cache.save(slashed)
    await cache.save(underscored)

    assert (await cache.get("a/b")).display_name == "Slashed"
    assert (await cache.get("a_b")).display_name == "Underscored"
    assert sorted(cache.node_types()) == ["a/b", "a_b"]


@pytest.mark.asyncio
async def test_node_types(tmp_path, http_request_doc, webhook_doc):
    cache = DocCache(tmp_path / "docs")
    assert cache.node_types() == []

    await cache.save(webhook_doc)
    await cache.save(http_request_doc)
    assert cache.node_types() == ["n8n-nodes-base.httpRequest", "n8n-nodes-base.webhook"]
