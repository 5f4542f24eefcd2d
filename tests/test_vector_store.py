import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from indexer.base_store import StorageBackend, build_snippet
from indexer.embeddings import TermFrequencyEmbedder
from indexer.memory_adapter import InMemoryDocumentStore
from indexer.postgres_adapter import PostgresConfig
from indexer.vector_store import VectorStore
from services.shared.models import NodeExample


def memory_store() -> VectorStore:
    return VectorStore(embedder=TermFrequencyEmbedder(64))


class TestInMemoryStorage:

    @pytest.mark.asyncio
    async def test_initialize_selects_memory(self):
        store = memory_store()
        await store.initialize()

        assert store.initialized
        assert store.backend == StorageBackend.MEMORY
        assert not store.fell_back

    @pytest.mark.asyncio
    async def test_store_and_get(self, http_request_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)

        fetched = await store.get_by_node_type("n8n-nodes-base.httpRequest")
        assert fetched == http_request_doc
        assert await store.get_by_node_type("n8n-nodes-base.missing") is None

    @pytest.mark.asyncio
    async def test_overwrite_keeps_one_record(self, http_request_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)
        updated = http_request_doc.model_copy(update={"description": "Calls any REST API"})
        await store.store_documentation(updated)

        fetched = await store.get_by_node_type(http_request_doc.node_type)
        assert fetched.description == "Calls any REST API"
        assert await store.get_all_node_types() == [http_request_doc.node_type]

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, http_request_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)

        fetched = await store.get_by_node_type(http_request_doc.node_type)
        fetched.description = "changed"
        again = await store.get_by_node_type(http_request_doc.node_type)
        assert again.description == "Makes HTTP requests"

    @pytest.mark.asyncio
    async def test_search_ranks_best_match_first(self, http_request_doc, webhook_doc, gmail_doc):
        store = memory_store()
        for doc in (webhook_doc, http_request_doc, gmail_doc):
            await store.store_documentation(doc)

        results = await store.semantic_search("http request", limit=5)

        assert [r.node_type for r in results] == [
            "n8n-nodes-base.httpRequest",
            "n8n-nodes-base.webhook",
        ]
        assert all(r.relevance > 0 for r in results)
        assert results[0].relevance >= results[1].relevance

    @pytest.mark.asyncio
    async def test_search_respects_limit(self, http_request_doc, webhook_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)
        await store.store_documentation(webhook_doc)

        results = await store.semantic_search("http", limit=1)
        assert len(results) == 1
        assert await store.semantic_search("http", limit=0) == []

    @pytest.mark.asyncio
    async def test_search_without_shared_terms(self, http_request_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)

        assert await store.semantic_search("spreadsheet") == []
        assert await store.semantic_search("the and of") == []

    @pytest.mark.asyncio
    async def test_search_on_empty_store(self):
        assert await memory_store().semantic_search("anything") == []

    @pytest.mark.asyncio
    async def test_search_result_snippet(self, http_request_doc):
        store = memory_store()
        await store.store_documentation(http_request_doc)

        results = await store.semantic_search("timeout")
        assert results[0].snippet == "Parameter: Timeout - Time to wait in milliseconds"

    @pytest.mark.asyncio
    async def test_explicit_embedding_is_used(self, http_request_doc):
        adapter = InMemoryDocumentStore()
        store = memory_store()
        store._store = adapter
        vector = store.embedder.embed("custom words")

        await store.store_documentation(http_request_doc, embedding=vector)
        results = await store.semantic_search("custom")
        assert results[0].node_type == http_request_doc.node_type
        assert len(adapter) == 1


class TestSnippet:

    def test_parameter_match(self, http_request_doc):
        assert build_snippet(http_request_doc, "URL") == "Parameter: URL - The URL to call"

    def test_example_match(self, http_request_doc):
        assert build_snippet(http_request_doc, "json") == "Example: Example: fetch JSON - Fetch a JSON document"

    def test_long_example_is_truncated(self, webhook_doc):
        webhook_doc.examples = [NodeExample(title="Receive", description="x" * 150)]

        snippet = build_snippet(webhook_doc, "receive")
        assert snippet == "Example: Receive - " + "x" * 100 + "..."

    def test_falls_back_to_description(self, webhook_doc):
        assert build_snippet(webhook_doc, "zzz") == "Listens for HTTP webhooks"
        assert build_snippet(webhook_doc, "") == "Listens for HTTP webhooks"


class TestPostgresFallback:

    @pytest.mark.asyncio
    async def test_unreachable_database_falls_back(self, http_request_doc):
        create_pool = AsyncMock(side_effect=OSError("connection refused"))
        with patch("asyncpg.create_pool", create_pool):
            store = VectorStore(PostgresConfig(host="db.invalid"), TermFrequencyEmbedder(64))
            assert store.strategy == StorageBackend.POSTGRESQL
            await store.initialize()

        assert store.backend == StorageBackend.MEMORY
        assert store.fell_back

        await store.store_documentation(http_request_doc)
        assert await store.get_by_node_type(http_request_doc.node_type) == http_request_doc
        results = await store.semantic_search("http request")
        assert results[0].node_type == http_request_doc.node_type

    @pytest.mark.asyncio
    async def test_refused_port_falls_back(self):
        # Nothing listens on port 1
        store = VectorStore(PostgresConfig(host="127.0.0.1", port=1, command_timeout=5))
        await store.initialize()

        assert store.backend == StorageBackend.MEMORY
        assert store.fell_back

    @pytest.mark.asyncio
    async def test_concurrent_initialize_provisions_once(self):
        create_pool = AsyncMock(side_effect=OSError("connection refused"))
        with patch("asyncpg.create_pool", create_pool):
            store = VectorStore(PostgresConfig(), TermFrequencyEmbedder(64))
            await asyncio.gather(store.initialize(), store.initialize(), store.initialize())

        assert create_pool.await_count == 1
        assert store.backend == StorageBackend.MEMORY

    @pytest.mark.asyncio
    async def test_force_in_memory_skips_database(self):
        create_pool = AsyncMock()
        with patch("asyncpg.create_pool", create_pool):
            store = VectorStore(PostgresConfig(), force_in_memory=True)
            await store.initialize()

        create_pool.assert_not_awaited()
        assert store.backend == StorageBackend.MEMORY
        assert not store.fell_back

    @pytest.mark.asyncio
    async def test_healthy_database_is_used(self, mock_pool):
        pool, conn = mock_pool
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)):
            store = VectorStore(PostgresConfig(), TermFrequencyEmbedder(64))
            await store.initialize()

        assert store.backend == StorageBackend.POSTGRESQL
        assert not store.fell_back

    @pytest.mark.asyncio
    async def test_query_failure_switches_to_memory(self, mock_pool, http_request_doc):
        pool, conn = mock_pool
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)):
            store = VectorStore(PostgresConfig(), TermFrequencyEmbedder(64))
            await store.initialize()

        conn.execute.side_effect = OSError("connection reset")
        await store.store_documentation(http_request_doc)

        assert store.fell_back
        assert store.backend == StorageBackend.MEMORY
        pool.close.assert_awaited_once()
        assert await store.get_by_node_type(http_request_doc.node_type) == http_request_doc

    @pytest.mark.asyncio
    async def test_backend_reports_memory_while_fallback_store_is_empty(self):
        with patch("asyncpg.create_pool", AsyncMock(side_effect=OSError("connection refused"))):
            store = VectorStore(PostgresConfig(), TermFrequencyEmbedder(64))
            await store.initialize()

        assert await store.get_all_node_types() == []
        assert store.backend == StorageBackend.MEMORY

    @pytest.mark.asyncio
    async def test_concurrent_write_failures_both_land_in_memory(self, mock_pool, http_request_doc, webhook_doc):
        pool, conn = mock_pool

        async def slow_close():
            await asyncio.sleep(0.05)

        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)):
            store = VectorStore(PostgresConfig(), TermFrequencyEmbedder(64))
            await store.initialize()

        conn.execute.side_effect = OSError("connection reset")
        pool.close = AsyncMock(side_effect=slow_close)

        await asyncio.gather(
            store.store_documentation(http_request_doc),
            store.store_documentation(webhook_doc),
        )

        assert store.backend == StorageBackend.MEMORY
        pool.close.assert_awaited_once()
        assert sorted(await store.get_all_node_types()) == [
            "n8n-nodes-base.httpRequest",
            "n8n-nodes-base.webhook",
        ]

    @pytest.mark.asyncio
    async def test_memory_errors_propagate(self, http_request_doc):
        store = memory_store()
        await store.initialize()
        store._store.put = AsyncMock(side_effect=OSError("disk full"))

        with pytest.raises(OSError):
            await store.store_documentation(http_request_doc)
