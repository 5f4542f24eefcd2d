"""Documentation service.

Single entry point for callers that need node documentation: point lookup,
semantic search, listing and forced refresh. The fetcher, embedder and
vector store are created by the service and initialized lazily on first
use; concurrent first callers share one initialization.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from config.database import create_vector_store
from config.settings import DocsConfig
from indexer.embeddings import TermFrequencyEmbedder
from indexer.vector_store import VectorStore
from observability.prometheus_metrics import set_app_info
from pipelines.crawler import DocFetcher
from services.shared.models import (
    NodeDocumentation,
    RefreshResult,
    RefreshStatus,
    SearchResult,
)

logger = logging.getLogger(__name__)

SERVICE_VERSION = "0.1.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Update job status."""
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UpdateJob:
    """Progress of a full crawl + index run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total: int = 0
    processed: int = 0
    stored: int = 0
    failed: int = 0
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.DONE, JobStatus.FAILED)

    def add_log(self, message: str):
        """Add a log message with timestamp."""
        self.logs.append(f"[{_utcnow().isoformat()}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'status': self.status.value,
            'total': self.total,
            'processed': self.processed,
            'stored': self.stored,
            'failed': self.failed,
            'error': self.error,
            'logs': list(self.logs),
        }
        for name in ('created_at', 'started_at', 'completed_at'):
            value = getattr(self, name)
            data[name] = value.isoformat() if value else None
        return data


class DocumentationService:
    """Lazily initialized façade over fetcher, embedder and vector store."""

    def __init__(self,
                 config: Optional[DocsConfig] = None,
                 fetcher: Optional[DocFetcher] = None,
                 vector_store: Optional[VectorStore] = None,
                 embedder: Optional[TermFrequencyEmbedder] = None):
        self.config = config or DocsConfig()
        self.embedder = embedder or (
            vector_store.embedder if vector_store else TermFrequencyEmbedder(self.config.vector_size)
        )
        self.fetcher = fetcher or DocFetcher(self.config)
        self.vector_store = vector_store or create_vector_store(self.config.database, self.embedder)

        self._init_task: Optional[asyncio.Task] = None
        self._initialized = False
        self._current_job: Optional[UpdateJob] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def current_job(self) -> Optional[UpdateJob]:
        """Most recent update job, running or finished."""
        return self._current_job

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Initialize components and pre-warm common nodes, once."""
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        task = self._init_task
        try:
            # A cancelled caller must not cancel the shared task
            await asyncio.shield(task)
        except (Exception, asyncio.CancelledError):
            # A failed or cancelled task lets a later call retry
            if task.done() and self._init_task is task:
                self._init_task = None
            raise

    async def _initialize(self):
        logger.info("Initializing documentation service...")
        await self.fetcher.initialize()
        await self.vector_store.initialize()
        set_app_info(SERVICE_VERSION, self.vector_store.backend.value)
        await self._prewarm()
        self._initialized = True
        backend = self.vector_store.backend.value
        logger.info(f"Documentation service initialized (backend: {backend})", extra={"backend": backend})

    async def _prewarm(self):
        """Fetch and store the configured common node types. Best-effort."""
        node_types = self.config.prewarm_node_types
        if not node_types:
            return

        logger.info(f"Loading initial documentation for {len(node_types)} node types...")
        loaded = 0
        for node_type in node_types:
            try:
                doc = await self.fetcher.fetch_node_documentation(node_type)
                if doc is None:
                    logger.warning(f"No documentation found for {node_type}", extra={"node_type": node_type})
                    continue
                await self.vector_store.store_documentation(doc)
                loaded += 1
            except Exception as e:
                logger.error(f"Error loading documentation for {node_type}: {e}", extra={"node_type": node_type})
        logger.info(f"Initial documentation loaded ({loaded}/{len(node_types)})")

    async def close(self):
        """Stop any running update job and release network and database resources."""
        job = self._current_job
        if job is not None and job.task is not None and not job.task.done():
            job.task.cancel()
            try:
                await job.task
            except asyncio.CancelledError:
                pass
        init_task = self._init_task
        if init_task is not None and not init_task.done():
            init_task.cancel()
            try:
                await init_task
            except asyncio.CancelledError:
                pass
            self._init_task = None
        await self.fetcher.close()
        await self.vector_store.close()

    async def get_node_documentation(self, node_type: str) -> Optional[NodeDocumentation]:
        """Stored record for ``node_type``, fetching it from the source on a miss."""
        await self.initialize()

        doc = await self.vector_store.get_by_node_type(node_type)
        if doc is not None:
            return doc

        doc = await self.fetcher.fetch_node_documentation(node_type)
        if doc is not None:
            await self.vector_store.store_documentation(doc)
        return doc

    async def search_documentation(self, query: str, limit: int = 5) -> List[SearchResult]:
        """Nodes ranked by similarity to a free-text query."""
        await self.initialize()
        return await self.vector_store.semantic_search(query, limit)

    async def list_all_node_types(self) -> List[str]:
        await self.initialize()
        return await self.vector_store.get_all_node_types()

    async def refresh_node_documentation(self, node_type: str) -> Optional[NodeDocumentation]:
        """Re-fetch from the source, bypassing store and cache, and overwrite the record."""
        await self.initialize()

        doc = await self.fetcher.fetch_node_documentation(node_type, use_cache=False)
        if doc is not None:
            await self.vector_store.store_documentation(doc)
        return doc

    async def refresh_many(self, node_types: Iterable[str]) -> List[RefreshResult]:
        """Refresh several node types, reporting an outcome for each."""
        results = []
        for node_type in node_types:
            try:
                doc = await self.refresh_node_documentation(node_type)
            except Exception as e:
                logger.error(f"Error refreshing documentation for {node_type}: {e}", extra={"node_type": node_type})
                results.append(RefreshResult(
                    node_type=node_type,
                    status=RefreshStatus.ERROR,
                    message=f"Error fetching documentation: {e}",
                ))
                continue

            if doc is None:
                results.append(RefreshResult(
                    node_type=node_type,
                    status=RefreshStatus.FAILURE,
                    message="No documentation found for this node type.",
                ))
            else:
                results.append(RefreshResult(
                    node_type=node_type,
                    status=RefreshStatus.SUCCESS,
                    message="Successfully fetched and stored latest documentation.",
                    fetched_at=doc.fetched_at,
                ))
        return results

    async def update_all_documentation(self) -> UpdateJob:
        """Crawl every discoverable node and store it. Awaits completion."""
        job = UpdateJob()
        self._current_job = job
        await self._run_update(job)
        return job

    def start_background_update(self) -> UpdateJob:
        """Start a full update as a background task.

        Returns the job immediately; its counters and status are updated as
        it runs and ``job.task`` can be awaited. If an update is already
        running that job is returned instead of starting another.
        """
        running = self._current_job
        if running is not None and not running.finished:
            return running

        job = UpdateJob()
        job.task = asyncio.ensure_future(self._run_update(job))
        self._current_job = job
        return job

    async def _run_update(self, job: UpdateJob):
        job.status = JobStatus.RUNNING
        job.started_at = _utcnow()
        job.add_log("Update started")
        try:
            await self.initialize()
            docs = await self.fetcher.fetch_all_nodes()
            job.total = len(docs)
            job.add_log(f"Found {job.total} nodes to process")

            for doc in docs:
                try:
                    await self.vector_store.store_documentation(doc)
                    job.stored += 1
                except Exception as e:
                    job.failed += 1
                    logger.error(f"Error storing {doc.node_type}: {e}", extra={"node_type": doc.node_type})
                job.processed += 1
                if job.processed % 10 == 0:
                    logger.info(f"Processed {job.processed}/{job.total} nodes")

            job.status = JobStatus.DONE
            job.add_log(f"Stored {job.stored}/{job.total} nodes")
            logger.info(f"Documentation update complete: {job.stored}/{job.total} stored, {job.failed} failed")
        except asyncio.CancelledError:
            job.status = JobStatus.FAILED
            job.error = "cancelled"
            raise
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            job.add_log(f"Update failed: {e}")
            logger.error(f"Documentation update failed: {e}")
        finally:
            job.completed_at = _utcnow()
