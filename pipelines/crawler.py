"""Documentation fetcher for n8n integration nodes.

Discovers node pages, fetches them with per-host rate limiting and retries
for transient errors, parses them into NodeDocumentation records and keeps
an on-disk cache keyed by node type.
"""

import asyncio
import logging
import random
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup

from config.settings import DocsConfig
from observability.prometheus_metrics import record_page_fetch
from services.shared.models import NodeDocumentation
from .doc_cache import DocCache
from .html_parser import parse_documentation
from .url_patterns import (
    candidate_urls,
    is_node_link,
    langchain_root_links,
    node_type_from_url,
    normalize_link,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class SourceUnavailable(Exception):
    """A documentation page could not be fetched."""

    def __init__(self, url: str, status: int = 0, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}" if status else (reason or "request failed")
        super().__init__(f"{url}: {detail}")


class DocFetcher:
    """Fetches and parses node documentation pages."""

    def __init__(self,
                 config: Optional[DocsConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 cache: Optional[DocCache] = None):
        """Initialize the fetcher.

        Args:
            config: Settings; defaults to DocsConfig()
            session: Shared aiohttp session. When omitted the fetcher
                creates (and later closes) its own.
            cache: Cache to use; defaults to one in ``config.cache_dir``
        """
        self.config = config or DocsConfig()
        self.session = session
        self._owns_session = session is None
        self.cache = cache or DocCache(self.config.cache_dir)

        # Rate limiting
        self.last_request_time: Dict[str, float] = {}
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Ensure the cache directory exists."""
        self.cache.initialize()

    async def close(self):
        """Close the HTTP session if this fetcher created it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
                headers={'User-Agent': self.config.user_agent},
            )
            self._owns_session = True
        return self.session

    async def _respect_rate_limit(self, url: str):
        """Keep at least ``request_delay`` seconds between requests to one host."""
        domain = urlparse(url).netloc
        async with self._rate_lock:
            last = self.last_request_time.get(domain)
            if last is not None:
                elapsed = time.monotonic() - last
                if elapsed < self.config.request_delay:
                    sleep_time = self.config.request_delay - elapsed
                    logger.debug(f"Rate limiting {domain}: sleeping {sleep_time:.2f}s")
                    await asyncio.sleep(sleep_time)
            self.last_request_time[domain] = time.monotonic()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        base_delay = self.config.retry_delay * (2 ** attempt)
        return base_delay + random.uniform(0.1, 0.3) * base_delay

    async def _request(self, url: str) -> Tuple[int, str]:
        """Issue one GET; returns (status, body)."""
        await self._respect_rate_limit(url)
        session = self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            # Undecodable bytes become U+FFFD rather than failing the page
            body = await response.text(errors="replace") if response.status == 200 else ""
            return response.status, body

    async def fetch_page(self, url: str) -> str:
        """Fetch a page body, retrying transient failures.

        Raises:
            SourceUnavailable: on a non-200 answer or when retries run out
        """
        last_error: Optional[SourceUnavailable] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                status, body = await self._request(url)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_error = SourceUnavailable(url, reason=f"{type(e).__name__}: {e}")
            else:
                if status == 200:
                    record_page_fetch('success')
                    return body
                last_error = SourceUnavailable(url, status=status)
                if status not in RETRYABLE_STATUS_CODES:
                    break

            if attempt < self.config.max_retries:
                delay = self._calculate_retry_delay(attempt)
                logger.warning(f"Transient failure for {last_error}, retrying in {delay:.2f}s "
                               f"(attempt {attempt + 1}/{self.config.max_retries + 1})",
                               extra={"url": url})
                record_page_fetch('retry')
                await asyncio.sleep(delay)

        record_page_fetch('not_found' if last_error.status == 404 else 'error')
        raise last_error

    async def discover_node_links(self) -> List[str]:
        """Node page links from the index plus the LangChain root nodes.

        If the index page is unavailable only the LangChain root links are
        returned.
        """
        links: List[str] = []
        try:
            html = await self.fetch_page(self.config.node_list_url)
        except SourceUnavailable as e:
            logger.error(f"Could not fetch node index: {e}", extra={"url": self.config.node_list_url})
        else:
            soup = BeautifulSoup(html, 'html.parser')
            for anchor in soup.find_all('a', href=True):
                href = anchor['href'].strip()
                if not href or not is_node_link(href):
                    continue
                url = normalize_link(href, self.config.site_root)
                if url not in links:
                    links.append(url)

        for url in langchain_root_links(self.config.base_url):
            if url not in links:
                links.append(url)

        logger.info(f"Found {len(links)} node documentation links")
        return links

    async def fetch_all_nodes(self) -> List[NodeDocumentation]:
        """Fetch documentation for every discoverable node.

        Requests are serialized and rate limited per host. A node whose page
        cannot be fetched, parsed or cached is logged and skipped.
        """
        logger.info("Fetching documentation for all nodes...")
        links = await self.discover_node_links()

        documentation: List[NodeDocumentation] = []
        seen = set()
        failed = 0
        for link in links:
            node_type = node_type_from_url(link)
            if node_type is None or node_type in seen:
                continue
            seen.add(node_type)

            try:
                cached = await self.cache.get(node_type)
                if cached is not None:
                    documentation.append(cached)
                    continue

                html = await self.fetch_page(link)
                doc = parse_documentation(node_type, html, link)
                await self.cache.save(doc)
                documentation.append(doc)

            except (SourceUnavailable, OSError) as e:
                failed += 1
                logger.warning(f"Skipping {node_type}: {e}", extra={"node_type": node_type, "url": link})

        logger.info(f"Fetched documentation for {len(documentation)} nodes ({failed} failed)")
        return documentation

    async def fetch_node_documentation(self, node_type: str,
                                       use_cache: bool = True) -> Optional[NodeDocumentation]:
        """Fetch documentation for one node type.

        Args:
            node_type: e.g. ``n8n-nodes-base.httpRequest``
            use_cache: When False the cache is not consulted (it is still
                updated on success)

        Returns:
            The record, or None when no candidate URL has documentation.
        """
        if use_cache:
            cached = await self.cache.get(node_type)
            if cached is not None:
                return cached

        html = None
        source_url = None
        for url in candidate_urls(self.config.base_url, node_type):
            logger.debug(f"Trying URL: {url}")
            try:
                html = await self.fetch_page(url)
            except SourceUnavailable as e:
                logger.debug(f"URL {url} failed: {e}")
                continue
            source_url = url
            break

        if html is None:
            logger.warning(f"Could not fetch documentation for {node_type} from any URL",
                           extra={"node_type": node_type})
            return None

        logger.info(f"Fetched documentation for {node_type} from {source_url}",
                    extra={"node_type": node_type, "url": source_url})
        doc = parse_documentation(node_type, html, source_url)
        try:
            await self.cache.save(doc)
        except OSError as e:
            logger.warning(f"Could not cache documentation for {node_type}: {e}",
                           extra={"node_type": node_type})
        return doc
