"""On-disk documentation cache.

One JSON file per node type. Reads are forgiving: a missing or unreadable
entry is reported as a miss. Writes go through a temporary file and an
atomic rename, and their errors propagate.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote

from pydantic import ValidationError

from observability.prometheus_metrics import record_cache_lookup
from services.shared.models import NodeDocumentation

logger = logging.getLogger(__name__)


class DocCache:
    """JSON file cache keyed by node type."""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def initialize(self):
        """Create the cache directory if it does not exist."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, node_type: str) -> Path:
        """Cache file for ``node_type``.

        The name is percent-encoded, so distinct node types never share a
        file and separators cannot escape the cache directory.
        """
        return self.cache_dir / f"{quote(node_type, safe='')}.json"

    async def get(self, node_type: str) -> Optional[NodeDocumentation]:
        """Cached record for ``node_type``, or None."""
        loop = asyncio.get_running_loop()
        doc = await loop.run_in_executor(None, self._read, node_type)
        record_cache_lookup(doc is not None)
        return doc

    async def save(self, doc: NodeDocumentation):
        """Write ``doc`` to the cache, replacing any previous entry."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, doc)

    def node_types(self) -> List[str]:
        """Node types of all readable cache entries."""
        if not self.cache_dir.exists():
            return []
        found = []
        for path in sorted(self.cache_dir.glob("*.json")):
            doc = self._load(path)
            if doc is not None:
                found.append(doc.node_type)
        return found

    def _read(self, node_type: str) -> Optional[NodeDocumentation]:
        path = self.path_for(node_type)
        if not path.exists():
            return None
        return self._load(path)

    def _load(self, path: Path) -> Optional[NodeDocumentation]:
        try:
            return NodeDocumentation.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path}: {e}")
            return None

    def _write(self, doc: NodeDocumentation):
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        target = self.path_for(doc.node_type)
        fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(doc.to_json(indent=2))
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
