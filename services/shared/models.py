"""Shared documentation records.

Scraped pages rarely carry every section, so every field except the node
type has a neutral default. JSON uses the camelCase names of the on-disk
cache format; fields can also be populated by their Python names.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize using the camelCase aliases."""
        return self.model_dump_json(by_alias=True, indent=indent)


class ParameterDocumentation(_Record):
    """One configurable parameter of a node."""
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Optional[Any] = None
    options: Optional[List[Any]] = None


class NodeExample(_Record):
    """A usage example, optionally with a code snippet."""
    title: str
    description: str = ""
    code: Optional[str] = None


class NodeDocumentation(_Record):
    """Structured documentation for one node type."""
    node_type: str = Field(alias="nodeType")
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    version: str = "1.0"
    parameters: List[ParameterDocumentation] = Field(default_factory=list)
    examples: List[NodeExample] = Field(default_factory=list)
    source_url: str = Field(default="", alias="sourceUrl")
    fetched_at: datetime = Field(default_factory=_utcnow, alias="fetchedAt")


class SearchResult(_Record):
    """A ranked hit from semantic search."""
    node_type: str = Field(alias="nodeType")
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    relevance: float
    snippet: Optional[str] = None


class RefreshStatus(str, Enum):
    """Outcome of a forced refresh for one node type."""
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class RefreshResult(_Record):
    """Result of refreshing a single node type from the source."""
    node_type: str = Field(alias="nodeType")
    status: RefreshStatus
    message: str
    fetched_at: Optional[datetime] = Field(default=None, alias="fetchedAt")
