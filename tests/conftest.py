import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import DocsConfig
from services.shared.models import NodeDocumentation, NodeExample, ParameterDocumentation


NODE_PAGE = """
<html><body><main>
<h1>{title}</h1>
<p>{description}</p>
<p>Version: 2.1</p>
<h2>Node parameters</h2>
<table>
<tr><th>Name</th><th>Description</th><th>Type</th></tr>
<tr><td>URL*</td><td>The URL to call</td><td>string</td></tr>
</table>
</main></body></html>
"""


def node_page(title: str = "HTTP Request", description: str = "Makes HTTP requests") -> str:
    return NODE_PAGE.format(title=title, description=description)


@pytest.fixture
def docs_config(tmp_path):
    """Settings with a temporary cache, no delays and no pre-warm."""
    return DocsConfig(
        cache_dir=tmp_path / "cache",
        request_delay=0,
        retry_delay=0,
        max_retries=1,
        prewarm_node_types=[],
    )


@pytest.fixture
def http_request_doc():
    return NodeDocumentation(
        node_type="n8n-nodes-base.httpRequest",
        display_name="HTTP Request",
        description="Makes HTTP requests",
        version="4.2",
        parameters=[
            ParameterDocumentation(name="URL", description="The URL to call", required=True),
            ParameterDocumentation(name="Timeout", type="number", description="Time to wait in milliseconds"),
        ],
        examples=[NodeExample(title="Example: fetch JSON", description="Fetch a JSON document", code="GET /")],
        source_url="https://docs.n8n.io/integrations/builtin/core-nodes/n8n-nodes-base.httpRequest/",
    )


@pytest.fixture
def webhook_doc():
    return NodeDocumentation(
        node_type="n8n-nodes-base.webhook",
        display_name="Webhook",
        description="Listens for HTTP webhooks",
        source_url="https://docs.n8n.io/integrations/builtin/core-nodes/n8n-nodes-base.webhook/",
    )


@pytest.fixture
def gmail_doc():
    return NodeDocumentation(
        node_type="n8n-nodes-base.gmail",
        display_name="Gmail",
        description="Send and receive email messages",
    )


@pytest.fixture
def mock_pool():
    """asyncpg pool double whose acquire() yields ``conn``."""
    conn = AsyncMock()
    conn.fetchrow.return_value = None
    conn.fetch.return_value = []

    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()
    return pool, conn
