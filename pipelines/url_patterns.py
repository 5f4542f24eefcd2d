"""URL heuristics for the n8n integrations documentation site.

Node pages live under one of a handful of category paths, and which one a
node uses is not derivable from its type alone. These helpers guess the
most likely page first and list the alternatives to try after it.
"""

import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

BASE_PREFIX = "n8n-nodes-base"
LANGCHAIN_PREFIX = "n8n-nodes-langchain"

CORE_NODES = "core-nodes"
APP_NODES = "app-nodes"
TRIGGER_NODES = "trigger-nodes"
CLUSTER_ROOT_NODES = "cluster-nodes/root-nodes"
CLUSTER_SUB_NODES = "cluster-nodes/sub-nodes"

# (path segment, node type prefix) pairs that identify node pages in the index
NODE_LINK_PATTERNS: Tuple[Tuple[str, str], ...] = (
    (CORE_NODES, BASE_PREFIX),
    (APP_NODES, BASE_PREFIX),
    (TRIGGER_NODES, BASE_PREFIX),
    (CLUSTER_ROOT_NODES, LANGCHAIN_PREFIX),
    (CLUSTER_SUB_NODES, LANGCHAIN_PREFIX),
)

# Root nodes of the LangChain family; their pages are not reliably linked
# from the index navigation.
LANGCHAIN_ROOT_NODES: Tuple[str, ...] = (
    "agent",
    "chainllm",
    "chainretrievalqa",
    "chainsummarization",
    "information-extractor",
    "text-classifier",
    "sentimentanalysis",
    "code",
    "vectorstoreinmemory",
    "vectorstoremilvus",
    "vectorstoremongodbatlas",
    "vectorstorepgvector",
    "vectorstorepinecone",
    "vectorstoreqdrant",
    "vectorstoresupabase",
    "vectorstorezep",
    "lmchatopenai",
    "lmchatollama",
    "embeddingsopenai",
    "chattrigger",
    "mcptrigger",
)

# Well-known integrations documented under app-nodes
APP_NODE_NAMES: Tuple[str, ...] = (
    "gmail",
    "slack",
    "airtable",
    "googleSheets",
    "dropbox",
    "github",
    "githubTrigger",
    "jira",
    "notion",
    "trello",
    "asana",
    "twitter",
    "telegram",
    "discord",
    "stripe",
    "salesforce",
    "shopify",
    "zendesk",
    "zoom",
    "hubspot",
)

ACRONYMS = (
    (re.compile(r"\bApi\b"), "API"),
    (re.compile(r"\bOauth\b"), "OAuth"),
    (re.compile(r"\bSmtp\b"), "SMTP"),
)

_NODE_TYPE_IN_URL = re.compile(r"(n8n-nodes-(?:base|langchain))\.([^/#?]+)")


def split_node_type(node_type: str) -> Tuple[str, str]:
    """Split ``prefix.name``; a type without a dot has an empty prefix."""
    if "." not in node_type:
        return "", node_type
    prefix, _, name = node_type.partition(".")
    return prefix, name


def _category_url(base_url: str, category: str, node_type: str) -> str:
    return f"{base_url.rstrip('/')}/{category}/{node_type}/"


def guess_category(node_type: str) -> str:
    """Most likely documentation category for a node type."""
    prefix, name = split_node_type(node_type)
    lowered = name.lower()

    if prefix == LANGCHAIN_PREFIX:
        if lowered in LANGCHAIN_ROOT_NODES:
            return CLUSTER_ROOT_NODES
        return CLUSTER_SUB_NODES

    if prefix == BASE_PREFIX:
        if lowered.endswith("trigger"):
            return TRIGGER_NODES
        if any(app.lower() in lowered for app in APP_NODE_NAMES):
            return APP_NODES

    return CORE_NODES


def documentation_url(base_url: str, node_type: str) -> str:
    """Best-guess documentation URL for a node type."""
    return _category_url(base_url, guess_category(node_type), node_type)


def candidate_urls(base_url: str, node_type: str) -> List[str]:
    """Ordered, de-duplicated documentation URLs to try for a node type."""
    urls = [documentation_url(base_url, node_type)]

    prefix, _ = split_node_type(node_type)
    if prefix == BASE_PREFIX:
        categories = (CORE_NODES, APP_NODES, TRIGGER_NODES, CLUSTER_ROOT_NODES)
    elif prefix == LANGCHAIN_PREFIX:
        categories = (CLUSTER_ROOT_NODES, CLUSTER_SUB_NODES)
    else:
        categories = ()

    for category in categories:
        url = _category_url(base_url, category, node_type)
        if url not in urls:
            urls.append(url)
    return urls


def node_type_from_url(url: str) -> Optional[str]:
    """Extract ``n8n-nodes-<family>.<name>`` from a documentation URL."""
    match = _NODE_TYPE_IN_URL.search(url)
    if not match:
        return None
    return f"{match.group(1)}.{match.group(2)}"


def is_node_link(href: str) -> bool:
    """True if a link points at a node page under a known category."""
    return any(f"/{segment}/{prefix}." in href for segment, prefix in NODE_LINK_PATTERNS)


def normalize_link(href: str, site_root: str) -> str:
    """Absolute URL without fragment."""
    parsed = urlparse(urljoin(site_root, href.strip()))
    return urlunparse(parsed._replace(fragment=""))


def langchain_root_links(base_url: str) -> List[str]:
    """Links for the LangChain root nodes that the index may not list."""
    return [
        _category_url(base_url, CLUSTER_ROOT_NODES, f"{LANGCHAIN_PREFIX}.{name}")
        for name in LANGCHAIN_ROOT_NODES
    ]


def display_name_from_node_type(node_type: str) -> str:
    """Human-readable name from the trailing segment of a node type.

    ``n8n-nodes-base.httpRequest`` -> ``Http Request``
    """
    name = node_type.rsplit(".", 1)[-1]
    name = re.sub(r"([A-Z])", r" \1", name)
    name = name[:1].upper() + name[1:]
    for pattern, replacement in ACRONYMS:
        name = pattern.sub(replacement, name)
    return name.strip()
