import pytest

from pipelines.url_patterns import (
    APP_NODES,
    CLUSTER_ROOT_NODES,
    CLUSTER_SUB_NODES,
    CORE_NODES,
    LANGCHAIN_ROOT_NODES,
    TRIGGER_NODES,
    candidate_urls,
    display_name_from_node_type,
    documentation_url,
    guess_category,
    is_node_link,
    langchain_root_links,
    node_type_from_url,
    normalize_link,
    split_node_type,
)

BASE = "https://docs.n8n.io/integrations/builtin/"


@pytest.mark.parametrize("node_type, expected", [
    ("n8n-nodes-base.httpRequest", "Http Request"),
    ("n8n-nodes-base.oauthApi", "OAuth API"),
    ("n8n-nodes-base.emailSendSmtp", "Email Send SMTP"),
    ("n8n-nodes-langchain.agent", "Agent"),
    ("webhook", "Webhook"),
])
def test_display_name_from_node_type(node_type, expected):
    assert display_name_from_node_type(node_type) == expected


def test_acronyms_need_word_boundaries():
    assert display_name_from_node_type("n8n-nodes-base.apiary") == "Apiary"


def test_split_node_type():
    assert split_node_type("n8n-nodes-base.set") == ("n8n-nodes-base", "set")
    assert split_node_type("set") == ("", "set")


@pytest.mark.parametrize("node_type, category", [
    ("n8n-nodes-base.httpRequest", CORE_NODES),
    ("n8n-nodes-base.gmail", APP_NODES),
    ("n8n-nodes-base.googleSheets", APP_NODES),
    ("n8n-nodes-base.githubTrigger", TRIGGER_NODES),
    ("n8n-nodes-base.scheduleTrigger", TRIGGER_NODES),
    ("n8n-nodes-langchain.agent", CLUSTER_ROOT_NODES),
    ("n8n-nodes-langchain.chainLlm", CLUSTER_ROOT_NODES),
    ("n8n-nodes-langchain.toolCalculator", CLUSTER_SUB_NODES),
])
def test_guess_category(node_type, category):
    assert guess_category(node_type) == category


def test_documentation_url():
    assert documentation_url(BASE, "n8n-nodes-base.gmail") == \
        "https://docs.n8n.io/integrations/builtin/app-nodes/n8n-nodes-base.gmail/"


def test_candidate_urls_start_with_best_guess():
    urls = candidate_urls(BASE, "n8n-nodes-base.gmail")

    assert urls[0] == documentation_url(BASE, "n8n-nodes-base.gmail")
    assert len(urls) == len(set(urls)) == 4
    assert any(f"/{CORE_NODES}/" in url for url in urls)
    assert any(f"/{CLUSTER_ROOT_NODES}/" in url for url in urls)


def test_candidate_urls_for_langchain():
    assert candidate_urls(BASE, "n8n-nodes-langchain.lmChatOpenAi") == [
        f"{BASE}{CLUSTER_ROOT_NODES}/n8n-nodes-langchain.lmChatOpenAi/",
        f"{BASE}{CLUSTER_SUB_NODES}/n8n-nodes-langchain.lmChatOpenAi/",
    ]


def test_candidate_urls_for_unknown_family():
    assert candidate_urls(BASE, "custom.thing") == [f"{BASE}{CORE_NODES}/custom.thing/"]


def test_node_type_from_url():
    assert node_type_from_url(f"{BASE}core-nodes/n8n-nodes-base.httpRequest/") == "n8n-nodes-base.httpRequest"
    assert node_type_from_url(f"{BASE}cluster-nodes/root-nodes/n8n-nodes-langchain.agent/#tools") == \
        "n8n-nodes-langchain.agent"
    assert node_type_from_url(f"{BASE}credentials/httpRequest/") is None


def test_is_node_link():
    assert is_node_link("/integrations/builtin/core-nodes/n8n-nodes-base.set/")
    assert is_node_link(f"{BASE}cluster-nodes/sub-nodes/n8n-nodes-langchain.toolCalculator/")
    assert not is_node_link("/integrations/builtin/credentials/slack/")
    assert not is_node_link("/integrations/builtin/core-nodes/n8n-nodes-langchain.agent/")


def test_normalize_link():
    assert normalize_link("/integrations/builtin/core-nodes/n8n-nodes-base.set/#options", "https://docs.n8n.io") == \
        "https://docs.n8n.io/integrations/builtin/core-nodes/n8n-nodes-base.set/"
    assert normalize_link("https://docs.n8n.io/a/", "https://docs.n8n.io") == "https://docs.n8n.io/a/"


def test_langchain_root_links():
    links = langchain_root_links(BASE)
    assert len(links) == len(LANGCHAIN_ROOT_NODES)
    assert all(f"/{CLUSTER_ROOT_NODES}/n8n-nodes-langchain." in link for link in links)
