import json
import logging

from observability.logging import ColoredFormatter, JSONFormatter, record_context, setup_logging
from observability.prometheus_metrics import (
    get_metrics_summary,
    record_backend_fallback,
    record_cache_lookup,
    record_search_metrics,
    render_metrics,
    set_app_info,
)


def make_record(message="Stored documentation", **extra):
    record = logging.LogRecord("indexer.vector_store", logging.INFO, __file__, 10, message, None, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extra_fields():
    data = json.loads(JSONFormatter("node-docs").format(make_record(node_type="n8n-nodes-base.set")))

    assert data["message"] == "Stored documentation"
    assert data["level"] == "INFO"
    assert data["service"] == "node-docs"
    assert data["node_type"] == "n8n-nodes-base.set"
    assert "url" not in data
    assert "extra" not in data


def test_json_formatter_separates_context_from_other_extras():
    record = make_record("Skipping node", node_type="n8n-nodes-base.set",
                         url="https://docs.n8n.io/x/", backend="memory", attempt=2)
    data = json.loads(JSONFormatter().format(record))

    assert (data["node_type"], data["url"], data["backend"]) == (
        "n8n-nodes-base.set", "https://docs.n8n.io/x/", "memory")
    assert data["extra"] == {"attempt": 2}
    assert data["source"].endswith(":10")


def test_record_context_skips_unset_fields():
    assert record_context(make_record(backend="postgresql", node_type=None)) == {"backend": "postgresql"}


def test_colored_formatter_without_colors():
    line = ColoredFormatter(use_colors=False).format(make_record())
    assert "Stored documentation" in line
    assert "\033[" not in line


def test_colored_formatter_shows_node_and_tags():
    record = make_record("Skipping node", node_type="n8n-nodes-base.set", url="https://docs.n8n.io/x/")
    line = ColoredFormatter(use_colors=False).format(record)

    assert line.endswith("[n8n-nodes-base.set] Skipping node (url=https://docs.n8n.io/x/)")


def test_setup_logging_with_file(tmp_path):
    root = logging.getLogger()
    level = root.level
    log_file = tmp_path / "logs" / "node-docs.log"

    setup_logging("DEBUG", log_file=str(log_file), use_colors=False)
    added = list(root.handlers)
    try:
        logging.getLogger("pipelines.crawler").debug("fetched page")
        for handler in added:
            handler.flush()

        assert root.level == logging.DEBUG
        assert logging.getLogger("aiohttp").level == logging.WARNING
        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["message"] == "fetched page"
    finally:
        for handler in added:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(level)


def test_metrics_summary_counts():
    before = get_metrics_summary()
    record_backend_fallback()
    record_cache_lookup(True)
    record_cache_lookup(False)
    after = get_metrics_summary()

    assert after["node_docs_backend_fallbacks_total"] == before.get("node_docs_backend_fallbacks_total", 0) + 1
    assert after["node_docs_cache_lookups_total"] == before.get("node_docs_cache_lookups_total", 0) + 2


def test_render_metrics():
    record_search_metrics("memory", 0.01, 3)
    set_app_info("0.1.0", "memory")
    text = render_metrics().decode("utf-8")

    assert 'node_docs_search_requests_total{backend="memory"}' in text
    info_line = next(line for line in text.splitlines() if line.startswith("node_docs_app_info{"))
    assert 'backend="memory"' in info_line
    assert 'version="0.1.0"' in info_line
