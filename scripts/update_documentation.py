#!/usr/bin/env python3
"""Command line access to the node documentation index.

Examples:
    python scripts/update_documentation.py update-all
    python scripts/update_documentation.py fetch n8n-nodes-base.httpRequest
    python scripts/update_documentation.py search "send email" --limit 3
    python scripts/update_documentation.py refresh n8n-nodes-base.gmail n8n-nodes-base.slack
    python scripts/update_documentation.py list
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import load_config
from observability.logging import setup_logging
from observability.prometheus_metrics import get_metrics_summary, render_metrics
from services.documentation import DocumentationService, JobStatus
from services.shared.models import RefreshStatus

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch, index and search n8n node documentation")
    parser.add_argument("--config", help="YAML settings file (overrides environment)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--no-prewarm", action="store_true",
                        help="Skip loading the common node types at startup")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("update-all", help="Crawl every node page and store it")

    fetch_parser = subparsers.add_parser("fetch", help="Print documentation for one node type")
    fetch_parser.add_argument("node_type")

    refresh_parser = subparsers.add_parser("refresh", help="Re-fetch node types, bypassing the cache")
    refresh_parser.add_argument("node_types", nargs="+")

    search_parser = subparsers.add_parser("search", help="Semantic search over stored documentation")
    search_parser.add_argument("query")
    search_parser.add_argument("--limit", type=int, default=5)

    subparsers.add_parser("list", help="List stored node types")

    metrics_parser = subparsers.add_parser("metrics", help="Print counters after warming up the index")
    metrics_parser.add_argument("--prometheus", action="store_true",
                                help="Print the Prometheus text exposition instead of a summary")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if args.no_prewarm:
        config.prewarm_node_types = []

    async with DocumentationService(config) as service:
        if args.command == "update-all":
            job = await service.update_all_documentation()
            print(json.dumps(job.to_dict(), indent=2))
            return 0 if job.status == JobStatus.DONE else 1

        if args.command == "fetch":
            doc = await service.get_node_documentation(args.node_type)
            if doc is None:
                logger.error(f"No documentation found for {args.node_type}")
                return 1
            print(doc.to_json(indent=2))
            return 0

        if args.command == "refresh":
            results = await service.refresh_many(args.node_types)
            print(json.dumps([r.model_dump(mode="json", by_alias=True) for r in results], indent=2))
            return 0 if all(r.status == RefreshStatus.SUCCESS for r in results) else 1

        if args.command == "search":
            results = await service.search_documentation(args.query, args.limit)
            print(json.dumps([r.model_dump(mode="json", by_alias=True) for r in results], indent=2))
            return 0

        if args.command == "list":
            for node_type in await service.list_all_node_types():
                print(node_type)
            return 0

        if args.command == "metrics":
            if args.prometheus:
                print(render_metrics().decode("utf-8"), end="")
            else:
                print(json.dumps(get_metrics_summary(), indent=2, sort_keys=True))
            return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, use_json=args.json_logs)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
