"""Command line entry point: crawl a source or check its connectivity.

Usage:
    metadata-graph crawl source.json [--graph-url URL] [--sample-size N] [--dry-run]
    metadata-graph check source.json

Exit codes: 0 on success, 1 when the source or the graph store failed,
2 on invalid input.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from metadata_graph.core import configure_logging, get_logger
from metadata_graph.core.errors import (
    ConfigurationError,
    GraphStorageError,
    UnsupportedSourceError,
)
from metadata_graph.crawling.service import CrawlService
from metadata_graph.models.crawl import CrawlResult
from metadata_graph.models.source import CrawlOptions, Source
from metadata_graph.storage.graph_store import GraphStore, GraphStoreConfig
from metadata_graph.storage.materializer import GraphMaterializer, MaterializationSummary

logger = get_logger(__name__)

LOG_LEVEL_ENV = "METADATA_GRAPH_LOG_LEVEL"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


class InvalidInputError(Exception):
    """The source definition could not be read or parsed."""


def load_source(path: str) -> Source:
    """Read a source definition from a JSON file, or stdin for ``-``."""
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
        return Source.model_validate(json.loads(text))
    except OSError as e:
        raise InvalidInputError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise InvalidInputError(f"Invalid source definition in {path}: {e}") from e


def summarize(result: CrawlResult, summary: Optional[MaterializationSummary]) -> dict[str, Any]:
    snapshot = result.data
    structure = (
        {"tables": len(snapshot.tables), "foreign_keys": len(snapshot.foreign_keys)}
        if snapshot.kind == "relational"
        else {"collections": len(snapshot.collections)}
    )
    return {
        "source_id": result.source_id,
        "kind": result.kind.value,
        "connected": result.connected,
        **structure,
        "available_features": result.available_features.model_dump(),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
        "graph": summary.to_dict() if summary else None,
    }


async def run_crawl(args: argparse.Namespace, source: Source) -> int:
    service = CrawlService()
    options = CrawlOptions(sample_size=args.sample_size)

    if args.dry_run:
        result = await service.crawl(source, options)
        summary = None
    else:
        config = GraphStoreConfig(database_url=args.graph_url) if args.graph_url else GraphStoreConfig()
        store = GraphStore.from_config(config)
        try:
            store.initialize_schema()
            result, summary = await service.crawl_and_materialize(
                source, GraphMaterializer(store), options
            )
        finally:
            store.dispose()

    print(json.dumps(summarize(result, summary), indent=2, default=str))
    return EXIT_OK if result.connected else EXIT_FAILURE


async def run_check(args: argparse.Namespace, source: Source) -> int:
    connectivity = await CrawlService().check_connectivity(source)
    print(json.dumps(connectivity.model_dump(), indent=2))
    return EXIT_OK if connectivity.status == "connected" else EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metadata-graph",
        description="Crawl data store metadata into a property graph",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also append JSON log lines to this file",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser("crawl", help="Crawl a source and materialize the graph")
    crawl_parser.add_argument("source", help="Source definition JSON file ('-' for stdin)")
    crawl_parser.add_argument(
        "--graph-url",
        default=None,
        help="Graph database URL (default: $METADATA_GRAPH_DATABASE_URL or sqlite:///metadata_graph.db)",
    )
    crawl_parser.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Rows/documents sampled per table or collection",
    )
    crawl_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Crawl without writing to the graph",
    )

    check_parser = subparsers.add_parser("check", help="Check connectivity to a source")
    check_parser.add_argument("source", help="Source definition JSON file ('-' for stdin)")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_format=args.json_logs, log_file=args.log_file)

    if getattr(args, "sample_size", None) is not None and args.sample_size <= 0:
        print("error: --sample-size must be positive", file=sys.stderr)
        return EXIT_INVALID_INPUT

    try:
        source = load_source(args.source)
        if args.command == "crawl":
            return asyncio.run(run_crawl(args, source))
        return asyncio.run(run_check(args, source))
    except (InvalidInputError, ConfigurationError, UnsupportedSourceError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except GraphStorageError as e:
        logger.error("graph_storage_failed", error=str(e), **e.details)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
