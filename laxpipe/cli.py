"""
Command line entry point: ``python main.py <source> [options]``.

Exit codes: 0 when every entity was extracted or skipped, 1 when at least one
entity failed, 2 on fatal storage or configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from . import plugin_loader
from .config import load_config
from .errors import ConfigError, StorageError
from .manifest import ManifestStore
from .models import ExtractOptions, RunSummary

logger = logging.getLogger(__name__)

INCREMENTAL_MAX_AGE_HOURS = 24.0

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def build_parser(sources: Sequence[str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="laxpipe",
        description="Extract season data for a league into output/<source>/<season>/<entity>.json",
    )
    parser.add_argument("source", choices=sorted(sources), help="League source to extract")

    target = parser.add_mutually_exclusive_group()
    target.add_argument("--year", type=int, help="Extract a single season (default: source-specific)")
    target.add_argument("--all", action="store_true", help="Extract every season of the source")
    parser.add_argument("--start-year", type=int, help="With --all: first season to include")
    parser.add_argument("--end-year", type=int, help="With --all: last season to include")

    parser.add_argument("--force", action="store_true", help="Re-extract even if already extracted")
    parser.add_argument("--with-schedule", action="store_true", help="Include the schedule pass")
    parser.add_argument("--max-age", type=float, metavar="HOURS", help="Re-extract entries older than HOURS")
    parser.add_argument(
        "--incremental",
        action="store_true",
        help=f"Re-extract entries older than {INCREMENTAL_MAX_AGE_HOURS:g}h (same as --max-age=24)",
    )
    parser.add_argument("--status", action="store_true", help="Print the manifest status and exit")
    parser.add_argument("--json", action="store_true", help="Print the resulting manifest as JSON")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def options_from_args(args: argparse.Namespace) -> ExtractOptions:
    max_age = args.max_age
    if max_age is None and args.incremental:
        max_age = INCREMENTAL_MAX_AGE_HOURS
    return ExtractOptions(
        skip_existing=not args.force,
        max_age_hours=max_age,
        include_schedule=args.with_schedule,
        start_year=args.start_year,
        end_year=args.end_year,
    )


def _print_summary(summary: RunSummary) -> None:
    for outcome in summary.outcomes:
        if outcome.status == "extracted":
            line = f"✓ {outcome.season} {outcome.entity}: {outcome.count} items ({outcome.duration_ms}ms)"
        elif outcome.status == "skipped":
            line = f"- {outcome.season} {outcome.entity}: skipped ({outcome.count} items on disk)"
        else:
            line = f"✗ {outcome.season} {outcome.entity}: {outcome.error} ({outcome.duration_ms}ms)"
        print(line)
    print(
        f"\n{summary.extracted} extracted, {summary.skipped} skipped, "
        f"{summary.failed} failed in {summary.duration_ms}ms"
    )


async def run(args: argparse.Namespace) -> int:
    pipeline_config, extract_config = load_config(args.config)
    extractor_cls = plugin_loader.get(args.source)

    if args.status:
        store = ManifestStore(extractor_cls.source, extractor_cls.all_entities(), extract_config.output_dir)
        print(store.format_status(store.load()))
        return EXIT_OK

    if args.year is not None and args.year not in extractor_cls.seasons:
        logger.error(
            "%s is not a valid %s season (%s..%s)",
            args.year,
            args.source,
            extractor_cls.seasons[0],
            extractor_cls.seasons[-1],
        )
        return EXIT_FATAL

    options = options_from_args(args)
    logger.info(
        "Extraction options: skip_existing=%s max_age_hours=%s include_schedule=%s",
        options.skip_existing,
        options.max_age_hours,
        options.include_schedule,
    )

    async with extractor_cls.from_config(pipeline_config, extract_config) as extractor:
        if args.all:
            summary = await extractor.extract_all(options)
        else:
            summary = await extractor.extract_season(args.year or extractor_cls.default_season, options)

    if args.json:
        print(json.dumps(summary.manifest.to_json_dict(), indent=2, ensure_ascii=False))
    else:
        _print_summary(summary)
    return EXIT_PARTIAL if summary.failed else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser(plugin_loader.list_available())
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.json:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s | %(name)s | %(levelname)s | %(message)s")

    try:
        return asyncio.run(run(args))
    except (StorageError, ConfigError) as e:
        logger.error("Fatal: %s", e)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
