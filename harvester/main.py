"""Command-line entry point for a single harvest run.

Examples:
    python -m harvester.main
    python -m harvester.main --brand dogma --brand bonche --limit 5 --output dump.json
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from harvester.ingest.base import HarvestResult, ScrapeConfig
from harvester.ingest.catalog_harvester import run_harvest
from harvester.logging_config import setup_logging

logger = logging.getLogger(__name__)


def result_to_json(result: HarvestResult) -> str:
    """Serialize harvested records for the persistence side."""
    payload = {
        "brands": [asdict(brand) for brand in result.brands],
        "tobaccos": [asdict(tobacco) for tobacco in result.tobaccos],
        "metrics": asdict(result.metrics),
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvest brands and tobaccos from the catalog")
    parser.add_argument(
        "--brand",
        action="append",
        dest="brands",
        metavar="SLUG",
        help="Harvest only this brand (repeatable). Default: discover all brands",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum tobaccos per brand",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON here instead of stdout",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    logger.info("=" * 50)
    logger.info("CATALOG HARVEST STARTED")
    logger.info("=" * 50)

    try:
        result = asyncio.run(
            run_harvest(
                config=ScrapeConfig.from_settings(),
                brand_slugs=args.brands,
                limit=args.limit,
            )
        )
    except Exception as e:
        logger.error(f"Harvest failed: {type(e).__name__}: {e}")
        return 1

    output = result_to_json(result)
    if args.output:
        args.output.write_text(output, encoding="utf-8")
        logger.info(f"Wrote {len(result.tobaccos)} tobaccos to {args.output}")
    else:
        print(output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
