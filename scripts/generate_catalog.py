"""Generate a pedigree sale catalog from the command line.

Usage:
    python scripts/generate_catalog.py 12345
    python scripts/generate_catalog.py 12345 23456 34567 --hip-numbers --output sale.pdf
    python scripts/generate_catalog.py 12345:7 23456:8 --hip-numbers --full-pedigree
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from hnplus.catalog import CatalogGenerator, RunStateStore
from hnplus.config import settings
from hnplus.models.database import async_session, init_db
from hnplus.scrapers import HarnessNationClient, open_response_cache


def parse_subject(value: str):
    """'12345' -> 12345, '12345:7' -> (12345, '7')."""
    horse_id, _, hip = value.partition(":")
    try:
        return (int(horse_id), hip) if hip else int(horse_id)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a horse id: {value}")


async def run(args: argparse.Namespace) -> int:
    await init_db()
    cache = await open_response_cache(async_session, 0 if args.no_cache else settings.cache_ttl)
    client = HarnessNationClient(cache=cache)
    generator = CatalogGenerator(client, RunStateStore(async_session))

    try:
        telemetry = await generator.store.load_telemetry()
        estimate = telemetry.estimate(len(args.ids))
        if estimate is not None:
            print(f"Estimated time: {estimate:.0f}s")

        document = await generator.generate_catalog(args.ids, args.hip_numbers, args.full_pedigree)
    finally:
        await client.close()

    output = args.output or Path(document.filename)
    output.write_bytes(document.content)
    print(f"Wrote {document.pages} page(s) to {output}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Generate a HarnessNation pedigree sale catalog")
    parser.add_argument("ids", nargs="+", type=parse_subject, help="Horse ids, optionally as id:hip")
    parser.add_argument("--hip-numbers", action="store_true", help="Print hip numbers on each page")
    parser.add_argument("--full-pedigree", action="store_true", help="Include produce of the dam line's daughters")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the response cache")
    parser.add_argument("--output", "-o", type=Path, help="Output file (default: suggested filename)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
