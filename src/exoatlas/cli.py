"""Command line entry point: load the catalog and report the object nearest a point.

    uv run exoatlas --dir ./clusters --at 0 0 0 --all
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from exoatlas.config import Settings, load_settings
from exoatlas.errors import ManifestFetchFailure
from exoatlas.session import CatalogSession


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="exoatlas", description=__doc__.splitlines()[0])
    parser.add_argument("--url", help="catalog base URL (overrides EXOATLAS_CATALOG_URL)")
    parser.add_argument("--dir", help="catalog directory (overrides EXOATLAS_CATALOG_DIR)")
    parser.add_argument(
        "--at",
        nargs=3,
        type=float,
        metavar=("X", "Y", "Z"),
        default=(0.0, 0.0, 0.0),
        help="query point in world units",
    )
    parser.add_argument("--radius", type=float, help="search radius in world units")
    parser.add_argument("--all", action="store_true", help="wait for every tier, not just the nearest")
    return parser.parse_args(argv)


def _progress(status: str, fraction: float) -> None:
    print(f"[{fraction:6.1%}] {status}", file=sys.stderr)


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    async with CatalogSession.from_settings(settings, on_progress=_progress) as session:
        try:
            await session.start()
        except ManifestFetchFailure as exc:
            print(f"Catalog unavailable: {exc}", file=sys.stderr)
            return 1
        if args.all:
            report = await session.wait_until_loaded()
            if report.failed_shards:
                print(f"Skipped shards: {', '.join(report.failed_shards)}", file=sys.stderr)

        print(f"Records loaded: {session.store.count()}")
        result = session.nearest(args.at, args.radius)
        if result is None:
            print("No object within range.")
            return 0
        record = result.record
        print(f"Nearest: {record.key} at {result.distance:,.1f} world units")
        chars = record.characteristics
        print(
            f"  habitability {chars.habitability_percent}%, toxicity {chars.toxicity_percent}%,"
            f" {chars.atmosphere_type}, {chars.principal_material}"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    try:
        settings = load_settings()
        if args.url:
            settings = dataclasses.replace(settings, catalog_url=args.url, catalog_dir=None)
        elif args.dir:
            settings = dataclasses.replace(settings, catalog_url=None, catalog_dir=Path(args.dir))
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return asyncio.run(_run(settings, args))
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
