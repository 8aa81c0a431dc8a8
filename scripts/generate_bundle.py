import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

# Add project root to python path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from app.config import get_settings
from app.db import SessionLocal
from app.repositories.bundles import SQLBundleRepository
from app.services.bundles import build_pipeline
from app.utils.errors import AppError
from bundles.models import HumorStyle, PriceRange

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("generate_bundle")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate and store a gift bundle")
    parser.add_argument("recipient", help='Recipient description, e.g. "my mom who loves gardening"')
    parser.add_argument(
        "--humor-style",
        choices=[s.value for s in HumorStyle],
        default=HumorStyle.DAD_JOKE.value,
    )
    parser.add_argument("--occasion", default=None)
    parser.add_argument("--min-price", type=int, default=None, help="Bundle budget floor in whole dollars")
    parser.add_argument("--max-price", type=int, default=None, help="Bundle budget ceiling in whole dollars")
    args = parser.parse_args(argv)
    try:
        args.price_range = PriceRange(min_price=args.min_price, max_price=args.max_price)
    except ValidationError as e:
        parser.error(f"invalid budget: {e.errors()[0]['msg']}")
    if args.price_range.is_open:
        args.price_range = None
    return args


async def main(argv=None) -> int:
    args = parse_args(argv)
    async with SessionLocal() as db:
        pipeline = build_pipeline(SQLBundleRepository(db))
        try:
            bundle = await pipeline.run(
                args.recipient, HumorStyle(args.humor_style), args.occasion, args.price_range
            )
        except AppError as e:
            logger.error(f"Generation failed [{e.code}]: {e.message} {e.fields}")
            return 1

    print(bundle.slug)
    print(f"{get_settings().base_url.rstrip('/')}/{bundle.slug}")
    for item in bundle.products:
        print(f"  {item.rank:>2}. [{item.matched_concept.text}] {item.product.title}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
