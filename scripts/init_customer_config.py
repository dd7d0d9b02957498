#!/usr/bin/env python3
"""
Seed the default config entries for one or more tenants.

Usage:
  python scripts/init_customer_config.py CUSTOMER_ID [CUSTOMER_ID ...] [--uid 1]
  # Uses DATABASE_URL from .env (or export)

Entries a tenant already has are left untouched, so the script is safe to re-run.
"""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

# Load .env from project root
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_root, ".env"))

# Add project root to path
sys.path.insert(0, _root)

from app.database import AsyncSessionLocal, close_db  # noqa: E402
from app.services.customer_config_service import CustomerConfigService  # noqa: E402


async def seed(customer_ids, uid):
    try:
        for customer_id in customer_ids:
            async with AsyncSessionLocal() as db:
                result = await CustomerConfigService.init_config(db, customer_id, uid)
            print(
                f"{customer_id}: inserted {result['total_configs']} default configs"
            )
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Seed default customer configs")
    parser.add_argument("customer_ids", nargs="+", help="Tenant ids to initialise")
    parser.add_argument("--uid", type=int, default=None, help="Actor id stamped on created rows")
    args = parser.parse_args()

    asyncio.run(seed([c.strip() for c in args.customer_ids if c.strip()], args.uid))


if __name__ == "__main__":
    main()
