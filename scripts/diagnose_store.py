"""Diagnose a store's tenant database; optionally run the health check (which may demote it).

Usage:
    uv run python -m scripts.diagnose_store <store_id> [--check]
All imports use store_tenancy.*.
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from store_tenancy.core.lifespan import tenancy_lifespan
from store_tenancy.shared.telemetry.logging import setup_logging


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_URL when run as script."""
    load_dotenv(_project_root() / ".env", override=True)


async def main() -> None:
    """Print the diagnosis for store_id; with --check also run check_health."""
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print(
            "Usage: uv run python -m scripts.diagnose_store <store_id> [--check]",
            file=sys.stderr,
        )
        sys.exit(1)
    store_id = args[0]
    _load_env()
    setup_logging()

    async with tenancy_lifespan() as runtime:
        diagnosis = await runtime.health.diagnose(store_id)
        print(f"Store {store_id}: {diagnosis.status.value} - {diagnosis.message}")
        if diagnosis.store_status:
            print(f"  store status:   {diagnosis.store_status}")
        if diagnosis.existing_tables:
            print(f"  tables present: {', '.join(diagnosis.existing_tables)}")
        if diagnosis.missing_tables:
            print(f"  tables missing: {', '.join(diagnosis.missing_tables)}")
        if diagnosis.needs_provisioning:
            print("  -> reprovisioning required")
        if "--check" in sys.argv:
            status = await runtime.health.check_health(store_id)
            print(f"Health check: {status.value}")


if __name__ == "__main__":
    asyncio.run(main())
