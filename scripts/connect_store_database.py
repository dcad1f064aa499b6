"""Connect a PostgreSQL database to a pending store and provision it.

Usage:
    uv run python -m scripts.connect_store_database \
        <store_id> <owner_id> <owner_email> <connection_string>
All imports use store_tenancy.*.
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from store_tenancy.application.dtos.provisioning import PlatformUser, ProvisioningOptions
from store_tenancy.core.lifespan import tenancy_lifespan
from store_tenancy.domain.exceptions import StoreTenancyException
from store_tenancy.schemas.connection import PostgresParams
from store_tenancy.shared.telemetry.logging import setup_logging


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_URL when run as script."""
    load_dotenv(_project_root() / ".env", override=True)


async def main() -> None:
    """Run connect_database and print the step summary."""
    if len(sys.argv) < 5:
        print(
            "Usage: uv run python -m scripts.connect_store_database "
            "<store_id> <owner_id> <owner_email> <connection_string>",
            file=sys.stderr,
        )
        sys.exit(1)
    store_id, owner_id, owner_email, connection_string = sys.argv[1:5]
    _load_env()
    setup_logging()

    params = PostgresParams(connection_string=connection_string)
    options = ProvisioningOptions(owner=PlatformUser(id=owner_id, email=owner_email))
    async with tenancy_lifespan() as runtime:
        try:
            run = await runtime.provisioning.connect_database(store_id, params, options)
        except StoreTenancyException as e:
            print(f"Failed ({e.error_code}): {e.message}", file=sys.stderr)
            for step in e.details.get("steps", []):
                mark = "ok" if step["succeeded"] else "FAILED"
                print(f"  {step['step']}: {mark}", file=sys.stderr)
            sys.exit(1)
        for step in run.steps:
            mark = "ok" if step.succeeded else f"warning: {step.error}"
            print(f"  {step.name}: {mark}")
        print(f"Store {store_id} is active ({len(run.warnings)} warnings)")


if __name__ == "__main__":
    asyncio.run(main())
