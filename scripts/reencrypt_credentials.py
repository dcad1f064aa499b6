"""Re-encrypt all stored tenant credentials under the current primary key.

Run after rotating CREDENTIAL_ENCRYPTION_SECRET with the old secret listed
in CREDENTIAL_ENCRYPTION_PREVIOUS_SECRETS. Afterwards the old secret can be
removed from the environment.

Usage:
    uv run python -m scripts.reencrypt_credentials
All imports use store_tenancy.*.
"""

import asyncio
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
    """Rewrite every credential row and drop cached tenant clients."""
    _load_env()
    setup_logging()
    async with tenancy_lifespan() as runtime:
        count = await runtime.credential_store.reencrypt_all()
        runtime.router.invalidate_all()
        print(f"Re-encrypted {count} credential rows")


if __name__ == "__main__":
    asyncio.run(main())
