# elevatehub/scripts/make_admin.py
# Promote an existing user to admin.
#
#   python -m elevatehub.scripts.make_admin someone@example.com
#
# The user must have signed in at least once so their record exists.

import argparse
import asyncio
import logging
import sys

from elevatehub.core.database import AsyncSessionLocal, engine
from elevatehub.core.exceptions import NotFoundError
from elevatehub.services.user_service import UserService

logger = logging.getLogger(__name__)


async def make_admin(email: str, session_factory=AsyncSessionLocal) -> str:
    async with session_factory() as db:
        user = await UserService(db).promote_to_admin(email.strip().lower())
        return user.user_id


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Promote a user to admin by email")
    parser.add_argument("email")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    async def run():
        try:
            return await make_admin(args.email)
        finally:
            await engine.dispose()

    try:
        user_id = asyncio.run(run())
    except NotFoundError as e:
        logger.error(e.detail)
        return 1
    print(f"{args.email} ({user_id}) is now an admin")
    return 0


if __name__ == "__main__":
    sys.exit(main())
