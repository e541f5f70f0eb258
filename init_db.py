# init_db.py
import argparse
import asyncio
import logging

from telecare.core.logging import setup_logging
from telecare.core.security import hash_password
from telecare.db.base import Base
from telecare.db.sql import AsyncSessionLocal, engine, init_db
from telecare.modules.users import repository as users_repo
from telecare.modules.users.models import UserRole

logger = logging.getLogger("init_db")


async def init_models(drop: bool) -> None:
    if drop:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Dropped all tables")
    await init_db()


async def create_admin(email: str, password: str) -> None:
    async with AsyncSessionLocal() as session:
        if await users_repo.get_by_email(session, email):
            logger.info("Admin %s already exists", email)
            return
        await users_repo.create_user(
            session,
            email=email,
            password_hash=hash_password(password),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN,
        )
        await session.commit()
    logger.info("Created admin %s", email)


async def main(args: argparse.Namespace) -> None:
    await init_models(args.drop)
    if args.admin_email:
        await create_admin(args.admin_email, args.admin_password)
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the Telecare schema")
    parser.add_argument("--drop", action="store_true", help="drop all tables first")
    parser.add_argument("--admin-email", help="bootstrap an admin account")
    parser.add_argument("--admin-password", default="change-me-123")
    setup_logging("INFO")
    asyncio.run(main(parser.parse_args()))
