#!/usr/bin/env python3
"""Promote an existing user to admin. Run on the server.

Usage:
    DATABASE_URL=sqlite+aiosqlite:///./data/vouchify.db python demo/promote_admin.py admin@vouchify.dev
"""
import asyncio
import os
import sys

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from vouchify.models.user import User, UserRole


async def promote(email: str) -> None:
    engine = create_async_engine(os.environ["DATABASE_URL"])
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(User)
            .where(User.email == email)
            .values(role=UserRole.ADMIN)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: promote_admin.py EMAIL")
    asyncio.run(promote(sys.argv[1]))
