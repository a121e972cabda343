from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from todoer.db import SessionLocal


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session
