from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from todoer.config import settings
from todoer.models import Base


def _ensure_sqlite_dir(url: str) -> None:
  u = make_url(url)
  if not u.drivername.startswith("sqlite") or not u.database or u.database == ":memory:":
    return
  Path(u.database).parent.mkdir(parents=True, exist_ok=True)


def build_engine(url: str) -> AsyncEngine:
  _ensure_sqlite_dir(url)
  return create_async_engine(url, future=True)


engine = build_engine(settings.database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def init_models(target: AsyncEngine | None = None) -> None:
  async with (target or engine).begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
