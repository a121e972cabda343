from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from todoer.deps import get_db
from todoer.repositories import SettingRepository
from todoer.settings.schema import is_known_key
from todoer.settings.validation import InvalidSettingKey

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingIn(BaseModel):
  value: str


@router.get("")
async def settings_list(db: AsyncSession = Depends(get_db)) -> dict[str, str]:
  return await SettingRepository(db).all()


@router.get("/{key}")
async def settings_get(key: str, db: AsyncSession = Depends(get_db)) -> dict:
  if not is_known_key(key):
    raise InvalidSettingKey(key)
  return {"key": key, "value": await SettingRepository(db).get(key)}


@router.put("/{key}")
async def settings_put(key: str, payload: SettingIn, db: AsyncSession = Depends(get_db)) -> dict:
  entry = await SettingRepository(db).set(key, payload.value)
  await db.commit()
  return {"key": entry.key, "value": entry.value}
