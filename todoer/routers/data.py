from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from todoer.deps import get_db
from todoer.snapshot.csv_tasks import export_tasks_csv, import_tasks_csv
from todoer.snapshot.exporter import export_snapshot
from todoer.snapshot.importer import import_snapshot

router = APIRouter(prefix="/data", tags=["data"])


def _stamp() -> str:
  return datetime.now(timezone.utc).strftime("%Y-%m-%d")


@router.get("/export")
async def data_export(db: AsyncSession = Depends(get_db)) -> JSONResponse:
  doc = await export_snapshot(db)
  return JSONResponse(
    content=doc.model_dump(mode="json"),
    headers={"Content-Disposition": f'attachment; filename="todoer-backup-{_stamp()}.json"'},
  )


@router.get("/export.csv")
async def data_export_csv(db: AsyncSession = Depends(get_db)) -> Response:
  data = await export_tasks_csv(db)
  return Response(
    content=data,
    media_type="text/csv; charset=utf-8",
    headers={"Content-Disposition": f'attachment; filename="todoer-tasks-{_stamp()}.csv"'},
  )


@router.post("/import")
async def data_import(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  # DocumentCorrupt, bad JSON included, maps to 400 in main.py.
  counts = await import_snapshot(db, await request.body())
  return {"ok": True, "imported": counts.as_dict(), "skipped": counts.skipped}


@router.post("/import/csv")
async def data_import_csv(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  raw = await request.body()
  if not raw.strip():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
  try:
    created = await import_tasks_csv(db, raw)
  except UnicodeDecodeError as e:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8") from e
  return {"ok": True, "imported": {"tasks": created}}
