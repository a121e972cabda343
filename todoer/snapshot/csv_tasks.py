from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from todoer.log import get_logger
from todoer.repositories import Repositories

log = get_logger("snapshot.csv")

CSV_COLUMNS = ["content", "description", "priority", "completed", "dueDate", "projectId", "createdAt", "completedAt"]


def _csv_bytes(rows: list[list[str]]) -> bytes:
  buf = io.StringIO(newline="")
  w = csv.writer(buf, lineterminator="\r\n")
  for r in rows:
    w.writerow(r)
  return buf.getvalue().encode("utf-8-sig")


def _iso(dt: datetime | None) -> str:
  if dt is None:
    return ""
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_dt(value: str) -> datetime | None:
  s = (value or "").strip()
  if not s:
    return None
  try:
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  except ValueError:
    return None
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def _parse_priority(value: str) -> int:
  try:
    p = int((value or "").strip())
  except ValueError:
    return 4
  return p if 1 <= p <= 4 else 4


async def export_tasks_csv(db: AsyncSession) -> bytes:
  tasks = await Repositories(db).tasks.list_all()
  return _csv_bytes(
    [CSV_COLUMNS]
    + [
      [
        t.content,
        t.description or "",
        str(t.priority),
        "true" if t.completed else "false",
        _iso(t.due_date),
        t.project_id or "",
        _iso(t.created_at),
        _iso(t.completed_at),
      ]
      for t in tasks
    ]
  )


async def import_tasks_csv(db: AsyncSession, text: str | bytes) -> int:
  """Create one task per CSV row that has content; returns how many were created."""
  if isinstance(text, bytes):
    text = text.decode("utf-8-sig")
  text = text.lstrip("\ufeff")
  repos = Repositories(db)
  reader = csv.DictReader(io.StringIO(text.strip()))
  created = 0
  try:
    for row in reader:
      content = (row.get("content") or "").strip()
      if not content:
        continue
      project_id = (row.get("projectId") or "").strip() or None
      if project_id and not await repos.projects.exists(project_id):
        project_id = None
      completed = (row.get("completed") or "").strip().lower() in ("true", "1")
      now = datetime.now(timezone.utc)
      completed_at = _parse_dt(row.get("completedAt") or "")
      await repos.tasks.create(
        content=content,
        description=(row.get("description") or None),
        priority=_parse_priority(row.get("priority") or ""),
        completed=completed,
        completed_at=(completed_at or now) if completed else None,
        due_date=_parse_dt(row.get("dueDate") or ""),
        project_id=project_id,
        created_at=_parse_dt(row.get("createdAt") or "") or now,
        updated_at=now,
      )
      created += 1
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  log.info("imported %d tasks from csv", created)
  return created
