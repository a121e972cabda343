from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Mapping, Union

from sqlalchemy.ext.asyncio import AsyncSession

from todoer.config import settings
from todoer.log import get_logger
from todoer.models import new_id
from todoer.repositories import AttachmentRepository, EntityRepository, Repositories
from todoer.settings.validation import InvalidSettingKey, SettingsValidationError
from todoer.snapshot.document import (
  ExportAttachment,
  ExportTask,
  SnapshotDocument,
  from_epoch_ms,
  parse_document,
)

log = get_logger("snapshot.import")

SKIP_UNRESOLVED_PARENT = "unresolved_parent"
SKIP_SIZE_MISMATCH = "size_mismatch"
SKIP_TOO_LARGE = "too_large"
SKIP_DUPLICATE = "duplicate"
SKIP_INVALID_KEY = "invalid_key"
SKIP_INVALID_VALUE = "invalid_value"

_VIEW_MODES = ("list", "board")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*]')


@dataclass(frozen=True)
class Inserted:
  new_id: str


@dataclass(frozen=True)
class Skipped:
  reason: str


RowOutcome = Union[Inserted, Skipped]


class RemapTable:
  """old id -> new id for one entity kind, alive for a single import call."""

  def __init__(self, kind: str) -> None:
    self.kind = kind
    self._ids: dict[str, str] = {}

  def record(self, old_id: str, new_id_: str) -> None:
    self._ids[old_id] = new_id_

  def resolve(self, old_id: str | None) -> str | None:
    if not old_id:
      return None
    return self._ids.get(old_id)


class IdAllocator:
  """Issues ids that are free both in the live table and among ids issued earlier in this batch."""

  def __init__(self) -> None:
    self._issued: dict[str, set[str]] = {}

  def _taken(self, repo: EntityRepository[Any]) -> set[str]:
    return self._issued.setdefault(repo.model.__tablename__, set())

  async def _free(self, repo: EntityRepository[Any], candidate: str) -> bool:
    return candidate not in self._taken(repo) and not await repo.exists(candidate)

  async def fresh(self, repo: EntityRepository[Any]) -> str:
    candidate = new_id()
    while not await self._free(repo, candidate):
      candidate = new_id()
    self._taken(repo).add(candidate)
    return candidate

  async def claim(self, repo: EntityRepository[Any], preferred: str) -> str:
    if preferred and await self._free(repo, preferred):
      self._taken(repo).add(preferred)
      return preferred
    return await self.fresh(repo)


@dataclass
class ImportCounts:
  imported: dict[str, int] = field(default_factory=dict)
  skipped: dict[str, dict[str, int]] = field(default_factory=dict)

  @classmethod
  def for_kinds(cls, kinds: Iterable[str]) -> ImportCounts:
    return cls(imported={k: 0 for k in kinds})

  def record(self, kind: str, outcome: RowOutcome) -> None:
    self.imported.setdefault(kind, 0)
    if isinstance(outcome, Inserted):
      self.imported[kind] += 1
      return
    reasons = self.skipped.setdefault(kind, {})
    reasons[outcome.reason] = reasons.get(outcome.reason, 0) + 1

  def __getitem__(self, kind: str) -> int:
    return self.imported[kind]

  def __contains__(self, kind: object) -> bool:
    return kind in self.imported

  def as_dict(self) -> dict[str, int]:
    return dict(self.imported)


def sanitize_filename(name: str) -> str:
  base = re.split(r"[\\/]", str(name or ""))[-1]
  base = unicodedata.normalize("NFC", base)
  base = _CONTROL_CHARS_RE.sub("", base)
  base = _UNSAFE_FILENAME_RE.sub("_", base).strip().strip(".")
  if not base:
    return "attachment"
  return base[:255]


def _ts(ms: int | None, default: datetime | None = None) -> datetime | None:
  dt = from_epoch_ms(ms)
  return dt if dt is not None else default


def _parents_first(rows: list[Any]) -> list[Any]:
  """Order rows so a row whose parentId is in the batch comes after that parent. Cycles keep document order."""
  by_id = {r.id: r for r in rows}
  done: set[str] = set()
  out: list[Any] = []
  for row in rows:
    chain: list[Any] = []
    seen: set[str] = set()
    cur = row
    while cur is not None and cur.id not in done and cur.id not in seen:
      chain.append(cur)
      seen.add(cur.id)
      cur = by_id.get(cur.parentId) if cur.parentId else None
    for item in reversed(chain):
      done.add(item.id)
      out.append(item)
  return out


TaskResolver = Callable[[str | None], Awaitable[str | None]]


def _map_resolver(task_ids: RemapTable | Mapping[str, str]) -> TaskResolver:
  async def resolve(old_id: str | None) -> str | None:
    if not old_id:
      return None
    if isinstance(task_ids, RemapTable):
      return task_ids.resolve(old_id)
    return task_ids.get(old_id)

  return resolve


async def _import_attachment(
  repo: AttachmentRepository,
  allocator: IdAllocator,
  a: ExportAttachment,
  resolve_task: TaskResolver,
) -> RowOutcome:
  task_id = await resolve_task(a.taskId)
  if not task_id:
    return Skipped(SKIP_UNRESOLVED_PARENT)
  data = a.payload()
  if len(data) != a.size:
    return Skipped(SKIP_SIZE_MISMATCH)
  if len(data) > int(settings.max_attachment_bytes):
    return Skipped(SKIP_TOO_LARGE)
  # Keep the original id unless it is already taken; never overwrite.
  att_id = await allocator.claim(repo, a.id)
  await repo.create(
    id=att_id,
    task_id=task_id,
    filename=sanitize_filename(a.filename),
    mime_type=a.mimeType or "application/octet-stream",
    size_bytes=len(data),
    data=data,
    created_at=_ts(a.createdAt, datetime.now(timezone.utc)),
  )
  return Inserted(att_id)


async def import_task_attachments(
  db: AsyncSession,
  attachments: Iterable[ExportAttachment],
  task_ids: RemapTable | Mapping[str, str],
  *,
  allocator: IdAllocator | None = None,
  counts: ImportCounts | None = None,
  resolve_task: TaskResolver | None = None,
) -> int:
  """Insert attachments under their remapped tasks; returns how many rows were written."""
  repo = AttachmentRepository(db)
  allocator = allocator or IdAllocator()
  counts = counts if counts is not None else ImportCounts.for_kinds(["attachments"])
  resolve = resolve_task or _map_resolver(task_ids)
  written = 0
  for a in attachments:
    outcome = await _import_attachment(repo, allocator, a, resolve)
    counts.record("attachments", outcome)
    if isinstance(outcome, Inserted):
      written += 1
    else:
      log.debug("attachment %s skipped: %s", a.id, outcome.reason)
  return written


class SnapshotImporter:
  def __init__(self, db: AsyncSession, doc: SnapshotDocument) -> None:
    self.db = db
    self.doc = doc
    self.repos = Repositories(db)
    self.allocator = IdAllocator()
    self.projects = RemapTable("projects")
    self.sections = RemapTable("sections")
    self.tasks = RemapTable("tasks")
    self.labels = RemapTable("labels")
    self.section_project: dict[str, str] = {}
    self.doc_task_ids = {t.id for t in doc.tasks}
    kinds = doc.present()
    if "labelAssignments" not in kinds and any(t.labels for t in doc.tasks):
      kinds.append("labelAssignments")
    self.counts = ImportCounts.for_kinds(kinds)
    self.now = datetime.now(timezone.utc)

  def _record(self, kind: str, old_id: str, outcome: RowOutcome) -> None:
    self.counts.record(kind, outcome)
    if isinstance(outcome, Skipped):
      log.debug("%s %s skipped: %s", kind, old_id, outcome.reason)

  async def resolve_task(self, old_id: str | None) -> str | None:
    if not old_id:
      return None
    mapped = self.tasks.resolve(old_id)
    if mapped:
      return mapped
    # Ids outside the document may still name a task already in the live dataset.
    if old_id not in self.doc_task_ids and await self.repos.tasks.exists(old_id):
      return old_id
    return None

  async def run(self) -> ImportCounts:
    await self._projects()
    await self._sections()
    await self._tasks()
    await self._labels()
    await self._label_assignments()
    await self._comments()
    if self.doc.attachments is not None:
      await import_task_attachments(
        self.db,
        self.doc.attachments,
        self.tasks,
        allocator=self.allocator,
        counts=self.counts,
        resolve_task=self.resolve_task,
      )
    await self._filters()
    await self._reminders()
    await self._settings()
    return self.counts

  async def _projects(self) -> None:
    for p in _parents_first(list(self.doc.projects or [])):
      pid = await self.allocator.fresh(self.repos.projects)
      await self.repos.projects.create(
        id=pid,
        name=p.name,
        description=p.description,
        color=p.color,
        parent_id=self.projects.resolve(p.parentId),
        sort_order=p.sortOrder,
        view_mode=p.viewMode if p.viewMode in _VIEW_MODES else "list",
        is_favorite=p.isFavorite,
        archived_at=_ts(p.archivedAt),
        created_at=_ts(p.createdAt, self.now),
      )
      self.projects.record(p.id, pid)
      self._record("projects", p.id, Inserted(pid))

  async def _sections(self) -> None:
    for s in self.doc.sections or []:
      project_id = self.projects.resolve(s.projectId)
      if not project_id:
        self._record("sections", s.id, Skipped(SKIP_UNRESOLVED_PARENT))
        continue
      sid = await self.allocator.fresh(self.repos.sections)
      await self.repos.sections.create(
        id=sid,
        project_id=project_id,
        name=s.name,
        sort_order=s.sortOrder,
        is_collapsed=s.isCollapsed,
        created_at=_ts(s.createdAt, self.now),
      )
      self.sections.record(s.id, sid)
      self.section_project[sid] = project_id
      self._record("sections", s.id, Inserted(sid))

  async def _insert_task(self, t: ExportTask) -> str:
    project_id = self.projects.resolve(t.projectId)
    section_id = self.sections.resolve(t.sectionId)
    if section_id and self.section_project.get(section_id) != project_id:
      project_id = self.section_project[section_id]
    tid = await self.allocator.fresh(self.repos.tasks)
    completed_at = _ts(t.completedAt)
    if t.completed and completed_at is None:
      completed_at = self.now
    await self.repos.tasks.create(
      id=tid,
      project_id=project_id,
      section_id=section_id,
      parent_id=self.tasks.resolve(t.parentId),
      content=t.content,
      description=t.description,
      priority=t.priority if 1 <= t.priority <= 4 else 4,
      completed=t.completed,
      completed_at=completed_at if t.completed else None,
      due_date=_ts(t.dueDate),
      deadline=_ts(t.deadline),
      duration=t.duration,
      recurrence_rule=t.recurrenceRule,
      sort_order=t.sortOrder,
      created_at=_ts(t.createdAt, self.now),
      updated_at=_ts(t.updatedAt, self.now),
    )
    return tid

  async def _tasks(self) -> None:
    for t in _parents_first(list(self.doc.tasks)):
      tid = await self._insert_task(t)
      self.tasks.record(t.id, tid)
      self._record("tasks", t.id, Inserted(tid))

  async def _labels(self) -> None:
    for l in self.doc.labels or []:
      lid = await self.allocator.fresh(self.repos.labels)
      await self.repos.labels.create(
        id=lid,
        name=l.name,
        color=l.color,
        sort_order=l.sortOrder,
        is_favorite=l.isFavorite,
        created_at=_ts(l.createdAt, self.now),
      )
      self.labels.record(l.id, lid)
      self._record("labels", l.id, Inserted(lid))

  async def _label_assignments(self) -> None:
    pairs: list[tuple[str, str]] = [(a.taskId, a.labelId) for a in self.doc.labelAssignments or []]
    for t in self.doc.tasks:
      pairs.extend((t.id, ref.id) for ref in t.labels)
    seen: set[tuple[str, str]] = set()
    for old_task, old_label in pairs:
      key = f"{old_task}:{old_label}"
      task_id = self.tasks.resolve(old_task)
      label_id = self.labels.resolve(old_label)
      if not task_id or not label_id:
        self._record("labelAssignments", key, Skipped(SKIP_UNRESOLVED_PARENT))
        continue
      if (task_id, label_id) in seen:
        self._record("labelAssignments", key, Skipped(SKIP_DUPLICATE))
        continue
      seen.add((task_id, label_id))
      row_id = await self.allocator.fresh(self.repos.task_labels)
      await self.repos.task_labels.create(id=row_id, task_id=task_id, label_id=label_id)
      self._record("labelAssignments", key, Inserted(row_id))

  async def _comments(self) -> None:
    for c in self.doc.comments or []:
      task_id = await self.resolve_task(c.taskId)
      if not task_id:
        self._record("comments", c.id, Skipped(SKIP_UNRESOLVED_PARENT))
        continue
      cid = await self.allocator.fresh(self.repos.comments)
      created = _ts(c.createdAt, self.now)
      await self.repos.comments.create(
        id=cid,
        task_id=task_id,
        content=c.content,
        created_at=created,
        updated_at=_ts(c.updatedAt, created),
      )
      self._record("comments", c.id, Inserted(cid))

  async def _filters(self) -> None:
    for f in self.doc.filters or []:
      fid = await self.allocator.fresh(self.repos.filters)
      await self.repos.filters.create(
        id=fid,
        name=f.name,
        query=f.query,
        color=f.color,
        sort_order=f.sortOrder,
        is_favorite=f.isFavorite,
        created_at=_ts(f.createdAt, self.now),
      )
      self._record("filters", f.id, Inserted(fid))

  async def _reminders(self) -> None:
    for r in self.doc.reminders or []:
      task_id = await self.resolve_task(r.taskId)
      if not task_id:
        self._record("reminders", r.id, Skipped(SKIP_UNRESOLVED_PARENT))
        continue
      rid = await self.allocator.fresh(self.repos.reminders)
      await self.repos.reminders.create(id=rid, task_id=task_id, remind_at=_ts(r.remindAt), notified=r.notified)
      self._record("reminders", r.id, Inserted(rid))

  async def _settings(self) -> None:
    for key, value in (self.doc.settings or {}).items():
      try:
        entry = await self.repos.settings.set(key, value)
      except SettingsValidationError as e:
        reason = SKIP_INVALID_KEY if isinstance(e, InvalidSettingKey) else SKIP_INVALID_VALUE
        self._record("settings", key, Skipped(reason))
        continue
      self._record("settings", key, Inserted(entry.key))


async def import_snapshot(db: AsyncSession, document: SnapshotDocument | str | bytes | dict[str, Any]) -> ImportCounts:
  """Merge a snapshot into the live dataset inside one transaction.

  Every row gets a new identity except attachments, which keep their id when it is free.
  Rows whose parent cannot be resolved, or that fail validation, are skipped and only show
  up in the returned counts. A structurally broken document raises DocumentCorrupt before
  anything is written; any other error rolls back the whole import.
  """
  doc = document if isinstance(document, SnapshotDocument) else parse_document(document)
  importer = SnapshotImporter(db, doc)
  try:
    counts = await importer.run()
    await db.commit()
  except Exception:
    await db.rollback()
    raise
  log.info("imported snapshot: %s (skipped: %s)", counts.as_dict(), counts.skipped or "none")
  return counts
