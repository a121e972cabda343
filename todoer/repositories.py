from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from todoer.models import Attachment, Base, Comment, Filter, Label, Project, Reminder, Section, Setting, Task, TaskLabel
from todoer.settings.validation import SettingEntry, validate_setting_entry

M = TypeVar("M", bound=Base)


class EntityRepository(Generic[M]):
  """CRUD over one entity table. Writes are flushed, never committed; the caller owns the transaction."""

  model: type[M]
  parent_column: str | None = None
  order_column: str = "created_at"

  def __init__(self, db: AsyncSession) -> None:
    self.db = db

  async def create(self, **fields: Any) -> M:
    row = self.model(**fields)
    self.db.add(row)
    await self.db.flush()
    return row

  async def get(self, entity_id: str) -> M | None:
    return await self.db.get(self.model, entity_id)

  async def exists(self, entity_id: str) -> bool:
    res = await self.db.execute(select(self.model.id).where(self.model.id == entity_id).limit(1))
    return res.scalar_one_or_none() is not None

  async def list_all(self) -> list[M]:
    res = await self.db.execute(select(self.model).order_by(getattr(self.model, self.order_column).asc(), self.model.id.asc()))
    return list(res.scalars().all())

  async def list_by_parent(self, parent_id: str | None) -> list[M]:
    if self.parent_column is None:
      raise TypeError(f"{self.model.__name__} has no parent")
    col = getattr(self.model, self.parent_column)
    cond = col.is_(None) if parent_id is None else col == parent_id
    res = await self.db.execute(select(self.model).where(cond).order_by(getattr(self.model, self.order_column).asc(), self.model.id.asc()))
    return list(res.scalars().all())


class ProjectRepository(EntityRepository[Project]):
  model = Project
  parent_column = "parent_id"


class SectionRepository(EntityRepository[Section]):
  model = Section
  parent_column = "project_id"


class TaskRepository(EntityRepository[Task]):
  model = Task
  parent_column = "project_id"


class LabelRepository(EntityRepository[Label]):
  model = Label


class TaskLabelRepository(EntityRepository[TaskLabel]):
  model = TaskLabel
  parent_column = "task_id"
  order_column = "id"


class CommentRepository(EntityRepository[Comment]):
  model = Comment
  parent_column = "task_id"


class AttachmentRepository(EntityRepository[Attachment]):
  model = Attachment
  parent_column = "task_id"


class FilterRepository(EntityRepository[Filter]):
  model = Filter


class ReminderRepository(EntityRepository[Reminder]):
  model = Reminder
  parent_column = "task_id"
  order_column = "remind_at"


class SettingRepository:
  def __init__(self, db: AsyncSession) -> None:
    self.db = db

  async def get(self, key: str) -> str | None:
    row = await self.db.get(Setting, key)
    return row.value if row else None

  async def all(self) -> dict[str, str]:
    res = await self.db.execute(select(Setting).order_by(Setting.key.asc()))
    return {s.key: s.value for s in res.scalars().all()}

  async def set(self, key: str, value: str) -> SettingEntry:
    entry = validate_setting_entry(key, value)
    row = await self.db.get(Setting, entry.key)
    if row is None:
      self.db.add(Setting(key=entry.key, value=entry.value))
    else:
      row.value = entry.value
    await self.db.flush()
    return entry


class Repositories:
  def __init__(self, db: AsyncSession) -> None:
    self.projects = ProjectRepository(db)
    self.sections = SectionRepository(db)
    self.tasks = TaskRepository(db)
    self.labels = LabelRepository(db)
    self.task_labels = TaskLabelRepository(db)
    self.comments = CommentRepository(db)
    self.attachments = AttachmentRepository(db)
    self.filters = FilterRepository(db)
    self.reminders = ReminderRepository(db)
    self.settings = SettingRepository(db)
