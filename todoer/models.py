from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, LargeBinary, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  color: Mapped[str] = mapped_column(String, nullable=False, default="#808080")
  parent_id: Mapped[str | None] = mapped_column(String, ForeignKey("projects.id"), nullable=True, index=True)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  view_mode: Mapped[str] = mapped_column(String, nullable=False, default="list")
  is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Section(Base):
  __tablename__ = "sections"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(String, ForeignKey("projects.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  is_collapsed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  project_id: Mapped[str | None] = mapped_column(String, ForeignKey("projects.id"), nullable=True, index=True)
  section_id: Mapped[str | None] = mapped_column(String, ForeignKey("sections.id"), nullable=True, index=True)
  parent_id: Mapped[str | None] = mapped_column(String, ForeignKey("tasks.id"), nullable=True, index=True)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  priority: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
  completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  recurrence_rule: Mapped[str | None] = mapped_column(String, nullable=True)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Label(Base):
  __tablename__ = "labels"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  color: Mapped[str] = mapped_column(String, nullable=False, default="#808080")
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class TaskLabel(Base):
  __tablename__ = "task_labels"
  __table_args__ = (UniqueConstraint("task_id", "label_id", name="ux_task_labels_task_label"),)

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
  label_id: Mapped[str] = mapped_column(String, ForeignKey("labels.id"), nullable=False, index=True)


class Comment(Base):
  __tablename__ = "comments"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Attachment(Base):
  __tablename__ = "attachments"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
  filename: Mapped[str] = mapped_column(String, nullable=False)
  mime_type: Mapped[str] = mapped_column(String, nullable=False, default="application/octet-stream")
  size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
  data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Filter(Base):
  __tablename__ = "filters"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  query: Mapped[str] = mapped_column(Text, nullable=False)
  color: Mapped[str] = mapped_column(String, nullable=False, default="#808080")
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Reminder(Base):
  __tablename__ = "reminders"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
  remind_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Setting(Base):
  __tablename__ = "settings"

  key: Mapped[str] = mapped_column(String, primary_key=True)
  value: Mapped[str] = mapped_column(Text, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
