from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from todoer.config import settings
from todoer.log import get_logger
from todoer.repositories import Repositories
from todoer.snapshot.document import (
  ExportAttachment,
  ExportComment,
  ExportFilter,
  ExportLabel,
  ExportLabelAssignment,
  ExportProject,
  ExportReminder,
  ExportSection,
  ExportTask,
  SnapshotDocument,
  encode_payload,
  to_epoch_ms,
)

log = get_logger("snapshot.export")


async def export_snapshot(db: AsyncSession) -> SnapshotDocument:
  # Plain reads; a concurrent writer can produce a torn snapshot.
  repos = Repositories(db)

  projects = [
    ExportProject(
      id=p.id,
      name=p.name,
      description=p.description,
      color=p.color,
      parentId=p.parent_id,
      sortOrder=p.sort_order,
      viewMode=p.view_mode,
      isFavorite=bool(p.is_favorite),
      archivedAt=to_epoch_ms(p.archived_at),
      createdAt=to_epoch_ms(p.created_at),
    )
    for p in await repos.projects.list_all()
  ]

  sections = [
    ExportSection(
      id=s.id,
      projectId=s.project_id,
      name=s.name,
      sortOrder=s.sort_order,
      isCollapsed=bool(s.is_collapsed),
      createdAt=to_epoch_ms(s.created_at),
    )
    for s in await repos.sections.list_all()
  ]

  tasks = []
  for t in await repos.tasks.list_all():
    tasks.append(
      ExportTask(
        id=t.id,
        projectId=t.project_id,
        sectionId=t.section_id,
        parentId=t.parent_id,
        content=t.content,
        description=t.description,
        priority=t.priority,
        completed=bool(t.completed),
        completedAt=to_epoch_ms(t.completed_at),
        dueDate=to_epoch_ms(t.due_date),
        deadline=to_epoch_ms(t.deadline),
        duration=t.duration,
        recurrenceRule=t.recurrence_rule,
        sortOrder=t.sort_order,
        createdAt=to_epoch_ms(t.created_at),
        updatedAt=to_epoch_ms(t.updated_at),
      )
    )

  labels = [
    ExportLabel(
      id=l.id,
      name=l.name,
      color=l.color,
      sortOrder=l.sort_order,
      isFavorite=bool(l.is_favorite),
      createdAt=to_epoch_ms(l.created_at),
    )
    for l in await repos.labels.list_all()
  ]

  assignments = [ExportLabelAssignment(taskId=a.task_id, labelId=a.label_id) for a in await repos.task_labels.list_all()]

  comments = [
    ExportComment(
      id=c.id,
      taskId=c.task_id,
      content=c.content,
      createdAt=to_epoch_ms(c.created_at),
      updatedAt=to_epoch_ms(c.updated_at),
    )
    for c in await repos.comments.list_all()
  ]

  attachments = []
  for a in await repos.attachments.list_all():
    data = bytes(a.data or b"")
    attachments.append(
      ExportAttachment(
        id=a.id,
        taskId=a.task_id,
        filename=a.filename,
        mimeType=a.mime_type,
        size=int(a.size_bytes),
        createdAt=to_epoch_ms(a.created_at),
        dataBase64=encode_payload(data),
      )
    )

  filters = [
    ExportFilter(
      id=f.id,
      name=f.name,
      query=f.query,
      color=f.color,
      sortOrder=f.sort_order,
      isFavorite=bool(f.is_favorite),
      createdAt=to_epoch_ms(f.created_at),
    )
    for f in await repos.filters.list_all()
  ]

  reminders = [
    ExportReminder(id=r.id, taskId=r.task_id, remindAt=to_epoch_ms(r.remind_at), notified=bool(r.notified))
    for r in await repos.reminders.list_all()
  ]

  doc = SnapshotDocument(
    formatVersion=int(settings.snapshot_format_version),
    exportedAt=to_epoch_ms(datetime.now(timezone.utc)),
    projects=projects,
    sections=sections,
    tasks=tasks,
    labels=labels,
    labelAssignments=assignments,
    comments=comments,
    attachments=attachments,
    filters=filters,
    reminders=reminders,
    settings=await repos.settings.all(),
  )
  log.info(
    "exported snapshot: %d projects, %d tasks, %d comments, %d attachments",
    len(projects),
    len(tasks),
    len(comments),
    len(attachments),
  )
  return doc


async def export_to_json(db: AsyncSession) -> str:
  return (await export_snapshot(db)).to_json()
