from __future__ import annotations

import base64
import json

import pytest

from todoer.snapshot.document import COLLECTIONS, parse_document, to_epoch_ms
from todoer.snapshot.exporter import export_snapshot, export_to_json

from conftest import seed_dataset, ts


@pytest.mark.anyio
async def test_export_includes_every_collection_with_foreign_keys_verbatim(db) -> None:
  ids = await seed_dataset(db)
  doc = await export_snapshot(db)

  assert doc.formatVersion == 1
  assert doc.exportedAt and doc.exportedAt > 0
  assert doc.present() == list(COLLECTIONS)
  assert len(doc.projects) == 2
  assert len(doc.tasks) == 3

  sub = next(p for p in doc.projects if p.id == ids["subproject"])
  assert sub.parentId == ids["project"]
  assert sub.viewMode == "board"

  section = doc.sections[0]
  assert section.projectId == ids["project"]

  report = next(t for t in doc.tasks if t.id == ids["task"])
  assert report.projectId == ids["project"]
  assert report.sectionId == ids["section"]
  assert report.priority == 1
  assert report.dueDate == to_epoch_ms(ts(2026, 2, 1, 9))

  outline = next(t for t in doc.tasks if t.id == ids["subtask"])
  assert outline.parentId == ids["task"]

  inbox = next(t for t in doc.tasks if t.id == ids["inbox_task"])
  assert inbox.projectId is None
  assert inbox.completed is True
  assert inbox.completedAt == to_epoch_ms(ts(2026, 1, 6))

  assert [(a.taskId, a.labelId) for a in doc.labelAssignments] == [(ids["task"], ids["label"])]
  assert doc.comments[0].taskId == ids["task"]
  assert doc.reminders[0].taskId == ids["task"]
  assert doc.filters[0].query == "@urgent"
  assert doc.settings == {"dailyGoal": "7", "timeFormat": "24h"}


@pytest.mark.anyio
async def test_export_inlines_attachment_bytes_as_base64(db) -> None:
  ids = await seed_dataset(db)
  doc = await export_snapshot(db)

  att = doc.attachments[0]
  assert att.id == ids["attachment"]
  assert att.taskId == ids["task"]
  assert att.filename == "notes.txt"
  assert att.mimeType == "text/plain"
  assert att.size == 11
  assert base64.b64decode(att.dataBase64) == b"hello world"
  assert att.createdAt == to_epoch_ms(ts(2026, 1, 9))


@pytest.mark.anyio
async def test_export_of_empty_dataset_has_empty_collections(db) -> None:
  doc = await export_snapshot(db)
  assert doc.tasks == []
  assert doc.attachments == []
  assert doc.settings == {}


@pytest.mark.anyio
async def test_export_to_json_is_reparseable(db) -> None:
  await seed_dataset(db)
  text = await export_to_json(db)
  raw = json.loads(text)
  assert raw["formatVersion"] == 1
  assert isinstance(raw["exportedAt"], int)
  assert set(raw["attachments"][0]) == {"id", "taskId", "filename", "mimeType", "size", "createdAt", "dataBase64"}
  assert parse_document(text).tasks
