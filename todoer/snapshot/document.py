from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from todoer.config import settings

COLLECTIONS = (
  "projects",
  "sections",
  "tasks",
  "labels",
  "labelAssignments",
  "comments",
  "attachments",
  "filters",
  "reminders",
  "settings",
)


class DocumentCorrupt(ValueError):
  """The snapshot cannot be read as a whole; nothing from it may be written."""


# 0001-01-02 .. 9999-12-30, so every value converts to a datetime in any timezone.
EpochMs = Annotated[int, Field(ge=-62_135_510_400_000, le=253_402_214_399_999)]
# Integers land in 64-bit SQL columns.
Int64 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]


def to_epoch_ms(dt: datetime | None) -> int | None:
  if dt is None:
    return None
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: int | None) -> datetime | None:
  if ms is None:
    return None
  return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def decode_payload(data_base64: str) -> bytes:
  return base64.b64decode(data_base64.encode("ascii"), validate=True)


def encode_payload(data: bytes) -> str:
  return base64.b64encode(data).decode("ascii")


class _Row(BaseModel):
  model_config = ConfigDict(frozen=True, extra="ignore")


class ExportProject(_Row):
  id: str
  name: str
  description: str | None = None
  color: str = "#808080"
  parentId: str | None = None
  sortOrder: Int64 = 0
  viewMode: str = "list"
  isFavorite: bool = False
  archivedAt: EpochMs | None = None
  createdAt: EpochMs | None = None


class ExportSection(_Row):
  id: str
  projectId: str | None = None
  name: str
  sortOrder: Int64 = 0
  isCollapsed: bool = False
  createdAt: EpochMs | None = None


class ExportLabelRef(_Row):
  id: str


class ExportTask(_Row):
  id: str
  projectId: str | None = None
  sectionId: str | None = None
  parentId: str | None = None
  content: str
  description: str | None = None
  priority: Int64 = 4
  completed: bool = False
  completedAt: EpochMs | None = None
  dueDate: EpochMs | None = None
  deadline: EpochMs | None = None
  duration: Int64 | None = None
  recurrenceRule: str | None = None
  sortOrder: Int64 = 0
  createdAt: EpochMs | None = None
  updatedAt: EpochMs | None = None
  # Older exports embed label refs on each task instead of labelAssignments.
  labels: list[ExportLabelRef] = Field(default_factory=list)


class ExportLabel(_Row):
  id: str
  name: str
  color: str = "#808080"
  sortOrder: Int64 = 0
  isFavorite: bool = False
  createdAt: EpochMs | None = None


class ExportLabelAssignment(_Row):
  taskId: str
  labelId: str


class ExportComment(_Row):
  id: str
  taskId: str | None = None
  content: str
  createdAt: EpochMs | None = None
  updatedAt: EpochMs | None = None


class ExportAttachment(_Row):
  id: str
  taskId: str | None = None
  filename: str
  mimeType: str = "application/octet-stream"
  size: int = Field(ge=0)
  createdAt: EpochMs | None = None
  dataBase64: str

  @field_validator("dataBase64")
  @classmethod
  def _decodable(cls, v: str) -> str:
    try:
      decode_payload(v)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
      raise ValueError("dataBase64 is not valid base64") from e
    return v

  def payload(self) -> bytes:
    return decode_payload(self.dataBase64)


class ExportFilter(_Row):
  id: str
  name: str
  query: str
  color: str = "#808080"
  sortOrder: Int64 = 0
  isFavorite: bool = False
  createdAt: EpochMs | None = None


class ExportReminder(_Row):
  id: str
  taskId: str | None = None
  remindAt: EpochMs
  notified: bool = False


class SnapshotDocument(BaseModel):
  model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

  formatVersion: int = Field(validation_alias=AliasChoices("formatVersion", "version"))
  exportedAt: int | None = None
  projects: list[ExportProject] | None = None
  sections: list[ExportSection] | None = None
  tasks: list[ExportTask]
  labels: list[ExportLabel] | None = None
  labelAssignments: list[ExportLabelAssignment] | None = None
  comments: list[ExportComment] | None = None
  attachments: list[ExportAttachment] | None = None
  filters: list[ExportFilter] | None = None
  reminders: list[ExportReminder] | None = None
  # Values stay untyped here; the settings validator decides per entry.
  settings: dict[str, Any] | None = None

  def present(self) -> list[str]:
    return [name for name in COLLECTIONS if getattr(self, name) is not None]

  def to_json(self) -> str:
    return json.dumps(self.model_dump(mode="json"), ensure_ascii=False, indent=2)


def _describe(err: ValidationError) -> str:
  first = err.errors()[0]
  loc = ".".join(str(p) for p in first.get("loc", ()))
  msg = first.get("msg", "invalid")
  more = err.error_count() - 1
  suffix = f" (+{more} more)" if more > 0 else ""
  return f"Invalid export format: {loc}: {msg}{suffix}"


def parse_document(raw: str | bytes | dict[str, Any]) -> SnapshotDocument:
  if isinstance(raw, (str, bytes)):
    try:
      data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
      raise DocumentCorrupt("Invalid JSON format") from e
  else:
    data = raw
  if not isinstance(data, dict):
    raise DocumentCorrupt("Invalid export format: top level must be an object")
  if not isinstance(data.get("tasks"), list):
    raise DocumentCorrupt("Invalid export format: missing tasks array")
  try:
    doc = SnapshotDocument.model_validate(data)
  except ValidationError as e:
    raise DocumentCorrupt(_describe(e)) from e
  if doc.formatVersion < 1 or doc.formatVersion > int(settings.snapshot_format_version):
    raise DocumentCorrupt(f"Unsupported format version: {doc.formatVersion}")
  return doc
