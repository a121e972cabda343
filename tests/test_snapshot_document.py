from __future__ import annotations

import json

import pytest

from todoer.snapshot.document import DocumentCorrupt, SnapshotDocument, parse_document

from conftest import attachment_row


def _doc(**extra) -> dict:
  base = {"formatVersion": 1, "exportedAt": 1767225600000, "tasks": []}
  base.update(extra)
  return base


def test_parses_minimal_document_and_reports_present_collections() -> None:
  doc = parse_document(json.dumps(_doc(comments=[])))
  assert isinstance(doc, SnapshotDocument)
  assert doc.present() == ["tasks", "comments"]
  assert doc.attachments is None


def test_accepts_legacy_version_key() -> None:
  doc = parse_document({"version": 1, "exportedAt": 1, "tasks": []})
  assert doc.formatVersion == 1


@pytest.mark.parametrize(
  ("raw", "needle"),
  [
    ("{not json", "Invalid JSON"),
    ("[1, 2]", "top level"),
    (json.dumps({"formatVersion": 1}), "missing tasks"),
    (json.dumps({"formatVersion": 1, "tasks": {}}), "missing tasks"),
    (json.dumps({"tasks": []}), "formatVersion"),
    (json.dumps(_doc(formatVersion=99)), "Unsupported format version"),
    (json.dumps(_doc(tasks=[{"id": "t1"}])), "content"),
    (json.dumps(_doc(projects="nope")), "projects"),
  ],
)
def test_structural_problems_are_document_corrupt(raw: str, needle: str) -> None:
  with pytest.raises(DocumentCorrupt, match=needle):
    parse_document(raw)


def test_undecodable_payload_is_document_corrupt() -> None:
  with pytest.raises(DocumentCorrupt, match="dataBase64"):
    parse_document(_doc(attachments=[attachment_row(dataBase64="***not base64***")]))


def test_negative_size_is_document_corrupt() -> None:
  with pytest.raises(DocumentCorrupt):
    parse_document(_doc(attachments=[attachment_row(size=-1)]))


@pytest.mark.parametrize(
  ("extra", "needle"),
  [
    ({"tasks": [{"id": "t1", "content": "x", "dueDate": 10**17}]}, "tasks.0.dueDate"),
    ({"tasks": [{"id": "t1", "content": "x", "createdAt": -(10**17)}]}, "tasks.0.createdAt"),
    ({"tasks": [{"id": "t1", "content": "x", "sortOrder": 2**70}]}, "tasks.0.sortOrder"),
    ({"tasks": [{"id": "t1", "content": "x", "duration": -(2**64)}]}, "tasks.0.duration"),
    ({"projects": [{"id": "p1", "name": "P", "archivedAt": 10**17}]}, "projects.0.archivedAt"),
    ({"reminders": [{"id": "r1", "taskId": "t1", "remindAt": 10**17}]}, "reminders.0.remindAt"),
  ],
)
def test_out_of_range_numbers_are_document_corrupt(extra: dict, needle: str) -> None:
  with pytest.raises(DocumentCorrupt, match=needle):
    parse_document(_doc(**extra))


def test_extreme_but_valid_timestamps_parse() -> None:
  doc = parse_document(_doc(tasks=[{"id": "t1", "content": "x", "dueDate": 253_402_214_399_999, "createdAt": 0}]))
  assert doc.tasks[0].dueDate == 253_402_214_399_999


def test_document_is_immutable() -> None:
  doc = parse_document(_doc())
  with pytest.raises(Exception):
    doc.formatVersion = 2  # type: ignore[misc]


def test_to_json_round_trips_every_field() -> None:
  raw = _doc(
    attachments=[attachment_row()],
    settings={"timeFormat": "12h"},
    labelAssignments=[{"taskId": "t-doc", "labelId": "l1"}],
  )
  doc = parse_document(raw)
  again = parse_document(doc.to_json())
  assert again == doc
  assert again.attachments[0].payload() == b"hello"
