from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Keep the module-level engine off disk; every test gets its own database below.
os.environ.setdefault("TODOER_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from todoer.db import build_engine, init_models
from todoer.deps import get_db
from todoer.main import app
from todoer.models import Attachment, Comment, Filter, Label, Project, Reminder, Section, Setting, Task, TaskLabel


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def session_factory(tmp_path: Path):
  engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'todoer_test.db'}")
  await init_models(engine)
  yield async_sessionmaker(engine, expire_on_commit=False)
  await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncSession:
  async with session_factory() as session:
    yield session


@pytest.fixture
async def other_db(tmp_path: Path) -> AsyncSession:
  engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'todoer_other.db'}")
  await init_models(engine)
  async with async_sessionmaker(engine, expire_on_commit=False)() as session:
    yield session
  await engine.dispose()


@pytest.fixture
async def client(session_factory) -> AsyncClient:
  async def _get_db():
    async with session_factory() as session:
      yield session

  app.dependency_overrides[get_db] = _get_db
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c
  app.dependency_overrides.clear()


def ts(year: int, month: int, day: int, hour: int = 0) -> datetime:
  return datetime(year, month, day, hour, tzinfo=timezone.utc)


async def seed_dataset(db: AsyncSession) -> dict[str, str]:
  """One of everything, wired together. Returns the ids by name."""
  work = Project(id="p-work", name="Work", color="#ff0000", created_at=ts(2026, 1, 1))
  side = Project(id="p-side", name="Side", parent_id="p-work", view_mode="board", created_at=ts(2026, 1, 2))
  db.add_all([work, side])
  await db.flush()
  db.add(Section(id="s-backlog", project_id="p-work", name="Backlog", created_at=ts(2026, 1, 3)))
  await db.flush()
  db.add_all(
    [
      Task(
        id="t-report",
        project_id="p-work",
        section_id="s-backlog",
        content="Write report",
        priority=1,
        due_date=ts(2026, 2, 1, 9),
        created_at=ts(2026, 1, 4),
        updated_at=ts(2026, 1, 4),
      ),
      Task(id="t-inbox", content="Buy milk", completed=True, completed_at=ts(2026, 1, 6), created_at=ts(2026, 1, 5), updated_at=ts(2026, 1, 6)),
    ]
  )
  await db.flush()
  db.add(Task(id="t-outline", project_id="p-work", parent_id="t-report", content="Outline", created_at=ts(2026, 1, 7), updated_at=ts(2026, 1, 7)))
  db.add(Label(id="l-urgent", name="urgent", color="#00ff00", created_at=ts(2026, 1, 1)))
  await db.flush()
  db.add(TaskLabel(id="tl-1", task_id="t-report", label_id="l-urgent"))
  db.add(Comment(id="c-1", task_id="t-report", content="Draft is in the shared folder", created_at=ts(2026, 1, 8), updated_at=ts(2026, 1, 8)))
  db.add(
    Attachment(
      id="a-1",
      task_id="t-report",
      filename="notes.txt",
      mime_type="text/plain",
      size_bytes=11,
      data=b"hello world",
      created_at=ts(2026, 1, 9),
    )
  )
  db.add(Filter(id="f-1", name="Urgent", query="@urgent", created_at=ts(2026, 1, 1)))
  db.add(Reminder(id="r-1", task_id="t-report", remind_at=ts(2026, 1, 31, 8)))
  db.add(Setting(key="timeFormat", value="24h"))
  db.add(Setting(key="dailyGoal", value="7"))
  await db.commit()
  return {
    "project": "p-work",
    "subproject": "p-side",
    "section": "s-backlog",
    "task": "t-report",
    "subtask": "t-outline",
    "inbox_task": "t-inbox",
    "label": "l-urgent",
    "comment": "c-1",
    "attachment": "a-1",
  }


def attachment_row(**overrides) -> dict:
  row = {
    "id": "a-doc",
    "taskId": "t-doc",
    "filename": "doc.txt",
    "mimeType": "text/plain",
    "size": 5,
    "createdAt": 1767225600000,
    "dataBase64": "aGVsbG8=",
  }
  row.update(overrides)
  return row
