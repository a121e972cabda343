from __future__ import annotations

import pytest
from httpx import AsyncClient


@pytest.mark.anyio
async def test_put_and_get_setting(client: AsyncClient) -> None:
  r = await client.put("/settings/timeFormat", json={"value": " 12h "})
  assert r.status_code == 200, r.text
  assert r.json() == {"key": "timeFormat", "value": "12h"}

  got = await client.get("/settings/timeFormat")
  assert got.status_code == 200, got.text
  assert got.json()["value"] == "12h"

  r2 = await client.put("/settings/timeFormat", json={"value": "24h"})
  assert r2.status_code == 200, r2.text
  assert (await client.get("/settings")).json() == {"timeFormat": "24h"}


@pytest.mark.anyio
async def test_unknown_key_is_rejected(client: AsyncClient) -> None:
  r = await client.put("/settings/theme", json={"value": "dark"})
  assert r.status_code == 400, r.text
  assert "invalid setting key" in r.json()["detail"].lower()

  got = await client.get("/settings/theme")
  assert got.status_code == 400, got.text


@pytest.mark.anyio
async def test_bad_value_is_rejected_and_not_stored(client: AsyncClient) -> None:
  r = await client.put("/settings/quietHoursStart", json={"value": "24"})
  assert r.status_code == 400, r.text
  assert "invalid value" in r.json()["detail"].lower()
  assert (await client.get("/settings")).json() == {}
