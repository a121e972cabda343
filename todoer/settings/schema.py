from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Union

_INT_RE = re.compile(r"^[+-]?[0-9]+$")

SHORTCUT_ACTIONS = frozenset(
  {
    "quickAdd",
    "search",
    "toggleSidebar",
    "help",
    "settings",
    "undo",
    "redo",
    "goToday",
    "goInbox",
    "goUpcoming",
    "goCalendar",
    "navBack",
    "navForward",
    "taskMoveDown",
    "taskMoveUp",
    "taskComplete",
    "taskEdit",
    "taskDelete",
    "taskPriority1",
    "taskPriority2",
    "taskPriority3",
    "taskPriority4",
    "taskCollapse",
    "taskExpand",
    "taskIndent",
    "taskOutdent",
    "taskAddSubtask",
    "taskClearFocus",
  }
)
_SHORTCUT_FLAGS = ("ctrl", "shift", "alt", "meta")


@dataclass(frozen=True)
class BooleanSetting:
  def accepts(self, value: str) -> bool:
    return value in ("true", "false")


@dataclass(frozen=True)
class IntegerRangeSetting:
  min: int
  max: int

  def accepts(self, value: str) -> bool:
    if not _INT_RE.fullmatch(value):
      return False
    return self.min <= int(value) <= self.max


@dataclass(frozen=True)
class ChoiceSetting:
  allowed: frozenset[str]

  def accepts(self, value: str) -> bool:
    return value in self.allowed


@dataclass(frozen=True)
class NonEmptySetting:
  def accepts(self, value: str) -> bool:
    return bool(value)


@dataclass(frozen=True)
class ShortcutsSetting:
  """JSON object of action -> binding, e.g. {"quickAdd": {"key": "q", "ctrl": true}}."""

  def accepts(self, value: str) -> bool:
    try:
      parsed = json.loads(value)
    except ValueError:
      return False
    if not isinstance(parsed, dict):
      return False
    for action, binding in parsed.items():
      if action not in SHORTCUT_ACTIONS or not isinstance(binding, dict):
        return False
      key = binding.get("key")
      if not isinstance(key, str) or not key:
        return False
      if any(flag in binding and not isinstance(binding[flag], bool) for flag in _SHORTCUT_FLAGS):
        return False
      if "chord" in binding and not isinstance(binding["chord"], str):
        return False
    return True


SettingKind = Union[BooleanSetting, IntegerRangeSetting, ChoiceSetting, NonEmptySetting, ShortcutsSetting]


SETTINGS_SCHEMA: dict[str, SettingKind] = {
  "confirmDelete": BooleanSetting(),
  "notificationsEnabled": BooleanSetting(),
  "timeFormat": ChoiceSetting(frozenset({"12h", "24h"})),
  "dateFormat": ChoiceSetting(frozenset({"mdy", "dmy", "ymd"})),
  "weekStart": IntegerRangeSetting(0, 1),
  "dailyGoal": IntegerRangeSetting(1, 1000),
  "weeklyGoal": IntegerRangeSetting(1, 1000),
  "quietHoursStart": IntegerRangeSetting(0, 23),
  "quietHoursEnd": IntegerRangeSetting(0, 23),
  "defaultProject": NonEmptySetting(),
  "keyboardShortcuts": ShortcutsSetting(),
}


def is_known_key(key: str) -> bool:
  return key in SETTINGS_SCHEMA
