from __future__ import annotations

from dataclasses import dataclass

from todoer.settings.schema import SETTINGS_SCHEMA


class SettingsValidationError(ValueError):
  def __init__(self, message: str, *, key: str) -> None:
    super().__init__(message)
    self.message = message
    self.key = key


class InvalidSettingKey(SettingsValidationError):
  def __init__(self, key: str) -> None:
    super().__init__(f"Invalid setting key: {key}", key=key)


class InvalidSettingValue(SettingsValidationError):
  def __init__(self, key: str, value: str) -> None:
    super().__init__(f"Invalid value for {key}: {value}", key=key)
    self.value = value


@dataclass(frozen=True)
class SettingEntry:
  key: str
  value: str


def validate_setting_entry(key: str, value: str) -> SettingEntry:
  """Check one (key, value) pair against the settings table and return the trimmed value.

  Raises InvalidSettingKey for keys outside the table and InvalidSettingValue when the
  trimmed value does not satisfy the key's kind. Used for direct writes and for imports.
  """
  kind = SETTINGS_SCHEMA.get(key) if isinstance(key, str) else None
  if kind is None:
    raise InvalidSettingKey(str(key))
  if not isinstance(value, str):
    raise InvalidSettingValue(key, str(value))
  normalized = value.strip()
  if not kind.accepts(normalized):
    raise InvalidSettingValue(key, value)
  return SettingEntry(key=key, value=normalized)
