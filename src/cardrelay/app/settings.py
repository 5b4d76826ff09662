"""Runtime settings: YAML file, CLI overrides, live updates and reload."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

import yaml

from cardrelay.core.detect import MODES, EngineOptions
from cardrelay.core.errors import ConfigError

lg = logging.getLogger(__name__)

LOCAL_BROKER = "local"


@dataclass
class Settings:
    detection_mode: str = "event"
    endpoint_url: str = ""
    venue_id: str = ""
    client_id: str = ""
    broker_url: str = "ws://127.0.0.1:8765"
    hold_card: bool = True
    poll_interval: float = 1.5
    wait_timeout: float = 60.0
    reader_retry: float = 3.0
    recovery_delay: float = 5.0
    restart_settle: float = 0.5
    health_interval: float = 30.0
    http_timeout: float = 10.0
    call_timeout: float = 10.0


_FIELDS = {f.name: type(f.default) for f in fields(Settings)}

# fields that only take effect when a new engine/session/client is built
_ENGINE_FIELDS = (
    "poll_interval",
    "wait_timeout",
    "reader_retry",
    "recovery_delay",
    "restart_settle",
)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    low = str(value).strip().lower()
    if low in ("true", "yes", "on", "1"):
        return True
    if low in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce(name: str, value: Any) -> Any:
    kind = _FIELDS.get(name)
    if kind is None:
        raise ConfigError(f"unknown setting: {name}")
    try:
        if kind is bool:
            return _parse_bool(value)
        if kind is float:
            if isinstance(value, bool):
                raise ValueError(f"not a number: {value!r}")
            return float(value)
        return "" if value is None else str(value).strip()
    except ValueError as exc:
        raise ConfigError(f"{name}: {exc}") from exc


def validate(settings: Settings) -> Settings:
    if settings.detection_mode not in MODES:
        raise ConfigError(
            f"detection_mode must be one of {', '.join(MODES)}, got {settings.detection_mode!r}"
        )
    if not settings.broker_url:
        raise ConfigError("broker_url must not be empty")
    for name, kind in _FIELDS.items():
        if kind is float and getattr(settings, name) < 0:
            raise ConfigError(f"{name} must not be negative")
    return settings


def build_settings(data: dict[str, Any], source: str = "<settings>") -> Settings:
    """Build Settings from a mapping, rejecting unknown keys."""
    for key in data:
        if key not in _FIELDS:
            raise ConfigError(f"Unknown field {key} in {source}")
    values = {key: _coerce(key, value) for key, value in data.items()}
    return validate(Settings(**values))


def read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


class SettingsStore:
    """Holds the live Settings and applies changes to them.

    The file in ``path`` (if any) is the base layer; ``overrides`` from the
    command line sit on top and survive reloads.
    """

    def __init__(self, path: str | None = None, overrides: dict[str, Any] | None = None) -> None:
        self._path = path
        self._overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self._file_data: dict[str, Any] = read_yaml(path) if path else {}
        self._mtime = self._stat()
        self._settings = build_settings(
            {**self._file_data, **self._overrides}, source=path or "<command line>",
        )
        if not self._settings.client_id:
            self._settings.client_id = str(uuid.uuid4())
            lg.info("generated client id %s", self._settings.client_id)
            self._persist_client_id()

    @property
    def current(self) -> Settings:
        return self._settings

    @property
    def path(self) -> str | None:
        return self._path

    def as_dict(self) -> dict[str, Any]:
        return asdict(self._settings)

    def engine_options(self) -> EngineOptions:
        s = self._settings
        return EngineOptions(
            mode=s.detection_mode,
            hold_card=s.hold_card,
            **{name: getattr(s, name) for name in _ENGINE_FIELDS},
        )

    def update(self, changes: dict[str, Any]) -> Settings:
        """Apply ``changes`` atomically; raises ConfigError and keeps the old values on error."""
        values = {key: _coerce(key, value) for key, value in changes.items()}
        if values.get("client_id") == "":
            values["client_id"] = str(uuid.uuid4())
            lg.info("generated client id %s", values["client_id"])
        self._settings = validate(replace(self._settings, **values))
        return self._settings

    def _stat(self) -> float | None:
        if not self._path:
            return None
        try:
            return os.stat(self._path).st_mtime
        except OSError:
            return None

    def reload_changes(self) -> dict[str, Any]:
        """Re-read the config file if it changed on disk.

        Returns the changed keys (file values not shadowed by command-line
        overrides) without applying them; empty when nothing changed. A key
        removed from the file reverts to its default, except ``client_id``.
        """
        mtime = self._stat()
        if self._path is None or mtime is None or mtime == self._mtime:
            return {}
        self._mtime = mtime
        data = read_yaml(self._path)
        build_settings({**data, **self._overrides}, source=self._path)
        previous, self._file_data = self._file_data, data
        defaults = asdict(Settings())
        changes = {}
        for key in previous.keys() | data.keys():
            if key in self._overrides or previous.get(key) == data.get(key):
                continue
            if key in data:
                changes[key] = data[key]
            elif key != "client_id":
                changes[key] = defaults[key]
        if changes:
            lg.info("config file %s changed: %s", self._path, ", ".join(sorted(changes)))
        return changes

    def _persist_client_id(self) -> None:
        if not self._path:
            return
        data = dict(self._file_data)
        data["client_id"] = self._settings.client_id
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as exc:
            lg.warning("could not save client id to %s: %s", self._path, exc)
            return
        self._file_data = data
        self._mtime = self._stat()
