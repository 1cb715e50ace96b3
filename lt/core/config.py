import json
import os
from lt.common.errors import InvalidSetting, StorageCorrupt
from lt.common.logger import log
from lt.common.setup import PATHS
from lt.core.models import TimerSettings, DEFAULT_WEIGHT_UNIT
from lt.util import now_iso, WEIGHT_UNITS


_SCHEMA_VERSION = 1

#region === Helpers and Paths ===

STORAGE_PATH = PATHS.current / "storage.json"

TIMER_SETTINGS_KEY = "timerSettings"
ONBOARDING_KEY = "hasSeenOnboarding"
WEIGHT_UNIT_KEY = "weightUnit"
EXERCISE_KEY_PREFIX = "exercise:"

#endregion === Helpers and Paths ===

#region === Local key-value storage ===

# A flat string->string map persisted as one JSON file, the desktop stand-in for browser localStorage. Every
# set_item/remove_item writes through to disk immediately.
class LocalStorage:

    def __init__(self, path=None):
        self.path = path if path is not None else STORAGE_PATH
        self._items = self._load()

    # Loads the items map, falling back to empty storage if the file is missing or unreadable. A corrupt file is
    # moved aside rather than overwritten so it can still be inspected.
    def _load(self):
        if not os.path.exists(self.path):
            log.info(f"No existing storage found at '{self.path}', starting with empty storage.")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict) or not isinstance(data.get("items"), dict):
                raise StorageCorrupt(f"Storage file '{self.path}' has no items map")
        except (json.JSONDecodeError, UnicodeDecodeError, StorageCorrupt, OSError):
            log.warning(f"Ran into an error while trying to load '{self.path}', falling back to empty storage.", exc_info=True)
            self._quarantine()
            return {}

        items = {}
        dropped = []
        for key, value in data["items"].items():
            if isinstance(value, str):
                items[key] = value
            else:
                dropped.append(key)
        if dropped:
            log.warning(f"Loaded storage from '{self.path}', but dropped non-string records: {', '.join(sorted(dropped))}")
        else:
            log.info(f"Successfully loaded storage from '{self.path}'.")
        return items

    def _quarantine(self):
        corrupt_path = f"{self.path}.corrupt"
        try:
            os.replace(self.path, corrupt_path)
            log.warning(f"Moved unreadable storage file to '{corrupt_path}'")
        except OSError:
            log.warning(f"Could not move unreadable storage file '{self.path}' aside", exc_info=True)

    # Writes `items` to disk. Callers only adopt the new map once this returns, so a failed write (OSError) leaves
    # memory matching what is on disk.
    def _save(self, items):
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        payload = {
            "meta": {"schema_version": _SCHEMA_VERSION, "saved_at": now_iso()},
            "items": items,
        }
        # Write to a sibling file first so a crash mid-write can't leave half a JSON document behind
        temp_path = f"{self.path}.tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(temp_path, self.path)
        except OSError:
            log.error(f"Could not write storage to '{self.path}'", exc_info=True)
            try: os.remove(temp_path)
            except OSError: pass
            raise

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        items = dict(self._items)
        items[key] = value
        self._save(items)
        self._items = items

    def remove_item(self, key):
        if key in self._items:
            items = dict(self._items)
            del items[key]
            self._save(items)
            self._items = items

    def keys(self):
        return list(self._items.keys())

    # Convenience for JSON records. Returns `default` when the key is missing; raises StorageCorrupt if present
    # but unparseable.
    def get_json(self, key, default=None):
        raw = self._items.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageCorrupt(f"Record '{key}' is not valid JSON: {e}") from e

    def set_json(self, key, value):
        self.set_item(key, json.dumps(value))

#endregion === Local key-value storage ===

#region === Preferences ===

# Timer settings, onboarding flag and weight unit. These always live locally, whichever exercise store is in use.
class Preferences:

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def load_timer_settings(self):
        try:
            raw = self.storage.get_json(TIMER_SETTINGS_KEY)
        except StorageCorrupt:
            log.warning("Timer settings were unreadable, using defaults.", exc_info=True)
            return TimerSettings()
        if raw is None:
            return TimerSettings()
        settings, defaulted = TimerSettings.from_dict(raw)
        if defaulted:
            log.warning(f"Loaded timer settings, but with missing values that were defaulted: {', '.join(sorted(defaulted))}")
        return settings

    def save_timer_settings(self, settings: TimerSettings):
        self.storage.set_json(TIMER_SETTINGS_KEY, settings.to_dict())
        log.info(f"Saved timer settings: sound={'on' if settings.sound_enabled else 'off'}, countdown={settings.countdown_threshold}s")

    @property
    def has_seen_onboarding(self):
        return self.storage.get_item(ONBOARDING_KEY) == "true"

    def mark_onboarding_seen(self):
        self.storage.set_item(ONBOARDING_KEY, "true")

    def load_weight_unit(self):
        unit = self.storage.get_item(WEIGHT_UNIT_KEY)
        if unit not in WEIGHT_UNITS:
            return DEFAULT_WEIGHT_UNIT
        return unit

    def save_weight_unit(self, unit):
        if unit not in WEIGHT_UNITS:
            raise InvalidSetting(f"Unknown weight unit '{unit}'")
        self.storage.set_item(WEIGHT_UNIT_KEY, unit)

#endregion === Preferences ===
