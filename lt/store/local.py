from dataclasses import replace
from lt.common.errors import StorageCorrupt, StorageUnavailable
from lt.common.logger import log
from lt.core.config import LocalStorage, EXERCISE_KEY_PREFIX
from lt.core.models import Exercise, merge_sessions
from lt.store.base import ExerciseStore


# Exercises kept in the local key-value file, one JSON record per exercise under "exercise:<name>". There is a single
# local profile, so the owner argument only stamps owner_id on what comes back.
class LocalExerciseStore(ExerciseStore):

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    @staticmethod
    def _key(name):
        return f"{EXERCISE_KEY_PREFIX}{name}"

    # Parses one record. Anything unreadable degrades to an empty-history exercise under the key's name.
    def _read(self, key, owner):
        name = key[len(EXERCISE_KEY_PREFIX):]
        try:
            raw = self.storage.get_json(key)
            exercise = Exercise.from_dict(raw)
            if exercise.name != name:
                raise StorageCorrupt(f"Record '{key}' holds exercise '{exercise.name}'")
        except (StorageCorrupt, TypeError, ValueError, KeyError, OverflowError):
            log.warning(f"Exercise record '{key}' is corrupt, substituting an empty history", exc_info=True)
            exercise = Exercise(name=name)
        return replace(exercise, owner_id=owner.user_id)

    def list_all(self, owner):
        keys = [k for k in self.storage.keys() if k.startswith(EXERCISE_KEY_PREFIX) and len(k) > len(EXERCISE_KEY_PREFIX)]
        exercises = [self._read(k, owner) for k in keys]
        exercises.sort(key=lambda e: e.name)
        log.debug(f"Listed {len(exercises)} local exercises")
        return exercises

    def get(self, name, owner):
        key = self._key(name)
        if self.storage.get_item(key) is None:
            return None
        return self._read(key, owner)

    def upsert(self, exercise, owner):
        # Sessions are normalized through the same merge used for remote writes, which also dedupes a payload that
        # repeats a set.
        stored = exercise.with_sessions(merge_sessions(exercise.sessions))
        try:
            self.storage.set_json(self._key(exercise.name), stored.to_dict())
        except OSError as e:
            raise StorageUnavailable(f"Could not write local storage: {e}") from e
        log.info(f"Saved exercise '{exercise.name}' with {len(stored.sessions)} sessions locally")
        return replace(stored, owner_id=owner.user_id)

    def remove(self, name, owner):
        key = self._key(name)
        if self.storage.get_item(key) is None:
            log.debug(f"Ignored removal of unknown exercise '{name}'")
            return
        try:
            self.storage.remove_item(key)
        except OSError as e:
            raise StorageUnavailable(f"Could not write local storage: {e}") from e
        log.info(f"Removed exercise '{name}' locally")
