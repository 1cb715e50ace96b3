"""Exercise store backed by a hosted Postgres through its PostgREST API (Supabase)."""

import os
from dataclasses import dataclass

import httpx

from lt.common.errors import ConfigurationError, NetworkUnavailable, StorageError, error_for_status
from lt.common.logger import log
from lt.core.models import Exercise, Session, merge_sessions
from lt.store.base import ExerciseStore
from lt.util import now_iso

REQUEST_TIMEOUT = 10.0

_EXERCISE_SELECT = "id,name,last_updated,sessions(id,weight,time_under_load,timestamp)"


@dataclass(frozen=True)
class RemoteStoreConfig:
    url: str
    anon_key: str

    @staticmethod
    def from_env(environ=None):
        environ = os.environ if environ is None else environ
        return RemoteStoreConfig(
            url=(environ.get("SUPABASE_URL") or "").rstrip("/"),
            anon_key=environ.get("SUPABASE_ANON_KEY") or "",
        )

    # Checked once at startup, before any request goes out.
    def validate(self):
        problems = []
        if not self.url:
            problems.append(ConfigurationError("SUPABASE_URL"))
        elif not self.url.startswith(("http://", "https://")):
            problems.append(ConfigurationError("SUPABASE_URL", f"SUPABASE_URL is not an http(s) URL: {self.url}"))
        if not self.anon_key:
            problems.append(ConfigurationError("SUPABASE_ANON_KEY"))
        return problems


class RemoteExerciseStore(ExerciseStore):

    def __init__(self, config: RemoteStoreConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        self._client = httpx.Client(
            base_url=f"{config.url}/rest/v1",
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def _headers(self, owner, prefer=None):
        headers = {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {owner.access_token or self.config.anon_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    # Single choke point for HTTP, turning transport failures and error statuses into the storage taxonomy.
    def _request(self, method, path, owner, params=None, json=None, prefer=None):
        try:
            response = self._client.request(
                method, path, params=params, json=json, headers=self._headers(owner, prefer),
            )
        except httpx.TransportError as e:
            log.warning(f"{method} {path} failed: {e!r}")
            raise NetworkUnavailable(f"Could not reach the exercise database: {e}") from e

        if response.status_code >= 400:
            log.warning(f"{method} {path} returned {response.status_code}: {response.text}")
            raise error_for_status(response.status_code, f"Exercise database request failed: {response.text}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StorageError(f"Exercise database returned a non-JSON body for {method} {path}") from e

    # Session rows the server sends back malformed (null timestamp, not an object) are skipped with a warning rather
    # than failing the whole exercise.
    @staticmethod
    def _parse_sessions(row):
        sessions = []
        for s in row.get("sessions") or []:
            try:
                if not isinstance(s, dict):
                    raise TypeError(f"Session row must be an object, got {type(s).__name__}")
                sessions.append(Session.from_dict({
                    "id": s.get("id"),
                    "weight": s.get("weight"),
                    "timeUnderLoad": s.get("time_under_load"),
                    "timestamp": s.get("timestamp"),
                }))
            except (TypeError, ValueError) as e:
                log.warning(f"Skipping malformed session row for exercise '{row.get('name')}': {e}")
        return sessions

    # Returns None for a row with no usable name.
    @staticmethod
    def _parse_exercise(row, owner):
        if not isinstance(row, dict) or not isinstance(row.get("name"), str) or not row["name"].strip():
            log.warning(f"Skipping malformed exercise row: {row!r}")
            return None
        sessions = RemoteExerciseStore._parse_sessions(row)
        return Exercise(
            name=row["name"],
            sessions=merge_sessions(sessions),
            last_updated=row.get("last_updated") or now_iso(),
            id=None if row.get("id") is None else str(row["id"]),
            owner_id=owner.user_id,
        )

    def list_all(self, owner):
        rows = self._request("GET", "/exercises", owner, params={
            "select": _EXERCISE_SELECT,
            "user_id": f"eq.{owner.user_id}",
            "order": "name.asc",
        }) or []
        exercises = [e for e in (self._parse_exercise(row, owner) for row in rows) if e is not None]
        log.debug(f"Listed {len(exercises)} remote exercises for '{owner.user_id}'")
        return exercises

    def get(self, name, owner):
        rows = self._request("GET", "/exercises", owner, params={
            "select": _EXERCISE_SELECT,
            "user_id": f"eq.{owner.user_id}",
            "name": f"eq.{name}",
        }) or []
        if not rows:
            return None
        return self._parse_exercise(rows[0], owner)

    def upsert(self, exercise, owner):
        existing = self.get(exercise.name, owner)
        if existing is None:
            rows = self._request("POST", "/exercises", owner, prefer="return=representation", json={
                "name": exercise.name,
                "user_id": owner.user_id,
                "last_updated": exercise.last_updated,
            })
            exercise_id = str(rows[0]["id"])
            stored_sessions = ()
            log.info(f"Created remote exercise '{exercise.name}' ({exercise_id})")
        else:
            exercise_id = existing.id
            stored_sessions = existing.sessions
            self._request("PATCH", "/exercises", owner, params={"id": f"eq.{exercise_id}"}, json={
                "last_updated": exercise.last_updated,
            })

        # Replace the session list by natural key, so replaying the same payload inserts nothing new
        wanted = {s.key: s for s in exercise.sessions}
        have = {s.key: s for s in stored_sessions}
        to_insert = [s for k, s in wanted.items() if k not in have]
        to_delete = [s.id for k, s in have.items() if k not in wanted and s.id is not None]

        if to_insert:
            self._request("POST", "/sessions", owner, json=[
                {
                    "exercise_id": exercise_id,
                    "weight": s.weight,
                    "time_under_load": s.time_under_load,
                    "timestamp": s.timestamp,
                }
                for s in to_insert
            ])
        if to_delete:
            self._request("DELETE", "/sessions", owner, params={"id": f"in.({','.join(to_delete)})"})
        log.info(f"Synced exercise '{exercise.name}': {len(to_insert)} sessions added, {len(to_delete)} removed")

        stored = self.get(exercise.name, owner)
        if stored is None:
            raise StorageError(f"Exercise '{exercise.name}' vanished right after being written")
        return stored

    def remove(self, name, owner):
        existing = self.get(name, owner)
        if existing is None:
            log.debug(f"Ignored removal of unknown remote exercise '{name}'")
            return
        # Sessions first so nothing is orphaned even without ON DELETE CASCADE
        self._request("DELETE", "/sessions", owner, params={"exercise_id": f"eq.{existing.id}"})
        self._request("DELETE", "/exercises", owner, params={"id": f"eq.{existing.id}"})
        log.info(f"Removed remote exercise '{name}' ({existing.id})")
