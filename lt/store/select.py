import os
from lt.common.errors import ConfigurationError
from lt.common.logger import log
from lt.core.config import LocalStorage
from lt.core.models import LOCAL_OWNER, OwnerContext
from lt.store.local import LocalExerciseStore
from lt.store.remote import RemoteExerciseStore, RemoteStoreConfig

BACKENDS = ("local", "remote")


# Picks the exercise store from LOADTIMER_BACKEND and returns (store, owner). The remote backend needs SUPABASE_URL,
# SUPABASE_ANON_KEY and LOADTIMER_USER_ID; the first missing one is raised as a ConfigurationError before any request.
def open_store(storage: LocalStorage, environ=None):
    environ = os.environ if environ is None else environ
    backend = (environ.get("LOADTIMER_BACKEND") or "local").strip().lower()
    if backend not in BACKENDS:
        raise ConfigurationError("LOADTIMER_BACKEND", f"Unknown LOADTIMER_BACKEND '{backend}', expected one of {', '.join(BACKENDS)}")

    if backend == "local":
        log.info(f"Using local exercise store at '{storage.path}'")
        return LocalExerciseStore(storage), LOCAL_OWNER

    config = RemoteStoreConfig.from_env(environ)
    problems = config.validate()
    user_id = environ.get("LOADTIMER_USER_ID") or ""
    if not user_id:
        problems.append(ConfigurationError("LOADTIMER_USER_ID"))
    if problems:
        for problem in problems:
            log.error(f"Remote store misconfigured: {problem}")
        raise problems[0]

    owner = OwnerContext(user_id=user_id, access_token=environ.get("LOADTIMER_ACCESS_TOKEN") or None)
    log.info(f"Using remote exercise store at '{config.url}' for '{owner.user_id}'")
    return RemoteExerciseStore(config), owner
