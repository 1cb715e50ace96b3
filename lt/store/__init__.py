"""Exercise stores: a local JSON key-value file or a remote PostgREST database."""
from .base import ExerciseStore
from .local import LocalExerciseStore
from .remote import RemoteExerciseStore, RemoteStoreConfig

__all__ = ["ExerciseStore", "LocalExerciseStore", "RemoteExerciseStore", "RemoteStoreConfig"]
