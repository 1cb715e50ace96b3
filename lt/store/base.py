from abc import ABC, abstractmethod
from lt.core.models import Exercise, OwnerContext


class ExerciseStore(ABC):
    """Durable exercises and their session history.

    Implementations are interchangeable; the table controller only sees this interface. Every method may raise a
    ``StorageError`` subclass, except that local parse failures are recovered inside the store.
    """

    @abstractmethod
    def list_all(self, owner: OwnerContext) -> list[Exercise]:
        """Every exercise for ``owner``, ordered by name, each with its full session history."""

    @abstractmethod
    def get(self, name: str, owner: OwnerContext) -> Exercise | None:
        """The current stored version of one exercise, or None."""

    @abstractmethod
    def upsert(self, exercise: Exercise, owner: OwnerContext) -> Exercise:
        """Create or fully replace ``exercise`` by name. Idempotent. Returns the stored version."""

    @abstractmethod
    def remove(self, name: str, owner: OwnerContext) -> None:
        """Delete the exercise and its sessions. Unknown names are a no-op."""
