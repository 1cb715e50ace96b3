"""LoadTimer exceptions.

Every error carries ``retryable`` and a short ``user_message`` so the table
controller can decide retry-vs-drop and show a warning without inspecting the
error type itself.
"""

from dataclasses import dataclass


class LoadTimerError(Exception):
    """Base exception for LoadTimer errors."""
    retryable = False
    user_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message or self.user_message)
        self.status_code = status_code


class ConfigurationError(LoadTimerError):
    """A required setting (API key, URL, identity) is missing or invalid."""
    user_message = "The application is not configured for this feature."

    def __init__(self, setting: str, message: str = ""):
        super().__init__(message or f"Missing configuration value: {setting}")
        self.setting = setting


class AudioPlaybackFailed(LoadTimerError):
    """Raised internally by cue backends; always swallowed by AudioCue."""
    user_message = "Sound could not be played."


# --- Storage ---

class StorageError(LoadTimerError):
    """Base for exercise store failures."""
    user_message = "Database error. Please try again or contact support."


class StorageUnavailable(StorageError):
    """The backend could not be reached or is temporarily failing."""
    retryable = True
    user_message = "Service temporarily unavailable. Please try again later."


class NetworkUnavailable(StorageUnavailable):
    user_message = "Connection lost. Please check your internet connection and try again."


class ServerError(StorageUnavailable):
    user_message = "Server error. Please try again in a few moments."


class RateLimited(StorageUnavailable):
    user_message = "Too many requests. Please wait a moment before trying again."


class ClientError(StorageError):
    """4xx from the backend: bad input, not found, forbidden. Not retried."""
    user_message = "Invalid request. Please check your input and try again."


class AuthExpired(ClientError):
    user_message = "Session expired. Please sign in again."


class StorageCorrupt(StorageError):
    """Local persisted data could not be parsed. Recovered locally, never surfaced as a crash."""
    user_message = "Saved data was unreadable and has been reset."


# --- Validation ---

class InvalidExerciseName(LoadTimerError, ValueError):
    user_message = "Exercise name cannot be empty."


class DuplicateExercise(LoadTimerError, ValueError):
    user_message = "This exercise already exists. Please try a different name."


class InvalidSetting(LoadTimerError, ValueError):
    user_message = "That setting value is not allowed."


# Maps an HTTP status (plus the backend's message) onto the taxonomy above.
def error_for_status(status_code: int, message: str = "") -> StorageError:
    if status_code == 401:
        return AuthExpired(message, status_code=status_code)
    if status_code == 429:
        return RateLimited(message, status_code=status_code)
    if status_code >= 500:
        return ServerError(message, status_code=status_code)
    if status_code >= 400:
        return ClientError(message, status_code=status_code)
    return StorageError(message, status_code=status_code)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for remote writes."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    rate_limited_base_delay: float = 5.0

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return attempt <= self.max_retries and getattr(error, "retryable", False)

    # Delay before retry number `attempt` (1-based).
    def delay(self, attempt: int, error: Exception | None = None) -> float:
        base = self.rate_limited_base_delay if isinstance(error, RateLimited) else self.base_delay
        return min(base * self.multiplier ** (attempt - 1), self.max_delay)
