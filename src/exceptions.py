"""Custom exception hierarchy for the episode console."""


class ConsoleError(Exception):
    """Base exception for all console errors."""


class StoreError(ConsoleError):
    """Raised when a call to the episode store fails."""


class StoreQueryError(StoreError):
    """Raised when reading from the episode table fails."""


class StoreWriteError(StoreError):
    """Raised when updating or deleting an episode row fails."""


class RecordNotFoundError(StoreError):
    """Raised when an episode id is not present in the current result set."""


class WebhookError(ConsoleError):
    """Raised when the script-generation webhook call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionValidationError(ConsoleError):
    """Raised when a submission is rejected before any network call."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors


class ApprovalNotAllowedError(ConsoleError):
    """Raised when scripts cannot be approved in their current state."""


class EditConflictError(ConsoleError):
    """Raised when an edit action does not match the row in edit mode."""
