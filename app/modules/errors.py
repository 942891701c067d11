from __future__ import annotations


class StoryCoreError(RuntimeError):
    retryable_default = True

    def __init__(self, *, code: str, message: str, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.code = str(code)
        self.message = str(message)
        self.retryable = self.retryable_default if retryable is None else bool(retryable)

    def as_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class MappingError(StoryCoreError):
    """Raised when a story graph cannot be paginated.

    Retrying without new input repeats the same failure, so these are never
    retryable.
    """

    retryable_default = False


class PersistenceFailure(StoryCoreError):
    """Raised by the persistence collaborator for any failed call."""


class ValidationFailure(StoryCoreError):
    """Input rejected before any collaborator call was issued."""

    retryable_default = False
