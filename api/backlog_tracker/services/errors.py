from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer errors."""


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class ServiceValidationError(ServiceError):
    pass


class SourceUnavailableError(ServiceError):
    """A library source could not be reached after the resilience policy gave up."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class PartialSyncFailure(ServiceError):
    """One candidate could not be reconciled. Logged and skipped, never raised to clients."""

    def __init__(
        self, external_id: str, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(f"Failed to reconcile candidate {external_id}: {cause}")
        self.external_id = external_id
        self.cause = cause
