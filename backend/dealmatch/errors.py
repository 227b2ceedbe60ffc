# backend/dealmatch/errors.py
from __future__ import annotations


class MatchingError(Exception):
    """Base for failures the API renders as `{success: false, error}`."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MatchingError):
    status_code = 400


class NotFoundError(ValidationError):
    status_code = 404


class CrossTenantError(ValidationError):
    """An entity exists but belongs to a tenant other than the caller's."""

    status_code = 403


class ComputationError(MatchingError):
    """
    A single candidate could not be scored (malformed feature data, missing or
    non-numeric field). Never surfaced to the caller: the candidate is dropped.
    """

    def __init__(self, message: str, *, property_id: int | None = None, dimension: str | None = None) -> None:
        super().__init__(message)
        self.property_id = property_id
        self.dimension = dimension
