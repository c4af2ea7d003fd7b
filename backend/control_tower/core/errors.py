"""Module: errors.

Domain exceptions raised by the workflow services. The API layer maps each
class to an HTTP status via ``status_code``; best-effort failures (audit
writes, template lookups) never surface as one of these.
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    status_code = 404


class InvalidStateTransitionError(DomainError):
    status_code = 409


class ValidationFailure(DomainError):
    status_code = 422


class ConcurrentUpdateError(DomainError):
    status_code = 409


# The approval is committed but its deployment side effect is missing.
class ApprovalSideEffectError(DomainError):
    status_code = 500

    def __init__(self, message: str, approval_id: str, deployment_id: str) -> None:
        super().__init__(message)
        self.approval_id = approval_id
        self.deployment_id = deployment_id
