"""Error taxonomy shared by services and the HTTP layer.

Each error carries the HTTP status and a stable machine-readable code so the
route layer can render it without knowing which service raised it.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class VCardHubError(Exception):
    status_code = 500
    code = 'internal_error'

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'ok': False, 'error': self.code, 'message': self.message}
        payload.update(self.details)
        return payload


class ValidationError(VCardHubError):
    status_code = 400
    code = 'validation_error'


class NotFoundError(VCardHubError):
    status_code = 404
    code = 'not_found'


class ConflictError(VCardHubError):
    status_code = 409
    code = 'conflict'


class PlanLimitExceeded(VCardHubError):
    """Entitlement gate. Kept distinct from generic 4xx so clients can offer an upgrade."""

    status_code = 403
    code = 'plan_limit_exceeded'

    def __init__(self, message: str, kind: str, current: Optional[int] = None, max: Optional[int] = None, **details: Any):
        super().__init__(
            message,
            kind=kind,
            current=current,
            max=max,
            limitReached=True,
            upgrade_required=True,
            **details,
        )
        self.kind = kind


class PlanLimitUnavailable(VCardHubError):
    status_code = 503
    code = 'plan_limit_unavailable'


class DomainBlocked(VCardHubError):
    status_code = 403
    code = 'domain_blocked'


class DnsVerificationTransient(VCardHubError):
    """Lookup was inconclusive (timeout, SERVFAIL, cancellation). Status is left unchanged."""

    status_code = 503
    code = 'dns_verification_transient'

    def __init__(self, message: str, retry_after: int = 30, **details: Any):
        super().__init__(message, retryable=True, **details)
        self.retry_after = retry_after


class DnsVerificationFailed(VCardHubError):
    """Authoritative negative answer: the expected record is missing or wrong."""

    status_code = 422
    code = 'dns_verification_failed'

    def __init__(self, message: str, **details: Any):
        super().__init__(message, retryable=False, **details)
