from __future__ import annotations


class ResourceKind:
    """Resource kinds gated by subscription plans."""

    VCARD = 'vcard'
    PROJECT = 'project'
    PIXEL = 'pixel'
    CUSTOM_DOMAIN = 'custom_domain'

    ALL = (VCARD, PROJECT, PIXEL, CUSTOM_DOMAIN)

    # URL segments used by the listing/limits endpoints
    SLUGS = {
        'vcard': VCARD,
        'vcards': VCARD,
        'project': PROJECT,
        'projects': PROJECT,
        'pixel': PIXEL,
        'pixels': PIXEL,
        'custom-domain': CUSTOM_DOMAIN,
        'custom-domains': CUSTOM_DOMAIN,
    }

    @classmethod
    def from_slug(cls, slug: str) -> str | None:
        return cls.SLUGS.get((slug or '').strip().lower())


class DomainStatus:
    """Lifecycle state for custom domains.

    Only the domain verifier moves a domain between these states.
    """

    PENDING = 'pending'
    ACTIVE = 'active'
    FAILED = 'failed'
    BLOCKED = 'blocked'

    ALL = (PENDING, ACTIVE, FAILED, BLOCKED)


# BLOCKED has no outgoing transitions; unblocking is an administrative task
# outside this service.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    DomainStatus.PENDING: {DomainStatus.ACTIVE, DomainStatus.FAILED, DomainStatus.BLOCKED},
    DomainStatus.FAILED: {DomainStatus.ACTIVE, DomainStatus.FAILED, DomainStatus.PENDING, DomainStatus.BLOCKED},
    DomainStatus.ACTIVE: {DomainStatus.PENDING, DomainStatus.BLOCKED},
    DomainStatus.BLOCKED: set(),
}


def can_transition(from_state: str, to_state: str) -> bool:
    return to_state in ALLOWED_TRANSITIONS.get(from_state, set())


class SubscriptionStatus:
    ACTIVE = 'active'
    EXPIRED = 'expired'
    CANCELED = 'canceled'
    PENDING = 'pending'

    ALL = (ACTIVE, EXPIRED, CANCELED, PENDING)

