from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from vcardhub.domain.enums import DomainStatus, ResourceKind
from vcardhub.domain.hostnames import normalize_domain
from vcardhub.models import CustomDomain
from vcardhub.services.entitlements import EntitlementService


@dataclass(frozen=True)
class RouteDecision:
    status_code: int
    location: Optional[str] = None
    domain_id: Optional[int] = None


class DomainRouter:
    """Map a request Host onto the redirect its custom domain is configured for.

    Only active domains the owner's plan still covers are served.
    """

    def __init__(self, entitlements: EntitlementService, platform_hosts: Iterable[str], vcard_url_template: str):
        self.entitlements = entitlements
        self.platform_hosts = {normalize_domain(h) for h in platform_hosts if h}
        self.vcard_url_template = vcard_url_template

    def handles(self, host: Optional[str]) -> bool:
        name = normalize_domain((host or '').split(':', 1)[0])
        return bool(name) and name not in self.platform_hosts

    def resolve(self, host: str, path: str) -> RouteDecision:
        name = normalize_domain((host or '').split(':', 1)[0])
        domain = CustomDomain.query.filter_by(domain=name, status=DomainStatus.ACTIVE).first()
        if domain is None:
            return RouteDecision(404)
        if self.entitlements.is_disabled(domain.user_id, ResourceKind.CUSTOM_DOMAIN, domain.id):
            return RouteDecision(404, domain_id=domain.id)

        if (path or '/') == '/' and domain.landing_url:
            return RouteDecision(301, domain.landing_url, domain.id)
        if domain.vcard is not None:
            return RouteDecision(301, self.vcard_url_template.format(url=domain.vcard.url), domain.id)
        if domain.not_found_url:
            return RouteDecision(302, domain.not_found_url, domain.id)
        return RouteDecision(404, domain_id=domain.id)
