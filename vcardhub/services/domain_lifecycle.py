"""
Custom domain lifecycle: entitlement gate in front of the domain verifier.

A domain the owner's plan no longer covers cannot be verified, edited or
linked, even if its DNS is correct. The gate runs before any DNS I/O.
Deleting and unlinking stay available so owners can always shed excess
domains.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from vcardhub.domain.entitlement import ResourceInstance
from vcardhub.domain.enums import DomainStatus, ResourceKind
from vcardhub.domain.errors import DnsVerificationFailed, NotFoundError, PlanLimitExceeded
from vcardhub.extensions import db
from vcardhub.models import CustomDomain
from vcardhub.services.domain_verifier import DomainVerifier, VerificationResult
from vcardhub.services.entitlements import EntitlementService
from vcardhub.services.verification_tasks import VerificationRunner, VerificationTask


logger = logging.getLogger(__name__)

KIND = ResourceKind.CUSTOM_DOMAIN


class DomainLifecycleCoordinator:
    def __init__(self, entitlements: EntitlementService, verifier: DomainVerifier, runner: VerificationRunner):
        self.entitlements = entitlements
        self.verifier = verifier
        self.runner = runner

    def _owned(self, owner_id: int, domain_id: int) -> CustomDomain:
        domain = db.session.get(CustomDomain, domain_id)
        if domain is None or domain.user_id != owner_id:
            raise NotFoundError('Domain not found')
        return domain

    def _require_entitled(self, owner_id: int, domain: CustomDomain) -> None:
        snapshot = self.entitlements.snapshot(owner_id, KIND)
        decision = snapshot.decision_for(domain.id)
        if decision is None:
            raise NotFoundError('Domain not found')
        if decision.is_disabled:
            logger.info('domain %s gated: outside plan limit %s for user %s', domain.id, snapshot.limit.max, owner_id)
            raise PlanLimitExceeded(
                'This domain is disabled on your current plan. Upgrade to use it.',
                kind=KIND,
                current=snapshot.limit.current,
                max=snapshot.limit.max,
                domainId=domain.id,
            )

    # -- reads -------------------------------------------------------------

    def list_domains(self, owner_id: int) -> List[Tuple[ResourceInstance, bool]]:
        return self.entitlements.list_resources(owner_id, KIND)

    def get_domain(self, owner_id: int, domain_id: int) -> Tuple[CustomDomain, bool]:
        domain = self._owned(owner_id, domain_id)
        return domain, self.entitlements.is_disabled(owner_id, KIND, domain.id)

    # -- writes ------------------------------------------------------------

    def create(
        self,
        owner_id: int,
        domain: str,
        landing_url: str,
        not_found_url: str,
        linked_vcard_id: Optional[int] = None,
    ) -> CustomDomain:
        return self.entitlements.guarded_create(
            owner_id,
            KIND,
            lambda: self.verifier.create(owner_id, domain, landing_url, not_found_url, linked_vcard_id),
        )

    def verify(self, owner_id: int, domain_id: int) -> VerificationResult:
        domain = self._owned(owner_id, domain_id)
        self._require_entitled(owner_id, domain)
        return self.verifier.verify(domain.id)

    def edit(self, owner_id: int, domain_id: int, **changes) -> CustomDomain:
        domain = self._owned(owner_id, domain_id)
        self._require_entitled(owner_id, domain)
        return self.verifier.update(domain.id, **changes)

    def link_vcard(self, owner_id: int, domain_id: int, vcard_id: int) -> CustomDomain:
        domain = self._owned(owner_id, domain_id)
        self._require_entitled(owner_id, domain)
        return self.verifier.link_vcard(domain.id, vcard_id)

    def unlink_vcard(self, owner_id: int, domain_id: int) -> CustomDomain:
        domain = self._owned(owner_id, domain_id)
        return self.verifier.unlink_vcard(domain.id)

    def delete(self, owner_id: int, domain_id: int) -> None:
        domain = self._owned(owner_id, domain_id)
        self.verifier.delete(domain.id)

    # -- asynchronous verification ----------------------------------------

    def start_verification(self, owner_id: int, domain_id: int) -> Tuple[Optional[VerificationTask], Optional[VerificationResult]]:
        """Gate, then queue the DNS lookup. Active domains short-circuit with a result."""

        domain = self._owned(owner_id, domain_id)
        self._require_entitled(owner_id, domain)
        if domain.status in (DomainStatus.ACTIVE, DomainStatus.BLOCKED):
            # verify() handles both without DNS I/O (idempotent success / DomainBlocked).
            return None, self.verifier.verify(domain.id)

        task = self.runner.submit(domain.id, owner_id, self.verifier.challenge(domain))
        return task, None

    def poll_verification(self, owner_id: int, task_id: str) -> Tuple[str, Optional[dict]]:
        """Return ('running', None) or ('done', outcome) for a queued lookup.

        The outcome is applied once, in the first poll that sees the lookup
        finished; later polls replay the stored outcome, or raise the stored
        DnsVerificationFailed again.
        """

        task = self.runner.get(task_id)
        if task is None or task.owner_id != owner_id:
            raise NotFoundError('Verification task not found')
        if task.error is not None:
            raise task.error
        if task.outcome is not None:
            return 'done', task.outcome
        if not task.done:
            return 'running', None

        domain = self._owned(owner_id, task.domain_id)
        self._require_entitled(owner_id, domain)
        result = self.runner.result(task.future, timeout=0)
        try:
            outcome = self.verifier.apply_lookup(domain, result).to_dict()
        except DnsVerificationFailed as exc:
            task.error = exc
            raise
        task.outcome = outcome
        return 'done', outcome
