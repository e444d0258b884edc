"""
Custom domain state machine.

This is the only code that writes `CustomDomain.status`:

    pending --verify ok--> active        pending --record wrong/missing--> failed
    failed  --verify ok--> active        failed  --record wrong/missing--> failed
    active  --rename-----> pending       any non-blocked --admin--> blocked

Inconclusive lookups never change the status. Entitlement gating is not
done here; see DomainLifecycleCoordinator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError

from vcardhub.domain.enums import DomainStatus, can_transition
from vcardhub.domain.errors import (
    ConflictError,
    DnsVerificationFailed,
    DnsVerificationTransient,
    DomainBlocked,
    NotFoundError,
    ValidationError,
)
from vcardhub.domain.hostnames import is_valid_fqdn, is_valid_url, normalize_domain
from vcardhub.extensions import db
from vcardhub.models import CustomDomain, VCard
from vcardhub.services.dns_challenge import ChallengeResult, DnsChallengeChecker
from vcardhub.services.randomness import Randomness
from vcardhub.services.verification_tasks import VerificationRunner


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class VerificationResult:
    status: str
    message: str
    checks: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'status': self.status, 'message': self.message, 'checks': list(self.checks)}


class DomainVerifier:
    def __init__(
        self,
        checker: DnsChallengeChecker,
        runner: VerificationRunner,
        randomness: Randomness,
        cname_target: str,
    ):
        self.checker = checker
        self.runner = runner
        self.randomness = randomness
        self.cname_target = cname_target

    # -- lookups -----------------------------------------------------------

    def get(self, domain_id: int) -> CustomDomain:
        domain = db.session.get(CustomDomain, domain_id)
        if domain is None:
            raise NotFoundError('Domain not found')
        return domain

    def instructions(self, domain: CustomDomain) -> dict:
        return self.checker.instructions(domain.domain, domain.cname_target, domain.verification_token)

    # -- transitions -------------------------------------------------------

    def _transition(self, domain: CustomDomain, to_state: str, reason: str) -> None:
        from_state = domain.status
        if from_state == to_state:
            return
        if not can_transition(from_state, to_state):
            if from_state == DomainStatus.BLOCKED:
                raise DomainBlocked('Domain is blocked')
            raise ValidationError(f'Cannot move domain from {from_state} to {to_state}')

        domain.status = to_state
        logger.info('domain %s (%s): %s -> %s (%s)', domain.id, domain.domain, from_state, to_state, reason)

    # -- operations --------------------------------------------------------

    def _validate_urls(self, landing_url: Optional[str], not_found_url: Optional[str]) -> None:
        if landing_url is not None and not is_valid_url(landing_url):
            raise ValidationError('Invalid landing URL', field='landingUrl')
        if not_found_url is not None and not is_valid_url(not_found_url):
            raise ValidationError('Invalid not-found URL', field='notFoundUrl')

    def _owned_vcard(self, owner_id: int, vcard_id) -> VCard:
        vcard = db.session.get(VCard, vcard_id) if vcard_id is not None else None
        if vcard is None or vcard.user_id != owner_id:
            raise NotFoundError('vCard not found or unauthorized')
        return vcard

    def _ensure_vcard_free(self, vcard_id: int, domain_id: Optional[int] = None) -> None:
        query = CustomDomain.query.filter(CustomDomain.vcard_id == vcard_id)
        if domain_id is not None:
            query = query.filter(CustomDomain.id != domain_id)
        if query.first() is not None:
            raise ConflictError('This vCard is already linked to another domain')

    def _ensure_domain_free(self, name: str) -> None:
        if CustomDomain.query.filter_by(domain=name).first() is not None:
            raise ConflictError('Domain already exists', domain=name)

    def create(
        self,
        owner_id: int,
        domain: str,
        landing_url: str,
        not_found_url: str,
        linked_vcard_id: Optional[int] = None,
    ) -> CustomDomain:
        name = normalize_domain(domain)
        if not name:
            raise ValidationError('Domain is required', field='domain')
        if not is_valid_fqdn(name):
            raise ValidationError('Domain must be a fully qualified host name', field='domain')
        if not landing_url or not not_found_url:
            raise ValidationError('landingUrl and notFoundUrl are required')
        self._validate_urls(landing_url, not_found_url)

        self._ensure_domain_free(name)
        if linked_vcard_id is not None:
            self._owned_vcard(owner_id, linked_vcard_id)
            self._ensure_vcard_free(linked_vcard_id)

        record = CustomDomain(
            user_id=owner_id,
            domain=name,
            status=DomainStatus.PENDING,
            verification_token=self.randomness.token_hex(TOKEN_BYTES),
            cname_target=self.cname_target,
            landing_url=landing_url,
            not_found_url=not_found_url,
            vcard_id=linked_vcard_id,
        )
        db.session.add(record)
        try:
            db.session.commit()
        except IntegrityError as exc:
            # Lost a race on the unique domain (or vCard link) index.
            db.session.rollback()
            raise ConflictError('Domain already exists', domain=name) from exc

        logger.info('domain %s (%s) created for user %s', record.id, record.domain, owner_id)
        return record

    def challenge(self, domain: CustomDomain) -> Callable[[], ChallengeResult]:
        """Bind the DNS challenge for `domain` to plain values so it can run off-thread."""

        name, target, token = domain.domain, domain.cname_target, domain.verification_token
        return lambda: self.checker.check(name, target, token)

    def lookup(self, domain: CustomDomain) -> ChallengeResult:
        """Run the DNS challenge for `domain` on the worker pool (bounded wait)."""

        return self.runner.run(self.challenge(domain))

    def verify(self, domain_id: int) -> VerificationResult:
        domain = self.get(domain_id)
        if domain.status == DomainStatus.BLOCKED:
            raise DomainBlocked('Domain is blocked and cannot be verified')
        if domain.status == DomainStatus.ACTIVE:
            return VerificationResult(DomainStatus.ACTIVE, 'Domain already verified and active')

        return self.apply_lookup(domain, self.lookup(domain))

    def apply_lookup(self, domain: CustomDomain, result: ChallengeResult) -> VerificationResult:
        """Apply a finished lookup to `domain` and commit.

        Raises DnsVerificationTransient (status untouched) or
        DnsVerificationFailed (after committing the `failed` transition).
        """

        if domain.status == DomainStatus.BLOCKED:
            raise DomainBlocked('Domain is blocked and cannot be verified')
        if domain.status == DomainStatus.ACTIVE:
            return VerificationResult(DomainStatus.ACTIVE, 'Domain already verified and active', result.to_list())
        if normalize_domain(result.domain) != domain.domain:
            # Domain was renamed while the lookup ran; its result no longer applies.
            raise DnsVerificationTransient('Domain changed during verification; retry.')

        if result.transient:
            raise DnsVerificationTransient(
                'DNS answer was inconclusive; the domain status was not changed. Retry shortly.',
                status=domain.status,
                checks=result.to_list(),
            )

        domain.last_checked_at = datetime.utcnow()
        if result.verified:
            self._transition(domain, DomainStatus.ACTIVE, 'dns challenge passed')
            domain.verified_at = domain.last_checked_at
            db.session.commit()
            return VerificationResult(DomainStatus.ACTIVE, 'Domain verified and activated', result.to_list())

        self._transition(domain, DomainStatus.FAILED, 'dns challenge record missing or wrong')
        db.session.commit()
        raise DnsVerificationFailed(
            'DNS not configured properly',
            status=domain.status,
            checks=result.to_list(),
            instructions=self.instructions(domain),
        )

    def update(
        self,
        domain_id: int,
        domain: Optional[str] = None,
        landing_url: Optional[str] = None,
        not_found_url: Optional[str] = None,
        vcard_id: Optional[int] = None,
    ) -> CustomDomain:
        record = self.get(domain_id)
        if record.status == DomainStatus.BLOCKED:
            raise DomainBlocked('Domain is blocked and cannot be edited')

        self._validate_urls(landing_url, not_found_url)

        if domain is not None:
            name = normalize_domain(domain)
            if not is_valid_fqdn(name):
                raise ValidationError('Domain must be a fully qualified host name', field='domain')
            if name != record.domain:
                self._ensure_domain_free(name)
                record.domain = name
                record.verified_at = None
                # A new host name must prove control again; the token stays the same.
                self._transition(record, DomainStatus.PENDING, 'domain renamed')

        if landing_url is not None:
            record.landing_url = landing_url
        if not_found_url is not None:
            record.not_found_url = not_found_url
        if vcard_id is not None and vcard_id != record.vcard_id:
            self._owned_vcard(record.user_id, vcard_id)
            self._ensure_vcard_free(vcard_id, record.id)
            record.vcard_id = vcard_id

        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError('Domain or vCard already in use') from exc
        return record

    def link_vcard(self, domain_id: int, vcard_id: int) -> CustomDomain:
        record = self.get(domain_id)
        if record.status != DomainStatus.ACTIVE:
            raise ValidationError('Domain must be active to link to vCard')
        self._owned_vcard(record.user_id, vcard_id)
        self._ensure_vcard_free(vcard_id, record.id)
        record.vcard_id = vcard_id
        db.session.commit()
        return record

    def unlink_vcard(self, domain_id: int) -> CustomDomain:
        record = self.get(domain_id)
        if record.vcard_id is not None:
            record.vcard_id = None
            db.session.commit()
        return record

    def block(self, domain_id: int, reason: str = 'blocked by administrator') -> CustomDomain:
        record = self.get(domain_id)
        if record.status != DomainStatus.BLOCKED:
            self._transition(record, DomainStatus.BLOCKED, reason)
            db.session.commit()
        return record

    def delete(self, domain_id: int) -> None:
        record = self.get(domain_id)
        db.session.delete(record)
        db.session.commit()
        logger.info('domain %s (%s) deleted', domain_id, record.domain)
