"""
DNS challenge checks for custom domains.

An owner proves control of a domain by publishing either
- a CNAME record for the domain pointing at the platform host, or
- a TXT record at `<prefix>.<domain>` holding the domain's verification token.

Every lookup classifies into MATCH, MISMATCH, ABSENT or TRANSIENT. Only
MATCH activates a domain; MISMATCH/ABSENT (including NXDOMAIN) are
authoritative negatives that mark it failed; TRANSIENT (timeouts, SERVFAIL,
no reachable nameserver) leaves the status alone and asks for a retry.
Only TRANSIENT lookups count against the circuit breaker.

This module is Flask-free: checks run on worker threads without an app context.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import dns.exception
import dns.resolver

from vcardhub.domain.hostnames import challenge_name, normalize_domain
from vcardhub.utils.circuit_breaker import CircuitBreaker


logger = logging.getLogger(__name__)

METHOD_CNAME = 'cname'
METHOD_TXT = 'txt'
SUPPORTED_METHODS = (METHOD_CNAME, METHOD_TXT)


class LookupOutcome:
    MATCH = 'match'
    MISMATCH = 'mismatch'
    ABSENT = 'absent'
    TRANSIENT = 'transient'


class NameNotFound(Exception):
    """NXDOMAIN: the queried name does not exist."""


class NoRecords(Exception):
    """The name exists but carries no record of the queried type."""


class LookupUnavailable(Exception):
    """Resolver could not produce an answer (timeout, SERVFAIL, network)."""


class DnsResolver:
    """Minimal resolver interface used by the checker."""

    def cname(self, name: str) -> List[str]:
        raise NotImplementedError

    def txt(self, name: str) -> List[str]:
        raise NotImplementedError


class DnspythonResolver(DnsResolver):
    """dnspython-backed resolver bounded by `timeout` seconds per query."""

    def __init__(self, timeout: float = 5.0, nameservers: Optional[Sequence[str]] = None):
        self._timeout = float(timeout)
        self._nameservers = list(nameservers or [])

    def _resolver(self) -> dns.resolver.Resolver:
        # One Resolver per query: instances are not shared across worker threads.
        resolver = dns.resolver.Resolver(configure=not self._nameservers)
        if self._nameservers:
            resolver.nameservers = self._nameservers
        resolver.timeout = self._timeout
        resolver.lifetime = self._timeout
        return resolver

    def _query(self, name: str, rdtype: str):
        try:
            return self._resolver().resolve(name, rdtype)
        except dns.resolver.NXDOMAIN as exc:
            raise NameNotFound(name) from exc
        except dns.resolver.NoAnswer as exc:
            raise NoRecords(name) from exc
        except dns.exception.Timeout as exc:
            raise LookupUnavailable(f'{rdtype} lookup for {name} timed out') from exc
        except dns.resolver.NoNameservers as exc:
            raise LookupUnavailable(f'No nameserver answered {rdtype} for {name}') from exc
        except (dns.exception.DNSException, OSError) as exc:
            raise LookupUnavailable(f'{rdtype} lookup for {name} failed: {exc}') from exc

    def cname(self, name: str) -> List[str]:
        return [rdata.target.to_text() for rdata in self._query(name, 'CNAME')]

    def txt(self, name: str) -> List[str]:
        values = []
        for rdata in self._query(name, 'TXT'):
            # Long TXT values arrive split into 255-byte character-strings.
            values.append(b''.join(rdata.strings).decode('utf-8', errors='replace'))
        return values


@dataclass(frozen=True)
class RecordCheck:
    method: str
    name: str
    expected: str
    outcome: str
    found: Tuple[str, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> dict:
        # `expected` may be the token; the owner already has it from creation.
        return {
            'method': self.method,
            'name': self.name,
            'outcome': self.outcome,
            'found': list(self.found),
            'error': self.error,
        }


@dataclass(frozen=True)
class ChallengeResult:
    domain: str
    checks: Tuple[RecordCheck, ...] = field(default_factory=tuple)

    @property
    def verified(self) -> bool:
        return any(c.outcome == LookupOutcome.MATCH for c in self.checks)

    @property
    def transient(self) -> bool:
        return not self.verified and any(c.outcome == LookupOutcome.TRANSIENT for c in self.checks)

    @property
    def lookup_failed(self) -> bool:
        """True when a resolver could not answer at all (timeout, SERVFAIL, network)."""
        return any(c.outcome == LookupOutcome.TRANSIENT for c in self.checks)

    @property
    def definitive_failure(self) -> bool:
        return not self.verified and not self.transient

    def to_list(self) -> List[dict]:
        return [c.to_dict() for c in self.checks]


class CircuitOpen(Exception):
    def __init__(self, retry_after: int):
        super().__init__('DNS verification temporarily suspended')
        self.retry_after = retry_after


class DnsChallengeChecker:
    def __init__(
        self,
        resolver: DnsResolver,
        txt_prefix: str = '_vcard-verify',
        methods: Iterable[str] = SUPPORTED_METHODS,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.resolver = resolver
        self.txt_prefix = txt_prefix
        self.methods = tuple(m for m in methods if m in SUPPORTED_METHODS) or SUPPORTED_METHODS
        self.breaker = breaker or CircuitBreaker()

    def instructions(self, domain: str, cname_target: str, token: str) -> dict:
        out = {}
        if METHOD_CNAME in self.methods:
            out['cname'] = {'type': 'CNAME', 'name': '@', 'host': normalize_domain(domain), 'value': cname_target}
        if METHOD_TXT in self.methods:
            out['txt'] = {'type': 'TXT', 'name': challenge_name(domain, self.txt_prefix), 'value': token}
        return out

    def check(self, domain: str, cname_target: str, token: str) -> ChallengeResult:
        """Run the configured lookups; raises CircuitOpen while DNS is failing fast."""

        if not self.breaker.allow():
            raise CircuitOpen(self.breaker.retry_after())

        checks = []
        try:
            if METHOD_CNAME in self.methods:
                checks.append(self._check_cname(domain, cname_target))
            # No need to query TXT once the CNAME already proves control.
            if METHOD_TXT in self.methods and not (checks and checks[-1].outcome == LookupOutcome.MATCH):
                checks.append(self._check_txt(domain, token))
        except Exception:
            self.breaker.record_failure()
            raise

        return self._finish(ChallengeResult(normalize_domain(domain), tuple(checks)))

    def _finish(self, result: ChallengeResult) -> ChallengeResult:
        # Answers about the owner's own zone (NXDOMAIN, no record, wrong value)
        # say nothing about resolver health and must not trip the shared breaker.
        if result.lookup_failed:
            self.breaker.record_failure()
        else:
            self.breaker.record_success()
        if result.transient:
            logger.warning('DNS verification for %s inconclusive: %s', result.domain, result.to_list())
        return result

    def _check_cname(self, domain: str, target: str) -> RecordCheck:
        name = normalize_domain(domain)
        try:
            found = self.resolver.cname(name)
        except (NameNotFound, NoRecords):
            return RecordCheck(METHOD_CNAME, name, target, LookupOutcome.ABSENT)
        except LookupUnavailable as exc:
            return RecordCheck(METHOD_CNAME, name, target, LookupOutcome.TRANSIENT, error=str(exc))

        normalized = tuple(normalize_domain(value) for value in found)
        if not normalized:
            return RecordCheck(METHOD_CNAME, name, target, LookupOutcome.ABSENT)
        outcome = LookupOutcome.MATCH if normalize_domain(target) in normalized else LookupOutcome.MISMATCH
        return RecordCheck(METHOD_CNAME, name, target, outcome, found=normalized)

    def _check_txt(self, domain: str, token: str) -> RecordCheck:
        name = challenge_name(domain, self.txt_prefix)
        try:
            found = self.resolver.txt(name)
        except (NameNotFound, NoRecords):
            return RecordCheck(METHOD_TXT, name, token, LookupOutcome.ABSENT)
        except LookupUnavailable as exc:
            return RecordCheck(METHOD_TXT, name, token, LookupOutcome.TRANSIENT, error=str(exc))

        values = tuple(value.strip() for value in found)
        if not values:
            return RecordCheck(METHOD_TXT, name, token, LookupOutcome.ABSENT)
        outcome = LookupOutcome.MATCH if token in values else LookupOutcome.MISMATCH
        return RecordCheck(METHOD_TXT, name, token, outcome, found=values)
