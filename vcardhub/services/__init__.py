"""Service wiring.

Usage:
    from vcardhub.services import init_services, get_services

    # In app factory (vcardhub/__init__.py):
    init_services(app)

    # In tests, swap collaborators:
    init_services(app, resolver=FakeResolver(...), randomness=FixedRandomness())
"""
from __future__ import annotations

import atexit
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from vcardhub.services.dns_challenge import DnsChallengeChecker, DnspythonResolver, DnsResolver
from vcardhub.services.domain_lifecycle import DomainLifecycleCoordinator
from vcardhub.services.domain_router import DomainRouter
from vcardhub.services.domain_verifier import DomainVerifier
from vcardhub.services.entitlements import EntitlementService
from vcardhub.services.plan_limits import PlanLimitProvider, SubscriptionPlanLimitProvider
from vcardhub.services.randomness import Randomness, SystemRandomness
from vcardhub.services.resource_catalog import ResourceCatalog, SqlResourceCatalog
from vcardhub.services.verification_tasks import VerificationRunner
from vcardhub.utils.circuit_breaker import CircuitBreaker


EXTENSION_KEY = 'vcardhub'


@dataclass
class ServiceRegistry:
    catalog: ResourceCatalog
    limits: PlanLimitProvider
    entitlements: EntitlementService
    verifier: DomainVerifier
    domains: DomainLifecycleCoordinator
    router: DomainRouter
    runner: VerificationRunner


def init_services(
    app,
    resolver: Optional[DnsResolver] = None,
    randomness: Optional[Randomness] = None,
    limit_provider: Optional[PlanLimitProvider] = None,
    catalog: Optional[ResourceCatalog] = None,
) -> ServiceRegistry:
    cfg = app.config

    previous = app.extensions.get(EXTENSION_KEY)
    if previous is not None:
        previous.runner.shutdown()

    catalog = catalog or SqlResourceCatalog()
    limits = limit_provider or SubscriptionPlanLimitProvider(
        catalog,
        defaults=cfg['PLAN_LIMIT_DEFAULTS'],
        custom_domain_tiers=cfg['CUSTOM_DOMAIN_PLAN_LIMITS'],
        default_plan_name=cfg['DEFAULT_PLAN_NAME'],
    )
    entitlements = EntitlementService(limits, catalog)

    timeout = cfg['DNS_VERIFICATION_TIMEOUT']
    checker = DnsChallengeChecker(
        resolver or DnspythonResolver(timeout=timeout, nameservers=cfg.get('DNS_NAMESERVERS')),
        txt_prefix=cfg['DNS_TXT_RECORD_PREFIX'],
        methods=cfg['DOMAIN_VERIFICATION_METHODS'],
        breaker=CircuitBreaker(cfg['DNS_CIRCUIT_FAILURE_THRESHOLD'], cfg['DNS_CIRCUIT_RESET_SECONDS']),
    )
    runner = VerificationRunner(max_workers=cfg['DNS_VERIFICATION_WORKERS'], timeout=timeout)
    atexit.register(runner.shutdown)

    verifier = DomainVerifier(checker, runner, randomness or SystemRandomness(), cfg['CNAME_TARGET'])

    registry = ServiceRegistry(
        catalog=catalog,
        limits=limits,
        entitlements=entitlements,
        verifier=verifier,
        domains=DomainLifecycleCoordinator(entitlements, verifier, runner),
        router=DomainRouter(entitlements, cfg['PLATFORM_HOSTS'], cfg['VCARD_PUBLIC_URL_TEMPLATE']),
        runner=runner,
    )
    app.extensions[EXTENSION_KEY] = registry
    return registry


def get_services() -> ServiceRegistry:
    return current_app.extensions[EXTENSION_KEY]
