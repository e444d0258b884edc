"""Entitlement gate in front of the domain verifier."""

import threading

import pytest

from conftest import FixedRandomness, make_domain, make_plan, make_user, make_vcard, reload, subscribe
from vcardhub.domain.enums import DomainStatus, ResourceKind
from vcardhub.domain.errors import DnsVerificationFailed, NotFoundError, PlanLimitExceeded
from vcardhub.services import init_services
from vcardhub.services.plan_limits import StaticPlanLimitProvider
from vcardhub.services.resource_catalog import SqlResourceCatalog


@pytest.fixture
def free_plan(app):
    return make_plan('Free', ['1 vCard', '1 custom domain'], is_default=True)


@pytest.fixture
def owner(free_plan):
    return make_user()


@pytest.fixture
def over_limit(owner):
    """Owner on the Free plan (one domain) holding two domains."""
    first = make_domain(owner, 'a.example.com', status=DomainStatus.ACTIVE, minutes=0)
    second = make_domain(owner, 'b.example.com', status=DomainStatus.PENDING, minutes=5)
    return first, second


def test_listing_marks_newer_domain_disabled(services, owner, over_limit):
    listed = services.domains.list_domains(owner.id)
    assert [(r.payload['domain'], disabled) for r, disabled in listed] == [
        ('a.example.com', False),
        ('b.example.com', True),
    ]


def test_disabled_domain_not_verified_even_with_correct_dns(services, owner, over_limit, resolver):
    _, second = over_limit
    resolver.point_cname('b.example.com')

    with pytest.raises(PlanLimitExceeded) as excinfo:
        services.domains.verify(owner.id, second.id)

    assert excinfo.value.to_dict()['upgrade_required'] is True
    assert reload(second).status == DomainStatus.PENDING
    assert resolver.calls == []


def test_disabled_domain_cannot_be_edited_or_linked(services, owner, over_limit):
    _, second = over_limit
    vcard = make_vcard(owner, 'Card')
    with pytest.raises(PlanLimitExceeded):
        services.domains.edit(owner.id, second.id, landing_url='https://example.org/x')
    with pytest.raises(PlanLimitExceeded):
        services.domains.link_vcard(owner.id, second.id, vcard.id)


def test_disabled_domain_can_still_be_deleted(services, owner, over_limit):
    _, second = over_limit
    services.domains.delete(owner.id, second.id)
    assert [r.id for r, _ in services.domains.list_domains(owner.id)] == [over_limit[0].id]


def test_upgrade_reenables_domain(services, owner, over_limit, resolver):
    _, second = over_limit
    subscribe(owner, make_plan('Pro', ['unlimited vCards']))
    resolver.point_cname('b.example.com')

    result = services.domains.verify(owner.id, second.id)
    assert result.status == DomainStatus.ACTIVE


def test_other_owner_sees_not_found(services, over_limit):
    stranger = make_user('stranger@example.com')
    with pytest.raises(NotFoundError):
        services.domains.verify(stranger.id, over_limit[0].id)
    with pytest.raises(NotFoundError):
        services.domains.delete(stranger.id, over_limit[0].id)


def test_create_refused_at_limit(services, owner):
    services.domains.create(owner.id, 'a.example.com', 'https://example.org/', 'https://example.org/404')

    with pytest.raises(PlanLimitExceeded) as excinfo:
        services.domains.create(owner.id, 'b.example.com', 'https://example.org/', 'https://example.org/404')

    details = excinfo.value.to_dict()
    assert details['current'] == 1
    assert details['max'] == 1
    assert details['message'] == 'Custom Domain limit reached (1/1)'


def test_concurrent_creates_at_limit_admit_one(app, services, owner, db):
    owner_id = owner.id
    db.session.commit()
    start = threading.Barrier(2)
    outcomes = []

    def attempt(name):
        with app.app_context():
            start.wait(timeout=5)
            try:
                services.domains.create(owner_id, name, 'https://example.org/', 'https://example.org/404')
                outcomes.append('created')
            except PlanLimitExceeded:
                outcomes.append('refused')

    workers = [threading.Thread(target=attempt, args=(name,)) for name in ('a.example.com', 'b.example.com')]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    assert sorted(outcomes) == ['created', 'refused']
    assert len(services.domains.list_domains(owner_id)) == 1


def test_failed_create_leaves_no_row(services, owner):
    with pytest.raises(Exception):
        services.domains.create(owner.id, 'bad domain', 'https://example.org/', 'https://example.org/404')
    assert services.domains.list_domains(owner.id) == []


def test_async_verification_applies_outcome_on_poll(services, owner, resolver):
    domain = make_domain(owner, 'a.example.com')
    resolver.publish_txt('a.example.com')

    task, result = services.domains.start_verification(owner.id, domain.id)
    assert result is None
    task.future.result(timeout=5)

    state, outcome = services.domains.poll_verification(owner.id, task.id)
    assert state == 'done'
    assert outcome['status'] == DomainStatus.ACTIVE
    assert reload(domain).status == DomainStatus.ACTIVE

    # Replayed, not re-applied.
    assert services.domains.poll_verification(owner.id, task.id) == ('done', outcome)


def test_async_verification_failure_surfaces_on_poll(services, owner, resolver):
    domain = make_domain(owner, 'a.example.com')
    task, _ = services.domains.start_verification(owner.id, domain.id)
    task.future.result(timeout=5)

    with pytest.raises(DnsVerificationFailed):
        services.domains.poll_verification(owner.id, task.id)
    checked_at = reload(domain).last_checked_at
    assert domain.status == DomainStatus.FAILED

    # Replayed, not re-applied.
    with pytest.raises(DnsVerificationFailed):
        services.domains.poll_verification(owner.id, task.id)
    assert reload(domain).last_checked_at == checked_at
    assert len(resolver.calls) == 2


def test_poll_unknown_or_foreign_task(services, owner):
    domain = make_domain(owner, 'a.example.com')
    task, _ = services.domains.start_verification(owner.id, domain.id)
    stranger = make_user('stranger@example.com')

    with pytest.raises(NotFoundError):
        services.domains.poll_verification(stranger.id, task.id)
    with pytest.raises(NotFoundError):
        services.domains.poll_verification(owner.id, 'missing')


def test_zero_limit_keeps_oldest_domain(app, resolver, owner):
    catalog = SqlResourceCatalog()
    limits = StaticPlanLimitProvider({ResourceKind.CUSTOM_DOMAIN: 0}, catalog)
    services = init_services(app, resolver=resolver, randomness=FixedRandomness(), limit_provider=limits, catalog=catalog)

    for i, name in enumerate(['a.example.com', 'b.example.com', 'c.example.com']):
        make_domain(owner, name, minutes=i)

    listed = services.domains.list_domains(owner.id)
    assert [disabled for _, disabled in listed] == [False, True, True]

    resolver.point_cname('a.example.com')
    assert services.domains.verify(owner.id, listed[0][0].id).status == DomainStatus.ACTIVE
    with pytest.raises(PlanLimitExceeded):
        services.domains.create(owner.id, 'd.example.com', 'https://example.org/', 'https://example.org/404')
