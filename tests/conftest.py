"""Test configuration and fixtures."""

import pytest
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

from vcardhub import create_app
from vcardhub.domain.enums import DomainStatus, SubscriptionStatus
from vcardhub.extensions import db as _db
from vcardhub.models import CustomDomain, Pixel, Plan, Project, Subscription, User, VCard
from vcardhub.services import init_services
from vcardhub.services.dns_challenge import DnsResolver, LookupUnavailable, NameNotFound, NoRecords
from vcardhub.services.randomness import Randomness


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)
TOKEN = 'ab' * 32


class FakeResolver(DnsResolver):
    """Scripted answers per record name.

    A value is either a list of record strings or an exception class to raise.
    Unknown CNAME names have no CNAME record; unknown TXT names do not exist.
    """

    def __init__(self):
        self.cnames = {}
        self.txts = {}
        self.calls = []

    def _answer(self, table, name, missing):
        self.calls.append(name)
        answer = table.get(name, missing)
        if isinstance(answer, type) and issubclass(answer, Exception):
            raise answer(name)
        return list(answer)

    def cname(self, name):
        return self._answer(self.cnames, name, NoRecords)

    def txt(self, name):
        return self._answer(self.txts, name, NameNotFound)

    def point_cname(self, domain, target='cards.example.net'):
        self.cnames[domain] = [target + '.']

    def publish_txt(self, domain, token=TOKEN):
        self.txts[f'_vcard-verify.{domain}'] = [token]

    def break_lookups(self, domain):
        self.cnames[domain] = LookupUnavailable
        self.txts[f'_vcard-verify.{domain}'] = LookupUnavailable


class FixedRandomness(Randomness):
    def __init__(self, token=TOKEN):
        self.token = token

    def token_hex(self, nbytes):
        return self.token[: nbytes * 2]


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def app(resolver):
    """Create application for testing."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app('testing', {
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'DNS_CIRCUIT_FAILURE_THRESHOLD': 100,
    })
    init_services(app, resolver=resolver, randomness=FixedRandomness())

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()

    app.extensions['vcardhub'].runner.shutdown()
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def client(app):
    """Test client for making requests."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def db(app):
    """Database fixture."""
    return _db


@pytest.fixture
def services(app):
    return app.extensions['vcardhub']


def auth(user):
    return {'X-User-Id': str(user.id)}


def at(minutes):
    return BASE_TIME + timedelta(minutes=minutes)


def make_plan(name, features, is_default=False, price=0):
    plan = Plan(name=name, features=features, is_default=is_default, price=price)
    _db.session.add(plan)
    _db.session.commit()
    return plan


def make_user(email='owner@example.com', plan=None):
    user = User(email=email, name=email.split('@')[0])
    _db.session.add(user)
    _db.session.commit()
    if plan is not None:
        subscribe(user, plan)
    return user


def subscribe(user, plan, status=SubscriptionStatus.ACTIVE, minutes=0):
    sub = Subscription(user_id=user.id, plan_id=plan.id, status=status, start_date=at(minutes))
    _db.session.add(sub)
    _db.session.commit()
    return sub


def make_vcard(user, name, minutes=0, url=None):
    vcard = VCard(user_id=user.id, name=name, url=url or f'{name.lower()}-{user.id}', created_at=at(minutes))
    _db.session.add(vcard)
    _db.session.commit()
    return vcard


def make_project(user, name, minutes=0):
    project = Project(user_id=user.id, name=name, created_at=at(minutes))
    _db.session.add(project)
    _db.session.commit()
    return project


def make_pixel(vcard, name, minutes=0):
    pixel = Pixel(vcard_id=vcard.id, name=name, created_at=at(minutes))
    _db.session.add(pixel)
    _db.session.commit()
    return pixel


def make_domain(user, domain, status=DomainStatus.PENDING, minutes=0, vcard=None, token=TOKEN):
    record = CustomDomain(
        user_id=user.id,
        domain=domain,
        status=status,
        verification_token=token,
        cname_target='cards.example.net',
        landing_url='https://example.org/welcome',
        not_found_url='https://example.org/missing',
        vcard_id=vcard.id if vcard is not None else None,
        created_at=at(minutes),
    )
    _db.session.add(record)
    _db.session.commit()
    return record


def reload(obj):
    _db.session.refresh(obj)
    return obj
