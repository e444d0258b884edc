"""
Database Models for the vCard platform API

This module defines all database models using SQLAlchemy ORM.
Models include User, Plan, Subscription, VCard, Project, Pixel and
CustomDomain, plus the QuotaLock rows used to serialize resource creation.
"""

from datetime import datetime

from flask_login import UserMixin

from vcardhub.domain.enums import DomainStatus, ResourceKind, SubscriptionStatus
from vcardhub.extensions import db, login_manager


@login_manager.request_loader
def load_user_from_request(request):
    """Resolve the user id forwarded by the authenticating gateway."""
    from flask import current_app

    header = current_app.config.get('AUTH_USER_HEADER', 'X-User-Id')
    raw = (request.headers.get(header) or '').strip()
    if not raw.isdigit():
        return None
    user = db.session.get(User, int(raw))
    if user is None or not user.is_active:
        return None
    return user


class User(UserMixin, db.Model):
    """Account owning vCards, projects and custom domains"""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120))
    role = db.Column(db.String(50), nullable=False, default='user')
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    subscriptions = db.relationship('Subscription', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    vcards = db.relationship('VCard', backref='owner', lazy='dynamic', cascade='all, delete-orphan')
    projects = db.relationship('Project', backref='owner', lazy='dynamic', cascade='all, delete-orphan')
    custom_domains = db.relationship('CustomDomain', backref='owner', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def is_admin(self):
        return self.role == 'superadmin'

    def __repr__(self):
        return f'<User {self.email}>'


class Plan(db.Model):
    """Subscription tier. Limits are derived from the `features` list."""

    __tablename__ = 'plans'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.String(255))
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    duration_days = db.Column(db.Integer, nullable=False, default=30)
    features = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    subscriptions = db.relationship('Subscription', backref='plan', lazy='dynamic')

    def __repr__(self):
        return f'<Plan {self.name}>'


class Subscription(db.Model):
    """A user's subscription to a plan. Billing lifecycle is managed elsewhere."""

    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('plans.id'), nullable=False)
    status = db.Column(
        db.Enum(*SubscriptionStatus.ALL, name='subscription_status'),
        nullable=False,
        default=SubscriptionStatus.PENDING,
    )
    start_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    end_date = db.Column(db.DateTime)

    def __repr__(self):
        return f'<Subscription user={self.user_id} plan={self.plan_id} {self.status}>'


class VCard(db.Model):
    """Digital business card. Content and blocks live outside this service."""

    __tablename__ = 'vcards'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id', ondelete='SET NULL'))
    name = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(200), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    pixels = db.relationship('Pixel', backref='vcard', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<VCard {self.url}>'


class Project(db.Model):
    __tablename__ = 'projects'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<Project {self.name}>'


class Pixel(db.Model):
    """Tracking pixel. Owned through its vCard."""

    __tablename__ = 'pixels'

    id = db.Column(db.Integer, primary_key=True)
    vcard_id = db.Column(db.Integer, db.ForeignKey('vcards.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<Pixel {self.name}>'


class CustomDomain(db.Model):
    """Owner-supplied hostname serving a vCard once its DNS challenge passes.

    `status` is changed only through DomainVerifier. `verification_token`
    is set once at creation and never rewritten.
    """

    __tablename__ = 'custom_domains'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    domain = db.Column(db.String(253), unique=True, nullable=False, index=True)
    status = db.Column(
        db.Enum(*DomainStatus.ALL, name='custom_domain_status'),
        nullable=False,
        default=DomainStatus.PENDING,
    )
    verification_token = db.Column(db.String(64), nullable=False)
    cname_target = db.Column(db.String(253), nullable=False)
    landing_url = db.Column(db.String(500), nullable=False)
    not_found_url = db.Column(db.String(500), nullable=False)
    vcard_id = db.Column(db.Integer, db.ForeignKey('vcards.id', ondelete='SET NULL'), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    verified_at = db.Column(db.DateTime)
    last_checked_at = db.Column(db.DateTime)

    vcard = db.relationship('VCard', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'domain': self.domain,
            'status': self.status,
            'verificationToken': self.verification_token,
            'cnameTarget': self.cname_target,
            'landingUrl': self.landing_url,
            'notFoundUrl': self.not_found_url,
            'linkedVCardId': self.vcard_id,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
            'verifiedAt': self.verified_at.isoformat() if self.verified_at else None,
            'lastCheckedAt': self.last_checked_at.isoformat() if self.last_checked_at else None,
        }

    def __repr__(self):
        return f'<CustomDomain {self.domain} {self.status}>'


class QuotaLock(db.Model):
    """One row per (user, resource kind), locked FOR UPDATE around creation."""

    __tablename__ = 'quota_locks'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    resource_kind = db.Column(db.Enum(*ResourceKind.ALL, name='resource_kind'), primary_key=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
