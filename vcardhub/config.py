"""
Configuration Module for the vCard platform API

This module defines configuration classes for different environments:
- DevelopmentConfig: Local development with SQLite
- ProductionConfig: Production deployment with PostgreSQL
- TestingConfig: Automated testing configuration
"""

import os
import sys
from pathlib import Path


def _env_list(name, default=''):
    raw = os.environ.get(name, default) or ''
    return [item.strip() for item in raw.split(',') if item.strip()]


class Config:
    """Base configuration with common settings"""

    # Secret key for signing. DO NOT provide an insecure default here.
    # In production, the app factory enforces presence.
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Database configuration
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Make database connections more resilient in production (stale connections,
    # temporary network blips). Safe defaults for all environments.
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Authentication happens upstream; the gateway forwards the user id here.
    AUTH_USER_HEADER = os.environ.get('AUTH_USER_HEADER', 'X-User-Id')

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'True').lower() == 'true'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    DOMAIN_VERIFY_RATE_LIMIT = os.environ.get('DOMAIN_VERIFY_RATE_LIMIT', '10 per minute')

    # Custom domains: the platform host owners point their CNAME at.
    CNAME_TARGET = os.environ.get('APP_DOMAIN', 'localhost')
    # Hosts served as the platform itself (never routed as custom domains)
    PLATFORM_HOSTS = _env_list('PLATFORM_HOSTS', 'localhost,127.0.0.1')
    VCARD_PUBLIC_URL_TEMPLATE = os.environ.get('VCARD_PUBLIC_URL_TEMPLATE', '/vcards/{url}')

    # DNS challenge
    DNS_VERIFICATION_TIMEOUT = float(os.environ.get('DNS_VERIFICATION_TIMEOUT', '5.0'))
    DNS_TXT_RECORD_PREFIX = os.environ.get('DNS_TXT_RECORD_PREFIX', '_vcard-verify')
    DNS_NAMESERVERS = _env_list('DNS_NAMESERVERS')
    DOMAIN_VERIFICATION_METHODS = tuple(_env_list('DOMAIN_VERIFICATION_METHODS', 'cname,txt'))
    DNS_CIRCUIT_FAILURE_THRESHOLD = int(os.environ.get('DNS_CIRCUIT_FAILURE_THRESHOLD', '5'))
    DNS_CIRCUIT_RESET_SECONDS = int(os.environ.get('DNS_CIRCUIT_RESET_SECONDS', '30'))
    DNS_VERIFICATION_WORKERS = int(os.environ.get('DNS_VERIFICATION_WORKERS', '4'))

    # Plan limits. Values are per resource kind; -1 means unlimited.
    DEFAULT_PLAN_NAME = os.environ.get('DEFAULT_PLAN_NAME', 'Free')
    PLAN_LIMIT_DEFAULTS = {
        'vcard': 1,
        'project': 1,
        'pixel': 0,
        'custom_domain': 1,
    }
    # Custom domain limits are tiered by plan name rather than parsed from features.
    CUSTOM_DOMAIN_PLAN_LIMITS = {
        'free': 1,
        'basic': 3,
        'pro': -1,
    }


class DevelopmentConfig(Config):
    """Development environment configuration"""

    DEBUG = True
    TESTING = False

    # IMPORTANT (Windows): SQLAlchemy sqlite URLs must use forward slashes.
    _project_root = Path(__file__).resolve().parent.parent
    _default_db_path = (_project_root / 'vcardhub.db').resolve()

    _env_db_url = os.environ.get('DATABASE_URL')
    if _env_db_url and _env_db_url.strip().startswith('sqlite:'):
        _env_db_url = _env_db_url.replace('\\', '/')

    SQLALCHEMY_DATABASE_URI = _env_db_url or f"sqlite:///{_default_db_path.as_posix()}"

    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    """Production environment configuration"""

    DEBUG = False
    TESTING = False

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        """
        Dynamically construct production database URI.

        Must be a property so it's evaluated when the config object is
        instantiated, not at class definition time.
        - Render/Heroku provide DATABASE_URL with postgres:// prefix
        - SQLAlchemy 1.4+ requires postgresql:// prefix
        - SSL is required for managed PostgreSQL
        """
        db_uri = os.environ.get('DATABASE_URL')

        if not db_uri:
            print('FATAL: DATABASE_URL not set in environment', file=sys.stderr)
            return None

        if db_uri.startswith('postgres://'):
            db_uri = 'postgresql://' + db_uri[len('postgres://'):]

        if db_uri.startswith('postgresql://') and 'sslmode=' not in db_uri:
            separator = '&' if '?' in db_uri else '?'
            db_uri = f"{db_uri}{separator}sslmode=require"

        return db_uri


class TestingConfig(Config):
    """Testing environment configuration"""

    TESTING = True
    DEBUG = True

    # In-memory SQLite for fast testing
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    RATELIMIT_ENABLED = False
    CNAME_TARGET = 'cards.example.net'
    PLATFORM_HOSTS = ['localhost', 'app.example.net']
    DNS_VERIFICATION_TIMEOUT = 1.0
    DNS_VERIFICATION_WORKERS = 2


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
