"""
Flask Application Factory

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

from flask import Flask, jsonify
from vcardhub.config import config
from vcardhub.extensions import db, migrate, login_manager, limiter
from vcardhub.domain.errors import DnsVerificationTransient, VCardHubError
import os


def create_app(config_name='default', overrides=None):
    """
    Application factory function

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')
        overrides (dict): Extra configuration applied after the config class

    Returns:
        Flask: Configured Flask application instance
    """

    # Normalize config name
    config_name = (config_name or 'default').lower()

    app = Flask(__name__)

    # Instantiate the config object so @property values (like
    # ProductionConfig.SQLALCHEMY_DATABASE_URI) are evaluated.
    cfg = config.get(config_name) or config['default']
    cfg_obj = cfg() if isinstance(cfg, type) else cfg
    app.config.from_object(cfg_obj)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    if config_name == 'production':
        secret = app.config.get('SECRET_KEY')
        if not secret:
            app.logger.error('Production requires SECRET_KEY to be set via environment variable')
            raise RuntimeError('Missing SECRET_KEY in production')
    else:
        if not app.config.get('SECRET_KEY'):
            app.config['SECRET_KEY'] = os.urandom(32)
            app.logger.warning('SECRET_KEY was missing; generated an ephemeral key for this process.')

    if config_name == 'production':
        db_uri = app.config.get('SQLALCHEMY_DATABASE_URI')
        if not db_uri:
            app.logger.error('Production requires DATABASE_URL (SQLALCHEMY_DATABASE_URI) to be set')
            raise RuntimeError('Missing DATABASE_URL in production')
        if db_uri.strip().startswith('sqlite:'):
            # Row locks serialize resource creation; SQLite has none.
            app.logger.error('Production requires PostgreSQL (DATABASE_URL must not be sqlite): %s', db_uri)
            raise RuntimeError('SQLite not allowed in production')

    # Initialize extensions
    limiter.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({'ok': False, 'error': 'unauthorized', 'message': 'Authentication required'}), 401

    # Domain services (entitlements, DNS verifier, lifecycle coordinator)
    from vcardhub.services import init_services
    init_services(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_cli_commands(app)

    @app.teardown_appcontext
    def _cleanup_appcontext(exc):
        """Ensure scoped sessions are removed when the app context ends."""
        db.session.remove()
        return None

    return app


def register_blueprints(app):
    """Register Flask blueprints"""

    from vcardhub.routes.public import public_bp
    from vcardhub.routes.health import health_bp
    from vcardhub.routes.custom_domains import custom_domains_bp
    from vcardhub.routes.limits import limits_bp
    from vcardhub.routes.resources import resources_bp

    app.register_blueprint(public_bp)
    app.register_blueprint(health_bp)  # No prefix - accessible at /health
    app.register_blueprint(custom_domains_bp, url_prefix='/custom-domains')
    app.register_blueprint(limits_bp, url_prefix='/limits')
    app.register_blueprint(resources_bp, url_prefix='/resources')


def _error(status_code, error, message, **extra):
    return jsonify(dict({'ok': False, 'error': error, 'message': message}, **extra)), status_code


def register_error_handlers(app):
    """Render every error as JSON: `{ok: false, error, message, ...}`"""

    @app.errorhandler(VCardHubError)
    def domain_error(error):
        if error.status_code >= 500:
            app.logger.warning('%s: %s', error.code, error.message)
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        if isinstance(error, DnsVerificationTransient):
            response.headers['Retry-After'] = str(error.retry_after)
        return response

    @app.errorhandler(400)
    def bad_request_error(error):
        return _error(400, 'bad_request', 'Malformed request')

    @app.errorhandler(404)
    def not_found_error(error):
        return _error(404, 'not_found', 'Resource not found')

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return _error(405, 'method_not_allowed', 'Method not allowed')

    @app.errorhandler(429)
    def rate_limited_error(error):
        return _error(429, 'rate_limited', 'Too many requests; slow down', limit=str(getattr(error, 'description', '')))

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception('Unhandled exception (500): %s', error)
        db.session.rollback()
        return _error(500, 'internal_error', 'Internal server error')


def register_shell_context(app):
    """Register shell context for Flask CLI"""

    @app.shell_context_processor
    def make_shell_context():
        """Make database models and services available in Flask shell"""
        from vcardhub.models import User, Plan, Subscription, VCard, Project, Pixel, CustomDomain
        from vcardhub.services import get_services
        return {
            'db': db,
            'User': User,
            'Plan': Plan,
            'Subscription': Subscription,
            'VCard': VCard,
            'Project': Project,
            'Pixel': Pixel,
            'CustomDomain': CustomDomain,
            'services': get_services(),
        }


def register_cli_commands(app):
    """Register custom Flask CLI commands."""
    from vcardhub.cli import (
        seed_plans_command,
        verify_domain_command,
        block_domain_command,
        plan_limits_command,
    )

    app.cli.add_command(seed_plans_command)
    app.cli.add_command(verify_domain_command)
    app.cli.add_command(block_domain_command)
    app.cli.add_command(plan_limits_command)
