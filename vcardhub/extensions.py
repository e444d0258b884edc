"""
Flask Extensions Module

This module initializes all Flask extensions used in the application.
Extensions are initialized here and then attached to the app in the factory.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter


def _rate_limit_key() -> str:
	"""Rate limit key: authenticated user id, else the client address.

	Falls back to remote_addr when no user is attached to the request.
	"""

	from flask import has_request_context, request

	if not has_request_context():
		return '0.0.0.0'

	from flask_login import current_user

	if current_user and current_user.is_authenticated:
		return f'user:{current_user.get_id()}'
	return request.remote_addr or '0.0.0.0'


# Initialize extensions
# These will be attached to the app in create_app()
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(key_func=_rate_limit_key)

# API-only service: no login view, unauthorized requests get JSON (see app factory)
login_manager.session_protection = None
