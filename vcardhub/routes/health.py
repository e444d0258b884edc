"""
Health check endpoints for monitoring the service and its database.

- /health        lightweight probe, no database access
- /health/ready  database connectivity and schema check
- /health/live   process liveness
"""

from flask import Blueprint, jsonify, current_app
from vcardhub.extensions import db
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import os


health_bp = Blueprint('health', __name__)

REQUIRED_TABLES = {'users', 'plans', 'subscriptions', 'custom_domains', 'quota_locks'}


@health_bp.route('/health')
def health_check():
    """Returns 200 OK while the application is running."""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': 'vcardhub',
    }), 200


@health_bp.route('/health/ready')
def readiness_check():
    """
    Readiness check including database connectivity.

    Returns 200 OK only if the database is reachable and the tables the
    entitlement engine reads are present.
    """
    checks = {
        'application': 'healthy',
        'database': 'unknown',
        'timestamp': datetime.utcnow().isoformat(),
    }

    status_code = 200

    try:
        db.session.execute(text('SELECT 1'))
        db.session.commit()
        checks['database'] = 'healthy'
    except SQLAlchemyError as exc:
        checks['database'] = 'unhealthy'
        checks['database_error'] = str(exc)
        status_code = 503
        current_app.logger.error('Database health check failed: %s', exc, exc_info=True)
        db.session.rollback()

    if checks['database'] == 'healthy':
        tables = set(inspect(db.engine).get_table_names())
        missing = REQUIRED_TABLES - tables
        if missing:
            checks['schema'] = 'incomplete'
            checks['missing_tables'] = sorted(missing)
            status_code = 503
        else:
            checks['schema'] = 'complete'

    checks['overall'] = 'healthy' if status_code == 200 else 'unhealthy'

    return jsonify(checks), status_code


@health_bp.route('/health/live')
def liveness_check():
    """Liveness probe for container orchestration."""
    return jsonify({
        'status': 'alive',
        'pid': os.getpid(),
        'timestamp': datetime.utcnow().isoformat(),
    }), 200
