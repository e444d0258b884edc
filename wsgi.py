"""
WSGI Entry Point for the vCard platform API

This module serves as the entry point for WSGI servers (like Gunicorn)
to run the Flask application in production environments.

All environment variables must be set BEFORE this module is imported.
Missing variables cause immediate failure with a clear message.
"""

import os
import sys

from dotenv import load_dotenv

# Load .env ONLY for local development. In production, environment
# variables must be provided by the platform.
if os.environ.get('FLASK_ENV', '').lower() != 'production' and os.environ.get('FLASK_CONFIG', '').lower() != 'production':
	load_dotenv(override=False)

from vcardhub import create_app

# Local/dev defaults to development; production must set FLASK_CONFIG=production.
config_name = (os.getenv('FLASK_CONFIG') or os.getenv('FLASK_ENV') or 'development').lower()

print(f'Initializing Flask application with config: {config_name}', file=sys.stderr)

if config_name == 'production':
    required_vars = {
        'SECRET_KEY': 'Required for signing',
        'DATABASE_URL': 'Required for PostgreSQL connection',
        'APP_DOMAIN': 'Host name custom domains point their CNAME at',
    }

    missing_vars = [
        f"  - {var_name}: {description}"
        for var_name, description in required_vars.items()
        if not os.getenv(var_name)
    ]

    if missing_vars:
        error_msg = (
            "\n" + "="*70 + "\n"
            "DEPLOYMENT FAILED: Missing required environment variables\n"
            "="*70 + "\n\n"
            + "\n".join(missing_vars)
            + "\n" + "="*70 + "\n"
        )
        print(error_msg, file=sys.stderr)
        raise RuntimeError('Missing required environment variables in production')

try:
    app = create_app(config_name)
    print('Flask application created successfully', file=sys.stderr)
except Exception as exc:
    print(f'\n{"="*70}', file=sys.stderr)
    print('FATAL: Application initialization failed', file=sys.stderr)
    print(f'\nError: {exc}', file=sys.stderr)
    print('\nCommon causes:', file=sys.stderr)
    print('  1. Database connection failure (check DATABASE_URL)', file=sys.stderr)
    print('  2. Missing database tables (run: flask db upgrade)', file=sys.stderr)
    print('  3. Invalid environment variable values', file=sys.stderr)
    print(f'\n{"="*70}\n', file=sys.stderr)
    raise
