"""
Custom domain front door.

Requests whose Host is an owner's custom domain (anything outside
PLATFORM_HOSTS) are redirected according to that domain's configuration
before any API blueprint sees them.
"""

from flask import Blueprint, jsonify, redirect, request

from vcardhub.services import get_services


public_bp = Blueprint('public', __name__)


@public_bp.before_app_request
def route_custom_domain():
    router = get_services().router
    if not router.handles(request.host):
        return None

    decision = router.resolve(request.host, request.path)
    if decision.location:
        return redirect(decision.location, code=decision.status_code)
    return jsonify({'ok': False, 'error': 'not_found', 'message': f'The requested domain {request.host} is not configured'}), 404
