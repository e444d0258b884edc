"""Entitlement-annotated listings for every plan-gated resource kind.

Each item carries `isDisabled`, recomputed on every request from the
owner's current plan limit; it is never stored.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.errors import NotFoundError
from vcardhub.services import get_services


resources_bp = Blueprint('resources', __name__)


@resources_bp.route('/<kind_slug>', methods=['GET'])
@login_required
def list_resources(kind_slug):
    kind = ResourceKind.from_slug(kind_slug)
    if kind is None:
        raise NotFoundError(f'Unknown resource kind {kind_slug!r}')

    snapshot = get_services().entitlements.snapshot(current_user.id, kind)
    items = [dict(resource.payload, isDisabled=disabled) for resource, disabled in snapshot.classify()]
    return jsonify({
        'ok': True,
        'kind': kind,
        'limit': snapshot.limit.to_dict(),
        'items': items,
    })
