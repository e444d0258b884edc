"""Plan usage per resource kind: `{current, max}` with `max = -1` for unlimited."""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.errors import NotFoundError
from vcardhub.services import get_services


limits_bp = Blueprint('limits', __name__)


@limits_bp.route('/<kind_slug>', methods=['GET'])
@login_required
def plan_limits(kind_slug):
    kind = ResourceKind.from_slug(kind_slug)
    if kind is None:
        raise NotFoundError(f'Unknown resource kind {kind_slug!r}')
    return jsonify(get_services().entitlements.usage(current_user.id, kind))
