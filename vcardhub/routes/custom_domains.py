"""
Custom domain endpoints.

All endpoints act on the authenticated owner's domains. Listing and single
reads carry the transient `isDisabled` flag computed from the owner's plan.
"""

from flask import Blueprint, current_app, jsonify, request, url_for
from flask_login import current_user, login_required

from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.errors import ValidationError
from vcardhub.extensions import limiter
from vcardhub.services import get_services


custom_domains_bp = Blueprint('custom_domains', __name__)


def _verify_rate_limit():
    return current_app.config.get('DOMAIN_VERIFY_RATE_LIMIT', '10 per minute')


def _json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _parse_id(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer id', field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer id', field=field) from None


def _domain_json(domain, is_disabled):
    data = domain.to_dict()
    data['isDisabled'] = is_disabled
    return data


@custom_domains_bp.route('', methods=['POST'])
@login_required
def create_domain():
    payload = _json_body()
    services = get_services()

    domain = services.domains.create(
        current_user.id,
        domain=payload.get('domain'),
        landing_url=payload.get('landingUrl'),
        not_found_url=payload.get('notFoundUrl'),
        linked_vcard_id=_parse_id(payload.get('linkedVCardId'), 'linkedVCardId'),
    )
    current_app.logger.info('Custom domain %s created by user %s', domain.domain, current_user.id)

    return jsonify({
        'ok': True,
        'message': 'Domain created successfully',
        'domain': _domain_json(domain, False),
        'dns_instructions': services.verifier.instructions(domain),
    }), 201


@custom_domains_bp.route('', methods=['GET'])
@login_required
def list_domains():
    classified = get_services().domains.list_domains(current_user.id)
    domains = [dict(resource.payload, isDisabled=disabled) for resource, disabled in classified]
    return jsonify({'ok': True, 'domains': domains})


@custom_domains_bp.route('/<int:domain_id>', methods=['GET'])
@login_required
def get_domain(domain_id):
    services = get_services()
    domain, disabled = services.domains.get_domain(current_user.id, domain_id)
    return jsonify({
        'ok': True,
        'domain': _domain_json(domain, disabled),
        'dns_instructions': services.verifier.instructions(domain),
    })


@custom_domains_bp.route('/<int:domain_id>', methods=['PUT', 'PATCH'])
@login_required
def update_domain(domain_id):
    payload = _json_body()
    domain = get_services().domains.edit(
        current_user.id,
        domain_id,
        domain=payload.get('domain'),
        landing_url=payload.get('landingUrl'),
        not_found_url=payload.get('notFoundUrl'),
        vcard_id=_parse_id(payload.get('linkedVCardId'), 'linkedVCardId'),
    )
    return jsonify({'ok': True, 'message': 'Domain updated successfully', 'domain': _domain_json(domain, False)})


@custom_domains_bp.route('/<int:domain_id>', methods=['DELETE'])
@login_required
def delete_domain(domain_id):
    get_services().domains.delete(current_user.id, domain_id)
    return jsonify({'ok': True, 'message': 'Domain deleted successfully'})


@custom_domains_bp.route('/<int:domain_id>/verify', methods=['POST'])
@limiter.limit(_verify_rate_limit)
@login_required
def verify_domain(domain_id):
    """Run the DNS challenge.

    `?async=1` queues the lookup and answers 202 with a task to poll;
    otherwise the request waits (bounded by DNS_VERIFICATION_TIMEOUT).
    """
    coordinator = get_services().domains

    if request.args.get('async') in ('1', 'true', 'yes'):
        task, result = coordinator.start_verification(current_user.id, domain_id)
        if task is None:
            return jsonify(dict(result.to_dict(), ok=True))
        poll_url = url_for('custom_domains.verification_status', task_id=task.id)
        response = jsonify({'ok': True, 'taskId': task.id, 'state': 'running', 'poll': poll_url})
        response.status_code = 202
        response.headers['Location'] = poll_url
        return response

    result = coordinator.verify(current_user.id, domain_id)
    return jsonify(dict(result.to_dict(), ok=True))


@custom_domains_bp.route('/verifications/<task_id>', methods=['GET'])
@login_required
def verification_status(task_id):
    state, outcome = get_services().domains.poll_verification(current_user.id, task_id)
    if state == 'running':
        return jsonify({'ok': True, 'taskId': task_id, 'state': state}), 202
    return jsonify(dict(outcome, ok=True, taskId=task_id, state=state))


@custom_domains_bp.route('/<int:domain_id>/link', methods=['POST'])
@login_required
def link_vcard(domain_id):
    payload = _json_body()
    vcard_id = _parse_id(payload.get('vcardId'), 'vcardId')
    if vcard_id is None:
        raise ValidationError('vcardId is required', field='vcardId')
    domain = get_services().domains.link_vcard(current_user.id, domain_id, vcard_id)
    return jsonify({'ok': True, 'message': 'Domain successfully linked to vCard', 'domain': _domain_json(domain, False)})


@custom_domains_bp.route('/<int:domain_id>/unlink', methods=['POST'])
@login_required
def unlink_vcard(domain_id):
    services = get_services()
    domain = services.domains.unlink_vcard(current_user.id, domain_id)
    disabled = services.entitlements.is_disabled(current_user.id, ResourceKind.CUSTOM_DOMAIN, domain.id)
    return jsonify({'ok': True, 'message': 'Domain unlinked from vCard', 'domain': _domain_json(domain, disabled)})
