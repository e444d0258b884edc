import click
from flask.cli import with_appcontext

from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.errors import VCardHubError
from vcardhub.extensions import db
from vcardhub.models import Plan, User
from vcardhub.services import get_services


DEFAULT_PLANS = [
    {
        'name': 'Free',
        'description': 'Get started with a single card',
        'price': 0,
        'is_default': True,
        'features': ['1 vCard', '10 vCard blocks', '1 project', '1 custom domain'],
    },
    {
        'name': 'Basic',
        'description': 'For freelancers and small teams',
        'price': 9,
        'is_default': False,
        'features': ['5 vCards', '50 vCard blocks', '3 projects', '2 pixels', '3 custom domains'],
    },
    {
        'name': 'Pro',
        'description': 'Everything, without limits',
        'price': 29,
        'is_default': False,
        'features': ['unlimited vCards', 'unlimited vCard blocks', 'unlimited projects', 'unlimited pixels', 'unlimited custom domains'],
    },
]


@click.command('seed-plans')
@with_appcontext
def seed_plans_command() -> None:
    """Seed the Free/Basic/Pro plans (existing plans are left untouched)."""
    created_count = 0
    for plan_data in DEFAULT_PLANS:
        if Plan.query.filter_by(name=plan_data['name']).first():
            continue
        db.session.add(Plan(**plan_data))
        created_count += 1

    db.session.commit()
    click.echo(f"Seeded {created_count} plans. Total plans: {Plan.query.count()}")


@click.command('verify-domain')
@click.argument('domain_id', type=int)
@with_appcontext
def verify_domain_command(domain_id: int) -> None:
    """Run the DNS challenge for a domain, bypassing the plan gate."""
    try:
        result = get_services().verifier.verify(domain_id)
    except VCardHubError as exc:
        raise click.ClickException(f'{exc.code}: {exc.message}') from exc
    click.echo(f"Domain {domain_id}: {result.status} ({result.message})")


@click.command('block-domain')
@click.argument('domain_id', type=int)
@click.option('--reason', default='blocked by administrator', help='Reason recorded in the log')
@with_appcontext
def block_domain_command(domain_id: int, reason: str) -> None:
    """Block a domain. Blocked domains can never be verified again."""
    try:
        domain = get_services().verifier.block(domain_id, reason=reason)
    except VCardHubError as exc:
        raise click.ClickException(f'{exc.code}: {exc.message}') from exc
    click.echo(f"✓ Domain '{domain.domain}' is now {domain.status}")


@click.command('plan-limits')
@click.argument('user_id', type=int)
@with_appcontext
def plan_limits_command(user_id: int) -> None:
    """Show usage against plan limits for every resource kind."""
    if db.session.get(User, user_id) is None:
        raise click.ClickException(f'User {user_id} not found')

    entitlements = get_services().entitlements
    for kind in ResourceKind.ALL:
        try:
            usage = entitlements.usage(user_id, kind)
        except VCardHubError as exc:
            raise click.ClickException(f'{exc.code}: {exc.message}') from exc
        maximum = 'unlimited' if usage['max'] == -1 else usage['max']
        click.echo(f"{kind:<14} {usage['current']:>4} / {maximum}  active={usage['active']}")
