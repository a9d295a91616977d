"""CLI tools for coaching CRM administration."""

import click

from coachcrm.core.config import settings
from coachcrm.core.permissions import ROLE_DEFAULTS, get_all_permissions
from coachcrm.core.structured_logging import configure_logging
from coachcrm.db.enums import ResourceType, Role, SubscriptionPlan, SubscriptionStatus
from coachcrm.db.models import Organization, User
from coachcrm.db.session import SessionLocal
from coachcrm.services import usage_service


@click.group()
def cli():
    """Coaching CRM CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--owner-email", required=True, help="Owner email address")
@click.option(
    "--plan",
    type=click.Choice([p.value for p in SubscriptionPlan]),
    default=SubscriptionPlan.STANDARD.value,
    show_default=True,
)
def create_org(name: str, slug: str, owner_email: str, plan: str):
    """
    Create an organization with its owner account (trial status).

    Example:
        python -m coachcrm.cli create-org --name "Acme Coaching" --slug acme --owner-email owner@acme.com
    """
    db = SessionLocal()
    try:
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum():
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores)")
            return

        if db.query(Organization).filter(Organization.slug == slug).first():
            click.echo(f"❌ Organization with slug '{slug}' already exists")
            return

        org = Organization(
            name=name,
            slug=slug,
            subscription_plan=plan,
            subscription_status=SubscriptionStatus.TRIAL.value,
        )
        db.add(org)
        db.flush()

        owner = User(
            organization_id=org.id,
            email=owner_email.lower(),
            display_name=owner_email.split("@")[0],
            role=Role.OWNER.value,
        )
        db.add(owner)
        db.commit()

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Plan: {plan} (trial)")
        click.echo(f"✓ Created owner {owner_email} ({owner.id})")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
def role_matrix():
    """Print which roles hold each permission."""
    roles = list(Role)
    click.echo("permission".ljust(32) + "".join(r.value.ljust(9) for r in roles))
    for perm in get_all_permissions():
        marks = "".join(("✓" if perm.key in ROLE_DEFAULTS[r] else "-").ljust(9) for r in roles)
        click.echo(perm.key.value.ljust(32) + marks)


@cli.command()
@click.option("--org-id", type=click.UUID, required=True, help="Organization ID")
@click.option(
    "--resource",
    type=click.Choice([r.value for r in ResourceType]),
    required=True,
)
@click.option("--amount", type=int, default=1, show_default=True)
def check_usage(org_id, resource: str, amount: int):
    """Check whether an organization may consume a resource."""
    db = SessionLocal()
    try:
        result = usage_service.check_usage_limit(db, org_id, ResourceType(resource), amount)
        status = "✓ allowed" if result.allowed else "❌ denied"
        click.echo(f"{status}: {resource} {result.current}/{result.limit} (remaining {result.remaining})")
        if result.message:
            click.echo(f"  {result.message}")
        if result.overage_cost is not None:
            click.echo(f"  Overage cost: {settings.CURRENCY_SYMBOL}{result.overage_cost}")
    finally:
        db.close()


@cli.command()
@click.option("--org-id", type=click.UUID, required=True, help="Organization ID")
def usage_summary(org_id):
    """Show the current billing period's usage."""
    db = SessionLocal()
    try:
        summary = usage_service.get_usage_summary(db, org_id)
        if summary is None:
            click.echo("No usage recorded this billing period")
            return
        for field, value in summary.model_dump().items():
            click.echo(f"{field.ljust(24)}{value}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
