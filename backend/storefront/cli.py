# Overview: Flask CLI command groups for bootstrap, store administration and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email super@storefront.local]
#   Create tables and a super admin if none exists.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store management:
# - python -m flask stores list [--status active]
# - python -m flask stores create --name "Acme" --slug acme --admin-name "Ann" --admin-email ann@acme.test
#   Prints the generated admin password once when --admin-password is omitted.
# - python -m flask stores set-status acme active
#
# Admins:
# - python -m flask admins create-super --name "Ops" --email ops@storefront.local --password "..."
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete revoked and expired session tokens.

import click
from flask.cli import with_appcontext

from .errors import StorefrontError
from .extensions import db
from .models import Admin, SessionToken, Store, STORE_STATUSES
from .permissions import ALL_RESOURCES, AdminRole
from .services import auth_service, store_service
from .services.auth_service import PasswordValidationError
from .time_utils import utcnow

DEFAULT_SUPER_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', default='Super Admin', help='Super admin display name')
@click.option('--email', default='super@storefront.local', help='Super admin email')
@click.option('--password', default=DEFAULT_SUPER_ADMIN_PASSWORD, help='Super admin password')
@with_appcontext
def init_system(name, email, password):
    """
    Create the schema and bootstrap a super admin.

    Idempotent: an existing super admin is left untouched.

    SECURITY: Change the default password immediately in production!
    """
    db.create_all()
    click.echo("PASS Schema ready")

    existing = db.session.query(Admin).filter(Admin.role == AdminRole.SUPER_ADMIN).first()
    if existing:
        click.echo(f"PASS Super admin already exists: {existing.email}")
        return

    admin = auth_service.create_admin(
        name=name,
        email=email,
        password=password,
        store_id=None,
        role=AdminRole.SUPER_ADMIN,
        permissions=list(ALL_RESOURCES),
    )
    db.session.commit()
    click.echo(f"PASS Created super admin {admin.email} (ID: {admin.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to bootstrap.")


@click.group('stores')
def stores_group():
    """Store administration."""


@stores_group.command('list')
@click.option('--status', type=click.Choice(sorted(STORE_STATUSES)), default=None)
@with_appcontext
def list_stores(status):
    query = db.session.query(Store).order_by(Store.id.asc())
    if status:
        query = query.filter(Store.status == status)
    stores = query.all()
    if not stores:
        click.echo("No stores found")
        return
    for store in stores:
        click.echo(f"{store.id:>4}  {store.slug:<24} {store.status:<9} {store.name}")


@stores_group.command('create')
@click.option('--name', required=True)
@click.option('--slug', required=True)
@click.option('--admin-name', required=True)
@click.option('--admin-email', required=True)
@click.option('--admin-password', default=None, help='Generated when omitted')
@click.option('--commission-rate', default=store_service.DEFAULT_COMMISSION_RATE, type=float)
@with_appcontext
def create_store(name, slug, admin_name, admin_email, admin_password, commission_rate):
    """Create a store (status pending) and its admin."""
    try:
        store, admin, generated = store_service.create_store(
            name=name,
            slug=slug,
            admin_name=admin_name,
            admin_email=admin_email,
            admin_password=admin_password,
            commission_rate=commission_rate,
        )
    except StorefrontError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"PASS Created store {store.slug} (ID: {store.id}, status: {store.status})")
    click.echo(f"PASS Admin {admin.email} (ID: {admin.id})")
    if generated:
        click.echo(f"WARN Generated admin password (shown once): {generated}")


@stores_group.command('set-status')
@click.argument('identifier')
@click.argument('status', type=click.Choice(sorted(STORE_STATUSES)))
@with_appcontext
def set_store_status(identifier, status):
    """Set a store's status by id or slug."""
    query = db.session.query(Store)
    store = query.filter(Store.id == int(identifier)).first() if identifier.isdigit() else None
    store = store or query.filter(Store.slug == identifier.lower()).first()
    if store is None:
        raise click.ClickException(f"Store not found: {identifier}")

    store = store_service.update_store_status(store.id, status)
    click.echo(f"PASS Store {store.slug} is now {store.status}")


@click.group('admins')
def admins_group():
    """Admin account commands."""


@admins_group.command('create-super')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_super_admin(name, email, password):
    try:
        admin = auth_service.create_admin(
            name=name,
            email=email,
            password=password,
            store_id=None,
            role=AdminRole.SUPER_ADMIN,
            permissions=list(ALL_RESOURCES),
        )
        db.session.commit()
    except PasswordValidationError as exc:
        raise click.ClickException(f"Weak password: {exc.message}")
    except StorefrontError as exc:
        db.session.rollback()
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created super admin {admin.email} (ID: {admin.id})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete revoked and expired session tokens."""
    deleted = db.session.query(SessionToken).filter(
        db.or_(SessionToken.is_revoked.is_(True), SessionToken.expires_at < utcnow())
    ).delete(synchronize_session=False)
    db.session.commit()
    click.echo(f"PASS Deleted {deleted} session tokens")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(admins_group)
    app.cli.add_command(maintenance_group)
