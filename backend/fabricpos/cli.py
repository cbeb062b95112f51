# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fabricpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@fabricstore.local] [--password ...]
#   Idempotent bootstrap: creates tables and the first admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Ada" --email ada@fabricstore.local --password "secret1" --role staff
#   Create an active user (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory low-stock
#   List active products at or below their minimum stock level.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked session tokens older than the retention window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, ROLES
from .money import format_quantity
from .services.auth_service import create_user, PasswordValidationError
from .services.products_service import low_stock_products
from .services import session_service
from .validation import ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', default='Administrator', show_default=True, help='Admin display name')
@click.option('--email', default='admin@fabricstore.local', show_default=True, help='Admin email')
@click.option('--password', default=None, help='Admin password (defaults to DEFAULT_ADMIN_PASSWORD)')
@with_appcontext
def init_system(name, email, password):
    """
    Initialize the store backend: schema and first admin.

    Safe to re-run: existing tables and an existing admin are left alone.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Fabric Store backend...")

    db.create_all()
    click.echo("PASS Tables created")

    existing_admin = db.session.query(User).filter_by(role="admin").first()
    if existing_admin:
        click.echo(f"WARN  Admin already exists ({existing_admin.email}), skipping...")
        return

    password = password or current_app.config["DEFAULT_ADMIN_PASSWORD"]
    try:
        user = create_user(name=name, email=email, password=password, role="admin", is_active=True)
    except (PasswordValidationError, ConflictError) as e:
        click.echo(f"FAIL Could not create admin: {str(e)}")
        return

    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    click.echo("\nSECURITY WARNING: change the admin password after first login!")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create an active user. Password must be at least 6 characters."""
    try:
        user = create_user(name=name, email=email, password=password, role=role, is_active=True)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ConflictError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Role':<8} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<35} {user.role:<8} {active_str}")

    click.echo("="*90 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List active products at or below their minimum stock level."""
    products = low_stock_products()
    if not products:
        click.echo("No low stock products.")
        return

    for product in products:
        click.echo(
            f"{product.id:<5} {product.name:<30} "
            f"{format_quantity(product.current_stock)}/{format_quantity(product.min_stock_level)} {product.unit}"
        )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup expired and revoked session tokens.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(maintenance_group)
