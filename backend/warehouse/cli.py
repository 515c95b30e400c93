# Overview: Flask CLI command groups for bootstrap, user accounts, and stock drift repair.

# backend/warehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-password "..."]
#   Create tables and the ADMIN_EMAIL account if it does not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User accounts:
# - python -m flask users list
# - python -m flask users create --email staff@example.com --password "Passw0rd" --can-add-products --can-manage-transactions
#
# Stock drift:
# - python -m flask stock drift
#   List products whose stored quantity disagrees with their ledger balance.
# - python -m flask stock reconcile [--product-id 3] [--fix]
#   Show (or, with --fix, apply) the repair from the ledger balance.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import PERMISSION_FLAGS
from .services import auth_service, stock_service
from .services.auth_service import PasswordValidationError
from .services.session_service import is_admin_email
from .validation import ValidationError, StorageError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Password for the ADMIN_EMAIL account (only used when it is created)')
@with_appcontext
def init_system(admin_password):
    """
    Create all tables and the admin account.

    Idempotent: an existing admin account is left untouched.
    """
    click.echo("START Initializing warehouse database...")
    db.create_all()
    click.echo("PASS Tables ready")

    admin_email = auth_service.normalize_email(current_app.config["ADMIN_EMAIL"])
    existing = db.session.query(User).filter_by(email=admin_email).first()
    if existing:
        click.echo(f"PASS Using existing admin account: {existing.email} (ID: {existing.id})")
        return

    try:
        # The admin holds every permission regardless of flags; store them true for clarity
        admin = auth_service.create_user(
            admin_email,
            admin_password,
            {name: True for name in PERMISSION_FLAGS},
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
        return

    click.echo(f"PASS Created admin account: {admin.email} (ID: {admin.id})")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to create the admin account.")


@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--can-add-products', is_flag=True, help='May create and edit products')
@click.option('--can-delete-products', is_flag=True, help='Stored flag; deletion stays admin-only')
@click.option('--can-manage-transactions', is_flag=True, help='May record stock movements')
@click.option('--can-view-reports', is_flag=True, help='May view and export reports')
@with_appcontext
def create_user_cli(email, password, can_add_products, can_delete_products,
                    can_manage_transactions, can_view_reports):
    """Create a user account with the given permission flags."""
    try:
        user = auth_service.create_user(
            email,
            password,
            {
                "can_add_products": can_add_products,
                "can_delete_products": can_delete_products,
                "can_manage_transactions": can_manage_transactions,
                "can_view_reports": can_view_reports,
            },
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
        return
    except ValidationError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their permission flags."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Email':<35} {'Active':<8} {'Permissions'}")
    click.echo("="*100)

    for user in users:
        granted = [name for name, value in user.permissions_dict().items() if value]
        if is_admin_email(user.email):
            granted = ["ADMIN (all)"]
        perms_str = ", ".join(granted) if granted else "none"
        active_str = "Yes" if user.is_active else "No"

        click.echo(f"{user.id:<5} {user.email:<35} {active_str:<8} {perms_str}")

    click.echo("="*100 + "\n")


@click.group('stock')
def stock_group():
    """Stock snapshot / ledger consistency commands."""


@stock_group.command('drift')
@with_appcontext
def stock_drift():
    """List products whose stored quantity disagrees with the ledger."""
    drifted = stock_service.find_drift()
    if not drifted:
        click.echo("PASS No drift: every product matches its ledger")
        return

    click.echo(f"WARN {len(drifted)} product(s) drifted from the ledger")
    for row in drifted:
        click.echo(
            f"  #{row['product_id']} {row['name']}: stored={row['stored_quantity']:g} "
            f"ledger={row['ledger_quantity']:g} diff={row['difference']:g}"
        )


@stock_group.command('reconcile')
@click.option('--product-id', type=int, help='Only this product')
@click.option('--fix', is_flag=True, help='Apply the repair (otherwise dry run)')
@with_appcontext
def stock_reconcile(product_id, fix):
    """Rewrite drifted products from their ledger balance (dry run by default)."""
    drifted = stock_service.find_drift()
    if product_id is not None:
        drifted = [row for row in drifted if row['product_id'] == product_id]

    if not drifted:
        click.echo("PASS Nothing to reconcile")
        return

    for row in drifted:
        if not fix:
            click.echo(
                f"DRY-RUN #{row['product_id']} {row['name']}: "
                f"{row['stored_quantity']:g} -> {row['ledger_quantity']:g}"
            )
            continue
        try:
            product = stock_service.reconcile_product(row['product_id'])
        except (ValidationError, StorageError) as e:
            click.echo(f"FAIL #{row['product_id']} {row['name']}: {str(e)}")
            continue
        click.echo(
            f"FIXED #{product.id} {product.name}: quantity={product.quantity:g} "
            f"total_weight={product.total_weight:g}"
        )

    if not fix:
        click.echo("Run again with --fix to apply.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
