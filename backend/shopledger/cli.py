# Overview: Flask CLI command groups for bootstrap and location onboarding.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables.
# - python -m flask system seed-catalog
#   Insert the built-in action catalog (idempotent, existing rows untouched).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask locations list
# - python -m flask locations create --name "Centro" --admin-email admin@shop.local
#   Create a location with its first ADMIN and its action override rows.
# - python -m flask locations ensure-actions --location-id 1
#   Provision override rows for catalog actions added after onboarding.
#
# Users:
# - python -m flask users create --email op@shop.local --password "Password123" [--location-id 1 --role OPERATOR]
# - python -m flask users assign --email op@shop.local --location-id 1 --role READER

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Location
from .models.tenancy import ALL_ROLES
from .services import action_config_service, auth_service, location_service
from .validation import LedgerError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (use `flask db upgrade` once migrations exist)."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('seed-catalog')
@with_appcontext
def seed_catalog():
    """Insert missing built-in catalog actions."""
    inserted = action_config_service.seed_action_catalog()
    db.session.commit()
    current_app.logger.info("Action catalog seeded: %s new actions", inserted)
    click.echo(f"PASS Catalog seeded ({inserted} new actions)")


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

    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset complete. Run 'python -m flask system seed-catalog' next.")


# =============================================================================
# LOCATION COMMANDS
# =============================================================================

@click.group('locations')
def locations_group():
    """Location onboarding commands."""


@locations_group.command('list')
@with_appcontext
def list_locations():
    """List all locations."""
    locations = db.session.query(Location).order_by(Location.id.asc()).all()
    if not locations:
        click.echo("No locations found.")
        return
    for location in locations:
        status = "active" if location.is_active else "inactive"
        click.echo(f"{location.id:>4}  {location.name}  ({status})")


@locations_group.command('create')
@click.option('--name', required=True, help='Location name (unique)')
@click.option('--admin-email', required=True, help='Email of the existing user who becomes ADMIN')
@with_appcontext
def create_location_cli(name, admin_email):
    """Create a location, its first ADMIN assignment and its override rows."""
    user = auth_service.get_user_by_email(admin_email)
    if not user:
        click.echo(f"FAIL User {admin_email} not found")
        return

    try:
        location = location_service.create_location(name, user.id)
    except LedgerError as e:
        click.echo(f"FAIL {e.code}: {e.message}")
        return

    current_app.logger.info("Location %s created with admin user %s", location.id, user.id)
    click.echo(f"PASS Created location: {location.name} (ID: {location.id}), admin {user.email}")


@locations_group.command('ensure-actions')
@click.option('--location-id', type=int, required=True, help='Location ID')
@with_appcontext
def ensure_actions_cli(location_id):
    """Provision missing action override rows for a location."""
    try:
        inserted = action_config_service.ensure_location_overrides(location_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.code}: {e.message}")
        return
    db.session.commit()
    current_app.logger.info("Ensured action overrides for location %s: %s inserted", location_id, inserted)
    click.echo(f"PASS {inserted} override rows inserted")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--location-id', type=int, help='Location to assign the user to')
@click.option('--role', type=click.Choice(ALL_ROLES), default=None, help='Role at --location-id')
@with_appcontext
def create_user_cli(email, password, location_id, role):
    """Create a user, optionally assigned to one location."""
    if (location_id is None) != (role is None):
        click.echo("FAIL --location-id and --role go together")
        return

    try:
        user = auth_service.create_user(email, password)
        if location_id is not None:
            location_service.assign_user(location_id, user.id, role)
    except LedgerError as e:
        click.echo(f"FAIL {e.code}: {e.message}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
    if location_id is not None:
        click.echo(f"     Role {role} at location {location_id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('assign')
@click.option('--email', required=True, help='Email address')
@click.option('--location-id', type=int, required=True, help='Location ID')
@click.option('--role', type=click.Choice(ALL_ROLES), required=True, help='Role')
@with_appcontext
def assign_user_cli(email, location_id, role):
    """Grant or change a user's role at a location."""
    user = auth_service.get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        return

    try:
        location_service.assign_user(location_id, user.id, role)
    except LedgerError as e:
        click.echo(f"FAIL {e.code}: {e.message}")
        return

    click.echo(f"PASS {user.email} is {role} at location {location_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(users_group)
