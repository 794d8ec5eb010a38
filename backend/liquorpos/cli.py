# Overview: Flask CLI command groups for bootstrap and user administration.

# backend/liquorpos/cli.py
# Commands (run from the backend directory with FLASK_APP=wsgi.py):
#
# - python -m flask system init [--admin-email a@b.c --admin-password ...]
#   Idempotent bootstrap: default locations and, optionally, the first admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask users list
# - python -m flask users create --email ... --password ... --role manager
# - python -m flask users approve --email ...

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import User
from .models.auth import ROLES
from .services.auth_service import create_user
from .services.location_service import seed_default_locations


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=None, help='Create this admin if no users exist')
@click.option('--admin-password', default=None, help='Password for --admin-email')
@with_appcontext
def init_system(admin_email, admin_password):
    """Create the floor, back room and warehouse locations (and an admin)."""
    click.echo("START Initializing store...")

    locations = seed_default_locations()
    db.session.commit()
    for location in locations:
        click.echo(f"PASS Location: {location.name} ({location.type}, ID: {location.id})")

    if admin_email:
        if db.session.query(User.id).first() is not None:
            click.echo("SKIP Users already exist; not creating an admin")
        elif not admin_password:
            click.echo("FAIL --admin-password is required with --admin-email")
        else:
            try:
                user = create_user(admin_email, admin_password, role="admin", is_approved=True)
                click.echo(f"PASS Created admin: {user.email}")
            except PosError as e:
                db.session.rollback()
                click.echo(f"FAIL {e.message}")

    click.echo("DONE")


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


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Approved'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<10} {'Yes' if user.is_approved else 'No'}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True)
@click.option('--name', 'full_name', default=None, help='Full name')
@with_appcontext
def create_user_cli(email, password, role, full_name):
    """Create an approved user. Passwords need 8+ chars with a letter and a digit."""
    try:
        user = create_user(email, password, role=role, full_name=full_name, is_approved=True)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    except PosError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")


@users_group.command('approve')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def approve_user_cli(email):
    user = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        click.echo(f"FAIL No user with email {email}")
        return
    user.is_approved = True
    db.session.commit()
    click.echo(f"PASS Approved {user.email}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
