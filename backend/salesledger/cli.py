# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/salesledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables and the single admin account (password printed once).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username ana --email ana@example.com --name "Ana" --password "Password123!" --role user
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked sessions older than 30 days.

import secrets
import string

import click
from flask.cli import with_appcontext

from .errors import ValidationError
from .extensions import db, query_cache
from .models import User
from .permissions import Role
from .services import auth_service, session_service


def _random_password(length: int = 16) -> str:
    """Random password that satisfies the strength rules."""
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    while True:
        candidate = "".join(secrets.choice(alphabet) for _ in range(length))
        try:
            auth_service.validate_password_strength(candidate)
        except ValidationError:
            continue
        return candidate


def _format_errors(err: ValidationError) -> str:
    if not err.errors:
        return err.message
    return "; ".join(f"{field}: {' '.join(messages)}" for field, messages in err.errors.items())


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', help='Admin username')
@click.option('--email', default='admin@salesledger.local', help='Admin email')
@click.option('--name', default='Administrator', help='Admin display name')
@with_appcontext
def init_system(username, email, name):
    """
    Create tables if missing and the initial admin account.

    Idempotent: if an active admin already exists nothing is created. The
    generated password is shown once and never stored in plaintext.
    """
    click.echo("START Initializing sales ledger...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter(User.role == Role.ADMIN, User.is_active.is_(True)).first()
    if existing:
        click.echo(f"PASS Admin already exists: {existing.username} (ID: {existing.id}), skipping")
        return

    password = _random_password()
    try:
        user = auth_service.create_user(username=username, name=name, email=email, password=password, role=Role.ADMIN)
    except ValidationError as e:
        raise click.ClickException(f"Failed to create admin: {_format_errors(e)}")

    click.echo(f"PASS Created admin: {user.username} ({user.email})")
    click.echo("\nAdmin password (shown once, CHANGE IT AFTER FIRST LOGIN):")
    click.echo(f"   {password}\n")


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
    query_cache.clear()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.USER.value, help='Role')
@with_appcontext
def create_user_cli(username, email, name, password, role):
    """Create a user. Only one active admin may exist."""
    role = Role.parse(role)
    if role == Role.ADMIN:
        existing = db.session.query(User.id).filter(User.role == Role.ADMIN, User.is_active.is_(True)).first()
        if existing:
            raise click.ClickException("Only one admin is allowed")

    try:
        user = auth_service.create_user(username=username, name=name, email=email, password=password, role=role)
    except ValidationError as e:
        raise click.ClickException(_format_errors(e))

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role.value}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {active_str:<8} {user.role.value}")

    click.echo("="*90 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
