# Overview: Flask CLI command groups for bootstrap, seeding, and maintenance.

# backend/sugarsphere/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --admin-email admin@sugarsphere.local --admin-password "ChangeMe123"
#   Idempotent: creates tables and the first admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalogue:
# - python -m flask catalog seed
#   Insert the sample confectionery catalogue (skips names that already exist).
#
# Accounts:
# - python -m flask users create --name "Jane" --email jane@example.com --password "Secret123" --role admin
# - python -m flask users list
#
# Maintenance:
# - python -m flask maintenance cleanup-tokens --retention-days 30
#   Delete expired/revoked access sessions and spent account tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .models.auth import ROLE_ADMIN, ROLE_USER, VALID_ROLES
from .errors import ConflictError
from .services import auth_service, session_service


SAMPLE_CATALOG = [
    # (name, category, price in paise, quantity, description)
    ("Dark Chocolate Bar", "chocolates", 29900, 50,
     "Rich and smooth dark chocolate with 70% cocoa content."),
    ("Milk Chocolate Truffles", "chocolates", 39900, 40,
     "Creamy milk chocolate truffles with a silky smooth center."),
    ("Rainbow Lollipops", "candies", 4900, 100,
     "Colorful spiral lollipops in assorted fruit flavors."),
    ("Gummy Bears", "candies", 14900, 75,
     "Soft and chewy gummy bears in five fruit flavors."),
    ("Chocolate Chip Cookies", "cookies", 19900, 60,
     "Classic cookies baked fresh daily with chocolate chunks."),
    ("Oatmeal Raisin Cookies", "cookies", 17900, 55,
     "Oatmeal cookies loaded with raisins and a hint of cinnamon."),
    ("Chocolate Fudge Cake", "cakes", 89900, 15,
     "Three-layer chocolate cake with rich fudge frosting."),
    ("Strawberry Cream Pastry", "pastries", 14900, 45,
     "Puff pastry filled with fresh strawberries and whipped cream."),
    ("Gulab Jamun", "indian", 8900, 80,
     "Milk-solid dumplings, deep-fried and soaked in sugar syrup."),
    ("Kaju Katli", "indian", 59900, 35,
     "Cashew fudge with a thin edible silver coating."),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='SugarSphere Admin', show_default=True)
@click.option('--admin-email', default='admin@sugarsphere.local', show_default=True)
@click.option('--admin-password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def init_system(admin_name, admin_email, admin_password):
    """Create tables and the first admin account (idempotent)."""
    db.create_all()
    click.echo("Tables ready")

    existing = auth_service.get_user_by_email(admin_email)
    if existing:
        click.echo(f"Admin {existing.email} already exists (role={existing.role})")
        return

    user = auth_service.create_user(
        name=admin_name,
        email=admin_email,
        password=admin_password,
        role=ROLE_ADMIN,
        is_verified=True,
    )
    db.session.commit()
    click.echo(f"Created admin {user.email} (id={user.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset")


@click.group('catalog')
def catalog_group():
    """Catalogue seeding commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Insert the sample confectionery catalogue."""
    existing = {name for (name,) in db.session.query(Product.name).all()}
    created = 0
    for name, category, price_cents, quantity, description in SAMPLE_CATALOG:
        if name in existing:
            continue
        db.session.add(Product(
            name=name,
            category=category,
            price_cents=price_cents,
            quantity=quantity,
            description=description,
            is_active=True,
        ))
        created += 1
    db.session.commit()
    click.echo(f"Seeded {created} products ({len(SAMPLE_CATALOG) - created} already present)")


@click.group('users')
def users_group():
    """Account inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(VALID_ROLES), default=ROLE_USER, show_default=True)
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create an account."""
    try:
        user = auth_service.create_user(
            name=name,
            email=email,
            password=password,
            role=role,
            is_verified=True,
        )
    except ConflictError as e:
        raise click.ClickException(e.message)
    db.session.commit()
    click.echo(f"Created {user.role} {user.email} (id={user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts with role and status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "blocked"
        click.echo(f"{user.id:>5}  {user.email:<40} {user.role:<6} {status}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-tokens')
@click.option('--retention-days', default=30, show_default=True, type=int)
@with_appcontext
def cleanup_tokens_cli(retention_days):
    """Delete stale access sessions and spent account tokens."""
    sessions = session_service.cleanup_expired_sessions(retention_days=retention_days)
    tokens = auth_service.cleanup_account_tokens(retention_days=retention_days)
    click.echo(f"Deleted {sessions} sessions and {tokens} account tokens")


def register_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
